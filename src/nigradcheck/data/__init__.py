# emacs: -*- mode: python; py-indent-offset: 4; indent-tabs-mode: nil -*-
# vi: set ft=python sts=4 ts=4 sw=4 et:
#
# Copyright The NiPreps Developers <nipreps@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# We support and encourage derived works from this project, please read
# about our expectations at
#
#     https://www.nipreps.org/community/licensing/
#
"""
Diffusion data and gradient tables
----------------------------------
Gradient tables are handled in the two notations understood by MRtrix3:

* a combined table (:class:`~nigradcheck.data.gradients.GradientTable`) with one
  ``x y z b`` row per volume, with directions in *scanner* coordinates; and
* a split table (:class:`~nigradcheck.data.gradients.FSLGradientTable`) with three
  rows of b-vector components in *image* coordinates plus a line of b-values.

Whichever notation is supplied, :func:`load` stages both of them (as exported by
MRtrix3 from the same image) in a scratch directory, next to a memory-mappable
copy of the data and the brain mask.
Gradient values are never normalized: the table is checked exactly as given.

"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from nigradcheck.data.base import (
    BVALS_NAME,
    BVECS_NAME,
    DATA_NAME,
    GRAD_NAME,
    INPUT_MISSING_ERROR_MSG,
    MASK_NAME,
    DWIDataset,
    check_length,
    check_shape,
    make_scratch_dir,
)
from nigradcheck.data.gradients import FSLGradientTable, GradientFiles, GradientTable
from nigradcheck.exceptions import InvalidInputError

if TYPE_CHECKING:
    from nigradcheck.interfaces.base import Toolbox

LOGGER = logging.getLogger("nigradcheck")

GRADIENT_READ_ERROR_MSG = "Could not read gradient table from {paths}: {reason}"
"""Unreadable gradient table error message."""

__all__ = (
    "DWIDataset",
    "FSLGradientTable",
    "GradientFiles",
    "GradientTable",
    "load",
)


def load(
    filename: Path | str,
    toolbox: Toolbox,
    *,
    gradients: GradientFiles | None = None,
    brainmask_file: Path | str | None = None,
    scratch_dir: Path | str | None = None,
) -> DWIDataset:
    """
    Validate a diffusion-weighted image and stage it for the gradient check.

    The input is fully validated before anything is written to disk.

    Parameters
    ----------
    filename : :obj:`os.pathlike`
        The diffusion-weighted image (any format MRtrix3 reads).
    toolbox : :obj:`~nigradcheck.interfaces.base.Toolbox`
        The external tools.
    gradients : :obj:`~nigradcheck.data.gradients.GradientFiles`, optional
        A gradient table overriding the one stored in the image header.
    brainmask_file : :obj:`os.pathlike`, optional
        A brain mask. If not provided, one is derived from the data.
    scratch_dir : :obj:`os.pathlike`, optional
        Parent directory of the scratch directory (the current one by default).

    Returns
    -------
    :obj:`~nigradcheck.data.base.DWIDataset`
        The staged dataset.

    Raises
    ------
    :exc:`~nigradcheck.exceptions.InvalidInputError`
        If the image is missing or not suitable for tractography.
    :exc:`~nigradcheck.exceptions.GradientTableMismatchError`
        If a gradient table does not match the number of volumes.
    :exc:`~nigradcheck.exceptions.ExternalToolError`
        If any external tool fails.

    """
    filename = Path(filename)
    if not filename.exists():
        raise InvalidInputError(INPUT_MISSING_ERROR_MSG.format(path=filename))

    shape = tuple(toolbox.image_size(filename))
    n_volumes = check_shape(shape)

    if gradients is not None:
        paths = " ".join(f"<{p}>" for p in gradients.paths)
        try:
            table = gradients.load()
        except (OSError, TypeError, ValueError) as exc:
            raise InvalidInputError(
                GRADIENT_READ_ERROR_MSG.format(paths=paths, reason=exc)
            ) from exc
        check_length(table, n_volumes, paths)
        LOGGER.info("Importing gradient table (%s coordinates) from %s", gradients.basis, paths)

    if brainmask_file is not None and not Path(brainmask_file).exists():
        raise InvalidInputError(INPUT_MISSING_ERROR_MSG.format(path=brainmask_file))

    scratch = make_scratch_dir(scratch_dir)
    LOGGER.info("Staging data in <%s>", scratch)

    data = toolbox.convert(filename, scratch / DATA_NAME, gradients=gradients)
    toolbox.export_gradients(data, GradientFiles(mrtrix=scratch / GRAD_NAME))
    toolbox.export_gradients(data, GradientFiles(fsl=(scratch / BVECS_NAME, scratch / BVALS_NAME)))

    if brainmask_file is not None:
        toolbox.convert(Path(brainmask_file), scratch / MASK_NAME, datatype="bit")
    else:
        LOGGER.info("No brain mask provided; deriving one from the data")
        toolbox.derive_mask(data, scratch / MASK_NAME)

    return DWIDataset.from_scratch(scratch, shape)
