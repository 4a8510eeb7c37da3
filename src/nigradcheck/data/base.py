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
"""Diffusion-weighted input, staged in a scratch directory."""

from __future__ import annotations

from pathlib import Path
from tempfile import mkdtemp
from warnings import warn

import attrs

from nigradcheck.data.gradients import FSLGradientTable, GradientFiles, GradientTable
from nigradcheck.data.utils import (
    GRADIENT_VOLUME_DIMENSIONALITY_MISMATCH_ERROR,
    SCANNER_BASIS,
    non_unit_bvecs,
)
from nigradcheck.exceptions import GradientTableMismatchError, InvalidInputError

SCRATCH_PREFIX = "nigradcheck-tmp-"
"""Prefix of the scratch directories."""

DATA_NAME = "data.mif"
"""Name of the staged copy of the diffusion data."""

MASK_NAME = "mask.mif"
"""Name of the staged brain mask."""

GRAD_NAME = "grad.b"
"""Name of the staged MRtrix gradient table."""

BVECS_NAME = "bvecs"
"""Name of the staged FSL b-vectors."""

BVALS_NAME = "bvals"
"""Name of the staged FSL b-values."""

INPUT_MISSING_ERROR_MSG = "Input image <{path}> does not exist."
"""Missing input error message."""

INPUT_NDIM_ERROR_MSG = "Input image must be a 4D image; got dimensions {shape}."
"""Input dimensionality error message."""

INPUT_UNITY_DIM_ERROR_MSG = """\
Cannot perform tractography on an image with a unity spatial dimension; \
got dimensions {shape}."""
"""Input unity dimension error message."""

INPUT_NVOLUMES_ERROR_MSG = "Input image must contain at least 2 volumes; got {n_volumes}."
"""Input volume count error message."""

NON_UNIT_BVECS_WARN_MSG = """\
{count} gradient direction(s) are neither unit-norm nor null; \
the table is checked as given."""
"""Non-unit b-vectors warning message."""


def check_shape(shape: tuple[int, ...]) -> int:
    """
    Check that an image can be used for tractography and return its number of volumes.

    Raises
    ------
    :exc:`~nigradcheck.exceptions.InvalidInputError`
        If the image is not 4D, has a spatial dimension of size 1, or fewer
        than two volumes.

    Examples
    --------
    >>> check_shape((64, 64, 30, 7))
    7
    >>> check_shape((1, 64, 64, 30))
    Traceback (most recent call last):
    ...
    nigradcheck.exceptions.InvalidInputError: Cannot perform tractography on an image \
with a unity spatial dimension; got dimensions (1, 64, 64, 30).

    """
    shape = tuple(shape)
    if len(shape) != 4:
        raise InvalidInputError(INPUT_NDIM_ERROR_MSG.format(shape=shape))
    if min(shape[:3]) <= 1:
        raise InvalidInputError(INPUT_UNITY_DIM_ERROR_MSG.format(shape=shape))
    if shape[3] < 2:
        raise InvalidInputError(INPUT_NVOLUMES_ERROR_MSG.format(n_volumes=shape[3]))
    return shape[3]


def check_length(table: GradientTable | FSLGradientTable, n_volumes: int, source: str) -> None:
    """Raise :exc:`~nigradcheck.exceptions.GradientTableMismatchError` on a length mismatch."""
    if len(table) != n_volumes:
        raise GradientTableMismatchError(
            GRADIENT_VOLUME_DIMENSIONALITY_MISMATCH_ERROR.format(
                source=source, n_volumes=n_volumes, n_gradients=len(table)
            )
        )


def make_scratch_dir(parent: Path | str | None = None) -> Path:
    """Create a fresh scratch directory, which is kept after the run."""
    parent = Path.cwd() if parent is None else Path(parent)
    parent.mkdir(parents=True, exist_ok=True)
    return Path(mkdtemp(prefix=SCRATCH_PREFIX, dir=parent)).absolute()


@attrs.define(slots=True, frozen=True)
class DWIDataset:
    """Diffusion data and gradient tables, staged for tractography."""

    data: Path = attrs.field(converter=Path)
    """Memory-mappable copy of the diffusion-weighted image."""
    brainmask: Path = attrs.field(converter=Path)
    """Brain mask used both to seed and to constrain tractography."""
    shape: tuple[int, ...] = attrs.field(converter=tuple)
    """Dimensions of the diffusion-weighted image."""
    scanner_files: GradientFiles
    """Gradient table in scanner coordinates (MRtrix notation)."""
    image_files: GradientFiles
    """Gradient table in image coordinates (FSL notation)."""
    scanner_table: GradientTable = attrs.field(eq=False, repr=False)
    """The scanner-frame table, loaded."""
    image_table: FSLGradientTable = attrs.field(eq=False, repr=False)
    """The image-frame table, loaded."""
    scratch_dir: Path = attrs.field(converter=Path)
    """Directory holding every intermediate file."""

    def __attrs_post_init__(self) -> None:
        n_volumes = check_shape(self.shape)
        check_length(self.scanner_table, n_volumes, f"<{self.scanner_files.mrtrix}>")
        check_length(
            self.image_table,
            n_volumes,
            "<{}>".format(" ".join(str(p) for p in self.image_files.paths)),
        )

        if count := int(non_unit_bvecs(self.scanner_table.bvecs).sum()):
            warn(NON_UNIT_BVECS_WARN_MSG.format(count=count), UserWarning, stacklevel=2)

    def __len__(self) -> int:
        return self.shape[3]

    def table(self, basis: str) -> GradientTable | FSLGradientTable:
        """The loaded gradient table expressed in ``basis``."""
        return self.scanner_table if basis == SCANNER_BASIS else self.image_table

    @classmethod
    def from_scratch(cls, scratch_dir: Path | str, shape: tuple[int, ...]) -> DWIDataset:
        """
        Re-read a dataset previously staged in ``scratch_dir``.

        Parameters
        ----------
        scratch_dir : :obj:`os.pathlike`
            A directory populated by :obj:`~nigradcheck.data.load`.
        shape : :obj:`tuple`
            Dimensions of the diffusion-weighted image.

        """
        scratch_dir = Path(scratch_dir)
        scanner_files = GradientFiles(mrtrix=scratch_dir / GRAD_NAME)
        image_files = GradientFiles(fsl=(scratch_dir / BVECS_NAME, scratch_dir / BVALS_NAME))
        return cls(
            data=scratch_dir / DATA_NAME,
            brainmask=scratch_dir / MASK_NAME,
            shape=shape,
            scanner_files=scanner_files,
            image_files=image_files,
            scanner_table=scanner_files.load(),
            image_table=image_files.load(),
            scratch_dir=scratch_dir,
        )
