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
"""Gradient table representations and their on-disk notations."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import attrs
import numpy as np
from typing_extensions import Self

from nigradcheck.data.utils import (
    BVECS_BVALS_MISMATCH_ERROR_MSG,
    DEFAULT_BVALS_DEC_PLACES,
    DEFAULT_BVECS_DEC_PLACES,
    IMAGE_BASIS,
    SCANNER_BASIS,
    flip_permute,
    format_bvals,
    format_bvecs,
    format_gradients,
    validate_finite,
)

GRADIENT_FILES_ERROR_MSG = (
    "Exactly one of a MRtrix gradient file or a pair of FSL bvecs/bvals files must be given."
)
"""Gradient files handle error message."""


def _data_repr(value: np.ndarray | None) -> str:
    if value is None:
        return "None"
    return f"<{'x'.join(str(v) for v in value.shape)} ({value.dtype})>"


def _cmp(lh: np.ndarray, rh: np.ndarray) -> bool:
    return lh.shape == rh.shape and np.array_equal(lh, rh)


def _loadtxt(filename: Path | str) -> np.ndarray:
    return np.loadtxt(filename, dtype=float, comments="#", ndmin=2)


@attrs.define(slots=True, frozen=True, eq=False)
class GradientTable:
    """Combined gradient table (``N x 4``), in scanner coordinates.

    Each row holds the three direction components and the b-value of one
    diffusion volume, as in MRtrix's ``-grad`` notation.
    """

    gradients: np.ndarray = attrs.field(
        repr=_data_repr,
        converter=format_gradients,
        validator=validate_finite,
    )
    """A 2D numpy array of the gradient table (``N`` orientations x 4 components)."""

    def __len__(self) -> int:
        return self.gradients.shape[0]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GradientTable):
            return NotImplemented
        return _cmp(self.gradients, other.gradients)

    @property
    def bvecs(self) -> np.ndarray:
        return self.gradients[:, :3]

    @property
    def bvals(self) -> np.ndarray:
        return self.gradients[:, 3]

    def transform(self, flip: int | None, permutation: Sequence[int]) -> Self:
        """
        Flip and permute the direction columns, leaving the b-values untouched.

        Parameters
        ----------
        flip : :obj:`int` or ``None``
            Direction column to negate.
        permutation : :obj:`tuple`
            Output column ``i`` takes input column ``permutation[i]``.

        Returns
        -------
        :obj:`~nigradcheck.data.gradients.GradientTable`
            A new table.

        Examples
        --------
        >>> table = GradientTable([[0.0, 0.6, 0.8, 1000.0]])
        >>> flipped = table.transform(1, (0, 2, 1))
        >>> flipped.bvecs
        array([[ 0. ,  0.8, -0.6]])
        >>> flipped.bvals
        array([1000.])

        """
        directions = flip_permute(self.bvecs, flip, permutation, axis=1)
        return self.__class__(np.column_stack((directions, self.bvals)))

    @classmethod
    def from_filename(cls, filename: Path | str) -> Self:
        """Read a MRtrix-style gradient file (one ``x y z b`` row per volume)."""
        return cls(_loadtxt(filename))

    def to_filename(
        self,
        filename: Path | str,
        bvecs_dec_places: int = DEFAULT_BVECS_DEC_PLACES,
        bvals_dec_places: int = DEFAULT_BVALS_DEC_PLACES,
    ) -> Path:
        """Write the table in MRtrix notation and return the written path."""
        filename = Path(filename)
        fmt = [f"%.{bvecs_dec_places}f"] * 3 + [f"%.{bvals_dec_places}f"]
        np.savetxt(filename, self.gradients, fmt=fmt)
        return filename


@attrs.define(slots=True, frozen=True, eq=False)
class FSLGradientTable:
    """Split gradient table, in image coordinates.

    The b-vectors are stored column-wise (three rows of ``N`` components) and
    the b-values separately, as in FSL's ``bvecs``/``bvals`` notation.
    """

    bvecs: np.ndarray = attrs.field(
        repr=_data_repr,
        converter=format_bvecs,
        validator=validate_finite,
    )
    """A ``3 x N`` array of gradient directions."""
    bvals: np.ndarray = attrs.field(
        repr=_data_repr,
        converter=format_bvals,
        validator=validate_finite,
    )
    """A flat array of ``N`` b-values."""

    def __attrs_post_init__(self) -> None:
        if self.bvecs.shape[1] != self.bvals.shape[0]:
            raise ValueError(
                BVECS_BVALS_MISMATCH_ERROR_MSG.format(
                    n_bvecs=self.bvecs.shape[1], n_bvals=self.bvals.shape[0]
                )
            )

    def __len__(self) -> int:
        return self.bvals.shape[0]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FSLGradientTable):
            return NotImplemented
        return _cmp(self.bvecs, other.bvecs) and _cmp(self.bvals, other.bvals)

    def transform(self, flip: int | None, permutation: Sequence[int]) -> Self:
        """
        Flip and permute the rows of b-vectors, leaving the b-values untouched.

        Examples
        --------
        >>> table = FSLGradientTable([[0.0], [0.6], [0.8]], [1000])
        >>> table.transform(None, (2, 0, 1)).bvecs
        array([[0.8],
               [0. ],
               [0.6]])

        """
        return self.__class__(flip_permute(self.bvecs, flip, permutation, axis=0), self.bvals)

    @classmethod
    def from_filenames(cls, bvec_file: Path | str, bval_file: Path | str) -> Self:
        """Read FSL-style ``bvecs`` and ``bvals`` files."""
        return cls(_loadtxt(bvec_file), _loadtxt(bval_file))

    def to_filenames(
        self,
        bvec_file: Path | str,
        bval_file: Path | str,
        bvecs_dec_places: int = DEFAULT_BVECS_DEC_PLACES,
        bvals_dec_places: int = DEFAULT_BVALS_DEC_PLACES,
    ) -> tuple[Path, Path]:
        """Write three rows of b-vectors and a single line of b-values."""
        bvec_file, bval_file = Path(bvec_file), Path(bval_file)
        np.savetxt(bvec_file, self.bvecs, fmt=f"%.{bvecs_dec_places}f")
        np.savetxt(bval_file, self.bvals[np.newaxis, :], fmt=f"%.{bvals_dec_places}f")
        return bvec_file, bval_file


def _to_path(value: Path | str | None) -> Path | None:
    return None if value is None else Path(value)


def _to_path_pair(value: Sequence[Path | str] | None) -> tuple[Path, Path] | None:
    if value is None:
        return None
    bvecs, bvals = value
    return Path(bvecs), Path(bvals)


@attrs.define(slots=True, frozen=True)
class GradientFiles:
    """A gradient table stored on disk, in either MRtrix or FSL notation."""

    mrtrix: Path | None = attrs.field(default=None, converter=_to_path)
    """Path to a MRtrix gradient file (``-grad``)."""
    fsl: tuple[Path, Path] | None = attrs.field(default=None, converter=_to_path_pair)
    """Paths to the FSL ``bvecs`` and ``bvals`` files (``-fslgrad``)."""

    def __attrs_post_init__(self) -> None:
        if (self.mrtrix is None) == (self.fsl is None):
            raise ValueError(GRADIENT_FILES_ERROR_MSG)

    @property
    def basis(self) -> str:
        """Coordinate frame of the stored table."""
        return SCANNER_BASIS if self.mrtrix is not None else IMAGE_BASIS

    @property
    def paths(self) -> tuple[Path, ...]:
        return (self.mrtrix,) if self.mrtrix is not None else self.fsl  # type: ignore[return-value]

    def import_args(self) -> list[str]:
        """
        Command-line arguments importing this table into an MRtrix3 command.

        Examples
        --------
        >>> GradientFiles(mrtrix="grad.b").import_args()
        ['-grad', 'grad.b']
        >>> GradientFiles(fsl=("bvecs", "bvals")).import_args()
        ['-fslgrad', 'bvecs', 'bvals']

        """
        if self.mrtrix is not None:
            return ["-grad", str(self.mrtrix)]
        return ["-fslgrad", *(str(p) for p in self.fsl)]  # type: ignore[union-attr]

    def export_args(self) -> list[str]:
        """
        Command-line arguments exporting a table to these paths from an MRtrix3 command.

        Examples
        --------
        >>> GradientFiles(fsl=("bvecs", "bvals")).export_args()
        ['-export_grad_fsl', 'bvecs', 'bvals']

        """
        if self.mrtrix is not None:
            return ["-export_grad_mrtrix", str(self.mrtrix)]
        return ["-export_grad_fsl", *(str(p) for p in self.fsl)]  # type: ignore[union-attr]

    def load(self) -> GradientTable | FSLGradientTable:
        """Read the table from disk."""
        if self.mrtrix is not None:
            return GradientTable.from_filename(self.mrtrix)
        return FSLGradientTable.from_filenames(*self.fsl)  # type: ignore[misc]
