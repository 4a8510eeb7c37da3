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
"""Candidate corrections of a gradient table and their scores."""

from __future__ import annotations

from collections.abc import Iterable

import attrs

from nigradcheck.data.gradients import FSLGradientTable, GradientTable
from nigradcheck.data.utils import (
    BASES,
    IMAGE_BASIS,
    SCANNER_BASIS,
    check_flip,
    check_permutation,
)

__all__ = (
    "BASES",
    "IMAGE_BASIS",
    "SCANNER_BASIS",
    "CandidateResult",
    "CandidateTransform",
    "rank_results",
)

BASIS_ERROR_MSG = "Basis must be one of {bases}; got {basis!r}."
"""Invalid basis error message."""


def _check_basis(inst, attr, value) -> None:
    if value not in BASES:
        raise ValueError(BASIS_ERROR_MSG.format(bases=BASES, basis=value))


@attrs.define(frozen=True, slots=True)
class CandidateTransform:
    """One axis flip, axis permutation, and coordinate frame to try."""

    flip: int | None = attrs.field(converter=check_flip)
    """Direction axis to negate, or ``None``."""
    permutation: tuple[int, int, int] = attrs.field(converter=check_permutation)
    """Output axis ``i`` takes input axis ``permutation[i]``."""
    basis: str = attrs.field(validator=_check_basis)
    """Either ``"scanner"`` or ``"image"``."""

    @property
    def suffix(self) -> str:
        """
        A filename-safe tag identifying this candidate.

        Examples
        --------
        >>> CandidateTransform(None, (0, 1, 2), "scanner").suffix
        '_flipnone_perm012_scanner'
        >>> CandidateTransform(1, (2, 0, 1), "image").suffix
        '_flip1_perm201_image'

        """
        flip = "none" if self.flip is None else str(self.flip)
        perm = "".join(str(p) for p in self.permutation)
        return f"_flip{flip}_perm{perm}_{self.basis}"

    def apply(
        self, table: GradientTable | FSLGradientTable
    ) -> GradientTable | FSLGradientTable:
        """
        Apply the flip and permutation to the table of this candidate's basis.

        Raises
        ------
        :exc:`TypeError`
            If the table is not expressed in the candidate's basis.

        """
        expected = GradientTable if self.basis == SCANNER_BASIS else FSLGradientTable
        if not isinstance(table, expected):
            raise TypeError(
                f"A {self.basis}-basis candidate requires a {expected.__name__}, "
                f"got {type(table).__name__}."
            )
        return table.transform(self.flip, self.permutation)


@attrs.define(frozen=True, slots=True)
class CandidateResult:
    """The score obtained by one candidate."""

    mean_length: float = attrs.field(converter=float)
    """Mean length of the streamlines generated with the candidate table."""
    transform: CandidateTransform
    """The candidate that was evaluated."""
    index: int = 0
    """Position of the candidate in the enumeration order."""


def rank_results(results: Iterable[CandidateResult]) -> list[CandidateResult]:
    """
    Sort results by descending mean length.

    The sort is stable with respect to the enumeration order: two candidates
    with the same mean length keep the order in which they were generated.

    Examples
    --------
    >>> a = CandidateResult(10.0, CandidateTransform(None, (0, 1, 2), "scanner"), 0)
    >>> b = CandidateResult(12.0, CandidateTransform(None, (0, 1, 2), "image"), 1)
    >>> c = CandidateResult(10.0, CandidateTransform(0, (0, 1, 2), "scanner"), 2)
    >>> [r.index for r in rank_results([c, b, a])]
    [1, 0, 2]

    """
    return sorted(
        sorted(results, key=lambda r: r.index),
        key=lambda r: r.mean_length,
        reverse=True,
    )
