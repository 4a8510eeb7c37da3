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
"""Iterators to traverse the space of candidate gradient corrections."""

from itertools import permutations, product
from typing import Iterator

from nigradcheck.candidates import BASES, CandidateTransform
from nigradcheck.data.utils import AXES

FLIPS = (None, *AXES)
"""Flip options: no flip, or negation of one of the three axes."""

PERMUTATIONS = tuple(permutations(AXES))
"""The six permutations of the three axes, in lexicographic order."""

N_CANDIDATES = len(FLIPS) * len(PERMUTATIONS) * len(BASES)
"""Size of the search space."""


def candidate_iterator() -> Iterator[CandidateTransform]:
    """
    Traverse all candidate corrections in a fixed order.

    The flip is the outermost loop, the permutation the middle loop, and the
    basis the innermost one.

    Yields
    ------
    :obj:`~nigradcheck.candidates.CandidateTransform`
        The next candidate.

    Examples
    --------
    >>> candidates = list(candidate_iterator())
    >>> len(candidates)
    48
    >>> [c.suffix for c in candidates[:3]]
    ['_flipnone_perm012_scanner', '_flipnone_perm012_image', '_flipnone_perm021_scanner']
    >>> candidates[-1].suffix
    '_flip2_perm210_image'

    """
    return (
        CandidateTransform(flip, perm, basis)
        for flip, perm, basis in product(FLIPS, PERMUTATIONS, BASES)
    )
