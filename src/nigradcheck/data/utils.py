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
"""Utilities for handling diffusion gradient tables."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
import numpy.typing as npt

DEFAULT_GRADIENT_ATOL = 1e-2
"""Absolute tolerance to consider a b-vector as unitary or null."""

DEFAULT_BVALS_DEC_PLACES = 2
"""Decimal places used when serializing b-values."""

DEFAULT_BVECS_DEC_PLACES = 8
"""Decimal places used when serializing b-vector components."""

GRADIENT_ABSENCE_ERROR_MSG = "No gradient table was provided."
"""Gradient absence error message."""

GRADIENT_EXPECTED_COLUMNS_ERROR_MSG = (
    "Gradient table must have four columns (3 direction components and one b-value)."
)
"""Combined gradient table expected columns error message."""

GRADIENT_OBJECT_ERROR_MSG = "Gradient table must be a numeric homogeneous array-like object"
"""Gradient object error message."""

GRADIENT_NDIM_ERROR_MSG = "Gradient table must be a 2D array"
"""Gradient dimensionality error message."""

GRADIENT_NONFINITE_ERROR_MSG = "Gradient table contains NaN or infinite values."
"""Gradient non-finite values error message."""

BVECS_EXPECTED_ROWS_ERROR_MSG = "b-vectors must have three rows (one per axis)."
"""Split gradient table expected rows error message."""

BVALS_NDIM_ERROR_MSG = "b-values must be a 1D array"
"""b-values dimensionality error message."""

BVECS_BVALS_MISMATCH_ERROR_MSG = """\
Number of b-vectors ({n_bvecs}) does not match the number of b-values ({n_bvals})."""
"""b-vectors vs. b-values count mismatch error message."""

GRADIENT_VOLUME_DIMENSIONALITY_MISMATCH_ERROR = """\
Gradient table {source} does not match the number of diffusion volumes: \
expected {n_volumes} entries, found {n_gradients}."""
"""Volume count vs. gradient count mismatch error message."""

FLIP_AXIS_ERROR_MSG = "Flip axis must be None or one of 0, 1, 2; got {flip!r}."
"""Invalid flip axis error message."""

PERMUTATION_ERROR_MSG = "Axis permutation must be a permutation of (0, 1, 2); got {permutation!r}."
"""Invalid axis permutation error message."""

AXES = (0, 1, 2)
"""Spatial axes of a gradient direction."""

SCANNER_BASIS = "scanner"
"""The gradient directions are expressed along the axes of the scanner."""

IMAGE_BASIS = "image"
"""The gradient directions are expressed along the axes of the voxel grid."""

BASES = (SCANNER_BASIS, IMAGE_BASIS)
"""Coordinate frames in which a candidate correction may be applied."""


def check_flip(flip: int | None) -> int | None:
    """
    Validate a flip axis.

    Examples
    --------
    >>> check_flip(None) is None
    True
    >>> check_flip(2)
    2
    >>> check_flip(3)
    Traceback (most recent call last):
    ...
    ValueError: Flip axis must be None or one of 0, 1, 2; got 3.

    """
    if flip is not None and (isinstance(flip, bool) or flip not in AXES):
        raise ValueError(FLIP_AXIS_ERROR_MSG.format(flip=flip))
    return flip


def check_permutation(permutation: Sequence[int]) -> tuple[int, int, int]:
    """
    Validate an axis permutation and return it as a tuple.

    Examples
    --------
    >>> check_permutation([2, 0, 1])
    (2, 0, 1)
    >>> check_permutation((0, 0, 1))
    Traceback (most recent call last):
    ...
    ValueError: Axis permutation must be a permutation of (0, 1, 2); got (0, 0, 1).

    """
    try:
        value = tuple(int(p) for p in permutation)
    except (TypeError, ValueError) as exc:
        raise ValueError(PERMUTATION_ERROR_MSG.format(permutation=permutation)) from exc

    if tuple(sorted(value)) != AXES:
        raise ValueError(PERMUTATION_ERROR_MSG.format(permutation=value))
    return value  # type: ignore[return-value]


def flip_permute(
    directions: npt.ArrayLike,
    flip: int | None,
    permutation: Sequence[int],
    axis: int = 1,
) -> np.ndarray:
    """
    Negate one direction axis and reorder the three direction axes.

    The flip is applied first, then the permutation, so that output axis ``i``
    holds (the possibly negated) input axis ``permutation[i]``.
    The input is never modified.

    Parameters
    ----------
    directions : :obj:`ArrayLike`
        A 2D array holding the three direction components along ``axis``.
    flip : :obj:`int` or ``None``
        Direction axis to negate, or ``None`` to keep all signs.
    permutation : :obj:`tuple`
        A permutation of ``(0, 1, 2)``.
    axis : :obj:`int`, optional
        The array axis indexing the direction components: ``1`` for row-wise
        (``N x 3``) tables, ``0`` for column-wise (``3 x N``) tables.

    Returns
    -------
    :obj:`~numpy.ndarray`
        A new array with the same shape as ``directions``.

    Examples
    --------
    >>> flip_permute([[1.0, 2.0, 3.0]], 0, (1, 2, 0))
    array([[ 2.,  3., -1.]])
    >>> flip_permute([[1.0], [2.0], [3.0]], None, (0, 2, 1), axis=0)
    array([[1.],
           [3.],
           [2.]])

    """
    flip = check_flip(flip)
    permutation = check_permutation(permutation)

    retval = np.array(directions, copy=True)
    if retval.ndim != 2 or retval.shape[axis] != 3:
        raise ValueError(GRADIENT_NDIM_ERROR_MSG)

    if flip is not None:
        index = [slice(None), slice(None)]
        index[axis] = flip
        retval[tuple(index)] = -retval[tuple(index)]

    return np.take(retval, permutation, axis=axis)


def format_gradients(value: npt.ArrayLike | None) -> np.ndarray:
    """
    Validate and orient combined gradient tables to row-major convention.

    Contrary to b-vector normalization, this formatting never alters the values
    of the table, which are returned as a new floating point array.

    Parameters
    ----------
    value : :obj:`ArrayLike`
        The value to format.

    Returns
    -------
    :obj:`~numpy.ndarray`
        Row-major convention gradient table (``N x 4``).

    Raises
    ------
    exc:`ValueError`
        If ``value`` is not a 2D :obj:`~numpy.ndarray` with four columns.

    Examples
    --------
    Passing an already well-formed table returns the data unchanged::

        >>> format_gradients(
        ...     [
        ...         [1, 0, 0, 0],
        ...         [0, 1, 0, 1000],
        ...         [0, 0, 1, 2000],
        ...     ]
        ... )
        array([[1.e+00, 0.e+00, 0.e+00, 0.e+00],
               [0.e+00, 1.e+00, 0.e+00, 1.e+03],
               [0.e+00, 0.e+00, 1.e+00, 2.e+03]])

    Column-major inputs are automatically transposed::

        >>> format_gradients([[1, 0], [0, 1], [0, 0], [1000, 2000]]).shape
        (2, 4)

    Passing ``None`` raises the absence error::

        >>> format_gradients(None)
        Traceback (most recent call last):
        ...
        ValueError: No gradient table was provided.

    Gradient tables must always have two dimensions::

        >>> format_gradients([0, 1, 0, 1000])
        Traceback (most recent call last):
        ...
        ValueError: Gradient table must be a 2D array

    Gradient tables must have a regular shape::

        >>> format_gradients([[1, 2], [3, 4, 5]])
        Traceback (most recent call last):
        ...
        TypeError: Gradient table must be a numeric homogeneous array-like object

    """

    if value is None:
        raise ValueError(GRADIENT_ABSENCE_ERROR_MSG)

    try:
        formatted = np.array(value, dtype=float)
    except (TypeError, ValueError) as exc:
        # Conversion failed (e.g. nested ragged objects, non-numeric)
        raise TypeError(GRADIENT_OBJECT_ERROR_MSG) from exc

    if formatted.ndim != 2:
        raise ValueError(GRADIENT_NDIM_ERROR_MSG)

    # Transpose if column-major
    formatted = formatted.T if formatted.shape[0] == 4 and formatted.shape[1] != 4 else formatted

    if formatted.shape[1] != 4:
        raise ValueError(GRADIENT_EXPECTED_COLUMNS_ERROR_MSG)

    return np.ascontiguousarray(formatted)


def format_bvecs(value: npt.ArrayLike | None) -> np.ndarray:
    """
    Validate and orient b-vectors to the column-wise (``3 x N``) convention.

    Examples
    --------
    >>> format_bvecs([[1, 0, 0], [0, 1, 0]]).shape
    (3, 2)
    >>> format_bvecs([[1, 0], [0, 1]])
    Traceback (most recent call last):
    ...
    ValueError: b-vectors must have three rows (one per axis).

    """
    if value is None:
        raise ValueError(GRADIENT_ABSENCE_ERROR_MSG)

    try:
        formatted = np.array(value, dtype=float)
    except (TypeError, ValueError) as exc:
        raise TypeError(GRADIENT_OBJECT_ERROR_MSG) from exc

    if formatted.ndim != 2:
        raise ValueError(GRADIENT_NDIM_ERROR_MSG)

    formatted = formatted.T if formatted.shape[1] == 3 and formatted.shape[0] != 3 else formatted

    if formatted.shape[0] != 3:
        raise ValueError(BVECS_EXPECTED_ROWS_ERROR_MSG)

    return np.ascontiguousarray(formatted)


def format_bvals(value: npt.ArrayLike | None) -> np.ndarray:
    """
    Validate b-values as a flat array.

    Examples
    --------
    >>> format_bvals([[0, 1000, 1000]])
    array([   0., 1000., 1000.])
    >>> format_bvals(5)
    array([5.])

    """
    if value is None:
        raise ValueError(GRADIENT_ABSENCE_ERROR_MSG)

    try:
        formatted = np.array(value, dtype=float)
    except (TypeError, ValueError) as exc:
        raise TypeError(GRADIENT_OBJECT_ERROR_MSG) from exc

    # A single line file of b-values is read as a 1 x N or N x 1 table
    if formatted.ndim == 2 and 1 in formatted.shape:
        formatted = formatted.ravel()
    elif formatted.ndim == 0:
        formatted = formatted.reshape(1)

    if formatted.ndim != 1:
        raise ValueError(BVALS_NDIM_ERROR_MSG)

    return formatted


def validate_finite(inst, attr, value) -> None:
    """attrs-style validator rejecting NaN and infinite values.

    Examples
    --------
    >>> validate_finite(None, None, np.array([[np.inf, 0.0, 0.0, 1000]]))
    Traceback (most recent call last):
    ...
    ValueError: Gradient table contains NaN or infinite values.

    """
    if not np.all(np.isfinite(value)):
        raise ValueError(GRADIENT_NONFINITE_ERROR_MSG)


def non_unit_bvecs(directions: np.ndarray, atol: float = DEFAULT_GRADIENT_ATOL) -> np.ndarray:
    """
    Flag directions that are neither unit-norm nor null.

    Parameters
    ----------
    directions : :obj:`~numpy.ndarray`
        An ``N x 3`` array of gradient directions.
    atol : :obj:`float`, optional
        Absolute tolerance to consider a b-vector as unitary or null.

    Returns
    -------
    :obj:`~numpy.ndarray`
        A boolean mask of length ``N``.

    Examples
    --------
    >>> non_unit_bvecs(np.array([[0, 0, 0], [1, 0, 0], [2, 0, 0]]))
    array([False, False,  True])

    """
    norms = np.linalg.norm(directions, axis=1)
    return ~np.isclose(norms, 0.0, atol=atol) & ~np.isclose(norms, 1.0, atol=atol)
