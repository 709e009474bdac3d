# File: subgxe/validators.py
# Location: subgxe/subgxe/validators.py

"""
Validation module for subgxe.

This module provides functions to validate:
- Per-study p-values (open interval (0, 1))
- Per-study sample sizes (positive integers)
- Correlation matrices (square, symmetric, unit diagonal, PSD)
- Agreement on the number of studies across all inputs
- Input files handed to the command-line interface

Array validators raise the InputValidationError family from subgxe.errors so
that library callers get typed exceptions. File validators follow the CLI
convention of logging the problem and exiting with status 1.
"""

import logging
import math
import numbers
import os
import sys
from typing import Optional, Sequence

import numpy as np

from .errors import (
    DimensionMismatch,
    InvalidCorrelationMatrix,
    InvalidPValue,
    InvalidSampleSize,
    InvalidStudyCount,
)

logger = logging.getLogger("subgxe")

# Absolute tolerance for symmetry, unit-diagonal and PSD checks.
_MATRIX_ATOL = 1e-8


def validate_p_values(p_values: Sequence[float]) -> np.ndarray:
    """
    Validate per-study p-values and return them as a float array.

    Parameters
    ----------
    p_values : sequence of float
        One p-value per study.

    Returns
    -------
    np.ndarray
        1-D float64 array of the p-values.

    Raises
    ------
    InvalidPValue
        If any value is non-numeric, NaN, or outside the open interval (0, 1).
        Exactly 0 and exactly 1 are rejected because they map to infinite
        Z-scores.
    """
    values = []
    for i, p in enumerate(p_values):
        if isinstance(p, bool) or not isinstance(p, numbers.Real):
            raise InvalidPValue(i, p)
        p_float = float(p)
        if math.isnan(p_float) or not 0.0 < p_float < 1.0:
            raise InvalidPValue(i, p)
        values.append(p_float)
    return np.asarray(values, dtype=np.float64)


def validate_sample_sizes(sample_sizes: Sequence[int]) -> np.ndarray:
    """
    Validate per-study sample sizes and return them as a float array.

    Integral floats (e.g. ``12000.0`` read from a TSV) are accepted.

    Raises
    ------
    InvalidSampleSize
        If any size is non-numeric, non-integer, or not strictly positive.
    """
    values = []
    for i, n in enumerate(sample_sizes):
        if isinstance(n, bool) or not isinstance(n, numbers.Real):
            raise InvalidSampleSize(i, n)
        n_float = float(n)
        if not math.isfinite(n_float) or not n_float.is_integer() or n_float <= 0:
            raise InvalidSampleSize(i, n)
        values.append(n_float)
    return np.asarray(values, dtype=np.float64)


def validate_correlation_matrix(cor: Optional[object], n_studies: int) -> np.ndarray:
    """
    Validate a study correlation matrix.

    Parameters
    ----------
    cor : array-like or None
        K x K correlation matrix. None means independent studies and yields
        the identity matrix.
    n_studies : int
        Number of studies K the matrix must match.

    Returns
    -------
    np.ndarray
        Read-only K x K float64 matrix.

    Raises
    ------
    InvalidCorrelationMatrix
        If the matrix is not 2-D square, not symmetric, has a diagonal other
        than 1, has entries outside [-1, 1], or is not positive semi-definite.
    DimensionMismatch
        If the matrix dimension differs from ``n_studies``.
    """
    if cor is None:
        matrix = np.eye(n_studies, dtype=np.float64)
        matrix.setflags(write=False)
        return matrix

    try:
        matrix = np.array(cor, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InvalidCorrelationMatrix(f"not numeric ({e})") from e

    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        raise InvalidCorrelationMatrix(f"must be square, got shape {matrix.shape}")
    if matrix.shape[0] != n_studies:
        raise DimensionMismatch({"studies": n_studies, "correlation_matrix": matrix.shape[0]})
    if not np.all(np.isfinite(matrix)):
        raise InvalidCorrelationMatrix("contains non-finite entries")
    if not np.allclose(matrix, matrix.T, rtol=0.0, atol=_MATRIX_ATOL):
        raise InvalidCorrelationMatrix("not symmetric")
    if not np.allclose(np.diag(matrix), 1.0, rtol=0.0, atol=_MATRIX_ATOL):
        raise InvalidCorrelationMatrix(f"diagonal must be 1, got {np.diag(matrix).tolist()}")
    if np.any(np.abs(matrix) > 1.0 + _MATRIX_ATOL):
        raise InvalidCorrelationMatrix("entries must lie in [-1, 1]")

    min_eigenvalue = float(np.linalg.eigvalsh(matrix).min())
    if min_eigenvalue < -_MATRIX_ATOL:
        raise InvalidCorrelationMatrix(
            f"not positive semi-definite (smallest eigenvalue {min_eigenvalue:.3g})"
        )

    matrix.setflags(write=False)
    return matrix


def validate_study_count(n_studies: int, minimum: int = 2, maximum: int = 20) -> None:
    """
    Validate the number of studies against the supported range.

    Raises
    ------
    InvalidStudyCount
        If ``n_studies`` is below ``minimum`` or above ``maximum``.
    """
    if n_studies < minimum or n_studies > maximum:
        raise InvalidStudyCount(n_studies, minimum, maximum)


def validate_dimensions(**counts: int) -> int:
    """
    Check that all named inputs agree on the number of studies.

    Returns
    -------
    int
        The shared number of studies.

    Raises
    ------
    DimensionMismatch
        If the counts differ.
    """
    distinct = set(counts.values())
    if len(distinct) != 1:
        raise DimensionMismatch(counts)
    return distinct.pop()


def validate_input_file(path: Optional[str], description: str, logger: logging.Logger) -> None:
    """
    Validate that an input file exists and is non-empty.

    Parameters
    ----------
    path : str or None
        Path to the file. None is accepted (optional input not provided).
    description : str
        Human-readable file role used in error messages (e.g. "Study file").
    logger : logging.Logger
        Logger instance for logging errors.

    Raises
    ------
    SystemExit
        If the file is missing or empty.
    """
    if not path:
        return
    if not os.path.exists(path):
        logger.error("%s not found: %s", description, path)
        sys.exit(1)
    if os.path.getsize(path) == 0:
        logger.error("%s %s is empty.", description, path)
        sys.exit(1)
