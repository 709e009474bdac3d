# File: subgxe/pasta/subsets.py
# Location: subgxe/subgxe/pasta/subsets.py
"""
Enumeration of non-empty study subsets.

Subsets are represented as 0/1 indicator vectors of length K. Enumeration
walks the integers 1..2^K-1 and includes study k (0-based) when bit k is set,
so study 1 is the least significant bit. This fixes a deterministic order
used for tie-breaking in the subset search.

Examples
--------
>>> enumerate_subsets(2)
array([[1, 0],
       [0, 1],
       [1, 1]], dtype=int8)
"""

from __future__ import annotations

from collections.abc import Iterator

import numpy as np


def n_subsets(n_studies: int) -> int:
    """Number of non-empty subsets of ``n_studies`` studies (2^K - 1)."""
    if n_studies < 0:
        raise ValueError(f"n_studies must be non-negative, got {n_studies}")
    return (1 << n_studies) - 1


def subset_indicator(code: int, n_studies: int) -> np.ndarray:
    """
    Indicator vector for the subset encoded by the integer ``code``.

    Parameters
    ----------
    code : int
        Integer in [1, 2^K - 1]; bit k set means study k is included.
    n_studies : int
        Number of studies K.
    """
    if not 1 <= code <= n_subsets(n_studies):
        raise ValueError(f"Subset code {code} outside [1, {n_subsets(n_studies)}]")
    return np.array([(code >> k) & 1 for k in range(n_studies)], dtype=np.int8)


def iter_subsets(n_studies: int) -> Iterator[np.ndarray]:
    """Yield indicator vectors for every non-empty subset in enumeration order."""
    for code in range(1, n_subsets(n_studies) + 1):
        yield subset_indicator(code, n_studies)


def enumerate_subsets(n_studies: int) -> np.ndarray:
    """
    Indicator matrix of all non-empty subsets, one row per subset.

    Returns
    -------
    np.ndarray, shape (2^K - 1, K), dtype int8
        Row r (0-based) encodes the integer r + 1.
    """
    codes = np.arange(1, n_subsets(n_studies) + 1, dtype=np.int64)
    bits = (codes[:, None] >> np.arange(n_studies, dtype=np.int64)[None, :]) & 1
    return bits.astype(np.int8)


def subset_label(subset: np.ndarray, study_names: list[str] | tuple[str, ...]) -> str:
    """Semicolon-joined names of the studies included in ``subset``."""
    return ";".join(name for name, v in zip(study_names, subset) if v)
