# File: subgxe/pasta/correction.py
# Location: subgxe/subgxe/pasta/correction.py
"""
Multiple testing correction for batch pASTA analyses.

When pASTA is run for many variants (or genes) that share the same set of
studies, the per-variant pASTA p-values are corrected across variants with a
single FDR (Benjamini-Hochberg) or Bonferroni pass via statsmodels.

This module is intentionally leaf-level: it imports only stdlib, numpy and
statsmodels.
"""

from __future__ import annotations

import logging

import numpy as np
import statsmodels.stats.multitest as smm

logger = logging.getLogger("subgxe")

_METHODS = {"fdr": "fdr_bh", "bonferroni": "bonferroni"}


def apply_correction(
    pvals: list[float] | np.ndarray,
    method: str = "fdr",
) -> np.ndarray:
    """
    Apply multiple testing correction to a sequence of p-values.

    Parameters
    ----------
    pvals : list of float or np.ndarray
        Raw p-values to correct. Must be in [0, 1].
    method : str
        Correction method: "fdr" (Benjamini-Hochberg, default) or
        "bonferroni". Any other value is treated as "fdr" with a warning.

    Returns
    -------
    np.ndarray
        Corrected p-values in the same order as input.
    """
    pvals_array = np.asarray(pvals, dtype=float)

    if len(pvals_array) == 0:
        return pvals_array

    if method not in _METHODS:
        logger.warning(f"Unknown correction method '{method}'; using FDR (Benjamini-Hochberg).")
        method = "fdr"

    corrected: np.ndarray = smm.multipletests(pvals_array, method=_METHODS[method])[1]
    return corrected
