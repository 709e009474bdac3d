# File: subgxe/pasta/base.py
# Location: subgxe/subgxe/pasta/base.py
"""
Core data types for the pASTA subset-based meta-analysis.

Defines the PastaConfig dataclass holding numerical and runtime settings, and
the immutable result containers returned by the subset search
(SubsetStatisticResult) and by the full analysis (PastaResult).
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd

logger = logging.getLogger("subgxe")


@dataclass
class PastaConfig:
    """
    Configuration for the pASTA analysis.

    All fields have defaults that mirror the keys of the package config.json,
    so ``PastaConfig.from_dict(load_config())`` and ``PastaConfig()`` are
    equivalent.

    Fields
    ------
    max_studies : int
        Upper bound on the number of studies K. Enumeration and integration
        cost grow as 2^K, so larger panels are rejected. Default: 20.
    large_panel_warning : int
        A warning is logged when K exceeds this value. Default: 15.
    quad_limit : int
        Subdivision limit for the first adaptive quadrature attempt.
    quad_epsabs : float
        Absolute error tolerance for quadrature. Kept tiny because tail
        integrals for strong signals are far below the scipy default.
    quad_epsrel : float
        Relative error tolerance for quadrature.
    refined_quad_limit : int
        Subdivision limit for the single refined retry after a failed attempt.
    integration_cutoff : float
        The refined retry integrates over a finite window of
        ``integration_cutoff`` standard deviations of Z(S) on either side of 0.
    min_variance : float
        Floor applied to conditional variances; the variance of Z(S) itself
        below this value is an error.
    variance_tolerance : float
        Conditional variances more negative than ``-variance_tolerance``
        indicate a non-PSD correlation matrix.
    workers : int
        Worker processes for per-subset integrals. 1 = sequential,
        -1 = os.cpu_count().
    parallel_min_subsets : int
        Parallel dispatch is only used when there are at least this many
        subsets; smaller panels are faster sequentially.
    correction_method : str
        Multiple-testing correction for batch analyses: "fdr" or "bonferroni".
    """

    max_studies: int = 20
    large_panel_warning: int = 15
    quad_limit: int = 200
    quad_epsabs: float = 1e-25
    quad_epsrel: float = 1e-6
    refined_quad_limit: int = 2000
    integration_cutoff: float = 40.0
    min_variance: float = 1e-12
    variance_tolerance: float = 1e-8
    workers: int = 1
    parallel_min_subsets: int = 64
    correction_method: str = "fdr"

    @classmethod
    def from_dict(cls, cfg: dict[str, Any]) -> PastaConfig:
        """Build a config from a loaded JSON dict, ignoring unrelated keys."""
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(k for k in cfg if k not in known)
        if unknown:
            logger.debug(f"Ignoring configuration keys not used by pASTA: {unknown}")
        return cls(**{k: v for k, v in cfg.items() if k in known})


@dataclass(frozen=True)
class SubsetStatisticResult:
    """
    Outcome of the subset search.

    Fields
    ------
    max_stat : float
        Largest combined Z-statistic over all non-empty subsets.
    per_subset_values : np.ndarray, shape (n_subsets,)
        Combined Z(S) for every subset, aligned with ``subsets``.
    subsets : np.ndarray, shape (n_subsets, K)
        0/1 indicator matrix of the enumerated subsets.
    selected_subset : np.ndarray, shape (K,)
        Indicator vector of the maximizing subset (first maximizer in
        enumeration order).
    selected_index : int
        Row of ``subsets`` holding the maximizing subset.
    z_scores : np.ndarray, shape (K,)
        Per-study Z-scores, ``-qnorm(p)``.
    study_names : tuple of str
        Study labels used for table columns.
    """

    max_stat: float
    per_subset_values: np.ndarray
    subsets: np.ndarray
    selected_subset: np.ndarray
    selected_index: int
    z_scores: np.ndarray
    study_names: tuple[str, ...] = field(default_factory=tuple)

    @property
    def n_subsets(self) -> int:
        """Number of enumerated subsets."""
        return int(self.subsets.shape[0])

    @property
    def selected_studies(self) -> list[str]:
        """Names of the studies in the maximizing subset."""
        return [name for name, v in zip(self.study_names, self.selected_subset) if v]

    def to_frame(self) -> pd.DataFrame:
        """
        Per-subset table: one indicator column per study plus ``Z.S``.

        Rows are numbered 1..2^K-1 in enumeration order.
        """
        df = pd.DataFrame(self.subsets.astype(int), columns=list(self.study_names))
        df["Z.S"] = self.per_subset_values
        df.index = pd.RangeIndex(1, len(df) + 1)
        return df


@dataclass(frozen=True)
class PastaResult:
    """
    Result of a full pASTA analysis.

    Fields
    ------
    combined_p_value : float
        Search-corrected meta-analytic p-value in [0, 1].
    max_statistic : float
        Observed maximum combined Z-statistic.
    maximizing_subset : np.ndarray
        Indicator vector of the selected subset.
    test_statistic : SubsetStatisticResult
        Full subset search output, including the per-subset table.
    naive_p_value : float
        Upper-tail normal p-value of ``max_statistic`` ignoring the search.
    bonferroni_p_value : float
        ``min(1, K * min(p))``, the smallest per-study p-value Bonferroni
        corrected for K studies.
    """

    combined_p_value: float
    max_statistic: float
    maximizing_subset: np.ndarray
    test_statistic: SubsetStatisticResult
    naive_p_value: float
    bonferroni_p_value: float

    @property
    def selected_studies(self) -> list[str]:
        """Names of the studies in the maximizing subset."""
        return self.test_statistic.selected_studies

    def to_dict(self) -> dict[str, Any]:
        """JSON-serializable summary of the result."""
        return {
            "combined_p_value": float(self.combined_p_value),
            "max_statistic": float(self.max_statistic),
            "maximizing_subset": [int(v) for v in self.maximizing_subset],
            "selected_studies": self.selected_studies,
            "naive_p_value": float(self.naive_p_value),
            "bonferroni_p_value": float(self.bonferroni_p_value),
            "n_subsets": self.test_statistic.n_subsets,
        }
