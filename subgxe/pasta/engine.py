# File: subgxe/pasta/engine.py
# Location: subgxe/subgxe/pasta/engine.py
"""
pASTA entry points: single analysis and batch orchestration.

run_analysis() validates the inputs, runs the subset search, then computes
the exact search-corrected p-value of the observed maximum. PastaEngine runs
the same analysis for many variants (or genes) sharing one set of studies,
applies a single round of multiple testing correction across variants, and
returns a DataFrame with one row per tested variant.

Output columns of PastaEngine.run_all():
  variant, n_studies, max_statistic, selected_subset, selected_studies,
  n_selected, naive_pvalue, bonferroni_pvalue, pasta_pvalue, pasta_qvalue
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

import numpy as np
import pandas as pd
from scipy.stats import norm

from subgxe.errors import InvalidPValue
from subgxe.pasta.base import PastaConfig, PastaResult
from subgxe.pasta.correction import apply_correction
from subgxe.pasta.integration import tail_probability
from subgxe.pasta.statistic import compute_subset_statistic
from subgxe.pasta.subsets import n_subsets, subset_label
from subgxe.validators import (
    validate_correlation_matrix,
    validate_dimensions,
    validate_p_values,
    validate_sample_sizes,
    validate_study_count,
)

logger = logging.getLogger("subgxe")


def run_analysis(
    p_values: Sequence[float],
    sample_sizes: Sequence[int],
    correlation_matrix: np.ndarray | Sequence[Sequence[float]] | None = None,
    config: PastaConfig | None = None,
    study_names: Sequence[str] | None = None,
) -> PastaResult:
    """
    Run the pASTA subset-based meta-analysis.

    Parameters
    ----------
    p_values : sequence of float
        Per-study p-values in (0, 1).
    sample_sizes : sequence of int
        Per-study sample sizes.
    correlation_matrix : array-like, optional
        K x K correlation matrix among the per-study statistics. None means
        independent studies (identity).
    config : PastaConfig, optional
        Numerical and runtime settings.
    study_names : sequence of str, optional
        Study labels. Default: ``Study1..StudyK``.

    Returns
    -------
    PastaResult
        Combined p-value, maximum statistic and the maximizing subset.

    Raises
    ------
    InvalidPValue, InvalidSampleSize, InvalidCorrelationMatrix,
    DimensionMismatch, InvalidStudyCount
        On invalid inputs (raised before any computation).
    IntegrationFailure
        If a subset integral does not converge.

    Examples
    --------
    >>> result = run_analysis([0.001, 0.003, 0.6], [12000, 12000, 12000])
    >>> result.maximizing_subset.tolist()
    [1, 1, 0]
    """
    config = config or PastaConfig()

    p_arr = validate_p_values(p_values)
    n_arr = validate_sample_sizes(sample_sizes)
    n_studies = validate_dimensions(p_values=len(p_arr), sample_sizes=len(n_arr))
    validate_study_count(n_studies, minimum=2, maximum=config.max_studies)
    cor = validate_correlation_matrix(correlation_matrix, n_studies)

    if n_studies > config.large_panel_warning:
        logger.warning(
            f"{n_studies} studies: integrating over {n_subsets(n_studies)} subsets. "
            "This may take a long time; consider setting workers > 1."
        )

    statistic = compute_subset_statistic(p_arr, n_arr, study_names)
    p_pasta = tail_probability(statistic.max_stat, n_arr, cor, config)

    result = PastaResult(
        combined_p_value=p_pasta,
        max_statistic=statistic.max_stat,
        maximizing_subset=statistic.selected_subset,
        test_statistic=statistic,
        naive_p_value=float(norm.sf(statistic.max_stat)),
        bonferroni_p_value=float(min(1.0, n_studies * p_arr.min())),
    )
    logger.info(
        f"pASTA: {n_studies} studies, selected {result.selected_studies}, "
        f"Z={statistic.max_stat:.4f}, p={p_pasta:.4g}"
    )
    return result


# Name of the original R entry point.
pasta = run_analysis


class PastaEngine:
    """
    Runs pASTA for many variants that share the same studies.

    Usage
    -----
    >>> engine = PastaEngine([12000] * 3, study_names=["A", "B", "C"])
    >>> result_df = engine.run_all(pvalue_table)

    Parameters
    ----------
    sample_sizes : sequence of int
        Per-study sample sizes, shared by all variants.
    correlation_matrix : array-like, optional
        K x K correlation matrix. None = identity.
    config : PastaConfig, optional
        Runtime configuration shared across variants.
    study_names : sequence of str, optional
        Study labels; in run_all() these name the p-value columns.
    """

    def __init__(
        self,
        sample_sizes: Sequence[int],
        correlation_matrix: np.ndarray | Sequence[Sequence[float]] | None = None,
        config: PastaConfig | None = None,
        study_names: Sequence[str] | None = None,
    ) -> None:
        self._config = config or PastaConfig()
        self._sample_sizes = validate_sample_sizes(sample_sizes)
        n_studies = len(self._sample_sizes)
        validate_study_count(n_studies, minimum=2, maximum=self._config.max_studies)
        if study_names is None:
            study_names = [f"Study{k + 1}" for k in range(n_studies)]
        self._study_names = [str(s) for s in study_names]
        validate_dimensions(sample_sizes=n_studies, study_names=len(self._study_names))
        self._cor = validate_correlation_matrix(correlation_matrix, n_studies)

    @property
    def study_names(self) -> list[str]:
        """Study labels, in correlation-matrix order."""
        return list(self._study_names)

    def run_variant(self, p_values: Sequence[float]) -> PastaResult:
        """Run pASTA for one variant's per-study p-values."""
        return run_analysis(
            p_values,
            self._sample_sizes,
            self._cor,
            config=self._config,
            study_names=self._study_names,
        )

    def run_all(
        self,
        pvalue_table: pd.DataFrame,
        variant_column: str = "variant",
    ) -> pd.DataFrame:
        """
        Run pASTA on every row of a p-value table and correct across rows.

        Parameters
        ----------
        pvalue_table : pd.DataFrame
            One row per variant; ``variant_column`` holds the identifier and
            one column per study (named as ``study_names``) holds p-values.
        variant_column : str
            Name of the identifier column. Default: "variant".

        Returns
        -------
        pd.DataFrame
            One row per tested variant, sorted by variant identifier.
            Variants with missing or out-of-range p-values are skipped with
            a warning. ``pasta_qvalue`` is corrected across tested variants
            with ``config.correction_method``.

        Raises
        ------
        ValueError
            If the identifier column or any study column is missing.
        IntegrationFailure
            If quadrature fails for any variant.
        """
        required = [variant_column, *self._study_names]
        missing = [c for c in required if c not in pvalue_table.columns]
        if missing:
            raise ValueError(
                f"Columns {missing} not found in p-value table. "
                f"Available columns: {list(pvalue_table.columns)}"
            )

        if pvalue_table.empty:
            logger.warning("No variants provided to PastaEngine.")
            return pd.DataFrame()

        # Sort by variant for a deterministic correction order.
        sorted_table = pvalue_table.sort_values(variant_column, kind="mergesort")

        logger.info(
            f"pASTA batch analysis: {len(sorted_table)} variants across "
            f"{len(self._study_names)} studies"
        )

        rows: list[dict[str, Any]] = []
        n_skipped = 0
        for record in sorted_table[required].itertuples(index=False, name=None):
            variant, *p_values = record
            try:
                result = self.run_variant(p_values)
            except InvalidPValue as e:
                n_skipped += 1
                logger.warning(f"Variant {variant}: skipped ({e})")
                continue

            statistic = result.test_statistic
            rows.append(
                {
                    "variant": variant,
                    "n_studies": len(self._study_names),
                    "max_statistic": result.max_statistic,
                    "selected_subset": ",".join(str(int(v)) for v in result.maximizing_subset),
                    "selected_studies": subset_label(
                        result.maximizing_subset, statistic.study_names
                    ),
                    "n_selected": int(result.maximizing_subset.sum()),
                    "naive_pvalue": result.naive_p_value,
                    "bonferroni_pvalue": result.bonferroni_p_value,
                    "pasta_pvalue": result.combined_p_value,
                }
            )
            logger.debug(
                f"Variant {variant}: Z={result.max_statistic:.4f}, p={result.combined_p_value:.4g}"
            )

        if n_skipped:
            logger.warning(f"{n_skipped} variants skipped because of invalid p-values")

        if not rows:
            logger.warning("pASTA batch analysis: no variants with valid p-values.")
            return pd.DataFrame()

        result_df = pd.DataFrame(rows)
        result_df["pasta_qvalue"] = apply_correction(
            result_df["pasta_pvalue"].to_numpy(), self._config.correction_method
        )

        n_sig = int((result_df["pasta_qvalue"] < 0.05).sum())
        logger.info(
            f"pASTA batch analysis complete: {len(result_df)} variants tested, "
            f"{n_sig} significant (corrected p < 0.05)"
        )
        return result_df
