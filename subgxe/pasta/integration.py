# File: subgxe/pasta/integration.py
# Location: subgxe/subgxe/pasta/integration.py
"""
Exact tail probability of the subset-maximized pASTA statistic.

Under the global null the per-study Z-scores are jointly normal with the
supplied correlation matrix. For a subset S with weight vector w(S), the
event "Z(S) = z and no neighbouring subset (one study added or removed)
exceeds it" factorizes, conditionally on Z(S) = z, into one term per study:

  - study k excluded from S, with a = |S| / (|S| + n_k):
        P(Z_k < z (1 - sqrt(a)) / sqrt(1 - a) | Z(S) = z)
  - study k included in S and |S| > 1, with b = |S| / (|S| - n_k):
        P(Z_k > z (sqrt(b) - 1) / sqrt(b - 1) | Z(S) = z)
  - study k included in a singleton S: no term (a singleton has no smaller
    non-empty subset).

where |S| is the summed sample size of S. The conditional law of Z_k given
Z(S) = z follows from the 2x2 covariance of (Z_k, Z(S)), obtained by
projecting the correlation matrix through A = [e_k; w(S)]. The conditional
density f(z, S) is the product of these probabilities and the N(0, w'Cw)
density of Z(S). The p-value is

    P(max_S Z(S) > t) = sum_S integral_t^inf f(z, S) dz

with each integral evaluated by adaptive quadrature (QUADPACK via
scipy.integrate.quad).

Quadrature failure policy: one retry on a finite window of
``integration_cutoff`` standard deviations with a larger subdivision limit,
then IntegrationFailure. A partially summed p-value is never returned.
"""

from __future__ import annotations

import concurrent.futures
import logging
import math
import os
from dataclasses import dataclass
from typing import Sequence

import numpy as np
import scipy.integrate
from scipy.special import log_ndtr

from subgxe.errors import IntegrationFailure, InvalidCorrelationMatrix
from subgxe.pasta.base import PastaConfig
from subgxe.pasta.subsets import enumerate_subsets
from subgxe.validators import (
    validate_correlation_matrix,
    validate_sample_sizes,
    validate_study_count,
)

logger = logging.getLogger("subgxe")

_LOG_SQRT_2PI = 0.5 * math.log(2.0 * math.pi)


@dataclass(frozen=True)
class ConditioningTerms:
    """
    z-independent quantities of the conditional density for one subset.

    For each study k contributing a term, the conditional probability is
    ``Phi(sign_k * slope_k * z)`` where ``slope_k`` folds together the
    threshold coefficient, the conditional mean coefficient and the
    conditional standard deviation.

    Fields
    ------
    subset : tuple of int
        Indicator vector of the subset.
    slopes : np.ndarray
        ``(threshold_coef_k - cond_mean_coef_k) / cond_sd_k`` for contributing studies.
    signs : np.ndarray
        +1 for excluded studies (lower tail), -1 for included studies (upper tail).
    z_sd : float
        Standard deviation of Z(S), ``sqrt(w' C w)``.
    """

    subset: tuple[int, ...]
    slopes: np.ndarray
    signs: np.ndarray
    z_sd: float

    def log_probability(self, z: float | np.ndarray) -> float | np.ndarray:
        """Summed log conditional probabilities L(z)."""
        z_arr = np.asarray(z, dtype=np.float64)
        if self.slopes.size == 0:
            return np.zeros_like(z_arr)[()]
        args = z_arr[..., None] * (self.signs * self.slopes)
        return log_ndtr(args).sum(axis=-1)[()]

    def density(self, z: float | np.ndarray) -> float | np.ndarray:
        """Conditional density ``exp(L(z)) * dnorm(z, sd=z_sd)``."""
        z_arr = np.asarray(z, dtype=np.float64)
        log_phi = -0.5 * (z_arr / self.z_sd) ** 2 - math.log(self.z_sd) - _LOG_SQRT_2PI
        return np.exp(self.log_probability(z_arr) + log_phi)[()]

    def _density_scalar(self, z: float) -> float:
        return float(self.density(z))


def conditioning_terms(
    subset: Sequence[int] | np.ndarray,
    sample_sizes: Sequence[int] | np.ndarray,
    cor: np.ndarray,
    min_variance: float = 1e-12,
    variance_tolerance: float = 1e-8,
) -> ConditioningTerms:
    """
    Precompute the conditioning terms of one subset.

    Parameters
    ----------
    subset : sequence of int
        0/1 indicator vector, non-empty.
    sample_sizes : sequence of int
        Per-study sample sizes.
    cor : np.ndarray
        K x K correlation matrix (already validated).
    min_variance : float
        Floor for conditional variances. The variance of Z(S) itself must
        exceed it.
    variance_tolerance : float
        Conditional variances below ``-variance_tolerance`` are treated as
        evidence of a non-PSD matrix.

    Raises
    ------
    ValueError
        If the subset is empty.
    InvalidCorrelationMatrix
        If w'Cw is numerically zero or a conditional variance is negative.
    """
    v = np.asarray(subset, dtype=np.float64)
    n = np.asarray(sample_sizes, dtype=np.float64)
    cor = np.asarray(cor, dtype=np.float64)

    current_size = v * n
    subset_size = float(current_size.sum())
    if subset_size <= 0:
        raise ValueError(f"Subset {v.astype(int).tolist()} is empty")
    weights = np.sqrt(current_size / subset_size)

    # Row k of A C A' for A = [e_k; w]: sigma11 = C[k,k], sigma12 = (C w)[k], sigma22 = w'Cw.
    cor_w = cor @ weights
    var_z = float(weights @ cor_w)
    if var_z < min_variance:
        raise InvalidCorrelationMatrix(
            f"variance of the combined statistic for subset {v.astype(int).tolist()} "
            f"is numerically zero ({var_z:.3g})"
        )
    cond_mean_coef = cor_w / var_z
    cond_var = np.diag(cor) - cor_w**2 / var_z
    if np.any(cond_var < -variance_tolerance):
        raise InvalidCorrelationMatrix(
            f"negative conditional variance {float(cond_var.min()):.3g} for subset "
            f"{v.astype(int).tolist()}; matrix is not positive semi-definite"
        )
    cond_sd = np.sqrt(np.maximum(cond_var, min_variance))

    included = v > 0
    n_included = int(included.sum())
    threshold_coef = np.zeros_like(n)

    excluded = ~included
    a = subset_size / (subset_size + n[excluded])
    threshold_coef[excluded] = (1.0 - np.sqrt(a)) / np.sqrt(1.0 - a)

    if n_included > 1:
        b = subset_size / (subset_size - n[included])
        threshold_coef[included] = (np.sqrt(b) - 1.0) / np.sqrt(b - 1.0)
        active = np.ones_like(included)
    else:
        active = excluded

    slopes = (threshold_coef - cond_mean_coef) / cond_sd
    signs = np.where(included, -1.0, 1.0)

    return ConditioningTerms(
        subset=tuple(int(x) for x in v),
        slopes=slopes[active],
        signs=signs[active],
        z_sd=math.sqrt(var_z),
    )


def conditional_log_probability(
    z: float | np.ndarray,
    subset: Sequence[int] | np.ndarray,
    sample_sizes: Sequence[int] | np.ndarray,
    cor: np.ndarray,
) -> float | np.ndarray:
    """
    Log-probability L(z) that no neighbour of ``subset`` beats Z(S) = z.

    Sum over studies of log P(Z_k below/above its threshold | Z(S) = z).
    """
    return conditioning_terms(subset, sample_sizes, cor).log_probability(z)


def conditional_density(
    z: float | np.ndarray,
    subset: Sequence[int] | np.ndarray,
    sample_sizes: Sequence[int] | np.ndarray,
    cor: np.ndarray,
) -> float | np.ndarray:
    """
    Conditional density f(z, S) = exp(L(z)) * dnorm(z, sd = sqrt(w'Cw)).

    Vectorized over ``z``.
    """
    return conditioning_terms(subset, sample_sizes, cor).density(z)


def _integrate_terms(max_stat: float, terms: ConditioningTerms, config: PastaConfig) -> float:
    """Integrate a subset's conditional density over (max_stat, inf)."""
    if max_stat == math.inf:
        return 0.0

    result = scipy.integrate.quad(
        terms._density_scalar,
        max_stat,
        math.inf,
        limit=config.quad_limit,
        epsabs=config.quad_epsabs,
        epsrel=config.quad_epsrel,
        full_output=1,
    )
    # quad appends a message to its return tuple only when ier > 0.
    if len(result) < 4:
        return float(result[0])

    first_message = str(result[3]).strip().splitlines()[0]
    logger.warning(
        f"Quadrature for subset {terms.subset} did not converge "
        f"(abserr={result[1]:.3g}: {first_message}). Retrying with a refined scheme."
    )

    # Beyond cutoff * sd the normal factor underflows, so a finite window loses nothing.
    upper = config.integration_cutoff * terms.z_sd
    lower = max(max_stat, -upper)
    if lower >= upper:
        return 0.0

    result = scipy.integrate.quad(
        terms._density_scalar,
        lower,
        upper,
        limit=config.refined_quad_limit,
        epsabs=config.quad_epsabs,
        epsrel=config.quad_epsrel,
        full_output=1,
    )
    if len(result) >= 4:
        raise IntegrationFailure(terms.subset, float(result[1]), str(result[3]).strip())
    return float(result[0])


def subset_tail_integral(
    max_stat: float,
    subset: Sequence[int] | np.ndarray,
    sample_sizes: Sequence[int] | np.ndarray,
    cor: np.ndarray,
    config: PastaConfig | None = None,
) -> float:
    """
    Integral of f(z, S) over (max_stat, inf) for one subset.

    Raises
    ------
    IntegrationFailure
        If quadrature fails to converge after the refined retry.
    """
    config = config or PastaConfig()
    terms = conditioning_terms(
        subset, sample_sizes, cor, config.min_variance, config.variance_tolerance
    )
    value = _integrate_terms(max_stat, terms, config)
    logger.debug(f"Subset {terms.subset}: tail integral {value:.6g}")
    return value


def _worker_initializer() -> None:
    """Set BLAS thread counts to 1 in worker processes to prevent oversubscription."""
    os.environ["OPENBLAS_NUM_THREADS"] = "1"
    os.environ["MKL_NUM_THREADS"] = "1"
    os.environ["OMP_NUM_THREADS"] = "1"


def _subset_integral_worker(
    args: tuple[float, np.ndarray, np.ndarray, np.ndarray, PastaConfig],
) -> float:
    """Evaluate one subset integral in a subprocess worker."""
    max_stat, subset, sample_sizes, cor, config = args
    return subset_tail_integral(max_stat, subset, sample_sizes, cor, config)


def tail_probability(
    max_stat: float,
    sample_sizes: Sequence[int],
    cor: np.ndarray | Sequence[Sequence[float]] | None = None,
    config: PastaConfig | None = None,
) -> float:
    """
    P(max_S Z(S) > max_stat) under the global null, summed over all subsets.

    Parameters
    ----------
    max_stat : float
        Observed maximum statistic. ``-inf`` and ``+inf`` are accepted.
    sample_sizes : sequence of int
        Per-study sample sizes.
    cor : array-like, optional
        K x K correlation matrix of the per-study statistics. None = identity.
    config : PastaConfig, optional
        Quadrature and parallelism settings.

    Returns
    -------
    float
        Tail probability clipped to [0, 1].

    Raises
    ------
    InvalidSampleSize, InvalidCorrelationMatrix, DimensionMismatch, InvalidStudyCount
        On invalid inputs.
    IntegrationFailure
        If any subset integral fails to converge.
    """
    config = config or PastaConfig()
    if math.isnan(max_stat):
        raise ValueError("max_stat must not be NaN")

    n_arr = validate_sample_sizes(sample_sizes)
    n_studies = len(n_arr)
    validate_study_count(n_studies, minimum=1, maximum=config.max_studies)
    cor_arr = validate_correlation_matrix(cor, n_studies)

    subsets = enumerate_subsets(n_studies)
    n_workers = (os.cpu_count() or 1) if config.workers == -1 else config.workers
    use_parallel = n_workers > 1 and len(subsets) >= config.parallel_min_subsets

    if use_parallel:
        logger.info(f"Tail integration: {len(subsets)} subsets on {n_workers} workers")
        args_list = [(max_stat, subset, n_arr, cor_arr, config) for subset in subsets]
        chunksize = max(1, len(args_list) // (n_workers * 4))
        with concurrent.futures.ProcessPoolExecutor(
            max_workers=n_workers,
            initializer=_worker_initializer,
        ) as executor:
            integrals = list(executor.map(_subset_integral_worker, args_list, chunksize=chunksize))
    else:
        integrals = [
            subset_tail_integral(max_stat, subset, n_arr, cor_arr, config) for subset in subsets
        ]

    total = math.fsum(integrals)
    if total > 1.0:
        logger.debug(f"Tail probability sum {total:.6g} exceeds 1; clipping")
    return float(min(max(total, 0.0), 1.0))
