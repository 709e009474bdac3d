# File: subgxe/pasta/__init__.py
# Location: subgxe/subgxe/pasta/__init__.py
"""
subgxe.pasta: subset-based meta-analysis (pASTA).

Public API
----------
run_analysis             : Validate inputs, search subsets, compute the exact p-value
pasta                    : Alias of run_analysis (name of the original R entry point)
PastaEngine              : Batch orchestrator over many variants with correction
PastaConfig              : Configuration dataclass with defaults mirroring config.json
PastaResult              : Result of a full analysis
SubsetStatisticResult    : Result of the subset search
compute_subset_statistic : Subset search only (max Z(S) and the per-subset table)
tail_probability         : Exact P(max Z(S) > t) under the global null
conditional_density      : Integrand f(z, S) for one subset
subset_tail_integral     : Integral of f(z, S) above a threshold for one subset
apply_correction         : FDR/Bonferroni correction across variants
"""

from subgxe.pasta.base import PastaConfig, PastaResult, SubsetStatisticResult
from subgxe.pasta.correction import apply_correction
from subgxe.pasta.engine import PastaEngine, pasta, run_analysis
from subgxe.pasta.integration import conditional_density, subset_tail_integral, tail_probability
from subgxe.pasta.statistic import compute_subset_statistic

__all__ = [
    "PastaConfig",
    "PastaEngine",
    "PastaResult",
    "SubsetStatisticResult",
    "apply_correction",
    "compute_subset_statistic",
    "conditional_density",
    "pasta",
    "run_analysis",
    "subset_tail_integral",
    "tail_probability",
]
