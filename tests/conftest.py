"""Shared pytest fixtures for all test modules."""

from typing import Dict

import numpy as np
import pytest
from scipy.stats import norm


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: fast unit tests")
    config.addinivalue_line("markers", "slow: tests running many quadratures")


@pytest.fixture
def five_study_inputs() -> Dict[str, np.ndarray]:
    """Five independent studies of 12000 subjects, strong signal in the first two."""
    z_scores = np.array([3.0, 2.8, 0.1, 0.2, 0.15])
    return {
        "z_scores": z_scores,
        "p_values": norm.sf(z_scores),
        "sample_sizes": np.array([12000] * 5),
        "cor": np.eye(5),
    }


@pytest.fixture
def correlated_cor() -> np.ndarray:
    """Positive-definite 3 x 3 correlation matrix (e.g. three phenotypes in one cohort)."""
    return np.array(
        [
            [1.0, 0.3, 0.2],
            [0.3, 1.0, 0.25],
            [0.2, 0.25, 1.0],
        ]
    )


@pytest.fixture
def non_psd_cor() -> np.ndarray:
    """Symmetric unit-diagonal matrix that is not positive semi-definite."""
    return np.array(
        [
            [1.0, 0.9, 0.9],
            [0.9, 1.0, -0.9],
            [0.9, -0.9, 1.0],
        ]
    )
