"""
Unit tests for batch multiple testing correction.

apply_correction() must produce the same values as direct
statsmodels.stats.multitest.multipletests() calls.
"""

from __future__ import annotations

import logging

import numpy as np
import pytest
import statsmodels.stats.multitest as smm

from subgxe.pasta.correction import apply_correction


def _smm(pvals, method):
    return smm.multipletests(np.asarray(pvals, dtype=float), method=method)[1]


@pytest.mark.unit
class TestApplyCorrection:
    """FDR and Bonferroni parity with statsmodels."""

    @pytest.mark.parametrize(
        "pvals",
        [
            [0.01, 0.05, 0.1, 0.2, 0.5, 0.9],
            [1e-12, 1e-8, 3e-5, 0.001],
            [1.0, 1.0, 1.0],
            [0.03],
        ],
    )
    def test_fdr_parity(self, pvals):
        np.testing.assert_array_almost_equal(
            apply_correction(pvals, method="fdr"), _smm(pvals, "fdr_bh"), decimal=15
        )

    def test_bonferroni_parity(self):
        pvals = [0.001, 0.02, 0.3, 0.6]
        np.testing.assert_array_almost_equal(
            apply_correction(pvals, method="bonferroni"), _smm(pvals, "bonferroni"), decimal=15
        )

    def test_default_is_fdr(self):
        pvals = [0.01, 0.04, 0.2]
        np.testing.assert_array_equal(apply_correction(pvals), apply_correction(pvals, "fdr"))

    def test_order_preserved(self):
        pvals = [0.5, 0.001, 0.2]
        corrected = apply_correction(pvals)
        assert np.argmin(corrected) == 1

    def test_empty_input(self):
        assert len(apply_correction([])) == 0

    def test_unknown_method_falls_back_to_fdr(self, caplog):
        pvals = [0.01, 0.04, 0.2]
        with caplog.at_level(logging.WARNING, logger="subgxe"):
            corrected = apply_correction(pvals, method="holm")
        np.testing.assert_array_almost_equal(corrected, _smm(pvals, "fdr_bh"))
        assert "Unknown correction method" in caplog.text
