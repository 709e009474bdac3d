"""Unit tests for input validation."""

from __future__ import annotations

import logging

import numpy as np
import pytest

from subgxe.errors import (
    DimensionMismatch,
    InputValidationError,
    InvalidCorrelationMatrix,
    InvalidPValue,
    InvalidSampleSize,
    InvalidStudyCount,
    PastaError,
)
from subgxe.validators import (
    validate_correlation_matrix,
    validate_dimensions,
    validate_input_file,
    validate_p_values,
    validate_sample_sizes,
    validate_study_count,
)


@pytest.mark.unit
class TestPValues:
    def test_valid(self):
        result = validate_p_values([0.5, 1e-300, np.float64(0.999)])
        assert result.dtype == np.float64
        assert len(result) == 3

    @pytest.mark.parametrize("bad", [0, 1, 0.0, 1.0, -1e-9, float("nan"), float("inf"), True])
    def test_rejected(self, bad):
        with pytest.raises(InvalidPValue):
            validate_p_values([0.1, bad])

    def test_error_hierarchy(self):
        with pytest.raises(InvalidPValue) as exc_info:
            validate_p_values([2.0])
        assert isinstance(exc_info.value, InputValidationError)
        assert isinstance(exc_info.value, PastaError)
        assert isinstance(exc_info.value, ValueError)
        assert "study 1" in str(exc_info.value)


@pytest.mark.unit
class TestSampleSizes:
    def test_valid(self):
        result = validate_sample_sizes([10, 12000.0, np.int64(5)])
        np.testing.assert_array_equal(result, [10.0, 12000.0, 5.0])

    @pytest.mark.parametrize("bad", [0, -1, 2.5, float("nan"), "100", False])
    def test_rejected(self, bad):
        with pytest.raises(InvalidSampleSize) as exc_info:
            validate_sample_sizes([10, bad])
        assert exc_info.value.details["index"] == 1


@pytest.mark.unit
class TestCorrelationMatrix:
    def test_none_is_identity(self):
        matrix = validate_correlation_matrix(None, 3)
        np.testing.assert_array_equal(matrix, np.eye(3))
        assert not matrix.flags.writeable

    def test_valid_matrix_copied_read_only(self, correlated_cor):
        matrix = validate_correlation_matrix(correlated_cor, 3)
        np.testing.assert_array_equal(matrix, correlated_cor)
        assert not matrix.flags.writeable
        assert correlated_cor.flags.writeable

    def test_nested_lists_accepted(self):
        matrix = validate_correlation_matrix([[1, 0.5], [0.5, 1]], 2)
        assert matrix.shape == (2, 2)

    def test_not_square(self):
        with pytest.raises(InvalidCorrelationMatrix, match="square"):
            validate_correlation_matrix(np.ones((2, 3)), 2)

    def test_wrong_dimension(self):
        with pytest.raises(DimensionMismatch):
            validate_correlation_matrix(np.eye(4), 3)

    def test_not_symmetric(self):
        with pytest.raises(InvalidCorrelationMatrix, match="symmetric"):
            validate_correlation_matrix([[1, 0.1], [0.2, 1]], 2)

    def test_diagonal(self):
        with pytest.raises(InvalidCorrelationMatrix, match="diagonal"):
            validate_correlation_matrix([[2, 0.1], [0.1, 1]], 2)

    def test_entries_out_of_range(self):
        with pytest.raises(InvalidCorrelationMatrix, match=r"\[-1, 1\]"):
            validate_correlation_matrix([[1, 1.5], [1.5, 1]], 2)

    def test_non_finite(self):
        with pytest.raises(InvalidCorrelationMatrix, match="non-finite"):
            validate_correlation_matrix([[1, np.nan], [np.nan, 1]], 2)

    def test_not_psd(self, non_psd_cor):
        with pytest.raises(InvalidCorrelationMatrix, match="positive semi-definite"):
            validate_correlation_matrix(non_psd_cor, 3)

    def test_singular_psd_accepted(self):
        matrix = validate_correlation_matrix([[1, 1], [1, 1]], 2)
        assert matrix[0, 1] == 1.0

    def test_not_numeric(self):
        with pytest.raises(InvalidCorrelationMatrix, match="not numeric"):
            validate_correlation_matrix([["a", "b"], ["c", "d"]], 2)


@pytest.mark.unit
class TestCounts:
    def test_study_count_bounds(self):
        validate_study_count(2)
        validate_study_count(20)
        with pytest.raises(InvalidStudyCount):
            validate_study_count(1)
        with pytest.raises(InvalidStudyCount):
            validate_study_count(21)

    def test_study_count_custom_range(self):
        validate_study_count(1, minimum=1, maximum=5)
        with pytest.raises(InvalidStudyCount):
            validate_study_count(6, minimum=1, maximum=5)

    def test_dimensions_agree(self):
        assert validate_dimensions(p_values=3, sample_sizes=3) == 3

    def test_dimensions_disagree(self):
        with pytest.raises(DimensionMismatch) as exc_info:
            validate_dimensions(p_values=3, sample_sizes=2)
        assert exc_info.value.details == {"p_values": 3, "sample_sizes": 2}


@pytest.mark.unit
class TestInputFile:
    def test_none_is_accepted(self):
        validate_input_file(None, "Study file", logging.getLogger("subgxe"))

    def test_existing_file(self, tmp_path):
        path = tmp_path / "studies.tsv"
        path.write_text("study\tp_value\tsample_size\n")
        validate_input_file(str(path), "Study file", logging.getLogger("subgxe"))

    def test_missing_file_exits(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            validate_input_file(
                str(tmp_path / "missing.tsv"), "Study file", logging.getLogger("subgxe")
            )
        assert exc_info.value.code == 1

    def test_empty_file_exits(self, tmp_path):
        path = tmp_path / "empty.tsv"
        path.write_text("")
        with pytest.raises(SystemExit):
            validate_input_file(str(path), "Study file", logging.getLogger("subgxe"))
