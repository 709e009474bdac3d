"""Unit tests for reading study tables and writing results."""

from __future__ import annotations

import json

import numpy as np
import pandas as pd
import pytest

from subgxe.errors import DimensionMismatch, InvalidCorrelationMatrix
from subgxe.io import (
    read_correlation_matrix,
    read_pvalue_table,
    read_study_table,
    write_result_json,
    write_results_tsv,
)
from subgxe.pasta import run_analysis

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write(path, text):
    path.write_text(text)
    return str(path)


COR_TSV = "\tB\tA\tC\nB\t1.0\t0.3\t0.1\nA\t0.3\t1.0\t0.2\nC\t0.1\t0.2\t1.0\n"


# ---------------------------------------------------------------------------
# Study table
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestReadStudyTable:
    def test_reads_in_file_order(self, tmp_path):
        path = _write(
            tmp_path / "studies.tsv",
            "# cohort summary\nstudy\tp_value\tsample_size\textra\n"
            "UKB\t0.001\t400000\tx\nFinnGen\t0.02\t300000\ty\n",
        )
        df = read_study_table(path)
        assert list(df.columns) == ["study", "p_value", "sample_size"]
        assert df["study"].tolist() == ["UKB", "FinnGen"]
        assert df["sample_size"].tolist() == [400000, 300000]

    def test_numeric_study_names_kept_as_str(self, tmp_path):
        path = _write(tmp_path / "studies.tsv", "study\tp_value\tsample_size\n1\t0.1\t10\n2\t0.2\t20\n")
        assert read_study_table(path)["study"].tolist() == ["1", "2"]

    def test_missing_column(self, tmp_path):
        path = _write(tmp_path / "studies.tsv", "study\tp_value\nA\t0.1\n")
        with pytest.raises(ValueError, match="missing columns"):
            read_study_table(path)

    def test_header_only(self, tmp_path):
        path = _write(tmp_path / "studies.tsv", "study\tp_value\tsample_size\n")
        with pytest.raises(ValueError, match="no data"):
            read_study_table(path)

    def test_duplicate_names(self, tmp_path):
        path = _write(
            tmp_path / "studies.tsv", "study\tp_value\tsample_size\nA\t0.1\t10\nA\t0.2\t20\n"
        )
        with pytest.raises(ValueError, match="Duplicate"):
            read_study_table(path)

    def test_blank_file(self, tmp_path):
        path = _write(tmp_path / "studies.tsv", "\n")
        with pytest.raises(ValueError, match="empty"):
            read_study_table(path)


# ---------------------------------------------------------------------------
# Correlation matrix
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestReadCorrelationMatrix:
    def test_file_order_without_names(self, tmp_path):
        path = _write(tmp_path / "cor.tsv", COR_TSV)
        matrix = read_correlation_matrix(path)
        assert matrix[0, 1] == pytest.approx(0.3)
        assert matrix[0, 2] == pytest.approx(0.1)

    def test_reordered_to_study_names(self, tmp_path):
        path = _write(tmp_path / "cor.tsv", COR_TSV)
        matrix = read_correlation_matrix(path, ["A", "B", "C"])
        expected = np.array([[1.0, 0.3, 0.2], [0.3, 1.0, 0.1], [0.2, 0.1, 1.0]])
        np.testing.assert_allclose(matrix, expected)

    def test_row_column_label_mismatch(self, tmp_path):
        path = _write(tmp_path / "cor.tsv", "\tA\tB\nB\t1.0\t0.3\nA\t0.3\t1.0\n")
        with pytest.raises(InvalidCorrelationMatrix, match="row labels"):
            read_correlation_matrix(path)

    def test_wrong_study_count(self, tmp_path):
        path = _write(tmp_path / "cor.tsv", COR_TSV)
        with pytest.raises(DimensionMismatch):
            read_correlation_matrix(path, ["A", "B"])

    def test_unknown_study_names(self, tmp_path):
        path = _write(tmp_path / "cor.tsv", COR_TSV)
        with pytest.raises(InvalidCorrelationMatrix, match="do not match"):
            read_correlation_matrix(path, ["A", "B", "D"])


# ---------------------------------------------------------------------------
# Batch table and writers
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestBatchTableAndWriters:
    def test_read_pvalue_table(self, tmp_path):
        path = _write(tmp_path / "batch.tsv", "variant\tA\tB\n1\t0.1\t0.2\nrs2\t0.3\t0.4\n")
        df = read_pvalue_table(path)
        assert df["variant"].tolist() == ["1", "rs2"]
        assert df["A"].tolist() == [0.1, 0.3]

    def test_read_pvalue_table_missing_variant_column(self, tmp_path):
        path = _write(tmp_path / "batch.tsv", "gene\tA\tB\nX\t0.1\t0.2\n")
        with pytest.raises(ValueError, match="'variant' not found"):
            read_pvalue_table(path)

    def test_write_result_json_file(self, tmp_path):
        result = run_analysis([0.01, 0.4], [100, 100], study_names=["A", "B"])
        out = tmp_path / "result.json"
        write_result_json(result, str(out))
        data = json.loads(out.read_text())
        assert data["selected_studies"] == ["A"]
        assert data["combined_p_value"] == pytest.approx(result.combined_p_value)

    @pytest.mark.parametrize("target", [None, "stdout", "-"])
    def test_write_result_json_stdout(self, target, capsys):
        result = run_analysis([0.01, 0.4], [100, 100])
        write_result_json(result, target)
        assert json.loads(capsys.readouterr().out)["n_subsets"] == 3

    def test_write_results_tsv(self, tmp_path):
        df = pd.DataFrame({"variant": ["rs1"], "pasta_pvalue": [0.01]})
        out = tmp_path / "results.tsv"
        write_results_tsv(df, str(out))
        pd.testing.assert_frame_equal(pd.read_csv(out, sep="\t"), df)
