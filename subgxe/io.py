# File: subgxe/io.py
# Location: subgxe/subgxe/io.py

"""
Tabular input and output for the command-line interface.

Input formats (tab-separated, header row required):

- Study table: columns ``study``, ``p_value``, ``sample_size``; one row per
  study, in the order used for the correlation matrix.
- Correlation matrix: first column holds row labels, header holds column
  labels, both matching the study names. Rows and columns are reordered to
  the study order when names are supplied.
- Batch p-value table: a ``variant`` identifier column plus one p-value
  column per study.

Results are written as JSON (single analysis) or TSV (batch analysis) to a
file or to stdout.
"""

import json
import logging
import sys
from typing import List, Optional

import numpy as np
import pandas as pd

from .errors import DimensionMismatch, InvalidCorrelationMatrix
from .pasta.base import PastaResult

logger = logging.getLogger("subgxe")

STUDY_COLUMNS = ["study", "p_value", "sample_size"]


def read_study_table(file_path: str) -> pd.DataFrame:
    """
    Read a study table with columns ``study``, ``p_value`` and ``sample_size``.

    Parameters
    ----------
    file_path : str
        Path to the tab-separated study table.

    Returns
    -------
    pd.DataFrame
        The three required columns, in file order, with ``study`` as str.

    Raises
    ------
    ValueError
        If the file is empty, a required column is missing, or study names
        are duplicated.
    """
    try:
        df = pd.read_csv(file_path, sep="\t", comment="#", dtype={"study": str})
    except pd.errors.EmptyDataError:
        raise ValueError(f"Study table {file_path} is empty")

    missing = [c for c in STUDY_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(
            f"Study table {file_path} is missing columns {missing}. "
            f"Available columns: {list(df.columns)}"
        )
    if df.empty:
        raise ValueError(f"Study table {file_path} contains only a header and no data")

    duplicated = df["study"][df["study"].duplicated()].tolist()
    if duplicated:
        raise ValueError(f"Duplicate study names in {file_path}: {duplicated}")

    logger.info(f"Loaded {len(df)} studies from {file_path}")
    return df[STUDY_COLUMNS].reset_index(drop=True)


def read_correlation_matrix(
    file_path: str, study_names: Optional[List[str]] = None
) -> np.ndarray:
    """
    Read a labelled correlation matrix.

    Parameters
    ----------
    file_path : str
        Path to the tab-separated matrix with row and column labels.
    study_names : list of str, optional
        Expected study order. When given, the matrix is reordered to it and
        the labels must match the names exactly (as sets).

    Returns
    -------
    np.ndarray
        K x K float matrix (not yet validated for symmetry or PSD).

    Raises
    ------
    DimensionMismatch
        If the matrix has a different number of studies than ``study_names``.
    InvalidCorrelationMatrix
        If row and column labels differ, or do not match ``study_names``.
    """
    try:
        df = pd.read_csv(file_path, sep="\t", index_col=0, comment="#")
    except pd.errors.EmptyDataError:
        raise InvalidCorrelationMatrix(f"file {file_path} is empty")

    df.index = df.index.astype(str)
    df.columns = df.columns.astype(str)

    if list(df.index) != list(df.columns):
        raise InvalidCorrelationMatrix(
            f"row labels {list(df.index)} differ from column labels {list(df.columns)}"
        )

    if study_names is not None:
        if len(study_names) != len(df.index):
            raise DimensionMismatch(
                {"studies": len(study_names), "correlation_matrix": len(df.index)}
            )
        if set(study_names) != set(df.index):
            raise InvalidCorrelationMatrix(
                f"labels {list(df.index)} do not match study names {list(study_names)}"
            )
        df = df.loc[list(study_names), list(study_names)]

    logger.debug(f"Loaded {df.shape[0]}x{df.shape[1]} correlation matrix from {file_path}")
    return df.to_numpy(dtype=float)


def read_pvalue_table(file_path: str, variant_column: str = "variant") -> pd.DataFrame:
    """
    Read a batch p-value table (one row per variant, one column per study).

    Raises
    ------
    ValueError
        If the file is empty or lacks the variant identifier column.
    """
    try:
        df = pd.read_csv(file_path, sep="\t", comment="#", dtype={variant_column: str})
    except pd.errors.EmptyDataError:
        raise ValueError(f"P-value table {file_path} is empty")

    if variant_column not in df.columns:
        raise ValueError(
            f"Column '{variant_column}' not found in {file_path}. "
            f"Available columns: {list(df.columns)}"
        )

    logger.info(f"Loaded {len(df)} variants from {file_path}")
    return df


def _is_stdout(output_file: Optional[str]) -> bool:
    return output_file in (None, "stdout", "-")


def write_result_json(result: PastaResult, output_file: Optional[str] = None) -> None:
    """Write a single-analysis result as JSON to a file or stdout."""
    text = json.dumps(result.to_dict(), indent=2)
    if _is_stdout(output_file):
        sys.stdout.write(text + "\n")
        return
    with open(output_file, "w", encoding="utf-8") as f:
        f.write(text + "\n")
    logger.info(f"Result written to {output_file}")


def write_results_tsv(results: pd.DataFrame, output_file: Optional[str] = None) -> None:
    """Write batch results as TSV to a file or stdout."""
    if _is_stdout(output_file):
        results.to_csv(sys.stdout, sep="\t", index=False)
        return
    results.to_csv(output_file, sep="\t", index=False)
    logger.info(f"{len(results)} results written to {output_file}")
