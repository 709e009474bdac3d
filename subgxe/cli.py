"""Command-line interface for subgxe."""

import argparse
import datetime
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import load_config
from .errors import PastaError
from .io import (
    read_correlation_matrix,
    read_pvalue_table,
    read_study_table,
    write_result_json,
    write_results_tsv,
)
from .pasta.base import PastaConfig
from .pasta.engine import PastaEngine, run_analysis
from .validators import validate_input_file
from .version import __version__

logger = logging.getLogger("subgxe")

LOG_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}


def _float_list(value: str) -> List[float]:
    """Parse a comma-separated list of floats."""
    try:
        return [float(v) for v in value.split(",") if v.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected comma-separated numbers, got '{value}'")


def _name_list(value: str) -> List[str]:
    """Parse a comma-separated list of names."""
    return [v.strip() for v in value.split(",") if v.strip()]


def create_parser() -> argparse.ArgumentParser:
    """Create and return the argument parser for subgxe CLI."""
    parser = argparse.ArgumentParser(
        description="subgxe: subset-based meta-analysis (pASTA) across studies or phenotypes."
    )

    # General Options
    general_group = parser.add_argument_group("General Options")
    general_group.add_argument(
        "--version",
        action="version",
        version=f"subgxe {__version__}",
        help="Show the current version and exit",
    )
    general_group.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARN", "ERROR"],
        default="INFO",
        help="Set the logging level",
    )
    general_group.add_argument(
        "--log-file", help="Path to a file to write logs to (in addition to stderr)."
    )
    general_group.add_argument(
        "-c",
        "--config",
        help="Path to configuration file",
        default=None,
    )

    # Input
    input_group = parser.add_argument_group("Input")
    source = input_group.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "-p",
        "--p-values",
        type=_float_list,
        help="Comma-separated per-study p-values (requires --sample-sizes)",
    )
    source.add_argument(
        "--study-file",
        help="TSV with columns study, p_value, sample_size (one row per study)",
    )
    source.add_argument(
        "--batch-file",
        help="TSV with a 'variant' column and one p-value column per study "
        "(requires --sample-sizes)",
    )
    input_group.add_argument(
        "-n",
        "--sample-sizes",
        type=_float_list,
        help="Comma-separated per-study sample sizes",
    )
    input_group.add_argument(
        "--study-names",
        type=_name_list,
        help="Comma-separated study names. In batch mode these select the p-value columns; "
        "default: all columns except the variant column.",
    )
    input_group.add_argument(
        "--variant-column",
        default="variant",
        help="Identifier column of the batch file (default: variant)",
    )
    input_group.add_argument(
        "--cor-file",
        help="TSV correlation matrix with study names as row and column labels. "
        "Default: identity (independent studies).",
    )

    # Computation
    compute_group = parser.add_argument_group("Computation")
    compute_group.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Worker processes for per-subset integrals (1 = sequential, -1 = all CPUs). "
        "Default: from config (1).",
    )
    compute_group.add_argument(
        "--max-studies",
        type=int,
        default=None,
        help="Maximum number of studies accepted. Default: from config (20).",
    )
    compute_group.add_argument(
        "--correction-method",
        choices=["fdr", "bonferroni"],
        default=None,
        help="Multiple testing correction across variants in batch mode. Default: from config (fdr).",
    )

    # Output
    output_group = parser.add_argument_group("Output")
    output_group.add_argument(
        "-o",
        "--output-file",
        default="stdout",
        help="Output file: JSON for single analyses, TSV for batch analyses "
        "(default: stdout; '-' also means stdout)",
    )

    return parser


def parse_args(args_list=None):
    """Parse command line arguments.

    Parameters
    ----------
    args_list : list, optional
        List of arguments to parse. If None, uses sys.argv

    Returns
    -------
    argparse.Namespace
        Parsed arguments
    """
    parser = create_parser()
    return parser.parse_args(args_list)


def build_config(args: argparse.Namespace) -> PastaConfig:
    """Merge the JSON configuration with command-line overrides."""
    cfg: Dict[str, Any] = load_config(args.config)
    logger.debug(f"Configuration loaded: {cfg}")

    if args.workers is not None:
        cfg["workers"] = args.workers
    if args.max_studies is not None:
        cfg["max_studies"] = args.max_studies
    if args.correction_method is not None:
        cfg["correction_method"] = args.correction_method

    return PastaConfig.from_dict(cfg)


def _run_single(args: argparse.Namespace, config: PastaConfig) -> None:
    study_names: Optional[List[str]] = args.study_names
    if args.study_file:
        studies = read_study_table(args.study_file)
        study_names = studies["study"].tolist()
        p_values = studies["p_value"].tolist()
        sample_sizes = studies["sample_size"].tolist()
    else:
        p_values = args.p_values
        sample_sizes = args.sample_sizes

    cor = read_correlation_matrix(args.cor_file, study_names) if args.cor_file else None
    result = run_analysis(p_values, sample_sizes, cor, config=config, study_names=study_names)
    write_result_json(result, args.output_file)


def _run_batch(args: argparse.Namespace, config: PastaConfig) -> None:
    table = read_pvalue_table(args.batch_file, args.variant_column)
    study_names = args.study_names or [c for c in table.columns if c != args.variant_column]
    cor = read_correlation_matrix(args.cor_file, study_names) if args.cor_file else None

    engine = PastaEngine(args.sample_sizes, cor, config=config, study_names=study_names)
    results = engine.run_all(table, variant_column=args.variant_column)
    write_results_tsv(results, args.output_file)


def main(args_list=None) -> int:
    """Run main entry point for subgxe CLI.

    Steps:
        1. Parse arguments.
        2. Configure logging and load config.
        3. Validate input files.
        4. Run a single analysis (--p-values / --study-file) or a batch
           analysis (--batch-file).
        5. Write the result.

    Returns
    -------
    int
        0 on success, 1 on invalid input or computation failure.
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )

    parser = create_parser()
    args: argparse.Namespace = parser.parse_args(args_list)

    logging.getLogger("subgxe").setLevel(LOG_LEVEL_MAP[args.log_level])

    # If a log file is specified, add a file handler
    if args.log_file:
        log_file_path = Path(args.log_file)
        log_file_path.parent.mkdir(parents=True, exist_ok=True)

        fh = logging.FileHandler(args.log_file)
        fh.setLevel(LOG_LEVEL_MAP[args.log_level])
        fh.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
            )
        )
        logger.addHandler(fh)
        logger.debug(f"Logging to file enabled: {args.log_file}")

    start_time: datetime.datetime = datetime.datetime.now()
    logger.info(f"Run started at {start_time.isoformat()}")
    logger.debug(f"CLI arguments: {args}")

    if (args.p_values is not None or args.batch_file) and args.sample_sizes is None:
        parser.error("--sample-sizes is required with --p-values and --batch-file")

    validate_input_file(args.study_file, "Study file", logger)
    validate_input_file(args.batch_file, "Batch file", logger)
    validate_input_file(args.cor_file, "Correlation matrix file", logger)

    try:
        config = build_config(args)
        if args.batch_file:
            _run_batch(args, config)
        else:
            _run_single(args, config)
    except (PastaError, ValueError, FileNotFoundError) as e:
        logger.error(str(e))
        return 1

    end_time = datetime.datetime.now()
    logger.info(f"Run ended at {end_time.isoformat()} (duration {end_time - start_time})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
