# src/forecast_engine/cli.py
"""
Command-line entry point.

Usage:
    forecast-engine CONFIG.yaml [--csv-dir DIR] [--verbose]

Exit codes: 0 when every check passes, 1 when a check fails, 2 when the
configuration cannot be loaded.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import pandas as pd
import yaml

from .core.exceptions import ForecastError
from .financial_statements.statement_builder import FullForecastOutput, build_full_forecast
from .utils.config_loader import load_forecast_config

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CHECK_FAILED = 1
EXIT_CONFIG_ERROR = 2


def _print_table(title: str, frame: pd.DataFrame) -> None:
    print("\n" + "=" * 100)
    print(title)
    print("=" * 100)
    with pd.option_context('display.float_format', '{:,.2f}'.format,
                           'display.width', 200):
        # Line items as rows, periods as columns
        print(frame.T.to_string())


def print_forecast(output: FullForecastOutput) -> None:
    """Print the three statements and the check summary."""
    _print_table("INCOME STATEMENT", output.income_statement.to_dataframe())
    _print_table("BALANCE SHEET", output.balance_sheet.to_dataframe())
    _print_table("CASH FLOW STATEMENT", output.cash_flow.to_dataframe())

    print("\n" + "=" * 100)
    print("CHECKS")
    print("=" * 100)
    print(output.checks.to_dataframe().to_string())

    summary = output.checks.circularity
    print(f"\nCircularity: {summary.total_iterations} iterations, "
          f"max error {summary.max_error:.6f}, "
          f"non-converged periods: {list(summary.non_converged_periods) or 'none'}")


def export_csv(output: FullForecastOutput, csv_dir: Path) -> List[Path]:
    """Write every table of the output to ``csv_dir``, one file per table."""
    csv_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for name, frame in output.to_dataframes().items():
        path = csv_dir / f"{name}.csv"
        frame.to_csv(path)
        written.append(path)
    logger.info("Wrote %d tables to %s", len(written), csv_dir)
    return written


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='forecast-engine',
        description='Three-statement forecast with interest/revolver circularity solving'
    )
    parser.add_argument('config', type=Path, help='YAML file with assumptions and baseline')
    parser.add_argument('--csv-dir', type=Path, default=None,
                        help='Directory to export every statement and schedule as CSV')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    try:
        config = load_forecast_config(args.config)
        output = build_full_forecast(config.assumptions, config.baseline, config.forecast_years)
    except (ForecastError, ValueError, TypeError, OSError, yaml.YAMLError) as e:
        logger.error("Configuration error: %s", e)
        return EXIT_CONFIG_ERROR

    print_forecast(output)

    if args.csv_dir is not None:
        export_csv(output, args.csv_dir)

    return EXIT_OK if output.checks.all_passed else EXIT_CHECK_FAILED


if __name__ == '__main__':
    sys.exit(main())
