#!/usr/bin/env python3
"""
Volatility & VaR Report Build Script.

Downloads adjusted close prices, computes log returns, fits ARIMA and
GARCH-family models, backtests historical VaR and writes an HTML report
with CSV exports.

Usage:
    python scripts/build_report.py                           # Default symbols and dates
    python scripts/build_report.py --symbols AAPL NVDA       # Specific symbols
    python scripts/build_report.py --start 2020-01-01 --end 2020-12-31
    python scripts/build_report.py --prices-csv prices.csv   # Offline, from a CSV export

Exits with status 1 when any stage failed for any symbol; the partial
report is still written.
"""

import argparse
import logging
import sys
from pathlib import Path

import pandas as pd

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import Config
from equity_risk.data import PriceClient, filter_date_range, load_csv
from equity_risk.exceptions import DataUnavailableError
from equity_risk.forecasting import ARIMAForecaster
from equity_risk.report import ReportBuilder, ReportWriter
from equity_risk.risk import VolatilityModelFitter


logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Build the equity volatility and VaR report",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python scripts/build_report.py                          # AAPL, MSFT, NVDA 2015-2024
    python scripts/build_report.py --symbols AAPL           # Single symbol
    python scripts/build_report.py --horizon 10 --alpha 0.01
        """
    )

    parser.add_argument(
        "--symbols", "-s",
        nargs="+",
        default=Config.SYMBOLS,
        help=f"Symbols to analyze (default: {' '.join(Config.SYMBOLS)})"
    )
    parser.add_argument(
        "--start",
        default=Config.START_DATE,
        help=f"Inclusive start date, YYYY-MM-DD (default: {Config.START_DATE})"
    )
    parser.add_argument(
        "--end",
        default=Config.END_DATE,
        help=f"Inclusive end date, YYYY-MM-DD (default: {Config.END_DATE})"
    )
    parser.add_argument(
        "--horizon",
        type=int,
        default=Config.FORECAST_HORIZON,
        help=f"ARIMA forecast horizon (default: {Config.FORECAST_HORIZON})"
    )
    parser.add_argument(
        "--window",
        type=int,
        default=Config.ROLLING_WINDOW,
        help=f"Rolling volatility window (default: {Config.ROLLING_WINDOW})"
    )
    parser.add_argument(
        "--alpha",
        type=float,
        default=Config.VAR_ALPHA,
        help=f"VaR tail probability (default: {Config.VAR_ALPHA})"
    )
    parser.add_argument(
        "--output", "-o",
        type=Path,
        default=Config.REPORT_DIR,
        help=f"Output directory (default: {Config.REPORT_DIR})"
    )
    parser.add_argument(
        "--prices-csv",
        type=Path,
        help="Read prices from a CSV export instead of downloading"
    )

    return parser.parse_args(argv)


def validate_args(args: argparse.Namespace) -> list:
    """Check the effective (flag or config) run parameters."""
    problems = []

    if not args.symbols:
        problems.append("No symbols given")
    if not 0 < args.alpha < 1:
        problems.append(f"--alpha must be in (0, 1), got {args.alpha}")
    if args.window < 2:
        problems.append(f"--window must be at least 2, got {args.window}")
    if args.horizon <= 0:
        problems.append(f"--horizon must be positive, got {args.horizon}")
    try:
        if args.start and args.end and pd.Timestamp(args.start) > pd.Timestamp(args.end):
            problems.append(f"--start {args.start} is after --end {args.end}")
    except ValueError as e:
        problems.append(f"Invalid date: {e}")

    return problems


def main(argv=None) -> int:
    args = parse_args(argv)
    configure_logging(Config.LOG_LEVEL)

    for problem in Config.validate():
        logger.warning(f"Configuration: {problem}")

    problems = validate_args(args)
    if problems:
        for problem in problems:
            logger.error(problem)
        return 1

    symbols = [s.upper() for s in args.symbols]

    if args.prices_csv:
        prices = load_csv(args.prices_csv)
        missing = [s for s in symbols if s not in prices.columns]
        if missing:
            logger.error(f"Symbols not found in {args.prices_csv}: {', '.join(missing)}")
            return 1
        prices = filter_date_range(prices[symbols], args.start, args.end)
    else:
        try:
            prices = PriceClient().fetch_adjusted_close(symbols, start=args.start, end=args.end)
        except DataUnavailableError as e:
            logger.error(f"Price download failed: {e}")
            return 1

    p, q = Config.GARCH_ORDER
    builder = ReportBuilder(
        horizon=args.horizon,
        window=args.window,
        alpha=args.alpha,
        garch_order=(p, q),
        forecaster=ARIMAForecaster(
            max_p=Config.ARIMA_MAX_P,
            max_q=Config.ARIMA_MAX_Q,
            max_d=Config.ARIMA_MAX_D
        ),
        fitter=VolatilityModelFitter(distribution=Config.GARCH_DISTRIBUTION)
    )

    report = builder.build(prices)
    html_path = ReportWriter().write(report, prices, args.output)

    print(f"\nReport written to {html_path}")
    print(f"Completed: {len(report.symbols) - len(report.failures)}/{len(report.symbols)} symbols")

    if not report.ok:
        for failure in report.failures:
            logger.error(f"Stage failed: {failure}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
