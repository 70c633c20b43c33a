"""CLI entry point for offline replay.

Runs the same simulator the live system uses, but over the whole supplied
sequence instead of the 100-sample live window.

Usage:
    python -m backtest --prices 100,101,99.5,102
    python -m backtest --prices 100,101,99.5 --volumes 10,12,8
    python -m backtest --csv ticks.csv --output result.json
"""

import argparse
import logging
import sys

from core.models.config import DEFAULT_STRATEGY
from core.simulator import TradeSimulator

from backtest.loader import ReplayInput, load_csv, parse_sequence
from backtest.report import ReportFormatter


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m backtest",
        description="Replay a price sequence through the trade simulator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m backtest --prices 100,101,99.5,102
  python -m backtest --prices 100,101,99.5 --volumes 10,12,8
  python -m backtest --csv ticks.csv --output result.json
        """,
    )

    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--prices",
        type=str,
        default=None,
        help="Comma-separated prices",
    )
    source.add_argument(
        "--csv",
        type=str,
        default=None,
        help="CSV file with a price column and optional volume column",
    )
    parser.add_argument(
        "--volumes",
        type=str,
        default=None,
        help="Comma-separated volumes aligned with --prices (default: 1 each)",
    )
    parser.add_argument(
        "--output", "-o",
        type=str,
        default=None,
        help="Output file path for JSON results",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose logging",
    )
    return parser


def load_input(args: argparse.Namespace) -> ReplayInput:
    """Build the replay input from parsed arguments."""
    if args.csv:
        return load_csv(args.csv)
    prices = parse_sequence(args.prices)
    volumes = parse_sequence(args.volumes) if args.volumes else []
    return ReplayInput(prices=prices, volumes=volumes)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.csv and args.volumes:
        parser.error("--volumes only applies to --prices")

    # Configure logging
    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        replay = load_input(args)
    except (OSError, ValueError) as e:
        parser.error(str(e))

    simulator = TradeSimulator(DEFAULT_STRATEGY)
    result = simulator.run_prices(replay.prices, replay.volumes)

    ReportFormatter.print_console(result, replay.source)

    if args.output:
        ReportFormatter.save_json(result, args.output, replay.source)

    return 0


if __name__ == "__main__":
    sys.exit(main())
