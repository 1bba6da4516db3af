"""
Command line front end for the tag calculator.

Usage:
    tag-calc forward 1000
    tag-calc inverse 1790
    tag-calc purchase-to-tag 650 --csv breakdown.csv
    tag-calc tag-to-purchase 2740 --table brackets.csv --log-level DEBUG
"""

import argparse
import logging
import math
import sys
from dataclasses import dataclass

from logging_config import configure_logging
from pricing_brackets import BracketTableError, Direction, load_brackets
from tag_calculator import CalculationResult, OutOfRange, compute, to_dataframe

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_OUT_OF_RANGE = 1
EXIT_BAD_INPUT = 2


@dataclass(frozen=True)
class InvalidInput:
    raw: str

    @property
    def message(self) -> str:
        return "Please enter a valid number"


def parse_amount(text: str) -> float | InvalidInput:
    """Parse user text into a finite float, or InvalidInput."""
    try:
        amount = float(text.strip())
    except ValueError:
        return InvalidInput(text)
    if not math.isfinite(amount):
        return InvalidInput(text)
    return amount


def render_result(result: CalculationResult) -> str:
    lines = ["Summary:"]
    for s in result:
        lines.append(
            f"{s.label}: Rs {s.cumulative_total:.2f} (Rs {s.cumulative_profit:.2f}) | {s.percentage:g}%"
        )
    return "\n".join(lines)


def render_error(error: InvalidInput | OutOfRange) -> str:
    return error.message


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tag-calc",
        description="Convert a purchase price to a tagged price, or back.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: WARNING)",
    )
    subparsers = parser.add_subparsers(dest="mode", required=True)

    for name, alias, direction, what in (
        ("forward", "purchase-to-tag", Direction.FORWARD, "Purchase amount"),
        ("inverse", "tag-to-purchase", Direction.INVERSE, "Tagged amount"),
    ):
        sub = subparsers.add_parser(name, aliases=[alias], help=f"{what} -> breakdown")
        sub.set_defaults(direction=direction)
        sub.add_argument("amount", help=what)
        sub.add_argument("--table", help="CSV file with an alternative bracket table")
        sub.add_argument("--csv", help="Also write the breakdown to this CSV file")

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    brackets = None
    if args.table:
        try:
            brackets = load_brackets(args.table)
        except BracketTableError as exc:
            logger.error(str(exc))
            print(f"Error: {exc}", file=sys.stderr)
            return EXIT_BAD_INPUT

    amount = parse_amount(args.amount)
    if isinstance(amount, InvalidInput):
        logger.warning(f"Rejected non-numeric input {amount.raw!r}")
        print(render_error(amount), file=sys.stderr)
        return EXIT_BAD_INPUT

    result = compute(amount, args.direction, brackets)
    if isinstance(result, OutOfRange):
        logger.warning(f"{result.direction.value}: {result.amount} is outside every bracket")
        print(render_error(result), file=sys.stderr)
        return EXIT_OUT_OF_RANGE

    print(render_result(result))
    if args.csv:
        to_dataframe(result).to_csv(args.csv, index=False)
        logger.info(f"Wrote breakdown to {args.csv}")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
