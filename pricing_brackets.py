"""Pricing bracket utilities.

A bracket maps a band of purchase prices to a band of tagged prices and
carries the three rates that link them:
    Bracket(purchase_range=(800, 1200), tagged_range=(1310, 2150),
            profit_rate=0.3, margin_rate=0.1, discount_rate=0.2)

Brackets are scanned low-to-high and the first match wins, so a shared
boundary (e.g. a purchase of 500) belongs to the lower bracket.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import pandas as pd

logger = logging.getLogger(__name__)

CSV_COLUMNS = [
    "purchase_low",
    "purchase_high",
    "tagged_low",
    "tagged_high",
    "profit_rate",
    "margin_rate",
    "discount_rate",
]


class Direction(Enum):
    FORWARD = "purchase-to-tag"
    INVERSE = "tag-to-purchase"


class BracketTableError(ValueError):
    """Raised when a bracket table is malformed or cannot be loaded."""

    def __init__(self, message: str, path: Path | None = None):
        self.path = path
        if path:
            message = f"Error in bracket table '{path}': {message}"
        super().__init__(message)


@dataclass(frozen=True)
class Bracket:
    purchase_range: tuple[float, float]
    tagged_range: tuple[float, float]
    profit_rate: float
    margin_rate: float
    discount_rate: float

    def range_for(self, direction: Direction) -> tuple[float, float]:
        if direction is Direction.FORWARD:
            return self.purchase_range
        return self.tagged_range

    def contains(self, amount: float, direction: Direction) -> bool:
        low, high = self.range_for(direction)
        return low <= amount <= high


# Default brackets (can be overridden by passing `brackets=` or a CSV table)
DEFAULT_BRACKETS: tuple[Bracket, ...] = (
    Bracket((300, 500), (460, 760), profit_rate=0.3, margin_rate=0.05, discount_rate=0.1),
    Bracket((500, 800), (760, 1310), profit_rate=0.3, margin_rate=0.07, discount_rate=0.15),
    Bracket((800, 1200), (1310, 2150), profit_rate=0.3, margin_rate=0.1, discount_rate=0.2),
    Bracket((1200, 1600), (2150, 3130), profit_rate=0.3, margin_rate=0.13, discount_rate=0.25),
    Bracket((1600, 2000), (3130, 3990), profit_rate=0.3, margin_rate=0.15, discount_rate=0.25),
    Bracket((2000, 2400), (3990, 5130), profit_rate=0.3, margin_rate=0.15, discount_rate=0.3),
)


def find_bracket(
    amount: float,
    direction: Direction,
    brackets: tuple[Bracket, ...] | None = None,
) -> Bracket | None:
    """Return the first bracket whose range for `direction` holds `amount`.

    Args:
        amount: purchase price (FORWARD) or tagged price (INVERSE).
        direction: which of the bracket's two ranges to test.
        brackets: ordered low-to-high table; defaults to DEFAULT_BRACKETS.

    Returns:
        The matching Bracket, or None if the amount is outside every range.
    """
    for b in brackets or DEFAULT_BRACKETS:
        if b.contains(amount, direction):
            return b
    return None


def _check_contiguous(ranges: list[tuple[float, float]], name: str) -> None:
    for i, (low, high) in enumerate(ranges):
        if low > high:
            raise BracketTableError(f"bracket {i + 1} {name} range [{low}, {high}] is inverted")
    for i in range(1, len(ranges)):
        prev_high = ranges[i - 1][1]
        low = ranges[i][0]
        if low != prev_high:
            kind = "overlaps" if low < prev_high else "leaves a gap after"
            raise BracketTableError(
                f"bracket {i + 1} {name} range starts at {low}, which {kind} "
                f"bracket {i} ending at {prev_high}"
            )


def validate_brackets(brackets) -> tuple[Bracket, ...]:
    """Check a table is usable for lookups in both directions.

    Ranges must be ordered, touch end-to-start, and every rate must lie
    strictly between 0 and 1.
    """
    table = tuple(brackets)
    if not table:
        raise BracketTableError("bracket table is empty")

    for i, b in enumerate(table, start=1):
        for name in ("profit_rate", "margin_rate", "discount_rate"):
            rate = getattr(b, name)
            if not 0 < rate < 1:
                raise BracketTableError(f"bracket {i} {name}={rate} is outside (0, 1)")

    _check_contiguous([b.purchase_range for b in table], "purchase")
    _check_contiguous([b.tagged_range for b in table], "tagged")
    return table


def load_brackets(path: str | Path) -> tuple[Bracket, ...]:
    """Load a bracket table from CSV, one bracket per row in ascending order.

    Expected columns: purchase_low, purchase_high, tagged_low, tagged_high,
    profit_rate, margin_rate, discount_rate.

    Raises:
        BracketTableError: if the file is missing or unreadable, the CSV is
            malformed, a column is missing, a cell is not numeric, or the
            resulting table fails validation.
    """
    path = Path(path)
    try:
        df = pd.read_csv(path)
    except FileNotFoundError as exc:
        raise BracketTableError("file not found", path=path) from exc
    except pd.errors.EmptyDataError as exc:
        raise BracketTableError("file is empty", path=path) from exc
    except pd.errors.ParserError as exc:
        raise BracketTableError(f"malformed CSV: {exc}", path=path) from exc
    except OSError as exc:
        raise BracketTableError(f"cannot read file: {exc.strerror or exc}", path=path) from exc

    missing = [c for c in CSV_COLUMNS if c not in df.columns]
    if missing:
        raise BracketTableError(f"missing columns: {', '.join(missing)}", path=path)

    values = df[CSV_COLUMNS].apply(pd.to_numeric, errors="coerce")
    if values.isna().any().any():
        bad_row = int(values.isna().any(axis=1).to_numpy().argmax()) + 1
        raise BracketTableError(f"row {bad_row} has a missing or non-numeric value", path=path)

    brackets = [
        Bracket(
            purchase_range=(float(row.purchase_low), float(row.purchase_high)),
            tagged_range=(float(row.tagged_low), float(row.tagged_high)),
            profit_rate=float(row.profit_rate),
            margin_rate=float(row.margin_rate),
            discount_rate=float(row.discount_rate),
        )
        for row in values.itertuples(index=False)
    ]

    try:
        table = validate_brackets(brackets)
    except BracketTableError as exc:
        raise BracketTableError(str(exc), path=path) from exc

    logger.info(f"Loaded {len(table)} pricing brackets from {path}")
    return table
