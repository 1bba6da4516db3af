"""Tag price calculator.

Converts a purchase price into the price written on the tag, and back.

Forward (purchase -> tagged), each stage builds on the previous total:
- Profit: total = purchase * (1 + profit_rate).
- Margin: total = previous * (1 + margin_rate).
- Discount: total = previous / (1 - discount_rate). This is a markup, sized so
    that giving the listed discount at the till still leaves the margin intact.
- Tagged: the discount total rounded to the nearest ten.

Inverse (tagged -> purchase) is closed-form:
    purchase = tagged * (1 - discount_rate) / ((1 + margin_rate) * (1 + profit_rate))
then the discount, margin and profit amounts are peeled off the tagged price
in turn, and the purchase price is rounded to the nearest ten.

Only one rounding happens per direction; all other stages keep full precision.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum

import pandas as pd

from pricing_brackets import Bracket, Direction, find_bracket

logger = logging.getLogger(__name__)


class Stage(Enum):
    PURCHASE = "Purchase"
    PROFIT = "Profit"
    MARGIN = "Margin"
    DISCOUNT = "Discount"
    TAGGED = "Tagged"


@dataclass(frozen=True)
class StageBreakdown:
    stage: Stage
    cumulative_total: float
    cumulative_profit: float
    percentage: float  # display only, not always recomputed from the totals

    @property
    def label(self) -> str:
        return self.stage.value


@dataclass(frozen=True)
class CalculationResult:
    direction: Direction
    amount: float
    bracket: Bracket
    stages: tuple[StageBreakdown, ...]

    def __getitem__(self, stage: Stage) -> StageBreakdown:
        for s in self.stages:
            if s.stage is stage:
                return s
        raise KeyError(stage)

    def __iter__(self):
        return iter(self.stages)

    def __len__(self) -> int:
        return len(self.stages)

    @property
    def final(self) -> StageBreakdown:
        return self.stages[-1]


@dataclass(frozen=True)
class OutOfRange:
    amount: float
    direction: Direction

    @property
    def message(self) -> str:
        return "Amount does not fall into a valid range"


def round_to_tens(value: float) -> float:
    """Round to the nearest ten; halves round up (465 -> 470)."""
    return float(math.floor(value / 10 + 0.5) * 10)


def compute_forward(
    amount: float,
    brackets: tuple[Bracket, ...] | None = None,
) -> CalculationResult | OutOfRange:
    """Derive the tagged price from a purchase price.

    Args:
        amount: purchase price, a finite number.
        brackets: optional table overriding DEFAULT_BRACKETS.

    Returns:
        Stages [Purchase, Profit, Margin, Discount, Tagged], or OutOfRange if
        no bracket's purchase range holds the amount.
    """
    b = find_bracket(amount, Direction.FORWARD, brackets)
    if b is None:
        logger.debug(f"Purchase amount {amount} is outside every bracket")
        return OutOfRange(amount, Direction.FORWARD)
    logger.debug(f"Purchase amount {amount} uses bracket {b.purchase_range}")

    profit_total = amount * (1.0 + b.profit_rate)
    margin_total = profit_total * (1.0 + b.margin_rate)
    discount_total = margin_total / (1.0 - b.discount_rate)
    tagged = round_to_tens(discount_total)

    # Running profit is always measured against the original purchase price
    stages = (
        StageBreakdown(Stage.PURCHASE, amount, 0.0, 0),
        StageBreakdown(Stage.PROFIT, profit_total, profit_total - amount, b.profit_rate * 100),
        StageBreakdown(Stage.MARGIN, margin_total, margin_total - amount, round(b.margin_rate * 100)),
        StageBreakdown(Stage.DISCOUNT, discount_total, discount_total - amount, b.discount_rate * 100),
        StageBreakdown(Stage.TAGGED, tagged, tagged - amount, 0),
    )
    return CalculationResult(Direction.FORWARD, amount, b, stages)


def compute_inverse(
    amount: float,
    brackets: tuple[Bracket, ...] | None = None,
) -> CalculationResult | OutOfRange:
    """Recover the purchase price from a tagged price.

    The Purchase stage's profit is the rounding error |purchase - rounded|,
    unlike the forward direction where it is always 0.

    Returns:
        Stages [Tagged, Discount, Margin, Profit, Purchase], or OutOfRange if
        no bracket's tagged range holds the amount.
    """
    b = find_bracket(amount, Direction.INVERSE, brackets)
    if b is None:
        logger.debug(f"Tagged amount {amount} is outside every bracket")
        return OutOfRange(amount, Direction.INVERSE)
    logger.debug(f"Tagged amount {amount} uses bracket {b.tagged_range}")

    purchase = amount * (1.0 - b.discount_rate) / ((1.0 + b.margin_rate) * (1.0 + b.profit_rate))
    discount_value = amount * b.discount_rate
    margin_value = purchase * b.margin_rate
    profit_value = purchase * b.profit_rate
    rounded = round_to_tens(purchase)

    after_discount = amount - discount_value
    after_margin = after_discount - margin_value
    after_profit = after_margin - profit_value

    stages = (
        StageBreakdown(Stage.TAGGED, amount, amount - rounded, 0),
        StageBreakdown(Stage.DISCOUNT, after_discount, after_discount - rounded, b.discount_rate * 100),
        StageBreakdown(Stage.MARGIN, after_margin, after_margin - rounded, round(b.margin_rate * 100)),
        StageBreakdown(Stage.PROFIT, after_profit, after_profit - rounded, b.profit_rate * 100),
        StageBreakdown(Stage.PURCHASE, rounded, abs(purchase - rounded), 0),
    )
    return CalculationResult(Direction.INVERSE, amount, b, stages)


def compute(
    amount: float,
    direction: Direction,
    brackets: tuple[Bracket, ...] | None = None,
) -> CalculationResult | OutOfRange:
    if direction is Direction.FORWARD:
        return compute_forward(amount, brackets)
    return compute_inverse(amount, brackets)


def to_dataframe(result: CalculationResult) -> pd.DataFrame:
    rows = [
        {
            "stage": s.label,
            "total": s.cumulative_total,
            "profit": s.cumulative_profit,
            "percentage": s.percentage,
        }
        for s in result
    ]
    return pd.DataFrame(rows, columns=["stage", "total", "profit", "percentage"])
