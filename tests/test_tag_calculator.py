import dataclasses
import logging

import pytest

from pricing_brackets import DEFAULT_BRACKETS, Bracket, Direction
from tag_calculator import (
    CalculationResult,
    OutOfRange,
    Stage,
    compute,
    compute_forward,
    compute_inverse,
    round_to_tens,
    to_dataframe,
)

FORWARD_ORDER = [Stage.PURCHASE, Stage.PROFIT, Stage.MARGIN, Stage.DISCOUNT, Stage.TAGGED]
INVERSE_ORDER = [Stage.TAGGED, Stage.DISCOUNT, Stage.MARGIN, Stage.PROFIT, Stage.PURCHASE]


def _interior_points():
    for b in DEFAULT_BRACKETS:
        low, high = b.purchase_range
        for p in (low + 1, (low + high) / 2, high - 1):
            yield b, p


@pytest.mark.parametrize(
    "value, expected",
    [(475, 480), (474, 470), (465, 470), (1787.5, 1790), (1001.3986, 1000), (0, 0)],
)
def test_round_to_tens(value, expected):
    assert round_to_tens(value) == expected


def test_forward_scenario_1000():
    result = compute_forward(1000)

    assert isinstance(result, CalculationResult)
    assert result.bracket is DEFAULT_BRACKETS[2]
    assert [s.stage for s in result] == FORWARD_ORDER

    assert result[Stage.PURCHASE].cumulative_total == 1000
    assert result[Stage.PURCHASE].cumulative_profit == 0
    assert result[Stage.PROFIT].cumulative_total == pytest.approx(1300)
    assert result[Stage.PROFIT].cumulative_profit == pytest.approx(300)
    assert result[Stage.MARGIN].cumulative_total == pytest.approx(1430)
    assert result[Stage.MARGIN].cumulative_profit == pytest.approx(430)
    # profit is total minus purchase at every stage, not the previous profit
    # plus prevTotal * discount_rate (which would be 716 here)
    assert result[Stage.DISCOUNT].cumulative_total == pytest.approx(1787.5)
    assert result[Stage.DISCOUNT].cumulative_profit == pytest.approx(787.5)
    assert result[Stage.TAGGED].cumulative_total == 1790
    assert result[Stage.TAGGED].cumulative_profit == 790
    assert result.final is result[Stage.TAGGED]


def test_forward_percentages_echo_bracket_rates():
    result = compute_forward(1000)
    assert [s.percentage for s in result] == pytest.approx([0, 30, 10, 20, 0])
    # margin is rounded to a whole percent, the others are raw rate * 100
    assert isinstance(result[Stage.MARGIN].percentage, int)
    assert compute_forward(650)[Stage.MARGIN].percentage == 7


def test_inverse_scenario_1790():
    result = compute_inverse(1790)

    assert isinstance(result, CalculationResult)
    assert result.bracket is DEFAULT_BRACKETS[2]
    assert [s.stage for s in result] == INVERSE_ORDER

    purchase = 1790 * 0.8 / (1.1 * 1.3)
    assert result[Stage.TAGGED].cumulative_total == 1790
    assert result[Stage.TAGGED].cumulative_profit == pytest.approx(790)
    assert result[Stage.DISCOUNT].cumulative_total == pytest.approx(1432)
    assert result[Stage.DISCOUNT].cumulative_profit == pytest.approx(432)
    assert result[Stage.MARGIN].cumulative_total == pytest.approx(1432 - purchase * 0.1)
    assert result[Stage.PROFIT].cumulative_total == pytest.approx(1432 - purchase * 0.4)
    assert result[Stage.PROFIT].cumulative_profit == pytest.approx(432 - purchase * 0.4)
    assert result[Stage.PURCHASE].cumulative_total == 1000
    assert abs(result[Stage.PURCHASE].cumulative_total - 1000) <= 10
    # Tagged reports 0, not the overall markup over the recovered purchase price
    assert [s.percentage for s in result] == pytest.approx([0, 20, 10, 30, 0])


def test_purchase_stage_profit_differs_by_direction():
    # forward reports 0, inverse reports the rounding error of the recovered price
    forward = compute_forward(1000)
    inverse = compute_inverse(1790)
    assert forward[Stage.PURCHASE].cumulative_profit == 0
    assert inverse[Stage.PURCHASE].cumulative_profit == pytest.approx(
        1790 * 0.8 / (1.1 * 1.3) - 1000
    )
    assert inverse[Stage.PURCHASE].cumulative_profit > 0


@pytest.mark.parametrize("amount", [100, 299, 2401, 3000])
def test_forward_out_of_range(amount):
    result = compute_forward(amount)
    assert result == OutOfRange(amount, Direction.FORWARD)
    assert result.message == "Amount does not fall into a valid range"


@pytest.mark.parametrize("amount", [100, 459, 5131, 10000])
def test_inverse_out_of_range(amount):
    assert compute_inverse(amount) == OutOfRange(amount, Direction.INVERSE)


def test_out_of_range_is_logged_at_debug(caplog):
    with caplog.at_level(logging.DEBUG, logger="tag_calculator"):
        compute_forward(3000)
    assert "outside every bracket" in caplog.text


@pytest.mark.parametrize("bracket, amount", list(_interior_points()))
def test_forward_covers_every_bracket(bracket, amount):
    result = compute_forward(amount)
    assert isinstance(result, CalculationResult)
    assert result.bracket is bracket
    low, high = bracket.tagged_range
    assert low - 10 <= result[Stage.TAGGED].cumulative_total <= high + 10


@pytest.mark.parametrize("bracket, amount", list(_interior_points()))
def test_round_trip_recovers_purchase_within_ten(bracket, amount):
    tagged = compute_forward(amount)[Stage.TAGGED].cumulative_total
    recovered = compute_inverse(tagged)
    assert isinstance(recovered, CalculationResult)
    assert abs(recovered[Stage.PURCHASE].cumulative_total - round_to_tens(amount)) <= 10


def test_compute_dispatches_on_direction():
    assert compute(1000, Direction.FORWARD) == compute_forward(1000)
    assert compute(1790, Direction.INVERSE) == compute_inverse(1790)


def test_results_are_fresh_and_immutable():
    first = compute_forward(1000)
    second = compute_forward(1000)
    assert first == second
    assert first is not second
    with pytest.raises(dataclasses.FrozenInstanceError):
        first[Stage.TAGGED].cumulative_total = 0


def test_custom_table():
    table = (Bracket((0, 100), (0, 300), profit_rate=0.5, margin_rate=0.2, discount_rate=0.4),)
    result = compute_forward(100, table)
    # 100 * 1.5 * 1.2 / 0.6 = 300
    assert result[Stage.DISCOUNT].cumulative_total == pytest.approx(300)
    assert result[Stage.TAGGED].cumulative_total == 300
    assert isinstance(compute_forward(500, table), OutOfRange)
    assert compute_inverse(300, table)[Stage.PURCHASE].cumulative_total == 100


def test_stage_label():
    result = compute_forward(1000)
    assert [s.label for s in result] == ["Purchase", "Profit", "Margin", "Discount", "Tagged"]
    assert len(result) == 5


def test_to_dataframe():
    df = to_dataframe(compute_forward(1000))
    assert list(df.columns) == ["stage", "total", "profit", "percentage"]
    assert df["stage"].tolist() == ["Purchase", "Profit", "Margin", "Discount", "Tagged"]
    assert df["total"].iloc[-1] == 1790
    assert df["profit"].tolist() == pytest.approx([0, 300, 430, 787.5, 790])
