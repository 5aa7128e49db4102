# tests/test_utils.py
from decimal import Decimal

import pytest

from utils import format_money, round_money, to_decimal


def test_round_money_half_up():
    assert round_money(Decimal("0.015")) == 0.02
    assert round_money(Decimal("2.345")) == 2.35
    assert round_money(Decimal("10")) == 10.0


def test_round_money_negative_values():
    assert round_money(Decimal("-50.5")) == -50.5


@pytest.mark.parametrize(
    "value, expected",
    [
        (12, Decimal("12")),
        (12.5, Decimal("12.5")),
        ("7.25", Decimal("7.25")),
        (" 3 ", Decimal("3")),
        (Decimal("1.10"), Decimal("1.10")),
    ],
)
def test_to_decimal_accepts_numbers_and_numeric_strings(value, expected):
    assert to_decimal(value) == expected


@pytest.mark.parametrize("value", [None, True, "abc", "", "NaN", "Infinity", [1]])
def test_to_decimal_unusable_values_are_zero(value):
    assert to_decimal(value) == Decimal("0")


def test_format_money_two_places():
    assert format_money(Decimal("15.5")) == "$15.50"
    assert format_money(20) == "$20.00"
    assert format_money("25.505") == "$25.51"
