from __future__ import annotations

from decimal import Decimal

import pytest

from storefront.core.errors import ValidationError
from storefront.core.money import Money, coerce_amount, from_cents, normalize_currency, round_money, to_cents


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(0.125, "0.13"), (2.675, "2.68"), (1.005, "1.01"), (10, "10.00"), ("3.14159", "3.14"), (Decimal("-0.005"), "-0.01")],
)
def test_round_money_is_half_up_on_the_decimal_value(raw, expected):
    assert round_money(raw) == Decimal(expected)


def test_cents_conversions():
    assert to_cents(Decimal("19.99")) == 1999
    assert to_cents(Decimal("0.005")) == 1
    assert from_cents(1999) == Decimal("19.99")
    assert Money.from_cents(250, "usd") == Money(Decimal("2.50"), "USD")
    assert Money.of(2.5, "eur").cents == 250
    assert Money.of("7", "USD").to_number() == 7.0


def test_coerce_amount_rejects_non_numbers():
    for bad in (None, True, "abc", [], float("inf"), "NaN"):
        with pytest.raises(ValidationError) as exc_info:
            coerce_amount(bad, "price")
        assert exc_info.value.field == "price"
    with pytest.raises(ValidationError):
        coerce_amount(-1, "price")
    assert coerce_amount(" 4.50 ", "price") == Decimal("4.50")


def test_parse_both_price_shapes():
    assert Money.parse(12.5, "usd") == (Money(Decimal("12.50"), "USD"), None)
    price, sale = Money.parse({"value": 20, "currency": "gbp", "salePrice": "15.5"}, "USD")
    assert price == Money(Decimal("20.00"), "GBP")
    assert sale == Money(Decimal("15.50"), "GBP")
    with pytest.raises(ValidationError):
        Money.parse({"currency": "USD"}, "USD")


def test_normalize_currency():
    assert normalize_currency(None, "usd") == "USD"
    assert normalize_currency(" eur ", "USD") == "EUR"
    with pytest.raises(ValidationError):
        normalize_currency("euro", "USD")
