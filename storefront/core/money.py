from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from storefront.core.errors import ValidationError

CENT = Decimal("0.01")

# Amounts are stored as integer cents in BIGINT columns.
MAX_CENTS = 2**63 - 1
MAX_AMOUNT = Decimal(MAX_CENTS // 100)


def round_money(value: Decimal | int | float | str) -> Decimal:
    if isinstance(value, float):
        value = repr(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(value: Decimal) -> int:
    return int(round_money(value) * 100)


def from_cents(cents: int) -> Decimal:
    return (Decimal(int(cents)) / 100).quantize(CENT)


def is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def is_amount(value: Any) -> bool:
    """A finite, non-negative number that fits the cents columns."""
    return is_finite_number(value) and 0 <= value <= MAX_AMOUNT


def coerce_amount(raw: Any, field: str) -> Decimal:
    """Convert a JSON number (or numeric string) into a rounded, non-negative amount."""
    if isinstance(raw, bool) or raw is None:
        raise ValidationError(f"'{field}' must be a number.", field=field)
    if isinstance(raw, (int, float)):
        if not math.isfinite(raw):
            raise ValidationError(f"'{field}' must be a finite number.", field=field)
        if abs(raw) > MAX_AMOUNT:
            raise ValidationError(f"'{field}' is too large.", field=field)
        amount = round_money(raw)
    elif isinstance(raw, str):
        try:
            amount = Decimal(raw.strip())
        except InvalidOperation as exc:
            raise ValidationError(f"'{field}' must be a number.", field=field) from exc
        if not amount.is_finite():
            raise ValidationError(f"'{field}' must be a finite number.", field=field)
        if abs(amount) > MAX_AMOUNT:
            raise ValidationError(f"'{field}' is too large.", field=field)
        amount = round_money(amount)
    else:
        raise ValidationError(f"'{field}' must be a number.", field=field)
    if amount < 0:
        raise ValidationError(f"'{field}' must not be negative.", field=field)
    return amount


def normalize_currency(raw: Any, default: str, field: str = "currency") -> str:
    if raw is None:
        return default.upper()
    if not isinstance(raw, str) or len(raw.strip()) != 3 or not raw.strip().isalpha():
        raise ValidationError(f"'{field}' must be a 3-letter ISO 4217 code.", field=field)
    return raw.strip().upper()


@dataclass(frozen=True)
class Money:
    amount: Decimal
    currency: str

    @classmethod
    def of(cls, amount: Decimal | int | float | str, currency: str) -> "Money":
        return cls(amount=round_money(amount), currency=currency.upper())

    @classmethod
    def from_cents(cls, cents: int, currency: str) -> "Money":
        return cls(amount=from_cents(cents), currency=currency.upper())

    @property
    def cents(self) -> int:
        return to_cents(self.amount)

    def to_number(self) -> float:
        return float(self.amount)

    @classmethod
    def parse(cls, raw: Any, default_currency: str, field: str = "price") -> tuple["Money", "Money | None"]:
        """Normalize either price shape into ``(price, sale_price)``.

        Accepts a plain number (``19.99``) or the structured form
        ``{"value": 19.99, "currency": "EUR", "salePrice": 14.99}``.
        """
        if isinstance(raw, dict):
            if "value" not in raw:
                raise ValidationError(f"'{field}.value' is required.", field=field)
            currency = normalize_currency(raw.get("currency"), default_currency, field=f"{field}.currency")
            price = cls(coerce_amount(raw["value"], f"{field}.value"), currency)
            sale_raw = raw.get("salePrice")
            sale = None if sale_raw is None else cls(coerce_amount(sale_raw, f"{field}.salePrice"), currency)
            return price, sale
        return cls(coerce_amount(raw, field), default_currency.upper()), None
