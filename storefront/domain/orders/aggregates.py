from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from storefront.core.money import round_money


@dataclass(frozen=True)
class OrderLine:
    product_id: str
    name: str
    quantity: int
    unit_price: Decimal

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class OrderTotals:
    items_price: Decimal
    shipping_price: Decimal
    tax_price: Decimal
    total_price: Decimal


def calculate_order_totals(
    lines: Iterable[OrderLine],
    shipping_price: Decimal | int | float = 0,
    tax_price: Decimal | int | float = 0,
) -> OrderTotals:
    # Each component is rounded before the grand total is summed.
    items_price = round_money(sum((line.line_total for line in lines), Decimal("0")))
    shipping = round_money(shipping_price)
    tax = round_money(tax_price)
    return OrderTotals(
        items_price=items_price,
        shipping_price=shipping,
        tax_price=tax,
        total_price=round_money(items_price + shipping + tax),
    )
