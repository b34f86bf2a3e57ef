from __future__ import annotations

import math
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from storefront.core.errors import ValidationError
from storefront.core.money import is_amount, is_finite_number, normalize_currency, round_money

# Upper bound of the order_items.quantity INTEGER column.
MAX_QUANTITY = 2**31 - 1


@dataclass(frozen=True)
class OrderItemRequest:
    product_id: str
    quantity: int
    price: Decimal | None = None


@dataclass(frozen=True)
class CreateOrderRequest:
    user_id: str
    items: tuple[OrderItemRequest, ...]
    total: Decimal
    shipping: dict[str, Any] | None = None
    payment_method: str | None = None
    shipping_price: Decimal = Decimal("0.00")
    tax_price: Decimal = Decimal("0.00")
    currency: str | None = None
    notes: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def product_ids(self) -> list[str]:
        """Distinct product ids in first-seen order."""
        return list(dict.fromkeys(item.product_id for item in self.items))

    def quantities(self) -> dict[str, int]:
        totals: dict[str, int] = {}
        for item in self.items:
            totals[item.product_id] = totals.get(item.product_id, 0) + item.quantity
        return totals


def _is_positive_integer(value: Any) -> bool:
    if not is_finite_number(value):
        return False
    return value > 0 and math.floor(value) == value and value <= MAX_QUANTITY


def _validate_item(raw: Any, idx: int) -> OrderItemRequest:
    if not isinstance(raw, dict):
        raise ValidationError(f"Item at index {idx} must be an object.", field="items", index=idx)

    product_id = raw.get("productId")
    if not isinstance(product_id, str) or not product_id:
        raise ValidationError(
            f"Missing or invalid 'productId' for item at index {idx}.",
            field="productId",
            index=idx,
        )

    quantity = raw.get("quantity")
    if not _is_positive_integer(quantity):
        raise ValidationError(
            f"Missing or invalid 'quantity' for item at index {idx}. Must be a positive integer.",
            field="quantity",
            index=idx,
        )

    price = None
    if "price" in raw:
        # An explicit null is invalid; only an absent key falls back to the catalog price.
        if not is_amount(raw["price"]):
            raise ValidationError(f"Invalid 'price' for item at index {idx}.", field="price", index=idx)
        price = round_money(raw["price"])

    return OrderItemRequest(product_id=product_id, quantity=int(quantity), price=price)


def _optional_amount(payload: dict, key: str) -> Decimal:
    value = payload.get(key)
    if value is None:
        return Decimal("0.00")
    if not is_amount(value):
        raise ValidationError(f"Invalid '{key}'. Must be a non-negative number.", field=key)
    return round_money(value)


def validate_order_payload(payload: Any) -> CreateOrderRequest:
    """Check an untrusted order payload and normalize it.

    Checks run in a fixed order and stop at the first failure, so the same
    payload always fails on the same field.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Payload must be a JSON object.")

    user_id = payload.get("userId")
    if not isinstance(user_id, str) or not user_id:
        raise ValidationError("Missing or invalid 'userId'.", field="userId")

    raw_items = payload.get("items")
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("'items' must be a non-empty array.", field="items")

    items = tuple(_validate_item(raw, idx) for idx, raw in enumerate(raw_items))

    total = payload.get("total")
    if not is_amount(total):
        raise ValidationError("Missing or invalid 'total'. Must be a non-negative number.", field="total")

    shipping = payload.get("shipping")
    payment_method = payload.get("paymentMethod")
    notes = payload.get("notes")
    metadata = payload.get("metadata")
    currency = payload.get("currency")

    return CreateOrderRequest(
        user_id=user_id,
        items=items,
        total=round_money(total),
        shipping=shipping if isinstance(shipping, dict) and shipping else None,
        payment_method=payment_method if isinstance(payment_method, str) and payment_method else None,
        shipping_price=_optional_amount(payload, "shippingPrice"),
        tax_price=_optional_amount(payload, "taxPrice"),
        currency=normalize_currency(currency, default="") if currency is not None else None,
        notes=notes if isinstance(notes, str) and notes else None,
        metadata=dict(metadata) if isinstance(metadata, dict) else {},
    )
