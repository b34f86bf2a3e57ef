from __future__ import annotations

from decimal import Decimal

import pytest

from storefront.core.errors import ValidationError
from storefront.domain.orders import OrderLine, calculate_order_totals, validate_order_payload
from storefront.domain.orders.validation import MAX_QUANTITY


def _payload(**overrides):
    base = {"userId": "u1", "items": [{"productId": "p1", "quantity": 2}], "total": 40}
    base.update(overrides)
    return base


def test_valid_payload_is_normalized():
    req = validate_order_payload(
        _payload(
            items=[{"productId": "p1", "quantity": 2, "price": 19.999}, {"productId": "p1", "quantity": 1}],
            shippingPrice=4.99,
            currency="eur",
        )
    )
    assert req.user_id == "u1"
    assert req.items[0].price == Decimal("20.00")
    assert req.items[1].price is None
    assert req.total == Decimal("40.00")
    assert req.shipping_price == Decimal("4.99")
    assert req.currency == "EUR"
    assert req.product_ids == ["p1"]
    assert req.quantities() == {"p1": 3}


@pytest.mark.parametrize(
    ("payload", "field", "message"),
    [
        (None, None, "Payload must be a JSON object."),
        ([1, 2], None, "Payload must be a JSON object."),
        (_payload(userId=""), "userId", "Missing or invalid 'userId'."),
        (_payload(userId=42), "userId", "Missing or invalid 'userId'."),
        (_payload(items=[]), "items", "'items' must be a non-empty array."),
        (_payload(items="p1"), "items", "'items' must be a non-empty array."),
        (_payload(total=-1), "total", "Missing or invalid 'total'. Must be a non-negative number."),
        (_payload(total="40"), "total", "Missing or invalid 'total'. Must be a non-negative number."),
        (_payload(total=True), "total", "Missing or invalid 'total'. Must be a non-negative number."),
    ],
)
def test_payload_level_failures(payload, field, message):
    with pytest.raises(ValidationError) as exc_info:
        validate_order_payload(payload)
    assert exc_info.value.field == field
    assert exc_info.value.message == message
    assert exc_info.value.kind == "validation"


@pytest.mark.parametrize(
    ("item", "field"),
    [
        ("p1", "items"),
        ({"quantity": 1}, "productId"),
        ({"productId": "", "quantity": 1}, "productId"),
        ({"productId": "p2", "quantity": 0}, "quantity"),
        ({"productId": "p2", "quantity": 1.5}, "quantity"),
        ({"productId": "p2", "quantity": "3"}, "quantity"),
        ({"productId": "p2", "quantity": 1, "price": -5}, "price"),
        ({"productId": "p2", "quantity": 1, "price": None}, "price"),
        ({"productId": "p2", "quantity": 1, "price": 1e300}, "price"),
        ({"productId": "p2", "quantity": 2**31}, "quantity"),
        ({"productId": "p2", "quantity": 10**19}, "quantity"),
    ],
)
def test_item_failures_report_field_and_index(item, field):
    payload = _payload(items=[{"productId": "p1", "quantity": 1}, item])
    with pytest.raises(ValidationError) as exc_info:
        validate_order_payload(payload)
    assert exc_info.value.field == field
    assert exc_info.value.index == 1
    assert "index 1" in exc_info.value.message


def test_quantity_upper_bound_is_the_column_range():
    req = validate_order_payload(_payload(items=[{"productId": "p1", "quantity": MAX_QUANTITY}]))
    assert req.items[0].quantity == 2**31 - 1


def test_oversized_total_is_rejected():
    with pytest.raises(ValidationError) as exc_info:
        validate_order_payload(_payload(total=1e300))
    assert exc_info.value.field == "total"


def test_first_failure_wins_in_check_order():
    # userId is checked before items and total.
    with pytest.raises(ValidationError) as exc_info:
        validate_order_payload({"items": [], "total": -1})
    assert exc_info.value.field == "userId"


def test_validation_is_repeatable():
    bad = _payload(items=[{"productId": "p1", "quantity": -2}])
    outcomes = []
    for _ in range(2):
        with pytest.raises(ValidationError) as exc_info:
            validate_order_payload(bad)
        outcomes.append((exc_info.value.kind, exc_info.value.field, exc_info.value.index))
    assert outcomes[0] == outcomes[1] == ("validation", "quantity", 0)


def test_totals_round_each_component():
    lines = [
        OrderLine("p1", "Pen", 3, Decimal("0.335")),
        OrderLine("p2", "Pad", 1, Decimal("2.50")),
    ]
    totals = calculate_order_totals(lines, shipping_price=Decimal("4.994"), tax_price=0.1)
    assert totals.items_price == Decimal("3.51")
    assert totals.shipping_price == Decimal("4.99")
    assert totals.tax_price == Decimal("0.10")
    assert totals.total_price == Decimal("8.60")
