from __future__ import annotations

from typing import Any

from sqlalchemy import Select, select
from sqlalchemy.orm import selectinload

from storefront.api.utils import isoformat
from storefront.core.money import from_cents
from storefront.domain.catalog.records import ProductRecord
from storefront.persistence.models import OrderItemModel, OrderModel, UserModel


def hydrated_orders() -> Select[tuple[OrderModel]]:
    """Orders with items, each item's product, and the ordering user loaded."""
    return select(OrderModel).options(
        selectinload(OrderModel.items).selectinload(OrderItemModel.product),
        selectinload(OrderModel.user),
    )


def _amount(cents: int) -> float:
    return float(from_cents(cents))


def serialize_user_summary(user: UserModel | None) -> dict[str, Any] | None:
    if user is None:
        return None
    return {"id": user.id, "name": user.name, "email": user.email}


def serialize_order_item(item: OrderItemModel) -> dict[str, Any]:
    return {
        "id": item.id,
        "productId": item.product_id,
        "name": item.name,
        "quantity": item.quantity,
        "price": _amount(item.unit_price_cents),
        "product": ProductRecord.from_model(item.product).to_public() if item.product is not None else None,
    }


def serialize_order(order: OrderModel) -> dict[str, Any]:
    return {
        "id": order.id,
        "userId": order.user_id,
        "user": serialize_user_summary(order.user),
        "items": [serialize_order_item(item) for item in order.items],
        "shippingAddress": order.shipping_address,
        "paymentMethod": order.payment_method,
        "paymentResult": order.payment_result,
        "itemsPrice": _amount(order.items_price_cents),
        "shippingPrice": _amount(order.shipping_price_cents),
        "taxPrice": _amount(order.tax_price_cents),
        "totalPrice": _amount(order.total_price_cents),
        "currency": order.currency,
        "status": order.status,
        "isPaid": order.is_paid,
        "paidAt": isoformat(order.paid_at),
        "isDelivered": order.is_delivered,
        "deliveredAt": isoformat(order.delivered_at),
        "notes": order.notes,
        "metadata": order.extra or {},
        "createdAt": isoformat(order.created_at),
        "updatedAt": isoformat(order.updated_at),
    }
