from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.api.utils import now_utc
from storefront.core.config import Settings, get_settings
from storefront.core.errors import (
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    StoreError,
    StorefrontError,
    ValidationError,
)
from storefront.core.money import MAX_CENTS, from_cents, round_money, to_cents
from storefront.domain.orders.aggregates import OrderLine, OrderTotals, calculate_order_totals
from storefront.domain.orders.projections import hydrated_orders, serialize_order
from storefront.domain.orders.validation import CreateOrderRequest, validate_order_payload
from storefront.persistence.models import (
    ORDER_STATUSES,
    OrderItemModel,
    OrderModel,
    ProductModel,
    UserModel,
)

logger = logging.getLogger(__name__)


def _store_error(exc: SQLAlchemyError) -> StoreError:
    orig = getattr(exc, "orig", None)
    return StoreError(str(orig) if orig is not None else str(exc))


class OrderService:
    """Order placement and lookup against the relational store."""

    def __init__(self, session: Session, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()

    # -- creation ------------------------------------------------------------

    def create_order(self, payload: Any) -> dict[str, Any]:
        try:
            request = validate_order_payload(payload)
        except ValidationError as exc:
            logger.info("order rejected: kind=%s field=%s index=%s", exc.kind, exc.field, exc.index)
            raise
        if not self.settings.orders_enabled:
            raise StoreError("Order placement requires the database backends for users and products.")

        try:
            order_id, totals = self._place(request)
            self.session.commit()
        except StorefrontError as exc:
            self.session.rollback()
            logger.info("order rejected: kind=%s user_id=%s: %s", exc.kind, request.user_id, exc.message)
            raise
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("order transaction failed for user_id=%s", request.user_id)
            raise _store_error(exc) from exc

        # Stock was changed by server-side updates; drop cached product rows.
        self.session.expire_all()
        logger.info(
            "order created: id=%s items=%s total=%s",
            order_id,
            len(request.items),
            totals.total_price,
            extra={"order_id": order_id, "user_id": request.user_id},
        )
        return self.get_order(order_id)

    def _place(self, request: CreateOrderRequest) -> tuple[str, OrderTotals]:
        if self.session.get(UserModel, request.user_id) is None:
            raise NotFoundError("User not found")

        products = self._load_products(request.product_ids)
        for product_id in request.product_ids:
            if product_id not in products:
                raise NotFoundError(f"Product not found: {product_id}")

        currency = self._resolve_currency(request, products)
        self._check_stock(request, products)

        lines = [
            OrderLine(
                product_id=item.product_id,
                name=products[item.product_id].name,
                quantity=item.quantity,
                unit_price=item.price if item.price is not None else self._catalog_price(products[item.product_id]),
            )
            for item in request.items
        ]
        self._check_total_range(lines, request)
        totals = calculate_order_totals(lines, request.shipping_price, request.tax_price)
        if request.total != totals.total_price:
            logger.warning(
                "declared order total differs from computed total: declared=%s computed=%s user_id=%s",
                request.total,
                totals.total_price,
                request.user_id,
            )
        return self._write_order(request, lines, totals, currency, products), totals

    def _load_products(self, product_ids: list[str]) -> dict[str, ProductModel]:
        rows = self.session.scalars(select(ProductModel).where(ProductModel.id.in_(product_ids))).all()
        return {row.id: row for row in rows}

    def _resolve_currency(self, request: CreateOrderRequest, products: dict[str, ProductModel]) -> str:
        currency = request.currency or next(iter(products.values())).currency or self.settings.default_currency
        for product_id in request.product_ids:
            product = products[product_id]
            if product.currency != currency:
                raise ValidationError(
                    f"Product {product.name} ({product.id}) is priced in {product.currency}, "
                    f"but the order currency is {currency}.",
                    field="currency",
                )
        return currency

    @staticmethod
    def _check_stock(request: CreateOrderRequest, products: dict[str, ProductModel]) -> None:
        for product_id, requested in request.quantities().items():
            product = products[product_id]
            if product.stock is not None and product.stock < requested:
                raise InsufficientStockError(product.id, product.name, requested, product.stock)

    @staticmethod
    def _check_total_range(lines: list[OrderLine], request: CreateOrderRequest) -> None:
        cents = sum(to_cents(line.unit_price) * line.quantity for line in lines)
        cents += to_cents(request.shipping_price) + to_cents(request.tax_price)
        if cents > MAX_CENTS:
            raise ValidationError("Order total exceeds the largest supported amount.", field="total")

    @staticmethod
    def _catalog_price(product: ProductModel) -> Decimal:
        cents = product.sale_price_cents if product.sale_price_cents is not None else product.price_cents
        return from_cents(cents or 0)

    def _write_order(
        self,
        request: CreateOrderRequest,
        lines: list[OrderLine],
        totals: OrderTotals,
        currency: str,
        products: dict[str, ProductModel],
    ) -> str:
        now = now_utc()
        metadata = dict(request.metadata)
        metadata["declaredTotal"] = float(request.total)

        order = OrderModel(
            user_id=request.user_id,
            status="pending",
            payment_method=request.payment_method,
            shipping_address=request.shipping,
            currency=currency,
            items_price_cents=to_cents(totals.items_price),
            shipping_price_cents=to_cents(totals.shipping_price),
            tax_price_cents=to_cents(totals.tax_price),
            total_price_cents=to_cents(totals.total_price),
            notes=request.notes,
            extra=metadata,
            created_at=now,
            updated_at=now,
        )
        self.session.add(order)
        self.session.flush()

        for line in lines:
            self.session.add(
                OrderItemModel(
                    order_id=order.id,
                    product_id=line.product_id,
                    name=line.name,
                    quantity=line.quantity,
                    unit_price_cents=to_cents(line.unit_price),
                )
            )
            if products[line.product_id].stock is not None:
                self._decrement_stock(products[line.product_id], line.quantity, now)
        self.session.flush()
        return order.id

    def _decrement_stock(self, product: ProductModel, quantity: int, now: datetime) -> None:
        # Conditional in-database decrement: a concurrent order that already
        # took the stock makes this match zero rows instead of going negative.
        result = self.session.execute(
            update(ProductModel)
            .where(ProductModel.id == product.id)
            .where(ProductModel.stock.is_not(None))
            .where(ProductModel.stock >= quantity)
            .values(stock=ProductModel.stock - quantity, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            available = self.session.scalar(select(ProductModel.stock).where(ProductModel.id == product.id))
            raise InsufficientStockError(product.id, product.name, quantity, int(available or 0))

    # -- queries -------------------------------------------------------------

    def list_orders(
        self,
        user_id: str | None = None,
        status: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        stmt = hydrated_orders().order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
        if user_id:
            stmt = stmt.where(OrderModel.user_id == user_id)
        if status:
            self._check_status(status)
            stmt = stmt.where(OrderModel.status == status)
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        return [serialize_order(order) for order in self.session.scalars(stmt).all()]

    def _get_model(self, order_id: str) -> OrderModel:
        order = self.session.scalar(hydrated_orders().where(OrderModel.id == order_id))
        if order is None:
            raise NotFoundError(f"Order not found: {order_id}")
        return order

    def get_order(self, order_id: str) -> dict[str, Any]:
        return serialize_order(self._get_model(order_id))

    # -- fulfillment ---------------------------------------------------------

    @staticmethod
    def _check_status(status: str) -> None:
        if status not in ORDER_STATUSES:
            raise ValidationError(
                f"Invalid 'status'. Must be one of: {', '.join(ORDER_STATUSES)}.",
                field="status",
            )

    def update_status(
        self,
        order_id: str,
        status: str,
        *,
        is_paid: bool | None = None,
        paid_at: datetime | None = None,
        is_delivered: bool | None = None,
        delivered_at: datetime | None = None,
        notes: str | None = None,
        tracking_number: str | None = None,
        shipping_carrier: str | None = None,
    ) -> dict[str, Any]:
        self._check_status(status)
        order = self._get_model(order_id)
        now = now_utc()

        order.status = status
        if is_paid is not None:
            order.is_paid = is_paid
            order.paid_at = (paid_at or order.paid_at or now) if is_paid else None
        if status == "delivered" and is_delivered is None:
            is_delivered = True
        if is_delivered is not None:
            order.is_delivered = is_delivered
            order.delivered_at = (delivered_at or order.delivered_at or now) if is_delivered else None
        if notes is not None:
            order.notes = notes
        if tracking_number or shipping_carrier:
            metadata = dict(order.extra or {})
            fulfillment = dict(metadata.get("fulfillment") or {})
            if tracking_number:
                fulfillment["trackingNumber"] = tracking_number
            if shipping_carrier:
                fulfillment["shippingCarrier"] = shipping_carrier
            metadata["fulfillment"] = fulfillment
            order.extra = metadata
        order.updated_at = now
        self.session.flush()
        logger.info("order %s status set to %s", order_id, status, extra={"order_id": order_id})
        return serialize_order(order)

    def mark_paid(self, order_id: str, payment_result: dict[str, Any]) -> dict[str, Any]:
        order = self._get_model(order_id)
        if order.is_paid:
            raise ConflictError(f"Order already paid: {order_id}")
        if order.status in ("cancelled", "refunded"):
            raise ConflictError(f"Order {order_id} is {order.status} and cannot be paid")

        amount = payment_result.get("amount")
        if amount is not None and round_money(amount) != from_cents(order.total_price_cents):
            raise ValidationError(
                f"Payment amount {round_money(amount)} does not match order total {from_cents(order.total_price_cents)}.",
                field="amount",
            )
        currency = payment_result.get("currency")
        if currency is not None and currency.upper() != order.currency:
            raise ValidationError(
                f"Payment currency {currency} does not match order currency {order.currency}.",
                field="currency",
            )

        now = now_utc()
        paid_at = payment_result.get("paidAt") or now
        stored = {key: value for key, value in payment_result.items() if value is not None}
        if isinstance(stored.get("paidAt"), datetime):
            stored["paidAt"] = stored["paidAt"].isoformat()

        order.payment_result = stored
        order.is_paid = True
        order.paid_at = paid_at
        if order.status == "pending":
            order.status = "processing"
        order.updated_at = now
        self.session.flush()
        logger.info("order %s paid via %s", order_id, stored.get("provider", "unknown"), extra={"order_id": order_id})
        return serialize_order(order)
