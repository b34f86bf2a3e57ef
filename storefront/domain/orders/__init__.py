from storefront.domain.orders.aggregates import OrderLine, OrderTotals, calculate_order_totals
from storefront.domain.orders.service import OrderService
from storefront.domain.orders.validation import CreateOrderRequest, OrderItemRequest, validate_order_payload

__all__ = [
    "CreateOrderRequest",
    "OrderItemRequest",
    "OrderLine",
    "OrderService",
    "OrderTotals",
    "calculate_order_totals",
    "validate_order_payload",
]
