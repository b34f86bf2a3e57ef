"""HTTP client for the storefront API, plus the checkout cart math.

``StorefrontClient`` is what a presentation layer (or a script) uses to talk
to the service. Every non-2xx response becomes an ``ApiError`` carrying the
status and the parsed body. Timeouts surface as status 408 and transport
failures as status 0.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import httpx

from storefront.core.config import Settings, get_settings
from storefront.core.money import round_money

logger = logging.getLogger(__name__)

PRODUCTS_PATH = "/products"
USERS_PATH = "/users"
ORDERS_PATH = "/orders"


class ApiError(Exception):
    def __init__(self, message: str, status: int = 500, data: Any = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.data = data

    def __repr__(self) -> str:
        return f"ApiError(status={self.status}, message={self.message!r})"


def _parse_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _clean_params(params: dict[str, Any] | None) -> dict[str, Any] | None:
    if not params:
        return None
    return {key: value for key, value in params.items() if value is not None}


class StorefrontClient:
    """Thin wrapper over ``httpx.Client``.

    Pass ``http_client`` to reuse an existing client (for example a FastAPI
    ``TestClient``); otherwise one is created from ``base_url`` and closed by
    ``close()``.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float | None = None,
        token: str | None = None,
        http_client: httpx.Client | None = None,
        settings: Settings | None = None,
    ):
        cfg = settings or get_settings()
        self.base_url = (base_url or cfg.client_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else cfg.client_timeout_seconds
        self.token = token
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(base_url=self.base_url, timeout=self.timeout)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "StorefrontClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def request(
        self,
        method: str,
        path: str,
        *,
        json_body: Any = None,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        try:
            response = self._client.request(
                method,
                path,
                headers=self._headers(),
                json=json_body,
                params=_clean_params(params),
                timeout=timeout if timeout is not None else self.timeout,
            )
        except httpx.TimeoutException as exc:
            logger.warning("%s %s timed out", method, path)
            raise ApiError("Request timeout", 408) from exc
        except httpx.TransportError as exc:
            raise ApiError(str(exc) or "Network error", 0) from exc

        if response.is_error:
            data = _parse_body(response)
            message = data.get("error") if isinstance(data, dict) and data.get("error") else None
            raise ApiError(message or response.reason_phrase or "Request failed", response.status_code, data)
        if response.status_code == 204:
            return None
        return _parse_body(response)

    # Products

    def get_products(self, **params: Any) -> dict[str, Any]:
        return self.request("GET", PRODUCTS_PATH, params=params)

    def get_product(self, ref: str) -> dict[str, Any]:
        return self.request("GET", f"{PRODUCTS_PATH}/{ref}")["data"]

    def create_product(self, product: dict[str, Any]) -> dict[str, Any]:
        return self.request("POST", PRODUCTS_PATH, json_body=product)["data"]

    def update_product(self, product_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        return self.request("PUT", f"{PRODUCTS_PATH}/{product_id}", json_body=changes)["data"]

    def delete_product(self, product_id: str) -> dict[str, Any]:
        return self.request("DELETE", f"{PRODUCTS_PATH}/{product_id}")["data"]

    # Users

    def get_users(self, *, id: str | None = None, email: str | None = None) -> Any:
        return self.request("GET", USERS_PATH, params={"id": id, "email": email})

    def create_user(self, user: dict[str, Any]) -> dict[str, Any]:
        return self.request("POST", USERS_PATH, json_body=user)

    def update_user(self, changes: dict[str, Any], *, id: str | None = None, email: str | None = None) -> dict[str, Any]:
        return self.request("PUT", USERS_PATH, json_body=changes, params={"id": id, "email": email})

    def delete_user(self, *, id: str | None = None, email: str | None = None) -> dict[str, Any]:
        return self.request("DELETE", USERS_PATH, params={"id": id, "email": email})["user"]

    # Orders

    def get_orders(self, **params: Any) -> list[dict[str, Any]]:
        return self.request("GET", ORDERS_PATH, params=params)["data"]

    def get_order(self, order_id: str) -> dict[str, Any]:
        return self.request("GET", f"{ORDERS_PATH}/{order_id}")["data"]

    def create_order(self, order: dict[str, Any]) -> dict[str, Any]:
        return self.request("POST", ORDERS_PATH, json_body=order)["data"]


TAX_RATE = Decimal("0.08")
FLAT_SHIPPING = Decimal("4.99")


@dataclass
class CartLine:
    product_id: str
    name: str
    unit_price: Decimal
    quantity: int

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass
class Cart:
    """Client-side cart: quantities per product and the checkout totals."""

    currency: str = "USD"
    lines: dict[str, CartLine] = field(default_factory=dict)

    def add(self, product: dict[str, Any], quantity: int = 1) -> CartLine:
        if quantity < 1:
            raise ValueError("quantity must be at least 1")
        price = product.get("salePrice")
        if price is None:
            price = product.get("price") or 0
        line = self.lines.get(product["id"])
        if line is None:
            line = CartLine(product["id"], product.get("name") or "", round_money(price), 0)
            self.lines[product["id"]] = line
        line.quantity += quantity
        return line

    def set_quantity(self, product_id: str, quantity: int) -> None:
        if quantity <= 0:
            self.remove(product_id)
        elif product_id in self.lines:
            self.lines[product_id].quantity = quantity

    def remove(self, product_id: str) -> None:
        self.lines.pop(product_id, None)

    def clear(self) -> None:
        self.lines.clear()

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def subtotal(self) -> Decimal:
        return round_money(sum((line.line_total for line in self.lines.values()), Decimal("0")))

    @property
    def tax(self) -> Decimal:
        return round_money(self.subtotal * TAX_RATE)

    @property
    def shipping(self) -> Decimal:
        return FLAT_SHIPPING if self.lines else Decimal("0.00")

    @property
    def total(self) -> Decimal:
        return round_money(self.subtotal + self.tax + self.shipping)

    def to_order_payload(
        self,
        user_id: str,
        *,
        shipping_address: dict[str, Any] | None = None,
        payment_method: str | None = None,
    ) -> dict[str, Any]:
        if self.is_empty:
            raise ValueError("Your cart is empty.")
        payload: dict[str, Any] = {
            "userId": user_id,
            "items": [
                {"productId": line.product_id, "quantity": line.quantity, "price": float(line.unit_price)}
                for line in self.lines.values()
            ],
            "shippingPrice": float(self.shipping),
            "taxPrice": float(self.tax),
            "total": float(self.total),
            "currency": self.currency,
        }
        if shipping_address:
            payload["shipping"] = shipping_address
        if payment_method:
            payload["paymentMethod"] = payment_method
        return payload
