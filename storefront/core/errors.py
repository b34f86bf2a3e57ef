"""Error taxonomy shared by the domain services and the HTTP layer.

Every failure a caller can act on is raised as one of the tagged variants
below. The HTTP layer picks the response status from ``STATUS_BY_KIND`` and
never inspects message text.
"""

from __future__ import annotations

from typing import Any


class StorefrontError(Exception):
    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_response(self) -> dict[str, Any]:
        return {"success": False, "error": self.message}


class ValidationError(StorefrontError):
    kind = "validation"

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        index: int | None = None,
        errors: list[str] | None = None,
    ):
        super().__init__(message)
        self.field = field
        self.index = index
        self.errors = list(errors or [])

    def to_response(self) -> dict[str, Any]:
        body = super().to_response()
        if self.errors:
            body["errors"] = self.errors
        return body


class InsufficientStockError(ValidationError):
    kind = "insufficient_stock"

    def __init__(self, product_id: str, product_name: str, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for product {product_name} ({product_id}). "
            f"Requested {requested}, available {available}.",
            field="quantity",
        )
        self.product_id = product_id
        self.product_name = product_name
        self.requested = requested
        self.available = available


class NotFoundError(StorefrontError):
    kind = "not_found"


class ConflictError(StorefrontError):
    kind = "conflict"


class StoreError(StorefrontError):
    kind = "store"


STATUS_BY_KIND: dict[str, int] = {
    ValidationError.kind: 400,
    InsufficientStockError.kind: 400,
    NotFoundError.kind: 404,
    ConflictError.kind: 409,
    StoreError.kind: 500,
}


def http_status_for(exc: StorefrontError) -> int:
    return STATUS_BY_KIND.get(exc.kind, 500)
