from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from storefront.api.utils import isoformat, parse_timestamp
from storefront.core.errors import ValidationError
from storefront.core.money import Money, coerce_amount
from storefront.persistence.models import ProductModel

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
_NON_WORD = re.compile(r"[^\w\-]+")
_HYPHENS = re.compile(r"\-\-+")


def slugify(text: str) -> str:
    slug = str(text).strip().lower()
    slug = _WHITESPACE.sub("-", slug)
    slug = _NON_WORD.sub("", slug)
    return _HYPHENS.sub("-", slug)


@dataclass
class ProductRecord:
    id: str
    name: str
    price: Money
    sale_price: Money | None = None
    slug: str | None = None
    description: str = ""
    stock: int | None = None
    categories: list[str] = field(default_factory=list)
    image: str | None = None
    images: list[dict[str, Any]] = field(default_factory=list)
    is_featured: bool = False
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def currency(self) -> str:
        return self.price.currency

    @property
    def effective_price(self) -> Money:
        return self.sale_price or self.price

    @property
    def tracks_stock(self) -> bool:
        return self.stock is not None

    @property
    def category(self) -> str | list[str] | None:
        if not self.categories:
            return None
        if len(self.categories) == 1:
            return self.categories[0]
        return list(self.categories)

    def to_public(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "price": self.price.to_number(),
            "salePrice": self.sale_price.to_number() if self.sale_price else None,
            "currency": self.currency,
            "stock": self.stock,
            "category": self.category,
            "image": self.image,
            "images": list(self.images),
            "isFeatured": self.is_featured,
            "isActive": self.is_active,
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
        }

    # The JSON file store keeps the public shape as-is.
    to_document = to_public

    @classmethod
    def from_model(cls, row: ProductModel) -> "ProductRecord":
        return cls(
            id=row.id,
            name=row.name,
            price=Money.from_cents(row.price_cents, row.currency),
            sale_price=Money.from_cents(row.sale_price_cents, row.currency) if row.sale_price_cents is not None else None,
            slug=row.slug,
            description=row.description or "",
            stock=row.stock,
            categories=[c.name for c in row.categories],
            image=row.image,
            images=list(row.images or []),
            is_featured=bool(row.is_featured),
            is_active=bool(row.is_active),
            created_at=_as_utc(row.created_at),
            updated_at=_as_utc(row.updated_at),
        )

    @classmethod
    def from_document(cls, doc: dict[str, Any], default_currency: str) -> "ProductRecord":
        """Load a record from the JSON file store.

        Older files carry the price either as a number or as the structured
        ``{value, currency, salePrice}`` form; both are normalized here.
        """
        raw_price = doc.get("price", 0)
        currency = doc.get("currency") if isinstance(doc.get("currency"), str) else default_currency
        price, sale_price = Money.parse(raw_price if raw_price is not None else 0, currency)
        if sale_price is None and doc.get("salePrice") is not None:
            sale_price = Money(coerce_amount(doc["salePrice"], "salePrice"), price.currency)

        raw_category = doc.get("category")
        if isinstance(raw_category, str):
            categories = [raw_category]
        elif isinstance(raw_category, list):
            categories = [str(c) for c in raw_category]
        else:
            categories = []

        stock = doc.get("stock")
        return cls(
            id=str(doc["id"]),
            name=str(doc.get("name") or doc.get("title") or ""),
            price=price,
            sale_price=sale_price,
            slug=doc.get("slug"),
            description=doc.get("description") or "",
            stock=int(stock) if isinstance(stock, (int, float)) and not isinstance(stock, bool) else None,
            categories=categories,
            image=doc.get("image"),
            images=list(doc.get("images") or []),
            is_featured=bool(doc.get("isFeatured", False)),
            is_active=bool(doc.get("isActive", True)),
            created_at=parse_timestamp(doc.get("createdAt")),
            updated_at=parse_timestamp(doc.get("updatedAt")),
        )


def load_documents(docs: list[Any], default_currency: str) -> list[ProductRecord]:
    records: list[ProductRecord] = []
    for position, doc in enumerate(docs):
        if not isinstance(doc, dict) or "id" not in doc:
            logger.warning("skipping malformed product document at position %s", position)
            continue
        try:
            records.append(ProductRecord.from_document(doc, default_currency))
        except (ValidationError, ValueError) as exc:
            logger.warning("skipping product %s with unreadable fields: %s", doc.get("id"), exc)
    return records


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    # SQLite drops tzinfo on the way back; values are always written as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
