"""Catalog filtering, sorting and pagination.

The same query is answered either by pushing it down into SQL
(``build_select``) or by running the in-memory pipeline
(``filter_products`` -> ``sort_products`` -> ``paginate``) over records read
from the JSON file store. Both paths follow these rules:

* ``q`` matches case-insensitively as a substring of the name, the
  description or any single category.
* ``category`` matches one of the product's categories exactly.
* Records without a value for the sort key come last when ascending and
  first when descending. Ties are broken by id, ascending.
* ``featured`` puts featured products first, then newest first.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from sqlalchemy import Select, and_, exists, func, or_, select

from storefront.core.errors import ValidationError
from storefront.domain.catalog.records import ProductRecord
from storefront.persistence.models import ProductCategoryModel, ProductModel

SortKey = Literal["createdAt", "price", "name", "featured"]
SortOrder = Literal["asc", "desc"]

SORT_KEYS: tuple[str, ...] = ("createdAt", "price", "name", "featured")
SORT_ALIASES: dict[str, tuple[str, str | None]] = {
    "newest": ("createdAt", "desc"),
    "price_asc": ("price", "asc"),
    "price_desc": ("price", "desc"),
}


@dataclass(frozen=True)
class CatalogQuery:
    q: str = ""
    category: str | None = None
    sort: SortKey = "createdAt"
    order: SortOrder = "desc"
    page: int = 1
    limit: int = 20

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @classmethod
    def from_params(
        cls,
        *,
        q: str | None = None,
        category: str | None = None,
        sort: str | None = None,
        order: str | None = None,
        page: int | None = None,
        limit: int | None = None,
        default_limit: int = 20,
        max_limit: int = 100,
    ) -> "CatalogQuery":
        sort_key = (sort or "createdAt").strip()
        direction = (order or "").strip().lower() or None
        if sort_key in SORT_ALIASES:
            sort_key, implied = SORT_ALIASES[sort_key]
            direction = direction or implied
        if sort_key not in SORT_KEYS:
            raise ValidationError(
                f"Invalid 'sort'. Must be one of: {', '.join(SORT_KEYS + tuple(SORT_ALIASES))}.",
                field="sort",
            )
        direction = direction or "desc"
        if direction not in ("asc", "desc"):
            raise ValidationError("Invalid 'order'. Must be 'asc' or 'desc'.", field="order")

        return cls(
            q=(q or "").strip(),
            category=(category or "").strip() or None,
            sort=sort_key,  # type: ignore[arg-type]
            order=direction,  # type: ignore[arg-type]
            page=max(1, page or 1),
            limit=min(max_limit, max(1, limit or default_limit)),
        )


# -- in-memory pipeline ------------------------------------------------------


def _matches_search(record: ProductRecord, term: str) -> bool:
    needle = term.lower()
    if needle in record.name.lower() or needle in (record.description or "").lower():
        return True
    return any(needle in category.lower() for category in record.categories)


def filter_products(records: list[ProductRecord], query: CatalogQuery) -> list[ProductRecord]:
    filtered = records
    if query.q:
        filtered = [r for r in filtered if _matches_search(r, query.q)]
    if query.category:
        filtered = [r for r in filtered if query.category in r.categories]
    return filtered


def _sort_value(record: ProductRecord, sort: str) -> Any:
    if sort == "createdAt":
        return record.created_at
    if sort == "price":
        return record.effective_price.amount
    if sort == "name":
        return record.name
    raise ValueError(f"unsupported sort key: {sort}")


def _missing_last(value: Any) -> tuple[bool, Any]:
    # A missing value compares greater than any present value.
    return (value is None, 0 if value is None else value)


def sort_products(records: list[ProductRecord], query: CatalogQuery) -> list[ProductRecord]:
    # Python's sort is stable, so the passes run from the least to the most
    # significant key.
    ordered = sorted(records, key=lambda r: r.id)
    if query.sort == "featured":
        ordered.sort(key=lambda r: _missing_last(r.created_at), reverse=True)
        ordered.sort(key=lambda r: r.is_featured, reverse=True)
        return ordered
    ordered.sort(key=lambda r: _missing_last(_sort_value(r, query.sort)), reverse=query.order == "desc")
    return ordered


def paginate(records: list[ProductRecord], query: CatalogQuery) -> list[ProductRecord]:
    return records[query.offset : query.offset + query.limit]


def run_in_memory(records: list[ProductRecord], query: CatalogQuery) -> tuple[list[ProductRecord], int]:
    matched = filter_products(records, query)
    return paginate(sort_products(matched, query), query), len(matched)


# -- SQL pushdown ------------------------------------------------------------


def _where_clauses(query: CatalogQuery) -> list:
    clauses = []
    if query.q:
        category_hit = exists().where(
            and_(
                ProductCategoryModel.product_id == ProductModel.id,
                ProductCategoryModel.name.icontains(query.q, autoescape=True),
            )
        )
        clauses.append(
            or_(
                ProductModel.name.icontains(query.q, autoescape=True),
                ProductModel.description.icontains(query.q, autoescape=True),
                category_hit,
            )
        )
    if query.category:
        clauses.append(
            exists().where(
                and_(
                    ProductCategoryModel.product_id == ProductModel.id,
                    ProductCategoryModel.name == query.category,
                )
            )
        )
    return clauses


def _order_by(query: CatalogQuery) -> list:
    if query.sort == "featured":
        return [
            ProductModel.is_featured.desc(),
            ProductModel.created_at.desc().nulls_first(),
            ProductModel.id.asc(),
        ]
    column = {
        "createdAt": ProductModel.created_at,
        "price": func.coalesce(ProductModel.sale_price_cents, ProductModel.price_cents),
        "name": ProductModel.name,
    }[query.sort]
    primary = column.asc().nulls_last() if query.order == "asc" else column.desc().nulls_first()
    return [primary, ProductModel.id.asc()]


def build_select(query: CatalogQuery) -> Select[tuple[ProductModel]]:
    return (
        select(ProductModel)
        .where(*_where_clauses(query))
        .order_by(*_order_by(query))
        .offset(query.offset)
        .limit(query.limit)
    )


def build_count(query: CatalogQuery) -> Select[tuple[int]]:
    return select(func.count()).select_from(ProductModel).where(*_where_clauses(query))
