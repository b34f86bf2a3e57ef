from __future__ import annotations

import json
import logging
import os
import threading
import uuid
from copy import copy
from pathlib import Path
from typing import Protocol

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.api.utils import now_utc
from storefront.core.config import Settings, get_settings
from storefront.core.errors import ConflictError, StoreError
from storefront.domain.catalog.query import CatalogQuery, build_count, build_select, run_in_memory
from storefront.domain.catalog.records import ProductRecord, load_documents
from storefront.domain.catalog.validation import ProductDraft
from storefront.persistence.models import ProductCategoryModel, ProductModel

logger = logging.getLogger(__name__)


class ProductRepository(Protocol):
    backend_name: str

    def find_many(self, query: CatalogQuery) -> list[ProductRecord]:
        ...

    def count(self, query: CatalogQuery) -> int:
        ...

    def find_unique(self, ref: str) -> ProductRecord | None:
        ...

    def create(self, draft: ProductDraft) -> ProductRecord:
        ...

    def update_by_id(self, product_id: str, draft: ProductDraft) -> ProductRecord | None:
        ...

    def delete_by_id(self, product_id: str) -> ProductRecord | None:
        ...


_DRAFT_FIELDS = (
    "name",
    "description",
    "price",
    "sale_price",
    "stock",
    "categories",
    "image",
    "images",
    "slug",
    "is_featured",
    "is_active",
)
_CLEARED_VALUES = {"description": "", "categories": [], "images": [], "is_featured": False, "is_active": True}


def _apply_draft(record: ProductRecord, draft: ProductDraft) -> None:
    for attr in _DRAFT_FIELDS:
        if not draft.has(attr):
            continue
        value = getattr(draft, attr)
        if value is None and attr in _CLEARED_VALUES:
            value = copy(_CLEARED_VALUES[attr])
        setattr(record, attr, value)


class SqlProductRepository:
    backend_name = "database"

    def __init__(self, session: Session):
        self.session = session

    def find_many(self, query: CatalogQuery) -> list[ProductRecord]:
        rows = self.session.scalars(build_select(query)).all()
        return [ProductRecord.from_model(row) for row in rows]

    def count(self, query: CatalogQuery) -> int:
        return int(self.session.scalar(build_count(query)) or 0)

    def _get_row(self, ref: str) -> ProductModel | None:
        return self.session.scalar(
            select(ProductModel).where(or_(ProductModel.id == ref, ProductModel.slug == ref))
        )

    def find_unique(self, ref: str) -> ProductRecord | None:
        row = self._get_row(ref)
        return ProductRecord.from_model(row) if row is not None else None

    def _ensure_slug_free(self, slug: str | None, product_id: str | None = None) -> None:
        if not slug:
            return
        stmt = select(ProductModel.id).where(ProductModel.slug == slug)
        if product_id is not None:
            stmt = stmt.where(ProductModel.id != product_id)
        if self.session.scalar(stmt) is not None:
            raise ConflictError(f"Product slug already in use: {slug}")

    def _write_row(self, row: ProductModel, record: ProductRecord) -> None:
        row.name = record.name
        row.slug = record.slug
        row.description = record.description
        row.currency = record.price.currency
        row.price_cents = record.price.cents
        row.sale_price_cents = record.sale_price.cents if record.sale_price else None
        row.stock = record.stock
        row.image = record.image
        row.images = list(record.images)
        row.is_featured = record.is_featured
        row.is_active = record.is_active
        row.updated_at = record.updated_at
        existing = [c.name for c in row.categories]
        if existing != record.categories:
            row.categories.clear()
            # Flush the removals first so re-added names don't trip the unique constraint.
            self.session.flush()
            row.categories.extend(
                ProductCategoryModel(name=name, position=position) for position, name in enumerate(record.categories)
            )

    def _flush(self) -> None:
        try:
            self.session.flush()
        except IntegrityError as exc:
            raise ConflictError(f"Product conflicts with an existing record: {exc.orig}") from exc

    def create(self, draft: ProductDraft) -> ProductRecord:
        self._ensure_slug_free(draft.slug)
        now = now_utc()
        record = ProductRecord(id=str(uuid.uuid4()), name=draft.name or "", price=draft.price, created_at=now, updated_at=now)
        _apply_draft(record, draft)
        row = ProductModel(id=record.id, created_at=now)
        self._write_row(row, record)
        self.session.add(row)
        self._flush()
        return ProductRecord.from_model(row)

    def update_by_id(self, product_id: str, draft: ProductDraft) -> ProductRecord | None:
        row = self.session.get(ProductModel, product_id)
        if row is None:
            return None
        if draft.has("slug"):
            self._ensure_slug_free(draft.slug, product_id=product_id)
        record = ProductRecord.from_model(row)
        _apply_draft(record, draft)
        record.updated_at = now_utc()
        self._write_row(row, record)
        self._flush()
        return ProductRecord.from_model(row)

    def delete_by_id(self, product_id: str) -> ProductRecord | None:
        row = self.session.get(ProductModel, product_id)
        if row is None:
            return None
        record = ProductRecord.from_model(row)
        self.session.delete(row)
        self.session.flush()
        return record


_FILE_LOCKS: dict[Path, threading.Lock] = {}
_FILE_LOCKS_GUARD = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    with _FILE_LOCKS_GUARD:
        return _FILE_LOCKS.setdefault(path.resolve(), threading.Lock())


class JsonFileProductRepository:
    """Products kept in a JSON array file. Development fallback only.

    The lock serializes access within one process; several processes sharing
    the file are not coordinated.
    """

    backend_name = "file"

    def __init__(self, path: Path, default_currency: str = "USD"):
        self.path = Path(path)
        self.default_currency = default_currency
        self._lock = _lock_for(self.path)

    def _ensure_file(self) -> None:
        if self.path.exists():
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("[]", encoding="utf-8")

    def _read_documents(self) -> list:
        self._ensure_file()
        try:
            parsed = json.loads(self.path.read_text(encoding="utf-8") or "[]")
        except json.JSONDecodeError as exc:
            raise StoreError(f"products file {self.path} is not valid JSON: {exc}") from exc
        if not isinstance(parsed, list):
            raise StoreError(f"products file {self.path} must contain a JSON array")
        return parsed

    def _read(self) -> list[ProductRecord]:
        return load_documents(self._read_documents(), self.default_currency)

    def _write(self, records: list[ProductRecord]) -> None:
        self._ensure_file()
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(
            json.dumps([r.to_document() for r in records], indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
        os.replace(tmp_path, self.path)

    def find_many(self, query: CatalogQuery) -> list[ProductRecord]:
        with self._lock:
            items, _ = run_in_memory(self._read(), query)
        return items

    def count(self, query: CatalogQuery) -> int:
        with self._lock:
            _, total = run_in_memory(self._read(), query)
        return total

    def find_unique(self, ref: str) -> ProductRecord | None:
        with self._lock:
            records = self._read()
        return next((r for r in records if r.id == ref or (r.slug and r.slug == ref)), None)

    @staticmethod
    def _ensure_slug_free(records: list[ProductRecord], slug: str | None, product_id: str | None = None) -> None:
        if slug and any(r.slug == slug and r.id != product_id for r in records):
            raise ConflictError(f"Product slug already in use: {slug}")

    def create(self, draft: ProductDraft) -> ProductRecord:
        with self._lock:
            records = self._read()
            self._ensure_slug_free(records, draft.slug)
            now = now_utc()
            record = ProductRecord(
                id=str(uuid.uuid4()), name=draft.name or "", price=draft.price, created_at=now, updated_at=now
            )
            _apply_draft(record, draft)
            # Newest first, matching the default catalog order.
            records.insert(0, record)
            self._write(records)
        logger.info("product %s stored in %s", record.id, self.path)
        return record

    def update_by_id(self, product_id: str, draft: ProductDraft) -> ProductRecord | None:
        with self._lock:
            records = self._read()
            record = next((r for r in records if r.id == product_id), None)
            if record is None:
                return None
            if draft.has("slug"):
                self._ensure_slug_free(records, draft.slug, product_id=product_id)
            _apply_draft(record, draft)
            record.updated_at = now_utc()
            self._write(records)
        return record

    def delete_by_id(self, product_id: str) -> ProductRecord | None:
        with self._lock:
            records = self._read()
            record = next((r for r in records if r.id == product_id), None)
            if record is None:
                return None
            self._write([r for r in records if r.id != product_id])
        return record


def build_product_repository(session: Session, settings: Settings | None = None) -> ProductRepository:
    cfg = settings or get_settings()
    if cfg.products_backend == "file":
        return JsonFileProductRepository(cfg.products_file, default_currency=cfg.default_currency)
    return SqlProductRepository(session)
