from __future__ import annotations

import logging
from typing import Any

from storefront.core.config import Settings
from storefront.core.errors import NotFoundError
from storefront.domain.catalog.query import CatalogQuery
from storefront.domain.catalog.records import ProductRecord
from storefront.domain.catalog.repository import ProductRepository
from storefront.domain.catalog.validation import validate_product_payload

logger = logging.getLogger(__name__)


class CatalogService:
    def __init__(self, repository: ProductRepository, settings: Settings):
        self.repository = repository
        self.settings = settings

    def build_query(self, **params: Any) -> CatalogQuery:
        return CatalogQuery.from_params(
            **params,
            default_limit=self.settings.catalog_default_page_size,
            max_limit=self.settings.catalog_max_page_size,
        )

    def search(self, query: CatalogQuery) -> tuple[list[ProductRecord], int]:
        return self.repository.find_many(query), self.repository.count(query)

    def get(self, ref: str) -> ProductRecord:
        record = self.repository.find_unique(ref)
        if record is None:
            raise NotFoundError(f"Product not found: {ref}")
        return record

    def create(self, body: Any) -> ProductRecord:
        draft = validate_product_payload(body, self.settings.default_currency)
        record = self.repository.create(draft)
        logger.info("product created: id=%s slug=%s backend=%s", record.id, record.slug, self.repository.backend_name)
        return record

    def update(self, product_id: str, body: Any) -> ProductRecord:
        draft = validate_product_payload(body, self.settings.default_currency, partial=True)
        record = self.repository.update_by_id(product_id, draft)
        if record is None:
            raise NotFoundError(f"Product not found: {product_id}")
        return record

    def delete(self, product_id: str) -> ProductRecord:
        record = self.repository.delete_by_id(product_id)
        if record is None:
            raise NotFoundError(f"Product not found: {product_id}")
        logger.info("product deleted: id=%s", product_id)
        return record
