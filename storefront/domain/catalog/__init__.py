from storefront.domain.catalog.query import CatalogQuery, run_in_memory
from storefront.domain.catalog.records import ProductRecord, slugify
from storefront.domain.catalog.repository import (
    JsonFileProductRepository,
    ProductRepository,
    SqlProductRepository,
    build_product_repository,
)
from storefront.domain.catalog.service import CatalogService
from storefront.domain.catalog.validation import ProductDraft, validate_product_payload

__all__ = [
    "CatalogQuery",
    "CatalogService",
    "JsonFileProductRepository",
    "ProductDraft",
    "ProductRecord",
    "ProductRepository",
    "SqlProductRepository",
    "build_product_repository",
    "run_in_memory",
    "slugify",
    "validate_product_payload",
]
