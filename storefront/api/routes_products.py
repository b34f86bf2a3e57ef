from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Query, Request
from sqlalchemy.orm import Session

from storefront.domain.catalog import CatalogService, build_product_repository
from storefront.persistence.db import get_session

router = APIRouter(tags=["products"])


def get_catalog_service(request: Request, session: Session = Depends(get_session)) -> CatalogService:
    settings = request.app.state.settings
    return CatalogService(build_product_repository(session, settings), settings)


@router.get("/products")
def list_products(
    q: str | None = Query(default=None),
    search: str | None = Query(default=None),
    category: str | None = Query(default=None),
    page: int | None = Query(default=None),
    limit: int | None = Query(default=None),
    sort: str | None = Query(default=None),
    order: str | None = Query(default=None),
    service: CatalogService = Depends(get_catalog_service),
):
    query = service.build_query(q=q or search, category=category, page=page, limit=limit, sort=sort, order=order)
    items, total = service.search(query)
    return {
        "data": [item.to_public() for item in items],
        "meta": {"total": total, "page": query.page, "limit": query.limit},
    }


@router.post("/products", status_code=201)
def create_product(
    payload: Any = Body(default=None),
    service: CatalogService = Depends(get_catalog_service),
):
    return {"data": service.create(payload).to_public()}


@router.get("/products/{ref}")
def get_product(ref: str, service: CatalogService = Depends(get_catalog_service)):
    return {"data": service.get(ref).to_public()}


@router.put("/products/{product_id}")
def update_product(
    product_id: str,
    payload: Any = Body(default=None),
    service: CatalogService = Depends(get_catalog_service),
):
    return {"data": service.update(product_id, payload).to_public()}


@router.delete("/products/{product_id}")
def delete_product(product_id: str, service: CatalogService = Depends(get_catalog_service)):
    return {"success": True, "data": service.delete(product_id).to_public()}
