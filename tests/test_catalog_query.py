from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from storefront.core.errors import ValidationError
from storefront.domain.catalog import CatalogQuery, ProductRecord, run_in_memory
from storefront.domain.catalog.query import build_count, build_select
from storefront.persistence.models import ProductModel

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture()
def catalog(make_product):
    make_product("Red Mug", 12, product_id="a1", categories=("kitchen",), created_at=T0)
    make_product("Blue Mug", 9, product_id="a2", categories=("kitchen", "sale"), sale_price=7, created_at=T0 + timedelta(days=1))
    make_product("Red Scarf", 25, product_id="a3", categories=("apparel",), is_featured=True, created_at=T0 + timedelta(days=2))
    make_product("Lamp", 40, product_id="a4", description="Warm red glow", categories=("home",), created_at=T0 + timedelta(days=3))
    make_product("Tea", 9, product_id="a5", categories=("Reddish",), created_at=T0 + timedelta(days=3))
    make_product("Socks", 5, product_id="a6", categories=("apparel",), is_featured=True, created_at=T0 + timedelta(days=4))


def _all_records(database) -> list[ProductRecord]:
    with database.session_scope() as s:
        return [ProductRecord.from_model(row) for row in s.scalars(select(ProductModel)).all()]


def _sql(database, query: CatalogQuery) -> tuple[list[str], int]:
    with database.session_scope() as s:
        ids = [row.id for row in s.scalars(build_select(query)).all()]
        total = s.scalar(build_count(query))
    return ids, total


QUERIES = [
    CatalogQuery(),
    CatalogQuery(q="red"),
    CatalogQuery(q="RED", sort="price", order="asc"),
    CatalogQuery(category="apparel", sort="name", order="asc"),
    CatalogQuery(sort="price", order="desc", page=2, limit=2),
    CatalogQuery(sort="createdAt", order="asc"),
    CatalogQuery(sort="featured"),
    CatalogQuery(q="mug", category="sale"),
    CatalogQuery(q="100%"),
]


@pytest.mark.parametrize("query", QUERIES)
def test_sql_and_in_memory_paths_agree(catalog, database, query):
    items, total = run_in_memory(_all_records(database), query)
    assert _sql(database, query) == ([r.id for r in items], total)


def test_search_matches_name_description_and_category(catalog, database):
    ids, total = _sql(database, CatalogQuery(q="red", sort="name", order="asc"))
    assert total == 4
    assert ids == ["a4", "a1", "a3", "a5"]


def test_price_sort_uses_sale_price_and_breaks_ties_by_id(catalog, database):
    ids, _ = _sql(database, CatalogQuery(sort="price", order="asc", limit=3))
    assert ids == ["a6", "a2", "a5"]


def test_featured_first_then_newest(catalog, database):
    ids, _ = _sql(database, CatalogQuery(sort="featured"))
    assert ids[:2] == ["a6", "a3"]
    assert ids[2:] == ["a4", "a5", "a2", "a1"]


def test_missing_sort_values_are_largest():
    records = [
        ProductRecord.from_document({"id": "x1", "name": "A", "price": 1, "createdAt": "2024-01-02T00:00:00Z"}, "USD"),
        ProductRecord.from_document({"id": "x2", "name": "B", "price": 1}, "USD"),
        ProductRecord.from_document({"id": "x3", "name": "C", "price": 1, "createdAt": "2024-01-01T00:00:00Z"}, "USD"),
    ]
    asc, _ = run_in_memory(records, CatalogQuery(sort="createdAt", order="asc"))
    desc, _ = run_in_memory(records, CatalogQuery(sort="createdAt", order="desc"))
    assert [r.id for r in asc] == ["x3", "x1", "x2"]
    assert [r.id for r in desc] == ["x2", "x1", "x3"]


def test_from_params_aliases_and_clamping():
    query = CatalogQuery.from_params(sort="price_desc", page=0, limit=500, default_limit=20, max_limit=100)
    assert (query.sort, query.order, query.page, query.limit) == ("price", "desc", 1, 100)

    query = CatalogQuery.from_params(q="  red ", category=" ", default_limit=20, max_limit=100)
    assert (query.q, query.category, query.limit, query.offset) == ("red", None, 20, 0)

    with pytest.raises(ValidationError):
        CatalogQuery.from_params(sort="popularity")
    with pytest.raises(ValidationError):
        CatalogQuery.from_params(order="sideways")


def test_pagination_meta_total_is_full_match_count(client, make_product):
    for i in range(25):
        make_product(f"Red Item {i:02d}", 1 + i, created_at=T0 + timedelta(minutes=i))
    make_product("Green Item", 3)

    res = client.get("/products", params={"q": "red", "page": 2, "limit": 10})
    assert res.status_code == 200
    body = res.json()
    assert len(body["data"]) == 10
    assert body["meta"] == {"total": 25, "page": 2, "limit": 10}

    last = client.get("/products", params={"q": "red", "page": 3, "limit": 10}).json()
    assert len(last["data"]) == 5
    assert last["meta"]["total"] == 25

    assert client.get("/products", params={"sort": "bogus"}).status_code == 400


@pytest.mark.parametrize("term", ["crème", "CRÈME", "café", "Ünï"])
def test_non_ascii_search_agrees_on_both_paths(make_product, database, term):
    make_product("CAFÉ CRÈME", 4, product_id="c1", categories=("drinks",))
    make_product("Plain Tea", 3, product_id="c2", description="ünïcode blend", categories=("drinks",))
    query = CatalogQuery(q=term)
    items, total = run_in_memory(_all_records(database), query)
    assert total == 1
    assert _sql(database, query) == ([r.id for r in items], total)
