from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from storefront.main import create_app


def test_create_product_defaults_and_slug(client):
    res = client.post("/products", json={"name": "  Linen Shirt! ", "price": 39.5, "stock": 3})
    assert res.status_code == 201
    product = res.json()["data"]
    assert product["name"] == "Linen Shirt!"
    assert product["slug"] == "linen-shirt"
    assert product["price"] == 39.5
    assert product["currency"] == "USD"
    assert product["category"] == "uncategorized"
    assert product["stock"] == 3

    by_slug = client.get("/products/linen-shirt")
    assert by_slug.status_code == 200
    assert by_slug.json()["data"]["id"] == product["id"]
    assert client.get(f"/products/{product['id']}").json()["data"]["slug"] == "linen-shirt"


def test_structured_price_and_categories(client):
    res = client.post(
        "/products",
        json={
            "name": "Kettle",
            "price": {"value": "49.999", "currency": "eur", "salePrice": 39},
            "category": ["kitchen", "sale", "kitchen"],
            "images": ["https://cdn.example.com/k.jpg", {"url": "https://cdn.example.com/k2.jpg", "alt": "side"}],
        },
    )
    assert res.status_code == 201
    product = res.json()["data"]
    assert product["price"] == 50.0
    assert product["salePrice"] == 39.0
    assert product["currency"] == "EUR"
    assert product["category"] == ["kitchen", "sale"]
    assert product["images"][1] == {"url": "https://cdn.example.com/k2.jpg", "alt": "side"}


def test_invalid_product_reports_every_error(client):
    res = client.post("/products", json={"price": "cheap", "stock": -1, "isFeatured": "yes"})
    assert res.status_code == 400
    body = res.json()
    assert body["success"] is False
    assert body["errors"][0] == "name is required and must be a non-empty string"
    assert any(e.startswith("price is required and must be a number") for e in body["errors"])
    assert "stock must be a non-negative integer" in body["errors"]
    assert "isFeatured must be a boolean" in body["errors"]
    assert body["error"] == body["errors"][0]


def test_duplicate_slug_is_conflict(client):
    assert client.post("/products", json={"name": "Cap", "price": 10}).status_code == 201
    dup = client.post("/products", json={"name": "cap", "price": 12})
    assert dup.status_code == 409
    assert "cap" in dup.json()["error"]


def test_update_and_delete_product(client):
    product = client.post("/products", json={"name": "Vase", "price": 15, "category": "home"}).json()["data"]

    updated = client.put(f"/products/{product['id']}", json={"price": 12.5, "category": ["home", "decor"]})
    assert updated.status_code == 200
    data = updated.json()["data"]
    assert data["price"] == 12.5
    assert data["name"] == "Vase"
    assert data["category"] == ["home", "decor"]

    assert client.put(f"/products/{product['id']}", json={"stock": 1.5}).status_code == 400
    assert client.put("/products/nope", json={"price": 1}).status_code == 404

    deleted = client.delete(f"/products/{product['id']}")
    assert deleted.status_code == 200
    assert deleted.json()["data"]["id"] == product["id"]
    assert client.get(f"/products/{product['id']}").status_code == 404
    assert client.delete(f"/products/{product['id']}").status_code == 404


def test_category_filter_and_sort_alias(client):
    client.post("/products", json={"name": "A", "price": 3, "category": "toys"})
    client.post("/products", json={"name": "B", "price": 1, "category": "toys"})
    client.post("/products", json={"name": "C", "price": 2, "category": "books"})

    body = client.get("/products", params={"category": "toys", "sort": "price_asc"}).json()
    assert [p["name"] for p in body["data"]] == ["B", "A"]
    assert body["meta"]["total"] == 2


@pytest.fixture()
def file_client(test_settings, database):
    settings = test_settings.model_copy(update={"products_backend": "file"})
    with TestClient(create_app(settings=settings, database=database)) as c:
        yield c, settings.products_file


def test_file_backend_round_trip(file_client):
    client, path = file_client
    first = client.post("/products", json={"name": "Paper Lamp", "price": 18}).json()["data"]
    second = client.post("/products", json={"name": "Stone Lamp", "price": 30, "category": "lighting"}).json()["data"]

    stored = json.loads(path.read_text(encoding="utf-8"))
    assert [doc["id"] for doc in stored] == [second["id"], first["id"]]
    assert stored[0]["slug"] == "stone-lamp"

    listing = client.get("/products", params={"q": "lamp", "sort": "price", "order": "asc"}).json()
    assert [p["name"] for p in listing["data"]] == ["Paper Lamp", "Stone Lamp"]
    assert listing["meta"]["total"] == 2

    assert client.post("/products", json={"name": "Paper Lamp", "price": 5}).status_code == 409
    assert client.get("/products/stone-lamp").json()["data"]["id"] == second["id"]
    assert client.delete(f"/products/{first['id']}").status_code == 200
    assert len(json.loads(path.read_text(encoding="utf-8"))) == 1


def test_file_backend_reads_legacy_price_shapes(file_client):
    client, path = file_client
    path.write_text(
        json.dumps(
            [
                {"id": "old-1", "name": "Old Mug", "price": {"value": 8, "currency": "USD", "salePrice": 6}},
                {"id": "old-2", "title": "Old Pot", "price": 11},
                {"name": "no id, skipped"},
            ]
        ),
        encoding="utf-8",
    )
    body = client.get("/products", params={"sort": "price", "order": "asc"}).json()
    assert [(p["id"], p["price"], p["salePrice"]) for p in body["data"]] == [("old-1", 8.0, 6.0), ("old-2", 11.0, None)]
    assert body["data"][1]["name"] == "Old Pot"


def test_corrupt_products_file_is_store_error(file_client):
    client, path = file_client
    path.write_text("{not json", encoding="utf-8")
    res = client.get("/products")
    assert res.status_code == 500
    assert res.json()["success"] is False


def test_search_parameter_is_an_alias_for_q(client):
    client.post("/products", json={"name": "Oak Table", "price": 120})
    client.post("/products", json={"name": "Pine Shelf", "price": 60})

    body = client.get("/products", params={"search": "oak"}).json()
    assert [p["name"] for p in body["data"]] == ["Oak Table"]
    assert client.get("/products", params={"q": "pine", "search": "oak"}).json()["data"][0]["name"] == "Pine Shelf"
