from __future__ import annotations

import uuid
from datetime import datetime, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from storefront.core.config import Settings
from storefront.core.money import to_cents
from storefront.core.security import hash_password
from storefront.main import create_app
from storefront.persistence.db import Database
from storefront.persistence.models import ProductCategoryModel, ProductModel, UserModel


@pytest.fixture()
def test_db_path(tmp_path: Path) -> Path:
    return tmp_path / "test.sqlite"


@pytest.fixture()
def test_settings(test_db_path: Path) -> Settings:
    return Settings(
        env="dev",
        database_url=f"sqlite+pysqlite:///{test_db_path}",
        products_file=test_db_path.parent / "products.json",
        log_level="WARNING",
    )


@pytest.fixture()
def database(test_settings: Settings):
    db = Database(test_settings.database_url)
    db.init_schema()
    yield db
    db.drop_schema()
    db.dispose()


@pytest.fixture()
def app(test_settings: Settings, database: Database):
    return create_app(settings=test_settings, database=database)


@pytest.fixture()
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def session(database: Database):
    with database.session_scope() as s:
        yield s


@pytest.fixture()
def make_user(database: Database):
    def _make(email: str | None = None, *, user_id: str | None = None, name: str = "Test Buyer") -> str:
        now = datetime.now(timezone.utc)
        with database.session_scope() as s:
            row = UserModel(
                id=user_id or str(uuid.uuid4()),
                email=email or f"{uuid.uuid4().hex[:8]}@example.com",
                password_hash=hash_password("secret-pass"),
                name=name,
                created_at=now,
                updated_at=now,
            )
            s.add(row)
        return row.id

    return _make


@pytest.fixture()
def make_product(database: Database):
    def _make(
        name: str = "Widget",
        price: float = 20,
        *,
        product_id: str | None = None,
        stock: int | None = 5,
        sale_price: float | None = None,
        currency: str = "USD",
        categories: tuple[str, ...] = ("uncategorized",),
        description: str = "",
        is_featured: bool = False,
        created_at: datetime | None = None,
    ) -> str:
        now = created_at or datetime.now(timezone.utc)
        with database.session_scope() as s:
            row = ProductModel(
                id=product_id or str(uuid.uuid4()),
                name=name,
                description=description,
                price_cents=to_cents(price),
                sale_price_cents=to_cents(sale_price) if sale_price is not None else None,
                currency=currency,
                stock=stock,
                images=[],
                is_featured=is_featured,
                created_at=now,
                updated_at=now,
            )
            row.categories = [ProductCategoryModel(name=c, position=i) for i, c in enumerate(categories)]
            s.add(row)
        return row.id

    return _make


@pytest.fixture()
def product_stock(database: Database):
    def _stock(product_id: str) -> int | None:
        with database.session_scope() as s:
            return s.get(ProductModel, product_id).stock

    return _stock
