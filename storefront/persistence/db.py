from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from storefront.persistence.models import Base


def create_engine_from_url(url: str, **kwargs) -> Engine:
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    engine = create_engine(url, future=True, pool_pre_ping=True, **kwargs)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        event.listen(engine, "connect", _register_unicode_lower)
    return engine


def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _unicode_lower(value):
    return value.lower() if isinstance(value, str) else value


def _register_unicode_lower(dbapi_connection, _connection_record) -> None:
    # The built-in lower() only folds ASCII; icontains filters rely on it.
    dbapi_connection.create_function("lower", 1, _unicode_lower, deterministic=True)


class Database:
    """Explicitly constructed store handle.

    Opened once at process start (``init_schema``) and released at shutdown
    (``dispose``). Callers receive it by injection; there is no module-level
    engine.
    """

    def __init__(self, url: str, engine: Engine | None = None):
        self.url = url
        self.engine = engine or create_engine_from_url(url)
        self.session_factory = sessionmaker(
            bind=self.engine,
            autoflush=False,
            autocommit=False,
            expire_on_commit=False,
        )

    def init_schema(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    def drop_schema(self) -> None:
        Base.metadata.drop_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_session(request: Request) -> Generator[Session, None, None]:
    with get_database(request).session_scope() as session:
        yield session
