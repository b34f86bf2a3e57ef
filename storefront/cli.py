from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from storefront.core.config import get_settings
from storefront.core.errors import StorefrontError
from storefront.core.logging import configure_logging
from storefront.domain.catalog import CatalogService, build_product_repository
from storefront.domain.orders import OrderService
from storefront.persistence.db import Database

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Storefront CLI")
    parser.add_argument("--database-url", default=None, help="Override SF_DATABASE_URL")
    top = parser.add_subparsers(dest="command", required=True)

    top.add_parser("init-db", help="Create the relational schema")

    imp = top.add_parser("import-products", help="Import products from a JSON array file")
    imp.add_argument("file", help="Path to a JSON file holding an array of product objects")

    orders = top.add_parser("list-orders", help="Print the most recent orders as JSON")
    orders.add_argument("--limit", type=int, default=20)

    serve = top.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    serve.add_argument("--reload", action="store_true")

    return parser


def _open_database(args: argparse.Namespace) -> Database:
    database = Database(args.database_url or get_settings().database_url)
    database.init_schema()
    return database


def _init_db(args: argparse.Namespace) -> int:
    database = _open_database(args)
    database.dispose()
    print(json.dumps({"status": "ok", "database": database.engine.url.render_as_string(hide_password=True)}))
    return 0


def _import_products(args: argparse.Namespace) -> int:
    path = Path(args.file)
    try:
        documents = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        print(json.dumps({"status": "error", "error": f"cannot read {path}: {exc}"}))
        return 1
    if not isinstance(documents, list):
        print(json.dumps({"status": "error", "error": f"{path} must contain a JSON array"}))
        return 1

    settings = get_settings()
    database = _open_database(args)
    imported: list[str] = []
    failed: list[dict] = []
    try:
        for position, document in enumerate(documents):
            # One transaction per product so a bad record does not undo the rest.
            try:
                with database.session_scope() as session:
                    service = CatalogService(build_product_repository(session, settings), settings)
                    imported.append(service.create(document).id)
            except StorefrontError as exc:
                logger.warning("product at position %s rejected: %s", position, exc.message)
                failed.append({"index": position, "error": exc.message})
    finally:
        database.dispose()

    print(json.dumps({"imported": len(imported), "failed": failed, "ids": imported}, indent=2))
    return 0 if not failed else 1


def _list_orders(args: argparse.Namespace) -> int:
    database = _open_database(args)
    try:
        with database.session_scope() as session:
            orders = OrderService(session, get_settings()).list_orders(limit=args.limit)
    finally:
        database.dispose()
    print(json.dumps(orders, ensure_ascii=False, indent=2))
    return 0


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "storefront.main:app",
        host=args.host or settings.api_host,
        port=args.port or settings.api_port,
        reload=args.reload,
    )
    return 0


_COMMANDS = {
    "init-db": _init_db,
    "import-products": _import_products,
    "list-orders": _list_orders,
    "serve": _serve,
}


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging()

    handler = _COMMANDS.get(args.command)
    if handler is None:
        parser.error("unsupported command")
        return 2
    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
