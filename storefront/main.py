from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from storefront.api.routes_orders import router as orders_router
from storefront.api.routes_products import router as products_router
from storefront.api.routes_users import router as users_router
from storefront.core.config import Settings, get_settings
from storefront.core.errors import StorefrontError, http_status_for
from storefront.core.logging import configure_logging
from storefront.domain.users.repository import InMemoryUserRepository
from storefront.persistence.db import Database

logger = logging.getLogger(__name__)


def _describe_request_error(exc: RequestValidationError) -> list[str]:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = error.get("msg", "invalid value")
        messages.append(f"{location}: {message}" if location else message)
    return messages


def create_app(settings: Settings | None = None, database: Database | None = None) -> FastAPI:
    settings = settings or get_settings()
    database = database or Database(settings.database_url)

    app = FastAPI(title=settings.app_name)
    app.state.settings = settings
    app.state.database = database
    app.state.user_memory = InMemoryUserRepository()

    @app.on_event("startup")
    def on_startup() -> None:
        configure_logging(settings.log_level, settings.log_json)
        database.init_schema()
        logger.info(
            "storefront ready: env=%s products_backend=%s users_backend=%s",
            settings.env,
            settings.products_backend,
            settings.users_backend,
        )

    @app.on_event("shutdown")
    def on_shutdown() -> None:
        database.dispose()

    @app.exception_handler(StorefrontError)
    async def storefront_error_handler(_: Request, exc: StorefrontError):
        status_code = http_status_for(exc)
        if status_code >= 500:
            logger.error("request failed with %s: %s", exc.kind, exc.message)
        return JSONResponse(status_code=status_code, content=exc.to_response())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(_: Request, exc: RequestValidationError):
        errors = _describe_request_error(exc)
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": errors[0] if errors else "Invalid request", "errors": errors},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"success": False, "error": "Internal Server Error"})

    @app.get("/healthz")
    def healthz() -> dict:
        return {"status": "ok"}

    app.include_router(products_router)
    app.include_router(orders_router)
    app.include_router(users_router)
    return app


app = create_app()
