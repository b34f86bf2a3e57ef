from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="SF_", extra="ignore")

    app_name: str = "Storefront"
    env: str = "dev"
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    database_url: str = "sqlite+pysqlite:///./storefront.db"

    # Backends: products database | file, users database | memory
    products_backend: Literal["database", "file"] = "database"
    products_file: Path = Path("./data/products.json")
    users_backend: Literal["database", "memory"] = "database"

    catalog_default_page_size: int = Field(default=20, ge=1)
    catalog_max_page_size: int = Field(default=100, ge=1)
    default_currency: str = Field(default="USD", min_length=3, max_length=3)

    password_schemes: list[str] = Field(default_factory=lambda: ["pbkdf2_sha256"])

    log_level: str = "INFO"
    log_json: bool = False

    client_base_url: str = "http://localhost:8000"
    client_timeout_seconds: float = 10.0

    def model_post_init(self, __context) -> None:
        if self.env.lower() == "dev":
            return

        dev_only: list[str] = []
        if self.products_backend == "file":
            dev_only.append("SF_PRODUCTS_BACKEND=file")
        if self.users_backend == "memory":
            dev_only.append("SF_USERS_BACKEND=memory")

        if dev_only:
            raise ValueError(
                "development-only backends are not allowed outside dev mode: " + ", ".join(sorted(dev_only))
            )

    @property
    def orders_enabled(self) -> bool:
        return self.products_backend == "database" and self.users_backend == "database"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
