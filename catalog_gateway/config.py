from __future__ import annotations

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    CATALOG_GATEWAY_DB_URL: str = "sqlite:///./catalog_gateway.db"
    CATALOG_GATEWAY_API_KEYS: str = ""
    SHOPIFY_ADMIN_API_VERSION: str = "2025-01"
    SHOPIFY_REQUEST_TIMEOUT_SECONDS: float = 20.0

    SHOPIFY_MAX_QUERY_COST: int = 1000

    CATALOG_DEFAULT_PAGE_SIZE: int = 20
    # Unset means the largest page the query cost limit allows.
    CATALOG_MAX_PAGE_SIZE: int | None = None
    CATALOG_PAGE_IMAGE_COUNT: int = 1
    CATALOG_PAGE_VARIANT_COUNT: int = 10

    @field_validator("CATALOG_GATEWAY_API_KEYS")
    @classmethod
    def normalize_api_keys(cls, value: str) -> str:
        keys = [key.strip() for key in value.split(",") if key.strip()]
        return ",".join(keys)

    @field_validator("SHOPIFY_REQUEST_TIMEOUT_SECONDS")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("SHOPIFY_REQUEST_TIMEOUT_SECONDS must be positive")
        return value

    @model_validator(mode="after")
    def validate_page_sizes(self) -> "Settings":
        if self.CATALOG_MAX_PAGE_SIZE is not None and self.CATALOG_MAX_PAGE_SIZE < 1:
            raise ValueError("CATALOG_MAX_PAGE_SIZE must be at least 1")
        if self.CATALOG_DEFAULT_PAGE_SIZE < 1:
            raise ValueError("CATALOG_DEFAULT_PAGE_SIZE must be at least 1")
        if self.CATALOG_PAGE_IMAGE_COUNT < 1 or self.CATALOG_PAGE_VARIANT_COUNT < 1:
            raise ValueError("CATALOG_PAGE_IMAGE_COUNT and CATALOG_PAGE_VARIANT_COUNT must be at least 1")
        return self

    @property
    def api_keys(self) -> list[str]:
        return [key for key in self.CATALOG_GATEWAY_API_KEYS.split(",") if key]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
