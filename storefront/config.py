"""
Configuration and settings for the storefront backend.
"""

from __future__ import annotations

import secrets
from functools import lru_cache
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO")

    # Database (Postgres expected, any SQLAlchemy URL works)
    database_url: Optional[str] = Field(default=None)

    # S3-compatible object storage
    storage_endpoint: Optional[str] = Field(default=None)
    storage_region: Optional[str] = Field(default=None)
    storage_bucket: str = Field(default="products")
    storage_public_base_url: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)
    upload_url_expires_in: int = Field(default=600)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    # Admin sessions
    session_secret: Optional[str] = Field(default=None)
    session_cookie_name: str = Field(default="storefront_session")
    session_max_age_seconds: int = Field(default=7 * 24 * 3600)
    # Send cookies with the Secure flag; enable when served over HTTPS
    cookie_secure: bool = Field(default=False)

    # Cart
    cart_cookie_name: str = Field(default="cart_id")
    cart_cookie_max_age_seconds: int = Field(default=30 * 24 * 3600)

    # Catalog pagination
    default_page_size: int = Field(default=12, ge=1, le=50)
    admin_page_size: int = Field(default=20, ge=1)

    # Orders are placed over WhatsApp
    order_whatsapp_phone: Optional[str] = Field(default=None)
    order_greeting: str = Field(default="Hola, quiero hacer un pedido:")

    @model_validator(mode="after")
    def _resolve_session_secret(self) -> "Settings":
        if self.session_secret:
            return self
        if self.database_url and not self.use_in_memory_backends:
            raise ValueError("SESSION_SECRET must be set when a database is configured")
        # In-memory admins vanish with the process, so a per-process key is enough.
        self.session_secret = secrets.token_urlsafe(32)
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
