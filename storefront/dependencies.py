"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import uuid

from fastapi import Depends, Request, Response

from storefront.auth import user_for_session
from storefront.config import Settings, get_settings
from storefront.db import AdminUserRecord, DbClient, InMemoryDbClient
from storefront.storage import InMemoryStorageClient, S3StorageClient, StorageClient

_db_client: DbClient | None = None
_storage_client: StorageClient | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so catalog and cart state persist across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = InMemoryDbClient()
    else:
        # Imported lazily so in-memory setups do not need a database driver.
        from storefront.db_sql import PostgresDbClient

        _db_client = PostgresDbClient(settings.database_url)
    return _db_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not (
        settings.storage_endpoint or settings.storage_region
    ):
        _storage_client = InMemoryStorageClient(bucket=settings.storage_bucket)
    else:
        _storage_client = S3StorageClient(
            bucket=settings.storage_bucket,
            region=settings.storage_region or "",
            endpoint=settings.storage_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            public_base_url=settings.storage_public_base_url or "",
        )
    return _storage_client


def get_cart_id(
    request: Request,
    response: Response,
    settings: Settings = Depends(get_settings),
) -> str:
    """Read the cart cookie, issuing a fresh cart id when there is none."""
    cart_id = request.cookies.get(settings.cart_cookie_name)
    if not cart_id:
        cart_id = uuid.uuid4().hex
    response.set_cookie(
        settings.cart_cookie_name,
        cart_id,
        max_age=settings.cart_cookie_max_age_seconds,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
    )
    return cart_id


def require_admin(
    request: Request,
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
) -> AdminUserRecord:
    return user_for_session(
        db,
        settings.session_secret,
        request.cookies.get(settings.session_cookie_name),
        settings.session_max_age_seconds,
    )
