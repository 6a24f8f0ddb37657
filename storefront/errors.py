"""
Domain errors raised by the catalog, admin and cart services.

Each error carries the HTTP status the API answers with; the app registers a
single handler that turns them into ``{"detail": ...}`` responses.
"""

from __future__ import annotations


class CatalogError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CatalogError):
    status_code = 400


class ConflictError(CatalogError):
    # Duplicate slugs are reported as bad requests, not 409.
    status_code = 400


class NotFoundError(CatalogError):
    status_code = 404


class AuthenticationError(CatalogError):
    status_code = 401


class ConfigurationError(CatalogError):
    status_code = 503
