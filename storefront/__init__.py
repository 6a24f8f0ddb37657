"""
Storefront catalog backend.

This package provides a FastAPI application for browsing a product catalog,
keeping a persistent cart, and administering categories, products and their
media assets. Database and object storage sit behind client abstractions so
the service can run against Postgres/S3 or entirely in memory.
"""
