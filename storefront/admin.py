"""
Admin-side catalog management: categories, subcategories, products and the
dashboard summary.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from storefront import assets as asset_ops
from storefront.catalog import asset_with_url
from storefront.catalog_query import ProductQuery, normalize_pagination, total_pages_for
from storefront.db import (
    CategoryRecord,
    DbClient,
    ProductRecord,
    SubcategoryRecord,
)
from storefront.errors import CatalogError, ConflictError, NotFoundError, ValidationError
from storefront.schemas import ProductCreatePayload, ProductUpdatePayload
from storefront.storage import StorageClient, StorageError

logger = logging.getLogger(__name__)

UNCATEGORIZED = "Uncategorized"
MAX_NAME_LENGTH = 200
MAX_SLUG_LENGTH = 100
SLUG_PATTERN = re.compile(r"^[a-z0-9-]+$")
RECENT_PRODUCTS_LIMIT = 5


@dataclass
class ProductMutation:
    product: ProductRecord
    failed_uploads: list[str]


def generate_slug(name: str) -> str:
    """Lower-case, accent-free, dash-separated slug of at most 100 chars."""
    decomposed = unicodedata.normalize("NFD", (name or "").lower())
    without_accents = "".join(
        ch for ch in decomposed if unicodedata.category(ch) != "Mn"
    )
    slug = re.sub(r"[^a-z0-9]+", "-", without_accents).strip("-")
    return slug[:MAX_SLUG_LENGTH]


def validate_product_data(data: dict) -> list[str]:
    errors: list[str] = []

    name = (data.get("name") or "").strip()
    if not name:
        errors.append("Name is required")
    elif len(data["name"]) > MAX_NAME_LENGTH:
        errors.append(f"Name cannot exceed {MAX_NAME_LENGTH} characters")

    slug = (data.get("slug") or "").strip()
    if not slug:
        errors.append("Slug is required")
    elif not SLUG_PATTERN.match(slug):
        errors.append("Slug can only contain lowercase letters, numbers and dashes")

    price = data.get("price")
    if price is not None and price < 0:
        errors.append("Price cannot be negative")

    stock = data.get("stock")
    if stock is not None and stock < 0:
        errors.append("Stock cannot be negative")

    if not data.get("category_id"):
        errors.append("Category is required")
    if not data.get("subcategory_id"):
        errors.append("Subcategory is required")

    return errors


def _clean_slug(slug: Optional[str], name: str) -> str:
    cleaned = (slug or "").strip().lower()
    return cleaned or generate_slug(name)


def _optional_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


# Categories


def create_category(
    db: DbClient, name: str, slug: Optional[str], image_url: Optional[str] = None
) -> CategoryRecord:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Name is required")
    slug = _clean_slug(slug, name)
    if not slug:
        raise ValidationError("Slug is required")
    if db.get_category_by_slug(slug):
        raise ConflictError("A category with that slug already exists")
    return db.create_category(name=name, slug=slug, image_url=image_url or None)


def update_category(
    db: DbClient,
    category_id: int,
    name: str,
    slug: Optional[str],
    image_url: Optional[str] = None,
) -> CategoryRecord:
    if not db.get_category(category_id):
        raise NotFoundError("Category not found")
    name = (name or "").strip()
    if not name:
        raise ValidationError("Name is required")
    slug = _clean_slug(slug, name)
    existing = db.get_category_by_slug(slug)
    if existing and existing.id != category_id:
        raise ConflictError("Another category already uses that slug")
    return db.update_category(
        category_id, {"name": name, "slug": slug, "image_url": image_url or None}
    )


def delete_category(db: DbClient, category_id: int) -> None:
    if not db.get_category(category_id):
        raise NotFoundError("Category not found")
    if db.list_subcategories(category_id=category_id):
        raise ValidationError("Cannot delete: the category has subcategories")
    db.delete_category(category_id)


def list_categories_with_subcategories(
    db: DbClient,
) -> list[tuple[CategoryRecord, list[SubcategoryRecord]]]:
    by_category: dict[int, list[SubcategoryRecord]] = {}
    for sub in db.list_subcategories():
        by_category.setdefault(sub.category_id, []).append(sub)
    return [(cat, by_category.get(cat.id, [])) for cat in db.list_categories()]


# Subcategories


def list_subcategories_with_category(
    db: DbClient,
) -> list[tuple[SubcategoryRecord, Optional[str]]]:
    names = {cat.id: cat.name for cat in db.list_categories()}
    return [(sub, names.get(sub.category_id)) for sub in db.list_subcategories()]


def _subcategory_fields(
    db: DbClient,
    name: str,
    slug: Optional[str],
    category_id: Optional[int],
    display_order: Optional[int],
    filter_config: Optional[list],
) -> dict:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Name is required")
    if not category_id:
        raise ValidationError("Category is required")
    if not db.get_category(category_id):
        raise ValidationError("Category does not exist")
    slug = _clean_slug(slug, name)
    if not slug:
        raise ValidationError("Slug is required")
    return {
        "name": name,
        "slug": slug,
        "category_id": category_id,
        "display_order": display_order or 0,
        "filter_config": list(filter_config or []),
    }


def create_subcategory(
    db: DbClient,
    name: str,
    slug: Optional[str],
    category_id: Optional[int],
    display_order: Optional[int] = 0,
    filter_config: Optional[list] = None,
) -> SubcategoryRecord:
    fields = _subcategory_fields(
        db, name, slug, category_id, display_order, filter_config
    )
    if db.get_subcategory_by_slug(fields["slug"]):
        raise ConflictError("A subcategory with that slug already exists")
    return db.create_subcategory(**fields)


def update_subcategory(
    db: DbClient,
    subcategory_id: int,
    name: str,
    slug: Optional[str],
    category_id: Optional[int],
    display_order: Optional[int] = 0,
    filter_config: Optional[list] = None,
) -> SubcategoryRecord:
    if not db.get_subcategory(subcategory_id):
        raise NotFoundError("Subcategory not found")
    fields = _subcategory_fields(
        db, name, slug, category_id, display_order, filter_config
    )
    existing = db.get_subcategory_by_slug(fields["slug"])
    if existing and existing.id != subcategory_id:
        raise ConflictError("Another subcategory already uses that slug")
    return db.update_subcategory(subcategory_id, fields)


def delete_subcategory(db: DbClient, subcategory_id: int) -> None:
    if not db.get_subcategory(subcategory_id):
        raise NotFoundError("Subcategory not found")
    if db.count_products(subcategory_id=subcategory_id) > 0:
        raise ValidationError(
            "Cannot delete: the subcategory has products. "
            "Move them to another subcategory first."
        )
    db.delete_subcategory(subcategory_id)


# Products


def _normalize_product_fields(data: dict) -> dict:
    fields = dict(data)
    if "name" in fields:
        fields["name"] = fields["name"].strip()
    if "slug" in fields:
        fields["slug"] = fields["slug"].lower().strip()
    if "description" in fields:
        fields["description"] = _optional_text(fields["description"])
    if "brand" in fields:
        fields["brand"] = _optional_text(fields["brand"])
    return fields


def _check_taxonomy(db: DbClient, category_id: int, subcategory_id: int) -> None:
    if not db.get_category(category_id):
        raise ValidationError("Category does not exist")
    subcategory = db.get_subcategory(subcategory_id)
    if not subcategory:
        raise ValidationError("Subcategory does not exist")
    if subcategory.category_id != category_id:
        raise ValidationError("Subcategory does not belong to the category")


def _check_product_slug(db: DbClient, slug: str, product_id: Optional[int] = None) -> None:
    existing = db.get_product_by_slug(slug)
    if existing and existing.id != product_id:
        if product_id is None:
            raise ConflictError("A product with that slug already exists")
        raise ConflictError("Another product already uses that slug")


def create_product(
    db: DbClient, storage: StorageClient, payload: ProductCreatePayload
) -> ProductMutation:
    data = {
        "name": payload.name or "",
        "slug": payload.slug or generate_slug(payload.name or ""),
        "description": payload.description,
        "price": payload.price,
        "stock": payload.stock or 0,
        "brand": payload.brand,
        "category_id": payload.category_id,
        "subcategory_id": payload.subcategory_id,
        "attributes": payload.attributes or {},
    }
    errors = validate_product_data(data)
    if errors:
        raise ValidationError(", ".join(errors))
    _check_taxonomy(db, data["category_id"], data["subcategory_id"])

    fields = _normalize_product_fields(data)
    _check_product_slug(db, fields["slug"])
    product = db.create_product(fields)
    logger.info("Created product %s (%s)", product.id, product.slug)

    result = asset_ops.attach_uploaded_files(db, storage, product, payload.uploaded_files)
    asset_ops.cleanup_temp_uploads(storage, payload.temp_upload_id)
    return ProductMutation(product=product, failed_uploads=result.failed)


def _update_fields(payload: ProductUpdatePayload) -> dict:
    present = payload.model_fields_set
    updates: dict[str, Any] = {}
    for key in ("name", "slug", "category_id", "subcategory_id"):
        value = getattr(payload, key)
        if key in present and value:
            updates[key] = value
    if "attributes" in present:
        updates["attributes"] = payload.attributes or {}
    for key in ("description", "brand"):
        if key in present:
            updates[key] = getattr(payload, key) or None
    if "price" in present:
        updates["price"] = payload.price
    if "stock" in present:
        updates["stock"] = payload.stock or 0
    return updates


def update_product(
    db: DbClient,
    storage: StorageClient,
    product_id: int,
    payload: ProductUpdatePayload,
) -> ProductMutation:
    product = db.get_product(product_id)
    if not product:
        raise NotFoundError("Product not found")

    updates = _update_fields(payload)
    merged = {**product.as_dict(), **updates}
    errors = validate_product_data(merged)
    if errors:
        raise ValidationError(", ".join(errors))
    if "category_id" in updates or "subcategory_id" in updates:
        _check_taxonomy(db, merged["category_id"], merged["subcategory_id"])

    fields = _normalize_product_fields(updates)
    if "slug" in fields:
        _check_product_slug(db, fields["slug"], product_id)
    if fields:
        product = db.update_product(product_id, fields)

    result = asset_ops.attach_uploaded_files(db, storage, product, payload.uploaded_files)

    if payload.delete_assets:
        asset_ops.delete_assets(db, storage, payload.delete_assets, product_id)

    if payload.set_primary_asset:
        try:
            asset_ops.set_primary_asset(db, payload.set_primary_asset, product_id)
        except CatalogError as exc:
            logger.error("Error setting primary asset: %s", exc)

    if "set_secondary_asset" in payload.model_fields_set:
        try:
            asset_ops.set_secondary_asset(db, product_id, payload.set_secondary_asset)
        except CatalogError as exc:
            logger.error("Error setting secondary asset: %s", exc)

    asset_ops.cleanup_temp_uploads(storage, payload.temp_upload_id)
    return ProductMutation(product=product, failed_uploads=result.failed)


def delete_product(db: DbClient, storage: StorageClient, product_id: int) -> None:
    """Remove the product's stored files, then the product (assets cascade)."""
    if not db.get_product(product_id):
        raise NotFoundError("Product not found")

    paths_by_bucket: dict[str, list[str]] = {}
    for asset in db.list_assets([product_id]):
        paths_by_bucket.setdefault(asset.storage_bucket, []).append(asset.storage_path)

    for bucket, paths in paths_by_bucket.items():
        if bucket != storage.bucket:
            logger.warning(
                "Skipping %d objects in unmanaged bucket %s", len(paths), bucket
            )
            continue
        try:
            storage.delete(paths)
        except StorageError as exc:
            logger.error("Error removing files of product %s: %s", product_id, exc)

    db.delete_product(product_id)
    logger.info("Deleted product %s", product_id)


def _thumbnail_urls(
    db: DbClient, storage: StorageClient, product_ids: Iterable[int]
) -> dict[int, str]:
    """Gallery thumbnail per product: the primary asset, else the first one."""
    thumbnails: dict[int, str] = {}
    for asset in db.list_assets(product_ids, section="gallery"):
        if asset.product_id not in thumbnails:
            thumbnails[asset.product_id] = storage.public_url(asset.storage_path)
    return thumbnails


def _admin_product_rows(
    db: DbClient, storage: StorageClient, products: list[ProductRecord]
) -> list[dict]:
    categories = {c.id: c.name for c in db.list_categories()}
    subcategories = {s.id: s.name for s in db.list_subcategories()}
    thumbnails = _thumbnail_urls(db, storage, [p.id for p in products])
    rows = []
    for product in products:
        row = product.as_dict()
        row["category_name"] = categories.get(product.category_id, UNCATEGORIZED)
        row["subcategory_name"] = subcategories.get(product.subcategory_id)
        row["thumbnail_url"] = thumbnails.get(product.id)
        rows.append(row)
    return rows


def list_admin_products(
    db: DbClient,
    storage: StorageClient,
    *,
    page: Optional[int] = None,
    page_size: Optional[int] = None,
    search: Optional[str] = None,
    category_id: Optional[int] = None,
    subcategory_id: Optional[int] = None,
    default_page_size: int = 20,
) -> dict:
    pagination = normalize_pagination(page, page_size, default_page_size)
    products, total = db.search_products(
        ProductQuery(
            category_id=category_id or None,
            subcategory_id=subcategory_id or None,
            search=(search or "").strip() or None,
            offset=pagination.offset,
            limit=pagination.page_size,
        )
    )
    return {
        "products": _admin_product_rows(db, storage, products),
        "total": total,
        "page": pagination.page,
        "page_size": pagination.page_size,
        "total_pages": total_pages_for(total, pagination.page_size),
    }


def get_admin_product(db: DbClient, storage: StorageClient, product_id: int) -> dict:
    product = db.get_product(product_id)
    if not product:
        raise NotFoundError("Product not found")
    category = db.get_category(product.category_id)
    subcategory = db.get_subcategory(product.subcategory_id)
    payload = product.as_dict()
    payload["category"] = (
        {"id": category.id, "name": category.name, "slug": category.slug}
        if category
        else None
    )
    payload["subcategory"] = (
        {"id": subcategory.id, "name": subcategory.name, "slug": subcategory.slug}
        if subcategory
        else None
    )
    payload["product_assets"] = [
        asset_with_url(storage, asset) for asset in db.list_assets([product_id])
    ]
    return payload


def get_dashboard_stats(db: DbClient, storage: StorageClient) -> dict:
    recent, _ = db.search_products(ProductQuery(limit=RECENT_PRODUCTS_LIMIT))
    categories = {c.id: c.name for c in db.list_categories()}

    products_by_category: dict[str, int] = {}
    for category_id, count in db.count_products_by_category().items():
        name = categories.get(category_id, UNCATEGORIZED)
        products_by_category[name] = products_by_category.get(name, 0) + count

    recent_rows = [
        {
            "id": row["id"],
            "name": row["name"],
            "slug": row["slug"],
            "thumbnail_url": row["thumbnail_url"],
            "category_name": row["category_name"],
            "subcategory_name": row["subcategory_name"],
            "created_at": row["created_at"],
        }
        for row in _admin_product_rows(db, storage, recent)
    ]

    return {
        "total_products": db.count_products(),
        "total_categories": db.count_categories(),
        "total_subcategories": db.count_subcategories(),
        "total_assets": db.count_assets(),
        "recent_products": recent_rows,
        "products_by_category": [
            {"category": name, "count": count}
            for name, count in products_by_category.items()
        ],
    }
