"""
Read-side catalog operations used by the public storefront.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from storefront.catalog_query import (
    Pagination,
    ProductFilters,
    ProductQuery,
    normalize_pagination,
    total_pages_for,
)
from storefront.db import (
    ASSET_SECTIONS,
    AssetRecord,
    CategoryRecord,
    DbClient,
    ProductRecord,
    SubcategoryRecord,
)
from storefront.storage import StorageClient

logger = logging.getLogger(__name__)


@dataclass
class CategoryWithSubcategories:
    category: CategoryRecord
    subcategories: list[SubcategoryRecord]


@dataclass
class SubcategoryWithCategory:
    category: CategoryRecord
    subcategory: SubcategoryRecord
    all_subcategories: list[SubcategoryRecord]


@dataclass
class PaginatedProducts:
    items: list[ProductRecord]
    page: int
    page_size: int
    total: int
    total_pages: int


@dataclass
class CardImages:
    primary: Optional[str] = None
    secondary: Optional[str] = None


@dataclass
class ProductFullDetails:
    product: ProductRecord
    category: CategoryRecord
    subcategory: SubcategoryRecord
    assets: dict[str, list[dict]] = field(default_factory=dict)


def asset_url(storage: StorageClient, asset: AssetRecord) -> str:
    if asset.is_public:
        return storage.public_url(asset.storage_path)
    return storage.presign_get(asset.storage_path)


def asset_with_url(storage: StorageClient, asset: AssetRecord) -> dict:
    payload = asset.as_dict()
    payload["public_url"] = asset_url(storage, asset)
    return payload


# Categories


def list_categories(db: DbClient) -> list[CategoryRecord]:
    return db.list_categories()


def get_category_and_subcategories(
    db: DbClient, category_slug: str
) -> Optional[CategoryWithSubcategories]:
    category = db.get_category_by_slug(category_slug)
    if not category:
        return None
    return CategoryWithSubcategories(
        category=category,
        subcategories=db.list_subcategories(category_id=category.id),
    )


def get_subcategory_within_category(
    db: DbClient, category_slug: str, subcategory_slug: str
) -> Optional[SubcategoryWithCategory]:
    """Resolve a subcategory slug, requiring it to belong to the category."""
    result = get_category_and_subcategories(db, category_slug)
    if not result:
        return None
    for subcategory in result.subcategories:
        if subcategory.slug == subcategory_slug:
            return SubcategoryWithCategory(
                category=result.category,
                subcategory=subcategory,
                all_subcategories=result.subcategories,
            )
    return None


# Product listings


def _paginated_products(
    db: DbClient,
    filters: ProductFilters,
    pagination: Pagination,
    *,
    category_id: Optional[int] = None,
    subcategory_id: Optional[int] = None,
) -> PaginatedProducts:
    normalized = normalize_pagination(pagination.page, pagination.page_size)
    query = ProductQuery(
        category_id=category_id,
        subcategory_id=subcategory_id,
        filters=filters,
        offset=normalized.offset,
        limit=normalized.page_size,
    )
    items, total = db.search_products(query)
    total_pages = total_pages_for(total, normalized.page_size)
    if total_pages and normalized.page > total_pages:
        items = []
    return PaginatedProducts(
        items=items,
        page=normalized.page,
        page_size=normalized.page_size,
        total=total,
        total_pages=total_pages,
    )


def get_products_by_category(
    db: DbClient,
    category_id: int,
    filters: Optional[ProductFilters] = None,
    pagination: Optional[Pagination] = None,
) -> PaginatedProducts:
    return _paginated_products(
        db,
        filters or ProductFilters(),
        pagination or normalize_pagination(None, None),
        category_id=category_id,
    )


def get_products_by_subcategory(
    db: DbClient,
    subcategory_id: int,
    filters: Optional[ProductFilters] = None,
    pagination: Optional[Pagination] = None,
) -> PaginatedProducts:
    return _paginated_products(
        db,
        filters or ProductFilters(),
        pagination or normalize_pagination(None, None),
        subcategory_id=subcategory_id,
    )


# Card images


def _pick_card_images(
    storage: StorageClient, assets: list[AssetRecord]
) -> CardImages:
    """
    Primary is the first asset in display order (flagged primary wins).
    Secondary is the asset flagged for hover, else the next one in order.
    """
    if not assets:
        return CardImages()
    primary = assets[0]
    secondary = next(
        (a for a in assets if a.is_secondary and a.id != primary.id), None
    )
    if secondary is None and len(assets) > 1:
        secondary = assets[1]
    return CardImages(
        primary=asset_url(storage, primary),
        secondary=asset_url(storage, secondary) if secondary else None,
    )


def get_card_images(
    db: DbClient, storage: StorageClient, product_id: int
) -> CardImages:
    assets = db.list_assets([product_id], section="gallery", kind="image")
    return _pick_card_images(storage, assets)


def enrich_products_with_images(
    db: DbClient, storage: StorageClient, products: Iterable[ProductRecord]
) -> list[dict]:
    """Attach primary/secondary image URLs to each product with one asset query."""
    products = list(products)
    if not products:
        return []

    assets_by_product: dict[int, list[AssetRecord]] = {}
    for asset in db.list_assets(
        [p.id for p in products], section="gallery", kind="image"
    ):
        assets_by_product.setdefault(asset.product_id, []).append(asset)

    enriched = []
    for product in products:
        images = _pick_card_images(storage, assets_by_product.get(product.id, []))
        payload = product.as_dict()
        payload["primary_image_url"] = images.primary
        payload["secondary_image_url"] = images.secondary
        enriched.append(payload)
    return enriched


# Product details


def get_product_assets_grouped(
    db: DbClient, storage: StorageClient, product_id: int
) -> dict[str, list[dict]]:
    grouped: dict[str, list[dict]] = {section: [] for section in ASSET_SECTIONS}
    for asset in db.list_assets([product_id]):
        grouped.setdefault(asset.section, []).append(asset_with_url(storage, asset))
    return grouped


def get_primary_image(db: DbClient, product_id: int) -> Optional[AssetRecord]:
    """Flagged primary gallery asset, else the first gallery image by sort order."""
    gallery = db.list_assets([product_id], section="gallery")
    for asset in gallery:
        if asset.is_primary:
            return asset
    images = sorted(
        (a for a in gallery if a.kind == "image"), key=lambda a: (a.sort_order, a.id)
    )
    return images[0] if images else None


def get_downloads(db: DbClient, product_id: int) -> list[AssetRecord]:
    downloads = db.list_assets([product_id], section="download")
    return sorted(downloads, key=lambda a: (a.sort_order, a.id))


def get_product_full_details_by_id(
    db: DbClient, storage: StorageClient, product_id: int
) -> Optional[ProductFullDetails]:
    product = db.get_product(product_id)
    if not product:
        return None
    category = db.get_category(product.category_id)
    subcategory = db.get_subcategory(product.subcategory_id)
    if not category or not subcategory:
        logger.warning(
            "Product %s references a missing category or subcategory", product_id
        )
        return None
    return ProductFullDetails(
        product=product,
        category=category,
        subcategory=subcategory,
        assets=get_product_assets_grouped(db, storage, product.id),
    )


def get_product_full_details_by_slug(
    db: DbClient, storage: StorageClient, slug: str
) -> Optional[ProductFullDetails]:
    product = db.get_product_by_slug(slug)
    if not product:
        return None
    return get_product_full_details_by_id(db, storage, product.id)
