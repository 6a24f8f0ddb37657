"""
Database abstraction for the catalog and an in-memory test implementation.

The SQLAlchemy-backed client lives in ``storefront.db_sql``.
"""

from __future__ import annotations

import itertools
import time
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, Iterable, Optional, Protocol

from storefront.catalog_query import (
    ProductQuery,
    matches_filters,
    matches_search,
    sort_products,
)

ASSET_SECTIONS = ("gallery", "additional", "download")
ASSET_KINDS = ("image", "video", "file")


class DbClient(Protocol):
    """Interface for database access."""

    # Categories
    def list_categories(self) -> list["CategoryRecord"]:
        ...

    def get_category(self, category_id: int) -> Optional["CategoryRecord"]:
        ...

    def get_category_by_slug(self, slug: str) -> Optional["CategoryRecord"]:
        ...

    def create_category(
        self, name: str, slug: str, image_url: Optional[str] = None
    ) -> "CategoryRecord":
        ...

    def update_category(
        self, category_id: int, fields: dict
    ) -> Optional["CategoryRecord"]:
        ...

    def delete_category(self, category_id: int) -> bool:
        ...

    def count_categories(self) -> int:
        ...

    # Subcategories
    def list_subcategories(
        self, category_id: Optional[int] = None
    ) -> list["SubcategoryRecord"]:
        ...

    def get_subcategory(self, subcategory_id: int) -> Optional["SubcategoryRecord"]:
        ...

    def get_subcategory_by_slug(self, slug: str) -> Optional["SubcategoryRecord"]:
        ...

    def create_subcategory(
        self,
        category_id: int,
        name: str,
        slug: str,
        display_order: int = 0,
        filter_config: Optional[list] = None,
    ) -> "SubcategoryRecord":
        ...

    def update_subcategory(
        self, subcategory_id: int, fields: dict
    ) -> Optional["SubcategoryRecord"]:
        ...

    def delete_subcategory(self, subcategory_id: int) -> bool:
        ...

    def count_subcategories(self) -> int:
        ...

    # Products
    def get_product(self, product_id: int) -> Optional["ProductRecord"]:
        ...

    def get_product_by_slug(self, slug: str) -> Optional["ProductRecord"]:
        ...

    def create_product(self, fields: dict) -> "ProductRecord":
        ...

    def update_product(
        self, product_id: int, fields: dict
    ) -> Optional["ProductRecord"]:
        ...

    def delete_product(self, product_id: int) -> bool:
        ...

    def search_products(
        self, query: ProductQuery
    ) -> tuple[list["ProductRecord"], int]:
        ...

    def count_products(
        self,
        *,
        category_id: Optional[int] = None,
        subcategory_id: Optional[int] = None,
    ) -> int:
        ...

    def count_products_by_category(self) -> dict[int, int]:
        ...

    # Assets
    def list_assets(
        self,
        product_ids: Iterable[int],
        *,
        section: Optional[str] = None,
        kind: Optional[str] = None,
    ) -> list["AssetRecord"]:
        ...

    def get_asset(self, asset_id: int) -> Optional["AssetRecord"]:
        ...

    def create_asset(self, fields: dict) -> "AssetRecord":
        ...

    def update_asset(self, asset_id: int, fields: dict) -> Optional["AssetRecord"]:
        ...

    def delete_asset(self, asset_id: int) -> bool:
        ...

    def clear_asset_flag(self, product_id: int, flag: str) -> None:
        ...

    def max_asset_sort_order(self, product_id: int, section: str) -> int:
        ...

    def count_assets(self) -> int:
        ...

    # Cart
    def list_cart_items(self, cart_id: str) -> list["CartItemRecord"]:
        ...

    def get_cart_item(
        self, cart_id: str, product_id: int
    ) -> Optional["CartItemRecord"]:
        ...

    def save_cart_item(self, item: "CartItemRecord") -> "CartItemRecord":
        ...

    def delete_cart_item(self, cart_id: str, product_id: int) -> bool:
        ...

    def clear_cart(self, cart_id: str) -> None:
        ...

    # Admin users
    def get_admin_user_by_email(self, email: str) -> Optional["AdminUserRecord"]:
        ...

    def create_admin_user(
        self, email: str, password_hash: str
    ) -> "AdminUserRecord":
        ...


@dataclass
class CategoryRecord:
    id: int
    name: str
    slug: str
    image_url: Optional[str] = None
    created_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class SubcategoryRecord:
    id: int
    category_id: int
    name: str
    slug: str
    filter_config: list = field(default_factory=list)
    display_order: int = 0
    created_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class ProductRecord:
    id: int
    category_id: int
    subcategory_id: int
    name: str
    slug: str
    description: Optional[str] = None
    price: Optional[float] = None
    stock: int = 0
    brand: Optional[str] = None
    attributes: Dict[str, Any] = field(default_factory=dict)
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class AssetRecord:
    id: int
    product_id: int
    kind: str
    section: str
    storage_bucket: str
    storage_path: str
    title: Optional[str] = None
    alt: Optional[str] = None
    sort_order: int = 0
    is_primary: bool = False
    is_secondary: bool = False
    poster_storage_path: Optional[str] = None
    duration_seconds: Optional[float] = None
    filename: Optional[str] = None
    mime_type: Optional[str] = None
    file_size_bytes: Optional[int] = None
    is_public: bool = True
    created_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class CartItemRecord:
    cart_id: str
    product_id: int
    name: str
    slug: str
    quantity: int
    brand: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    added_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class AdminUserRecord:
    id: int
    email: str
    password_hash: str
    created_at: float = field(default_factory=lambda: time.time())


def asset_order_key(asset: AssetRecord) -> tuple:
    """Primary assets first, then by sort_order."""
    return (not asset.is_primary, asset.sort_order, asset.id)


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.categories: Dict[int, CategoryRecord] = {}
        self.subcategories: Dict[int, SubcategoryRecord] = {}
        self.products: Dict[int, ProductRecord] = {}
        self.assets: Dict[int, AssetRecord] = {}
        self.cart_items: Dict[tuple[str, int], CartItemRecord] = {}
        self.admin_users: Dict[int, AdminUserRecord] = {}
        self._ids = itertools.count(1)

    def _next_id(self) -> int:
        return next(self._ids)

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.categories.clear()
        self.subcategories.clear()
        self.products.clear()
        self.assets.clear()
        self.cart_items.clear()
        self.admin_users.clear()

    @staticmethod
    def _apply(record, fields: dict):
        for key, value in fields.items():
            setattr(record, key, value)
        return record

    # Categories

    def list_categories(self) -> list[CategoryRecord]:
        return sorted(self.categories.values(), key=lambda c: (c.name, c.id))

    def get_category(self, category_id: int) -> Optional[CategoryRecord]:
        return self.categories.get(category_id)

    def get_category_by_slug(self, slug: str) -> Optional[CategoryRecord]:
        for category in self.categories.values():
            if category.slug == slug:
                return category
        return None

    def create_category(
        self, name: str, slug: str, image_url: Optional[str] = None
    ) -> CategoryRecord:
        record = CategoryRecord(
            id=self._next_id(), name=name, slug=slug, image_url=image_url
        )
        self.categories[record.id] = record
        return record

    def update_category(
        self, category_id: int, fields: dict
    ) -> Optional[CategoryRecord]:
        category = self.categories.get(category_id)
        if not category:
            return None
        return self._apply(category, fields)

    def delete_category(self, category_id: int) -> bool:
        return self.categories.pop(category_id, None) is not None

    def count_categories(self) -> int:
        return len(self.categories)

    # Subcategories

    def list_subcategories(
        self, category_id: Optional[int] = None
    ) -> list[SubcategoryRecord]:
        items = [
            sub
            for sub in self.subcategories.values()
            if category_id is None or sub.category_id == category_id
        ]
        return sorted(items, key=lambda s: (s.display_order, s.name, s.id))

    def get_subcategory(self, subcategory_id: int) -> Optional[SubcategoryRecord]:
        return self.subcategories.get(subcategory_id)

    def get_subcategory_by_slug(self, slug: str) -> Optional[SubcategoryRecord]:
        for sub in self.subcategories.values():
            if sub.slug == slug:
                return sub
        return None

    def create_subcategory(
        self,
        category_id: int,
        name: str,
        slug: str,
        display_order: int = 0,
        filter_config: Optional[list] = None,
    ) -> SubcategoryRecord:
        record = SubcategoryRecord(
            id=self._next_id(),
            category_id=category_id,
            name=name,
            slug=slug,
            display_order=display_order,
            filter_config=list(filter_config or []),
        )
        self.subcategories[record.id] = record
        return record

    def update_subcategory(
        self, subcategory_id: int, fields: dict
    ) -> Optional[SubcategoryRecord]:
        sub = self.subcategories.get(subcategory_id)
        if not sub:
            return None
        return self._apply(sub, fields)

    def delete_subcategory(self, subcategory_id: int) -> bool:
        return self.subcategories.pop(subcategory_id, None) is not None

    def count_subcategories(self) -> int:
        return len(self.subcategories)

    # Products

    def get_product(self, product_id: int) -> Optional[ProductRecord]:
        return self.products.get(product_id)

    def get_product_by_slug(self, slug: str) -> Optional[ProductRecord]:
        for product in self.products.values():
            if product.slug == slug:
                return product
        return None

    def create_product(self, fields: dict) -> ProductRecord:
        now = time.time()
        record = ProductRecord(
            id=self._next_id(), created_at=now, updated_at=now, **fields
        )
        self.products[record.id] = record
        return record

    def update_product(
        self, product_id: int, fields: dict
    ) -> Optional[ProductRecord]:
        product = self.products.get(product_id)
        if not product:
            return None
        self._apply(product, fields)
        product.updated_at = time.time()
        return product

    def delete_product(self, product_id: int) -> bool:
        if self.products.pop(product_id, None) is None:
            return False
        for asset_id in [
            a.id for a in self.assets.values() if a.product_id == product_id
        ]:
            del self.assets[asset_id]
        return True

    def search_products(
        self, query: ProductQuery
    ) -> tuple[list[ProductRecord], int]:
        matched = [
            product
            for product in self.products.values()
            if (query.category_id is None or product.category_id == query.category_id)
            and (
                query.subcategory_id is None
                or product.subcategory_id == query.subcategory_id
            )
            and matches_search(product, query.search)
            and matches_filters(product, query.filters)
        ]
        ordered = sort_products(matched, query.filters.sort)
        end = None if query.limit is None else query.offset + query.limit
        return ordered[query.offset : end], len(ordered)

    def count_products(
        self,
        *,
        category_id: Optional[int] = None,
        subcategory_id: Optional[int] = None,
    ) -> int:
        return sum(
            1
            for p in self.products.values()
            if (category_id is None or p.category_id == category_id)
            and (subcategory_id is None or p.subcategory_id == subcategory_id)
        )

    def count_products_by_category(self) -> dict[int, int]:
        counts: dict[int, int] = {}
        for product in self.products.values():
            counts[product.category_id] = counts.get(product.category_id, 0) + 1
        return counts

    # Assets

    def list_assets(
        self,
        product_ids: Iterable[int],
        *,
        section: Optional[str] = None,
        kind: Optional[str] = None,
    ) -> list[AssetRecord]:
        wanted = set(product_ids)
        items = [
            asset
            for asset in self.assets.values()
            if asset.product_id in wanted
            and (section is None or asset.section == section)
            and (kind is None or asset.kind == kind)
        ]
        return sorted(items, key=asset_order_key)

    def get_asset(self, asset_id: int) -> Optional[AssetRecord]:
        return self.assets.get(asset_id)

    def create_asset(self, fields: dict) -> AssetRecord:
        record = AssetRecord(id=self._next_id(), **fields)
        self.assets[record.id] = record
        return record

    def update_asset(self, asset_id: int, fields: dict) -> Optional[AssetRecord]:
        asset = self.assets.get(asset_id)
        if not asset:
            return None
        return self._apply(asset, fields)

    def delete_asset(self, asset_id: int) -> bool:
        return self.assets.pop(asset_id, None) is not None

    def clear_asset_flag(self, product_id: int, flag: str) -> None:
        for asset in self.assets.values():
            if asset.product_id == product_id and asset.section == "gallery":
                setattr(asset, flag, False)

    def max_asset_sort_order(self, product_id: int, section: str) -> int:
        orders = [
            a.sort_order
            for a in self.assets.values()
            if a.product_id == product_id and a.section == section
        ]
        return max(orders, default=0)

    def count_assets(self) -> int:
        return len(self.assets)

    # Cart

    def list_cart_items(self, cart_id: str) -> list[CartItemRecord]:
        items = [
            item for (cid, _), item in self.cart_items.items() if cid == cart_id
        ]
        return sorted(items, key=lambda i: (i.added_at, i.product_id))

    def get_cart_item(
        self, cart_id: str, product_id: int
    ) -> Optional[CartItemRecord]:
        item = self.cart_items.get((cart_id, product_id))
        return replace(item) if item else None

    def save_cart_item(self, item: CartItemRecord) -> CartItemRecord:
        self.cart_items[(item.cart_id, item.product_id)] = replace(item)
        return item

    def delete_cart_item(self, cart_id: str, product_id: int) -> bool:
        return self.cart_items.pop((cart_id, product_id), None) is not None

    def clear_cart(self, cart_id: str) -> None:
        for key in [key for key in self.cart_items if key[0] == cart_id]:
            del self.cart_items[key]

    # Admin users

    def get_admin_user_by_email(self, email: str) -> Optional[AdminUserRecord]:
        for user in self.admin_users.values():
            if user.email == email:
                return user
        return None

    def create_admin_user(self, email: str, password_hash: str) -> AdminUserRecord:
        record = AdminUserRecord(
            id=self._next_id(), email=email, password_hash=password_hash
        )
        self.admin_users[record.id] = record
        return record
