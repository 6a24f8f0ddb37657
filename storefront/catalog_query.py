"""
Product filtering, sorting and pagination rules for catalog listings.

The same rules are applied by the in-memory database (``matches_filters`` and
``sort_products``) and translated into SQL clauses by ``PostgresDbClient``.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

MAX_PAGE_SIZE = 50
DEFAULT_PAGE_SIZE = 12

SORT_OPTIONS = ("price_asc", "price_desc", "name_asc", "name_desc", "oldest")

# Boolean filters arrive as "true"/"false" but the catalog stores the labels.
BOOLEAN_LABELS = {"true": "Sí", "false": "No"}

RESERVED_PARAMS = frozenset(
    {
        "category",
        "subcategory",
        "page",
        "page_size",
        "sort",
        "min_price",
        "max_price",
        "in_stock",
    }
)

RANGE_PATTERN = re.compile(r"^(\d+)-(\d+)$")
# Text attribute values that range filters treat as numbers
NUMERIC_PATTERN = re.compile(r"^-?[0-9]+(\.[0-9]+)?$")

AttributeFilterValue = Union[str, list[str]]


@dataclass
class Pagination:
    page: int
    page_size: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass
class ProductFilters:
    attribute_filters: dict[str, AttributeFilterValue] = field(default_factory=dict)
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    in_stock: bool = False
    sort: Optional[str] = None


@dataclass
class ProductQuery:
    """Everything a DbClient needs to select one page of products."""

    category_id: Optional[int] = None
    subcategory_id: Optional[int] = None
    search: Optional[str] = None
    filters: ProductFilters = field(default_factory=ProductFilters)
    offset: int = 0
    limit: Optional[int] = None


@dataclass
class ListingRequest:
    category_slug: Optional[str]
    subcategory_slug: Optional[str]
    pagination: Pagination
    filters: ProductFilters


def normalize_pagination(
    page: Optional[int],
    page_size: Optional[int],
    default_page_size: int = DEFAULT_PAGE_SIZE,
) -> Pagination:
    page = page or 1
    page_size = page_size or default_page_size
    if page < 1:
        page = 1
    if page_size < 1:
        page_size = default_page_size
    if page_size > MAX_PAGE_SIZE:
        page_size = MAX_PAGE_SIZE
    return Pagination(page=page, page_size=page_size)


def total_pages_for(total: int, page_size: int) -> int:
    return math.ceil(total / page_size) if total > 0 else 0


def parse_range(value: str) -> Optional[tuple[int, int]]:
    match = RANGE_PATTERN.match(value)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def _parse_int(raw: Optional[str]) -> Optional[int]:
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _parse_price(raw: Optional[str]) -> Optional[float]:
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    if math.isnan(value) or value < 0:
        return None
    return value


def parse_listing_params(
    items: Iterable[tuple[str, str]],
    default_page_size: int = DEFAULT_PAGE_SIZE,
) -> ListingRequest:
    """
    Build a ListingRequest from raw (possibly repeated) query parameters.

    Bad values never raise: they fall back to their defaults. Any parameter
    that is not reserved becomes an attribute filter, and repeated keys
    collect into a list (``size=queen&size=king``).
    """
    single: dict[str, str] = {}
    attribute_filters: dict[str, AttributeFilterValue] = {}
    for key, value in items:
        if key in RESERVED_PARAMS:
            single.setdefault(key, value)
            continue
        if not value:
            continue
        existing = attribute_filters.get(key)
        if existing is None:
            attribute_filters[key] = value
        elif isinstance(existing, list):
            existing.append(value)
        else:
            attribute_filters[key] = [existing, value]

    page = _parse_int(single.get("page"))
    if page is None or page < 1:
        page = 1

    page_size = _parse_int(single.get("page_size"))
    if page_size is None or page_size < 1 or page_size > MAX_PAGE_SIZE:
        page_size = default_page_size

    sort = single.get("sort")
    if sort not in SORT_OPTIONS:
        sort = None

    filters = ProductFilters(
        attribute_filters=attribute_filters,
        min_price=_parse_price(single.get("min_price")),
        max_price=_parse_price(single.get("max_price")),
        in_stock=single.get("in_stock") == "true",
        sort=sort,
    )
    return ListingRequest(
        category_slug=single.get("category") or None,
        subcategory_slug=single.get("subcategory") or None,
        pagination=Pagination(page=page, page_size=page_size),
        filters=filters,
    )


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str) and NUMERIC_PATTERN.match(value):
        return float(value)
    return None


def matches_attribute(attributes: Mapping[str, Any], key: str, value: AttributeFilterValue) -> bool:
    actual = attributes.get(key)
    if isinstance(value, list):
        if not value:
            return True
        return isinstance(actual, str) and actual in value
    if not value:
        return True

    bounds = parse_range(value)
    if bounds is not None:
        number = _as_number(actual)
        return number is not None and bounds[0] <= number <= bounds[1]

    if value in BOOLEAN_LABELS:
        return isinstance(actual, str) and actual in (BOOLEAN_LABELS[value], value)

    return isinstance(actual, str) and actual == value


def matches_filters(product: Any, filters: ProductFilters) -> bool:
    """Return True when a product record passes price, stock and attribute filters."""
    if filters.min_price is not None:
        if product.price is None or product.price < filters.min_price:
            return False
    if filters.max_price is not None:
        if product.price is None or product.price > filters.max_price:
            return False
    if filters.in_stock and product.stock <= 0:
        return False
    attributes = product.attributes or {}
    for key, value in filters.attribute_filters.items():
        if not matches_attribute(attributes, key, value):
            return False
    return True


def matches_search(product: Any, search: Optional[str]) -> bool:
    if not search:
        return True
    needle = search.lower()
    return any(
        needle in (value or "").lower()
        for value in (product.name, product.slug, product.brand)
    )


def sort_products(products: Sequence[Any], sort: Optional[str]) -> list[Any]:
    items = list(products)
    # Stable sorts: apply the tie-break key first, then the primary key.
    if sort in ("price_asc", "price_desc"):
        items.sort(key=lambda p: p.id)
        priced = [p for p in items if p.price is not None]
        unpriced = [p for p in items if p.price is None]
        priced.sort(key=lambda p: p.price, reverse=sort == "price_desc")
        return priced + unpriced
    if sort in ("name_asc", "name_desc"):
        items.sort(key=lambda p: p.id)
        items.sort(key=lambda p: p.name, reverse=sort == "name_desc")
        return items
    if sort == "oldest":
        items.sort(key=lambda p: (p.created_at, p.id))
        return items
    items.sort(key=lambda p: (p.created_at, p.id), reverse=True)
    return items
