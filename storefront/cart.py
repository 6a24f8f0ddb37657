"""
Persistent shopping cart keyed by a cookie-held cart id.

Items keep a snapshot of the product (name, slug, brand, description, image)
taken when first added, so the cart renders without re-reading the catalog.
"""

from __future__ import annotations

import logging
import math
from urllib.parse import quote

from storefront.catalog import asset_url, get_primary_image
from storefront.db import CartItemRecord, DbClient
from storefront.errors import ConfigurationError, NotFoundError, ValidationError
from storefront.storage import StorageClient

logger = logging.getLogger(__name__)

MIN_QUANTITY = 1
MAX_QUANTITY = 99


def clamp_quantity(quantity) -> int:
    return max(MIN_QUANTITY, min(MAX_QUANTITY, math.floor(quantity)))


def list_items(db: DbClient, cart_id: str) -> list[CartItemRecord]:
    return db.list_cart_items(cart_id)


def item_count(db: DbClient, cart_id: str) -> int:
    return sum(item.quantity for item in db.list_cart_items(cart_id))


def _require_item(db: DbClient, cart_id: str, product_id: int) -> CartItemRecord:
    item = db.get_cart_item(cart_id, product_id)
    if not item:
        raise NotFoundError("Item not in cart")
    return item


def add_item(
    db: DbClient,
    storage: StorageClient,
    cart_id: str,
    product_id: int,
    quantity: int = 1,
) -> CartItemRecord:
    """Add a product, summing with any quantity already in the cart."""
    existing = db.get_cart_item(cart_id, product_id)
    if existing:
        existing.quantity = clamp_quantity(existing.quantity + clamp_quantity(quantity))
        return db.save_cart_item(existing)

    product = db.get_product(product_id)
    if not product:
        raise NotFoundError("Product not found")
    primary = get_primary_image(db, product.id)
    item = CartItemRecord(
        cart_id=cart_id,
        product_id=product.id,
        name=product.name,
        slug=product.slug,
        brand=product.brand,
        description=product.description,
        image_url=asset_url(storage, primary) if primary else None,
        quantity=clamp_quantity(quantity),
    )
    return db.save_cart_item(item)


def set_quantity(
    db: DbClient, cart_id: str, product_id: int, quantity: int
) -> CartItemRecord:
    item = _require_item(db, cart_id, product_id)
    item.quantity = clamp_quantity(quantity)
    return db.save_cart_item(item)


def increase(db: DbClient, cart_id: str, product_id: int) -> CartItemRecord:
    item = _require_item(db, cart_id, product_id)
    return set_quantity(db, cart_id, product_id, item.quantity + 1)


def decrease(db: DbClient, cart_id: str, product_id: int) -> CartItemRecord:
    item = _require_item(db, cart_id, product_id)
    return set_quantity(db, cart_id, product_id, item.quantity - 1)


def remove_item(db: DbClient, cart_id: str, product_id: int) -> None:
    if not db.delete_cart_item(cart_id, product_id):
        raise NotFoundError("Item not in cart")


def clear(db: DbClient, cart_id: str) -> None:
    db.clear_cart(cart_id)


def build_order_message(greeting: str, items: list[CartItemRecord]) -> str:
    lines = [
        f"{index}. {item.name} - Cantidad: {item.quantity}"
        for index, item in enumerate(items, start=1)
    ]
    return f"{greeting}\n\n" + "\n".join(lines) + "\n"


def build_order_link(
    db: DbClient, cart_id: str, phone: str | None, greeting: str
) -> tuple[str, str]:
    """Return ``(url, message)`` for sending the cart over WhatsApp."""
    items = db.list_cart_items(cart_id)
    if not items:
        raise ValidationError("Cart is empty")
    if not phone:
        logger.error("Order requested but no WhatsApp phone is configured")
        raise ConfigurationError("Ordering is not available right now")
    message = build_order_message(greeting, items)
    number = "".join(ch for ch in phone if ch.isdigit())
    return f"https://wa.me/{number}?text={quote(message)}", message
