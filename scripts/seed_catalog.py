"""
Load categories, subcategories and products from a JSON file.

Expected layout::

    {"categories": [{"name": "Beds", "slug": "beds", "image_url": null,
      "subcategories": [{"name": "Queen", "slug": "queen", "display_order": 0,
        "filter_config": [...],
        "products": [{"name": "...", "price": 100, "stock": 3,
                      "brand": "...", "attributes": {...}}]}]}]}

Existing slugs are skipped so the script can be re-run.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from storefront import admin
from storefront.db import DbClient
from storefront.dependencies import get_db_client, get_storage_client
from storefront.errors import CatalogError
from storefront.schemas import ProductCreatePayload

logger = logging.getLogger(__name__)


def seed(db: DbClient, storage, data: dict) -> dict[str, int]:
    created = {"categories": 0, "subcategories": 0, "products": 0}
    for cat_data in data.get("categories", []):
        slug = cat_data.get("slug") or admin.generate_slug(cat_data["name"])
        category = db.get_category_by_slug(slug)
        if not category:
            category = admin.create_category(
                db, cat_data["name"], slug, cat_data.get("image_url")
            )
            created["categories"] += 1

        for sub_data in cat_data.get("subcategories", []):
            sub_slug = sub_data.get("slug") or admin.generate_slug(sub_data["name"])
            subcategory = db.get_subcategory_by_slug(sub_slug)
            if not subcategory:
                subcategory = admin.create_subcategory(
                    db,
                    sub_data["name"],
                    sub_slug,
                    category.id,
                    sub_data.get("display_order", 0),
                    sub_data.get("filter_config", []),
                )
                created["subcategories"] += 1

            for product_data in sub_data.get("products", []):
                payload = ProductCreatePayload(
                    **product_data,
                    category_id=category.id,
                    subcategory_id=subcategory.id,
                )
                slug = payload.slug or admin.generate_slug(payload.name)
                if db.get_product_by_slug(slug):
                    continue
                try:
                    admin.create_product(db, storage, payload)
                except CatalogError as exc:
                    logger.warning("Skipping product %s: %s", payload.name, exc.message)
                    continue
                created["products"] += 1
    return created


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed the storefront catalog")
    parser.add_argument("path", type=Path, help="JSON file with the catalog")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
    )

    data = json.loads(args.path.read_text(encoding="utf-8"))
    try:
        created = seed(get_db_client(), get_storage_client(), data)
    except CatalogError as exc:
        logger.error("Seeding failed: %s", exc.message)
        return 1
    logger.info(
        "Seeded %d categories, %d subcategories, %d products",
        created["categories"],
        created["subcategories"],
        created["products"],
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
