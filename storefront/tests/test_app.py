import unittest

from storefront.tests.fixtures import make_client, seed_catalog


class CatalogApiTests(unittest.TestCase):
    def setUp(self):
        self.client, self.db, self.storage = make_client()
        self.catalog = seed_catalog(self.db)

    def slugs(self, **params):
        response = self.client.get("/api/products", params=params)
        self.assertEqual(response.status_code, 200, response.text)
        return [item["slug"] for item in response.json()["items"]]

    def _gallery_image(self, product, filename, **flags):
        return self.db.create_asset(
            {
                "product_id": product.id,
                "kind": "image",
                "section": "gallery",
                "storage_bucket": "products",
                "storage_path": f"{product.id}/gallery/{filename}",
                **flags,
            }
        )

    def test_list_categories(self):
        response = self.client.get("/api/categories")
        self.assertEqual(response.status_code, 200)
        names = [c["name"] for c in response.json()["categories"]]
        self.assertEqual(names, ["Camas", "Sofas"])

    def test_category_with_subcategories(self):
        response = self.client.get("/api/categories/camas")
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["category"]["slug"], "camas")
        self.assertEqual([s["slug"] for s in payload["subcategories"]], ["queen", "king"])
        self.assertEqual(self.client.get("/api/categories/nope").status_code, 404)

    def test_subcategory_must_belong_to_category(self):
        response = self.client.get("/api/categories/camas/queen")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()["all_subcategories"]), 2)
        self.assertEqual(self.client.get("/api/categories/sofas/queen").status_code, 404)

    def test_products_require_known_category(self):
        self.assertEqual(self.client.get("/api/products").status_code, 400)
        self.assertEqual(
            self.client.get("/api/products", params={"category": "nope"}).status_code,
            404,
        )
        response = self.client.get(
            "/api/products", params={"category": "sofas", "subcategory": "queen"}
        )
        self.assertEqual(response.status_code, 404)

    def test_default_listing_is_newest_first(self):
        self.assertEqual(self.slugs(category="camas"), ["atlas", "rock", "cloud"])

    def test_sorting(self):
        self.assertEqual(
            self.slugs(category="camas", sort="price_asc"), ["rock", "cloud", "atlas"]
        )
        self.assertEqual(
            self.slugs(category="camas", sort="name_asc"), ["atlas", "cloud", "rock"]
        )
        self.assertEqual(
            self.slugs(category="camas", sort="oldest"), ["cloud", "rock", "atlas"]
        )

    def test_filters(self):
        self.assertEqual(self.slugs(category="camas", firmness="soft"), ["cloud"])
        self.assertEqual(
            self.slugs(category="camas", firmness=["soft", "medium"]), ["atlas", "cloud"]
        )
        self.assertEqual(self.slugs(category="camas", height="26-30"), ["rock"])
        self.assertEqual(self.slugs(category="camas", pillow="true"), ["cloud"])
        self.assertEqual(self.slugs(category="camas", in_stock="true"), ["atlas", "cloud"])
        self.assertEqual(self.slugs(category="camas", min_price="200"), ["cloud"])
        self.assertEqual(self.slugs(category="camas", max_price="200"), ["rock"])

    def test_subcategory_listing_and_applied_filters(self):
        response = self.client.get(
            "/api/products",
            params={"category": "camas", "subcategory": "queen", "firmness": "firm"},
        )
        payload = response.json()
        self.assertEqual([i["slug"] for i in payload["items"]], ["rock"])
        self.assertEqual(payload["subcategory"]["slug"], "queen")
        self.assertEqual(payload["subcategory"]["filter_config"][0]["key"], "firmness")
        self.assertEqual(payload["applied_filters"]["attribute_filters"], {"firmness": "firm"})
        self.assertEqual(payload["applied_filters"]["subcategory_slug"], "queen")

    def test_page_past_the_end(self):
        response = self.client.get(
            "/api/products",
            params={"category": "camas", "subcategory": "queen", "page": 5, "page_size": 1},
        )
        payload = response.json()
        self.assertEqual(payload["items"], [])
        self.assertEqual(payload["total"], 2)
        self.assertEqual(payload["total_pages"], 2)
        self.assertEqual(payload["page"], 5)

    def test_pagination(self):
        response = self.client.get(
            "/api/products", params={"category": "camas", "page": 2, "page_size": 2}
        )
        payload = response.json()
        self.assertEqual([i["slug"] for i in payload["items"]], ["cloud"])
        self.assertEqual(payload["total_pages"], 2)

    def test_card_images(self):
        product = self.catalog["soft"]
        first = self._gallery_image(product, "first.png", sort_order=1)
        self._gallery_image(product, "second.png", sort_order=2)
        self._gallery_image(product, "hover.png", sort_order=3, is_secondary=True)
        response = self.client.get(
            "/api/products", params={"category": "camas", "firmness": "soft"}
        )
        (item,) = response.json()["items"]
        self.assertTrue(item["primary_image_url"].endswith(first.storage_path))
        self.assertTrue(item["secondary_image_url"].endswith("/gallery/hover.png"))

        response = self.client.get(
            "/api/products", params={"category": "camas", "firmness": "firm"}
        )
        self.assertIsNone(response.json()["items"][0]["primary_image_url"])

    def test_product_detail(self):
        product = self.catalog["soft"]
        self._gallery_image(product, "a.png")
        self.db.create_asset(
            {
                "product_id": product.id,
                "kind": "file",
                "section": "download",
                "storage_bucket": "products",
                "storage_path": f"{product.id}/download/manual.pdf",
                "is_public": False,
            }
        )
        response = self.client.get("/api/products/cloud")
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["product"]["name"], "Cloud")
        self.assertEqual(payload["category"]["slug"], "camas")
        self.assertEqual(payload["subcategory"]["slug"], "queen")
        self.assertEqual(len(payload["assets"]["gallery"]), 1)
        self.assertEqual(payload["assets"]["additional"], [])
        self.assertIn("/sign/", payload["assets"]["download"][0]["public_url"])

    def test_unknown_product(self):
        self.assertEqual(self.client.get("/api/products/nope").status_code, 404)


if __name__ == "__main__":
    unittest.main()
