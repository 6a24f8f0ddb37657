import unittest
from types import SimpleNamespace

from pydantic import ValidationError

from storefront.catalog_query import (
    MAX_PAGE_SIZE,
    ProductFilters,
    matches_attribute,
    matches_filters,
    normalize_pagination,
    parse_listing_params,
    parse_range,
    sort_products,
    total_pages_for,
)
from storefront.config import Settings


def product(id, name="p", price=None, stock=1, created_at=0.0, attributes=None):
    return SimpleNamespace(
        id=id,
        name=name,
        slug=name.lower(),
        brand=None,
        price=price,
        stock=stock,
        created_at=created_at,
        attributes=attributes or {},
    )


class ListingParamsTests(unittest.TestCase):
    def test_reserved_and_attribute_params(self):
        listing = parse_listing_params(
            [
                ("category", "camas"),
                ("subcategory", "queen"),
                ("page", "2"),
                ("page_size", "24"),
                ("sort", "price_desc"),
                ("min_price", "10"),
                ("max_price", "500"),
                ("in_stock", "true"),
                ("firmness", "soft"),
                ("size", "queen"),
                ("size", "king"),
            ]
        )
        self.assertEqual(listing.category_slug, "camas")
        self.assertEqual(listing.subcategory_slug, "queen")
        self.assertEqual(listing.pagination.page, 2)
        self.assertEqual(listing.pagination.page_size, 24)
        self.assertEqual(listing.filters.sort, "price_desc")
        self.assertEqual(listing.filters.min_price, 10.0)
        self.assertEqual(listing.filters.max_price, 500.0)
        self.assertTrue(listing.filters.in_stock)
        self.assertEqual(
            listing.filters.attribute_filters,
            {"firmness": "soft", "size": ["queen", "king"]},
        )

    def test_bad_values_fall_back_to_defaults(self):
        listing = parse_listing_params(
            [
                ("page", "-3"),
                ("page_size", "500"),
                ("sort", "random"),
                ("min_price", "abc"),
                ("max_price", "-1"),
                ("in_stock", "yes"),
                ("color", ""),
            ],
            default_page_size=12,
        )
        self.assertIsNone(listing.category_slug)
        self.assertEqual(listing.pagination.page, 1)
        self.assertEqual(listing.pagination.page_size, 12)
        self.assertIsNone(listing.filters.sort)
        self.assertIsNone(listing.filters.min_price)
        self.assertIsNone(listing.filters.max_price)
        self.assertFalse(listing.filters.in_stock)
        self.assertEqual(listing.filters.attribute_filters, {})

    def test_normalize_pagination(self):
        self.assertEqual(normalize_pagination(None, None).page_size, 12)
        self.assertEqual(normalize_pagination(0, 0).page, 1)
        self.assertEqual(normalize_pagination(3, 100).page_size, 50)
        self.assertEqual(normalize_pagination(3, 10).offset, 20)

    def test_default_page_size_within_cap(self):
        self.assertEqual(MAX_PAGE_SIZE, 50)
        settings = Settings(_env_file=None, default_page_size=MAX_PAGE_SIZE)
        self.assertEqual(
            normalize_pagination(None, None, settings.default_page_size).page_size,
            MAX_PAGE_SIZE,
        )
        with self.assertRaises(ValidationError):
            Settings(_env_file=None, default_page_size=MAX_PAGE_SIZE + 1)

    def test_total_pages(self):
        self.assertEqual(total_pages_for(0, 12), 0)
        self.assertEqual(total_pages_for(12, 12), 1)
        self.assertEqual(total_pages_for(13, 12), 2)


class AttributeMatchingTests(unittest.TestCase):
    def test_range(self):
        self.assertEqual(parse_range("10-20"), (10, 20))
        self.assertIsNone(parse_range("10-"))
        self.assertTrue(matches_attribute({"height": "25"}, "height", "20-30"))
        self.assertTrue(matches_attribute({"height": 30}, "height", "20-30"))
        self.assertFalse(matches_attribute({"height": "35"}, "height", "20-30"))
        self.assertFalse(matches_attribute({}, "height", "20-30"))
        self.assertFalse(matches_attribute({"height": "Grande"}, "height", "20-30"))
        self.assertFalse(matches_attribute({"height": "2.5e1"}, "height", "20-30"))
        self.assertFalse(matches_attribute({"height": True}, "height", "0-30"))

    def test_boolean_labels(self):
        self.assertTrue(matches_attribute({"pillow": "Sí"}, "pillow", "true"))
        self.assertTrue(matches_attribute({"pillow": "true"}, "pillow", "true"))
        self.assertTrue(matches_attribute({"pillow": "No"}, "pillow", "false"))
        self.assertFalse(matches_attribute({"pillow": "No"}, "pillow", "true"))

    def test_list_and_exact(self):
        attrs = {"size": "queen"}
        self.assertTrue(matches_attribute(attrs, "size", ["queen", "king"]))
        self.assertFalse(matches_attribute(attrs, "size", ["twin"]))
        self.assertTrue(matches_attribute(attrs, "size", "queen"))
        self.assertFalse(matches_attribute(attrs, "size", "Queen"))

    def test_price_and_stock_filters(self):
        cheap = product(1, price=10.0, stock=0)
        unpriced = product(2, price=None)
        filters = ProductFilters(min_price=5.0)
        self.assertTrue(matches_filters(cheap, filters))
        self.assertFalse(matches_filters(unpriced, filters))
        self.assertFalse(matches_filters(cheap, ProductFilters(in_stock=True)))
        self.assertFalse(matches_filters(cheap, ProductFilters(max_price=9.0)))


class SortTests(unittest.TestCase):
    def setUp(self):
        self.items = [
            product(1, name="Beta", price=20.0, created_at=1.0),
            product(2, name="alpha", price=None, created_at=3.0),
            product(3, name="Alpha", price=10.0, created_at=2.0),
            product(4, name="Gamma", price=20.0, created_at=3.0),
        ]

    def ids(self, sort):
        return [p.id for p in sort_products(self.items, sort)]

    def test_price_sorts_put_missing_prices_last(self):
        self.assertEqual(self.ids("price_asc"), [3, 1, 4, 2])
        self.assertEqual(self.ids("price_desc"), [1, 4, 3, 2])

    def test_name_sorts(self):
        self.assertEqual(self.ids("name_asc"), [3, 1, 4, 2])
        self.assertEqual(self.ids("name_desc"), [2, 4, 1, 3])

    def test_created_at_sorts(self):
        self.assertEqual(self.ids(None), [4, 2, 3, 1])
        self.assertEqual(self.ids("oldest"), [1, 3, 2, 4])


if __name__ == "__main__":
    unittest.main()
