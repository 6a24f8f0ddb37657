"""
Public HTTP routes: catalog browsing, product details, cart and admin sign-in.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Form, HTTPException, Request, Response

from storefront import cart as cart_ops
from storefront import catalog
from storefront.auth import authenticate, create_session_token
from storefront.catalog_query import parse_listing_params
from storefront.config import Settings, get_settings
from storefront.db import DbClient
from storefront.dependencies import get_cart_id, get_db_client, get_storage_client
from storefront.schemas import (
    AppliedFilters,
    CartAddRequest,
    CartCountResponse,
    CartQuantityRequest,
    CartResponse,
    CategoryDetailResponse,
    CategoryListResponse,
    OrderLinkResponse,
    ProductDetailResponse,
    ProductListResponse,
    SignInResponse,
    StatusResponse,
    SubcategoryDetailResponse,
)
from storefront.storage import StorageClient

logger = logging.getLogger(__name__)

router = APIRouter()


# Catalog


@router.get("/categories", response_model=CategoryListResponse)
def list_categories(db: DbClient = Depends(get_db_client)) -> CategoryListResponse:
    return CategoryListResponse(
        categories=[c.as_dict() for c in catalog.list_categories(db)]
    )


@router.get("/categories/{slug}", response_model=CategoryDetailResponse)
def get_category(
    slug: str, db: DbClient = Depends(get_db_client)
) -> CategoryDetailResponse:
    result = catalog.get_category_and_subcategories(db, slug)
    if not result:
        raise HTTPException(status_code=404, detail="Category not found")
    return CategoryDetailResponse(
        category=result.category.as_dict(),
        subcategories=[s.as_dict() for s in result.subcategories],
    )


@router.get(
    "/categories/{slug}/{subcategory_slug}", response_model=SubcategoryDetailResponse
)
def get_subcategory(
    slug: str, subcategory_slug: str, db: DbClient = Depends(get_db_client)
) -> SubcategoryDetailResponse:
    result = catalog.get_subcategory_within_category(db, slug, subcategory_slug)
    if not result:
        raise HTTPException(status_code=404, detail="Subcategory not found")
    return SubcategoryDetailResponse(
        category=result.category.as_dict(),
        subcategory=result.subcategory.as_dict(),
        all_subcategories=[s.as_dict() for s in result.all_subcategories],
    )


@router.get("/products", response_model=ProductListResponse)
def list_products(
    request: Request,
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    settings: Settings = Depends(get_settings),
) -> ProductListResponse:
    """
    Paginated product cards for a category, optionally narrowed to one of its
    subcategories. Unreserved query parameters filter on product attributes.
    """
    listing = parse_listing_params(
        request.query_params.multi_items(), settings.default_page_size
    )
    if not listing.category_slug:
        raise HTTPException(status_code=400, detail="Category is required")

    category = db.get_category_by_slug(listing.category_slug)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")

    subcategory_ref = None
    if listing.subcategory_slug:
        found = catalog.get_subcategory_within_category(
            db, listing.category_slug, listing.subcategory_slug
        )
        if not found:
            raise HTTPException(status_code=404, detail="Subcategory not found")
        subcategory = found.subcategory
        page = catalog.get_products_by_subcategory(
            db, subcategory.id, listing.filters, listing.pagination
        )
        subcategory_ref = {
            "id": subcategory.id,
            "name": subcategory.name,
            "slug": subcategory.slug,
            "filter_config": subcategory.filter_config,
        }
    else:
        page = catalog.get_products_by_category(
            db, category.id, listing.filters, listing.pagination
        )

    filters = listing.filters
    return ProductListResponse(
        items=catalog.enrich_products_with_images(db, storage, page.items),
        page=page.page,
        page_size=page.page_size,
        total=page.total,
        total_pages=page.total_pages,
        category={"id": category.id, "name": category.name, "slug": category.slug},
        subcategory=subcategory_ref,
        applied_filters=AppliedFilters(
            subcategory_slug=listing.subcategory_slug,
            page=page.page,
            page_size=page.page_size,
            sort=filters.sort,
            attribute_filters=filters.attribute_filters,
            min_price=filters.min_price,
            max_price=filters.max_price,
            in_stock=filters.in_stock,
        ),
    )


@router.get("/products/{slug}", response_model=ProductDetailResponse)
def get_product(
    slug: str,
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
) -> ProductDetailResponse:
    details = catalog.get_product_full_details_by_slug(db, storage, slug)
    if not details:
        raise HTTPException(status_code=404, detail="Product not found")
    return ProductDetailResponse(
        product=details.product.as_dict(),
        category=details.category.as_dict(),
        subcategory=details.subcategory.as_dict(),
        assets=details.assets,
    )


# Cart


def _cart_response(db: DbClient, cart_id: str) -> CartResponse:
    items = cart_ops.list_items(db, cart_id)
    return CartResponse(
        items=[item.as_dict() for item in items],
        count=sum(item.quantity for item in items),
    )


@router.get("/cart", response_model=CartResponse)
def get_cart(
    cart_id: str = Depends(get_cart_id), db: DbClient = Depends(get_db_client)
) -> CartResponse:
    return _cart_response(db, cart_id)


@router.get("/cart/count", response_model=CartCountResponse)
def get_cart_count(
    cart_id: str = Depends(get_cart_id), db: DbClient = Depends(get_db_client)
) -> CartCountResponse:
    return CartCountResponse(count=cart_ops.item_count(db, cart_id))


@router.post("/cart/items", response_model=CartResponse)
def add_cart_item(
    payload: CartAddRequest,
    cart_id: str = Depends(get_cart_id),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
) -> CartResponse:
    cart_ops.add_item(db, storage, cart_id, payload.product_id, payload.quantity)
    return _cart_response(db, cart_id)


@router.put("/cart/items/{product_id}", response_model=CartResponse)
def set_cart_item_quantity(
    product_id: int,
    payload: CartQuantityRequest,
    cart_id: str = Depends(get_cart_id),
    db: DbClient = Depends(get_db_client),
) -> CartResponse:
    cart_ops.set_quantity(db, cart_id, product_id, payload.quantity)
    return _cart_response(db, cart_id)


@router.post("/cart/items/{product_id}/increase", response_model=CartResponse)
def increase_cart_item(
    product_id: int,
    cart_id: str = Depends(get_cart_id),
    db: DbClient = Depends(get_db_client),
) -> CartResponse:
    cart_ops.increase(db, cart_id, product_id)
    return _cart_response(db, cart_id)


@router.post("/cart/items/{product_id}/decrease", response_model=CartResponse)
def decrease_cart_item(
    product_id: int,
    cart_id: str = Depends(get_cart_id),
    db: DbClient = Depends(get_db_client),
) -> CartResponse:
    cart_ops.decrease(db, cart_id, product_id)
    return _cart_response(db, cart_id)


@router.delete("/cart/items/{product_id}", response_model=CartResponse)
def remove_cart_item(
    product_id: int,
    cart_id: str = Depends(get_cart_id),
    db: DbClient = Depends(get_db_client),
) -> CartResponse:
    cart_ops.remove_item(db, cart_id, product_id)
    return _cart_response(db, cart_id)


@router.delete("/cart", response_model=CartResponse)
def clear_cart(
    cart_id: str = Depends(get_cart_id), db: DbClient = Depends(get_db_client)
) -> CartResponse:
    cart_ops.clear(db, cart_id)
    return _cart_response(db, cart_id)


@router.post("/cart/order", response_model=OrderLinkResponse)
def order_cart(
    cart_id: str = Depends(get_cart_id),
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
) -> OrderLinkResponse:
    url, message = cart_ops.build_order_link(
        db, cart_id, settings.order_whatsapp_phone, settings.order_greeting
    )
    return OrderLinkResponse(url=url, message=message)


# Auth


@router.post("/auth/signin", response_model=SignInResponse)
def sign_in(
    response: Response,
    email: str = Form(""),
    password: str = Form(""),
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
) -> SignInResponse:
    user = authenticate(db, email, password)
    response.set_cookie(
        settings.session_cookie_name,
        create_session_token(settings.session_secret, user),
        max_age=settings.session_max_age_seconds,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
    )
    logger.info("Admin %s signed in", user.email)
    return SignInResponse(message="Signed in successfully", redirect="/admin")


@router.post("/auth/signout", response_model=StatusResponse)
def sign_out(
    response: Response, settings: Settings = Depends(get_settings)
) -> StatusResponse:
    response.delete_cookie(
        settings.session_cookie_name,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
    )
    return StatusResponse()
