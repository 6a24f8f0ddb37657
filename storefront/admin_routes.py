"""
Admin HTTP routes. Every endpoint requires a signed-in admin.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile

from storefront import admin
from storefront import assets as asset_ops
from storefront.catalog import asset_with_url
from storefront.config import Settings, get_settings
from storefront.db import DbClient
from storefront.dependencies import get_db_client, get_storage_client, require_admin
from storefront.schemas import (
    AdminProductDetailResponse,
    AdminProductListResponse,
    AssetOrderPayload,
    AssetResponse,
    CategoriesResponse,
    CategoryPayload,
    CategoryResponse,
    CategoryTreeResponse,
    DashboardResponse,
    ProductCreatePayload,
    ProductMutationResponse,
    ProductUpdatePayload,
    SecondaryAssetPayload,
    StatusResponse,
    SubcategoriesResponse,
    SubcategoryPayload,
    SubcategoryResponse,
    UploadUrlRequest,
    UploadUrlResponse,
)
from storefront.storage import StorageClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])


@router.get("/dashboard", response_model=DashboardResponse)
def dashboard(
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
) -> DashboardResponse:
    return DashboardResponse(**admin.get_dashboard_stats(db, storage))


# Categories


@router.get("/categories", response_model=CategoriesResponse)
def list_categories(db: DbClient = Depends(get_db_client)) -> CategoriesResponse:
    return CategoriesResponse(categories=[c.as_dict() for c in db.list_categories()])


@router.get("/categories/tree", response_model=CategoryTreeResponse)
def category_tree(db: DbClient = Depends(get_db_client)) -> CategoryTreeResponse:
    tree = [
        {**category.as_dict(), "subcategories": [s.as_dict() for s in subs]}
        for category, subs in admin.list_categories_with_subcategories(db)
    ]
    return CategoryTreeResponse(categories=tree)


@router.post("/categories", response_model=CategoryResponse)
def create_category(
    payload: CategoryPayload, db: DbClient = Depends(get_db_client)
) -> CategoryResponse:
    category = admin.create_category(db, payload.name, payload.slug, payload.image_url)
    return CategoryResponse(category=category.as_dict())


@router.put("/categories/{category_id}", response_model=CategoryResponse)
def update_category(
    category_id: int, payload: CategoryPayload, db: DbClient = Depends(get_db_client)
) -> CategoryResponse:
    category = admin.update_category(
        db, category_id, payload.name, payload.slug, payload.image_url
    )
    return CategoryResponse(category=category.as_dict())


@router.delete("/categories/{category_id}", response_model=StatusResponse)
def delete_category(
    category_id: int, db: DbClient = Depends(get_db_client)
) -> StatusResponse:
    admin.delete_category(db, category_id)
    return StatusResponse()


# Subcategories


def _subcategory_out(subcategory, category_name: Optional[str]) -> dict:
    return {**subcategory.as_dict(), "category_name": category_name}


@router.get("/subcategories", response_model=SubcategoriesResponse)
def list_subcategories(db: DbClient = Depends(get_db_client)) -> SubcategoriesResponse:
    return SubcategoriesResponse(
        subcategories=[
            _subcategory_out(sub, name)
            for sub, name in admin.list_subcategories_with_category(db)
        ]
    )


@router.post("/subcategories", response_model=SubcategoryResponse)
def create_subcategory(
    payload: SubcategoryPayload, db: DbClient = Depends(get_db_client)
) -> SubcategoryResponse:
    subcategory = admin.create_subcategory(
        db,
        payload.name,
        payload.slug,
        payload.category_id,
        payload.display_order,
        [f.model_dump(exclude_none=True) for f in payload.filter_config],
    )
    category = db.get_category(subcategory.category_id)
    return SubcategoryResponse(
        subcategory=_subcategory_out(subcategory, category.name if category else None)
    )


@router.put("/subcategories/{subcategory_id}", response_model=SubcategoryResponse)
def update_subcategory(
    subcategory_id: int,
    payload: SubcategoryPayload,
    db: DbClient = Depends(get_db_client),
) -> SubcategoryResponse:
    subcategory = admin.update_subcategory(
        db,
        subcategory_id,
        payload.name,
        payload.slug,
        payload.category_id,
        payload.display_order,
        [f.model_dump(exclude_none=True) for f in payload.filter_config],
    )
    category = db.get_category(subcategory.category_id)
    return SubcategoryResponse(
        subcategory=_subcategory_out(subcategory, category.name if category else None)
    )


@router.delete("/subcategories/{subcategory_id}", response_model=StatusResponse)
def delete_subcategory(
    subcategory_id: int, db: DbClient = Depends(get_db_client)
) -> StatusResponse:
    admin.delete_subcategory(db, subcategory_id)
    return StatusResponse()


# Products


@router.get("/products", response_model=AdminProductListResponse)
def list_products(
    page: Optional[int] = Query(default=None),
    page_size: Optional[int] = Query(default=None),
    search: Optional[str] = Query(default=None),
    category_id: Optional[int] = Query(default=None),
    subcategory_id: Optional[int] = Query(default=None),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    settings: Settings = Depends(get_settings),
) -> AdminProductListResponse:
    return AdminProductListResponse(
        **admin.list_admin_products(
            db,
            storage,
            page=page,
            page_size=page_size,
            search=search,
            category_id=category_id,
            subcategory_id=subcategory_id,
            default_page_size=settings.admin_page_size,
        )
    )


@router.post("/products", response_model=ProductMutationResponse)
def create_product(
    payload: ProductCreatePayload,
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
) -> ProductMutationResponse:
    result = admin.create_product(db, storage, payload)
    return ProductMutationResponse(
        product=result.product.as_dict(), failed_uploads=result.failed_uploads
    )


@router.get("/products/{product_id}", response_model=AdminProductDetailResponse)
def get_product(
    product_id: int,
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
) -> AdminProductDetailResponse:
    return AdminProductDetailResponse(
        product=admin.get_admin_product(db, storage, product_id)
    )


@router.put("/products/{product_id}", response_model=ProductMutationResponse)
def update_product(
    product_id: int,
    payload: ProductUpdatePayload,
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
) -> ProductMutationResponse:
    result = admin.update_product(db, storage, product_id, payload)
    return ProductMutationResponse(
        product=result.product.as_dict(), failed_uploads=result.failed_uploads
    )


@router.delete("/products/{product_id}", response_model=StatusResponse)
def delete_product(
    product_id: int,
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
) -> StatusResponse:
    admin.delete_product(db, storage, product_id)
    return StatusResponse()


# Assets


@router.post("/products/{product_id}/assets", response_model=AssetResponse)
def upload_asset(
    product_id: int,
    file: UploadFile = File(...),
    section: str = Form("gallery"),
    kind: Optional[str] = Form(None),
    title: Optional[str] = Form(None),
    alt: Optional[str] = Form(None),
    is_primary: bool = Form(False),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
) -> AssetResponse:
    content_type = file.content_type or "application/octet-stream"
    asset = asset_ops.upload_product_asset(
        db,
        storage,
        product_id,
        filename=file.filename or "upload",
        data=file.file.read(),
        content_type=content_type,
        section=section,
        kind=kind,
        title=title,
        alt=alt,
        is_primary=is_primary,
    )
    return AssetResponse(asset=asset_with_url(storage, asset))


@router.put("/products/{product_id}/assets/order", response_model=StatusResponse)
def reorder_assets(
    product_id: int,
    payload: AssetOrderPayload,
    db: DbClient = Depends(get_db_client),
) -> StatusResponse:
    if not db.get_product(product_id):
        raise HTTPException(status_code=404, detail="Product not found")
    asset_ops.reorder_assets(db, product_id, payload.section, payload.asset_ids)
    return StatusResponse()


@router.post("/products/{product_id}/assets/secondary", response_model=StatusResponse)
def set_secondary_asset(
    product_id: int,
    payload: SecondaryAssetPayload,
    db: DbClient = Depends(get_db_client),
) -> StatusResponse:
    if not db.get_product(product_id):
        raise HTTPException(status_code=404, detail="Product not found")
    asset_ops.set_secondary_asset(db, product_id, payload.asset_id)
    return StatusResponse()


@router.delete("/assets/{asset_id}", response_model=StatusResponse)
def delete_asset(
    asset_id: int,
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
) -> StatusResponse:
    asset_ops.delete_asset(db, storage, asset_id)
    return StatusResponse()


@router.post("/assets/{asset_id}/primary", response_model=AssetResponse)
def set_primary_asset(
    asset_id: int,
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
) -> AssetResponse:
    asset = asset_ops.set_primary_asset(db, asset_id)
    return AssetResponse(asset=asset_with_url(storage, asset))


@router.post("/upload-url", response_model=UploadUrlResponse)
def create_upload_url(
    payload: UploadUrlRequest,
    storage: StorageClient = Depends(get_storage_client),
    settings: Settings = Depends(get_settings),
) -> UploadUrlResponse:
    signed = asset_ops.create_upload_url(
        storage,
        filename=payload.filename,
        content_type=payload.content_type,
        section=payload.section,
        temp_upload_id=payload.temp_upload_id,
        expires_in=settings.upload_url_expires_in,
    )
    return UploadUrlResponse(signed_url=signed.url, token=signed.token, path=signed.path)
