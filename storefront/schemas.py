"""
Pydantic schemas for the storefront FastAPI backend.
"""

from __future__ import annotations

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

AssetKind = Literal["image", "video", "file"]
AssetSection = Literal["gallery", "additional", "download"]


class FilterConfig(BaseModel):
    key: str
    label: str
    type: Literal["select", "checkbox", "range", "boolean"]
    options: Optional[list[str]] = None
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None


# Catalog records


class CategoryOut(BaseModel):
    id: int
    name: str
    slug: str
    image_url: Optional[str] = None
    created_at: float


class SubcategoryOut(BaseModel):
    id: int
    category_id: int
    name: str
    slug: str
    filter_config: list[dict] = Field(default_factory=list)
    display_order: int = 0
    created_at: float
    category_name: Optional[str] = None


class ProductOut(BaseModel):
    id: int
    category_id: int
    subcategory_id: int
    name: str
    slug: str
    description: Optional[str] = None
    price: Optional[float] = None
    stock: int
    brand: Optional[str] = None
    attributes: dict[str, Any] = Field(default_factory=dict)
    created_at: float
    updated_at: float


class ProductCardOut(ProductOut):
    primary_image_url: Optional[str] = None
    secondary_image_url: Optional[str] = None


class AssetOut(BaseModel):
    id: int
    product_id: int
    kind: str
    section: str
    storage_bucket: str
    storage_path: str
    title: Optional[str] = None
    alt: Optional[str] = None
    sort_order: int
    is_primary: bool
    is_secondary: bool
    poster_storage_path: Optional[str] = None
    duration_seconds: Optional[float] = None
    filename: Optional[str] = None
    mime_type: Optional[str] = None
    file_size_bytes: Optional[int] = None
    is_public: bool
    created_at: float
    public_url: Optional[str] = None


# Public catalog responses


class CategoryListResponse(BaseModel):
    categories: list[CategoryOut]


class CategoryDetailResponse(BaseModel):
    category: CategoryOut
    subcategories: list[SubcategoryOut]


class SubcategoryDetailResponse(BaseModel):
    category: CategoryOut
    subcategory: SubcategoryOut
    all_subcategories: list[SubcategoryOut]


class CategoryRef(BaseModel):
    id: int
    name: str
    slug: str


class SubcategoryRef(CategoryRef):
    filter_config: list[dict] = Field(default_factory=list)


class AppliedFilters(BaseModel):
    subcategory_slug: Optional[str] = None
    page: int
    page_size: int
    sort: Optional[str] = None
    attribute_filters: dict[str, Union[str, list[str]]] = Field(default_factory=dict)
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    in_stock: bool = False


class ProductListResponse(BaseModel):
    items: list[ProductCardOut]
    page: int
    page_size: int
    total: int
    total_pages: int
    category: CategoryRef
    subcategory: Optional[SubcategoryRef] = None
    applied_filters: AppliedFilters


class ProductAssetsGrouped(BaseModel):
    gallery: list[AssetOut] = Field(default_factory=list)
    additional: list[AssetOut] = Field(default_factory=list)
    download: list[AssetOut] = Field(default_factory=list)


class ProductDetailResponse(BaseModel):
    product: ProductOut
    category: CategoryOut
    subcategory: SubcategoryOut
    assets: ProductAssetsGrouped


# Cart


class CartAddRequest(BaseModel):
    product_id: int
    quantity: int = 1


class CartQuantityRequest(BaseModel):
    quantity: int


class CartItemOut(BaseModel):
    product_id: int
    name: str
    slug: str
    brand: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    quantity: int


class CartResponse(BaseModel):
    items: list[CartItemOut]
    count: int


class CartCountResponse(BaseModel):
    count: int


class OrderLinkResponse(BaseModel):
    url: str
    message: str


# Auth


class SignInResponse(BaseModel):
    success: Literal[True] = True
    message: str
    redirect: str


class StatusResponse(BaseModel):
    success: Literal[True] = True


# Admin


class CategoryPayload(BaseModel):
    name: str = ""
    slug: Optional[str] = None
    image_url: Optional[str] = None


class SubcategoryPayload(BaseModel):
    name: str = ""
    slug: Optional[str] = None
    category_id: Optional[int] = None
    display_order: int = 0
    filter_config: list[FilterConfig] = Field(default_factory=list)


class CategoryResponse(BaseModel):
    success: Literal[True] = True
    category: CategoryOut


class CategoriesResponse(BaseModel):
    success: Literal[True] = True
    categories: list[CategoryOut]


class CategoryTreeItem(CategoryOut):
    subcategories: list[SubcategoryOut]


class CategoryTreeResponse(BaseModel):
    success: Literal[True] = True
    categories: list[CategoryTreeItem]


class SubcategoryResponse(BaseModel):
    success: Literal[True] = True
    subcategory: SubcategoryOut


class SubcategoriesResponse(BaseModel):
    success: Literal[True] = True
    subcategories: list[SubcategoryOut]


class UploadedFile(BaseModel):
    storage_path: str
    kind: AssetKind
    filename: str
    mime_type: Optional[str] = None
    file_size_bytes: Optional[int] = None
    is_primary: bool = False
    is_secondary: bool = False


class UploadedFiles(BaseModel):
    gallery: list[UploadedFile] = Field(default_factory=list)
    additional: list[UploadedFile] = Field(default_factory=list)
    download: list[UploadedFile] = Field(default_factory=list)


class ProductCreatePayload(BaseModel):
    name: str = ""
    slug: Optional[str] = None
    description: Optional[str] = None
    brand: Optional[str] = None
    price: Optional[float] = None
    stock: Optional[int] = 0
    category_id: Optional[int] = None
    subcategory_id: Optional[int] = None
    attributes: dict[str, Any] = Field(default_factory=dict)
    temp_upload_id: Optional[str] = None
    uploaded_files: UploadedFiles = Field(default_factory=UploadedFiles)


class ProductUpdatePayload(BaseModel):
    """
    Partial update. Only fields present in the request body are applied;
    ``set_secondary_asset: null`` clears the hover image.
    """

    name: Optional[str] = None
    slug: Optional[str] = None
    description: Optional[str] = None
    brand: Optional[str] = None
    price: Optional[float] = None
    stock: Optional[int] = None
    category_id: Optional[int] = None
    subcategory_id: Optional[int] = None
    attributes: Optional[dict[str, Any]] = None
    temp_upload_id: Optional[str] = None
    uploaded_files: Optional[UploadedFiles] = None
    delete_assets: list[int] = Field(default_factory=list)
    set_primary_asset: Optional[int] = None
    set_secondary_asset: Optional[int] = None


class ProductMutationResponse(BaseModel):
    success: Literal[True] = True
    product: ProductOut
    failed_uploads: list[str] = Field(default_factory=list)


class AdminProductOut(ProductOut):
    category_name: str
    subcategory_name: Optional[str] = None
    thumbnail_url: Optional[str] = None


class AdminProductListResponse(BaseModel):
    products: list[AdminProductOut]
    total: int
    page: int
    page_size: int
    total_pages: int


class AdminProductDetail(ProductOut):
    category: Optional[CategoryRef] = None
    subcategory: Optional[CategoryRef] = None
    product_assets: list[AssetOut] = Field(default_factory=list)


class AdminProductDetailResponse(BaseModel):
    success: Literal[True] = True
    product: AdminProductDetail


class AssetResponse(BaseModel):
    success: Literal[True] = True
    asset: AssetOut


class AssetOrderPayload(BaseModel):
    section: AssetSection
    asset_ids: list[int]


class SecondaryAssetPayload(BaseModel):
    asset_id: Optional[int] = None


class UploadUrlRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    filename: str = ""
    content_type: str = Field(default="", alias="contentType")
    section: str = ""
    temp_upload_id: str = Field(default="", alias="tempUploadId")


class UploadUrlResponse(BaseModel):
    signed_url: str
    token: Optional[str] = None
    path: str


class RecentProduct(BaseModel):
    id: int
    name: str
    slug: str
    thumbnail_url: Optional[str] = None
    category_name: str
    subcategory_name: Optional[str] = None
    created_at: float


class CategoryCount(BaseModel):
    category: str
    count: int


class DashboardResponse(BaseModel):
    total_products: int
    total_categories: int
    total_subcategories: int
    total_assets: int
    recent_products: list[RecentProduct]
    products_by_category: list[CategoryCount]
