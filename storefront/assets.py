"""
Product media: signed upload URLs, moving temp uploads into place, and the
asset bookkeeping (sort order, primary/secondary flags) around them.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Iterable, Optional

from storefront.db import ASSET_KINDS, ASSET_SECTIONS, AssetRecord, DbClient, ProductRecord
from storefront.errors import CatalogError, NotFoundError, ValidationError
from storefront.schemas import UploadedFile, UploadedFiles
from storefront.storage import SignedUpload, StorageClient, StorageError

logger = logging.getLogger(__name__)

IMAGE_TYPES = ("image/jpeg", "image/png", "image/webp", "image/gif")
VIDEO_TYPES = ("video/mp4", "video/webm")
DOCUMENT_TYPES = (
    "application/pdf",
    "application/zip",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
)

ALLOWED_CONTENT_TYPES = {
    "gallery": IMAGE_TYPES + VIDEO_TYPES,
    "additional": IMAGE_TYPES + VIDEO_TYPES,
    "download": IMAGE_TYPES + VIDEO_TYPES + DOCUMENT_TYPES,
}

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


class AssetMoveError(CatalogError):
    pass


@dataclass
class AttachResult:
    attached: list[AssetRecord] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


def sanitize_filename(filename: str) -> str:
    return _UNSAFE_FILENAME_CHARS.sub("_", filename)


def _timestamp_ms() -> int:
    return int(time.time() * 1000)


def temp_upload_path(temp_upload_id: str, section: str, filename: str) -> str:
    return f"temp/{temp_upload_id}/{section}/{_timestamp_ms()}-{sanitize_filename(filename)}"


def product_asset_path(product_id: int, section: str, filename: str) -> str:
    return f"{product_id}/{section}/{_timestamp_ms()}-{sanitize_filename(filename)}"


def kind_for_content_type(content_type: str) -> str:
    if content_type.startswith("image/"):
        return "image"
    if content_type.startswith("video/"):
        return "video"
    return "file"


def validate_upload(section: str, content_type: str) -> None:
    if section not in ALLOWED_CONTENT_TYPES:
        raise ValidationError("Invalid section")
    if content_type not in ALLOWED_CONTENT_TYPES[section]:
        raise ValidationError(
            f"File type not allowed for {section}: {content_type}"
        )


def create_upload_url(
    storage: StorageClient,
    *,
    filename: str,
    content_type: str,
    section: str,
    temp_upload_id: str,
    expires_in: int = 600,
) -> SignedUpload:
    """Validate an upload request and sign a PUT into the temp area."""
    if not filename or not content_type or not section or not temp_upload_id:
        raise ValidationError("Missing required fields")
    validate_upload(section, content_type)
    path = temp_upload_path(temp_upload_id, section, filename)
    try:
        return storage.create_signed_upload(path, content_type, expires_in=expires_in)
    except StorageError as exc:
        logger.error("Error creating signed URL for %s: %s", path, exc)
        raise CatalogError("Could not create upload URL") from exc


def move_object(storage: StorageClient, src_path: str, dest_path: str) -> None:
    """
    Move an object, falling back to download + upload + delete when the
    storage backend refuses the move.
    """
    try:
        storage.move(src_path, dest_path)
        return
    except StorageError as exc:
        logger.error("Error moving file %s to %s: %s", src_path, dest_path, exc)

    try:
        data = storage.get_bytes(src_path)
    except StorageError as exc:
        raise AssetMoveError(f"Failed to move file: {src_path}") from exc
    storage.put_bytes(dest_path, data)
    storage.delete([src_path])


def attach_uploaded_file(
    db: DbClient,
    storage: StorageClient,
    product: ProductRecord,
    file: UploadedFile,
    section: str,
    *,
    is_primary: bool = False,
    is_secondary: bool = False,
) -> AssetRecord:
    new_path = product_asset_path(product.id, section, file.filename)
    move_object(storage, file.storage_path, new_path)

    next_sort_order = db.max_asset_sort_order(product.id, section) + 1
    if is_primary:
        db.clear_asset_flag(product.id, "is_primary")
    if is_secondary:
        db.clear_asset_flag(product.id, "is_secondary")

    return db.create_asset(
        {
            "product_id": product.id,
            "kind": file.kind,
            "section": section,
            "storage_bucket": storage.bucket,
            "storage_path": new_path,
            "title": file.filename if section == "download" else None,
            "alt": product.name if section != "download" else None,
            "is_primary": is_primary,
            "is_secondary": is_secondary,
            "sort_order": next_sort_order,
            "filename": file.filename,
            "mime_type": file.mime_type,
            "file_size_bytes": file.file_size_bytes,
            "is_public": True,
        }
    )


def attach_uploaded_files(
    db: DbClient,
    storage: StorageClient,
    product: ProductRecord,
    uploaded: Optional[UploadedFiles],
) -> AttachResult:
    """
    Move every uploaded file into the product's folder. Each file is handled
    independently: a failure is logged and reported, the rest still attach.
    """
    result = AttachResult()
    if uploaded is None:
        return result
    for section in ASSET_SECTIONS:
        for file in getattr(uploaded, section):
            # Only gallery assets carry the primary/secondary flags.
            in_gallery = section == "gallery"
            try:
                asset = attach_uploaded_file(
                    db,
                    storage,
                    product,
                    file,
                    section,
                    is_primary=in_gallery and file.is_primary,
                    is_secondary=in_gallery and file.is_secondary,
                )
            except (CatalogError, StorageError) as exc:
                logger.error("Error processing %s file %s: %s", section, file.filename, exc)
                result.failed.append(file.filename)
                continue
            result.attached.append(asset)
    return result


def cleanup_temp_uploads(storage: StorageClient, temp_upload_id: Optional[str]) -> int:
    """Remove whatever is left under the temp folder. Failures are only logged."""
    if not temp_upload_id:
        return 0
    prefix = f"temp/{temp_upload_id}/"
    try:
        leftovers = storage.list(prefix)
        if leftovers:
            storage.delete(leftovers)
    except StorageError as exc:
        logger.warning("Could not clean temp uploads under %s: %s", prefix, exc)
        return 0
    return len(leftovers)


def upload_product_asset(
    db: DbClient,
    storage: StorageClient,
    product_id: int,
    *,
    filename: str,
    data: bytes,
    content_type: str,
    section: str,
    kind: Optional[str] = None,
    title: Optional[str] = None,
    alt: Optional[str] = None,
    is_primary: bool = False,
) -> AssetRecord:
    """Store bytes directly under the product and record the asset."""
    if not db.get_product(product_id):
        raise NotFoundError("Product not found")
    validate_upload(section, content_type)
    kind = kind or kind_for_content_type(content_type)
    if kind not in ASSET_KINDS:
        raise ValidationError("Invalid asset kind")

    path = product_asset_path(product_id, section, filename)
    try:
        storage.put_bytes(path, data, content_type=content_type)
    except StorageError as exc:
        raise CatalogError(f"Error uploading file: {exc}") from exc

    primary = is_primary and section == "gallery"
    if primary:
        db.clear_asset_flag(product_id, "is_primary")
    next_sort_order = db.max_asset_sort_order(product_id, section) + 1

    try:
        return db.create_asset(
            {
                "product_id": product_id,
                "kind": kind,
                "section": section,
                "storage_bucket": storage.bucket,
                "storage_path": path,
                "title": title or None,
                "alt": alt or None,
                "is_primary": primary,
                "sort_order": next_sort_order,
                "filename": filename,
                "mime_type": content_type,
                "file_size_bytes": len(data),
                "is_public": True,
            }
        )
    except Exception:
        # Do not leave an orphaned object behind a failed insert.
        storage.delete([path])
        raise


def delete_asset(
    db: DbClient,
    storage: StorageClient,
    asset_id: int,
    product_id: Optional[int] = None,
) -> None:
    asset = db.get_asset(asset_id)
    if not asset or (product_id is not None and asset.product_id != product_id):
        raise NotFoundError("Asset not found")
    try:
        storage.delete([asset.storage_path])
    except StorageError as exc:
        logger.error("Error removing %s from storage: %s", asset.storage_path, exc)
    db.delete_asset(asset_id)


def delete_assets(
    db: DbClient,
    storage: StorageClient,
    asset_ids: Iterable[int],
    product_id: Optional[int] = None,
) -> list[int]:
    """
    Delete several assets; returns the ids that could not be deleted.
    With ``product_id`` only that product's assets are touched.
    """
    failed: list[int] = []
    for asset_id in asset_ids:
        try:
            delete_asset(db, storage, asset_id, product_id)
        except CatalogError as exc:
            logger.error("Error deleting asset %s: %s", asset_id, exc)
            failed.append(asset_id)
    return failed


def reorder_assets(
    db: DbClient, product_id: int, section: str, asset_ids: list[int]
) -> None:
    if section not in ASSET_SECTIONS:
        raise ValidationError("Invalid section")
    for position, asset_id in enumerate(asset_ids):
        asset = db.get_asset(asset_id)
        # Ids from another product or section are skipped.
        if not asset or asset.product_id != product_id or asset.section != section:
            continue
        db.update_asset(asset_id, {"sort_order": position})


def set_primary_asset(
    db: DbClient, asset_id: int, product_id: Optional[int] = None
) -> AssetRecord:
    asset = db.get_asset(asset_id)
    if not asset or (product_id is not None and asset.product_id != product_id):
        raise NotFoundError("Asset not found")
    if asset.section != "gallery":
        raise ValidationError("Only gallery assets can be primary")
    db.clear_asset_flag(asset.product_id, "is_primary")
    return db.update_asset(asset_id, {"is_primary": True})


def set_secondary_asset(
    db: DbClient, product_id: int, asset_id: Optional[int]
) -> Optional[AssetRecord]:
    """Mark the hover image of a product card; ``None`` clears it."""
    if asset_id is not None:
        asset = db.get_asset(asset_id)
        if not asset or asset.product_id != product_id:
            raise NotFoundError("Asset not found")
        if asset.section != "gallery":
            raise ValidationError("Only gallery assets can be secondary")
    db.clear_asset_flag(product_id, "is_secondary")
    if asset_id is None:
        return None
    return db.update_asset(asset_id, {"is_secondary": True})
