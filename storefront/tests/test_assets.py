import unittest
from unittest import mock

from storefront import assets
from storefront.db import InMemoryDbClient
from storefront.errors import CatalogError, NotFoundError, ValidationError
from storefront.schemas import UploadedFile, UploadedFiles
from storefront.storage import InMemoryStorageClient, StorageError
from storefront.tests.fixtures import seed_catalog


class UploadRulesTests(unittest.TestCase):
    def test_sanitize_filename(self):
        self.assertEqual(assets.sanitize_filename("mi foto (1).JPG"), "mi_foto__1_.JPG")
        self.assertEqual(assets.sanitize_filename("ficha-técnica.pdf"), "ficha-t_cnica.pdf")

    def test_validate_upload(self):
        assets.validate_upload("gallery", "image/webp")
        assets.validate_upload("download", "application/pdf")
        with self.assertRaises(ValidationError):
            assets.validate_upload("hero", "image/png")
        with self.assertRaises(ValidationError):
            assets.validate_upload("gallery", "application/pdf")

    def test_create_upload_url(self):
        storage = InMemoryStorageClient()
        signed = assets.create_upload_url(
            storage,
            filename="a b.png",
            content_type="image/png",
            section="gallery",
            temp_upload_id="tmp1",
        )
        self.assertTrue(signed.path.startswith("temp/tmp1/gallery/"))
        self.assertTrue(signed.path.endswith("-a_b.png"))
        self.assertIsNotNone(signed.token)

    def test_create_upload_url_missing_fields(self):
        with self.assertRaises(ValidationError):
            assets.create_upload_url(
                InMemoryStorageClient(),
                filename="a.png",
                content_type="image/png",
                section="gallery",
                temp_upload_id="",
            )

    def test_kind_for_content_type(self):
        self.assertEqual(assets.kind_for_content_type("image/png"), "image")
        self.assertEqual(assets.kind_for_content_type("video/mp4"), "video")
        self.assertEqual(assets.kind_for_content_type("application/zip"), "file")


class MoveObjectTests(unittest.TestCase):
    def test_move(self):
        storage = InMemoryStorageClient()
        storage.put_bytes("temp/x/a.png", b"data")
        assets.move_object(storage, "temp/x/a.png", "1/gallery/a.png")
        self.assertEqual(storage.stored_objects, {"1/gallery/a.png": b"data"})

    def test_fallback_copies_then_deletes(self):
        storage = InMemoryStorageClient(fail_moves=True)
        storage.put_bytes("temp/x/a.png", b"data")
        with mock.patch.object(storage, "delete", wraps=storage.delete) as delete:
            assets.move_object(storage, "temp/x/a.png", "1/gallery/a.png")
        delete.assert_called_once_with(["temp/x/a.png"])
        self.assertEqual(storage.stored_objects, {"1/gallery/a.png": b"data"})

    def test_fallback_fails_without_source(self):
        storage = InMemoryStorageClient(fail_moves=True)
        with self.assertRaises(assets.AssetMoveError):
            assets.move_object(storage, "temp/x/missing.png", "1/gallery/a.png")


class AttachUploadsTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.storage = InMemoryStorageClient()
        self.product = seed_catalog(self.db)["soft"]

    def _upload(self, section, filename, **flags):
        path = f"temp/t1/{section}/1-{filename}"
        self.storage.put_bytes(path, b"x")
        return UploadedFile(
            storage_path=path, kind="image", filename=filename, **flags
        )

    def test_attach_sets_order_flags_and_reports_failures(self):
        uploaded = UploadedFiles(
            gallery=[
                self._upload("gallery", "a.png", is_primary=True),
                self._upload("gallery", "b.png", is_secondary=True),
                UploadedFile(
                    storage_path="temp/t1/gallery/1-missing.png",
                    kind="image",
                    filename="missing.png",
                ),
            ],
            download=[self._upload("download", "manual.pdf", is_primary=True)],
        )
        result = assets.attach_uploaded_files(
            self.db, self.storage, self.product, uploaded
        )
        self.assertEqual(result.failed, ["missing.png"])
        self.assertEqual(len(result.attached), 3)

        gallery = self.db.list_assets([self.product.id], section="gallery")
        self.assertEqual([a.filename for a in gallery], ["a.png", "b.png"])
        self.assertEqual([a.sort_order for a in gallery], [1, 2])
        self.assertTrue(gallery[0].is_primary)
        self.assertTrue(gallery[1].is_secondary)
        self.assertEqual(gallery[0].alt, "Cloud")

        (download,) = self.db.list_assets([self.product.id], section="download")
        self.assertFalse(download.is_primary)
        self.assertEqual(download.title, "manual.pdf")
        self.assertTrue(download.storage_path.startswith(f"{self.product.id}/download/"))

    def test_new_primary_replaces_old(self):
        first = assets.attach_uploaded_file(
            self.db, self.storage, self.product,
            self._upload("gallery", "a.png"), "gallery", is_primary=True,
        )
        second = assets.attach_uploaded_file(
            self.db, self.storage, self.product,
            self._upload("gallery", "b.png"), "gallery", is_primary=True,
        )
        self.assertFalse(self.db.get_asset(first.id).is_primary)
        self.assertTrue(self.db.get_asset(second.id).is_primary)

    def test_cleanup_temp_uploads(self):
        self._upload("gallery", "left.png")
        self.storage.put_bytes("temp/other/gallery/x.png", b"x")
        self.assertEqual(assets.cleanup_temp_uploads(self.storage, "t1"), 1)
        self.assertEqual(list(self.storage.stored_objects), ["temp/other/gallery/x.png"])
        self.assertEqual(assets.cleanup_temp_uploads(self.storage, None), 0)

    def test_cleanup_failure_is_not_raised(self):
        with mock.patch.object(self.storage, "list", side_effect=StorageError("down")):
            self.assertEqual(assets.cleanup_temp_uploads(self.storage, "t1"), 0)


class AssetOperationsTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.storage = InMemoryStorageClient()
        self.product = seed_catalog(self.db)["soft"]

    def _direct(self, filename, section="gallery", **kwargs):
        return assets.upload_product_asset(
            self.db,
            self.storage,
            self.product.id,
            filename=filename,
            data=b"bytes",
            content_type="image/png",
            section=section,
            **kwargs,
        )

    def test_upload_product_asset(self):
        asset = self._direct("a.png", is_primary=True)
        self.assertEqual(asset.kind, "image")
        self.assertEqual(asset.file_size_bytes, 5)
        self.assertTrue(asset.is_primary)
        self.assertIn(asset.storage_path, self.storage.stored_objects)

    def test_upload_removes_object_when_insert_fails(self):
        with mock.patch.object(self.db, "create_asset", side_effect=RuntimeError("db")):
            with self.assertRaises(RuntimeError):
                self._direct("a.png")
        self.assertEqual(self.storage.stored_objects, {})

    def test_upload_storage_failure(self):
        with mock.patch.object(self.storage, "put_bytes", side_effect=StorageError("x")):
            with self.assertRaises(CatalogError):
                self._direct("a.png")

    def test_upload_to_unknown_product(self):
        with self.assertRaises(NotFoundError):
            assets.upload_product_asset(
                self.db, self.storage, 9999, filename="a.png", data=b"",
                content_type="image/png", section="gallery",
            )

    def test_reorder_skips_foreign_assets(self):
        a = self._direct("a.png")
        b = self._direct("b.png")
        other = self._direct("c.png", section="additional")
        assets.reorder_assets(self.db, self.product.id, "gallery", [b.id, a.id, other.id])
        self.assertEqual(self.db.get_asset(b.id).sort_order, 0)
        self.assertEqual(self.db.get_asset(a.id).sort_order, 1)
        self.assertEqual(self.db.get_asset(other.id).sort_order, 1)

    def test_primary_and_secondary(self):
        a = self._direct("a.png", is_primary=True)
        b = self._direct("b.png")
        extra = self._direct("c.png", section="additional")

        assets.set_primary_asset(self.db, b.id)
        self.assertFalse(self.db.get_asset(a.id).is_primary)
        self.assertTrue(self.db.get_asset(b.id).is_primary)
        with self.assertRaises(ValidationError):
            assets.set_primary_asset(self.db, extra.id)

        assets.set_secondary_asset(self.db, self.product.id, a.id)
        self.assertTrue(self.db.get_asset(a.id).is_secondary)
        assets.set_secondary_asset(self.db, self.product.id, None)
        self.assertFalse(self.db.get_asset(a.id).is_secondary)

    def test_delete_assets(self):
        a = self._direct("a.png")
        failed = assets.delete_assets(self.db, self.storage, [a.id, 9999])
        self.assertEqual(failed, [9999])
        self.assertIsNone(self.db.get_asset(a.id))
        self.assertEqual(self.storage.stored_objects, {})

    def test_asset_ops_scoped_to_product(self):
        a = self._direct("a.png", is_primary=True)
        failed = assets.delete_assets(
            self.db, self.storage, [a.id], product_id=self.product.id + 1
        )
        self.assertEqual(failed, [a.id])
        self.assertIsNotNone(self.db.get_asset(a.id))
        with self.assertRaises(NotFoundError):
            assets.set_primary_asset(self.db, a.id, product_id=self.product.id + 1)
        self.assertEqual(
            assets.set_primary_asset(self.db, a.id, product_id=self.product.id).id, a.id
        )


if __name__ == "__main__":
    unittest.main()
