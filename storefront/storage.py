"""
Storage abstraction for S3-compatible object storage and in-memory testing.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Iterable, Optional, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError


class StorageError(Exception):
    """Raised when an object storage operation fails."""


class StorageObjectNotFound(StorageError, FileNotFoundError):
    pass


@dataclass(frozen=True)
class SignedUpload:
    url: str
    path: str
    token: Optional[str] = None


class StorageClient(Protocol):
    """Defines the operations the API needs from object storage."""

    bucket: str

    def create_signed_upload(
        self, path: str, content_type: str, expires_in: int = 600
    ) -> SignedUpload:
        ...

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        ...

    def public_url(self, path: str) -> str:
        ...

    def put_bytes(
        self, path: str, data: bytes, content_type: Optional[str] = None
    ) -> None:
        ...

    def get_bytes(self, path: str) -> bytes:
        ...

    def move(self, src_path: str, dest_path: str) -> None:
        ...

    def delete(self, paths: Iterable[str]) -> None:
        ...

    def list(self, prefix: str) -> list[str]:
        ...


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    bucket: str = "products"
    base_url: str = "https://example.test/storage"
    stored_objects: dict = field(default_factory=dict)
    content_types: dict = field(default_factory=dict)
    # Toggle to exercise the copy-then-delete fallback.
    fail_moves: bool = False

    def create_signed_upload(
        self, path: str, content_type: str, expires_in: int = 600
    ) -> SignedUpload:
        token = uuid.uuid4().hex
        url = f"{self.base_url}/upload/{self.bucket}/{path}?token={token}&expires={expires_in}"
        return SignedUpload(url=url, path=path, token=token)

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        return f"{self.base_url}/sign/{self.bucket}/{path}?expires={expires_in}"

    def public_url(self, path: str) -> str:
        return f"{self.base_url}/public/{self.bucket}/{path}"

    def put_bytes(
        self, path: str, data: bytes, content_type: Optional[str] = None
    ) -> None:
        self.stored_objects[path] = bytes(data)
        if content_type:
            self.content_types[path] = content_type

    def get_bytes(self, path: str) -> bytes:
        stored = self.stored_objects.get(path)
        if stored is None:
            raise StorageObjectNotFound(path)
        return stored

    def move(self, src_path: str, dest_path: str) -> None:
        if self.fail_moves:
            raise StorageError(f"move disabled: {src_path}")
        if src_path not in self.stored_objects:
            raise StorageObjectNotFound(src_path)
        self.stored_objects[dest_path] = self.stored_objects.pop(src_path)
        if src_path in self.content_types:
            self.content_types[dest_path] = self.content_types.pop(src_path)

    def delete(self, paths: Iterable[str]) -> None:
        for path in paths:
            self.stored_objects.pop(path, None)
            self.content_types.pop(path, None)

    def list(self, prefix: str) -> list[str]:
        return sorted(path for path in self.stored_objects if path.startswith(prefix))


@dataclass
class S3StorageClient:
    """
    S3-compatible storage client (AWS S3, MinIO, Cloudflare R2, Tencent COS...).
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    public_base_url: str = ""

    def __post_init__(self):
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id or None,
            aws_secret_access_key=self.secret_access_key or None,
            config=config,
        )

    def create_signed_upload(
        self, path: str, content_type: str, expires_in: int = 600
    ) -> SignedUpload:
        try:
            url = self._client.generate_presigned_url(
                ClientMethod="put_object",
                Params={
                    "Bucket": self.bucket,
                    "Key": path,
                    "ContentType": content_type,
                },
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(str(exc)) from exc
        return SignedUpload(url=url, path=path)

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        return self._client.generate_presigned_url(
            ClientMethod="get_object",
            Params={"Bucket": self.bucket, "Key": path},
            ExpiresIn=expires_in,
        )

    def public_url(self, path: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{path}"
        if self.endpoint:
            return f"{self.endpoint.rstrip('/')}/{self.bucket}/{path}"
        # No custom endpoint means AWS itself.
        region = self.region or "us-east-1"
        return f"https://{self.bucket}.s3.{region}.amazonaws.com/{path}"

    def put_bytes(
        self, path: str, data: bytes, content_type: Optional[str] = None
    ) -> None:
        params = {"Bucket": self.bucket, "Key": path, "Body": data}
        if content_type:
            params["ContentType"] = content_type
        try:
            self._client.put_object(**params)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(str(exc)) from exc

    def get_bytes(self, path: str) -> bytes:
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=path)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                raise StorageObjectNotFound(path) from exc
            raise StorageError(str(exc)) from exc
        except BotoCoreError as exc:
            raise StorageError(str(exc)) from exc
        return response["Body"].read()

    def move(self, src_path: str, dest_path: str) -> None:
        # S3 has no rename: copy server-side, then drop the source.
        try:
            self._client.copy_object(
                Bucket=self.bucket,
                Key=dest_path,
                CopySource={"Bucket": self.bucket, "Key": src_path},
            )
            self._client.delete_object(Bucket=self.bucket, Key=src_path)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(str(exc)) from exc

    def delete(self, paths: Iterable[str]) -> None:
        keys = [{"Key": path} for path in paths]
        if not keys:
            return
        try:
            # delete_objects accepts at most 1000 keys per call.
            for start in range(0, len(keys), 1000):
                self._client.delete_objects(
                    Bucket=self.bucket,
                    Delete={"Objects": keys[start : start + 1000], "Quiet": True},
                )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(str(exc)) from exc

    def list(self, prefix: str) -> list[str]:
        paths: list[str] = []
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                paths.extend(obj["Key"] for obj in page.get("Contents", []))
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(str(exc)) from exc
        return paths
