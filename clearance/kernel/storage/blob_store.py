"""
Blob Adapter - bundle upload, resolution and deletion.

Two backends:
- local: files under LOCAL_STORAGE_PATH, served by GET /api/v1/bundles/{filename}
- s3:    any S3-compatible bucket; downloads go through presigned GET URLs

Deleting a key that is already gone counts as success.
"""

import asyncio
import os
from pathlib import Path
from typing import Optional, Protocol
from urllib.parse import quote

import boto3
from botocore.client import BaseClient
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from clearance.config import Settings
from clearance.kernel.errors import BlobNotFound, BlobStoreUnavailable
from clearance.logging_config import get_logger

logger = get_logger(__name__)

ZIP_CONTENT_TYPE = "application/zip"


class BlobStore(Protocol):
    async def upload(self, key: str, data: bytes) -> str:
        """Store data under key and return a fetchable reference."""

    async def resolve(self, key: str) -> str:
        """Return a fetchable URL for key; BlobNotFound if absent."""

    async def delete(self, key: str) -> None:
        """Remove key; missing keys are not an error."""

    async def exists(self, key: str) -> bool:
        ...


def _check_key(key: str) -> str:
    parts = Path(key).parts
    if not key or key.startswith("/") or ".." in parts:
        raise ValueError(f"Invalid storage key: {key!r}")
    return key


class LocalBlobStore:
    """Filesystem-backed store for development and single-host deployments."""

    def __init__(self, root: str, public_base_url: str, api_prefix: str = "/api/v1"):
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")
        self.api_prefix = api_prefix.rstrip("/")

    def path_for(self, key: str) -> Path:
        return self.root / _check_key(key)

    def url_for(self, key: str) -> str:
        filename = quote(Path(key).name)
        return f"{self.public_base_url}{self.api_prefix}/bundles/{filename}"

    async def upload(self, key: str, data: bytes) -> str:
        path = self.path_for(key)
        try:
            await asyncio.to_thread(self._write, path, data)
        except OSError as exc:
            logger.error("Local bundle write failed", extra={"storage_key": key, "error": str(exc)})
            raise BlobStoreUnavailable(f"Could not store bundle {key}") from exc
        logger.info("Bundle stored", extra={"storage_key": key, "bytes": len(data)})
        return self.url_for(key)

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.parent / (path.name + ".part")
        with open(tmp, "wb") as f:
            f.write(data)
        os.replace(tmp, path)

    async def resolve(self, key: str) -> str:
        if not await self.exists(key):
            raise BlobNotFound(key)
        return self.url_for(key)

    async def delete(self, key: str) -> None:
        path = self.path_for(key)
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as exc:
            raise BlobStoreUnavailable(f"Could not delete bundle {key}") from exc
        logger.info("Bundle deleted", extra={"storage_key": key})

    async def exists(self, key: str) -> bool:
        return await asyncio.to_thread(self.path_for(key).is_file)


def get_s3_client(settings: Settings) -> BaseClient:
    """Return a configured S3 client (supports S3-compatible endpoints)."""
    endpoint_url = settings.s3_endpoint_url.rstrip("/") or None
    return boto3.client(
        "s3",
        region_name=settings.s3_region or None,
        aws_access_key_id=settings.aws_access_key_id or None,
        aws_secret_access_key=settings.aws_secret_access_key or None,
        endpoint_url=endpoint_url,
        config=Config(retries={"max_attempts": 1}),
    )


def _is_missing(exc: ClientError) -> bool:
    code = str(exc.response.get("Error", {}).get("Code", ""))
    return code in {"404", "NoSuchKey", "NotFound"}


class S3BlobStore:
    """S3-compatible bucket. boto3 is blocking, so calls run in a worker thread."""

    def __init__(
        self,
        bucket: str,
        client: Optional[BaseClient] = None,
        settings: Optional[Settings] = None,
        url_expiry_seconds: int = 300,
    ):
        if client is None:
            if settings is None:
                raise ValueError("S3BlobStore needs a client or settings")
            client = get_s3_client(settings)
        self.bucket = bucket
        self.client = client
        self.url_expiry_seconds = url_expiry_seconds

    async def upload(self, key: str, data: bytes) -> str:
        _check_key(key)
        try:
            await asyncio.to_thread(
                self.client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=ZIP_CONTENT_TYPE,
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("S3 upload failed", extra={"storage_key": key, "error": str(exc)})
            raise BlobStoreUnavailable(f"Could not store bundle {key}") from exc
        logger.info("Bundle stored", extra={"storage_key": key, "bytes": len(data)})
        return self.object_url(key)

    def object_url(self, key: str) -> str:
        """Path-style object URL; private buckets still need resolve() to fetch."""
        endpoint = getattr(self.client.meta, "endpoint_url", None) or "https://s3.amazonaws.com"
        endpoint = endpoint.rstrip("/")
        return f"{endpoint}/{self.bucket}/{quote(key)}"

    async def exists(self, key: str) -> bool:
        _check_key(key)
        try:
            await asyncio.to_thread(self.client.head_object, Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if _is_missing(exc):
                return False
            raise BlobStoreUnavailable(f"Could not check bundle {key}") from exc
        except BotoCoreError as exc:
            raise BlobStoreUnavailable(f"Could not check bundle {key}") from exc
        return True

    async def resolve(self, key: str) -> str:
        if not await self.exists(key):
            raise BlobNotFound(key)
        try:
            return await asyncio.to_thread(
                self.client.generate_presigned_url,
                "get_object",
                Params={
                    "Bucket": self.bucket,
                    "Key": key,
                    "ResponseContentDisposition": f'attachment; filename="{Path(key).name}"',
                },
                ExpiresIn=self.url_expiry_seconds,
            )
        except (BotoCoreError, ClientError) as exc:
            raise BlobStoreUnavailable(f"Could not sign bundle URL {key}") from exc

    async def delete(self, key: str) -> None:
        _check_key(key)
        try:
            await asyncio.to_thread(self.client.delete_object, Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if not _is_missing(exc):
                raise BlobStoreUnavailable(f"Could not delete bundle {key}") from exc
        except BotoCoreError as exc:
            raise BlobStoreUnavailable(f"Could not delete bundle {key}") from exc
        logger.info("Bundle deleted", extra={"storage_key": key})


def create_blob_store(settings: Settings) -> BlobStore:
    """Build the configured backend."""
    backend = (settings.storage_backend or "local").strip().lower()
    if backend == "s3":
        return S3BlobStore(
            bucket=settings.s3_bucket,
            settings=settings,
            url_expiry_seconds=settings.signed_url_expiry_seconds,
        )
    if backend == "local":
        return LocalBlobStore(
            root=settings.local_storage_path,
            public_base_url=settings.public_base_url,
            api_prefix=settings.api_v1_prefix,
        )
    raise ValueError(f"Unknown storage backend: {settings.storage_backend!r}")
