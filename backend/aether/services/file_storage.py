"""Object storage for attachments: S3-compatible (production) or local filesystem (development)."""

import asyncio
import hashlib
import hmac
import os
import time
from pathlib import Path
from urllib.parse import quote, urlencode

from aether.config import settings
from aether.core.errors import StorageError
from aether.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class FileStorageService:
    """Upload attachments and issue access URLs for them."""

    def __init__(self, backend: str | None = None, local_root: str | None = None):
        self._client = None
        self.backend = backend or settings.storage_backend
        self.local_root = Path(local_root or settings.local_storage_path)

        if self.backend == "local":
            os.makedirs(self.local_root, exist_ok=True)
            logger.info("storage_backend", backend="local", path=str(self.local_root))
        else:
            logger.info("storage_backend", backend="s3", bucket=settings.storage_bucket_name)

    @property
    def client(self):
        """Lazy initialization of the S3 client (only for the s3 backend)."""
        if self.backend != "s3":
            return None

        if self._client is None:
            try:
                import boto3

                self._client = boto3.client(
                    "s3",
                    endpoint_url=settings.storage_endpoint_url or None,
                    aws_access_key_id=settings.storage_access_key_id or None,
                    aws_secret_access_key=settings.storage_secret_access_key or None,
                    region_name=settings.storage_region,
                )
            except Exception as e:
                logger.error("s3_client_init_failed", error=str(e))
                raise
        return self._client

    def local_path(self, storage_path: str) -> Path:
        """Resolve a storage path under the local root, refusing escapes."""
        root = self.local_root.resolve()
        target = (root / storage_path).resolve()
        if root != target and root not in target.parents:
            raise StorageError(f"Invalid storage path: {storage_path}")
        return target

    async def upload(self, storage_path: str, data: bytes, content_type: str | None) -> None:
        """Store raw bytes at storage_path.

        Raises:
            StorageError: If the backend rejects the write
        """
        content_type = content_type or DEFAULT_CONTENT_TYPE
        try:
            if self.backend == "local":
                await asyncio.to_thread(self._write_local, storage_path, data)
            else:
                await asyncio.to_thread(
                    self.client.put_object,
                    Bucket=settings.storage_bucket_name,
                    Key=storage_path,
                    Body=data,
                    ContentType=content_type,
                )
        except StorageError:
            raise
        except Exception as e:
            logger.error(
                "file_upload_failed",
                backend=self.backend,
                storage_path=storage_path,
                error=str(e),
            )
            raise StorageError(f"Failed to upload file: {e}") from e

        logger.info(
            "file_uploaded",
            backend=self.backend,
            storage_path=storage_path,
            size=len(data),
        )

    def _write_local(self, storage_path: str, data: bytes) -> None:
        file_path = self.local_path(storage_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_bytes(data)

    async def create_signed_url(self, storage_path: str, ttl_seconds: int | None = None) -> str:
        """Issue a time-limited URL for a stored object."""
        ttl = ttl_seconds if ttl_seconds is not None else settings.signed_url_ttl_seconds
        if self.backend == "local":
            expires = int(time.time()) + ttl
            query = urlencode(
                {"expires": expires, "signature": self.sign(storage_path, expires)}
            )
            return f"{self.get_public_url(storage_path)}?{query}"

        return await asyncio.to_thread(
            self.client.generate_presigned_url,
            "get_object",
            Params={"Bucket": settings.storage_bucket_name, "Key": storage_path},
            ExpiresIn=ttl,
        )

    def get_public_url(self, storage_path: str) -> str:
        """Unsigned URL for a stored object."""
        key = quote(storage_path)
        if self.backend == "local":
            return f"{settings.api_prefix}/files/download/{key}"
        if settings.storage_public_base_url:
            return f"{settings.storage_public_base_url.rstrip('/')}/{key}"
        endpoint = (settings.storage_endpoint_url or "https://s3.amazonaws.com").rstrip("/")
        return f"{endpoint}/{settings.storage_bucket_name}/{key}"

    def sign(self, storage_path: str, expires: int) -> str:
        """HMAC signature for a local download URL."""
        message = f"{storage_path}:{expires}".encode()
        return hmac.new(
            settings.storage_signing_secret.encode(), message, hashlib.sha256
        ).hexdigest()

    def verify_signature(self, storage_path: str, expires: int, signature: str) -> bool:
        if expires < int(time.time()):
            return False
        return hmac.compare_digest(self.sign(storage_path, expires), signature)

    async def read_local(self, storage_path: str) -> bytes:
        """Read a locally stored object.

        Raises:
            FileNotFoundError: If nothing is stored at storage_path
        """
        file_path = self.local_path(storage_path)
        return await asyncio.to_thread(file_path.read_bytes)


_storage_service: FileStorageService | None = None


def get_file_storage() -> FileStorageService:
    """Process-wide storage service, created on first use."""
    global _storage_service
    if _storage_service is None:
        _storage_service = FileStorageService()
    return _storage_service
