"""S3 / Cloudflare R2 client for a private certificate bucket.

boto3 is synchronous, so every call runs in a worker thread and is bounded
by the outbound timeout. Objects are never public: callers get short-lived
presigned URLs.
"""

import asyncio
import logging
import time
from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from certchain.common.config import CertchainSettings
from certchain.common.exceptions import StorageError
from certchain.common.outbound import bounded, read_with_retry

logger = logging.getLogger(__name__)

MISSING_KEY_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


def object_key_for(filename: str, now_ms: Optional[int] = None) -> str:
    """Time-based key under certificates/, e.g. certificates/1700000000000-report.pdf."""
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"certificates/{now_ms}-{filename}"


class ObjectStorageClient:
    """Upload, presign, download and existence checks against one bucket."""

    def __init__(
        self,
        bucket: str,
        endpoint_url: str = "",
        region: str = "auto",
        access_key_id: str = "",
        secret_access_key: str = "",
        presign_ttl: int = 300,
        timeout: float = 15.0,
        read_retries: int = 1,
        s3_client: Any = None,
    ):
        self.bucket = bucket
        self.presign_ttl = presign_ttl
        self.timeout = timeout
        self.read_retries = read_retries
        self._endpoint_url = endpoint_url or None
        self._region = region
        self._access_key_id = access_key_id
        self._secret_access_key = secret_access_key
        self._s3 = s3_client

    @classmethod
    def from_settings(cls, settings: CertchainSettings) -> "ObjectStorageClient":
        return cls(
            bucket=settings.s3_bucket,
            endpoint_url=settings.s3_endpoint,
            region=settings.s3_region,
            access_key_id=settings.s3_access_key_id,
            secret_access_key=settings.s3_secret_access_key,
            presign_ttl=settings.presign_ttl,
            timeout=settings.outbound_timeout,
            read_retries=settings.read_retries,
        )

    def _client(self):
        """Lazy-init the boto3 S3 client."""
        if self._s3 is None:
            self._s3 = boto3.client(
                "s3",
                endpoint_url=self._endpoint_url,
                region_name=self._region,
                aws_access_key_id=self._access_key_id or None,
                aws_secret_access_key=self._secret_access_key or None,
                config=Config(
                    connect_timeout=self.timeout,
                    read_timeout=self.timeout,
                    retries={"max_attempts": 1},
                ),
            )
        return self._s3

    async def upload(self, data: bytes, filename: str, content_type: str) -> str:
        """Store a buffer under a generated key and return the key (never a public URL)."""
        key = object_key_for(filename)
        try:
            await bounded(
                "storage upload",
                asyncio.to_thread(
                    self._client().put_object,
                    Bucket=self.bucket,
                    Key=key,
                    Body=data,
                    ContentType=content_type or "application/octet-stream",
                ),
                self.timeout,
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Upload failed: {exc}", key=key) from exc
        logger.info("Uploaded %d bytes to %s/%s", len(data), self.bucket, key)
        return key

    async def presigned_url(self, key: str) -> str:
        try:
            return await bounded(
                "storage presign",
                asyncio.to_thread(
                    self._client().generate_presigned_url,
                    "get_object",
                    Params={"Bucket": self.bucket, "Key": key},
                    ExpiresIn=self.presign_ttl,
                ),
                self.timeout,
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Could not sign download URL: {exc}", key=key) from exc

    def _download(self, key: str) -> bytes:
        response = self._client().get_object(Bucket=self.bucket, Key=key)
        body = response.get("Body")
        if body is None:
            raise StorageError("Object has no body", key=key)
        return body.read()

    async def download(self, key: str) -> bytes:
        try:
            return await read_with_retry(
                "storage download",
                lambda: asyncio.to_thread(self._download, key),
                self.timeout,
                self.read_retries,
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Download failed: {exc}", key=key) from exc

    def _exists(self, key: str) -> bool:
        try:
            self._client().head_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            error = exc.response.get("Error", {})
            status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
            if error.get("Code") in MISSING_KEY_CODES or status == 404:
                return False
            raise
        return True

    async def exists(self, key: str) -> bool:
        try:
            return await read_with_retry(
                "storage exists",
                lambda: asyncio.to_thread(self._exists, key),
                self.timeout,
                self.read_retries,
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Existence check failed: {exc}", key=key) from exc
