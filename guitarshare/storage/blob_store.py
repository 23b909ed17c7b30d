# guitarshare/storage/blob_store.py
# S3 blob store; boto3 calls are blocking so they run in a worker thread

from __future__ import annotations

import asyncio
import re
from typing import Iterable, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from guitarshare.constants import SOURCE_IMAGE_PREFIX
from guitarshare.middleware.error_handler import StorageError
from guitarshare.middleware.retry import retry_with_backoff

_SOURCE_URL_RE = re.compile(r"/images/(.+)$")

# S3 DeleteObjects accepts at most 1000 keys per call
DELETE_BATCH_SIZE = 1000


def key_from_url(url: str) -> str:
    """Map a public original-image URL (``.../images/<rest>``) to its blob key."""
    match = _SOURCE_URL_RE.search(url or "")
    if not match:
        raise ValueError(f"Invalid image URL format: {url}")
    return f"{SOURCE_IMAGE_PREFIX}{match.group(1)}"


class S3BlobStore:
    def __init__(
        self,
        bucket: str,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        cdn_domain: Optional[str] = None,
    ):
        self.bucket_name = bucket
        self.cdn_domain = cdn_domain
        self._s3 = boto3.resource("s3", region_name=region, endpoint_url=endpoint_url)
        self._bucket = self._s3.Bucket(bucket)

    @classmethod
    def from_settings(cls, settings) -> "S3BlobStore":
        return cls(
            bucket=settings.S3_BUCKET_IMAGES,
            region=settings.AWS_REGION,
            endpoint_url=settings.S3_ENDPOINT_URL,
            cdn_domain=settings.CDN_DOMAIN,
        )

    def public_url(self, key: str) -> str:
        if self.cdn_domain:
            return f"https://{self.cdn_domain}/{key}"
        return f"https://{self.bucket_name}.s3.amazonaws.com/{key}"

    @retry_with_backoff(max_retries=2, base_delay=0.2, exceptions=(BotoCoreError,))
    async def download(self, key: str) -> bytes:
        def _read() -> bytes:
            return self._s3.Object(self.bucket_name, key).get()["Body"].read()
        return await asyncio.to_thread(_read)

    async def upload(self, key: str, data: bytes, content_type: str, cache_control: str) -> None:
        await asyncio.to_thread(
            self._bucket.put_object,
            Key=key,
            Body=data,
            ContentType=content_type,
            CacheControl=cache_control,
        )

    async def delete_many(self, keys: Iterable[str]) -> None:
        """Delete keys in batches. Raises StorageError listing keys S3 refused."""
        keys = list(dict.fromkeys(k for k in keys if k))
        if not keys:
            return

        failed: list[str] = []
        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            batch = keys[start:start + DELETE_BATCH_SIZE]
            try:
                resp = await asyncio.to_thread(
                    self._bucket.delete_objects,
                    Delete={"Objects": [{"Key": k} for k in batch], "Quiet": True},
                )
            except (BotoCoreError, ClientError) as e:
                raise StorageError("Failed to delete blobs", details={"reason": str(e)}) from e
            failed.extend(err.get("Key", "") for err in resp.get("Errors", []))

        if failed:
            raise StorageError("Some blobs could not be deleted", details={"keys": failed})
