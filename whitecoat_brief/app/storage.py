"""Blob storage for uploaded PDFs, product photos and generated images."""

import asyncio
import logging
from typing import Optional
from urllib.parse import quote, unquote

import boto3
from botocore.config import Config

from ..config.settings import settings

logger = logging.getLogger(__name__)

PUBLIC_CACHE_CONTROL = "public, max-age=31536000, immutable"


class BlobStore:
    """Thin wrapper around S3-compatible storage with public-read URLs."""

    def __init__(
        self,
        bucket: Optional[str] = None,
        endpoint: Optional[str] = None,
        public_base_url: Optional[str] = None,
        prefix: Optional[str] = None,
    ) -> None:
        self.bucket = bucket or settings.blob_bucket
        if not self.bucket:
            raise RuntimeError("BLOB_BUCKET is required")
        endpoint = endpoint or settings.blob_endpoint or None
        self.prefix = (prefix if prefix is not None else settings.blob_prefix).strip("/")
        base = public_base_url or settings.blob_public_base_url
        if not base:
            base = f"{endpoint.rstrip('/')}/{self.bucket}" if endpoint else f"https://{self.bucket}.s3.amazonaws.com"
        self.public_base_url = base.rstrip("/")

        session = boto3.session.Session()
        self.client = session.client(
            "s3",
            endpoint_url=endpoint,
            aws_access_key_id=settings.blob_access_key or None,
            aws_secret_access_key=settings.blob_secret_key or None,
            region_name=settings.blob_region,
            config=Config(signature_version="s3v4"),
        )

    def build_key(self, name: str) -> str:
        parts = [p for p in [self.prefix, name.strip("/")] if p]
        return "/".join(parts)

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{quote(key)}"

    def key_from_url(self, url: str) -> Optional[str]:
        """Reverse of public_url. None for URLs outside this store."""
        prefix = self.public_base_url + "/"
        if not url.startswith(prefix):
            return None
        return unquote(url[len(prefix):])

    def upload_bytes(self, name: str, data: bytes, content_type: Optional[str] = None) -> str:
        """Upload under prefix/name and return the public URL."""
        key = self.build_key(name)
        kwargs = {
            "Bucket": self.bucket,
            "Key": key,
            "Body": data,
            "CacheControl": PUBLIC_CACHE_CONTROL,
        }
        if content_type:
            kwargs["ContentType"] = content_type
        self.client.put_object(**kwargs)
        url = self.public_url(key)
        logger.info("[STORAGE] Uploaded %d bytes to %s", len(data), key)
        return url

    def delete_url(self, url: str) -> bool:
        key = self.key_from_url(url)
        if key is None:
            logger.warning("[STORAGE] Not a blob URL, skipping delete: %s", url)
            return False
        self.client.delete_object(Bucket=self.bucket, Key=key)
        return True

    async def upload_bytes_async(self, name: str, data: bytes, content_type: Optional[str] = None) -> str:
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, lambda: self.upload_bytes(name, data, content_type))

    async def delete_url_async(self, url: str) -> bool:
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, self.delete_url, url)


# Singleton
_blob_store: Optional[BlobStore] = None


def get_blob_store() -> Optional[BlobStore]:
    """Get or create the blob store singleton. None when not configured."""
    global _blob_store
    if _blob_store is None:
        if not settings.blob_bucket:
            logger.warning("Blob storage not configured (BLOB_BUCKET unset)")
            return None
        try:
            _blob_store = BlobStore()
        except Exception as e:
            logger.error("Failed to initialize blob storage: %s", e)
            return None
    return _blob_store
