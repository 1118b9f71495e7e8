"""Object storage for visit photos.

Bytes never pass through this service: clients receive a presigned POST that
pins the exact key, the content type and a size ceiling, upload directly to the
bucket, and later read through short-lived presigned GET URLs.
"""
import asyncio
from dataclasses import dataclass, field
from typing import Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from ..config import settings


@dataclass
class PresignedUpload:
    url: str
    fields: dict[str, str] = field(default_factory=dict)


class PhotoStorage(Protocol):
    async def issue_upload_authorization(self, key: str, content_type: str, max_bytes: int) -> PresignedUpload: ...

    async def issue_download_url(self, key: str) -> str: ...

    async def delete_object(self, key: str) -> None:
        """Remove the object. Must not raise; failures are only logged."""
        ...


class S3PhotoStorage:
    def __init__(
        self,
        bucket: str,
        region: str,
        endpoint_url: str | None = None,
        upload_expires_in: int = 900,
        download_expires_in: int = 3600,
    ):
        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url
        self.upload_expires_in = upload_expires_in
        self.download_expires_in = download_expires_in
        self._client = None

    @property
    def client(self):
        if self._client is None:
            # Path-style addressing for S3-compatible endpoints (MinIO, localstack).
            addressing = "path" if self.endpoint_url else "virtual"
            self._client = boto3.client(
                "s3",
                region_name=self.region,
                endpoint_url=self.endpoint_url,
                config=Config(signature_version="s3v4", s3={"addressing_style": addressing}),
            )
            logger.info("S3 client initialized region={} bucket={}", self.region, self.bucket)
        return self._client

    async def issue_upload_authorization(self, key: str, content_type: str, max_bytes: int) -> PresignedUpload:
        post = await asyncio.to_thread(
            self.client.generate_presigned_post,
            Bucket=self.bucket,
            Key=key,
            Fields={"Content-Type": content_type},
            Conditions=[
                ["content-length-range", 0, max_bytes],
                ["eq", "$Content-Type", content_type],
                ["eq", "$key", key],
            ],
            ExpiresIn=self.upload_expires_in,
        )
        return PresignedUpload(url=post["url"], fields=dict(post["fields"]))

    async def issue_download_url(self, key: str) -> str:
        return await asyncio.to_thread(
            self.client.generate_presigned_url,
            "get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=self.download_expires_in,
        )

    async def delete_object(self, key: str) -> None:
        try:
            await asyncio.to_thread(self.client.delete_object, Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            logger.warning("S3 delete failed key={} error={}", key, e)


_storage: S3PhotoStorage | None = None


def get_storage() -> PhotoStorage:
    """FastAPI dependency: process-wide S3 storage built from settings."""
    global _storage
    if _storage is None:
        _storage = S3PhotoStorage(
            bucket=settings.S3_BUCKET,
            region=settings.AWS_REGION,
            endpoint_url=settings.S3_ENDPOINT_URL,
            upload_expires_in=settings.PHOTO_UPLOAD_URL_EXPIRE_SECONDS,
            download_expires_in=settings.PHOTO_DOWNLOAD_URL_EXPIRE_SECONDS,
        )
    return _storage
