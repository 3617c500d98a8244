from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError

from ..config import settings
from ..errors import UpstreamUnavailable
from .aws import boto3_client

logger = logging.getLogger(__name__)


@dataclass
class StoredFile:
    key: str
    size_bytes: int
    content_type: str


class StorageService:
    def __init__(self, bucket: Optional[str] = None) -> None:
        self.bucket = bucket or settings.aws.s3_bucket
        self._client = boto3_client("s3")

    @staticmethod
    def build_key(division_id: str | uuid.UUID, original_name: str) -> str:
        suffix = Path(original_name).suffix.lower() or ".bin"
        return f"documents/{division_id}/{uuid.uuid4().hex}{suffix}"

    def put(self, key: str, data: bytes, content_type: str) -> StoredFile:
        try:
            self._client.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType=content_type)
        except (BotoCoreError, ClientError) as exc:
            logger.error("s3_put_failed key=%s error=%s", key, exc)
            raise UpstreamUnavailable("File storage unavailable") from exc
        return StoredFile(key=key, size_bytes=len(data), content_type=content_type)

    def generate_presigned_url(self, key: str, ttl: timedelta | None = None) -> str:
        ttl = ttl or timedelta(seconds=settings.download_url_ttl_seconds)
        try:
            return self._client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=int(ttl.total_seconds()),
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("s3_presign_failed key=%s error=%s", key, exc)
            raise UpstreamUnavailable("File storage unavailable") from exc

    def read(self, key: str) -> bytes:
        try:
            obj = self._client.get_object(Bucket=self.bucket, Key=key)
            body = obj["Body"]
            try:
                return body.read()
            finally:
                body.close()
        except (BotoCoreError, ClientError) as exc:
            logger.error("s3_get_failed key=%s error=%s", key, exc)
            raise UpstreamUnavailable("File storage unavailable") from exc

    def delete(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise UpstreamUnavailable("File storage unavailable") from exc


def get_storage_service() -> StorageService:
    return StorageService()
