# question_imports/storage.py
"""S3-compatible object storage for uploaded PDFs and extracted OCR images."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from django.conf import settings

logger = logging.getLogger(__name__)

SIGNED_URL_TTL_SECONDS = 60 * 60
DELETE_BATCH_SIZE = 1000


@dataclass
class StorageResult:
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _get_s3_client() -> Any:
    return boto3.client(
        "s3",
        endpoint_url=settings.STORAGE_ENDPOINT_URL or None,
        aws_access_key_id=settings.STORAGE_ACCESS_KEY_ID or None,
        aws_secret_access_key=settings.STORAGE_SECRET_ACCESS_KEY or None,
        region_name=settings.STORAGE_REGION or None,
    )


class ObjectStorage:
    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = _get_s3_client()
        return self._client

    def upload(self, bucket: str, path: str, body: bytes, content_type: str) -> StorageResult:
        try:
            self.client.put_object(Bucket=bucket, Key=path, Body=body, ContentType=content_type)
        except (ClientError, BotoCoreError) as e:
            logger.error("Upload to %s/%s failed: %s", bucket, path, e)
            return StorageResult(error=str(e))
        return StorageResult()

    def remove(self, bucket: str, paths: list[str]) -> StorageResult:
        """Delete `paths` from `bucket`. Any failed key turns into an error."""
        paths = [p for p in dict.fromkeys(paths) if p]
        for start in range(0, len(paths), DELETE_BATCH_SIZE):
            batch = paths[start:start + DELETE_BATCH_SIZE]
            try:
                resp = self.client.delete_objects(
                    Bucket=bucket,
                    Delete={"Objects": [{"Key": p} for p in batch], "Quiet": True},
                )
            except (ClientError, BotoCoreError) as e:
                logger.error("Delete from %s failed: %s", bucket, e)
                return StorageResult(error=str(e))
            errors = resp.get("Errors") or []
            if errors:
                first = errors[0]
                msg = f"{first.get('Key')}: {first.get('Code')} {first.get('Message', '')}".strip()
                logger.error("Delete from %s failed for %s key(s): %s", bucket, len(errors), msg)
                return StorageResult(error=msg)
        return StorageResult()

    def signed_url(self, bucket: str, path: str, expires_in: int = SIGNED_URL_TTL_SECONDS) -> str:
        return self.client.generate_presigned_url(
            "get_object",
            Params={"Bucket": bucket, "Key": path},
            ExpiresIn=expires_in,
        )

    def public_url(self, bucket: str, path: str) -> str:
        base = (settings.STORAGE_PUBLIC_BASE_URL or "").rstrip("/")
        if base:
            return f"{base}/{bucket}/{path}"
        endpoint = (settings.STORAGE_ENDPOINT_URL or "").rstrip("/")
        if endpoint:
            return f"{endpoint}/{bucket}/{path}"
        return f"https://{bucket}.s3.amazonaws.com/{path}"
