"""S3-compatible object storage (AWS S3, MinIO, etc.) with checksums."""

from __future__ import annotations

import asyncio
import hashlib
from typing import Any, BinaryIO

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from donorflow.infrastructure.exceptions import (
    StorageAlreadyExistsError,
    StorageChecksumMismatchError,
    StorageUploadError,
)

_MISSING_CODES = ("404", "NoSuchKey", "NotFound")


def _is_missing(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") in _MISSING_CODES


class S3StorageService:
    """Signed artifacts in an S3-compatible bucket, with server-side encryption.

    boto3 is synchronous; every call runs in asyncio.to_thread. The sha256 of
    the body is stored as object metadata so re-uploads can be recognised.
    """

    def __init__(
        self,
        bucket: str,
        region: str = "us-east-1",
        endpoint_url: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
    ) -> None:
        self.bucket = bucket
        self.region = region
        extra = {} if endpoint_url is None else {"endpoint_url": endpoint_url}
        self._client = boto3.client(
            "s3",
            region_name=region,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            **extra,
        )

    def _head(self, storage_ref: str) -> dict[str, Any] | None:
        try:
            return self._client.head_object(Bucket=self.bucket, Key=storage_ref)
        except ClientError as e:
            if _is_missing(e):
                return None
            raise

    async def upload(
        self,
        file_data: BinaryIO,
        storage_ref: str,
        expected_checksum: str,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Upload with checksum validation. Idempotent if same checksum."""

        def _upload() -> dict[str, Any]:
            head = self._head(storage_ref)
            if head is not None:
                existing = (head.get("Metadata") or {}).get("sha256")
                if existing != expected_checksum:
                    raise StorageAlreadyExistsError(storage_ref)
                return {
                    "storage_ref": storage_ref,
                    "checksum": existing,
                    "size": head["ContentLength"],
                    "uploaded_at": head["LastModified"].isoformat(),
                }

            file_data.seek(0)
            body = file_data.read()
            computed = hashlib.sha256(body).hexdigest()
            if computed != expected_checksum:
                raise StorageChecksumMismatchError(storage_ref, expected_checksum, computed)
            meta = {"sha256": computed, "original-size": str(len(body))}
            for k, v in (metadata or {}).items():
                meta[k.lower().replace("_", "-")] = v
            self._client.put_object(
                Bucket=self.bucket,
                Key=storage_ref,
                Body=body,
                ContentType=content_type,
                ServerSideEncryption="AES256",
                Metadata=meta,
            )
            head = self._client.head_object(Bucket=self.bucket, Key=storage_ref)
            return {
                "storage_ref": storage_ref,
                "checksum": computed,
                "size": len(body),
                "uploaded_at": head["LastModified"].isoformat(),
            }

        try:
            return await asyncio.to_thread(_upload)
        except (ClientError, BotoCoreError) as e:
            raise StorageUploadError(storage_ref, str(e)) from e
