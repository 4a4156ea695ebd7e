"""Storage factory: builds the local or S3 backend from settings."""

from __future__ import annotations

from typing import TYPE_CHECKING

from donorflow.application.interfaces.services import IArtifactStorage

if TYPE_CHECKING:
    from donorflow.core.config import Settings


class StorageFactory:
    @staticmethod
    def create_storage_service(settings: Settings | None = None) -> IArtifactStorage:
        """Create the configured storage backend.

        Raises:
            ValueError: Unknown backend or missing required config.
        """
        from donorflow.core.config import get_settings

        s = settings or get_settings()
        backend = s.storage_backend.lower()

        if backend == "local":
            from donorflow.infrastructure.external.storage.local_storage import (
                LocalStorageService,
            )

            if not s.storage_root:
                raise ValueError("STORAGE_ROOT required for local backend")
            return LocalStorageService(storage_root=s.storage_root)
        if backend == "s3":
            if not s.s3_bucket:
                raise ValueError("S3_BUCKET required for s3 backend")
            try:
                from donorflow.infrastructure.external.storage.s3_storage import (
                    S3StorageService,
                )
            except ImportError as e:
                raise ValueError(
                    "S3 backend requires boto3. Install with: pip install 'donorflow[storage]'"
                ) from e
            return S3StorageService(
                bucket=s.s3_bucket,
                region=s.s3_region,
                endpoint_url=s.s3_endpoint_url,
                access_key=s.s3_access_key,
                secret_key=s.s3_secret_key.get_secret_value() if s.s3_secret_key else None,
            )
        raise ValueError(f"Unknown storage backend: {backend}. Supported: 'local', 's3'")
