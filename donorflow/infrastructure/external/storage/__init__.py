"""Signed-artifact storage: local filesystem and S3-compatible backends.

The factory picks the backend from donorflow.core.config. The S3 backend is
imported lazily so the default (local) only needs aiofiles; boto3 comes
with the `storage` extra.
"""

from donorflow.infrastructure.external.storage.factory import StorageFactory

__all__ = ["StorageFactory"]
