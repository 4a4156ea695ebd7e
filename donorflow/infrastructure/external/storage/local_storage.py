"""Signed artifacts on the local filesystem."""

from __future__ import annotations

import hashlib
import json
import os
import tempfile
from pathlib import Path
from typing import Any, BinaryIO

import aiofiles

from donorflow.infrastructure.exceptions import (
    StorageAlreadyExistsError,
    StorageChecksumMismatchError,
    StoragePermissionError,
    StorageUploadError,
)
from donorflow.shared.utils.datetime import utc_now

META_SUFFIX = ".meta.json"


class LocalStorageService:
    """Writes artifacts under storage_root.

    Each object is written to a temp file beside its target and renamed into
    place once its sha256 matches; a .meta.json sidecar records content type,
    checksum and the caller's metadata (envelope and task id). Storing the
    same bytes again under the same ref returns the existing object.
    """

    CHUNK_SIZE = 64 * 1024

    def __init__(self, storage_root: str) -> None:
        self.storage_root = Path(storage_root).resolve()
        self.storage_root.mkdir(parents=True, exist_ok=True, mode=0o750)

    def _resolve(self, storage_ref: str) -> Path:
        path = (self.storage_root / storage_ref).resolve()
        if not path.is_relative_to(self.storage_root):
            raise StoragePermissionError(storage_ref, "path_validation")
        return path

    @staticmethod
    def _sidecar(path: Path) -> Path:
        return path.with_suffix(path.suffix + META_SUFFIX)

    async def _sha256(self, path: Path) -> str:
        digest = hashlib.sha256()
        async with aiofiles.open(path, "rb") as f:
            while chunk := await f.read(self.CHUNK_SIZE):
                digest.update(chunk)
        return digest.hexdigest()

    async def _existing(self, storage_ref: str, path: Path, expected_checksum: str) -> dict[str, Any]:
        checksum = await self._sha256(path)
        if checksum != expected_checksum:
            raise StorageAlreadyExistsError(storage_ref)
        uploaded_at = None
        sidecar = self._sidecar(path)
        if sidecar.exists():
            async with aiofiles.open(sidecar, "r") as f:
                uploaded_at = json.loads(await f.read()).get("uploaded_at")
        return {
            "storage_ref": storage_ref,
            "checksum": checksum,
            "size": path.stat().st_size,
            "uploaded_at": uploaded_at or utc_now().isoformat(),
        }

    async def upload(
        self,
        file_data: BinaryIO,
        storage_ref: str,
        expected_checksum: str,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Store the artifact atomically.

        Raises:
            StoragePermissionError: storage_ref escapes the root.
            StorageAlreadyExistsError: Different bytes already stored under storage_ref.
            StorageChecksumMismatchError: Written bytes do not hash to expected_checksum.
            StorageUploadError: Filesystem error (retryable).
        """
        path = self._resolve(storage_ref)
        try:
            if path.exists():
                return await self._existing(storage_ref, path, expected_checksum)

            path.parent.mkdir(parents=True, exist_ok=True, mode=0o750)
            content = file_data.read()
            fd, temp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp_", suffix=path.suffix)
            os.close(fd)
            temp_path = Path(temp_name)
            try:
                async with aiofiles.open(temp_path, "wb") as f:
                    await f.write(content)
                os.chmod(temp_path, 0o640)
                checksum = await self._sha256(temp_path)
                if checksum != expected_checksum:
                    raise StorageChecksumMismatchError(storage_ref, expected_checksum, checksum)
                os.replace(temp_path, path)
            finally:
                if temp_path.exists():
                    temp_path.unlink()

            record: dict[str, Any] = {
                "storage_ref": storage_ref,
                "checksum": checksum,
                "size": len(content),
                "content_type": content_type,
                "uploaded_at": utc_now().isoformat(),
                "custom": metadata or {},
            }
            async with aiofiles.open(self._sidecar(path), "w") as f:
                await f.write(json.dumps(record, indent=2))
            return {k: record[k] for k in ("storage_ref", "checksum", "size", "uploaded_at")}
        except OSError as e:
            raise StorageUploadError(storage_ref, str(e)) from e
