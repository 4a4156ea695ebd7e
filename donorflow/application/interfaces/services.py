"""Service interfaces (ports) for external collaborators."""

from __future__ import annotations

from typing import Any, BinaryIO, Protocol


class ISigningProvider(Protocol):
    """E-signature provider (DocuSign)."""

    async def get_envelope_status(self, envelope_id: str) -> dict[str, Any]:
        """Envelope resource including `status` and, when available, recipients."""

    async def download_combined_document(self, envelope_id: str) -> bytes:
        """All signed documents of the envelope combined into one PDF."""


class IArtifactStorage(Protocol):
    """Object storage for signed artifacts (local, S3-compatible)."""

    async def upload(
        self,
        file_data: BinaryIO,
        storage_ref: str,
        expected_checksum: str,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Upload with checksum verification. Idempotent if same checksum."""
