"""Infrastructure exceptions for the document store, signing provider and storage.

Firestore errors are plain exceptions raised by the REST client; the task
store adapter translates them into domain exceptions. Signing and storage
errors extend DonorflowException so the presentation layer maps them
consistently. Errors that carry a `transient` flag are retried by
retry_async; the others fail fast.
"""

from donorflow.domain.exceptions import DonorflowException


class FirestoreError(Exception):
    """Non-2xx Firestore response or transport failure."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def transient(self) -> bool:
        return self.status_code is None or self.status_code in (429, 500, 502, 503, 504)


class DocumentExistsError(Exception):
    """Raised when createDocument or an exists=false precondition hits an existing document (409)."""


class DocumentNotFoundError(Exception):
    """Raised when a write requiring an existing document finds none (404)."""


class PreconditionFailedError(Exception):
    """Raised when an update-time precondition failed or the commit was aborted by contention."""


class SigningProviderError(DonorflowException):
    """DocuSign call failed. `transient` marks failures worth retrying."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        transient: bool = False,
    ) -> None:
        super().__init__(
            message,
            "SIGNING_PROVIDER_ERROR",
            {"status_code": status_code, "transient": transient},
        )
        self.status_code = status_code
        self.transient = transient


class SigningProviderNotConfiguredError(DonorflowException):
    def __init__(self) -> None:
        super().__init__(
            "DocuSign is not configured (set DOCUSIGN_INTEGRATION_KEY, DOCUSIGN_USER_ID, DOCUSIGN_PRIVATE_KEY)",
            "SIGNING_PROVIDER_NOT_CONFIGURED",
        )


class StorageException(DonorflowException):
    """Base exception for artifact storage operations."""

    transient = False


class StorageUploadError(StorageException):
    """Upload failed for a reason other than checksum or existence (I/O, network)."""

    transient = True

    def __init__(self, file_path: str, reason: str) -> None:
        super().__init__(
            f"Failed to upload file: {file_path}",
            "STORAGE_UPLOAD_ERROR",
            {"file_path": file_path, "reason": reason},
        )


class StorageChecksumMismatchError(StorageException):
    """Checksum validation failed (corrupted or truncated content)."""

    def __init__(self, file_path: str, expected: str, actual: str) -> None:
        super().__init__(
            f"Checksum mismatch for file: {file_path}",
            "STORAGE_CHECKSUM_ERROR",
            {"file_path": file_path, "expected": expected, "actual": actual},
        )


class StorageAlreadyExistsError(StorageException):
    """File already exists with a different checksum."""

    def __init__(self, file_path: str) -> None:
        super().__init__(
            f"File already exists: {file_path}",
            "STORAGE_EXISTS_ERROR",
            {"file_path": file_path},
        )


class StoragePermissionError(StorageException):
    """Path escapes the storage root or the backend denied access."""

    def __init__(self, file_path: str, operation: str) -> None:
        super().__init__(
            f"Permission denied for {operation} on {file_path}",
            "STORAGE_PERMISSION_ERROR",
            {"file_path": file_path, "operation": operation},
        )
