"""Thin Firestore REST API client (no firebase-admin).

Uses google-auth for service account tokens and Firestore REST v1.
All HTTP calls use httpx.AsyncClient so they do not block the event loop.

Beyond plain reads and writes this client exposes what the task store
needs for lock-free coordination: update-time preconditions on PATCH,
multi-document atomic commits with per-write preconditions, batchGet,
and composite (AND) query filters.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Sequence
from typing import Any
from urllib.parse import quote

import httpx

from donorflow.infrastructure.exceptions import (
    DocumentExistsError,
    DocumentNotFoundError,
    FirestoreError,
    PreconditionFailedError,
)
from donorflow.infrastructure.firebase._rest_encoding import (
    decode_document,
    encode_document,
    encode_value,
)

_FIRESTORE_SCOPE = "https://www.googleapis.com/auth/datastore"
_BASE = "https://firestore.googleapis.com/v1"
# Firestore rejects commits with more writes than this.
MAX_WRITES_PER_COMMIT = 500


def _get_credentials(key_dict: dict, scopes: Sequence[str] = (_FIRESTORE_SCOPE,)):
    """Return google.oauth2.service_account.Credentials for the given scopes."""
    from google.oauth2 import service_account

    return service_account.Credentials.from_service_account_info(key_dict, scopes=list(scopes))


def _get_access_token(credentials) -> str:
    from google.auth.transport.requests import Request

    if not credentials.valid:
        credentials.refresh(Request())
    return credentials.token


def _error_status(resp: httpx.Response) -> tuple[str | None, str]:
    """(google.rpc status name, message) from an error body, tolerating list bodies."""
    try:
        body = resp.json()
    except ValueError:
        return None, resp.text[:500]
    if isinstance(body, list) and body:
        body = body[0]
    error = body.get("error") if isinstance(body, dict) else None
    if not isinstance(error, dict):
        return None, resp.text[:500]
    return error.get("status"), error.get("message") or ""


def _raise_for_error(resp: httpx.Response) -> None:
    status_name, message = _error_status(resp)
    if status_name == "FAILED_PRECONDITION" or (
        resp.status_code == 409 and status_name == "ABORTED"
    ):
        raise PreconditionFailedError(message or "Precondition failed")
    if resp.status_code == 409:
        raise DocumentExistsError(message or "Document already exists")
    raise FirestoreError(
        f"Firestore request failed ({resp.status_code} {status_name or ''}): {message}".strip(),
        status_code=resp.status_code,
    )


async def _request_async(
    client: httpx.AsyncClient,
    url: str,
    method: str = "GET",
    body: dict | None = None,
    access_token: str | None = None,
    params: list[tuple[str, str]] | None = None,
) -> Any:
    """Perform an async request to the Firestore REST API. 404 returns None.

    Raises:
        PreconditionFailedError: FAILED_PRECONDITION, or ABORTED on contention.
        DocumentExistsError: 409 ALREADY_EXISTS.
        FirestoreError: Any other non-2xx response or a transport failure.
    """
    headers = {"Content-Type": "application/json"}
    if access_token:
        headers["Authorization"] = f"Bearer {access_token}"
    if method not in ("GET", "PATCH", "POST", "DELETE"):
        raise ValueError(f"Unsupported method: {method!r}")
    try:
        resp = await client.request(
            method,
            url,
            headers=headers,
            json=body if method in ("PATCH", "POST") else None,
            params=params,
        )
    except httpx.HTTPError as e:
        raise FirestoreError(f"Firestore transport error: {e!s}", status_code=None) from e
    if resp.status_code == 404:
        return None
    if resp.status_code not in (200, 204):
        _raise_for_error(resp)
    if method == "DELETE":
        return {}
    raw = resp.content
    return json.loads(raw.decode()) if raw else {}


def _doc_id(name: str) -> str:
    return name.split("/")[-1] if name else ""


class DocumentSnapshot:
    """Snapshot of a document (id + data + update time)."""

    def __init__(self, id_: str, data: dict, update_time: str | None = None):
        self.id = id_
        self._data = data
        self.update_time = update_time

    def to_dict(self) -> dict:
        return self._data

    @classmethod
    def from_rest(cls, document: dict) -> "DocumentSnapshot":
        return cls(
            _doc_id(document.get("name", "")),
            decode_document(document),
            document.get("updateTime"),
        )


class DocumentReference:
    """Reference to a single document; matches firestore API style."""

    def __init__(self, client: "FirestoreRESTClient", path: str):
        self._client = client
        self._path = path

    @property
    def id(self) -> str:
        return _doc_id(self._path)

    @property
    def name(self) -> str:
        """Full resource name used in commit and batchGet bodies."""
        return self._path

    async def set(self, data: dict[str, Any]) -> None:
        """Create or overwrite the document (PATCH with full replace)."""
        await _request_async(
            self._client._http,
            f"{_BASE}/{self._path}",
            method="PATCH",
            body=encode_document(data),
            access_token=await self._client.get_token(),
        )

    async def update(
        self,
        data: dict[str, Any],
        *,
        update_time: str | None = None,
    ) -> str | None:
        """Patch only the given top-level fields of an existing document.

        Args:
            data: Fields to write; each key becomes an updateMask field path.
            update_time: If set, the write only applies while the stored
                document still has this update time.

        Returns:
            The document's new update time.

        Raises:
            DocumentNotFoundError: The document does not exist.
            PreconditionFailedError: The document changed since update_time.
        """
        params = [("updateMask.fieldPaths", key) for key in data]
        if update_time is not None:
            params.append(("currentDocument.updateTime", update_time))
        else:
            params.append(("currentDocument.exists", "true"))
        out = await _request_async(
            self._client._http,
            f"{_BASE}/{self._path}",
            method="PATCH",
            body=encode_document(data),
            access_token=await self._client.get_token(),
            params=params,
        )
        if out is None:
            raise DocumentNotFoundError(self._path)
        return out.get("updateTime")

    async def get(self) -> DocumentSnapshot | None:
        """Fetch the document; returns None if not found."""
        out = await _request_async(
            self._client._http,
            f"{_BASE}/{self._path}",
            access_token=await self._client.get_token(),
        )
        if not out:
            return None
        return DocumentSnapshot(self.id, decode_document(out), out.get("updateTime"))

    async def delete(self) -> None:
        """Delete the document. Idempotent if document is already missing (404)."""
        await _request_async(
            self._client._http,
            f"{_BASE}/{self._path}",
            method="DELETE",
            access_token=await self._client.get_token(),
        )


_OP_MAP: dict[str, str] = {
    "==": "EQUAL",
    "!=": "NOT_EQUAL",
    "<": "LESS_THAN",
    "<=": "LESS_THAN_OR_EQUAL",
    ">": "GREATER_THAN",
    ">=": "GREATER_THAN_OR_EQUAL",
    "in": "IN",
    "not-in": "NOT_IN",
    "array_contains": "ARRAY_CONTAINS",
    "array-contains": "ARRAY_CONTAINS",
    "array_contains_any": "ARRAY_CONTAINS_ANY",
    "array-contains-any": "ARRAY_CONTAINS_ANY",
}


class _Query:
    """Fluent query builder for a collection; runs via runQuery.

    Multiple where() calls are combined with AND.
    """

    def __init__(self, client: "FirestoreRESTClient", parent: str, collection_id: str):
        self._client = client
        self._parent = parent
        self._collection_id = collection_id
        self._filters: list[tuple[str, str, Any]] = []
        self._order_by: list[tuple[str, str]] = []
        self._offset: int = 0
        self._limit: int = 100

    def where(self, field: str, op: str, value: Any) -> "_Query":
        self._filters.append((field, _OP_MAP.get(op, op), value))
        return self

    def order_by(self, field: str, direction: str = "ASCENDING") -> "_Query":
        self._order_by.append((field, direction))
        return self

    def offset(self, n: int) -> "_Query":
        self._offset = n
        return self

    def limit(self, n: int) -> "_Query":
        self._limit = n
        return self

    def _where_clause(self) -> dict | None:
        clauses = [
            {
                "fieldFilter": {
                    "field": {"fieldPath": field},
                    "op": op,
                    "value": encode_value(value),
                }
            }
            for field, op, value in self._filters
        ]
        if not clauses:
            return None
        if len(clauses) == 1:
            return clauses[0]
        return {"compositeFilter": {"op": "AND", "filters": clauses}}

    def to_structured_query(self) -> dict[str, Any]:
        structured: dict[str, Any] = {"from": [{"collectionId": self._collection_id}]}
        where = self._where_clause()
        if where is not None:
            structured["where"] = where
        if self._order_by:
            structured["orderBy"] = [
                {"field": {"fieldPath": field}, "direction": direction}
                for field, direction in self._order_by
            ]
        if self._offset:
            structured["offset"] = self._offset
        if self._limit:
            structured["limit"] = self._limit
        return structured

    async def stream(self) -> AsyncIterator[DocumentSnapshot]:
        """Execute the query and yield document snapshots."""
        resp = await _request_async(
            self._client._http,
            f"{_BASE}/{self._parent}:runQuery",
            method="POST",
            body={"structuredQuery": self.to_structured_query()},
            access_token=await self._client.get_token(),
        )
        items = resp if isinstance(resp, list) else ([resp] if resp else [])
        for item in items:
            if "document" not in item:
                continue
            yield DocumentSnapshot.from_rest(item["document"])


class CollectionReference:
    """Reference to a collection; matches firestore API style."""

    def __init__(self, client: "FirestoreRESTClient", path: str):
        self._client = client
        self._path = path.rstrip("/")

    def document(self, document_id: str) -> DocumentReference:
        return DocumentReference(self._client, f"{self._path}/{document_id}")

    async def create(self, document_id: str, data: dict[str, Any]) -> None:
        """Create a document with the given ID (fail with DocumentExistsError if it exists)."""
        url = f"{_BASE}/{self._path}?documentId={quote(document_id, safe='')}"
        await _request_async(
            self._client._http,
            url,
            method="POST",
            body=encode_document(data),
            access_token=await self._client.get_token(),
        )

    def query(self) -> _Query:
        parent = self._path.rsplit("/", 1)[0]
        collection_id = self._path.split("/")[-1]
        return _Query(self._client, parent, collection_id)

    def where(self, field: str, op: str, value: Any) -> _Query:
        """Start a query with a filter. Chain .where(), .order_by(), .limit(), then .stream()."""
        return self.query().where(field, op, value)

    async def stream(self) -> AsyncIterator[DocumentSnapshot]:
        """List documents in the collection (shallow, first page)."""
        out = await _request_async(
            self._client._http,
            f"{_BASE}/{self._path}",
            access_token=await self._client.get_token(),
        )
        if not out:
            return
        for doc in out.get("documents", []):
            yield DocumentSnapshot.from_rest(doc)


def update_write(
    ref: DocumentReference,
    data: dict[str, Any],
    *,
    exists: bool | None = None,
    update_time: str | None = None,
) -> dict[str, Any]:
    """Commit write replacing the whole document, optionally preconditioned."""
    write: dict[str, Any] = {"update": {"name": ref.name, **encode_document(data)}}
    precondition = _precondition(exists, update_time)
    if precondition:
        write["currentDocument"] = precondition
    return write


def delete_write(
    ref: DocumentReference,
    *,
    exists: bool | None = None,
    update_time: str | None = None,
) -> dict[str, Any]:
    write: dict[str, Any] = {"delete": ref.name}
    precondition = _precondition(exists, update_time)
    if precondition:
        write["currentDocument"] = precondition
    return write


def _precondition(exists: bool | None, update_time: str | None) -> dict[str, Any]:
    if update_time is not None:
        return {"updateTime": update_time}
    if exists is not None:
        return {"exists": exists}
    return {}


class FirestoreRESTClient:
    """Lightweight Firestore client using REST API (no firebase-admin)."""

    def __init__(
        self,
        project_id: str,
        credentials,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._project_id = project_id
        self._credentials = credentials
        self._database = f"projects/{project_id}/databases/(default)"
        self._prefix = f"{self._database}/documents"
        self._http = http_client if http_client is not None else httpx.AsyncClient(timeout=timeout)
        self._owns_http = http_client is None

    @property
    def project_id(self) -> str:
        return self._project_id

    async def aclose(self) -> None:
        """Close the HTTP client only if we created it (do not close injected client)."""
        if self._owns_http:
            await self._http.aclose()

    async def get_token(self) -> str:
        """Return a valid access token; refreshes in thread pool to avoid blocking."""
        return await asyncio.to_thread(_get_access_token, self._credentials)

    def collection(self, collection_id: str) -> CollectionReference:
        return CollectionReference(self, f"{self._prefix}/{collection_id}")

    async def get_all(self, refs: Sequence[DocumentReference]) -> list[DocumentSnapshot]:
        """batchGet; missing documents are omitted."""
        if not refs:
            return []
        resp = await _request_async(
            self._http,
            f"{_BASE}/{self._prefix}:batchGet",
            method="POST",
            body={"documents": [ref.name for ref in refs]},
            access_token=await self.get_token(),
        )
        items = resp if isinstance(resp, list) else ([resp] if resp else [])
        return [DocumentSnapshot.from_rest(item["found"]) for item in items if "found" in item]

    async def commit(self, writes: list[dict[str, Any]]) -> str | None:
        """Apply writes atomically: all of them or none.

        Returns:
            The commit time.

        Raises:
            PreconditionFailedError: A write's precondition failed (including a
                required document that does not exist).
            DocumentExistsError: An exists=false precondition failed.
            ValueError: More than MAX_WRITES_PER_COMMIT writes.
        """
        if len(writes) > MAX_WRITES_PER_COMMIT:
            raise ValueError(
                f"Commit has {len(writes)} writes; Firestore allows at most {MAX_WRITES_PER_COMMIT}"
            )
        out = await _request_async(
            self._http,
            f"{_BASE}/{self._prefix}:commit",
            method="POST",
            body={"writes": writes},
            access_token=await self.get_token(),
        )
        if out is None:
            # 404: an exists=true / updateTime precondition hit a missing document.
            raise PreconditionFailedError("Commit precondition referenced a missing document")
        return out.get("commitTime")
