"""Firestore-backed record of processed signing events (implements IProcessedEventStore).

Claims use createDocument with a caller-chosen id, which Firestore rejects
with 409 when the id exists; that makes the claim atomic across replicas.
"""

from __future__ import annotations

import hashlib
from typing import Any

from donorflow.domain.exceptions import PersistenceException
from donorflow.infrastructure.exceptions import DocumentExistsError, FirestoreError
from donorflow.infrastructure.firebase._rest_client import FirestoreRESTClient
from donorflow.infrastructure.firebase.collections import COLLECTION_PROCESSED_SIGNING_EVENTS
from donorflow.shared.utils.datetime import utc_now


def _event_doc_id(key: str) -> str:
    """Document ids cannot contain '/'; hash keeps them short and safe."""
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


class FirestoreProcessedEventStore:
    def __init__(self, client: FirestoreRESTClient) -> None:
        self._coll = client.collection(COLLECTION_PROCESSED_SIGNING_EVENTS)

    async def claim(self, key: str, data: dict[str, Any] | None = None) -> bool:
        try:
            await self._coll.create(
                _event_doc_id(key),
                {"key": key, **(data or {}), "processed_at": utc_now()},
            )
        except DocumentExistsError:
            return False
        except FirestoreError as e:
            raise PersistenceException(str(e), operation="claim signing event") from e
        return True

    async def release(self, key: str) -> None:
        try:
            await self._coll.document(_event_doc_id(key)).delete()
        except FirestoreError as e:
            raise PersistenceException(str(e), operation="release signing event") from e
