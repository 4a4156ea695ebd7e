"""Firestore-backed per-user checklist store (implements ICompletionRepository)."""

from __future__ import annotations

from donorflow.application.dtos.completion import CompletionRecord
from donorflow.domain.exceptions import PersistenceException
from donorflow.infrastructure.exceptions import FirestoreError
from donorflow.infrastructure.firebase._rest_client import FirestoreRESTClient
from donorflow.infrastructure.firebase.collections import COLLECTION_TASK_COMPLETIONS
from donorflow.shared.utils.datetime import utc_now


class FirestoreCompletionRepository:
    """One document per user id in task_completions."""

    def __init__(self, client: FirestoreRESTClient) -> None:
        self._coll = client.collection(COLLECTION_TASK_COMPLETIONS)

    async def get(self, user_id: str) -> CompletionRecord | None:
        try:
            snapshot = await self._coll.document(user_id).get()
        except FirestoreError as e:
            raise PersistenceException(str(e), operation="get completions") from e
        if snapshot is None:
            return None
        return CompletionRecord.from_document(user_id, snapshot.to_dict())

    async def save(self, record: CompletionRecord) -> None:
        try:
            await self._coll.document(record.user_id).set(
                {**record.to_document(), "updated_at": utc_now()}
            )
        except FirestoreError as e:
            raise PersistenceException(str(e), operation="save completions") from e
