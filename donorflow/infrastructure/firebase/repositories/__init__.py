"""Firestore-backed repositories (implement application interfaces)."""

from donorflow.infrastructure.firebase.repositories.completion_repo_firestore import (
    FirestoreCompletionRepository,
)
from donorflow.infrastructure.firebase.repositories.signing_event_repo_firestore import (
    FirestoreProcessedEventStore,
)
from donorflow.infrastructure.firebase.repositories.task_repo_firestore import (
    FirestoreTaskRepository,
)

__all__ = [
    "FirestoreCompletionRepository",
    "FirestoreProcessedEventStore",
    "FirestoreTaskRepository",
]
