"""Firestore REST client and Firestore-backed repositories."""

from donorflow.infrastructure.firebase._rest_client import (
    CollectionReference,
    DocumentReference,
    DocumentSnapshot,
    FirestoreRESTClient,
)
from donorflow.infrastructure.firebase.client import create_firestore_client

__all__ = [
    "CollectionReference",
    "DocumentReference",
    "DocumentSnapshot",
    "FirestoreRESTClient",
    "create_firestore_client",
]
