"""Shared setup for operational scripts: .env loading and Firestore stores."""

import sys
from pathlib import Path

from dotenv import load_dotenv

from donorflow.core.config import get_settings
from donorflow.infrastructure.firebase import FirestoreRESTClient, create_firestore_client
from donorflow.infrastructure.firebase.repositories import FirestoreTaskRepository


def _project_root() -> Path:
    return Path(__file__).resolve().parent.parent


def load_env() -> None:
    """Load .env from the project root so get_settings() sees Firestore credentials."""
    load_dotenv(_project_root() / ".env", override=True)
    get_settings.cache_clear()


def open_task_store() -> tuple[FirestoreRESTClient, FirestoreTaskRepository]:
    """Firestore client + task repository, or exit 1 when not configured."""
    settings = get_settings()
    client = create_firestore_client(settings)
    if client is None:
        print(
            "Firestore not configured (set FIREBASE_SERVICE_ACCOUNT_KEY or FIREBASE_SERVICE_ACCOUNT_PATH)",
            file=sys.stderr,
        )
        sys.exit(1)
    return client, FirestoreTaskRepository(
        client, conditional_write_attempts=settings.conditional_write_attempts
    )
