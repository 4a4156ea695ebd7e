"""Application lifespan: startup and shutdown.

Only wiring of infrastructure here: the Firestore client and the stores built
on it, the DocuSign client and artifact storage. Each is optional; a missing
handle leaves its attribute on app.state as None and the endpoints that need
it answer 503.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from donorflow.core.config import get_settings
from donorflow.domain.templates import default_registry
from donorflow.infrastructure.external.docusign import DocuSignClient
from donorflow.infrastructure.external.storage import StorageFactory
from donorflow.infrastructure.firebase import create_firestore_client
from donorflow.infrastructure.firebase.repositories import (
    FirestoreCompletionRepository,
    FirestoreProcessedEventStore,
    FirestoreTaskRepository,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def create_lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run startup then yield; on exit close outbound clients."""
    settings = get_settings()

    # ---- Startup ----
    app.state.templates = default_registry()

    firestore = create_firestore_client(settings)
    app.state.firestore_client = firestore
    if firestore is not None:
        app.state.task_repo = FirestoreTaskRepository(
            firestore, conditional_write_attempts=settings.conditional_write_attempts
        )
        app.state.completion_repo = FirestoreCompletionRepository(firestore)
        app.state.event_store = FirestoreProcessedEventStore(firestore)
        logger.info("Firestore task store ready (project %s)", firestore.project_id)
    else:
        app.state.task_repo = None
        app.state.completion_repo = None
        app.state.event_store = None

    if settings.docusign_configured:
        app.state.signing_provider = DocuSignClient(settings)
        logger.info("DocuSign client configured (%s)", settings.docusign_base_url)
    else:
        app.state.signing_provider = None
        logger.warning("DocuSign not configured; signed documents will not be fetched")

    try:
        app.state.artifact_storage = StorageFactory.create_storage_service(settings)
    except (ValueError, OSError):
        logger.exception("Artifact storage unavailable (backend %s)", settings.storage_backend)
        app.state.artifact_storage = None

    yield

    # ---- Shutdown ----
    provider = getattr(app.state, "signing_provider", None)
    if provider is not None:
        await provider.aclose()
        logger.info("DocuSign client closed")

    if getattr(app.state, "firestore_client", None) is not None:
        await app.state.firestore_client.aclose()
        app.state.firestore_client = None
        logger.info("Firestore client closed")
