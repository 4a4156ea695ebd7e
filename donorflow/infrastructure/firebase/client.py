"""Firestore client (REST-based, no firebase-admin).

Initialized at startup from FIREBASE_SERVICE_ACCOUNT_KEY (JSON string) or
FIREBASE_SERVICE_ACCOUNT_PATH (file path). The lifespan stores the client
on app.state; request handlers get it through API dependencies.
"""

import json
import logging
from pathlib import Path

from donorflow.core.config import Settings, get_settings
from donorflow.infrastructure.firebase._rest_client import (
    FirestoreRESTClient,
    _get_credentials,
)

logger = logging.getLogger(__name__)


def load_service_account_info(settings: Settings | None = None) -> dict | None:
    """Return the service account dict from the env key or file path, or None."""
    settings = settings or get_settings()
    key_json = (
        settings.firebase_service_account_key.get_secret_value()
        if settings.firebase_service_account_key
        else None
    )
    if key_json:
        try:
            return json.loads(key_json)
        except json.JSONDecodeError as e:
            raise ValueError("FIREBASE_SERVICE_ACCOUNT_KEY is not valid JSON") from e
    path = settings.firebase_service_account_path
    if path:
        resolved = Path(path).expanduser().resolve()
        if not resolved.is_file():
            logger.warning(
                "FIREBASE_SERVICE_ACCOUNT_PATH set but file not found: %s (resolved: %s)",
                path,
                resolved,
            )
            return None
        with open(resolved, encoding="utf-8") as f:
            return json.load(f)
    return None


def create_firestore_client(settings: Settings | None = None) -> FirestoreRESTClient | None:
    """Build a Firestore client, or None when credentials are absent or unusable.

    Invalid credentials are logged, not raised, so the service can still start
    and answer health checks.
    """
    settings = settings or get_settings()
    try:
        key_dict = load_service_account_info(settings)
        if not key_dict:
            logger.warning("Firestore credentials not configured; task store disabled")
            return None
        project_id = key_dict.get("project_id")
        if not project_id:
            logger.error("Firebase service account JSON missing 'project_id'")
            return None
        credentials = _get_credentials(key_dict)
        return FirestoreRESTClient(
            project_id, credentials, timeout=settings.firestore_timeout_seconds
        )
    except Exception:
        logger.exception("Firestore initialization failed")
        return None
