"""Presentation-layer dependency injection (composition root).

Store and client handles live on app.state (created by the lifespan); use
cases are built per request from them. Routes depend only on these
functions, so tests can replace any handle on app.state.
"""

from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from donorflow.application.interfaces.repositories import (
    ICompletionRepository,
    IProcessedEventStore,
    ITaskRepository,
)
from donorflow.application.interfaces.services import IArtifactStorage, ISigningProvider
from donorflow.application.services.retry import RetryPolicy
from donorflow.application.use_cases import (
    CompletionCascadeService,
    CompletionTracker,
    EnvelopeEventHandler,
    SigningReconciler,
    WorkflowInstantiator,
)
from donorflow.application.use_cases.signing import default_chain
from donorflow.core.config import get_settings
from donorflow.domain.enums import AssignedRole
from donorflow.domain.exceptions import (
    AuthenticationException,
    AuthorizationException,
    PersistenceException,
)
from donorflow.domain.templates import TemplateRegistry, default_registry
from donorflow.domain.value_objects import Actor
from donorflow.infrastructure.exceptions import SigningProviderNotConfiguredError
from donorflow.infrastructure.security.jwt import verify_token

logger = logging.getLogger(__name__)

_bearer = HTTPBearer(auto_error=False)


def _state(request: Request, name: str) -> Any:
    return getattr(request.app.state, name, None)


async def get_current_actor(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer)],
) -> Actor:
    """Actor from the bearer JWT (`sub` + role claim).

    An unknown role is kept as None: the caller can still act on tasks
    assigned to them by id.
    """
    if credentials is None:
        raise AuthenticationException("Missing bearer token")
    try:
        payload = verify_token(credentials.credentials)
    except ValueError as e:
        raise AuthenticationException(str(e)) from e
    raw_role = payload.get(get_settings().role_claim)
    try:
        role = AssignedRole(raw_role) if raw_role else None
    except ValueError:
        logger.debug("Token for %s carries unknown role %r", payload["sub"], raw_role)
        role = None
    return Actor(user_id=payload["sub"], role=role, display_name=payload.get("name"))


def require_role(role: AssignedRole):
    """Dependency factory: the current actor must hold `role`."""

    async def _check(actor: Annotated[Actor, Depends(get_current_actor)]) -> Actor:
        if actor.role is not role:
            raise AuthorizationException(message=f"Requires role {role.value}")
        return actor

    return _check


def get_task_repo(request: Request) -> ITaskRepository:
    repo = _state(request, "task_repo")
    if repo is None:
        raise PersistenceException(
            "Task store not configured (set FIREBASE_SERVICE_ACCOUNT_KEY or PATH)",
            operation="connect",
        )
    return repo


def get_completion_repo(request: Request) -> ICompletionRepository:
    repo = _state(request, "completion_repo")
    if repo is None:
        raise PersistenceException("Completion store not configured", operation="connect")
    return repo


def get_event_store(request: Request) -> IProcessedEventStore:
    store = _state(request, "event_store")
    if store is None:
        raise PersistenceException("Processed-event store not configured", operation="connect")
    return store


def get_signing_provider(request: Request) -> ISigningProvider | None:
    return _state(request, "signing_provider")


def get_artifact_storage(request: Request) -> IArtifactStorage | None:
    return _state(request, "artifact_storage")


def get_templates(request: Request) -> TemplateRegistry:
    return _state(request, "templates") or default_registry()


def _artifact_retry_policy() -> RetryPolicy:
    settings = get_settings()
    return RetryPolicy(
        max_attempts=settings.artifact_retry_attempts,
        base_delay=settings.artifact_retry_base_delay,
        max_delay=settings.artifact_retry_max_delay,
    )


def get_instantiator(
    task_repo: Annotated[ITaskRepository, Depends(get_task_repo)],
    templates: Annotated[TemplateRegistry, Depends(get_templates)],
) -> WorkflowInstantiator:
    settings = get_settings()
    return WorkflowInstantiator(
        task_repo,
        templates,
        default_template=settings.default_template,
        max_attempts=settings.instantiation_attempts,
    )


def get_cascade_service(
    task_repo: Annotated[ITaskRepository, Depends(get_task_repo)],
) -> CompletionCascadeService:
    return CompletionCascadeService(task_repo)


def get_completion_tracker(
    repo: Annotated[ICompletionRepository, Depends(get_completion_repo)],
) -> CompletionTracker:
    return CompletionTracker(repo)


def _build_envelope_handler(
    task_repo: ITaskRepository,
    event_store: IProcessedEventStore,
    provider: ISigningProvider | None,
    storage: IArtifactStorage | None,
) -> EnvelopeEventHandler:
    return EnvelopeEventHandler(
        task_repo,
        CompletionCascadeService(task_repo),
        provider,
        storage,
        event_store,
        chain=default_chain(task_repo, scan_limit=get_settings().correlation_scan_limit),
        retry_policy=_artifact_retry_policy(),
    )


def get_envelope_handler(
    task_repo: Annotated[ITaskRepository, Depends(get_task_repo)],
    event_store: Annotated[IProcessedEventStore, Depends(get_event_store)],
    provider: Annotated[ISigningProvider | None, Depends(get_signing_provider)],
    storage: Annotated[IArtifactStorage | None, Depends(get_artifact_storage)],
) -> EnvelopeEventHandler:
    return _build_envelope_handler(task_repo, event_store, provider, storage)


def get_optional_envelope_handler(request: Request) -> EnvelopeEventHandler | None:
    """Handler for the webhook, or None when the stores are not wired.

    The webhook acknowledges every delivery, so a missing store must not
    turn into an error response.
    """
    task_repo = _state(request, "task_repo")
    event_store = _state(request, "event_store")
    if task_repo is None or event_store is None:
        return None
    return _build_envelope_handler(
        task_repo,
        event_store,
        get_signing_provider(request),
        get_artifact_storage(request),
    )


def get_reconciler(
    task_repo: Annotated[ITaskRepository, Depends(get_task_repo)],
    provider: Annotated[ISigningProvider | None, Depends(get_signing_provider)],
    handler: Annotated[EnvelopeEventHandler, Depends(get_envelope_handler)],
) -> SigningReconciler:
    if provider is None:
        raise SigningProviderNotConfiguredError()
    return SigningReconciler(task_repo, provider, handler, retry_policy=_artifact_retry_policy())


CurrentActor = Annotated[Actor, Depends(get_current_actor)]
