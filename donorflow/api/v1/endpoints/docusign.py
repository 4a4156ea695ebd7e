"""DocuSign Connect webhook, reconciliation sweep and per-task status check.

The webhook always answers 200 so Connect does not queue endless retries;
what happened to the delivery is reported in `outcome` and in the logs.
"""

import base64
import hashlib
import hmac
import json
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse

from donorflow.api.v1.dependencies import (
    CurrentActor,
    get_optional_envelope_handler,
    get_reconciler,
    get_task_repo,
    require_role,
)
from donorflow.application.dtos.signing import HandledOutcome
from donorflow.application.interfaces.repositories import ITaskRepository
from donorflow.application.use_cases import EnvelopeEventHandler, SigningReconciler
from donorflow.core.config import get_settings
from donorflow.core.limiter import limit_reconcile, limit_writes
from donorflow.domain.enums import AssignedRole
from donorflow.domain.exceptions import AuthorizationException, ResourceNotFoundException
from donorflow.domain.value_objects import Actor
from donorflow.middleware import current_correlation_id
from donorflow.schemas.signing import (
    ReconcileResponse,
    WebhookAckResponse,
    WebhookStatusResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

SIGNATURE_HEADER = "X-DocuSign-Signature-1"


def verify_connect_signature(body: bytes, signature: str | None, key: str) -> bool:
    """Connect HMAC: base64(HMAC-SHA256(key, raw body)) in X-DocuSign-Signature-1."""
    if not signature:
        return False
    digest = hmac.new(key.encode("utf-8"), body, hashlib.sha256).digest()
    expected = base64.b64encode(digest).decode("ascii")
    return hmac.compare_digest(expected, signature.strip())


@router.get("/webhook", response_model=WebhookStatusResponse)
async def webhook_status(challenge: Annotated[str | None, Query()] = None):
    """Connect endpoint verification: echo the challenge, else report liveness."""
    if challenge:
        return PlainTextResponse(challenge)
    return WebhookStatusResponse(message="DocuSign webhook endpoint active")


@router.post("/webhook", response_model=WebhookAckResponse)
async def receive_webhook(
    request: Request,
    handler: Annotated[EnvelopeEventHandler | None, Depends(get_optional_envelope_handler)],
):
    body = await request.body()
    hmac_key = get_settings().docusign_connect_hmac_key
    if hmac_key is not None and hmac_key.get_secret_value():
        if not verify_connect_signature(
            body, request.headers.get(SIGNATURE_HEADER), hmac_key.get_secret_value()
        ):
            logger.warning(
                "Rejected Connect delivery with invalid signature (correlation %s)",
                current_correlation_id.get(),
            )
            return WebhookAckResponse(
                message="Webhook received", outcome=HandledOutcome.INVALID.value
            )

    try:
        payload = json.loads(body) if body else None
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.warning("Connect delivery is not valid JSON (%d bytes)", len(body))
        return WebhookAckResponse(message="Webhook received", outcome=HandledOutcome.INVALID.value)

    if handler is None:
        logger.error("Connect delivery dropped: task store not configured")
        return WebhookAckResponse(message="Webhook received", outcome=HandledOutcome.FAILED.value)

    result = await handler.handle(payload)
    logger.info(
        "Connect delivery for envelope %s: %s (correlation %s)",
        result.envelope_id,
        result.outcome.value,
        current_correlation_id.get(),
    )
    return WebhookAckResponse(
        message="Webhook processed",
        outcome=result.outcome.value,
        envelope_id=result.envelope_id,
    )


@router.post("/reconcile", response_model=ReconcileResponse)
@limit_reconcile
async def reconcile_signatures(
    request: Request,
    actor: Annotated[Actor, Depends(require_role(AssignedRole.NONPROFIT_ADMIN))],
    reconciler: Annotated[SigningReconciler, Depends(get_reconciler)],
    limit: Annotated[int | None, Query(ge=1, le=500)] = None,
):
    """Poll DocuSign for open signature tasks whose webhook may have been missed."""
    logger.info("Signing reconciliation requested by %s", actor.user_id)
    summary = await reconciler.reconcile(limit or get_settings().reconcile_batch_limit)
    return ReconcileResponse.from_summary(summary)


@router.post("/tasks/{task_id}/check")
@limit_writes
async def check_task_signature(
    request: Request,
    task_id: str,
    actor: CurrentActor,
    task_repo: Annotated[ITaskRepository, Depends(get_task_repo)],
    reconciler: Annotated[SigningReconciler, Depends(get_reconciler)],
):
    """Poll the envelope of one signature task and apply its status now."""
    task = await task_repo.get(task_id)
    if task is None:
        raise ResourceNotFoundException("task", task_id)
    if not task.can_be_completed_by(actor.user_id, actor.role) and actor.role is not AssignedRole.NONPROFIT_ADMIN:
        raise AuthorizationException("task", "check signature")
    return await reconciler.check_task(task_id)
