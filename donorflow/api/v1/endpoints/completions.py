"""Per-user checklist endpoints (onboarding and campaign keys)."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from donorflow.api.v1.dependencies import CurrentActor, get_completion_tracker
from donorflow.application.use_cases import CompletionTracker
from donorflow.core.limiter import limit_writes
from donorflow.schemas.completion import CompletionResponse, CompletionUpdateRequest

router = APIRouter()


@router.get("", response_model=CompletionResponse)
async def get_completions(
    actor: CurrentActor,
    tracker: Annotated[CompletionTracker, Depends(get_completion_tracker)],
):
    """The caller's checklist; empty maps when nothing was recorded yet."""
    record = await tracker.get(actor.user_id)
    return CompletionResponse.from_record(record)


@router.post("", response_model=CompletionResponse)
@limit_writes
async def set_completion(
    request: Request,
    body: CompletionUpdateRequest,
    actor: CurrentActor,
    tracker: Annotated[CompletionTracker, Depends(get_completion_tracker)],
):
    record = await tracker.set_status(
        actor.user_id,
        body.type,
        body.task_id,
        body.status,
        campaign_id=body.campaign_id,
    )
    return CompletionResponse.from_record(record)
