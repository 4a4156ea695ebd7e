"""Task endpoints: the caller's tasks, start, complete (with cascade) and comments."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from donorflow.api.v1.dependencies import CurrentActor, get_cascade_service, get_task_repo
from donorflow.application.interfaces.repositories import ITaskRepository
from donorflow.application.use_cases import CompletionCascadeService
from donorflow.core.limiter import limit_writes
from donorflow.domain.enums import AssignedRole, TaskStatus
from donorflow.domain.exceptions import AuthorizationException, ResourceNotFoundException
from donorflow.schemas.task import (
    TaskCommentRequest,
    TaskCompleteRequest,
    TaskCompleteResponse,
    TaskListResponse,
    TaskResponse,
)

router = APIRouter()


@router.get("/mine", response_model=TaskListResponse)
async def list_my_tasks(
    actor: CurrentActor,
    task_repo: Annotated[ITaskRepository, Depends(get_task_repo)],
    status: Annotated[TaskStatus | None, Query(description="Only tasks in this status")] = None,
):
    """Tasks assigned to the caller, grouped by workflow in workflow order."""
    tasks = await task_repo.list_by_assignee(actor.user_id, status)
    return TaskListResponse(tasks=[TaskResponse.from_entity(t) for t in tasks])


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: str,
    actor: CurrentActor,
    task_repo: Annotated[ITaskRepository, Depends(get_task_repo)],
):
    task = await task_repo.get(task_id)
    if task is None:
        raise ResourceNotFoundException("task", task_id)
    if not task.can_be_completed_by(actor.user_id, actor.role) and actor.role is not AssignedRole.NONPROFIT_ADMIN:
        generation = await task_repo.get_generation(task.workflow_id)
        if generation is None or not generation.belongs_to(actor.user_id):
            raise AuthorizationException("task", "read")
    return TaskResponse.from_entity(task)


@router.post("/{task_id}/start", response_model=TaskResponse)
@limit_writes
async def start_task(
    request: Request,
    task_id: str,
    actor: CurrentActor,
    cascade: Annotated[CompletionCascadeService, Depends(get_cascade_service)],
):
    """Mark a pending task as in progress."""
    task = await cascade.start_task(task_id, actor)
    return TaskResponse.from_entity(task)


@router.post("/{task_id}/complete", response_model=TaskCompleteResponse)
@limit_writes
async def complete_task(
    request: Request,
    task_id: str,
    actor: CurrentActor,
    cascade: Annotated[CompletionCascadeService, Depends(get_cascade_service)],
    body: TaskCompleteRequest | None = None,
):
    """Complete the task and unblock its direct dependents.

    Completing an already completed task succeeds without changes.
    `partial` is true when some dependents could not be evaluated; the
    completion itself is durable either way.
    """
    outcome = None
    if body is not None and body.completion_data is not None:
        outcome = {"completion_data": body.completion_data}
    result = await cascade.complete_task(task_id, actor, outcome)
    return TaskCompleteResponse.from_result(result)


@router.post("/{task_id}/comments", response_model=TaskResponse, status_code=201)
@limit_writes
async def add_comment(
    request: Request,
    task_id: str,
    body: TaskCommentRequest,
    actor: CurrentActor,
    cascade: Annotated[CompletionCascadeService, Depends(get_cascade_service)],
):
    task = await cascade.record_comment(task_id, actor, body.content)
    return TaskResponse.from_entity(task)
