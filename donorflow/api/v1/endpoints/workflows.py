"""Workflow endpoints: instantiate, reset, inspect and re-evaluate task DAGs."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from donorflow.api.v1.dependencies import (
    CurrentActor,
    get_cascade_service,
    get_instantiator,
    get_task_repo,
)
from donorflow.application.interfaces.repositories import ITaskRepository
from donorflow.application.services.dependency_resolver import find_violations
from donorflow.application.use_cases import CompletionCascadeService, WorkflowInstantiator
from donorflow.core.limiter import limit_instantiate, limit_writes
from donorflow.domain.entities.task import Task
from donorflow.domain.enums import AssignedRole
from donorflow.domain.exceptions import AuthorizationException, ResourceNotFoundException
from donorflow.domain.value_objects import Actor
from donorflow.schemas.task import TaskResponse
from donorflow.schemas.workflow import (
    InstantiationResponse,
    WorkflowInstantiateRequest,
    WorkflowReevaluateResponse,
    WorkflowResetRequest,
    WorkflowTasksResponse,
)

router = APIRouter()


async def _load_visible_tasks(
    workflow_id: str, actor: Actor, task_repo: ITaskRepository
) -> list[Task]:
    """Workflow tasks, visible to its owner, its assignees and nonprofit admins."""
    tasks = await task_repo.list_by_workflow(workflow_id)
    if not tasks:
        raise ResourceNotFoundException("workflow", workflow_id)
    if actor.role is AssignedRole.NONPROFIT_ADMIN:
        return tasks
    if any(t.assigned_to == actor.user_id for t in tasks):
        return tasks
    generation = await task_repo.get_generation(workflow_id)
    if generation is not None and generation.belongs_to(actor.user_id):
        return tasks
    raise AuthorizationException("workflow", "read")


@router.post("/{workflow_id}/instantiate", response_model=InstantiationResponse, status_code=201)
@limit_instantiate
async def instantiate_workflow(
    request: Request,
    workflow_id: str,
    body: WorkflowInstantiateRequest,
    actor: CurrentActor,
    instantiator: Annotated[WorkflowInstantiator, Depends(get_instantiator)],
):
    """Create the workflow's tasks from a template, replacing any previous generation."""
    result = await instantiator.instantiate(
        workflow_id,
        body.context.to_context(),
        actor,
        template_name=body.template_name,
    )
    return InstantiationResponse.from_result(result)


@router.post("/{workflow_id}/reset", response_model=InstantiationResponse)
@limit_instantiate
async def reset_workflow(
    request: Request,
    workflow_id: str,
    actor: CurrentActor,
    instantiator: Annotated[WorkflowInstantiator, Depends(get_instantiator)],
    body: WorkflowResetRequest | None = None,
):
    """Discard all tasks of the workflow and recreate them (owner only)."""
    context = body.context.to_context() if body and body.context else None
    result = await instantiator.reset(workflow_id, actor, context)
    return InstantiationResponse.from_result(result)


@router.get("/{workflow_id}/tasks", response_model=WorkflowTasksResponse)
async def list_workflow_tasks(
    workflow_id: str,
    actor: CurrentActor,
    task_repo: Annotated[ITaskRepository, Depends(get_task_repo)],
):
    """Tasks in workflow order, plus whether the whole workflow is finished."""
    tasks = await _load_visible_tasks(workflow_id, actor, task_repo)
    return WorkflowTasksResponse(
        workflow_id=workflow_id,
        tasks=[TaskResponse.from_entity(t) for t in tasks],
        finished=all(t.is_completed for t in tasks),
    )


@router.post("/{workflow_id}/reevaluate", response_model=WorkflowReevaluateResponse)
@limit_writes
async def reevaluate_workflow(
    request: Request,
    workflow_id: str,
    actor: CurrentActor,
    task_repo: Annotated[ITaskRepository, Depends(get_task_repo)],
    cascade: Annotated[CompletionCascadeService, Depends(get_cascade_service)],
):
    """Release blocked tasks whose dependencies are all completed.

    Recovers dependents left blocked by a partially failed cascade.
    """
    await _load_visible_tasks(workflow_id, actor, task_repo)
    unblocked = await cascade.reevaluate_workflow(workflow_id)
    tasks = await task_repo.list_by_workflow(workflow_id)
    return WorkflowReevaluateResponse(
        workflow_id=workflow_id,
        unblocked=unblocked,
        violations=find_violations(tasks),
    )
