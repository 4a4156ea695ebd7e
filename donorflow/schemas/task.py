"""Task API schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from donorflow.application.dtos.task import CompletionResult
from donorflow.domain.entities.task import Task


class TaskResponse(BaseModel):
    id: str
    workflow_id: str
    key: str
    title: str
    description: str
    assigned_role: str
    assigned_to: str | None
    type: str
    status: str
    priority: str
    order: int
    dependencies: list[str]
    template_name: str | None = None
    template_version: int | None = None
    generation: int
    metadata: dict[str, Any]
    comments: list[dict[str, Any]] = Field(default_factory=list)
    completed_at: datetime | None = None
    completed_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_entity(cls, task: Task) -> "TaskResponse":
        return cls(
            id=task.id,
            workflow_id=task.workflow_id,
            key=task.key,
            title=task.title,
            description=task.description,
            assigned_role=task.assigned_role.value,
            assigned_to=task.assigned_to,
            type=task.type.value,
            status=task.status.value,
            priority=task.priority.value,
            order=task.order,
            dependencies=list(task.dependencies),
            template_name=task.template_name,
            template_version=task.template_version,
            generation=task.generation,
            metadata=task.metadata,
            comments=list(task.comments),
            completed_at=task.completed_at,
            completed_by=task.completed_by,
            created_at=task.created_at,
            updated_at=task.updated_at,
        )


class TaskCompleteRequest(BaseModel):
    """Body for POST /tasks/{task_id}/complete."""

    completion_data: dict[str, Any] | None = Field(
        default=None, description="Outcome of the task (e.g. commitment decision)"
    )


class DependentFailureResponse(BaseModel):
    task_id: str
    reason: str


class TaskCompleteResponse(BaseModel):
    task: TaskResponse
    already_completed: bool
    unblocked: list[str]
    still_blocked: list[str]
    failures: list[DependentFailureResponse]
    partial: bool

    @classmethod
    def from_result(cls, result: CompletionResult) -> "TaskCompleteResponse":
        return cls(
            task=TaskResponse.from_entity(result.task),
            already_completed=result.already_completed,
            unblocked=result.unblocked,
            still_blocked=result.still_blocked,
            failures=[
                DependentFailureResponse(task_id=f.task_id, reason=f.reason)
                for f in result.failures
            ],
            partial=result.partial,
        )


class TaskCommentRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)


class TaskListResponse(BaseModel):
    tasks: list[TaskResponse]
