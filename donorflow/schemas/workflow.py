"""Workflow instantiation API schemas."""

from pydantic import BaseModel, Field

from donorflow.application.dtos.task import InstantiationResult
from donorflow.domain.entities.template import InstantiationContext
from donorflow.schemas.task import TaskResponse


class InstantiationContextSchema(BaseModel):
    """Participants the template's tasks are assigned to."""

    donor_id: str = Field(..., min_length=1, max_length=128)
    nonprofit_admin_id: str | None = Field(default=None, max_length=128)
    appraiser_id: str | None = Field(default=None, max_length=128)
    campaign_id: str | None = Field(default=None, max_length=128)
    campaign_title: str | None = Field(default=None, max_length=255)
    organization_name: str | None = Field(default=None, max_length=255)

    def to_context(self) -> InstantiationContext:
        return InstantiationContext(**self.model_dump())


class WorkflowInstantiateRequest(BaseModel):
    """Body for POST /workflows/{workflow_id}/instantiate."""

    context: InstantiationContextSchema
    template_name: str | None = Field(
        default=None, max_length=64, description="Defaults to the configured template"
    )


class WorkflowResetRequest(BaseModel):
    """Optional body for POST /workflows/{workflow_id}/reset; omitted keeps the stored context."""

    context: InstantiationContextSchema | None = None


class InstantiationResponse(BaseModel):
    workflow_id: str
    template_name: str
    template_version: int
    generation: int
    tasks_created: int
    tasks_deleted: int
    tasks: list[TaskResponse]

    @classmethod
    def from_result(cls, result: InstantiationResult) -> "InstantiationResponse":
        return cls(
            workflow_id=result.workflow_id,
            template_name=result.template_name,
            template_version=result.template_version,
            generation=result.generation,
            tasks_created=result.tasks_created,
            tasks_deleted=result.tasks_deleted,
            tasks=[TaskResponse.from_entity(t) for t in result.tasks],
        )


class WorkflowTasksResponse(BaseModel):
    workflow_id: str
    tasks: list[TaskResponse]
    finished: bool = Field(..., description="True when every task is completed")


class WorkflowReevaluateResponse(BaseModel):
    workflow_id: str
    unblocked: list[str]
    violations: list[str] = Field(
        default_factory=list,
        description="Tasks open for work while a dependency is not completed",
    )
