"""Domain entities: tasks, templates and workflow generation markers."""

from donorflow.domain.entities.task import (
    CANONICAL_ENVELOPE_FIELD,
    LEGACY_ENVELOPE_FIELDS,
    Task,
)
from donorflow.domain.entities.template import (
    InstantiationContext,
    TaskBlueprint,
    WorkflowTemplate,
)
from donorflow.domain.entities.workflow import WorkflowGeneration

__all__ = [
    "CANONICAL_ENVELOPE_FIELD",
    "LEGACY_ENVELOPE_FIELDS",
    "InstantiationContext",
    "Task",
    "TaskBlueprint",
    "WorkflowGeneration",
    "WorkflowTemplate",
]
