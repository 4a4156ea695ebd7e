"""Domain layer: entities, value objects, enums, templates and exceptions.

No dependencies on infrastructure or presentation. Used by application
and infrastructure layers.
"""

from donorflow.domain.entities import (
    InstantiationContext,
    Task,
    TaskBlueprint,
    WorkflowGeneration,
    WorkflowTemplate,
)
from donorflow.domain.enums import (
    AssignedRole,
    CompletionKind,
    CompletionStatus,
    TaskPriority,
    TaskStatus,
    TaskType,
)
from donorflow.domain.exceptions import (
    AuthenticationException,
    AuthorizationException,
    ConcurrentModificationException,
    DonorflowException,
    InvalidTaskTransitionException,
    PersistenceException,
    ResourceNotFoundException,
    TaskRecordInvalidException,
    TemplateDefinitionException,
    ValidationException,
    WorkflowInstantiationException,
)
from donorflow.domain.value_objects import Actor

__all__ = [
    # Entities
    "InstantiationContext",
    "Task",
    "TaskBlueprint",
    "WorkflowGeneration",
    "WorkflowTemplate",
    # Enums
    "AssignedRole",
    "CompletionKind",
    "CompletionStatus",
    "TaskPriority",
    "TaskStatus",
    "TaskType",
    # Exceptions
    "AuthenticationException",
    "AuthorizationException",
    "ConcurrentModificationException",
    "DonorflowException",
    "InvalidTaskTransitionException",
    "PersistenceException",
    "ResourceNotFoundException",
    "TaskRecordInvalidException",
    "TemplateDefinitionException",
    "ValidationException",
    "WorkflowInstantiationException",
    # Value objects
    "Actor",
]
