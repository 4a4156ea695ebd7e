"""Task domain entity.

A task is one node of a workflow DAG. Its dependencies are sibling task ids
from the same workflow generation. Status changes are never made in place:
the store adapter writes them conditionally and returns a fresh entity.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from donorflow.domain.enums import (
    AssignedRole,
    TaskPriority,
    TaskStatus,
    TaskType,
)
from donorflow.domain.exceptions import TaskRecordInvalidException
from donorflow.shared.utils.datetime import ensure_utc

# Metadata field holding the signing envelope id on newly written tasks.
CANONICAL_ENVELOPE_FIELD = "docusign_envelope_id"
# Older records carry the envelope id under one of these instead.
LEGACY_ENVELOPE_FIELDS: tuple[str, ...] = (
    "envelope_id",
    "docuSignEnvelopeId",
    "envelopeId",
)

_REQUIRED_FIELDS = ("workflow_id", "title", "status", "assigned_role", "type", "dependencies")


@dataclass(frozen=True)
class Task:
    """Immutable workflow task."""

    id: str
    workflow_id: str
    key: str
    title: str
    assigned_role: AssignedRole
    type: TaskType
    status: TaskStatus
    dependencies: tuple[str, ...] = ()
    order: int = 0
    description: str = ""
    priority: TaskPriority = TaskPriority.MEDIUM
    assigned_to: str | None = None
    template_name: str | None = None
    template_version: int | None = None
    generation: int = 1
    metadata: dict[str, Any] = field(default_factory=dict)
    completed_at: datetime | None = None
    completed_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    created_by: str | None = None
    comments: tuple[dict[str, Any], ...] = ()

    def __post_init__(self) -> None:
        if self.id in self.dependencies:
            raise TaskRecordInvalidException(self.id, "task depends on itself")

    @property
    def is_completed(self) -> bool:
        return self.status is TaskStatus.COMPLETED

    @property
    def is_blocked(self) -> bool:
        return self.status is TaskStatus.BLOCKED

    def envelope_id(self) -> str | None:
        """Envelope id from the canonical field, else the first legacy field set."""
        for name in (CANONICAL_ENVELOPE_FIELD, *LEGACY_ENVELOPE_FIELDS):
            value = self.metadata.get(name)
            if isinstance(value, str) and value:
                return value
        return None

    def can_be_completed_by(self, user_id: str, role: AssignedRole | None) -> bool:
        """Assignee, or any holder of the task's role while the task is unassigned."""
        if self.assigned_to is not None:
            return self.assigned_to == user_id
        return role is not None and role == self.assigned_role

    def with_changes(self, **changes: Any) -> "Task":
        return replace(self, **changes)

    def to_document(self) -> dict[str, Any]:
        """Store representation (id is the document name, not a field)."""
        return {
            "workflow_id": self.workflow_id,
            "key": self.key,
            "title": self.title,
            "description": self.description,
            "assigned_role": self.assigned_role.value,
            "assigned_to": self.assigned_to,
            "type": self.type.value,
            "priority": self.priority.value,
            "status": self.status.value,
            "order": self.order,
            "dependencies": list(self.dependencies),
            "template_name": self.template_name,
            "template_version": self.template_version,
            "generation": self.generation,
            "metadata": dict(self.metadata),
            "completed_at": self.completed_at,
            "completed_by": self.completed_by,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "created_by": self.created_by,
            "comments": [dict(c) for c in self.comments],
        }

    @classmethod
    def from_document(cls, task_id: str, data: dict[str, Any]) -> "Task":
        """Build a Task from a stored record.

        Raises:
            TaskRecordInvalidException: Required field missing or enum value unknown.
        """
        missing = [name for name in _REQUIRED_FIELDS if data.get(name) is None]
        if missing:
            raise TaskRecordInvalidException(
                task_id, f"missing required field(s): {', '.join(missing)}"
            )
        deps = data["dependencies"]
        if not isinstance(deps, list) or not all(isinstance(d, str) for d in deps):
            raise TaskRecordInvalidException(task_id, "dependencies must be a list of ids")
        try:
            status = TaskStatus(data["status"])
            role = AssignedRole(data["assigned_role"])
            task_type = TaskType(data["type"])
            priority = TaskPriority(data.get("priority") or TaskPriority.MEDIUM.value)
        except ValueError as e:
            raise TaskRecordInvalidException(task_id, str(e)) from e
        metadata = data.get("metadata") or {}
        if not isinstance(metadata, dict):
            raise TaskRecordInvalidException(task_id, "metadata must be a map")
        return cls(
            id=task_id,
            workflow_id=data["workflow_id"],
            key=data.get("key") or task_id,
            title=data["title"],
            description=data.get("description") or "",
            assigned_role=role,
            assigned_to=data.get("assigned_to"),
            type=task_type,
            priority=priority,
            status=status,
            order=int(data.get("order") or 0),
            dependencies=tuple(deps),
            template_name=data.get("template_name"),
            template_version=data.get("template_version"),
            generation=int(data.get("generation") or 1),
            metadata=dict(metadata),
            completed_at=ensure_utc(data.get("completed_at")),
            completed_by=data.get("completed_by"),
            created_at=ensure_utc(data.get("created_at")),
            updated_at=ensure_utc(data.get("updated_at")),
            created_by=data.get("created_by"),
            comments=tuple(data.get("comments") or ()),
        )
