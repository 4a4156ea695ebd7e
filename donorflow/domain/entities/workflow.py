"""Workflow generation marker entity.

One marker per workflow id. Every instantiation or reset commits a new
marker together with the task set it describes, guarded by the marker's
previous version, so two resets of the same workflow can never interleave.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from donorflow.shared.utils.datetime import ensure_utc


@dataclass(frozen=True)
class WorkflowGeneration:
    """Latest committed generation of a workflow's task set."""

    workflow_id: str
    generation: int
    template_name: str
    template_version: int
    owner_id: str
    task_ids: tuple[str, ...] = ()
    context: dict[str, Any] = field(default_factory=dict)
    updated_at: datetime | None = None
    # Store-assigned version token (e.g. Firestore updateTime); not persisted as a field.
    version: str | None = None

    def belongs_to(self, user_id: str) -> bool:
        return self.owner_id == user_id

    def to_document(self) -> dict[str, Any]:
        return {
            "generation": self.generation,
            "template_name": self.template_name,
            "template_version": self.template_version,
            "owner_id": self.owner_id,
            "task_ids": list(self.task_ids),
            "context": dict(self.context),
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_document(
        cls, workflow_id: str, data: dict[str, Any], version: str | None = None
    ) -> "WorkflowGeneration":
        return cls(
            workflow_id=workflow_id,
            generation=int(data.get("generation") or 0),
            template_name=data.get("template_name") or "",
            template_version=int(data.get("template_version") or 0),
            owner_id=data.get("owner_id") or "",
            task_ids=tuple(data.get("task_ids") or ()),
            context=dict(data.get("context") or {}),
            updated_at=ensure_utc(data.get("updated_at")),
            version=version,
        )
