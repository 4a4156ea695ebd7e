"""Repository interfaces (ports) for the application layer.

Protocols define contracts that infrastructure implementations must fulfill (DIP).
"""

from __future__ import annotations

from collections.abc import Callable, Collection
from typing import TYPE_CHECKING, Any, Protocol

from donorflow.domain.enums import TaskStatus, TaskType

if TYPE_CHECKING:
    from donorflow.application.dtos.completion import CompletionRecord
    from donorflow.domain.entities.task import Task
    from donorflow.domain.entities.workflow import WorkflowGeneration


class ITaskRepository(Protocol):
    """Task store adapter.

    Every status change goes through transition(), which is a conditional
    write: it only applies while the stored status is one of `expected`.
    """

    async def get(self, task_id: str) -> Task | None:
        """Return the task or None when it does not exist."""

    async def list_by_workflow(self, workflow_id: str) -> list[Task]:
        """All tasks of a workflow ordered by `order`."""

    async def list_by_assignee(
        self, user_id: str, status: TaskStatus | None = None
    ) -> list[Task]:
        """Tasks assigned to a user, optionally filtered by status."""

    async def list_dependents(
        self,
        workflow_id: str,
        task_id: str,
        on_invalid: Callable[[str, str], None] | None = None,
    ) -> list[Task]:
        """Direct dependents of task_id, scoped to its workflow.

        Stored records that cannot be read as tasks are left out of the result
        and passed to on_invalid as (task id, reason).
        """

    async def find_by_metadata(self, field: str, value: str, limit: int = 50) -> list[Task]:
        """Tasks whose metadata[field] equals value."""

    async def scan_open_by_type(self, task_type: TaskType, limit: int) -> list[Task]:
        """Bounded scan of not-yet-completed tasks of one type."""

    async def statuses(self, task_ids: Collection[str]) -> dict[str, TaskStatus]:
        """Current status per id; ids that do not exist are absent from the result."""

    async def transition(
        self,
        task_id: str,
        expected: Collection[TaskStatus],
        target: TaskStatus,
        updates: dict[str, Any] | None = None,
        metadata_updates: dict[str, Any] | None = None,
    ) -> Task | None:
        """Move to target only while the current status is in expected.

        Returns the updated task, or None when the status no longer matches.
        Raises ResourceNotFoundException when the task does not exist and
        ConcurrentModificationException when retries are exhausted.
        """

    async def merge_metadata(self, task_id: str, updates: dict[str, Any]) -> Task:
        """Merge keys into metadata without touching status."""

    async def append_comment(self, task_id: str, comment: dict[str, Any]) -> Task:
        """Append one comment map to the task's comment list."""

    async def get_generation(self, workflow_id: str) -> WorkflowGeneration | None:
        """Latest generation marker, or None for a workflow never instantiated."""

    async def replace_workflow(
        self,
        workflow_id: str,
        tasks: list[Task],
        generation: WorkflowGeneration,
        expected: WorkflowGeneration | None,
    ) -> int:
        """Atomically delete the workflow's current tasks and write the new set and marker.

        Guarded by `expected` (None means the marker must not exist yet).
        Returns the number of tasks deleted. Raises
        ConcurrentModificationException when the guard fails.
        """


class IProcessedEventStore(Protocol):
    """Create-if-absent record of provider events already acted on."""

    async def claim(self, key: str, data: dict[str, Any] | None = None) -> bool:
        """Return True if this call recorded the key, False if it was already present."""

    async def release(self, key: str) -> None:
        """Forget a claim so a redelivery is processed again."""


class ICompletionRepository(Protocol):
    async def get(self, user_id: str) -> CompletionRecord | None:
        """Return the user's checklist or None."""

    async def save(self, record: CompletionRecord) -> None:
        """Create or overwrite the user's checklist."""
