"""DTOs for workflow instantiation and task completion results."""

from __future__ import annotations

from dataclasses import dataclass, field

from donorflow.domain.entities.task import Task


@dataclass(frozen=True)
class DependentFailure:
    """A dependent whose unblock evaluation or write failed."""

    task_id: str
    reason: str


@dataclass
class CompletionResult:
    """Outcome of completing one task and cascading to its direct dependents.

    The completion itself is durable whenever a result is returned; failures
    only ever concern dependents, which stay blocked until the next relevant
    completion or a manual re-evaluation.
    """

    task: Task
    already_completed: bool = False
    unblocked: list[str] = field(default_factory=list)
    still_blocked: list[str] = field(default_factory=list)
    failures: list[DependentFailure] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.failures)


@dataclass(frozen=True)
class InstantiationResult:
    workflow_id: str
    template_name: str
    template_version: int
    generation: int
    tasks: list[Task]
    tasks_deleted: int = 0

    @property
    def tasks_created(self) -> int:
        return len(self.tasks)
