"""Task completion and the cascade that unblocks direct dependents.

Completing a task is a conditional write (pending/in_progress -> completed).
Only the caller whose write succeeds runs the cascade, so duplicate or
concurrent completions of the same task unblock dependents at most once.
Each dependent is evaluated against a status read taken at evaluation time
and released with its own conditional write (blocked -> pending); a failure
on one dependent is recorded and does not stop the others.
"""

from __future__ import annotations

import logging
from typing import Any

from donorflow.application.dtos.task import CompletionResult, DependentFailure
from donorflow.application.interfaces.repositories import ITaskRepository
from donorflow.application.services.dependency_resolver import (
    is_satisfied,
    unsatisfied_dependencies,
)
from donorflow.domain.entities.task import Task
from donorflow.domain.enums import COMPLETABLE_STATUSES, TaskStatus, TaskType
from donorflow.domain.exceptions import (
    AuthorizationException,
    InvalidTaskTransitionException,
    ResourceNotFoundException,
    ValidationException,
)
from donorflow.domain.templates import COMMITMENT_OPTIONS
from donorflow.domain.value_objects import Actor
from donorflow.shared.utils.datetime import isoformat_utc, utc_now
from donorflow.shared.utils.generators import generate_cuid

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 5000


def decision_outcome(task: Task, outcome_metadata: dict[str, Any] | None) -> dict[str, Any]:
    """Check the chosen option of a decision task and return the fields to record.

    The choice is read from `decision`, either top level or inside
    `completion_data`, and must be one of the option ids stored on the task.

    Raises:
        ValidationException: No decision, or one that is not offered.
    """
    outcome = outcome_metadata or {}
    data = outcome.get("completion_data")
    decision = outcome.get("decision")
    if decision is None and isinstance(data, dict):
        decision = data.get("decision")
    options = [
        o["id"] for o in task.metadata.get("options") or () if isinstance(o, dict) and o.get("id")
    ]
    allowed = options or [o["id"] for o in COMMITMENT_OPTIONS]
    if not isinstance(decision, str) or decision not in allowed:
        raise ValidationException(
            f"Valid decision is required (one of: {', '.join(allowed)})", field="decision"
        )
    return {**outcome, "decision": decision, "decided_at": isoformat_utc()}


class CompletionCascadeService:
    """Completes, starts and comments on tasks; owns the unblock cascade."""

    def __init__(self, task_repo: ITaskRepository) -> None:
        self._task_repo = task_repo

    async def _load(self, task_id: str) -> Task:
        task = await self._task_repo.get(task_id)
        if task is None:
            raise ResourceNotFoundException("task", task_id)
        return task

    @staticmethod
    def _authorize(task: Task, actor: Actor, action: str) -> None:
        if actor.is_system:
            return
        if not task.can_be_completed_by(actor.user_id, actor.role):
            raise AuthorizationException("task", action)

    async def complete_task(
        self,
        task_id: str,
        actor: Actor,
        outcome_metadata: dict[str, Any] | None = None,
    ) -> CompletionResult:
        """Mark a task completed and release dependents whose dependencies are all done.

        Args:
            task_id: Task to complete.
            actor: Assignee, role holder (unassigned tasks) or a system actor.
            outcome_metadata: Merged into the task's metadata with the completion.

        Returns:
            CompletionResult; already_completed=True and no cascade when the
            task was completed before this call.

        Raises:
            ResourceNotFoundException: Task does not exist (e.g. replaced by a reset).
            AuthorizationException: Actor may not complete this task.
            InvalidTaskTransitionException: Task is still blocked.
            ValidationException: Decision task without an offered decision.
        """
        task = await self._load(task_id)
        if task.is_completed:
            return CompletionResult(task=task, already_completed=True)
        self._authorize(task, actor, "complete")
        if task.is_blocked:
            raise InvalidTaskTransitionException(
                task.id,
                task.status.value,
                TaskStatus.COMPLETED.value,
                reason="dependencies are not completed",
            )
        if task.type is TaskType.DECISION:
            outcome_metadata = decision_outcome(task, outcome_metadata)

        completed = await self._task_repo.transition(
            task.id,
            expected=COMPLETABLE_STATUSES,
            target=TaskStatus.COMPLETED,
            updates={"completed_at": utc_now(), "completed_by": actor.user_id},
            metadata_updates=outcome_metadata,
        )
        if completed is None:
            # Lost the race: someone else moved the task first.
            current = await self._load(task.id)
            if current.is_completed:
                return CompletionResult(task=current, already_completed=True)
            raise InvalidTaskTransitionException(
                current.id, current.status.value, TaskStatus.COMPLETED.value
            )
        logger.info("Task %s completed by %s", completed.id, actor.user_id)

        result = CompletionResult(task=completed)
        await self._cascade(completed, result)
        if result.partial:
            logger.warning(
                "Task %s completed with %d dependent failure(s): %s",
                completed.id,
                len(result.failures),
                [f.task_id for f in result.failures],
            )
        return result

    async def _cascade(self, completed: Task, result: CompletionResult) -> None:
        def unreadable(task_id: str, reason: str) -> None:
            result.failures.append(DependentFailure(task_id=task_id, reason=reason))

        try:
            dependents = await self._task_repo.list_dependents(
                completed.workflow_id, completed.id, on_invalid=unreadable
            )
        except Exception as e:
            logger.exception("Could not load dependents of task %s", completed.id)
            result.failures.append(DependentFailure(task_id=completed.id, reason=str(e)))
            return
        for dependent in sorted(dependents, key=lambda t: t.order):
            if not dependent.is_blocked:
                continue
            try:
                released = await self._release_if_satisfied(dependent, completed)
            except Exception as e:
                logger.exception(
                    "Unblock evaluation failed for task %s (dependency %s)",
                    dependent.id,
                    completed.id,
                )
                result.failures.append(DependentFailure(task_id=dependent.id, reason=str(e)))
                continue
            if released is True:
                result.unblocked.append(dependent.id)
            elif released is False:
                result.still_blocked.append(dependent.id)

    async def _release_if_satisfied(self, dependent: Task, trigger: Task) -> bool | None:
        """True if this call released the dependent, False if it must keep waiting,
        None if a concurrent cascade released it first.
        """
        snapshot = await self._task_repo.statuses(dependent.dependencies)
        if not is_satisfied(dependent, snapshot):
            logger.debug(
                "Task %s still waiting on %s",
                dependent.id,
                unsatisfied_dependencies(dependent, snapshot),
            )
            return False
        released = await self._task_repo.transition(
            dependent.id,
            expected=(TaskStatus.BLOCKED,),
            target=TaskStatus.PENDING,
            metadata_updates={
                "unblocked_at": isoformat_utc(),
                "unblocked_by": trigger.id,
            },
        )
        if released is None:
            logger.debug("Task %s was already released", dependent.id)
            return None
        logger.info("Task %s unblocked by completion of %s", dependent.id, trigger.id)
        return True

    async def reevaluate_workflow(self, workflow_id: str) -> list[str]:
        """Release every blocked task of a workflow whose dependencies are all completed.

        Repairs dependents left blocked by a cascade that failed part-way.
        Only ever moves blocked -> pending.
        """
        tasks = await self._task_repo.list_by_workflow(workflow_id)
        if not tasks:
            raise ResourceNotFoundException("workflow", workflow_id)
        snapshot = {t.id: t.status for t in tasks}
        released: list[str] = []
        for task in tasks:
            if not task.is_blocked or not is_satisfied(task, snapshot):
                continue
            updated = await self._task_repo.transition(
                task.id,
                expected=(TaskStatus.BLOCKED,),
                target=TaskStatus.PENDING,
                metadata_updates={
                    "unblocked_at": isoformat_utc(),
                    "unblocked_by": "reevaluation",
                },
            )
            if updated is not None:
                released.append(task.id)
        if released:
            logger.info("Re-evaluation of workflow %s released %s", workflow_id, released)
        return released

    async def start_task(self, task_id: str, actor: Actor) -> Task:
        """pending -> in_progress. Starting an in-progress task is a no-op.

        Raises:
            ResourceNotFoundException, AuthorizationException,
            InvalidTaskTransitionException (blocked or completed).
        """
        task = await self._load(task_id)
        self._authorize(task, actor, "start")
        if task.status is TaskStatus.IN_PROGRESS:
            return task
        started = await self._task_repo.transition(
            task.id,
            expected=(TaskStatus.PENDING,),
            target=TaskStatus.IN_PROGRESS,
            metadata_updates={"started_at": isoformat_utc(), "started_by": actor.user_id},
        )
        if started is None:
            current = await self._load(task.id)
            if current.status is TaskStatus.IN_PROGRESS:
                return current
            raise InvalidTaskTransitionException(
                current.id, current.status.value, TaskStatus.IN_PROGRESS.value
            )
        return started

    async def record_comment(self, task_id: str, actor: Actor, content: str) -> Task:
        """Append a comment. Any authenticated participant may comment."""
        text = (content or "").strip()
        if not text:
            raise ValidationException("Comment content is required", field="content")
        if len(text) > MAX_COMMENT_LENGTH:
            raise ValidationException(
                f"Comment must be at most {MAX_COMMENT_LENGTH} characters", field="content"
            )
        await self._load(task_id)
        comment = {
            "id": generate_cuid(),
            "user_id": actor.user_id,
            "user_name": actor.display_name,
            "user_role": actor.role.value if actor.role else None,
            "content": text,
            "created_at": utc_now(),
        }
        return await self._task_repo.append_comment(task_id, comment)
