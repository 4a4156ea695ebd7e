"""Signing reconciliation.

Catches completions whose webhook never arrived: polls the provider for
open signature tasks that carry an envelope id and routes the answer
through the same handler the webhook uses. reconcile() sweeps a bounded
batch; check_task() does the same for one task on demand.
"""

from __future__ import annotations

import logging
from typing import Any

from donorflow.application.dtos.signing import EnvelopeEvent, HandledOutcome, ReconcileSummary
from donorflow.application.interfaces.repositories import ITaskRepository
from donorflow.application.interfaces.services import ISigningProvider
from donorflow.application.services.retry import RetryPolicy, retry_async
from donorflow.application.use_cases.signing.handle_envelope_event import EnvelopeEventHandler
from donorflow.domain.entities.task import CANONICAL_ENVELOPE_FIELD, Task
from donorflow.domain.enums import TaskType
from donorflow.domain.exceptions import ResourceNotFoundException, ValidationException

logger = logging.getLogger(__name__)

# Per-task results of a poll.
NO_ENVELOPE = "no_envelope"
POLL_ERROR = "error"
PENDING = "pending"
COMPLETED = "completed"
ALREADY_COMPLETED = "already_completed"


class SigningReconciler:
    def __init__(
        self,
        task_repo: ITaskRepository,
        signing_provider: ISigningProvider,
        handler: EnvelopeEventHandler,
        *,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self._task_repo = task_repo
        self._provider = signing_provider
        self._handler = handler
        self._retry_policy = retry_policy or RetryPolicy()

    async def reconcile(self, limit: int = 100) -> ReconcileSummary:
        """Poll envelope status for up to `limit` open signature tasks."""
        summary = ReconcileSummary()
        tasks = await self._task_repo.scan_open_by_type(TaskType.SIGNATURE, limit)
        for task in tasks:
            summary.checked += 1
            detail = await self._poll(task)
            result = detail["result"]
            if result == NO_ENVELOPE:
                summary.no_envelope += 1
                continue
            if result == PENDING:
                summary.still_pending += 1
                continue
            if result == COMPLETED:
                summary.completed += 1
            elif result == ALREADY_COMPLETED:
                summary.already_completed += 1
            else:
                summary.errors += 1
            summary.details.append(detail)
        logger.info(
            "Signing reconciliation: checked=%d completed=%d pending=%d no_envelope=%d errors=%d",
            summary.checked,
            summary.completed,
            summary.still_pending,
            summary.no_envelope,
            summary.errors,
        )
        return summary

    async def check_task(self, task_id: str) -> dict[str, Any]:
        """Poll the envelope of one signature task and apply the answer.

        Raises:
            ResourceNotFoundException: No such task.
            ValidationException: The task carries no envelope id.
        """
        task = await self._task_repo.get(task_id)
        if task is None:
            raise ResourceNotFoundException("task", task_id)
        if task.is_completed:
            return {"task_id": task.id, "envelope_id": task.envelope_id(), "result": ALREADY_COMPLETED}
        detail = await self._poll(task)
        if detail["result"] == NO_ENVELOPE:
            raise ValidationException(
                "Task does not have an associated DocuSign envelope", field="task_id"
            )
        return detail

    async def _poll(self, task: Task) -> dict[str, Any]:
        envelope_id = task.envelope_id()
        detail: dict[str, Any] = {"task_id": task.id, "envelope_id": envelope_id}
        if not envelope_id:
            detail["result"] = NO_ENVELOPE
            return detail

        poll = await retry_async(
            lambda: self._provider.get_envelope_status(envelope_id),
            self._retry_policy,
            label=f"status of envelope {envelope_id}",
        )
        if not poll.ok or poll.value is None:
            detail.update(result=POLL_ERROR, error=poll.error)
            return detail
        event = EnvelopeEvent.from_envelope({**poll.value, "envelopeId": envelope_id})
        if event.raw_status is None:
            detail.update(result=POLL_ERROR, error="no status returned")
            return detail
        detail["status"] = event.raw_status

        if not event.is_completed:
            if task.metadata.get("docusign_status") != event.raw_status:
                await self._handler.apply(event, [task], correlated_by="reconcile")
            detail["result"] = PENDING
            return detail

        if task.metadata.get(CANONICAL_ENVELOPE_FIELD) != envelope_id:
            await self._task_repo.merge_metadata(task.id, {CANONICAL_ENVELOPE_FIELD: envelope_id})
        handled = await self._handler.apply(event, [task], correlated_by="reconcile")
        detail["outcome"] = handled.outcome.value
        task_result = handled.tasks[0] if handled.tasks else None
        if task_result is not None and task_result.action == "already_completed":
            detail["result"] = ALREADY_COMPLETED
        elif handled.outcome is HandledOutcome.COMPLETED:
            detail["result"] = COMPLETED
            detail["unblocked"] = task_result.unblocked if task_result else []
            if task_result is not None and task_result.artifact_error:
                detail["artifact_error"] = task_result.artifact_error
        else:
            detail.update(result=POLL_ERROR, error=handled.error)
        return detail
