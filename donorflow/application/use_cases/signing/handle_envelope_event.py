"""Signing-provider completion adapter.

Turns an envelope status notification into task updates: a completed
envelope fetches and stores the signed artifact, completes the correlated
task(s) as the webhook system actor and cascades; any other status only
records progress in task metadata. handle() never raises, since the
provider must always receive an acknowledgement.
"""

from __future__ import annotations

import hashlib
import io
import logging
from typing import Any

from donorflow.application.dtos.signing import (
    EnvelopeEvent,
    HandledOutcome,
    HandledResult,
    TaskEventResult,
)
from donorflow.application.interfaces.repositories import IProcessedEventStore, ITaskRepository
from donorflow.application.interfaces.services import IArtifactStorage, ISigningProvider
from donorflow.application.services.retry import RetryPolicy, retry_async
from donorflow.application.use_cases.signing.correlation import (
    Correlation,
    CorrelationChain,
    default_chain,
)
from donorflow.application.use_cases.tasks.complete_task import CompletionCascadeService
from donorflow.domain.entities.task import CANONICAL_ENVELOPE_FIELD, Task
from donorflow.domain.value_objects import Actor
from donorflow.shared.utils.datetime import isoformat_utc

logger = logging.getLogger(__name__)

WEBHOOK_ACTOR = Actor.system("docusign-webhook")


def signed_artifact_ref(task: Task, envelope_id: str) -> str:
    """Storage key for a task's signed document."""
    return f"donations/{task.workflow_id}/signed-documents/signed-{task.key}-{envelope_id}.pdf"


class EnvelopeEventHandler:
    """Applies envelope events to correlated tasks."""

    def __init__(
        self,
        task_repo: ITaskRepository,
        cascade: CompletionCascadeService,
        signing_provider: ISigningProvider | None,
        artifact_storage: IArtifactStorage | None,
        event_store: IProcessedEventStore,
        *,
        chain: CorrelationChain | None = None,
        retry_policy: RetryPolicy | None = None,
        actor: Actor = WEBHOOK_ACTOR,
    ) -> None:
        self._task_repo = task_repo
        self._cascade = cascade
        self._provider = signing_provider
        self._storage = artifact_storage
        self._events = event_store
        self._chain = chain or default_chain(task_repo)
        self._retry_policy = retry_policy or RetryPolicy()
        self._actor = actor

    async def handle(self, payload: Any) -> HandledResult:
        """Process one webhook payload. Always returns a result."""
        event = EnvelopeEvent.from_payload(payload)
        try:
            return await self._handle(event)
        except Exception as e:
            logger.exception("Envelope event %s could not be processed", event.envelope_id)
            return HandledResult(
                envelope_id=event.envelope_id,
                status=event.raw_status,
                outcome=HandledOutcome.FAILED,
                error=str(e),
            )

    async def _handle(self, event: EnvelopeEvent) -> HandledResult:
        if not event.envelope_id or not event.raw_status:
            logger.warning("Envelope event without envelope id or status (event=%s)", event.event)
            return HandledResult(
                envelope_id=event.envelope_id,
                status=event.raw_status,
                outcome=HandledOutcome.INVALID,
                error="missing envelope id or status",
            )
        if not event.is_handled_event:
            logger.debug("Ignoring %s for envelope %s", event.event, event.envelope_id)
            return HandledResult(
                envelope_id=event.envelope_id,
                status=event.raw_status,
                outcome=HandledOutcome.IGNORED,
            )

        correlation = await self._chain.resolve(event.envelope_id)
        if not correlation.found:
            logger.warning("No task correlated with envelope %s", event.envelope_id)
            return HandledResult(
                envelope_id=event.envelope_id,
                status=event.raw_status,
                outcome=HandledOutcome.UNCORRELATED,
            )
        await self._backfill(correlation, event.envelope_id)
        return await self.apply(event, correlation.tasks, correlated_by=correlation.strategy)

    async def apply(
        self,
        event: EnvelopeEvent,
        tasks: list[Task],
        *,
        correlated_by: str | None = None,
    ) -> HandledResult:
        """Apply an event to already-correlated tasks (shared with reconciliation).

        A held claim only short-circuits when every task is completed in the
        store; a claim left behind by an interrupted delivery does not stop
        the completion. The conditional task write keeps the cascade to one
        run per task either way.
        """
        envelope_id = event.envelope_id or ""
        claimed = False
        if event.is_completed:
            claimed = await self._events.claim(
                event.idempotency_key,
                {"envelope_id": envelope_id, "status": event.raw_status, "task_ids": [t.id for t in tasks]},
            )
            if not claimed:
                tasks = await self._refresh(tasks)
                if all(t.is_completed for t in tasks):
                    logger.info("Duplicate completion for envelope %s ignored", envelope_id)
                    return HandledResult(
                        envelope_id=envelope_id,
                        status=event.raw_status,
                        outcome=HandledOutcome.DUPLICATE,
                        correlated_by=correlated_by,
                        tasks=[
                            TaskEventResult(task_id=t.id, action="already_completed") for t in tasks
                        ],
                    )
                logger.warning(
                    "Envelope %s already claimed but task(s) %s still open; completing",
                    envelope_id,
                    [t.id for t in tasks if not t.is_completed],
                )

        results: list[TaskEventResult] = []
        try:
            for task in tasks:
                if event.is_completed:
                    results.append(await self._complete(task, event))
                else:
                    results.append(await self._record_progress(task, event))
        except BaseException:
            if claimed:
                await self._release(event.idempotency_key)
            raise

        failed = [r for r in results if r.action == "failed"]
        if failed and claimed:
            # Let a redelivery try again.
            await self._release(event.idempotency_key)
        if failed and len(failed) == len(results):
            outcome = HandledOutcome.FAILED
        elif event.is_completed:
            outcome = HandledOutcome.COMPLETED
        else:
            outcome = HandledOutcome.UPDATED
        return HandledResult(
            envelope_id=envelope_id,
            status=event.raw_status,
            outcome=outcome,
            correlated_by=correlated_by,
            tasks=results,
            error="; ".join(r.error for r in failed if r.error) or None,
        )

    async def _refresh(self, tasks: list[Task]) -> list[Task]:
        """Current versions of tasks; ones deleted since correlation are dropped."""
        current = [await self._task_repo.get(t.id) for t in tasks]
        return [t for t in current if t is not None]

    async def _release(self, key: str) -> None:
        try:
            await self._events.release(key)
        except Exception:
            # Stale claims do not block completion.
            logger.exception("Releasing event claim %s failed", key)

    async def _backfill(self, correlation: Correlation, envelope_id: str) -> None:
        """Copy the envelope id into the canonical field of tasks found by a fallback."""
        if correlation.canonical:
            return
        for task in correlation.tasks:
            if task.metadata.get(CANONICAL_ENVELOPE_FIELD) == envelope_id:
                continue
            try:
                await self._task_repo.merge_metadata(
                    task.id, {CANONICAL_ENVELOPE_FIELD: envelope_id}
                )
                logger.info("Back-filled %s on task %s", CANONICAL_ENVELOPE_FIELD, task.id)
            except Exception:
                logger.exception("Back-fill of envelope id failed for task %s", task.id)

    async def _complete(self, task: Task, event: EnvelopeEvent) -> TaskEventResult:
        if task.is_completed:
            return TaskEventResult(task_id=task.id, action="already_completed")
        envelope_id = event.envelope_id or ""
        if task.is_blocked:
            logger.warning(
                "Envelope %s completed but task %s is still blocked; not completing",
                envelope_id,
                task.id,
            )
            return TaskEventResult(
                task_id=task.id, action="failed", error="task is blocked by incomplete dependencies"
            )
        artifact_ref, artifact_error = await self._store_artifact(task, envelope_id)
        outcome_metadata: dict[str, Any] = {
            "docusign_status": event.raw_status,
            "docusign_completed_at": isoformat_utc(event.completed_at),
            "signed_document_ref": artifact_ref,
        }
        if artifact_error:
            outcome_metadata["signed_document_error"] = artifact_error
        if event.recipients:
            outcome_metadata["docusign_recipients"] = [r.to_dict() for r in event.recipients]
        try:
            completion = await self._cascade.complete_task(task.id, self._actor, outcome_metadata)
        except Exception as e:
            logger.exception("Completing task %s from envelope %s failed", task.id, envelope_id)
            return TaskEventResult(
                task_id=task.id,
                action="failed",
                artifact_ref=artifact_ref,
                artifact_error=artifact_error,
                error=str(e),
            )
        return TaskEventResult(
            task_id=task.id,
            action="already_completed" if completion.already_completed else "completed",
            unblocked=list(completion.unblocked),
            dependent_failures=[f.task_id for f in completion.failures],
            artifact_ref=artifact_ref,
            artifact_error=artifact_error,
        )

    async def _record_progress(self, task: Task, event: EnvelopeEvent) -> TaskEventResult:
        if task.is_completed:
            return TaskEventResult(task_id=task.id, action="already_completed")
        updates: dict[str, Any] = {
            "docusign_status": event.raw_status,
            "docusign_last_update": isoformat_utc(),
        }
        if event.recipients:
            updates["docusign_recipients"] = [r.to_dict() for r in event.recipients]
        try:
            await self._task_repo.merge_metadata(task.id, updates)
        except Exception as e:
            logger.exception("Recording envelope status on task %s failed", task.id)
            return TaskEventResult(task_id=task.id, action="failed", error=str(e))
        return TaskEventResult(task_id=task.id, action="updated")

    async def _store_artifact(self, task: Task, envelope_id: str) -> tuple[str | None, str | None]:
        """Fetch and store the signed document. Returns (storage ref, error)."""
        if self._provider is None or self._storage is None:
            return None, "signing provider or artifact storage not configured"
        provider = self._provider
        storage = self._storage

        download = await retry_async(
            lambda: provider.download_combined_document(envelope_id),
            self._retry_policy,
            label=f"download envelope {envelope_id}",
        )
        if not download.ok or download.value is None:
            return None, f"download failed after {download.attempts} attempt(s): {download.error}"
        content = download.value
        storage_ref = signed_artifact_ref(task, envelope_id)
        checksum = hashlib.sha256(content).hexdigest()
        upload = await retry_async(
            lambda: storage.upload(
                io.BytesIO(content),
                storage_ref,
                checksum,
                "application/pdf",
                {"envelope_id": envelope_id, "task_id": task.id},
            ),
            self._retry_policy,
            label=f"store {storage_ref}",
        )
        if not upload.ok:
            return None, f"upload failed after {upload.attempts} attempt(s): {upload.error}"
        logger.info("Signed document for envelope %s stored at %s", envelope_id, storage_ref)
        return storage_ref, None
