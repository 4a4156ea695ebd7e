"""Firestore-backed task store (implements ITaskRepository).

Status changes are read-check-write cycles: read the document with its
update time, check the current status, then PATCH with a
currentDocument.updateTime precondition. A failed precondition means
someone else wrote in between; the cycle is repeated against the fresh
document, bounded by `conditional_write_attempts`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Collection, Iterator
from contextlib import contextmanager
from typing import Any, cast

from donorflow.domain.entities.task import Task
from donorflow.domain.entities.workflow import WorkflowGeneration
from donorflow.domain.enums import OPEN_STATUSES, TaskStatus, TaskType
from donorflow.domain.exceptions import (
    ConcurrentModificationException,
    PersistenceException,
    ResourceNotFoundException,
    TaskRecordInvalidException,
    WorkflowInstantiationException,
)
from donorflow.infrastructure.exceptions import (
    DocumentExistsError,
    DocumentNotFoundError,
    FirestoreError,
    PreconditionFailedError,
)
from donorflow.infrastructure.firebase._rest_client import (
    MAX_WRITES_PER_COMMIT,
    DocumentSnapshot,
    FirestoreRESTClient,
    delete_write,
    update_write,
)
from donorflow.infrastructure.firebase.collections import (
    COLLECTION_TASKS,
    COLLECTION_WORKFLOW_GENERATIONS,
)
from donorflow.shared.utils.datetime import utc_now

logger = logging.getLogger(__name__)

# Upper bound on tasks read per workflow; templates are far below it.
WORKFLOW_TASK_LIMIT = 500


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    """Translate transport-level Firestore failures into PersistenceException."""
    try:
        yield
    except FirestoreError as e:
        logger.error("Firestore %s failed: %s", operation, e)
        raise PersistenceException(str(e), operation=operation) from e


class FirestoreTaskRepository:
    """Task store over the Firestore REST client."""

    def __init__(
        self,
        client: FirestoreRESTClient,
        *,
        conditional_write_attempts: int = 5,
    ) -> None:
        self._client = client
        self._tasks = client.collection(COLLECTION_TASKS)
        self._generations = client.collection(COLLECTION_WORKFLOW_GENERATIONS)
        self._attempts = conditional_write_attempts

    @staticmethod
    def _to_task(snapshot: DocumentSnapshot) -> Task:
        return Task.from_document(snapshot.id, snapshot.to_dict())

    async def _collect(
        self,
        query,
        operation: str,
        on_invalid: Callable[[str, str], None] | None = None,
    ) -> list[Task]:
        tasks: list[Task] = []
        with _store_errors(operation):
            async for snapshot in query.stream():
                try:
                    tasks.append(self._to_task(snapshot))
                except TaskRecordInvalidException as e:
                    logger.warning("Skipping invalid task record %s: %s", snapshot.id, e.message)
                    if on_invalid is not None:
                        on_invalid(snapshot.id, e.message)
        return tasks

    async def get(self, task_id: str) -> Task | None:
        with _store_errors("get task"):
            snapshot = await self._tasks.document(task_id).get()
        return self._to_task(snapshot) if snapshot else None

    async def list_by_workflow(self, workflow_id: str) -> list[Task]:
        query = (
            self._tasks.where("workflow_id", "==", workflow_id)
            .order_by("order")
            .limit(WORKFLOW_TASK_LIMIT)
        )
        return await self._collect(query, "list workflow tasks")

    async def list_by_assignee(
        self, user_id: str, status: TaskStatus | None = None
    ) -> list[Task]:
        query = self._tasks.where("assigned_to", "==", user_id)
        if status is not None:
            query = query.where("status", "==", status.value)
        tasks = await self._collect(query.limit(WORKFLOW_TASK_LIMIT), "list assignee tasks")
        return sorted(tasks, key=lambda t: (t.workflow_id, t.order))

    async def list_dependents(
        self,
        workflow_id: str,
        task_id: str,
        on_invalid: Callable[[str, str], None] | None = None,
    ) -> list[Task]:
        query = (
            self._tasks.where("workflow_id", "==", workflow_id)
            .where("dependencies", "array-contains", task_id)
            .limit(WORKFLOW_TASK_LIMIT)
        )
        return await self._collect(query, "list dependents", on_invalid)

    async def find_by_metadata(self, field: str, value: str, limit: int = 50) -> list[Task]:
        query = self._tasks.where(f"metadata.{field}", "==", value).limit(limit)
        return await self._collect(query, "find by metadata")

    async def scan_open_by_type(self, task_type: TaskType, limit: int) -> list[Task]:
        query = (
            self._tasks.where("type", "==", task_type.value)
            .where("status", "in", [s.value for s in OPEN_STATUSES])
            .limit(limit)
        )
        return await self._collect(query, "scan open tasks")

    async def statuses(self, task_ids: Collection[str]) -> dict[str, TaskStatus]:
        refs = [self._tasks.document(task_id) for task_id in dict.fromkeys(task_ids)]
        with _store_errors("read statuses"):
            snapshots = await self._client.get_all(refs)
        out: dict[str, TaskStatus] = {}
        for snapshot in snapshots:
            try:
                out[snapshot.id] = TaskStatus(snapshot.to_dict().get("status"))
            except ValueError:
                logger.warning("Task %s has an unknown status; treating as unsatisfied", snapshot.id)
        return out

    async def _guarded_update(
        self,
        task_id: str,
        build: Callable[[Task], dict[str, Any] | None],
        operation: str,
    ) -> Task | None:
        """Read, let `build` decide the patch (None = abort), write with an update-time guard."""
        ref = self._tasks.document(task_id)
        for attempt in range(1, self._attempts + 1):
            with _store_errors(operation):
                snapshot = await ref.get()
            if snapshot is None:
                raise ResourceNotFoundException("task", task_id)
            current = self._to_task(snapshot)
            patch = build(current)
            if patch is None:
                return None
            try:
                with _store_errors(operation):
                    await ref.update(patch, update_time=snapshot.update_time)
            except PreconditionFailedError:
                logger.debug(
                    "%s on task %s lost a write race (attempt %d/%d)",
                    operation,
                    task_id,
                    attempt,
                    self._attempts,
                )
                continue
            except DocumentNotFoundError:
                raise ResourceNotFoundException("task", task_id) from None
            return Task.from_document(task_id, {**snapshot.to_dict(), **patch})
        raise ConcurrentModificationException("task", task_id)

    async def transition(
        self,
        task_id: str,
        expected: Collection[TaskStatus],
        target: TaskStatus,
        updates: dict[str, Any] | None = None,
        metadata_updates: dict[str, Any] | None = None,
    ) -> Task | None:
        def build(current: Task) -> dict[str, Any] | None:
            if current.status not in expected:
                return None
            patch: dict[str, Any] = {
                **(updates or {}),
                "status": target.value,
                "updated_at": utc_now(),
            }
            if metadata_updates:
                patch["metadata"] = {**current.metadata, **metadata_updates}
            return patch

        return await self._guarded_update(task_id, build, f"transition to {target.value}")

    async def merge_metadata(self, task_id: str, updates: dict[str, Any]) -> Task:
        def build(current: Task) -> dict[str, Any]:
            return {"metadata": {**current.metadata, **updates}, "updated_at": utc_now()}

        return cast(Task, await self._guarded_update(task_id, build, "merge metadata"))

    async def append_comment(self, task_id: str, comment: dict[str, Any]) -> Task:
        def build(current: Task) -> dict[str, Any]:
            return {"comments": [*current.comments, comment], "updated_at": utc_now()}

        return cast(Task, await self._guarded_update(task_id, build, "append comment"))

    async def get_generation(self, workflow_id: str) -> WorkflowGeneration | None:
        with _store_errors("get generation"):
            snapshot = await self._generations.document(workflow_id).get()
        if snapshot is None:
            return None
        return WorkflowGeneration.from_document(
            workflow_id, snapshot.to_dict(), version=snapshot.update_time
        )

    async def replace_workflow(
        self,
        workflow_id: str,
        tasks: list[Task],
        generation: WorkflowGeneration,
        expected: WorkflowGeneration | None,
    ) -> int:
        with _store_errors("list workflow task ids"):
            existing = [
                snapshot.id
                async for snapshot in self._tasks.where("workflow_id", "==", workflow_id)
                .limit(WORKFLOW_TASK_LIMIT)
                .stream()
            ]
        writes = [delete_write(self._tasks.document(task_id)) for task_id in existing]
        writes.extend(
            update_write(self._tasks.document(task.id), task.to_document(), exists=False)
            for task in tasks
        )
        marker_ref = self._generations.document(workflow_id)
        if expected is None:
            writes.append(update_write(marker_ref, generation.to_document(), exists=False))
        elif expected.version is None:
            raise WorkflowInstantiationException(workflow_id, "generation marker has no version")
        else:
            writes.append(
                update_write(marker_ref, generation.to_document(), update_time=expected.version)
            )
        if len(writes) > MAX_WRITES_PER_COMMIT:
            raise WorkflowInstantiationException(
                workflow_id, f"{len(writes)} writes exceed the atomic commit limit"
            )
        try:
            with _store_errors("replace workflow"):
                await self._client.commit(writes)
        except (PreconditionFailedError, DocumentExistsError):
            raise ConcurrentModificationException("workflow", workflow_id) from None
        return len(existing)
