"""Pytest configuration and fixtures for donorflow.

HTTP tests run against donorflow.main:app through ASGITransport (the lifespan
does not run), with in-memory stores placed on app.state. The in-memory task
store honours the same conditional-write contract as the Firestore adapter.
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-donorflow-tests-0123456789")

import asyncio
from collections.abc import Collection
from dataclasses import replace
from typing import Any, BinaryIO

import pytest
from httpx import ASGITransport, AsyncClient

from donorflow.application.dtos.completion import CompletionRecord
from donorflow.core.limiter import limiter
from donorflow.domain.entities.task import Task
from donorflow.domain.entities.workflow import WorkflowGeneration
from donorflow.domain.enums import OPEN_STATUSES, AssignedRole, TaskStatus, TaskType
from donorflow.domain.exceptions import (
    ConcurrentModificationException,
    PersistenceException,
    ResourceNotFoundException,
)
from donorflow.domain.templates import default_registry
from donorflow.infrastructure.security.jwt import create_access_token
from donorflow.main import app
from donorflow.shared.utils.datetime import utc_now


class InMemoryTaskRepository:
    """ITaskRepository over dicts.

    Each call yields to the event loop once before touching state, so
    concurrent callers interleave between calls but every conditional write
    is atomic. `fail_on` maps task ids to an exception raised by transition();
    `unreadable_dependents` maps ids of malformed records that list_dependents
    reports through its on_invalid callback.
    """

    def __init__(self) -> None:
        self.tasks: dict[str, Task] = {}
        self.generations: dict[str, WorkflowGeneration] = {}
        self.fail_on: dict[str, Exception] = {}
        self.transition_calls: list[tuple[str, TaskStatus]] = []
        self.unreadable_dependents: dict[str, str] = {}
        self._marker_versions: dict[str, int] = {}

    def add(self, *tasks: Task) -> None:
        for task in tasks:
            self.tasks[task.id] = task

    async def get(self, task_id: str) -> Task | None:
        await asyncio.sleep(0)
        return self.tasks.get(task_id)

    async def list_by_workflow(self, workflow_id: str) -> list[Task]:
        await asyncio.sleep(0)
        return sorted(
            (t for t in self.tasks.values() if t.workflow_id == workflow_id),
            key=lambda t: t.order,
        )

    async def list_by_assignee(self, user_id: str, status: TaskStatus | None = None) -> list[Task]:
        await asyncio.sleep(0)
        tasks = [
            t
            for t in self.tasks.values()
            if t.assigned_to == user_id and (status is None or t.status is status)
        ]
        return sorted(tasks, key=lambda t: (t.workflow_id, t.order))

    async def list_dependents(self, workflow_id: str, task_id: str, on_invalid=None) -> list[Task]:
        await asyncio.sleep(0)
        if on_invalid is not None:
            for bad_id, reason in self.unreadable_dependents.items():
                on_invalid(bad_id, reason)
        return [
            t
            for t in self.tasks.values()
            if t.workflow_id == workflow_id and task_id in t.dependencies
        ]

    async def find_by_metadata(self, field: str, value: str, limit: int = 50) -> list[Task]:
        await asyncio.sleep(0)
        return [t for t in self.tasks.values() if t.metadata.get(field) == value][:limit]

    async def scan_open_by_type(self, task_type: TaskType, limit: int) -> list[Task]:
        await asyncio.sleep(0)
        return [
            t for t in self.tasks.values() if t.type is task_type and t.status in OPEN_STATUSES
        ][:limit]

    async def statuses(self, task_ids: Collection[str]) -> dict[str, TaskStatus]:
        await asyncio.sleep(0)
        return {i: self.tasks[i].status for i in task_ids if i in self.tasks}

    async def transition(
        self,
        task_id: str,
        expected: Collection[TaskStatus],
        target: TaskStatus,
        updates: dict[str, Any] | None = None,
        metadata_updates: dict[str, Any] | None = None,
    ) -> Task | None:
        await asyncio.sleep(0)
        if task_id in self.fail_on:
            raise self.fail_on[task_id]
        current = self.tasks.get(task_id)
        if current is None:
            raise ResourceNotFoundException("task", task_id)
        if current.status not in expected:
            return None
        self.transition_calls.append((task_id, target))
        changed = current.with_changes(
            status=target,
            updated_at=utc_now(),
            metadata={**current.metadata, **(metadata_updates or {})},
            **(updates or {}),
        )
        self.tasks[task_id] = changed
        return changed

    async def merge_metadata(self, task_id: str, updates: dict[str, Any]) -> Task:
        await asyncio.sleep(0)
        current = self.tasks.get(task_id)
        if current is None:
            raise ResourceNotFoundException("task", task_id)
        changed = current.with_changes(metadata={**current.metadata, **updates})
        self.tasks[task_id] = changed
        return changed

    async def append_comment(self, task_id: str, comment: dict[str, Any]) -> Task:
        await asyncio.sleep(0)
        current = self.tasks.get(task_id)
        if current is None:
            raise ResourceNotFoundException("task", task_id)
        changed = current.with_changes(comments=(*current.comments, comment))
        self.tasks[task_id] = changed
        return changed

    async def get_generation(self, workflow_id: str) -> WorkflowGeneration | None:
        await asyncio.sleep(0)
        return self.generations.get(workflow_id)

    async def replace_workflow(
        self,
        workflow_id: str,
        tasks: list[Task],
        generation: WorkflowGeneration,
        expected: WorkflowGeneration | None,
    ) -> int:
        await asyncio.sleep(0)
        if workflow_id in self.fail_on:
            raise self.fail_on[workflow_id]
        current = self.generations.get(workflow_id)
        if (current is None) != (expected is None) or (
            current is not None and expected is not None and current.version != expected.version
        ):
            raise ConcurrentModificationException("workflow", workflow_id)
        stale = [i for i, t in self.tasks.items() if t.workflow_id == workflow_id]
        for task_id in stale:
            del self.tasks[task_id]
        for task in tasks:
            self.tasks[task.id] = task
        version = self._marker_versions.get(workflow_id, 0) + 1
        self._marker_versions[workflow_id] = version
        self.generations[workflow_id] = replace(generation, version=str(version))
        return len(stale)


class InMemoryEventStore:
    def __init__(self) -> None:
        self.claims: dict[str, dict[str, Any]] = {}
        self.released: list[str] = []

    async def claim(self, key: str, data: dict[str, Any] | None = None) -> bool:
        await asyncio.sleep(0)
        if key in self.claims:
            return False
        self.claims[key] = data or {}
        return True

    async def release(self, key: str) -> None:
        self.claims.pop(key, None)
        self.released.append(key)


class InMemoryCompletionRepository:
    def __init__(self) -> None:
        self.records: dict[str, CompletionRecord] = {}

    async def get(self, user_id: str) -> CompletionRecord | None:
        return self.records.get(user_id)

    async def save(self, record: CompletionRecord) -> None:
        self.records[record.user_id] = record


class FakeSigningProvider:
    """Scripted DocuSign: per-envelope status dicts and document bytes or errors."""

    def __init__(self) -> None:
        self.envelopes: dict[str, dict[str, Any]] = {}
        self.documents: dict[str, bytes] = {}
        self.download_errors: list[Exception] = []
        self.status_calls: list[str] = []
        self.download_calls: list[str] = []

    async def get_envelope_status(self, envelope_id: str) -> dict[str, Any]:
        self.status_calls.append(envelope_id)
        return self.envelopes[envelope_id]

    async def download_combined_document(self, envelope_id: str) -> bytes:
        self.download_calls.append(envelope_id)
        if self.download_errors:
            raise self.download_errors.pop(0)
        return self.documents.get(envelope_id, b"%PDF-1.7 signed")


class FakeArtifactStorage:
    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.upload_error: Exception | None = None

    async def upload(
        self,
        file_data: BinaryIO,
        storage_ref: str,
        expected_checksum: str,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        if self.upload_error is not None:
            raise self.upload_error
        self.objects[storage_ref] = file_data.read()
        return {"storage_ref": storage_ref, "checksum": expected_checksum}


def build_task(
    task_id: str,
    *,
    workflow_id: str = "wf1",
    status: TaskStatus = TaskStatus.PENDING,
    dependencies: tuple[str, ...] = (),
    order: int = 0,
    assigned_role: AssignedRole = AssignedRole.DONOR,
    assigned_to: str | None = "donor-1",
    task_type: TaskType = TaskType.OTHER,
    metadata: dict[str, Any] | None = None,
) -> Task:
    return Task(
        id=task_id,
        workflow_id=workflow_id,
        key=task_id,
        title=f"Task {task_id}",
        assigned_role=assigned_role,
        type=task_type,
        status=status,
        dependencies=dependencies,
        order=order,
        assigned_to=assigned_to,
        metadata=metadata or {},
    )


@pytest.fixture
def make_task():
    """Factory for Task entities with test-friendly defaults."""
    return build_task


@pytest.fixture
def task_repo() -> InMemoryTaskRepository:
    return InMemoryTaskRepository()


@pytest.fixture
def event_store() -> InMemoryEventStore:
    return InMemoryEventStore()


@pytest.fixture
def completion_repo() -> InMemoryCompletionRepository:
    return InMemoryCompletionRepository()


@pytest.fixture
def signing_provider() -> FakeSigningProvider:
    return FakeSigningProvider()


@pytest.fixture
def artifact_storage() -> FakeArtifactStorage:
    return FakeArtifactStorage()


@pytest.fixture
async def client(
    task_repo: InMemoryTaskRepository,
    event_store: InMemoryEventStore,
    completion_repo: InMemoryCompletionRepository,
    signing_provider: FakeSigningProvider,
    artifact_storage: FakeArtifactStorage,
) -> AsyncClient:
    """Async HTTP client against the FastAPI app (ASGI) with in-memory stores."""
    app.state.templates = default_registry()
    app.state.task_repo = task_repo
    app.state.event_store = event_store
    app.state.completion_repo = completion_repo
    app.state.signing_provider = signing_provider
    app.state.artifact_storage = artifact_storage
    limiter.enabled = False
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    limiter.enabled = True


@pytest.fixture
def auth_headers():
    """Factory: bearer headers for a user id and role."""

    def _headers(user_id: str, role: AssignedRole | None = AssignedRole.DONOR) -> dict[str, str]:
        claims: dict[str, Any] = {"sub": user_id}
        if role is not None:
            claims["role"] = role.value
        return {"Authorization": f"Bearer {create_access_token(claims)}"}

    return _headers


@pytest.fixture
def persistence_error() -> PersistenceException:
    return PersistenceException("write failed", operation="transition")
