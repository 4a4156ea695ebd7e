"""Envelope-to-task correlation.

An ordered chain of independent lookup strategies; the first one that
finds tasks wins. Only the first strategy reads the canonical field, so a
hit from any later strategy means the task still carries its envelope id
under an older field name.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

from donorflow.application.interfaces.repositories import ITaskRepository
from donorflow.domain.entities.task import (
    CANONICAL_ENVELOPE_FIELD,
    LEGACY_ENVELOPE_FIELDS,
    Task,
)
from donorflow.domain.enums import TaskType

logger = logging.getLogger(__name__)


class CorrelationStrategy(Protocol):
    name: str
    canonical: bool

    async def find(self, envelope_id: str) -> list[Task]:
        """Tasks this strategy associates with the envelope (possibly empty)."""


class MetadataFieldLookup:
    """Equality lookup on one metadata field."""

    def __init__(self, task_repo: ITaskRepository, field_name: str, *, limit: int = 20) -> None:
        self._task_repo = task_repo
        self._field = field_name
        self._limit = limit
        self.name = f"metadata.{field_name}"
        self.canonical = field_name == CANONICAL_ENVELOPE_FIELD

    async def find(self, envelope_id: str) -> list[Task]:
        return await self._task_repo.find_by_metadata(self._field, envelope_id, self._limit)


class OpenSignatureTaskScan:
    """Bounded scan of open signature tasks, matching any known envelope field."""

    name = "scan"
    canonical = False

    def __init__(
        self,
        task_repo: ITaskRepository,
        fields: tuple[str, ...] = (CANONICAL_ENVELOPE_FIELD, *LEGACY_ENVELOPE_FIELDS),
        *,
        limit: int = 200,
    ) -> None:
        self._task_repo = task_repo
        self._fields = fields
        self._limit = limit

    async def find(self, envelope_id: str) -> list[Task]:
        candidates = await self._task_repo.scan_open_by_type(TaskType.SIGNATURE, self._limit)
        return [
            t
            for t in candidates
            if any(t.metadata.get(name) == envelope_id for name in self._fields)
        ]


@dataclass(frozen=True)
class Correlation:
    strategy: str | None
    canonical: bool
    tasks: list[Task] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return bool(self.tasks)


class CorrelationChain:
    """Runs strategies in order and returns the first non-empty match."""

    def __init__(self, strategies: list[CorrelationStrategy]) -> None:
        self._strategies = strategies

    async def resolve(self, envelope_id: str) -> Correlation:
        for strategy in self._strategies:
            tasks = await strategy.find(envelope_id)
            if tasks:
                if not strategy.canonical:
                    logger.info(
                        "Envelope %s correlated via fallback %s (%d task(s))",
                        envelope_id,
                        strategy.name,
                        len(tasks),
                    )
                return Correlation(strategy=strategy.name, canonical=strategy.canonical, tasks=tasks)
        return Correlation(strategy=None, canonical=False)


def default_chain(task_repo: ITaskRepository, *, scan_limit: int = 200) -> CorrelationChain:
    """Canonical field, then the older snake_case field, then a bounded scan."""
    return CorrelationChain(
        [
            MetadataFieldLookup(task_repo, CANONICAL_ENVELOPE_FIELD),
            MetadataFieldLookup(task_repo, "envelope_id"),
            OpenSignatureTaskScan(task_repo, limit=scan_limit),
        ]
    )
