"""Application DTOs (no dependency on storage or HTTP types)."""

from donorflow.application.dtos.completion import CompletionRecord
from donorflow.application.dtos.signing import (
    EnvelopeEvent,
    HandledOutcome,
    HandledResult,
    ReconcileSummary,
    RecipientStatus,
    TaskEventResult,
)
from donorflow.application.dtos.task import (
    CompletionResult,
    DependentFailure,
    InstantiationResult,
)

__all__ = [
    "CompletionRecord",
    "CompletionResult",
    "DependentFailure",
    "EnvelopeEvent",
    "HandledOutcome",
    "HandledResult",
    "InstantiationResult",
    "ReconcileSummary",
    "RecipientStatus",
    "TaskEventResult",
]
