"""Application use cases: workflow instantiation, task completion, signing, checklists."""

from donorflow.application.use_cases.completions import CompletionTracker
from donorflow.application.use_cases.signing import (
    EnvelopeEventHandler,
    SigningReconciler,
)
from donorflow.application.use_cases.tasks import CompletionCascadeService
from donorflow.application.use_cases.workflows import WorkflowInstantiator

__all__ = [
    "CompletionCascadeService",
    "CompletionTracker",
    "EnvelopeEventHandler",
    "SigningReconciler",
    "WorkflowInstantiator",
]
