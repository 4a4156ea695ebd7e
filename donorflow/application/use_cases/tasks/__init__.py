"""Task use cases: completion cascade, start, comments."""

from donorflow.application.use_cases.tasks.complete_task import CompletionCascadeService

__all__ = ["CompletionCascadeService"]
