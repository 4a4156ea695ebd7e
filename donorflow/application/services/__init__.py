"""Application services: pure dependency resolution and the retry combinator."""

from donorflow.application.services.dependency_resolver import (
    find_violations,
    initial_status,
    is_satisfied,
    unsatisfied_dependencies,
)
from donorflow.application.services.retry import (
    Permanent,
    RetryOutcome,
    RetryPolicy,
    Transient,
    classify_exception,
    retry_async,
)

__all__ = [
    "Permanent",
    "RetryOutcome",
    "RetryPolicy",
    "Transient",
    "classify_exception",
    "find_violations",
    "initial_status",
    "is_satisfied",
    "retry_async",
    "unsatisfied_dependencies",
]
