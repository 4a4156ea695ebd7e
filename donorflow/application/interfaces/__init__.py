"""Application interfaces (ports): repository and service protocols.

Define contracts for infrastructure implementations (DIP).
No runtime imports from donorflow.infrastructure or donorflow.api.
"""

from donorflow.application.interfaces.repositories import (
    ICompletionRepository,
    IProcessedEventStore,
    ITaskRepository,
)
from donorflow.application.interfaces.services import (
    IArtifactStorage,
    ISigningProvider,
)

__all__ = [
    "IArtifactStorage",
    "ICompletionRepository",
    "IProcessedEventStore",
    "ISigningProvider",
    "ITaskRepository",
]
