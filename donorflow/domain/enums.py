"""Domain enumerations for donation workflows.

Workflow task status and the per-user completion vocabulary are two
different enums on purpose; they are never converted into each other.
"""

from enum import Enum


class _ValuesMixin:
    """Mixin that adds a values() classmethod to str Enums."""

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid values as strings."""
        return [member.value for member in cls]


class TaskStatus(_ValuesMixin, str, Enum):
    """Workflow task lifecycle.

    blocked -> pending happens only through the completion cascade;
    pending -> in_progress -> completed through actors or the signing
    provider. completed is terminal.
    """

    BLOCKED = "blocked"
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    @property
    def is_open(self) -> bool:
        return self is not TaskStatus.COMPLETED


OPEN_STATUSES: tuple[TaskStatus, ...] = (
    TaskStatus.BLOCKED,
    TaskStatus.PENDING,
    TaskStatus.IN_PROGRESS,
)
COMPLETABLE_STATUSES: tuple[TaskStatus, ...] = (TaskStatus.PENDING, TaskStatus.IN_PROGRESS)


class AssignedRole(_ValuesMixin, str, Enum):
    """Participant lane a task belongs to."""

    DONOR = "donor"
    NONPROFIT_ADMIN = "nonprofit_admin"
    APPRAISER = "appraiser"


class TaskType(_ValuesMixin, str, Enum):
    """Kind of work a task represents."""

    SIGNATURE = "signature"
    DOCUMENT_UPLOAD = "document_upload"
    DOCUMENT_REVIEW = "document_review"
    DECISION = "decision"
    INVITATION = "invitation"
    OTHER = "other"


class TaskPriority(_ValuesMixin, str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ActorType(_ValuesMixin, str, Enum):
    """Who performed an action: an authenticated user or an automated caller."""

    USER = "user"
    SYSTEM = "system"


class CompletionStatus(_ValuesMixin, str, Enum):
    """Per-user onboarding/campaign checklist status."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


class CompletionKind(_ValuesMixin, str, Enum):
    ONBOARDING = "onboarding"
    CAMPAIGN = "campaign"


class EnvelopeStatus(_ValuesMixin, str, Enum):
    """DocuSign envelope statuses the service distinguishes."""

    CREATED = "created"
    SENT = "sent"
    DELIVERED = "delivered"
    SIGNED = "signed"
    COMPLETED = "completed"
    DECLINED = "declined"
    VOIDED = "voided"

    @classmethod
    def parse(cls, raw: str | None) -> "EnvelopeStatus | None":
        """Case-insensitive lookup; None for unknown or missing values."""
        if not raw:
            return None
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return None
