"""DTOs for signing-provider events, their handling results and reconciliation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from donorflow.domain.enums import EnvelopeStatus
from donorflow.shared.utils.datetime import parse_iso_datetime

# Connect events that carry envelope status changes worth acting on.
HANDLED_EVENTS: frozenset[str] = frozenset(
    {
        "envelope-sent",
        "envelope-delivered",
        "envelope-completed",
        "envelope-declined",
        "envelope-voided",
        "recipient-completed",
        "recipient-delivered",
        "recipient-sent",
    }
)


@dataclass(frozen=True)
class RecipientStatus:
    recipient_id: str | None
    name: str | None
    email: str | None
    status: str | None
    signed_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "recipient_id": self.recipient_id,
            "name": self.name,
            "email": self.email,
            "status": self.status,
            "signed_at": self.signed_at,
        }


def _first_str(*values: Any) -> str | None:
    for value in values:
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _recipients(source: Any) -> list[RecipientStatus]:
    if isinstance(source, dict):
        source = source.get("signers") or []
    if not isinstance(source, list):
        return []
    out = []
    for r in source:
        if not isinstance(r, dict):
            continue
        out.append(
            RecipientStatus(
                recipient_id=_first_str(r.get("recipientId")),
                name=_first_str(r.get("name"), r.get("userName")),
                email=_first_str(r.get("email")),
                status=_first_str(r.get("status")),
                signed_at=_first_str(r.get("signedDateTime")),
            )
        )
    return out


@dataclass(frozen=True)
class EnvelopeEvent:
    """Normalized signing-provider notification.

    Built from a Connect webhook payload or from a status poll. The
    envelope id is the correlation key used to find tasks.
    """

    envelope_id: str | None
    status: EnvelopeStatus | None
    raw_status: str | None = None
    event: str | None = None
    completed_at: datetime | None = None
    recipients: list[RecipientStatus] = field(default_factory=list)

    @property
    def is_completed(self) -> bool:
        return self.status is EnvelopeStatus.COMPLETED

    @property
    def is_handled_event(self) -> bool:
        """Status polls carry no event name and are always handled."""
        return self.event is None or self.event in HANDLED_EVENTS

    @property
    def idempotency_key(self) -> str:
        return f"{self.envelope_id}:{self.raw_status or 'unknown'}"

    @classmethod
    def from_payload(cls, payload: Any) -> "EnvelopeEvent":
        """Extract key, status and recipients; never raises on odd shapes."""
        if not isinstance(payload, dict):
            return cls(envelope_id=None, status=None)
        data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
        summary = data.get("envelopeSummary") if isinstance(data.get("envelopeSummary"), dict) else {}
        envelope_id = _first_str(
            data.get("envelopeId"),
            summary.get("envelopeId"),
            payload.get("envelopeId"),
            payload.get("envelope_id"),
        )
        event = _first_str(payload.get("event"))
        raw_status = _first_str(
            data.get("envelopeStatus"),
            summary.get("status"),
            payload.get("status"),
        )
        if raw_status is None and event == "envelope-completed":
            raw_status = EnvelopeStatus.COMPLETED.value
        recipients = _recipients(summary.get("recipients")) or _recipients(data.get("recipients"))
        return cls(
            envelope_id=envelope_id,
            status=EnvelopeStatus.parse(raw_status),
            raw_status=raw_status.lower() if raw_status else None,
            event=event,
            completed_at=parse_iso_datetime(_first_str(summary.get("completedDateTime"))),
            recipients=recipients,
        )

    @classmethod
    def from_envelope(cls, envelope: dict[str, Any]) -> "EnvelopeEvent":
        """From a GET envelope response (status poll)."""
        raw_status = _first_str(envelope.get("status"))
        return cls(
            envelope_id=_first_str(envelope.get("envelopeId")),
            status=EnvelopeStatus.parse(raw_status),
            raw_status=raw_status.lower() if raw_status else None,
            event=None,
            completed_at=parse_iso_datetime(_first_str(envelope.get("completedDateTime"))),
            recipients=_recipients(envelope.get("recipients")),
        )


class HandledOutcome(str, Enum):
    COMPLETED = "completed"
    UPDATED = "updated"
    IGNORED = "ignored"
    UNCORRELATED = "uncorrelated"
    DUPLICATE = "duplicate"
    INVALID = "invalid"
    FAILED = "failed"


@dataclass
class TaskEventResult:
    """What happened to one correlated task."""

    task_id: str
    action: str  # completed | already_completed | updated | failed
    unblocked: list[str] = field(default_factory=list)
    dependent_failures: list[str] = field(default_factory=list)
    artifact_ref: str | None = None
    artifact_error: str | None = None
    error: str | None = None


@dataclass
class HandledResult:
    """Outcome of one provider event. Always produced, never raised."""

    envelope_id: str | None
    status: str | None
    outcome: HandledOutcome
    correlated_by: str | None = None
    tasks: list[TaskEventResult] = field(default_factory=list)
    error: str | None = None

    @property
    def artifact_errors(self) -> list[str]:
        return [t.artifact_error for t in self.tasks if t.artifact_error]

    def to_dict(self) -> dict[str, Any]:
        return {
            "envelope_id": self.envelope_id,
            "status": self.status,
            "outcome": self.outcome.value,
            "correlated_by": self.correlated_by,
            "tasks": [
                {
                    "task_id": t.task_id,
                    "action": t.action,
                    "unblocked": t.unblocked,
                    "dependent_failures": t.dependent_failures,
                    "artifact_ref": t.artifact_ref,
                    "artifact_error": t.artifact_error,
                    "error": t.error,
                }
                for t in self.tasks
            ],
            "error": self.error,
        }


@dataclass
class ReconcileSummary:
    """Counts from one reconciliation sweep."""

    checked: int = 0
    completed: int = 0
    already_completed: int = 0
    still_pending: int = 0
    no_envelope: int = 0
    errors: int = 0
    details: list[dict[str, Any]] = field(default_factory=list)
