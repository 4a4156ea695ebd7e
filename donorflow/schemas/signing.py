"""DocuSign webhook and reconciliation API schemas."""

from typing import Any

from pydantic import BaseModel

from donorflow.application.dtos.signing import ReconcileSummary


class WebhookStatusResponse(BaseModel):
    message: str


class WebhookAckResponse(BaseModel):
    """Acknowledgement returned for every delivery, processed or not."""

    message: str
    outcome: str
    envelope_id: str | None = None


class ReconcileResponse(BaseModel):
    checked: int
    completed: int
    already_completed: int
    still_pending: int
    no_envelope: int
    errors: int
    details: list[dict[str, Any]]

    @classmethod
    def from_summary(cls, summary: ReconcileSummary) -> "ReconcileResponse":
        return cls(
            checked=summary.checked,
            completed=summary.completed,
            already_completed=summary.already_completed,
            still_pending=summary.still_pending,
            no_envelope=summary.no_envelope,
            errors=summary.errors,
            details=summary.details,
        )
