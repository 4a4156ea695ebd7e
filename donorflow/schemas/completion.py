"""Per-user checklist API schemas."""

from pydantic import BaseModel, Field, model_validator

from donorflow.application.dtos.completion import CompletionRecord
from donorflow.domain.enums import CompletionKind, CompletionStatus


class CompletionUpdateRequest(BaseModel):
    """Body for POST /completions."""

    task_id: str = Field(..., min_length=1, max_length=128)
    status: CompletionStatus
    type: CompletionKind
    campaign_id: str | None = Field(default=None, max_length=128)

    @model_validator(mode="after")
    def require_campaign_id(self) -> "CompletionUpdateRequest":
        if self.type is CompletionKind.CAMPAIGN and not self.campaign_id:
            raise ValueError("Campaign ID required for campaign tasks")
        return self


class CompletionResponse(BaseModel):
    user_id: str
    onboarding: dict[str, str]
    campaigns: dict[str, dict[str, str]]

    @classmethod
    def from_record(cls, record: CompletionRecord) -> "CompletionResponse":
        doc = record.to_document()
        return cls(user_id=record.user_id, onboarding=doc["onboarding"], campaigns=doc["campaigns"])
