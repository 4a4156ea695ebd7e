"""DTO for per-user onboarding and campaign checklist state."""

from __future__ import annotations

from dataclasses import dataclass, field

from donorflow.domain.enums import CompletionStatus


@dataclass
class CompletionRecord:
    """One user's checklist: onboarding keys and per-campaign keys to status."""

    user_id: str
    onboarding: dict[str, CompletionStatus] = field(default_factory=dict)
    campaigns: dict[str, dict[str, CompletionStatus]] = field(default_factory=dict)

    def to_document(self) -> dict:
        return {
            "user_id": self.user_id,
            "onboarding": {k: v.value for k, v in self.onboarding.items()},
            "campaigns": {
                cid: {k: v.value for k, v in keys.items()}
                for cid, keys in self.campaigns.items()
            },
        }

    @classmethod
    def from_document(cls, user_id: str, data: dict) -> "CompletionRecord":
        """Unknown status values read back as not_started."""

        def _status(raw: object) -> CompletionStatus:
            try:
                return CompletionStatus(raw)
            except ValueError:
                return CompletionStatus.NOT_STARTED

        onboarding = {k: _status(v) for k, v in (data.get("onboarding") or {}).items()}
        campaigns = {
            cid: {k: _status(v) for k, v in (keys or {}).items()}
            for cid, keys in (data.get("campaigns") or {}).items()
        }
        return cls(user_id=user_id, onboarding=onboarding, campaigns=campaigns)
