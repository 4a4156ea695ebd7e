"""Per-user checklist tracking."""

import pytest

from donorflow.application.dtos.completion import CompletionRecord
from donorflow.application.use_cases.completions import CompletionTracker
from donorflow.domain.enums import CompletionKind, CompletionStatus
from donorflow.domain.exceptions import ValidationException


@pytest.fixture
def tracker(completion_repo) -> CompletionTracker:
    return CompletionTracker(completion_repo)


async def test_unknown_user_gets_empty_record(tracker) -> None:
    record = await tracker.get("u1")
    assert record.onboarding == {}
    assert record.campaigns == {}


async def test_entries_accumulate(tracker, completion_repo) -> None:
    await tracker.set_status("u1", CompletionKind.ONBOARDING, "profile", CompletionStatus.COMPLETE)
    await tracker.set_status(
        "u1", CompletionKind.CAMPAIGN, "sign_nda", CompletionStatus.IN_PROGRESS, campaign_id="c1"
    )
    record = await tracker.set_status(
        "u1", CompletionKind.ONBOARDING, "kyc", CompletionStatus.IN_PROGRESS
    )

    assert record.onboarding == {
        "profile": CompletionStatus.COMPLETE,
        "kyc": CompletionStatus.IN_PROGRESS,
    }
    assert record.campaigns == {"c1": {"sign_nda": CompletionStatus.IN_PROGRESS}}
    assert completion_repo.records["u1"] is record


async def test_campaign_entry_requires_campaign_id(tracker) -> None:
    with pytest.raises(ValidationException, match="Campaign ID"):
        await tracker.set_status("u1", CompletionKind.CAMPAIGN, "x", CompletionStatus.COMPLETE)


async def test_empty_key_is_rejected(tracker) -> None:
    with pytest.raises(ValidationException):
        await tracker.set_status("u1", CompletionKind.ONBOARDING, " ", CompletionStatus.COMPLETE)


def test_record_document_round_trip_tolerates_unknown_status() -> None:
    record = CompletionRecord.from_document(
        "u1", {"onboarding": {"a": "complete", "b": "bogus"}, "campaigns": {"c": {"k": "in_progress"}}}
    )
    assert record.onboarding == {"a": CompletionStatus.COMPLETE, "b": CompletionStatus.NOT_STARTED}
    assert record.to_document()["campaigns"] == {"c": {"k": "in_progress"}}
