"""Envelope event handling: correlation, idempotency, artifact capture, cascade."""

import asyncio
import hashlib

import pytest

from donorflow.application.dtos.signing import HandledOutcome
from donorflow.application.services.retry import RetryPolicy
from donorflow.application.use_cases.signing.handle_envelope_event import (
    EnvelopeEventHandler,
    signed_artifact_ref,
)
from donorflow.application.use_cases.tasks.complete_task import CompletionCascadeService
from donorflow.domain.enums import TaskStatus, TaskType
from donorflow.infrastructure.exceptions import SigningProviderError, StorageUploadError

NO_WAIT = RetryPolicy(max_attempts=3, base_delay=0, jitter=0)


def completed_payload(envelope_id: str = "env-1") -> dict:
    return {
        "event": "envelope-completed",
        "data": {
            "envelopeId": envelope_id,
            "envelopeSummary": {
                "status": "completed",
                "completedDateTime": "2024-03-01T10:00:00Z",
                "recipients": {"signers": [{"recipientId": "1", "status": "completed"}]},
            },
        },
    }


@pytest.fixture
def handler(task_repo, event_store, signing_provider, artifact_storage) -> EnvelopeEventHandler:
    return EnvelopeEventHandler(
        task_repo,
        CompletionCascadeService(task_repo),
        signing_provider,
        artifact_storage,
        event_store,
        retry_policy=NO_WAIT,
    )


@pytest.fixture
def signing_chain(task_repo, make_task):
    """S (signature, envelope env-1) -> N (blocked)."""
    task_repo.add(
        make_task(
            "S",
            task_type=TaskType.SIGNATURE,
            order=1,
            metadata={"docusign_envelope_id": "env-1"},
        ),
        make_task("N", status=TaskStatus.BLOCKED, dependencies=("S",), order=2),
    )
    return task_repo


async def test_completed_envelope_completes_task_and_stores_artifact(
    handler, signing_chain, artifact_storage, signing_provider
) -> None:
    signing_provider.documents["env-1"] = b"%PDF signed bytes"

    result = await handler.handle(completed_payload())

    assert result.outcome is HandledOutcome.COMPLETED
    assert result.correlated_by == "metadata.docusign_envelope_id"
    task_result = result.tasks[0]
    assert task_result.action == "completed"
    assert task_result.unblocked == ["N"]
    ref = signed_artifact_ref(signing_chain.tasks["S"], "env-1")
    assert task_result.artifact_ref == ref
    assert artifact_storage.objects[ref] == b"%PDF signed bytes"

    stored = signing_chain.tasks["S"]
    assert stored.status is TaskStatus.COMPLETED
    assert stored.completed_by == "docusign-webhook"
    assert stored.metadata["signed_document_ref"] == ref
    assert stored.metadata["docusign_status"] == "completed"
    assert stored.metadata["docusign_recipients"][0]["status"] == "completed"
    assert signing_chain.tasks["N"].status is TaskStatus.PENDING


async def test_artifact_ref_layout(make_task) -> None:
    task = make_task("S", workflow_id="wf9")
    assert signed_artifact_ref(task, "env-1") == "donations/wf9/signed-documents/signed-S-env-1.pdf"


async def test_redelivery_is_a_duplicate(handler, signing_chain, signing_provider) -> None:
    await handler.handle(completed_payload())
    calls = list(signing_chain.transition_calls)

    again = await handler.handle(completed_payload())

    assert again.outcome is HandledOutcome.DUPLICATE
    assert signing_chain.transition_calls == calls
    assert signing_provider.download_calls == ["env-1"]


async def test_legacy_field_match_is_back_filled(handler, task_repo, make_task) -> None:
    task_repo.add(
        make_task("S", task_type=TaskType.SIGNATURE, metadata={"envelope_id": "env-1"})
    )

    result = await handler.handle(completed_payload())

    assert result.outcome is HandledOutcome.COMPLETED
    assert result.correlated_by == "metadata.envelope_id"
    assert task_repo.tasks["S"].metadata["docusign_envelope_id"] == "env-1"


async def test_scan_finds_camel_case_field(handler, task_repo, make_task) -> None:
    task_repo.add(
        make_task("S", task_type=TaskType.SIGNATURE, metadata={"docuSignEnvelopeId": "env-1"})
    )

    result = await handler.handle(completed_payload())

    assert result.correlated_by == "scan"
    assert task_repo.tasks["S"].status is TaskStatus.COMPLETED
    assert task_repo.tasks["S"].metadata["docusign_envelope_id"] == "env-1"


async def test_download_failure_still_completes_and_records_error(
    handler, signing_chain, signing_provider, artifact_storage
) -> None:
    signing_provider.download_errors = [
        SigningProviderError("unavailable", status_code=503, transient=True)
    ] * 3

    result = await handler.handle(completed_payload())

    assert result.outcome is HandledOutcome.COMPLETED
    assert len(signing_provider.download_calls) == 3
    task_result = result.tasks[0]
    assert task_result.artifact_ref is None
    assert "after 3 attempt(s)" in task_result.artifact_error
    assert result.artifact_errors == [task_result.artifact_error]
    stored = signing_chain.tasks["S"]
    assert stored.status is TaskStatus.COMPLETED
    assert stored.metadata["signed_document_ref"] is None
    assert "download failed" in stored.metadata["signed_document_error"]
    assert artifact_storage.objects == {}


async def test_transient_download_failure_is_retried(
    handler, signing_chain, signing_provider, artifact_storage
) -> None:
    signing_provider.download_errors = [TimeoutError("slow")]

    result = await handler.handle(completed_payload())

    assert result.tasks[0].artifact_error is None
    assert len(signing_provider.download_calls) == 2
    assert len(artifact_storage.objects) == 1


async def test_upload_failure_records_error(handler, signing_chain, artifact_storage) -> None:
    artifact_storage.upload_error = StorageUploadError("x.pdf", "disk full")

    result = await handler.handle(completed_payload())

    assert "upload failed" in result.tasks[0].artifact_error
    assert signing_chain.tasks["S"].status is TaskStatus.COMPLETED


async def test_missing_provider_completes_without_artifact(
    task_repo, event_store, signing_chain
) -> None:
    handler = EnvelopeEventHandler(
        task_repo, CompletionCascadeService(task_repo), None, None, event_store
    )

    result = await handler.handle(completed_payload())

    assert result.outcome is HandledOutcome.COMPLETED
    assert "not configured" in result.tasks[0].artifact_error


async def test_non_terminal_status_records_progress_only(handler, signing_chain) -> None:
    result = await handler.handle(
        {"event": "envelope-delivered", "data": {"envelopeId": "env-1", "envelopeStatus": "delivered"}}
    )

    assert result.outcome is HandledOutcome.UPDATED
    stored = signing_chain.tasks["S"]
    assert stored.status is TaskStatus.PENDING
    assert stored.metadata["docusign_status"] == "delivered"
    assert signing_chain.transition_calls == []


async def test_declined_envelope_does_not_complete(handler, signing_chain, event_store) -> None:
    result = await handler.handle({"envelopeId": "env-1", "status": "declined"})

    assert result.outcome is HandledOutcome.UPDATED
    assert signing_chain.tasks["S"].status is TaskStatus.PENDING
    assert event_store.claims == {}


async def test_already_completed_task_is_untouched(handler, task_repo, make_task) -> None:
    task_repo.add(
        make_task(
            "S",
            task_type=TaskType.SIGNATURE,
            status=TaskStatus.COMPLETED,
            metadata={"docusign_envelope_id": "env-1"},
        )
    )

    result = await handler.handle(completed_payload())

    assert result.tasks[0].action == "already_completed"
    assert task_repo.transition_calls == []


async def test_missing_envelope_id_is_invalid(handler) -> None:
    result = await handler.handle({"event": "envelope-completed", "data": {}})
    assert result.outcome is HandledOutcome.INVALID


async def test_unknown_envelope_is_uncorrelated(handler, signing_chain) -> None:
    result = await handler.handle(completed_payload("env-unknown"))
    assert result.outcome is HandledOutcome.UNCORRELATED


async def test_unhandled_event_is_ignored(handler, signing_chain) -> None:
    result = await handler.handle(
        {"event": "recipient-authenticationfailed", "data": {"envelopeId": "env-1", "envelopeStatus": "sent"}}
    )
    assert result.outcome is HandledOutcome.IGNORED


async def test_failed_completion_releases_claim(
    handler, signing_chain, event_store, persistence_error
) -> None:
    signing_chain.fail_on["S"] = persistence_error

    result = await handler.handle(completed_payload())

    assert result.outcome is HandledOutcome.FAILED
    assert event_store.released == ["env-1:completed"]
    assert "env-1:completed" not in event_store.claims

    del signing_chain.fail_on["S"]
    retried = await handler.handle(completed_payload())
    assert retried.outcome is HandledOutcome.COMPLETED


async def test_leftover_claim_does_not_block_open_task(
    handler, signing_chain, event_store
) -> None:
    event_store.claims["env-1:completed"] = {}

    result = await handler.handle(completed_payload())

    assert result.outcome is HandledOutcome.COMPLETED
    assert result.tasks[0].unblocked == ["N"]
    assert signing_chain.tasks["S"].status is TaskStatus.COMPLETED
    assert signing_chain.tasks["N"].status is TaskStatus.PENDING


async def test_cancelled_delivery_releases_claim(
    handler, signing_chain, signing_provider, event_store
) -> None:
    signing_provider.download_errors = [asyncio.CancelledError()]

    with pytest.raises(asyncio.CancelledError):
        await handler.handle(completed_payload())

    assert event_store.released == ["env-1:completed"]
    assert signing_chain.tasks["S"].status is TaskStatus.PENDING
    retried = await handler.handle(completed_payload())
    assert retried.outcome is HandledOutcome.COMPLETED


async def test_claim_release_error_is_logged_not_raised(
    handler, signing_chain, event_store, persistence_error
) -> None:
    signing_chain.fail_on["S"] = persistence_error

    async def broken_release(key):
        raise RuntimeError("store down")

    event_store.release = broken_release

    result = await handler.handle(completed_payload())

    assert result.outcome is HandledOutcome.FAILED
    del signing_chain.fail_on["S"]
    retried = await handler.handle(completed_payload())
    assert retried.outcome is HandledOutcome.COMPLETED
    assert signing_chain.tasks["S"].status is TaskStatus.COMPLETED


async def test_blocked_signature_task_skips_document_fetch(
    handler, task_repo, make_task, signing_provider, event_store
) -> None:
    task_repo.add(
        make_task("A", order=1),
        make_task(
            "S",
            task_type=TaskType.SIGNATURE,
            status=TaskStatus.BLOCKED,
            dependencies=("A",),
            order=2,
            metadata={"docusign_envelope_id": "env-1"},
        ),
    )

    result = await handler.handle(completed_payload())

    assert result.outcome is HandledOutcome.FAILED
    assert "blocked" in result.error
    assert signing_provider.download_calls == []
    assert task_repo.tasks["S"].status is TaskStatus.BLOCKED
    assert "env-1:completed" not in event_store.claims


async def test_unexpected_error_is_reported_not_raised(handler, task_repo) -> None:
    async def broken(*args, **kwargs):
        raise RuntimeError("store down")

    task_repo.find_by_metadata = broken

    result = await handler.handle(completed_payload())

    assert result.outcome is HandledOutcome.FAILED
    assert "store down" in result.error


async def test_stored_checksum_matches_document(
    handler, signing_chain, signing_provider, artifact_storage
) -> None:
    uploads = []
    original = artifact_storage.upload

    async def spy(file_data, storage_ref, expected_checksum, content_type, metadata=None):
        uploads.append((expected_checksum, content_type, metadata))
        return await original(file_data, storage_ref, expected_checksum, content_type, metadata)

    artifact_storage.upload = spy
    await handler.handle(completed_payload())

    checksum, content_type, metadata = uploads[0]
    assert checksum == hashlib.sha256(b"%PDF-1.7 signed").hexdigest()
    assert content_type == "application/pdf"
    assert metadata == {"envelope_id": "env-1", "task_id": "S"}
