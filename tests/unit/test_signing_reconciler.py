"""Signing reconciliation sweep and single-task check."""

import pytest

from donorflow.application.services.retry import RetryPolicy
from donorflow.application.use_cases.signing.handle_envelope_event import EnvelopeEventHandler
from donorflow.application.use_cases.signing.reconcile import (
    ALREADY_COMPLETED,
    COMPLETED,
    POLL_ERROR,
    SigningReconciler,
)
from donorflow.application.use_cases.tasks.complete_task import CompletionCascadeService
from donorflow.domain.enums import TaskStatus, TaskType
from donorflow.domain.exceptions import ResourceNotFoundException, ValidationException
from donorflow.infrastructure.exceptions import SigningProviderError

NO_WAIT = RetryPolicy(max_attempts=2, base_delay=0, jitter=0)


@pytest.fixture
def reconciler(task_repo, event_store, signing_provider, artifact_storage) -> SigningReconciler:
    handler = EnvelopeEventHandler(
        task_repo,
        CompletionCascadeService(task_repo),
        signing_provider,
        artifact_storage,
        event_store,
        retry_policy=NO_WAIT,
    )
    return SigningReconciler(task_repo, signing_provider, handler, retry_policy=NO_WAIT)


def signature_task(make_task, task_id, metadata, **kwargs):
    return make_task(task_id, task_type=TaskType.SIGNATURE, metadata=metadata, **kwargs)


async def test_sweep_completes_missed_signatures(
    reconciler, task_repo, make_task, signing_provider
) -> None:
    task_repo.add(
        signature_task(make_task, "done", {"docusign_envelope_id": "env-done"}, order=1),
        signature_task(make_task, "waiting", {"docusign_envelope_id": "env-wait"}, order=2),
        signature_task(make_task, "unsent", {"docusign_envelope_id": None}, order=3),
        make_task("next", status=TaskStatus.BLOCKED, dependencies=("done",), order=4),
    )
    signing_provider.envelopes = {
        "env-done": {"status": "completed", "completedDateTime": "2024-03-01T10:00:00Z"},
        "env-wait": {"status": "sent"},
    }

    summary = await reconciler.reconcile(limit=10)

    assert summary.checked == 3
    assert summary.completed == 1
    assert summary.still_pending == 1
    assert summary.no_envelope == 1
    assert summary.errors == 0
    assert summary.details == [
        {
            "task_id": "done",
            "envelope_id": "env-done",
            "status": "completed",
            "outcome": "completed",
            "result": COMPLETED,
            "unblocked": ["next"],
        }
    ]
    assert task_repo.tasks["done"].completed_by == "docusign-webhook"
    assert task_repo.tasks["next"].status is TaskStatus.PENDING
    assert task_repo.tasks["waiting"].metadata["docusign_status"] == "sent"


async def test_sweep_backfills_legacy_field(
    reconciler, task_repo, make_task, signing_provider
) -> None:
    task_repo.add(signature_task(make_task, "old", {"envelopeId": "env-old"}))
    signing_provider.envelopes = {"env-old": {"status": "completed"}}

    await reconciler.reconcile()

    assert task_repo.tasks["old"].metadata["docusign_envelope_id"] == "env-old"
    assert task_repo.tasks["old"].status is TaskStatus.COMPLETED


async def test_leftover_claim_does_not_hide_open_task(
    reconciler, task_repo, make_task, signing_provider, event_store
) -> None:
    task_repo.add(
        signature_task(make_task, "s", {"docusign_envelope_id": "env-1"}, order=1),
        make_task("n", status=TaskStatus.BLOCKED, dependencies=("s",), order=2),
    )
    signing_provider.envelopes = {"env-1": {"status": "completed"}}
    event_store.claims["env-1:completed"] = {}

    summary = await reconciler.reconcile()

    assert summary.completed == 1
    assert summary.already_completed == 0
    assert summary.details[0]["result"] == COMPLETED
    assert task_repo.tasks["s"].status is TaskStatus.COMPLETED
    assert task_repo.tasks["n"].status is TaskStatus.PENDING


async def test_check_task_after_webhook_reports_already_completed(
    reconciler, task_repo, make_task, signing_provider
) -> None:
    task_repo.add(signature_task(make_task, "s", {"docusign_envelope_id": "env-1"}))
    signing_provider.envelopes = {"env-1": {"status": "completed"}}
    stale = task_repo.tasks["s"]
    await reconciler.check_task("s")

    detail = await reconciler._poll(stale)

    assert detail["result"] == ALREADY_COMPLETED


async def test_poll_failure_is_counted(reconciler, task_repo, make_task, signing_provider) -> None:
    task_repo.add(signature_task(make_task, "s", {"docusign_envelope_id": "env-1"}))

    async def failing(envelope_id):
        raise SigningProviderError("down", status_code=503, transient=True)

    signing_provider.get_envelope_status = failing

    summary = await reconciler.reconcile()

    assert summary.errors == 1
    assert summary.details[0]["result"] == POLL_ERROR
    assert task_repo.tasks["s"].status is TaskStatus.PENDING


async def test_unchanged_pending_status_is_not_rewritten(
    reconciler, task_repo, make_task, signing_provider
) -> None:
    task_repo.add(
        signature_task(make_task, "s", {"docusign_envelope_id": "env-1", "docusign_status": "sent"})
    )
    signing_provider.envelopes = {"env-1": {"status": "sent"}}
    merges = []
    original = task_repo.merge_metadata

    async def spy(task_id, updates):
        merges.append(task_id)
        return await original(task_id, updates)

    task_repo.merge_metadata = spy

    await reconciler.reconcile()

    assert merges == []


async def test_check_task_completes_one_task(
    reconciler, task_repo, make_task, signing_provider
) -> None:
    task_repo.add(signature_task(make_task, "s", {"docusign_envelope_id": "env-1"}))
    signing_provider.envelopes = {"env-1": {"status": "completed"}}

    detail = await reconciler.check_task("s")

    assert detail["result"] == COMPLETED
    assert task_repo.tasks["s"].status is TaskStatus.COMPLETED


async def test_check_task_on_completed_task_does_not_poll(
    reconciler, task_repo, make_task, signing_provider
) -> None:
    task_repo.add(
        signature_task(
            make_task, "s", {"docusign_envelope_id": "env-1"}, status=TaskStatus.COMPLETED
        )
    )

    detail = await reconciler.check_task("s")

    assert detail["result"] == ALREADY_COMPLETED
    assert signing_provider.status_calls == []


async def test_check_task_without_envelope(reconciler, task_repo, make_task) -> None:
    task_repo.add(signature_task(make_task, "s", {}))
    with pytest.raises(ValidationException):
        await reconciler.check_task("s")


async def test_check_unknown_task(reconciler) -> None:
    with pytest.raises(ResourceNotFoundException):
        await reconciler.check_task("missing")
