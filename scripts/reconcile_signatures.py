"""Poll DocuSign for open signature tasks and apply missed completions.

Usage:
    python -m scripts.reconcile_signatures [LIMIT]

Meant for a scheduler (cron, Cloud Scheduler job). Uses the same handler as
the Connect webhook, so completions found here cascade exactly like a
delivered notification.
"""

import asyncio
import sys

from donorflow.application.services.retry import RetryPolicy
from donorflow.application.use_cases.signing import (
    EnvelopeEventHandler,
    SigningReconciler,
    default_chain,
)
from donorflow.application.use_cases.tasks import CompletionCascadeService
from donorflow.core.config import get_settings
from donorflow.infrastructure.external.docusign import DocuSignClient
from donorflow.infrastructure.external.storage import StorageFactory
from donorflow.infrastructure.firebase.repositories import FirestoreProcessedEventStore
from donorflow.shared.telemetry.logging import setup_logging
from scripts._bootstrap import load_env, open_task_store


async def reconcile(limit: int) -> int:
    """Run one sweep; return the number of errors."""
    settings = get_settings()
    if not settings.docusign_configured:
        print("DocuSign not configured", file=sys.stderr)
        sys.exit(1)
    client, task_repo = open_task_store()
    provider = DocuSignClient(settings)
    policy = RetryPolicy(
        max_attempts=settings.artifact_retry_attempts,
        base_delay=settings.artifact_retry_base_delay,
        max_delay=settings.artifact_retry_max_delay,
    )
    try:
        handler = EnvelopeEventHandler(
            task_repo,
            CompletionCascadeService(task_repo),
            provider,
            StorageFactory.create_storage_service(settings),
            FirestoreProcessedEventStore(client),
            chain=default_chain(task_repo, scan_limit=settings.correlation_scan_limit),
            retry_policy=policy,
        )
        reconciler = SigningReconciler(task_repo, provider, handler, retry_policy=policy)
        summary = await reconciler.reconcile(limit)
    finally:
        await provider.aclose()
        await client.aclose()
    print(
        f"checked={summary.checked} completed={summary.completed} "
        f"already_completed={summary.already_completed} pending={summary.still_pending} "
        f"no_envelope={summary.no_envelope} errors={summary.errors}"
    )
    for detail in summary.details:
        print(f"  {detail}")
    return summary.errors


def main() -> None:
    load_env()
    setup_logging()
    limit = int(sys.argv[1]) if len(sys.argv) > 1 else get_settings().reconcile_batch_limit
    errors = asyncio.run(reconcile(limit))
    sys.exit(1 if errors else 0)


if __name__ == "__main__":
    main()
