"""Per-user checklist tracking (onboarding and per-campaign keys).

Separate from workflow task status: this vocabulary never gates a workflow
task and workflow tasks never write here.
"""

from __future__ import annotations

import logging

from donorflow.application.dtos.completion import CompletionRecord
from donorflow.application.interfaces.repositories import ICompletionRepository
from donorflow.domain.enums import CompletionKind, CompletionStatus
from donorflow.domain.exceptions import ValidationException

logger = logging.getLogger(__name__)


class CompletionTracker:
    def __init__(self, completion_repo: ICompletionRepository) -> None:
        self._repo = completion_repo

    async def get(self, user_id: str) -> CompletionRecord:
        """The user's checklist; empty when nothing was recorded yet."""
        record = await self._repo.get(user_id)
        return record if record is not None else CompletionRecord(user_id=user_id)

    async def set_status(
        self,
        user_id: str,
        kind: CompletionKind,
        task_key: str,
        status: CompletionStatus,
        campaign_id: str | None = None,
    ) -> CompletionRecord:
        """Record one checklist entry, keeping every other entry.

        Raises:
            ValidationException: Empty task key, or campaign kind without campaign id.
        """
        if not task_key or not task_key.strip():
            raise ValidationException("task key is required", field="task_id")
        if kind is CompletionKind.CAMPAIGN and not campaign_id:
            raise ValidationException(
                "Campaign ID required for campaign tasks", field="campaign_id"
            )
        record = await self.get(user_id)
        if kind is CompletionKind.ONBOARDING:
            record.onboarding[task_key] = status
        else:
            record.campaigns.setdefault(campaign_id, {})[task_key] = status
        await self._repo.save(record)
        logger.info(
            "Checklist entry %s/%s for user %s set to %s",
            kind.value,
            task_key,
            user_id,
            status.value,
        )
        return record
