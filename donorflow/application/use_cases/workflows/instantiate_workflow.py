"""Workflow instantiation and reset.

Builds a workflow's whole task set from a template with fresh ids and
writes it, together with the workflow's generation marker, in a single
atomic replace. A concurrent instantiation of the same workflow makes the
marker guard fail; the build is then redone against the new marker.
"""

from __future__ import annotations

import logging

from donorflow.application.dtos.task import InstantiationResult
from donorflow.application.interfaces.repositories import ITaskRepository
from donorflow.application.services.dependency_resolver import initial_status
from donorflow.domain.entities.task import Task
from donorflow.domain.entities.template import InstantiationContext, WorkflowTemplate
from donorflow.domain.entities.workflow import WorkflowGeneration
from donorflow.domain.enums import AssignedRole
from donorflow.domain.exceptions import (
    AuthorizationException,
    ConcurrentModificationException,
    DonorflowException,
    ResourceNotFoundException,
    WorkflowInstantiationException,
)
from donorflow.domain.templates import TemplateRegistry, default_registry
from donorflow.domain.value_objects import Actor
from donorflow.shared.utils.datetime import utc_now
from donorflow.shared.utils.generators import generate_task_id

logger = logging.getLogger(__name__)


def build_tasks(
    workflow_id: str,
    template: WorkflowTemplate,
    context: InstantiationContext,
    *,
    generation: int,
    created_by: str,
) -> list[Task]:
    """Materialize a template into tasks. Pure apart from id generation and clock."""
    now = utc_now()
    ids = {bp.key: generate_task_id() for bp in template.blueprints}
    tasks: list[Task] = []
    for position, bp in enumerate(template.blueprints, start=1):
        dependencies = tuple(ids[key] for key in bp.depends_on)
        tasks.append(
            Task(
                id=ids[bp.key],
                workflow_id=workflow_id,
                key=bp.key,
                title=bp.title,
                description=bp.description,
                assigned_role=bp.assigned_role,
                assigned_to=context.assignee_for(bp.assigned_role),
                type=bp.type,
                priority=bp.priority,
                status=initial_status(dependencies),
                order=position,
                dependencies=dependencies,
                template_name=template.name,
                template_version=template.version,
                generation=generation,
                metadata=bp.build_metadata(context),
                created_at=now,
                updated_at=now,
                created_by=created_by,
            )
        )
    return tasks


class WorkflowInstantiator:
    """Instantiates and resets workflows from registered templates."""

    def __init__(
        self,
        task_repo: ITaskRepository,
        templates: TemplateRegistry | None = None,
        *,
        default_template: str = "donation",
        max_attempts: int = 3,
    ) -> None:
        self._task_repo = task_repo
        self._templates = templates or default_registry()
        self._default_template = default_template
        self._max_attempts = max_attempts

    async def instantiate(
        self,
        workflow_id: str,
        context: InstantiationContext,
        actor: Actor,
        *,
        template_name: str | None = None,
    ) -> InstantiationResult:
        """Create (or replace) the workflow's task set.

        Raises:
            ResourceNotFoundException: Unknown template name.
            AuthorizationException: Actor may not (re)instantiate this workflow.
            WorkflowInstantiationException: Nothing was written.
        """
        template = self._templates.get(template_name or self._default_template)
        current = await self._task_repo.get_generation(workflow_id)
        self._check_owner(workflow_id, current, context, actor)
        return await self._write(workflow_id, template, context, actor, current)

    async def reset(
        self,
        workflow_id: str,
        actor: Actor,
        context: InstantiationContext | None = None,
    ) -> InstantiationResult:
        """Discard every task of the workflow and recreate the set from its template.

        Uses the template and context recorded on the last generation unless a
        new context is given.

        Raises:
            ResourceNotFoundException: The workflow was never instantiated.
            AuthorizationException: Actor does not own the workflow.
            WorkflowInstantiationException: Nothing was written.
        """
        current = await self._task_repo.get_generation(workflow_id)
        if current is None:
            raise ResourceNotFoundException("workflow", workflow_id)
        if not actor.is_system and not current.belongs_to(actor.user_id):
            raise AuthorizationException("workflow", "reset")
        template = self._templates.get(current.template_name or self._default_template)
        if context is None:
            context = InstantiationContext.from_dict(current.context or {"donor_id": current.owner_id})
        return await self._write(workflow_id, template, context, actor, current)

    def _check_owner(
        self,
        workflow_id: str,
        current: WorkflowGeneration | None,
        context: InstantiationContext,
        actor: Actor,
    ) -> None:
        if actor.is_system:
            return
        if current is not None:
            if not current.belongs_to(actor.user_id):
                raise AuthorizationException("workflow", "reset")
            return
        if actor.user_id != context.donor_id and actor.role is not AssignedRole.NONPROFIT_ADMIN:
            raise AuthorizationException("workflow", "instantiate")

    async def _write(
        self,
        workflow_id: str,
        template: WorkflowTemplate,
        context: InstantiationContext,
        actor: Actor,
        current: WorkflowGeneration | None,
    ) -> InstantiationResult:
        owner_id = current.owner_id if current is not None else context.donor_id
        for attempt in range(1, self._max_attempts + 1):
            generation_no = (current.generation if current is not None else 0) + 1
            tasks = build_tasks(
                workflow_id,
                template,
                context,
                generation=generation_no,
                created_by=actor.user_id,
            )
            marker = WorkflowGeneration(
                workflow_id=workflow_id,
                generation=generation_no,
                template_name=template.name,
                template_version=template.version,
                owner_id=owner_id,
                task_ids=tuple(t.id for t in tasks),
                context=context.to_dict(),
                updated_at=utc_now(),
            )
            try:
                deleted = await self._task_repo.replace_workflow(
                    workflow_id, tasks, marker, expected=current
                )
            except ConcurrentModificationException:
                logger.info(
                    "Workflow %s changed during instantiation (attempt %d/%d); rebuilding",
                    workflow_id,
                    attempt,
                    self._max_attempts,
                )
                current = await self._task_repo.get_generation(workflow_id)
                continue
            except WorkflowInstantiationException:
                raise
            except DonorflowException as e:
                logger.exception("Failed to write workflow %s", workflow_id)
                raise WorkflowInstantiationException(workflow_id, e.message) from e
            logger.info(
                "Workflow %s instantiated from %s v%d: generation %d, %d task(s) created, %d deleted",
                workflow_id,
                template.name,
                template.version,
                generation_no,
                len(tasks),
                deleted,
            )
            return InstantiationResult(
                workflow_id=workflow_id,
                template_name=template.name,
                template_version=template.version,
                generation=generation_no,
                tasks=tasks,
                tasks_deleted=deleted,
            )
        raise WorkflowInstantiationException(
            workflow_id, f"concurrent modification persisted after {self._max_attempts} attempts"
        )
