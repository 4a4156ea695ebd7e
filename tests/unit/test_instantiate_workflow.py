"""Workflow instantiation and reset."""

import pytest

from donorflow.application.use_cases.workflows.instantiate_workflow import (
    WorkflowInstantiator,
    build_tasks,
)
from donorflow.domain.entities.template import InstantiationContext
from donorflow.domain.enums import AssignedRole, TaskStatus
from donorflow.domain.exceptions import (
    AuthorizationException,
    ConcurrentModificationException,
    ResourceNotFoundException,
    WorkflowInstantiationException,
)
from donorflow.domain.templates import DONATION_TEMPLATE
from donorflow.domain.value_objects import Actor

DONOR = Actor(user_id="donor-1", role=AssignedRole.DONOR)
CONTEXT = InstantiationContext(donor_id="donor-1", nonprofit_admin_id="np-1")


def test_build_tasks_maps_keys_to_fresh_ids() -> None:
    tasks = build_tasks("wf1", DONATION_TEMPLATE, CONTEXT, generation=1, created_by="donor-1")
    by_key = {t.key: t for t in tasks}

    assert len({t.id for t in tasks}) == 12
    assert by_key["donor_sign_nda"].status is TaskStatus.PENDING
    assert by_key["donor_sign_nda"].dependencies == ()
    assert by_key["nonprofit_sign_nda"].dependencies == (by_key["donor_sign_nda"].id,)
    assert by_key["nonprofit_sign_nda"].status is TaskStatus.BLOCKED
    assert by_key["nonprofit_sign_nda"].assigned_to == "np-1"
    assert by_key["appraiser_sign_nda"].assigned_to is None
    assert [t.order for t in tasks] == list(range(1, 13))


async def test_instantiate_writes_whole_set_with_marker(task_repo) -> None:
    result = await WorkflowInstantiator(task_repo).instantiate("wf1", CONTEXT, DONOR)

    assert result.generation == 1
    assert result.tasks_created == 12
    assert result.tasks_deleted == 0
    stored = await task_repo.list_by_workflow("wf1")
    assert [t.id for t in stored] == [t.id for t in result.tasks]
    marker = await task_repo.get_generation("wf1")
    assert marker.owner_id == "donor-1"
    assert marker.task_ids == tuple(t.id for t in result.tasks)


async def test_reinstantiate_replaces_previous_generation(task_repo) -> None:
    instantiator = WorkflowInstantiator(task_repo)
    first = await instantiator.instantiate("wf1", CONTEXT, DONOR)
    second = await instantiator.instantiate("wf1", CONTEXT, DONOR)

    assert second.generation == 2
    assert second.tasks_deleted == 12
    assert not {t.id for t in first.tasks} & {t.id for t in second.tasks}
    stored = await task_repo.list_by_workflow("wf1")
    assert len(stored) == 12
    assert all(t.generation == 2 for t in stored)


async def test_reset_restores_initial_statuses(task_repo) -> None:
    instantiator = WorkflowInstantiator(task_repo)
    first = await instantiator.instantiate("wf1", CONTEXT, DONOR)
    root = first.tasks[0]
    await task_repo.transition(root.id, (TaskStatus.PENDING,), TaskStatus.COMPLETED)

    result = await instantiator.reset("wf1", DONOR)

    assert result.generation == 2
    statuses = [t.status for t in await task_repo.list_by_workflow("wf1")]
    assert statuses[0] is TaskStatus.PENDING
    assert all(s is TaskStatus.BLOCKED for s in statuses[1:])
    assert await task_repo.get(root.id) is None


async def test_reset_unknown_workflow_raises_not_found(task_repo) -> None:
    with pytest.raises(ResourceNotFoundException):
        await WorkflowInstantiator(task_repo).reset("missing", DONOR)


async def test_only_owner_may_reset(task_repo) -> None:
    instantiator = WorkflowInstantiator(task_repo)
    await instantiator.instantiate("wf1", CONTEXT, DONOR)

    with pytest.raises(AuthorizationException):
        await instantiator.reset("wf1", Actor(user_id="someone-else", role=AssignedRole.DONOR))
    await instantiator.reset("wf1", Actor.system("maintenance"))


async def test_first_instantiation_requires_donor_or_admin(task_repo) -> None:
    instantiator = WorkflowInstantiator(task_repo)
    with pytest.raises(AuthorizationException):
        await instantiator.instantiate(
            "wf1", CONTEXT, Actor(user_id="stranger", role=AssignedRole.DONOR)
        )
    result = await instantiator.instantiate(
        "wf1", CONTEXT, Actor(user_id="np-1", role=AssignedRole.NONPROFIT_ADMIN)
    )
    assert result.generation == 1


async def test_unknown_template_raises_not_found(task_repo) -> None:
    with pytest.raises(ResourceNotFoundException):
        await WorkflowInstantiator(task_repo).instantiate(
            "wf1", CONTEXT, DONOR, template_name="nope"
        )


async def test_store_failure_leaves_nothing_written(task_repo, persistence_error) -> None:
    task_repo.fail_on["wf1"] = persistence_error

    with pytest.raises(WorkflowInstantiationException):
        await WorkflowInstantiator(task_repo).instantiate("wf1", CONTEXT, DONOR)

    assert await task_repo.list_by_workflow("wf1") == []
    assert await task_repo.get_generation("wf1") is None


async def test_lost_marker_race_rebuilds_against_new_generation(task_repo) -> None:
    instantiator = WorkflowInstantiator(task_repo)
    await instantiator.instantiate("wf1", CONTEXT, DONOR)
    original_get = task_repo.get_generation
    stale = await original_get("wf1")
    calls = {"n": 0}

    async def stale_once(workflow_id):
        calls["n"] += 1
        if calls["n"] == 1:
            # Another reset commits between our read and our write.
            await instantiator.reset("wf1", Actor.system("other"))
            return stale
        return await original_get(workflow_id)

    task_repo.get_generation = stale_once
    result = await instantiator.reset("wf1", DONOR)

    assert result.generation == 3
    stored = await task_repo.list_by_workflow("wf1")
    assert len(stored) == 12
    assert {t.id for t in stored} == {t.id for t in result.tasks}


async def test_persistent_conflict_gives_up(task_repo) -> None:
    task_repo.fail_on["wf1"] = ConcurrentModificationException("workflow", "wf1")

    with pytest.raises(WorkflowInstantiationException, match="concurrent"):
        await WorkflowInstantiator(task_repo, max_attempts=2).instantiate("wf1", CONTEXT, DONOR)
