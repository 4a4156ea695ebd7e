"""Workflow endpoints: instantiate, reset, list, re-evaluate."""

from httpx import AsyncClient

from donorflow.domain.enums import AssignedRole, TaskStatus

CONTEXT = {"donor_id": "donor-1", "nonprofit_admin_id": "np-1"}


async def instantiate(client: AsyncClient, headers: dict[str, str], workflow_id: str = "wf1"):
    return await client.post(
        f"/api/v1/workflows/{workflow_id}/instantiate",
        json={"context": CONTEXT},
        headers=headers,
    )


async def test_instantiate_creates_donation_workflow(client, auth_headers) -> None:
    response = await instantiate(client, auth_headers("donor-1"))

    assert response.status_code == 201
    data = response.json()
    assert data["template_name"] == "donation"
    assert data["generation"] == 1
    assert data["tasks_created"] == 12
    statuses = [t["status"] for t in data["tasks"]]
    assert statuses[0] == "pending"
    assert set(statuses[1:]) == {"blocked"}


async def test_instantiate_requires_token(client) -> None:
    response = await client.post("/api/v1/workflows/wf1/instantiate", json={"context": CONTEXT})
    assert response.status_code == 401
    assert response.json()["error"] == "AUTHENTICATION_ERROR"


async def test_instantiate_for_another_donor_is_forbidden(client, auth_headers) -> None:
    response = await instantiate(client, auth_headers("donor-2"))
    assert response.status_code == 403


async def test_unknown_template_is_not_found(client, auth_headers) -> None:
    response = await client.post(
        "/api/v1/workflows/wf1/instantiate",
        json={"context": CONTEXT, "template_name": "nope"},
        headers=auth_headers("donor-1"),
    )
    assert response.status_code == 404


async def test_missing_donor_id_is_rejected(client, auth_headers) -> None:
    response = await client.post(
        "/api/v1/workflows/wf1/instantiate",
        json={"context": {"donor_id": ""}},
        headers=auth_headers("donor-1"),
    )
    assert response.status_code == 422


async def test_reset_recreates_tasks(client, auth_headers, task_repo) -> None:
    headers = auth_headers("donor-1")
    first = (await instantiate(client, headers)).json()

    response = await client.post("/api/v1/workflows/wf1/reset", headers=headers)

    assert response.status_code == 200
    data = response.json()
    assert data["generation"] == 2
    assert data["tasks_deleted"] == 12
    assert not {t["id"] for t in first["tasks"]} & {t["id"] for t in data["tasks"]}
    assert len(task_repo.tasks) == 12


async def test_reset_by_non_owner_is_forbidden(client, auth_headers) -> None:
    await instantiate(client, auth_headers("donor-1"))
    response = await client.post("/api/v1/workflows/wf1/reset", headers=auth_headers("donor-2"))
    assert response.status_code == 403


async def test_reset_unknown_workflow(client, auth_headers) -> None:
    response = await client.post("/api/v1/workflows/nope/reset", headers=auth_headers("donor-1"))
    assert response.status_code == 404


async def test_list_tasks_visibility(client, auth_headers) -> None:
    await instantiate(client, auth_headers("donor-1"))

    own = await client.get("/api/v1/workflows/wf1/tasks", headers=auth_headers("donor-1"))
    admin = await client.get(
        "/api/v1/workflows/wf1/tasks",
        headers=auth_headers("np-9", AssignedRole.NONPROFIT_ADMIN),
    )
    stranger = await client.get("/api/v1/workflows/wf1/tasks", headers=auth_headers("donor-2"))

    assert own.status_code == 200
    assert own.json()["finished"] is False
    assert [t["order"] for t in own.json()["tasks"]] == list(range(1, 13))
    assert admin.status_code == 200
    assert stranger.status_code == 403


async def test_reevaluate_releases_stuck_dependents(client, auth_headers, task_repo, make_task) -> None:
    task_repo.add(
        make_task("a", status=TaskStatus.COMPLETED, order=1),
        make_task("b", status=TaskStatus.BLOCKED, dependencies=("a",), order=2),
        make_task("c", status=TaskStatus.PENDING, dependencies=("b",), order=3),
    )

    response = await client.post(
        "/api/v1/workflows/wf1/reevaluate", headers=auth_headers("donor-1")
    )

    assert response.status_code == 200
    data = response.json()
    assert data["unblocked"] == ["b"]
    assert data["violations"] == ["c"]
    assert task_repo.tasks["b"].status is TaskStatus.PENDING
