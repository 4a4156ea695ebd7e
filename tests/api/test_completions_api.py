"""Per-user checklist endpoints."""

from httpx import AsyncClient


async def test_empty_checklist(client: AsyncClient, auth_headers) -> None:
    response = await client.get("/api/v1/completions", headers=auth_headers("donor-1"))
    assert response.status_code == 200
    assert response.json() == {"user_id": "donor-1", "onboarding": {}, "campaigns": {}}


async def test_set_onboarding_and_campaign_entries(client, auth_headers) -> None:
    headers = auth_headers("donor-1")
    await client.post(
        "/api/v1/completions",
        json={"task_id": "profile", "status": "complete", "type": "onboarding"},
        headers=headers,
    )
    response = await client.post(
        "/api/v1/completions",
        json={"task_id": "sign_nda", "status": "in_progress", "type": "campaign", "campaign_id": "c1"},
        headers=headers,
    )

    assert response.status_code == 200
    assert response.json()["onboarding"] == {"profile": "complete"}
    assert response.json()["campaigns"] == {"c1": {"sign_nda": "in_progress"}}


async def test_campaign_entry_without_campaign_id(client, auth_headers) -> None:
    response = await client.post(
        "/api/v1/completions",
        json={"task_id": "sign_nda", "status": "complete", "type": "campaign"},
        headers=auth_headers("donor-1"),
    )
    assert response.status_code == 422


async def test_workflow_status_values_are_not_accepted(client, auth_headers) -> None:
    """The checklist vocabulary is separate from workflow task status."""
    response = await client.post(
        "/api/v1/completions",
        json={"task_id": "profile", "status": "completed", "type": "onboarding"},
        headers=auth_headers("donor-1"),
    )
    assert response.status_code == 422
