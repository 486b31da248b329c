from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from conftest import (
    AUTH_HEADERS,
    ORGANIZATION_USER,
    OTHER_ORGANIZATION_USER,
    WORKER_USER,
    FakeRepository,
    mock_supabase_user,
)


@pytest.fixture
def seeded_repo(fake_repo: FakeRepository) -> FakeRepository:
    fake_repo.add_profile("organization", ORGANIZATION_USER["id"], name="Acme Builders", phone="800111222")
    fake_repo.add_profile("organization", OTHER_ORGANIZATION_USER["id"], name="Other Co")
    fake_repo.add_job(ORGANIZATION_USER["id"], title="Mason", category="construction", location="Pune")
    fake_repo.add_job(ORGANIZATION_USER["id"], title="Painter", category="construction", location="Mumbai")
    fake_repo.add_job(OTHER_ORGANIZATION_USER["id"], title="Cook", category="hospitality", location="Pune West")
    return fake_repo


def _job_id(repo: FakeRepository, title: str) -> str:
    return next(job_id for job_id, job in repo.jobs.items() if job["title"] == title)


def test_list_jobs_newest_first_without_authentication(api_client: TestClient, seeded_repo: FakeRepository) -> None:
    response = api_client.get("/jobs")

    assert response.status_code == 200
    titles = [row["title"] for row in response.json()]
    assert titles == ["Cook", "Painter", "Mason"]


def test_list_jobs_filters(api_client: TestClient, seeded_repo: FakeRepository) -> None:
    by_location = api_client.get("/jobs", params={"location": "pune"}).json()
    assert sorted(row["title"] for row in by_location) == ["Cook", "Mason"]

    by_category = api_client.get("/jobs", params={"category": "hospitality"}).json()
    assert [row["title"] for row in by_category] == ["Cook"]

    paged = api_client.get("/jobs", params={"limit": 1, "offset": 1}).json()
    assert [row["title"] for row in paged] == ["Painter"]


def test_list_jobs_rejects_out_of_range_limit(api_client: TestClient) -> None:
    assert api_client.get("/jobs", params={"limit": 0}).status_code == 422
    assert api_client.get("/jobs", params={"limit": 101}).status_code == 422


def test_job_detail_includes_organization_and_has_applied(
    api_client: TestClient,
    seeded_repo: FakeRepository,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    job_id = _job_id(seeded_repo, "Mason")

    anonymous = api_client.get(f"/jobs/{job_id}")
    assert anonymous.status_code == 200
    assert anonymous.json()["organization_name"] == "Acme Builders"
    assert anonymous.json()["organization_phone"] == "800111222"
    assert anonymous.json()["has_applied"] is False

    mock_supabase_user(monkeypatch, WORKER_USER)
    assert api_client.post(f"/jobs/{job_id}/apply", headers=AUTH_HEADERS).status_code == 201

    detail = api_client.get(f"/jobs/{job_id}", headers=AUTH_HEADERS)
    assert detail.json()["has_applied"] is True


def test_unknown_job_returns_not_found(api_client: TestClient, seeded_repo: FakeRepository) -> None:
    response = api_client.get("/jobs/not-a-job")

    assert response.status_code == 404


def test_organization_creates_job_for_its_own_profile(
    api_client: TestClient,
    seeded_repo: FakeRepository,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    mock_supabase_user(monkeypatch, ORGANIZATION_USER)

    response = api_client.post(
        "/jobs",
        json={"title": "Electrician", "location": "Pune", "salary_range": "20k-25k"},
        headers=AUTH_HEADERS,
    )

    assert response.status_code == 201
    payload = response.json()
    assert payload["title"] == "Electrician"
    assert payload["org_id"] == seeded_repo.profiles[("organization", ORGANIZATION_USER["id"])]["id"]


def test_create_job_without_organization_profile_is_not_found(
    api_client: TestClient,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    mock_supabase_user(monkeypatch, ORGANIZATION_USER)

    response = api_client.post("/jobs", json={"title": "Electrician"}, headers=AUTH_HEADERS)

    assert response.status_code == 404


def test_worker_cannot_create_jobs(api_client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    mock_supabase_user(monkeypatch, WORKER_USER)

    response = api_client.post("/jobs", json={"title": "Electrician"}, headers=AUTH_HEADERS)

    assert response.status_code == 403
    assert "jobs:write" in response.json()["detail"]


def test_patch_job_by_owner_and_other_organization(
    api_client: TestClient,
    seeded_repo: FakeRepository,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    job_id = _job_id(seeded_repo, "Mason")

    mock_supabase_user(monkeypatch, OTHER_ORGANIZATION_USER)
    forbidden = api_client.patch(f"/jobs/{job_id}", json={"title": "Senior Mason"}, headers=AUTH_HEADERS)
    assert forbidden.status_code == 403

    mock_supabase_user(monkeypatch, ORGANIZATION_USER)
    updated = api_client.patch(f"/jobs/{job_id}", json={"title": "Senior Mason"}, headers=AUTH_HEADERS)
    assert updated.status_code == 200
    assert updated.json()["title"] == "Senior Mason"


def test_delete_job_with_applications_conflicts(
    api_client: TestClient,
    seeded_repo: FakeRepository,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    job_id = _job_id(seeded_repo, "Mason")
    mock_supabase_user(monkeypatch, WORKER_USER)
    api_client.post(f"/jobs/{job_id}/apply", headers=AUTH_HEADERS)

    mock_supabase_user(monkeypatch, ORGANIZATION_USER)
    response = api_client.delete(f"/jobs/{job_id}", headers=AUTH_HEADERS)

    assert response.status_code == 409
    assert response.json()["detail"] == "Failed to delete job. You may have existing applications linked to it."
    assert job_id in seeded_repo.jobs


def test_delete_job_without_links(
    api_client: TestClient,
    seeded_repo: FakeRepository,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    job_id = _job_id(seeded_repo, "Painter")
    mock_supabase_user(monkeypatch, ORGANIZATION_USER)

    response = api_client.delete(f"/jobs/{job_id}", headers=AUTH_HEADERS)

    assert response.status_code == 204
    assert job_id not in seeded_repo.jobs
