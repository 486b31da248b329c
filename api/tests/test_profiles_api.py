from __future__ import annotations

from typing import Any

import pytest
from fastapi.testclient import TestClient

from conftest import (
    AUTH_HEADERS,
    ORGANIZATION_USER,
    REFERRAL_USER,
    ROLELESS_USER,
    WORKER_USER,
    FakeRepository,
    mock_supabase_user,
)


def test_worker_dashboard_provisions_profile_from_signup_metadata(
    api_client: TestClient,
    fake_repo: FakeRepository,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    mock_supabase_user(monkeypatch, WORKER_USER)

    response = api_client.get("/worker", headers=AUTH_HEADERS)

    assert response.status_code == 200
    payload = response.json()
    assert payload["user_id"] == WORKER_USER["id"]
    assert payload["name"] == "Asha"
    assert payload["phone"] == "712345678"
    assert payload["skills"] == ["masonry", "painting"]
    assert fake_repo.roles[WORKER_USER["id"]] == "worker"


def test_repeated_dashboard_visits_return_the_same_profile(
    api_client: TestClient,
    fake_repo: FakeRepository,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    mock_supabase_user(monkeypatch, WORKER_USER)

    first = api_client.get("/worker", headers=AUTH_HEADERS).json()
    second = api_client.get("/worker", headers=AUTH_HEADERS).json()

    assert first["id"] == second["id"]
    assert len([key for key in fake_repo.profiles if key[1] == WORKER_USER["id"]]) == 1


def test_default_names_when_metadata_has_no_full_name(
    api_client: TestClient,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    user: dict[str, Any] = {**ROLELESS_USER, "user_metadata": {"role": "organization"}}
    mock_supabase_user(monkeypatch, user)

    response = api_client.get("/organization", headers=AUTH_HEADERS)

    assert response.status_code == 200
    assert response.json()["name"] == "New Organization"


def test_roleless_identity_is_registered_by_the_dashboard_it_opens(
    api_client: TestClient,
    fake_repo: FakeRepository,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    mock_supabase_user(monkeypatch, ROLELESS_USER)

    response = api_client.get("/worker", headers=AUTH_HEADERS)

    assert response.status_code == 200
    assert response.json()["name"] == "New Worker"
    assert fake_repo.roles[ROLELESS_USER["id"]] == "worker"


def test_dashboard_of_another_role_is_refused(api_client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    mock_supabase_user(monkeypatch, WORKER_USER)

    response = api_client.get("/organization", headers=AUTH_HEADERS)

    assert response.status_code == 403
    assert response.json()["detail"] == "Access denied (not an organization)"


def test_registry_role_wins_over_session_metadata(
    api_client: TestClient,
    fake_repo: FakeRepository,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    fake_repo.add_profile("organization", WORKER_USER["id"], name="Registered Org")
    mock_supabase_user(monkeypatch, WORKER_USER)

    response = api_client.get("/worker", headers=AUTH_HEADERS)

    assert response.status_code == 403
    assert response.json()["detail"] == "Access denied (not a worker)"


def test_referral_profile_allows_empty_name(api_client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    user: dict[str, Any] = {**REFERRAL_USER, "user_metadata": {"role": "referral"}}
    mock_supabase_user(monkeypatch, user)

    response = api_client.get("/referral/profile", headers=AUTH_HEADERS)

    assert response.status_code == 200
    assert response.json()["name"] == ""


def test_patch_worker_profile_accepts_comma_separated_skills(
    api_client: TestClient,
    fake_repo: FakeRepository,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    fake_repo.add_profile("worker", WORKER_USER["id"], name="Asha")
    mock_supabase_user(monkeypatch, WORKER_USER)

    response = api_client.patch(
        "/worker",
        json={"name": "Asha K", "age": 31, "skills": "tiling ,  plumbing,", "location": "Pune"},
        headers=AUTH_HEADERS,
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["name"] == "Asha K"
    assert payload["age"] == 31
    assert payload["skills"] == ["tiling", "plumbing"]
    assert payload["location"] == "Pune"


def test_patch_worker_profile_rejects_organizations(api_client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    mock_supabase_user(monkeypatch, ORGANIZATION_USER)

    response = api_client.patch("/worker", json={"name": "x"}, headers=AUTH_HEADERS)

    assert response.status_code == 403


def test_dashboard_requires_authentication(api_client: TestClient) -> None:
    response = api_client.get("/worker")

    assert response.status_code == 401
    assert response.json()["detail"] == "Not authenticated"


@pytest.mark.parametrize("name", [None, "   "])
def test_patch_worker_profile_cannot_blank_the_name(
    api_client: TestClient,
    fake_repo: FakeRepository,
    monkeypatch: pytest.MonkeyPatch,
    name: str | None,
) -> None:
    fake_repo.add_profile("worker", WORKER_USER["id"], name="Asha")
    mock_supabase_user(monkeypatch, WORKER_USER)

    response = api_client.patch("/worker", json={"name": name, "age": 40}, headers=AUTH_HEADERS)

    assert response.status_code == 422
    assert api_client.get("/worker", headers=AUTH_HEADERS).json()["name"] == "Asha"
