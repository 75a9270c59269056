"""Badge details and deletion, including ownership checks."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from backpack.api import dependencies as deps
from backpack.repos.badge_repo import InMemoryBadgeRepo
from tests.conftest import FakeIssuer, assertion_body, bake_png, sign_in, upload


@pytest.fixture
def body_hash(client: TestClient, issuer: FakeIssuer) -> str:
    """Alice uploads one badge; the client is left signed in as Alice."""
    url = issuer.publish("/assertions/1", assertion_body())
    sign_in(client, "alice@example.com")
    resp = upload(client, bake_png(url))
    assert resp.status_code == 201
    return resp.json()["badge"]["body_hash"]


def test_details_for_owner(client: TestClient, body_hash: str) -> None:
    resp = client.get(f"/backpack/badges/{body_hash}")
    assert resp.status_code == 200
    payload = resp.json()
    assert payload["owner"] is True
    assert payload["recipient"] == "alice@example.com"
    assert payload["delete_path"] == f"/backpack/badges/{body_hash}"
    assert payload["badge_type"]["name"] == "Open Source Contributor"


def test_details_for_anonymous_viewer(client: TestClient, body_hash: str) -> None:
    client.cookies.clear()
    payload = client.get(f"/backpack/badges/{body_hash}").json()
    assert payload["owner"] is False
    assert payload["recipient"] is None
    assert payload["delete_path"] is None


def test_details_unknown_badge(client: TestClient) -> None:
    resp = client.get("/backpack/badges/" + "0" * 64)
    assert resp.status_code == 404
    assert resp.json() == {"detail": "could not find badge"}


def test_owner_can_delete(client: TestClient, body_hash: str) -> None:
    resp = client.delete(f"/backpack/badges/{body_hash}")
    assert resp.status_code == 204
    assert deps.badge_repo._by_id == {}
    assert client.get(f"/backpack/badges/{body_hash}").status_code == 404


def test_other_user_cannot_delete(
    client: TestClient, body_hash: str, caplog: pytest.LogCaptureFixture
) -> None:
    sign_in(client, "mallory@example.com")
    with caplog.at_level("WARNING", logger="backpack.audit"):
        resp = client.delete(f"/backpack/badges/{body_hash}")

    assert resp.status_code == 403
    assert resp.json() == {"detail": "Cannot delete a badge you don't own"}
    assert any(getattr(r, "audit_event", None) == "forbidden_delete" for r in caplog.records)
    assert len(deps.badge_repo._by_id) == 1


def test_signed_out_cannot_delete(client: TestClient, body_hash: str) -> None:
    client.cookies.clear()
    resp = client.delete(f"/backpack/badges/{body_hash}")
    assert resp.status_code == 403
    assert len(deps.badge_repo._by_id) == 1


def test_delete_unknown_badge(client: TestClient) -> None:
    sign_in(client, "alice@example.com")
    assert client.delete("/backpack/badges/" + "f" * 64).status_code == 404


def test_delete_store_failure(
    client: TestClient, body_hash: str, monkeypatch: pytest.MonkeyPatch
) -> None:
    async def broken_destroy(self, badge_id) -> bool:
        raise RuntimeError("database went away")

    monkeypatch.setattr(InMemoryBadgeRepo, "destroy", broken_destroy)
    resp = client.delete(f"/backpack/badges/{body_hash}")
    assert resp.status_code == 500
    assert resp.json() == {"detail": "There was a problem saving your badge!"}
