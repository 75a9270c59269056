"""End-to-end upload tests: baked PNG in, badge (or a mapped error) out.

The issuer is a FakeIssuer behind httpx.MockTransport; everything else
is the real pipeline over the in-memory repositories.
"""

from __future__ import annotations

import hashlib

import httpx
import pytest
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from backpack.api import dependencies as deps
from backpack.services.assertion_fetcher import AssertionFetcher
from tests.conftest import FakeIssuer, assertion_body, bake_png, sign_in, upload


def _uploads(outcome: str) -> float:
    value = REGISTRY.get_sample_value("badge_uploads_total", {"outcome": outcome})
    return value or 0.0


def _assert_nothing_written() -> None:
    assert deps.badge_repo._by_id == {}
    assert deps.image_store._blobs == {}  # type: ignore[attr-defined]


def test_upload_requires_session(client: TestClient, issuer: FakeIssuer) -> None:
    url = issuer.publish("/assertions/1", assertion_body())
    resp = upload(client, bake_png(url))
    assert resp.status_code == 303
    assert resp.headers["location"] == "/backpack/login"
    assert issuer.requests == []


def test_upload_empty_file(client: TestClient, issuer: FakeIssuer) -> None:
    sign_in(client, "alice@example.com")
    resp = upload(client, b"")
    assert resp.status_code == 400
    assert resp.json() == {"detail": "You must choose a badge to upload."}
    _assert_nothing_written()


def test_upload_without_file_field(client: TestClient, issuer: FakeIssuer) -> None:
    sign_in(client, "alice@example.com")
    resp = client.post("/backpack/badges", data={"other": "x"}, follow_redirects=False)
    assert resp.status_code == 400
    _assert_nothing_written()


def test_upload_over_size_limit(
    client: TestClient, issuer: FakeIssuer, monkeypatch: pytest.MonkeyPatch
) -> None:
    url = issuer.publish("/assertions/1", assertion_body())
    png = bake_png(url)
    monkeypatch.setattr(deps, "upload_max_bytes", len(png) - 1)
    sign_in(client, "alice@example.com")
    before = _uploads("OversizedUpload")

    resp = upload(client, png)

    assert resp.status_code == 413
    assert resp.json() == {"detail": "That badge image is too large."}
    assert _uploads("OversizedUpload") - before == 1
    assert issuer.requests == []
    _assert_nothing_written()


def test_upload_at_size_limit_is_accepted(
    client: TestClient, issuer: FakeIssuer, monkeypatch: pytest.MonkeyPatch
) -> None:
    url = issuer.publish("/assertions/1", assertion_body())
    png = bake_png(url)
    monkeypatch.setattr(deps, "upload_max_bytes", len(png))
    sign_in(client, "alice@example.com")

    assert upload(client, png).status_code == 201


def test_upload_issuer_timeout(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("issuer too slow", request=request)

    monkeypatch.setattr(
        deps, "assertion_fetcher", AssertionFetcher(transport=httpx.MockTransport(handler))
    )
    sign_in(client, "alice@example.com")
    before = _uploads("UnreachableIssuer")

    resp = upload(client, bake_png("https://issuer.example/assertions/slow"))

    assert resp.status_code == 502
    assert "timed out" not in resp.text
    assert _uploads("UnreachableIssuer") - before == 1
    _assert_nothing_written()


def test_upload_for_someone_else_is_rejected(
    client: TestClient, issuer: FakeIssuer, caplog: pytest.LogCaptureFixture
) -> None:
    url = issuer.publish("/assertions/1", assertion_body(recipient="alice@example.com"))
    sign_in(client, "bob@example.com")

    with caplog.at_level("WARNING", logger="backpack.audit"):
        resp = upload(client, bake_png(url))

    assert resp.status_code == 403
    assert resp.json() == {"detail": "This badge was not issued to you! Contact your issuer."}
    audit = [r for r in caplog.records if r.name == "backpack.audit"]
    assert audit and audit[0].audit_event == "recipient_mismatch"
    # The rejected identity list never reaches the log.
    assert "alice@example.com" not in caplog.text
    _assert_nothing_written()


def test_upload_twice_returns_same_badge(client: TestClient, issuer: FakeIssuer) -> None:
    url = issuer.publish("/assertions/1", assertion_body())
    png = bake_png(url)
    sign_in(client, "alice@example.com")

    first = upload(client, png)
    second = upload(client, png)

    assert first.status_code == 201
    assert first.json()["created"] is True
    assert second.status_code == 200
    assert second.json()["created"] is False
    assert first.json()["badge"]["id"] == second.json()["badge"]["id"]

    body_hash = first.json()["badge"]["body_hash"]
    assert [b.body_hash for b in deps.badge_repo._by_id.values()] == [body_hash]


def test_upload_with_second_session_email(client: TestClient, issuer: FakeIssuer) -> None:
    url = issuer.publish("/assertions/1", assertion_body(recipient="alice@work.example"))
    sign_in(client, "alice@example.com", "alice@work.example")

    resp = upload(client, bake_png(url))

    assert resp.status_code == 201
    badge = resp.json()["badge"]
    assert badge["email"] == "alice@work.example"
    assert badge["source_url"] == url


def test_upload_hashed_recipient(client: TestClient, issuer: FakeIssuer) -> None:
    recipient = {
        "type": "email",
        "hashed": True,
        "salt": "deadsea",
        "identity": "sha256$" + hashlib.sha256(b"alice@example.comdeadsea").hexdigest(),
    }
    url = issuer.publish("/assertions/hashed", assertion_body(recipient=recipient))
    sign_in(client, "alice@example.com")

    assert upload(client, bake_png(url)).status_code == 201


@pytest.mark.parametrize(
    ("published", "status"),
    [
        (b"<html>not an assertion</html>", 502),
        ({"recipient": "alice@example.com"}, 502),
        (assertion_body(badge={"name": "No issuer", "image": "x.png"}), 422),
        (assertion_body(evidence="proof\u0000"), 422),
    ],
)
def test_upload_bad_assertion_documents(
    client: TestClient, issuer: FakeIssuer, published, status: int
) -> None:
    url = issuer.publish("/assertions/bad", published)
    sign_in(client, "alice@example.com")

    resp = upload(client, bake_png(url))

    assert resp.status_code == status
    assert set(resp.json()) == {"detail"}
    _assert_nothing_written()


def test_upload_image_without_assertion(client: TestClient, issuer: FakeIssuer) -> None:
    sign_in(client, "alice@example.com")
    resp = upload(client, bake_png(None))
    assert resp.status_code == 422
    assert issuer.requests == []
    _assert_nothing_written()


def test_upload_issuer_404(client: TestClient, issuer: FakeIssuer) -> None:
    sign_in(client, "alice@example.com")
    resp = upload(client, bake_png("https://issuer.example/assertions/missing"))
    assert resp.status_code == 502
    _assert_nothing_written()
