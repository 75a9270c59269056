"""Assert that identity assertions and session tokens never appear in
log output, even at DEBUG."""

from __future__ import annotations

import logging

import pytest
from fastapi.testclient import TestClient

from backpack.services import session_service
from tests.conftest import FakeIssuer, FakeVerifier, assertion_body, bake_png, upload

SIGNED_ASSERTION = "ok:alice@example.com"
FORGED_ASSERTION = "eyJhbGciOiJSUzI1NiJ9.forged-identity-assertion.c2lnbmF0dXJl"


def test_sign_in_does_not_log_assertion_or_session(
    client: TestClient, verifier: FakeVerifier, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.DEBUG):
        client.post(
            "/backpack/authenticate",
            data={"assertion": SIGNED_ASSERTION},
            follow_redirects=False,
        )

    token = client.cookies[session_service.COOKIE_NAME]
    all_log_text = " ".join(caplog.messages)
    assert SIGNED_ASSERTION not in all_log_text
    assert token not in all_log_text


def test_failed_sign_in_does_not_log_assertion(
    client: TestClient, verifier: FakeVerifier, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.DEBUG):
        resp = client.post(
            "/backpack/authenticate",
            data={"assertion": FORGED_ASSERTION},
            follow_redirects=False,
        )

    assert resp.status_code == 401
    assert FORGED_ASSERTION not in " ".join(caplog.messages)


def test_upload_does_not_log_session_token(
    client: TestClient,
    issuer: FakeIssuer,
    verifier: FakeVerifier,
    caplog: pytest.LogCaptureFixture,
) -> None:
    client.post(
        "/backpack/authenticate",
        data={"assertion": SIGNED_ASSERTION},
        follow_redirects=False,
    )
    token = client.cookies[session_service.COOKIE_NAME]
    url = issuer.publish("/assertions/1", assertion_body())

    with caplog.at_level(logging.DEBUG):
        assert upload(client, bake_png(url)).status_code == 201

    assert token not in " ".join(caplog.messages)
