from __future__ import annotations

import io
import json
import os
import sys
from pathlib import Path
from typing import Any

# Must be set before backpack is imported: settings and the image store
# are resolved at import time.
os.environ["APP_ENV"] = "test"
os.environ.pop("DATABASE_URL", None)
os.environ.pop("REDIS_URL", None)

# Ensure repo root is on sys.path so `import backpack` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from PIL import Image  # noqa: E402
from PIL.PngImagePlugin import PngInfo  # noqa: E402

from backpack.api import dependencies as deps  # noqa: E402
from backpack.api.ratelimit import _rate_limiter  # noqa: E402
from backpack.main import app  # noqa: E402
from backpack.services import session_service  # noqa: E402
from backpack.services.assertion_fetcher import AssertionFetcher  # noqa: E402
from backpack.services.identity_verifier import IdentityVerifier  # noqa: E402

ISSUER_ORIGIN = "https://issuer.example"
VERIFIER_URL = "https://verifier.example/verify"


# ---------------------------------------------------------------------------
# State reset
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def reset_badge_state() -> None:
    deps.badge_repo._by_id.clear()
    deps.badge_repo._by_key.clear()
    deps.group_repo._by_id.clear()
    deps.image_store._blobs.clear()  # type: ignore[attr-defined]


@pytest.fixture(autouse=True)
def reset_rate_limiter() -> None:
    """Clear rate limit buckets between tests so limits don't bleed."""
    if hasattr(_rate_limiter, "_buckets"):
        _rate_limiter._buckets.clear()  # type: ignore[union-attr]


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


# ---------------------------------------------------------------------------
# Badge fixtures
# ---------------------------------------------------------------------------


def bake_png(value: str | None, *, keyword: str = "openbadges", itxt: bool = False) -> bytes:
    """Return a small PNG with *value* stored under *keyword*.

    ``value=None`` produces a plain PNG with no text chunks.
    """
    img = Image.new("RGBA", (4, 4), (0, 128, 255, 255))
    info = PngInfo()
    if value is not None:
        if itxt:
            info.add_itxt(keyword, value)
        else:
            info.add_text(keyword, value)
    buf = io.BytesIO()
    img.save(buf, format="PNG", pnginfo=info)
    return buf.getvalue()


def assertion_body(recipient: Any = "alice@example.com", **overrides: Any) -> dict[str, Any]:
    body: dict[str, Any] = {
        "recipient": recipient,
        "badge": {
            "name": "Open Source Contributor",
            "description": "Landed a patch upstream",
            "image": f"{ISSUER_ORIGIN}/badges/contributor.png",
            "criteria": f"{ISSUER_ORIGIN}/badges/contributor",
            "issuer": {"name": "Example Org", "origin": ISSUER_ORIGIN},
        },
        "issuedOn": "2024-03-01",
    }
    body.update(overrides)
    return body


class FakeIssuer:
    """In-memory issuer host: maps URL -> (status, body)."""

    def __init__(self) -> None:
        self.documents: dict[str, tuple[int, bytes]] = {}
        self.requests: list[str] = []

    def publish(self, path: str, body: Any, status: int = 200) -> str:
        url = f"{ISSUER_ORIGIN}{path}"
        raw = body if isinstance(body, bytes) else json.dumps(body).encode()
        self.documents[url] = (status, raw)
        return url

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        status, raw = self.documents.get(url, (404, b"not found"))
        return httpx.Response(status, content=raw)

    def fetcher(self, **kwargs: Any) -> AssertionFetcher:
        return AssertionFetcher(transport=httpx.MockTransport(self.handler), **kwargs)


@pytest.fixture
def issuer(monkeypatch: pytest.MonkeyPatch) -> FakeIssuer:
    """A fake issuer wired into the API's assertion fetcher."""
    fake = FakeIssuer()
    monkeypatch.setattr(deps, "assertion_fetcher", fake.fetcher())
    return fake


class FakeVerifier:
    """Accepts assertions of the form 'ok:<email>' and rejects the rest."""

    def __init__(self) -> None:
        self.calls: list[dict[str, str]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        form = dict(httpx.QueryParams(request.content.decode()))
        self.calls.append(form)
        assertion = form.get("assertion", "")
        if assertion.startswith("ok:"):
            return httpx.Response(
                200,
                json={
                    "status": "okay",
                    "email": assertion[3:],
                    "audience": form.get("audience"),
                },
            )
        return httpx.Response(200, json={"status": "failure", "reason": "bad assertion"})


@pytest.fixture
def verifier(monkeypatch: pytest.MonkeyPatch) -> FakeVerifier:
    fake = FakeVerifier()
    monkeypatch.setattr(
        deps,
        "identity_verifier",
        IdentityVerifier(VERIFIER_URL, transport=httpx.MockTransport(fake.handler)),
    )
    return fake


# ---------------------------------------------------------------------------
# Session helpers
# ---------------------------------------------------------------------------


def sign_in(client: TestClient, *emails: str) -> None:
    """Put a valid session cookie for *emails* on the client."""
    client.cookies.set(
        session_service.COOKIE_NAME,
        session_service.create_session_token(emails=emails),
    )


def upload(client: TestClient, png: bytes) -> httpx.Response:
    return client.post(
        "/backpack/badges",
        files={"userBadge": ("badge.png", png, "image/png")},
        follow_redirects=False,
    )
