"""Demo: sign in, upload a baked badge twice, look at it, delete it.

Uses FastAPI TestClient with the issuer and identity verifier replaced
by httpx.MockTransport, so no network is needed.

Run with:
    APP_ENV=test python scripts/demo_upload_flow.py
"""

from __future__ import annotations

import io

import httpx
from fastapi.testclient import TestClient
from PIL import Image
from PIL.PngImagePlugin import PngInfo

from backpack.api import dependencies as deps
from backpack.main import app
from backpack.services.assertion_fetcher import AssertionFetcher
from backpack.services.identity_verifier import IdentityVerifier

EMAIL = "demo@example.com"
ASSERTION_URL = "https://issuer.example/assertions/demo"
ASSERTION = {
    "recipient": EMAIL,
    "badge": {
        "name": "Demo Badge",
        "image": "https://issuer.example/badges/demo.png",
        "issuer": {"name": "Demo Issuer", "origin": "https://issuer.example"},
    },
    "issuedOn": "2024-01-01",
}


def _issuer(request: httpx.Request) -> httpx.Response:
    if str(request.url) == ASSERTION_URL:
        return httpx.Response(200, json=ASSERTION)
    return httpx.Response(404)


def _verifier(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"status": "okay", "email": EMAIL})


def _baked_png() -> bytes:
    info = PngInfo()
    info.add_text("openbadges", ASSERTION_URL)
    buf = io.BytesIO()
    Image.new("RGBA", (64, 64), (255, 200, 0, 255)).save(buf, format="PNG", pnginfo=info)
    return buf.getvalue()


def main() -> None:
    deps.assertion_fetcher = AssertionFetcher(transport=httpx.MockTransport(_issuer))
    deps.identity_verifier = IdentityVerifier(
        "https://verifier.example/verify", transport=httpx.MockTransport(_verifier)
    )
    client = TestClient(app, follow_redirects=False)

    # ── Step 1: sign in ─────────────────────────────────────────────
    resp = client.post("/backpack/authenticate", data={"assertion": "demo-assertion"})
    print(f"1. authenticate → {resp.status_code} {resp.headers.get('location')}")

    # ── Step 2: upload, then upload the same image again ───────────
    png = _baked_png()
    for attempt in (1, 2):
        resp = client.post(
            "/backpack/badges", files={"userBadge": ("demo.png", png, "image/png")}
        )
        badge = resp.json()["badge"]
        print(f"2.{attempt} upload → {resp.status_code} id={badge['id']}")
    body_hash = badge["body_hash"]

    # ── Step 3: the backpack and the badge page ─────────────────────
    manage = client.get("/backpack").json()
    print(f"3. backpack holds {len(manage['badges'])} badge(s) for {manage['emails']}")
    details = client.get(f"/backpack/badges/{body_hash}").json()
    print(f"   details: {details['badge_type']['name']} owner={details['owner']}")

    # ── Step 4: delete ──────────────────────────────────────────────
    resp = client.delete(f"/backpack/badges/{body_hash}")
    print(f"4. delete → {resp.status_code}")


if __name__ == "__main__":
    main()
