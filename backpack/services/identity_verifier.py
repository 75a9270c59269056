"""Client for the remote identity-assertion verifier (BrowserID protocol).

The browser obtains a signed identity assertion and posts it to us; we
forward it to the verifier together with our audience (PUBLIC_URL).  A
positive answer looks like

    {"status": "okay", "email": "alice@example.com", "audience": "...", ...}

and is the only way an email ever becomes "verified" in this service.
"""

from __future__ import annotations

import logging

import httpx

from backpack.core.config import SETTINGS
from backpack.core.errors import IdentityVerificationError
from backpack.services.recipient_matcher import normalize_identity

logger = logging.getLogger(__name__)


class IdentityVerifier:
    def __init__(
        self,
        verifier_url: str,
        *,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = verifier_url
        self._timeout = timeout
        self._transport = transport

    async def verify(self, assertion: str, audience: str) -> str:
        """Return the verified (normalised) email or raise
        IdentityVerificationError."""
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    self._url, data={"assertion": assertion, "audience": audience}
                )
        except httpx.HTTPError as e:
            raise IdentityVerificationError("connection", repr(e)) from e

        if response.status_code != 200:
            raise IdentityVerificationError("status", response.text)

        try:
            payload = response.json()
        except ValueError as e:
            raise IdentityVerificationError("parse", response.text) from e

        if not isinstance(payload, dict) or payload.get("status") != "okay":
            raise IdentityVerificationError("rejected", response.text)

        email = payload.get("email")
        if not isinstance(email, str) or "@" not in email:
            raise IdentityVerificationError("parse", response.text)

        logger.debug("Verifier confirmed identity for audience=%s", audience)
        return normalize_identity(email)


def verifier_from_settings() -> IdentityVerifier:
    return IdentityVerifier(
        SETTINGS.identity_verifier_url, timeout=SETTINGS.fetch_timeout_seconds
    )
