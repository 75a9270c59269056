from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class Assertion:
    """A hosted Open Badges assertion as published by an issuer.

    Untrusted until the award pipeline has validated it.  ``body`` keeps
    the whole parsed document; the named fields are views into it.
    """

    recipient: Any  # str or identity object, exactly as published
    badge: Any  # badge class URL or embedded badge class mapping
    body: dict[str, Any]
    salt: str | None = None
    issued_on: Any = None
    evidence: Any = None
    expires: Any = None

    @staticmethod
    def from_body(body: dict[str, Any]) -> Assertion:
        salt = body.get("salt")
        return Assertion(
            recipient=body.get("recipient"),
            badge=body.get("badge"),
            body=body,
            salt=salt if isinstance(salt, str) else None,
            # OBI 0.5 used issued_on; 1.0+ uses issuedOn
            issued_on=body.get("issuedOn", body.get("issued_on")),
            evidence=body.get("evidence"),
            expires=body.get("expires"),
        )

    @property
    def badge_name(self) -> str | None:
        if isinstance(self.badge, dict):
            name = self.badge.get("name")
            return name if isinstance(name, str) else None
        return None
