from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """The signed-in user, as proven by the identity verifier.

    Rebuilt from the session cookie on every request.  ``emails`` holds
    every identity verified during this session, in verification order.
    The backpack never creates or mutates users; this is all it knows.
    """

    emails: tuple[str, ...]

    @property
    def primary_email(self) -> str:
        return self.emails[0]

    def owns(self, email: str) -> bool:
        # Exact match: emails are normalised once, when the session is minted.
        return email in self.emails
