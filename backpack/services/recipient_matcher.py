"""Decide whether an assertion was issued to the signed-in user.

Issuers publish the recipient in one of a few shapes:

    "alice@example.com"                              plain
    "sha256$9f86d0...", plus top-level "salt"        hashed (OBI 0.5)
    {"type": "email", "hashed": true,
     "salt": "deadsea", "identity": "sha256$ecf5..."} hashed (OBI 1.0+)
    {"type": "email", "hashed": false,
     "identity": "alice@example.com"}                plain (OBI 1.0+)

The shape is classified once into a PlainIdentity or SaltedHashIdentity;
each knows how to test a candidate email.  A hashed recipient is
recomputed as hash(email + salt) and compared in constant time.
"""

from __future__ import annotations

import hashlib
import hmac
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from backpack.models.assertion import Assertion

_HASH_ALGORITHMS = frozenset({"md5", "sha1", "sha256", "sha512"})


def normalize_identity(identity: str) -> str:
    return identity.strip().lower()


@dataclass(frozen=True, slots=True)
class PlainIdentity:
    identity: str

    def matches(self, candidate: str) -> bool:
        return normalize_identity(self.identity) == normalize_identity(candidate)


@dataclass(frozen=True, slots=True)
class SaltedHashIdentity:
    algorithm: str
    digest: str
    salt: str = ""

    def matches(self, candidate: str) -> bool:
        # bytes, so an issuer-supplied non-ASCII digest cannot make compare_digest raise
        expected = self.digest.lower().encode("utf-8")
        # Issuers disagree on whether they hash the address as entered or
        # lowercased; accept either.
        for form in {normalize_identity(candidate), candidate.strip()}:
            computed = hashlib.new(
                self.algorithm, (form + self.salt).encode("utf-8")
            ).hexdigest().encode("ascii")
            if hmac.compare_digest(computed, expected):
                return True
        return False


RecipientIdentity = PlainIdentity | SaltedHashIdentity


def classify_recipient(recipient: Any, salt: str | None = None) -> RecipientIdentity | None:
    """Return the identity variant for a raw recipient field, or None if
    the field has no recognisable shape."""
    if isinstance(recipient, dict):
        identity = recipient.get("identity")
        if not isinstance(identity, str):
            return None
        object_salt = recipient.get("salt")
        if not isinstance(object_salt, str):
            object_salt = salt
        if recipient.get("hashed") is True:
            return _parse_hashed(identity, object_salt)
        return PlainIdentity(identity)

    if isinstance(recipient, str):
        hashed = _parse_hashed(recipient, salt)
        if hashed is not None:
            return hashed
        return PlainIdentity(recipient)

    return None


def _parse_hashed(value: str, salt: str | None) -> SaltedHashIdentity | None:
    algorithm, sep, digest = value.partition("$")
    if not sep or algorithm.lower() not in _HASH_ALGORITHMS or not digest:
        return None
    return SaltedHashIdentity(algorithm=algorithm.lower(), digest=digest, salt=salt or "")


def matching_identity(assertion: Assertion, verified_identities: Iterable[str]) -> str | None:
    """Return the first verified identity the assertion was issued to."""
    recipient = classify_recipient(assertion.recipient, assertion.salt)
    if recipient is None:
        return None
    for candidate in verified_identities:
        if recipient.matches(candidate):
            return candidate
    return None


def matches(assertion: Assertion, verified_identities: Iterable[str]) -> bool:
    return matching_identity(assertion, verified_identities) is not None
