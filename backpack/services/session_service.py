"""Signed session cookies carrying the user's verified emails.

The session is a short-lived ES256 JWT.  Its ``emails`` claim lists every
identity the verifier has confirmed during this browser session; signing
in with a second address appends to the list instead of replacing it.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta

import jwt
from cryptography.hazmat.primitives.asymmetric import ec

from backpack.models.principal import Principal

# Ephemeral key: sessions do not survive a restart.  Production deployments
# that run several replicas need a shared key (not implemented yet).
_private_key = ec.generate_private_key(ec.SECP256R1())
_public_key = _private_key.public_key()

ALGORITHM = "ES256"
ISSUER = "badge-backpack"
SESSION_AUDIENCE = "badge-backpack-session"
SESSION_TTL_MIN = 30
COOKIE_NAME = "session"


def create_session_token(*, emails: Iterable[str]) -> str:
    unique = list(dict.fromkeys(emails))
    if not unique:
        raise ValueError("a session needs at least one verified email")
    now = datetime.now(UTC)
    payload = {
        "sub": unique[0],
        "emails": unique,
        "iss": ISSUER,
        "aud": SESSION_AUDIENCE,
        "exp": now + timedelta(minutes=SESSION_TTL_MIN),
        "iat": now,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, _private_key, algorithm=ALGORITHM)


def decode_session_token(token: str) -> dict:
    """Verify a session JWT.

    Raises jwt.ExpiredSignatureError, jwt.InvalidTokenError on failure.
    """
    return jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=SESSION_AUDIENCE,
        options={"require": ["sub", "emails", "exp", "iat", "jti"]},
    )


def principal_from_claims(claims: dict) -> Principal | None:
    emails = claims.get("emails")
    if not isinstance(emails, list) or not emails:
        return None
    if not all(isinstance(e, str) for e in emails):
        return None
    return Principal(emails=tuple(emails))
