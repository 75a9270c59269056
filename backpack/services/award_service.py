"""Record validated assertions as badges.

ORDERING
--------
The award is the only step that writes, and it writes twice: image bytes
to the ImageStore, then the Badge row to the BadgeRepo.  The image always
goes first.  If the row write then fails we are left with an unreferenced
image file (harmless garbage) rather than a row pointing at nothing.

DEDUP
-----
A badge is keyed by (body_hash, email).  body_hash is the sha256 of the
canonical JSON of the assertion, so uploading the same baked image again
finds the existing row and returns it without touching storage.

Two identical uploads can still race past the lookup together.  The
repository's uniqueness constraint lets exactly one insert through; the
loser gets DuplicateBadgeError, re-reads, and returns the winner's badge
as if it had been an ordinary re-upload.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from backpack.core.errors import (
    DuplicateBadgeError,
    Forbidden,
    InvalidAssertion,
    StorageError,
)
from backpack.core.logging import get_audit_logger
from backpack.core.metrics import SECURITY_REJECTIONS
from backpack.models.assertion import Assertion
from backpack.models.badge import Badge
from backpack.repos.badge_repo import BadgeRepo
from backpack.services.image_store import ImageStore

logger = logging.getLogger(__name__)
audit_logger = get_audit_logger()


def canonicalize(body: dict[str, Any]) -> bytes:
    """Deterministic serialisation: sorted keys, no insignificant whitespace.

    Values keep the types the issuer published, so ``1`` and ``1.0`` are
    different documents and fingerprint differently.
    """
    return json.dumps(
        body, sort_keys=True, separators=(",", ":"), ensure_ascii=False
    ).encode("utf-8")


def fingerprint(body: dict[str, Any]) -> str:
    return hashlib.sha256(canonicalize(body)).hexdigest()


def validate_assertion(assertion: Assertion) -> None:
    """Raise InvalidAssertion unless the structural minimum is present."""
    if _contains_nul(assertion.body):
        raise InvalidAssertion("assertion contains a NUL character")

    recipient = assertion.recipient
    if isinstance(recipient, dict):
        if not isinstance(recipient.get("identity"), str) or not recipient["identity"]:
            raise InvalidAssertion("recipient object has no identity")
    elif not isinstance(recipient, str) or not recipient.strip():
        raise InvalidAssertion("recipient is missing or empty")

    badge = assertion.badge
    if isinstance(badge, dict):
        for key in ("name", "image", "issuer"):
            if not badge.get(key):
                raise InvalidAssertion(f"badge class is missing {key}")
    elif not isinstance(badge, str) or not badge.startswith(("http://", "https://")):
        raise InvalidAssertion("badge must be a badge class URL or object")

    for name, value in (("issuedOn", assertion.issued_on), ("expires", assertion.expires)):
        if value is not None and not isinstance(value, (str, int, float)):
            raise InvalidAssertion(f"{name} must be a date string or timestamp")


def _contains_nul(value: Any) -> bool:
    # Postgres text and jsonb cannot store U+0000.
    if isinstance(value, str):
        return "\x00" in value
    if isinstance(value, dict):
        return any(_contains_nul(k) or _contains_nul(v) for k, v in value.items())
    if isinstance(value, list):
        return any(_contains_nul(v) for v in value)
    return False


@dataclass(frozen=True, slots=True)
class AwardResult:
    badge: Badge
    created: bool


class AwardEngine:
    def __init__(self, badges: BadgeRepo, images: ImageStore) -> None:
        self._badges = badges
        self._images = images

    async def award(
        self,
        assertion: Assertion,
        source_url: str,
        image_bytes: bytes,
        recipient_email: str,
    ) -> Badge:
        result = await self.award_badge(assertion, source_url, image_bytes, recipient_email)
        return result.badge

    async def award_badge(
        self,
        assertion: Assertion,
        source_url: str,
        image_bytes: bytes,
        recipient_email: str,
    ) -> AwardResult:
        """Create (or find) the badge for *recipient_email*.

        The caller has already matched the recipient; only structure is
        re-checked here.
        """
        validate_assertion(assertion)
        body_hash = fingerprint(assertion.body)
        log_extra = {"recipient": recipient_email, "badge_hash": body_hash}

        existing = await self._find(body_hash, recipient_email)
        if existing is not None:
            logger.info("Badge already in backpack", extra=log_extra)
            return AwardResult(badge=existing, created=False)

        try:
            image_path = await self._images.store(image_bytes)
        except Exception as e:
            raise StorageError(f"could not store badge image: {e!r}") from e

        badge = Badge.new(
            body_hash=body_hash,
            body=assertion.body,
            image_path=image_path,
            email=recipient_email,
            source_url=source_url,
        )
        try:
            await self._badges.add(badge)
        except DuplicateBadgeError:
            winner = await self._find(body_hash, recipient_email)
            if winner is None:
                raise StorageError(
                    f"badge {body_hash} conflicted but could not be re-read"
                ) from None
            logger.info("Lost award race, returning existing badge", extra=log_extra)
            return AwardResult(badge=winner, created=False)
        except Exception as e:
            raise StorageError(f"could not save badge record: {e!r}") from e

        logger.info("Badge awarded id=%s", badge.id, extra=log_extra)
        return AwardResult(badge=badge, created=True)

    async def destroy(self, badge: Badge, caller_identities: Iterable[str]) -> None:
        """Delete *badge* if the caller is its recipient, else Forbidden."""
        if badge.email not in set(caller_identities):
            SECURITY_REJECTIONS.labels(reason="forbidden_delete").inc()
            audit_logger.warning(
                "Delete refused: caller is not the badge recipient",
                extra={"badge_hash": badge.body_hash, "audit_event": "forbidden_delete"},
            )
            raise Forbidden(f"delete of badge {badge.id} refused")

        try:
            await self._badges.destroy(badge.id)
        except Exception as e:
            raise StorageError(f"could not delete badge {badge.id}: {e!r}") from e
        logger.info(
            "Badge deleted id=%s",
            badge.id,
            extra={"recipient": badge.email, "badge_hash": badge.body_hash},
        )

    async def _find(self, body_hash: str, email: str) -> Badge | None:
        try:
            return await self._badges.get_by_hash_and_email(body_hash, email)
        except Exception as e:
            raise StorageError(f"badge lookup failed: {e!r}") from e
