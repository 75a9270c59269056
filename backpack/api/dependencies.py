from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from dataclasses import dataclass

import jwt
from fastapi import Request

from backpack.core.config import SETTINGS
from backpack.db.engine import async_session_factory, get_async_session
from backpack.models.principal import Principal
from backpack.repos.badge_repo import BadgeRepo, InMemoryBadgeRepo
from backpack.repos.group_repo import GroupRepo, InMemoryGroupRepo
from backpack.repos.pg_badge_repo import PgBadgeRepo
from backpack.repos.pg_group_repo import PgGroupRepo
from backpack.services import session_service
from backpack.services.assertion_fetcher import AssertionFetcher
from backpack.services.identity_verifier import verifier_from_settings
from backpack.services.image_store import image_store_from_settings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level singletons.  Tests swap or clear these directly.
# ---------------------------------------------------------------------------
badge_repo = InMemoryBadgeRepo()
group_repo = InMemoryGroupRepo()
image_store = image_store_from_settings()
assertion_fetcher = AssertionFetcher.from_settings(SETTINGS)
upload_max_bytes = SETTINGS.upload_max_bytes
identity_verifier = verifier_from_settings()


@dataclass(frozen=True, slots=True)
class Repos:
    badges: BadgeRepo
    groups: GroupRepo


async def get_repos() -> AsyncGenerator[Repos, None]:
    """Request-scoped repositories: Postgres when configured, else the
    in-memory singletons."""
    if async_session_factory is None:
        yield Repos(badges=badge_repo, groups=group_repo)
        return
    async for session in get_async_session():
        yield Repos(badges=PgBadgeRepo(session), groups=PgGroupRepo(session))


def current_principal(request: Request) -> Principal | None:
    """Return the signed-in Principal from the session cookie, or None."""
    cookie = request.cookies.get(session_service.COOKIE_NAME)
    if not cookie:
        return None
    try:
        claims = session_service.decode_session_token(cookie)
    except jwt.ExpiredSignatureError:
        logger.debug("Session cookie expired")
        return None
    except jwt.InvalidTokenError:
        logger.debug("Invalid session cookie")
        return None
    return session_service.principal_from_claims(claims)
