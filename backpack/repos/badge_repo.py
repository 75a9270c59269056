from __future__ import annotations

import threading
from collections.abc import Iterable
from typing import Protocol
from uuid import UUID

from backpack.core.errors import DuplicateBadgeError
from backpack.models.badge import Badge


class BadgeRepo(Protocol):
    async def get_by_hash_and_email(self, body_hash: str, email: str) -> Badge | None: ...
    async def find_by_hash(self, body_hash: str) -> list[Badge]: ...
    async def find_by_emails(self, emails: Iterable[str]) -> list[Badge]: ...
    async def add(self, badge: Badge) -> None: ...
    async def destroy(self, badge_id: UUID) -> bool: ...


class InMemoryBadgeRepo:
    """Dict-backed store enforcing the same (body_hash, email) uniqueness
    as the badges table.  Insertion order is preserved for listing."""

    def __init__(self) -> None:
        self._by_id: dict[UUID, Badge] = {}
        self._by_key: dict[tuple[str, str], UUID] = {}
        self._lock = threading.Lock()

    async def get_by_hash_and_email(self, body_hash: str, email: str) -> Badge | None:
        badge_id = self._by_key.get((body_hash, email))
        if badge_id is None:
            return None
        return self._by_id.get(badge_id)

    async def find_by_hash(self, body_hash: str) -> list[Badge]:
        return [b for b in self._by_id.values() if b.body_hash == body_hash]

    async def find_by_emails(self, emails: Iterable[str]) -> list[Badge]:
        wanted = set(emails)
        return [b for b in self._by_id.values() if b.email in wanted]

    async def add(self, badge: Badge) -> None:
        key = (badge.body_hash, badge.email)
        with self._lock:
            if key in self._by_key:
                raise DuplicateBadgeError(f"badge {badge.body_hash} exists for {badge.email}")
            self._by_key[key] = badge.id
            self._by_id[badge.id] = badge

    async def destroy(self, badge_id: UUID) -> bool:
        with self._lock:
            badge = self._by_id.pop(badge_id, None)
            if badge is None:
                return False
            self._by_key.pop((badge.body_hash, badge.email), None)
            return True
