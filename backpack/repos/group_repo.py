from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol
from uuid import UUID

from backpack.models.group import Group


class GroupRepo(Protocol):
    async def find_by_user(self, emails: Iterable[str]) -> list[Group]: ...
    async def add(self, group: Group) -> None: ...


class InMemoryGroupRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, Group] = {}

    async def find_by_user(self, emails: Iterable[str]) -> list[Group]:
        wanted = set(emails)
        return [g for g in self._by_id.values() if g.user_email in wanted]

    async def add(self, group: Group) -> None:
        if any(g.url == group.url for g in self._by_id.values()):
            raise ValueError("group url already exists")
        self._by_id[group.id] = group
