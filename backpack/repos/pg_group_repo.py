"""PostgreSQL implementation of GroupRepo."""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backpack.db.tables import GroupRow
from backpack.models.group import Group


class PgGroupRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_by_user(self, emails: Iterable[str]) -> list[Group]:
        stmt = (
            select(GroupRow)
            .where(GroupRow.user_email.in_(list(emails)))
            .order_by(GroupRow.name)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_group(r) for r in rows]

    async def add(self, group: Group) -> None:
        row = GroupRow(
            id=group.id,
            user_email=group.user_email,
            name=group.name,
            url=group.url,
            badges=list(group.badges),
            is_public=group.is_public,
        )
        self._session.add(row)
        await self._session.flush()


def _row_to_group(row: GroupRow) -> Group:
    return Group(
        id=row.id,
        user_email=row.user_email,
        name=row.name,
        url=row.url,
        badges=tuple(row.badges) if row.badges else (),
        is_public=row.is_public,
    )
