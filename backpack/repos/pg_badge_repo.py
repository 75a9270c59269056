"""PostgreSQL implementation of BadgeRepo."""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backpack.core.errors import DuplicateBadgeError
from backpack.db.tables import BadgeRow
from backpack.models.badge import Badge


class PgBadgeRepo:
    """Satisfies the BadgeRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_hash_and_email(self, body_hash: str, email: str) -> Badge | None:
        stmt = select(BadgeRow).where(
            BadgeRow.body_hash == body_hash, BadgeRow.email == email
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_badge(row)

    async def find_by_hash(self, body_hash: str) -> list[Badge]:
        stmt = select(BadgeRow).where(BadgeRow.body_hash == body_hash)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_badge(r) for r in rows]

    async def find_by_emails(self, emails: Iterable[str]) -> list[Badge]:
        stmt = (
            select(BadgeRow)
            .where(BadgeRow.email.in_(list(emails)))
            .order_by(BadgeRow.created_at)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_badge(r) for r in rows]

    async def add(self, badge: Badge) -> None:
        row = BadgeRow(
            id=badge.id,
            body_hash=badge.body_hash,
            body=badge.body,
            image_path=badge.image_path,
            email=badge.email,
            source_url=badge.source_url,
            created_at=badge.created_at,
        )
        # Savepoint: a lost uniqueness race rolls back only this insert,
        # leaving the request session usable for the re-read.
        try:
            async with self._session.begin_nested():
                self._session.add(row)
                await self._session.flush()
        except IntegrityError as e:
            raise DuplicateBadgeError(
                f"badge {badge.body_hash} exists for {badge.email}"
            ) from e

    async def destroy(self, badge_id: UUID) -> bool:
        stmt = delete(BadgeRow).where(BadgeRow.id == badge_id)
        result = await self._session.execute(stmt)
        return result.rowcount > 0


def _row_to_badge(row: BadgeRow) -> Badge:
    return Badge(
        id=row.id,
        body_hash=row.body_hash,
        body=dict(row.body),
        image_path=row.image_path,
        email=row.email,
        source_url=row.source_url,
        created_at=row.created_at,
    )
