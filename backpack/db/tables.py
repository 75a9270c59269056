"""SQLAlchemy table definitions.

Rows mirror the frozen dataclasses in backpack/models/; repositories
convert between the two.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import BigInteger, Boolean, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from backpack.db.engine import Base


class BadgeRow(Base):
    __tablename__ = "badges"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    # sha256 hex of the canonical assertion body
    body_hash: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    body: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    image_path: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    source_url: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Concurrent identical uploads race on this constraint; exactly one wins.
    __table_args__ = (UniqueConstraint("body_hash", "email", name="uq_badge_body_email"),)


class GroupRow(Base):
    __tablename__ = "groups"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_email: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    # No FK: entries may outlive the badges they point to.
    badges: Mapped[list[uuid.UUID]] = mapped_column(
        ARRAY(UUID(as_uuid=True)), nullable=False, default=[]
    )
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
