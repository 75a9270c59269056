"""create badges and groups

Revision ID: 3b9e1c7d2a40
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b9e1c7d2a40"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "badges",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("body_hash", sa.String(length=64), nullable=False),
        sa.Column("body", postgresql.JSONB(), nullable=False),
        sa.Column("image_path", sa.Text(), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("source_url", sa.Text(), nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.UniqueConstraint("body_hash", "email", name="uq_badge_body_email"),
    )
    op.create_index("ix_badges_body_hash", "badges", ["body_hash"])
    op.create_index("ix_badges_email", "badges", ["email"])

    op.create_table(
        "groups",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_email", sa.String(length=320), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("url", sa.String(length=255), nullable=False, unique=True),
        sa.Column(
            "badges",
            postgresql.ARRAY(postgresql.UUID(as_uuid=True)),
            nullable=False,
            server_default="{}",
        ),
        sa.Column(
            "is_public", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
    )
    op.create_index("ix_groups_user_email", "groups", ["user_email"])


def downgrade() -> None:
    op.drop_index("ix_groups_user_email", table_name="groups")
    op.drop_table("groups")
    op.drop_index("ix_badges_email", table_name="badges")
    op.drop_index("ix_badges_body_hash", table_name="badges")
    op.drop_table("badges")
