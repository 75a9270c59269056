"""Read models handed to the presentation layer.

Each view is assembled once, in a single constructor call, from data the
request already fetched.  Nothing mutates them afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from uuid import UUID


@dataclass(frozen=True, slots=True)
class BadgeSummary:
    id: UUID
    body_hash: str
    image_path: str
    email: str
    badge_type: Any
    details_path: str


@dataclass(frozen=True, slots=True)
class GroupView:
    id: UUID
    name: str
    url: str
    is_public: bool
    badge_ids: tuple[UUID, ...]
    badges: tuple[BadgeSummary, ...]


@dataclass(frozen=True, slots=True)
class ManageView:
    emails: tuple[str, ...]
    badges: tuple[BadgeSummary, ...]
    groups: tuple[GroupView, ...]


@dataclass(frozen=True, slots=True)
class BadgeDetailsView:
    id: UUID
    body_hash: str
    image_path: str
    badge_type: Any
    owner: bool
    # Only revealed to the owner; None for everyone else.
    recipient: str | None
    delete_path: str | None
