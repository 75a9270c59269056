"""Assemble the read models for a user's backpack.

Groups store badge ids, and those ids may point at badges the user has
since deleted.  ``reconcile`` filters a group against the badges the user
owns right now, without writing anything back: a group keeps its stale
ids and simply shows fewer badges.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from uuid import UUID

from backpack.models.badge import Badge
from backpack.models.group import Group
from backpack.models.principal import Principal
from backpack.models.views import BadgeDetailsView, BadgeSummary, GroupView, ManageView


def details_path(badge: Badge) -> str:
    return f"/backpack/badges/{badge.body_hash}"


def summarize(badge: Badge) -> BadgeSummary:
    return BadgeSummary(
        id=badge.id,
        body_hash=badge.body_hash,
        image_path=badge.image_path,
        email=badge.email,
        badge_type=badge.badge_type,
        details_path=details_path(badge),
    )


def reconcile(
    group: Group, owned: Mapping[UUID, Badge]
) -> tuple[tuple[UUID, ...], tuple[Badge, ...]]:
    """Return the group's badge ids still in *owned*, and those badges,
    both in group order."""
    valid_ids = tuple(badge_id for badge_id in group.badges if badge_id in owned)
    return valid_ids, tuple(owned[badge_id] for badge_id in valid_ids)


def build_manage_view(
    principal: Principal, badges: Sequence[Badge], groups: Iterable[Group]
) -> ManageView:
    owned = {badge.id: badge for badge in badges}
    group_views = []
    for group in groups:
        valid_ids, members = reconcile(group, owned)
        group_views.append(
            GroupView(
                id=group.id,
                name=group.name,
                url=group.url,
                is_public=group.is_public,
                badge_ids=valid_ids,
                badges=tuple(summarize(b) for b in members),
            )
        )
    return ManageView(
        emails=principal.emails,
        badges=tuple(summarize(b) for b in badges),
        groups=tuple(group_views),
    )


def build_badge_details(badge: Badge, principal: Principal | None) -> BadgeDetailsView:
    owner = principal is not None and principal.owns(badge.email)
    return BadgeDetailsView(
        id=badge.id,
        body_hash=badge.body_hash,
        image_path=badge.image_path,
        badge_type=badge.badge_type,
        owner=owner,
        recipient=badge.email if owner else None,
        delete_path=details_path(badge) if owner else None,
    )
