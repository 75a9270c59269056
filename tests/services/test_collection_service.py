from __future__ import annotations

from backpack.models.badge import Badge
from backpack.models.group import Group
from backpack.models.principal import Principal
from backpack.services.collection_service import (
    build_badge_details,
    build_manage_view,
    reconcile,
)
from tests.conftest import assertion_body


def _badge(email: str = "alice@example.com", name: str = "A") -> Badge:
    body = assertion_body(recipient=email)
    body["badge"]["name"] = name
    return Badge.new(
        body_hash=f"hash-{name}-{email}",
        body=body,
        image_path=f"memory://{name}.png",
        email=email,
        source_url="https://issuer.example/a",
    )


def test_reconcile_drops_deleted_badges_and_keeps_order() -> None:
    a, b, c = _badge(name="A"), _badge(name="B"), _badge(name="C")
    group = Group.new(user_email="alice@example.com", name="Work", url="work", badges=(c.id, a.id, b.id))
    owned = {a.id: a, c.id: c}  # b was deleted

    valid_ids, badges = reconcile(group, owned)

    assert valid_ids == (c.id, a.id)
    assert badges == (c, a)
    # Nothing is written back.
    assert group.badges == (c.id, a.id, b.id)


def test_manage_view_lists_badges_and_groups() -> None:
    a, b = _badge(name="A"), _badge(name="B")
    group = Group.new(user_email="alice@example.com", name="Fav", url="fav", badges=(b.id,))
    principal = Principal(emails=("alice@example.com",))

    view = build_manage_view(principal, [a, b], [group])

    assert view.emails == ("alice@example.com",)
    assert [s.id for s in view.badges] == [a.id, b.id]
    assert view.badges[0].details_path == f"/backpack/badges/{a.body_hash}"
    assert view.badges[0].badge_type["name"] == "A"
    assert len(view.groups) == 1
    assert view.groups[0].badge_ids == (b.id,)
    assert view.groups[0].badges[0].id == b.id


def test_manage_view_empty_backpack() -> None:
    view = build_manage_view(Principal(emails=("new@example.com",)), [], [])
    assert view.badges == ()
    assert view.groups == ()


def test_details_for_owner_reveal_recipient_and_delete_path() -> None:
    badge = _badge()
    view = build_badge_details(badge, Principal(emails=("alice@example.com",)))
    assert view.owner is True
    assert view.recipient == "alice@example.com"
    assert view.delete_path == f"/backpack/badges/{badge.body_hash}"


def test_details_for_stranger_hide_recipient() -> None:
    badge = _badge()
    for principal in (None, Principal(emails=("bob@example.com",))):
        view = build_badge_details(badge, principal)
        assert view.owner is False
        assert view.recipient is None
        assert view.delete_path is None
        assert view.image_path == badge.image_path
