from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Group:
    """A named, ordered selection of badges owned by one user.

    ``badges`` may hold ids of badges the user no longer owns.  Readers
    filter against the live badge index (see collection_service.reconcile).
    """

    id: UUID
    user_email: str
    name: str
    url: str
    badges: tuple[UUID, ...] = ()
    is_public: bool = False

    @staticmethod
    def new(
        *,
        user_email: str,
        name: str,
        url: str,
        badges: tuple[UUID, ...] = (),
        is_public: bool = False,
    ) -> Group:
        return Group(
            id=uuid4(),
            user_email=user_email,
            name=name,
            url=url,
            badges=badges,
            is_public=is_public,
        )
