from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Badge:
    """A badge stored in someone's backpack.

    One row per (body_hash, email).  Rows are never updated; a badge is
    only ever created by the award engine or destroyed by its recipient.
    """

    id: UUID
    body_hash: str
    body: dict[str, Any]
    image_path: str
    email: str
    source_url: str
    created_at: int

    @staticmethod
    def new(
        *,
        body_hash: str,
        body: dict[str, Any],
        image_path: str,
        email: str,
        source_url: str,
    ) -> Badge:
        return Badge(
            id=uuid4(),
            body_hash=body_hash,
            body=body,
            image_path=image_path,
            email=email,
            source_url=source_url,
            created_at=int(time.time()),
        )

    @property
    def badge_type(self) -> Any:
        return self.body.get("badge")
