"""Badge upload, details and deletion.

- POST   /backpack/badges              upload a baked badge image
- GET    /backpack/badges/{body_hash}  badge details
- DELETE /backpack/badges/{body_hash}  remove a badge you own

Badges are addressed by body_hash, the content fingerprint of their
assertion.  The same hash can exist once per recipient email, so lookups
prefer the caller's own copy.
"""

from __future__ import annotations

import logging
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile, status
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, ConfigDict

from backpack.api import dependencies as deps
from backpack.api.backpack import LOGIN_PATH
from backpack.api.dependencies import Repos, current_principal, get_repos
from backpack.api.ratelimit import require_rate_limit
from backpack.models.badge import Badge
from backpack.models.principal import Principal
from backpack.services import collection_service, upload_service
from backpack.services.award_service import AwardEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/backpack/badges", tags=["badges"])


class BadgeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    body_hash: str
    image_path: str
    email: str
    source_url: str
    created_at: int


class UploadOut(BaseModel):
    badge: BadgeOut
    created: bool


class BadgeDetailsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    body_hash: str
    image_path: str
    badge_type: Any
    owner: bool
    recipient: str | None
    delete_path: str | None


def _pick(badges: list[Badge], principal: Principal | None) -> Badge | None:
    if principal is not None:
        for badge in badges:
            if principal.owns(badge.email):
                return badge
    return badges[0] if badges else None


async def _lookup(repos: Repos, body_hash: str, principal: Principal | None) -> Badge:
    badge = _pick(await repos.badges.find_by_hash(body_hash), principal)
    if badge is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="could not find badge")
    return badge


@router.post(
    "",
    response_model=None,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_rate_limit())],
)
async def upload(
    response: Response,
    repos: Annotated[Repos, Depends(get_repos)],
    principal: Annotated[Principal | None, Depends(current_principal)],
    userBadge: Annotated[UploadFile | None, File()] = None,
) -> UploadOut | RedirectResponse:
    """Add a badge to the backpack from an uploaded baked image.

    201 when the badge is new, 200 when it was already there.
    """
    if principal is None:
        return RedirectResponse(LOGIN_PATH, status_code=303)

    limit = deps.upload_max_bytes
    # One byte past the limit is enough to know the file is too big.
    file_bytes = await userBadge.read(limit + 1) if userBadge is not None else b""
    engine = AwardEngine(repos.badges, deps.image_store)
    result = await upload_service.upload_badge(
        file_bytes,
        principal,
        fetcher=deps.assertion_fetcher,
        engine=engine,
        max_bytes=limit,
    )

    if not result.created:
        response.status_code = status.HTTP_200_OK
    return UploadOut(badge=BadgeOut.model_validate(result.badge), created=result.created)


@router.get("/{body_hash}", response_model=BadgeDetailsOut)
async def details(
    body_hash: str,
    repos: Annotated[Repos, Depends(get_repos)],
    principal: Annotated[Principal | None, Depends(current_principal)],
) -> BadgeDetailsOut:
    badge = await _lookup(repos, body_hash, principal)
    view = collection_service.build_badge_details(badge, principal)
    return BadgeDetailsOut.model_validate(view)


@router.delete("/{body_hash}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_badge(
    body_hash: str,
    repos: Annotated[Repos, Depends(get_repos)],
    principal: Annotated[Principal | None, Depends(current_principal)],
) -> Response:
    badge = await _lookup(repos, body_hash, principal)
    engine = AwardEngine(repos.badges, deps.image_store)
    # Forbidden / StorageError are rendered by the BackpackError handler.
    await engine.destroy(badge, principal.emails if principal else ())
    return Response(status_code=status.HTTP_204_NO_CONTENT)
