"""Sign-in, sign-out and the backpack overview.

- GET  /backpack/login         what the client needs to start sign-in
- POST /backpack/authenticate  exchange an identity assertion for a session
- POST /backpack/signout       drop the session
- GET  /backpack               the signed-in user's badges and groups
"""

from __future__ import annotations

import logging
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel, ConfigDict

from backpack.api import dependencies as deps
from backpack.api.dependencies import Repos, current_principal, get_repos
from backpack.api.ratelimit import require_rate_limit
from backpack.core.config import SETTINGS
from backpack.core.errors import IdentityVerificationError
from backpack.core.logging import get_audit_logger
from backpack.core.metrics import SECURITY_REJECTIONS
from backpack.models.principal import Principal
from backpack.services import collection_service, session_service
from backpack.services.rate_limiter import RateLimitConfig

logger = logging.getLogger(__name__)
audit_logger = get_audit_logger()

router = APIRouter(prefix="/backpack", tags=["backpack"])

LOGIN_PATH = "/backpack/login"
MANAGE_PATH = "/backpack"


class LoginInfoOut(BaseModel):
    audience: str
    authenticate_path: str
    signed_in_as: list[str]


class BadgeSummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    body_hash: str
    image_path: str
    email: str
    badge_type: Any
    details_path: str


class GroupOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    url: str
    is_public: bool
    badge_ids: list[UUID]
    badges: list[BadgeSummaryOut]


class ManageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    emails: list[str]
    badges: list[BadgeSummaryOut]
    groups: list[GroupOut]


@router.get("/login", response_model=LoginInfoOut)
def login_info(request: Request) -> LoginInfoOut:
    principal = current_principal(request)
    return LoginInfoOut(
        audience=SETTINGS.public_url,
        authenticate_path="/backpack/authenticate",
        signed_in_as=list(principal.emails) if principal else [],
    )


# Each sign-in costs a round trip to the verifier.
_auth_limit = require_rate_limit(RateLimitConfig(capacity=10, refill_rate=0.17))


@router.post("/authenticate", response_model=None, dependencies=[Depends(_auth_limit)])
async def authenticate(
    request: Request,
    assertion: Annotated[str | None, Form()] = None,
) -> RedirectResponse | JSONResponse:
    """Verify an identity assertion and add its email to the session."""
    if not assertion:
        return RedirectResponse(LOGIN_PATH, status_code=303)

    try:
        email = await deps.identity_verifier.verify(assertion, SETTINGS.public_url)
    except IdentityVerificationError as e:
        SECURITY_REJECTIONS.labels(reason="identity_unverified").inc()
        audit_logger.warning(
            "Failed identity verification",
            extra={"audit_event": "identity_unverified"},
        )
        logger.debug("Type: %s; Body: %s", e.type, e.body)
        return JSONResponse(
            {"detail": "Could not verify your identity!"}, status_code=401
        )

    existing = current_principal(request)
    emails = [*(existing.emails if existing else ()), email]
    logger.debug("Identity verified, session now holds %d email(s)", len(set(emails)))

    response = RedirectResponse(MANAGE_PATH, status_code=303)
    response.set_cookie(
        key=session_service.COOKIE_NAME,
        value=session_service.create_session_token(emails=emails),
        httponly=True,
        samesite="lax",
        secure=SETTINGS.is_prod,
        path="/",
        max_age=session_service.SESSION_TTL_MIN * 60,
    )
    return response


@router.post("/signout")
def signout() -> RedirectResponse:
    response = RedirectResponse(LOGIN_PATH, status_code=303)
    response.delete_cookie(session_service.COOKIE_NAME, path="/")
    return response


@router.get("", response_model=None)
async def manage(
    repos: Annotated[Repos, Depends(get_repos)],
    principal: Annotated[Principal | None, Depends(current_principal)],
) -> ManageOut | RedirectResponse:
    if principal is None:
        return RedirectResponse(LOGIN_PATH, status_code=303)

    groups = await repos.groups.find_by_user(principal.emails)
    badges = await repos.badges.find_by_emails(principal.emails)
    view = collection_service.build_manage_view(principal, badges, groups)
    return ManageOut.model_validate(view)
