"""Magic link endpoints.

Endpoints:
- POST /auth/magic-link/request: email a sign-in link
- POST /auth/magic-link/consume: exchange the link for a session
"""

from fastapi import APIRouter, BackgroundTasks, Request, Response
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from waypoint.api.deps import AuthSettings, DbSession, MagicLinks, RefreshSessions
from waypoint.core.config import settings
from waypoint.core.rate_limiting import limiter
from waypoint.core.responses import DataResponse
from waypoint.services.refresh_session_service import RequestMeta

router = APIRouter()


# ===================================================================
# Request / response models
# ===================================================================


class MagicLinkRequest(BaseModel):
    """Request body for POST /auth/magic-link/request."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr


class MagicLinkConsumeRequest(BaseModel):
    """Request body for POST /auth/magic-link/consume."""

    model_config = ConfigDict(extra="forbid")

    token: str = Field(min_length=1, max_length=256)


class TokenResponse(BaseModel):
    """Access token handed to the browser; the refresh token is a cookie."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int


# ===================================================================
# POST /auth/magic-link/request
# ===================================================================


@router.post("/magic-link/request")
@limiter.limit(lambda: settings.rate_limit_magic_link_request)
async def request_magic_link(
    request: Request,  # noqa: ARG001
    body: MagicLinkRequest,
    background_tasks: BackgroundTasks,
    db: DbSession,
    magic_links: MagicLinks,
) -> DataResponse[dict]:
    """Request a magic link sign-in email.

    Always returns the same message so the endpoint cannot be used to
    discover which addresses have accounts. The email is sent after the
    response by a background task.
    """
    await magic_links.request_link(body.email, background_tasks)
    await db.commit()
    return DataResponse(
        data={"message": "If the address is valid, a sign-in link has been sent"}
    )


# ===================================================================
# POST /auth/magic-link/consume
# ===================================================================


@router.post("/magic-link/consume")
@limiter.limit(lambda: settings.rate_limit_magic_link_consume)
async def consume_magic_link(
    request: Request,
    response: Response,
    body: MagicLinkConsumeRequest,
    config: AuthSettings,
    magic_links: MagicLinks,
    sessions: RefreshSessions,
) -> DataResponse[TokenResponse]:
    """Consume a magic link and start a refresh session.

    Sets the refresh cookie and returns a short-lived access token.
    """
    user = await magic_links.consume(body.token)
    issued = await sessions.start_session(
        user, RequestMeta.from_request(request, config), response
    )
    return DataResponse(
        data=TokenResponse(
            access_token=issued.access_token,
            expires_in=issued.expires_in,
        )
    )
