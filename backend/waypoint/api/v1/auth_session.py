"""Session endpoints: refresh, logout, sign-out-everywhere, identity.

Endpoints:
- POST /auth/refresh: rotate the refresh cookie, return a new access token
- POST /auth/logout: revoke the presented refresh token, clear the cookie
- POST /auth/invalidate-sessions: revoke every refresh token of the user
- GET /auth/me: current user
- GET /auth/whoami: current principal of either kind
"""

import uuid
from typing import Literal

from fastapi import APIRouter, Request, Response, status
from pydantic import BaseModel

from waypoint.api.deps import (
    AuthSettings,
    CurrentPrincipal,
    CurrentUser,
    RefreshSessions,
)
from waypoint.api.v1.auth_magic_link import TokenResponse
from waypoint.core.config import settings
from waypoint.core.principals import DevicePrincipal, UserPrincipal
from waypoint.core.rate_limiting import limiter
from waypoint.core.responses import DataResponse
from waypoint.services.refresh_session_service import RequestMeta

router = APIRouter()


class MeResponse(BaseModel):
    user_id: uuid.UUID
    email: str


class WhoAmIResponse(BaseModel):
    """Principal of the caller.

    email is set for users; device_id and trackable_id for devices.
    """

    kind: Literal["user", "device"]
    user_id: uuid.UUID
    email: str | None = None
    device_id: str | None = None
    trackable_id: str | None = None


# ===================================================================
# POST /auth/refresh
# ===================================================================


@router.post("/refresh")
@limiter.limit(lambda: settings.rate_limit_refresh)
async def refresh_session(
    request: Request,
    response: Response,
    config: AuthSettings,
    sessions: RefreshSessions,
) -> DataResponse[TokenResponse]:
    """Rotate the refresh token.

    Presenting an already-rotated token revokes the whole chain and
    returns 401 REUSED_REFRESH_TOKEN.
    """
    issued = await sessions.refresh(RequestMeta.from_request(request, config), response)
    return DataResponse(
        data=TokenResponse(
            access_token=issued.access_token,
            expires_in=issued.expires_in,
        )
    )


# ===================================================================
# POST /auth/logout
# ===================================================================


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    request: Request,
    config: AuthSettings,
    sessions: RefreshSessions,
) -> Response:
    """Sign out this browser. Always succeeds."""
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    await sessions.logout(RequestMeta.from_request(request, config), response)
    return response


# ===================================================================
# POST /auth/invalidate-sessions
# ===================================================================


@router.post("/invalidate-sessions")
async def invalidate_sessions(
    user: CurrentUser,
    sessions: RefreshSessions,
) -> DataResponse[dict]:
    """Sign out everywhere.

    Access tokens already handed out stay valid until they expire.
    """
    revoked = await sessions.revoke_all(user.user_id)
    return DataResponse(data={"revoked_sessions": revoked})


# ===================================================================
# GET /auth/me, GET /auth/whoami
# ===================================================================


@router.get("/me")
async def get_me(user: CurrentUser) -> DataResponse[MeResponse]:
    return DataResponse(data=MeResponse(user_id=user.user_id, email=user.email))


@router.get("/whoami")
async def whoami(principal: CurrentPrincipal) -> DataResponse[WhoAmIResponse]:
    match principal:
        case UserPrincipal(user_id=user_id, email=email):
            data = WhoAmIResponse(kind="user", user_id=user_id, email=email)
        case DevicePrincipal(
            user_id=user_id, device_id=device_id, trackable_id=trackable_id
        ):
            data = WhoAmIResponse(
                kind="device",
                user_id=user_id,
                device_id=device_id,
                trackable_id=trackable_id,
            )
    return DataResponse(data=data)
