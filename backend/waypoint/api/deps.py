"""Shared dependencies for API endpoints.

Authentication is resolved once per request by AuthenticationResolver;
endpoints declare what they need with the aliases at the bottom:

    async def endpoint(user: CurrentUser, db: DbSession): ...
"""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from waypoint.core.auth import (
    AccessTokenIssuer,
    get_access_token_issuer,
    get_auth_config,
)
from waypoint.core.authentication import AuthenticationResolver
from waypoint.core.config import AuthConfig, settings
from waypoint.core.database import get_db
from waypoint.core.errors import ForbiddenError, UnauthorizedError
from waypoint.core.principals import Principal, UserPrincipal
from waypoint.services.device_token_service import DeviceTokenService
from waypoint.services.magic_link_service import MagicLinkService
from waypoint.services.refresh_session_service import RefreshSessionService

DbSession = Annotated[AsyncSession, Depends(get_db)]
AuthSettings = Annotated[AuthConfig, Depends(get_auth_config)]
TokenIssuer = Annotated[AccessTokenIssuer, Depends(get_access_token_issuer)]


async def get_principal(
    request: Request,
    db: DbSession,
    issuer: TokenIssuer,
) -> Principal | None:
    """Resolve the caller's principal, or None when anonymous.

    Raises:
        AccessTokenExpiredError: Bearer token expired (401 TOKEN_EXPIRED).
        UnauthorizedDeviceTokenError: Device token rejected.
    """
    resolver = AuthenticationResolver(db, issuer, settings.device_token_header)
    return await resolver.resolve(request)


async def require_principal(
    principal: Annotated[Principal | None, Depends(get_principal)],
) -> Principal:
    """Require any authenticated caller.

    Raises:
        UnauthorizedError: Request is anonymous.
    """
    if principal is None:
        raise UnauthorizedError()
    return principal


async def require_user(
    principal: Annotated[Principal, Depends(require_principal)],
) -> UserPrincipal:
    """Require a signed-in user; devices are refused.

    Raises:
        ForbiddenError: Caller is a device.
    """
    if not isinstance(principal, UserPrincipal):
        raise ForbiddenError("This endpoint requires a user session")
    return principal


def get_magic_link_service(db: DbSession, config: AuthSettings) -> MagicLinkService:
    return MagicLinkService(db, config)


def get_refresh_session_service(
    db: DbSession, config: AuthSettings, issuer: TokenIssuer
) -> RefreshSessionService:
    return RefreshSessionService(db, config, issuer)


def get_device_token_service(db: DbSession) -> DeviceTokenService:
    return DeviceTokenService(db)


# Type aliases for cleaner endpoint signatures
CurrentPrincipal = Annotated[Principal, Depends(require_principal)]
CurrentUser = Annotated[UserPrincipal, Depends(require_user)]
MagicLinks = Annotated[MagicLinkService, Depends(get_magic_link_service)]
RefreshSessions = Annotated[RefreshSessionService, Depends(get_refresh_session_service)]
DeviceTokens = Annotated[DeviceTokenService, Depends(get_device_token_service)]
