"""Per-request authentication: raw credentials to a typed principal.

Resolution order:
1. Authorization: Bearer <access token>. A valid token yields a
   UserPrincipal. An expired token is reported as TOKEN_EXPIRED so the
   client knows to refresh; any other failure counts as no bearer token.
2. Device token header, only when step 1 produced nothing. The token must
   be live and claimed, and its device must be registered to the trackable
   the token was issued for, which must have an owner.
3. Otherwise the request is anonymous (None).
"""

import uuid

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from waypoint.core.auth import AccessTokenIssuer
from waypoint.core.errors import (
    AccessTokenInvalidError,
    UnauthorizedDeviceTokenError,
)
from waypoint.core.principals import DevicePrincipal, Principal, UserPrincipal
from waypoint.repositories.device_repository import DeviceRepository
from waypoint.services.device_token_service import DeviceTokenService


def bearer_token(request: Request) -> str | None:
    """Extract the token from an Authorization: Bearer header."""
    header = request.headers.get("Authorization")
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        return None
    return token


class AuthenticationResolver:
    """Turns request credentials into a principal.

    Args:
        db: Async database session.
        issuer: Access token issuer used to parse bearer tokens.
        device_header: Name of the device token header.
    """

    def __init__(
        self,
        db: AsyncSession,
        issuer: AccessTokenIssuer,
        device_header: str = "X-Device-Token",
    ) -> None:
        self._db = db
        self._issuer = issuer
        self._device_header = device_header

    async def resolve(self, request: Request) -> Principal | None:
        """Resolve the principal of a request.

        Returns:
            UserPrincipal, DevicePrincipal, or None for anonymous requests.

        Raises:
            AccessTokenExpiredError: Bearer token is expired.
            UnauthorizedDeviceTokenError: Device token is unknown, revoked,
                unclaimed, or has no owner.
        """
        principal = self._resolve_bearer(request)
        if principal is not None:
            return principal

        raw_device_token = request.headers.get(self._device_header)
        if raw_device_token:
            return await self._resolve_device(raw_device_token.strip())

        return None

    def _resolve_bearer(self, request: Request) -> UserPrincipal | None:
        token = bearer_token(request)
        if token is None:
            return None
        try:
            return self._issuer.parse(token)
        except AccessTokenInvalidError:
            return None

    async def _resolve_device(self, raw_token: str) -> DevicePrincipal:
        token = await DeviceTokenService(self._db).validate(raw_token)
        if token.device_id is None:
            raise UnauthorizedDeviceTokenError("Device token has not been claimed")
        owner = await DeviceRepository.find_owner_user_id(
            self._db, token.trackable_id, token.device_id
        )
        if owner is None:
            raise UnauthorizedDeviceTokenError("Device is not registered")
        return DevicePrincipal(
            user_id=owner,
            device_id=token.device_id,
            trackable_id=token.trackable_id,
        )


async def can_access_trackable(
    db: AsyncSession, principal: Principal, trackable_id: str
) -> bool:
    """Whether a principal may act on a trackable.

    Users need to own it. Devices only reach the trackable their token was
    issued for, and must still be registered to it.
    """
    match principal:
        case UserPrincipal(user_id=user_id):
            owner: uuid.UUID | None = await DeviceRepository.get_trackable_owner(
                db, trackable_id
            )
            return owner is not None and owner == user_id
        case DevicePrincipal(device_id=device_id, trackable_id=scope):
            if scope != trackable_id:
                return False
            return await DeviceRepository.is_registered(db, trackable_id, device_id)
