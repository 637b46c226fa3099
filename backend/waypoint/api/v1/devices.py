"""Device token and registration endpoints.

Endpoints:
- POST /trackables/{trackable_id}/devices/token: issue a device token (owner)
- POST /trackables/{trackable_id}/devices/register: claim a token
- DELETE /trackables/{trackable_id}/devices/{device_id}: remove a device
"""

from typing import Annotated

from fastapi import APIRouter, Path, status
from pydantic import BaseModel, ConfigDict, Field

from waypoint.api.deps import CurrentPrincipal, CurrentUser, DbSession, DeviceTokens
from waypoint.core.authentication import can_access_trackable
from waypoint.core.errors import NotFoundError
from waypoint.core.principals import DevicePrincipal, UserPrincipal
from waypoint.core.responses import DataResponse
from waypoint.repositories.device_repository import DeviceRepository
from waypoint.services.device_service import DeviceService

router = APIRouter()

TrackableId = Annotated[str, Path(min_length=1, max_length=64)]
DeviceId = Annotated[str, Path(min_length=1, max_length=128)]


class DeviceTokenResponse(BaseModel):
    """Raw device token. Shown once; only its hash is stored."""

    trackable_id: str
    token: str


class RegisterDeviceRequest(BaseModel):
    """Request body for POST /devices/register."""

    model_config = ConfigDict(extra="forbid")

    token: str = Field(min_length=1, max_length=256)
    device_id: str = Field(min_length=1, max_length=128)
    name: str | None = Field(default=None, max_length=255)


class DeviceResponse(BaseModel):
    trackable_id: str
    device_id: str
    name: str | None = None


@router.post("/{trackable_id}/devices/token")
async def issue_device_token(
    trackable_id: TrackableId,
    user: CurrentUser,
    db: DbSession,
    device_tokens: DeviceTokens,
) -> DataResponse[DeviceTokenResponse]:
    """Issue a fresh device token for a trackable the caller owns.

    Any previous unclaimed token of the trackable stops working.
    """
    owner = await DeviceRepository.get_trackable_owner(db, trackable_id)
    if owner is None or owner != user.user_id:
        raise NotFoundError("Trackable", trackable_id)
    token = await device_tokens.issue(trackable_id)
    return DataResponse(data=DeviceTokenResponse(trackable_id=trackable_id, token=token))


@router.post("/{trackable_id}/devices/register")
async def register_device(
    trackable_id: TrackableId,
    body: RegisterDeviceRequest,
    db: DbSession,
    device_tokens: DeviceTokens,
) -> DataResponse[DeviceResponse]:
    """Register a device with a token issued for this trackable.

    Unauthenticated: the device token in the body is the credential.
    """
    device = await DeviceService(db, device_tokens).register_device(
        trackable_id,
        raw_token=body.token,
        device_id=body.device_id,
        name=body.name,
    )
    return DataResponse(
        data=DeviceResponse(
            trackable_id=device.trackable_id,
            device_id=device.device_id,
            name=device.name,
        )
    )


@router.delete(
    "/{trackable_id}/devices/{device_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_device(
    trackable_id: TrackableId,
    device_id: DeviceId,
    principal: CurrentPrincipal,
    db: DbSession,
    device_tokens: DeviceTokens,
) -> None:
    """Remove a device and revoke its tokens.

    Owners may remove any device of their trackable; a device may only
    remove itself.
    """
    match principal:
        case UserPrincipal():
            allowed = await can_access_trackable(db, principal, trackable_id)
        case DevicePrincipal(device_id=own_device_id):
            allowed = own_device_id == device_id and await can_access_trackable(
                db, principal, trackable_id
            )
    if not allowed:
        raise NotFoundError("Device", device_id)
    await DeviceService(db, device_tokens).delete_device(trackable_id, device_id)
