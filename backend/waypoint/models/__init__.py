"""SQLAlchemy ORM models for Waypoint.

All models are exported from this module for convenient imports:
    from waypoint.models import User, RefreshToken, ...

- user.py: User
- magic_link.py: MagicLink
- refresh_token.py: RefreshToken
- trackable.py: Trackable
- device.py: Device
- device_token.py: DeviceToken
"""

from waypoint.models.base import Base, CreatedAtMixin
from waypoint.models.device import Device
from waypoint.models.device_token import DeviceToken
from waypoint.models.magic_link import MagicLink
from waypoint.models.refresh_token import RefreshToken
from waypoint.models.trackable import Trackable
from waypoint.models.user import User

__all__ = [
    # Base classes
    "Base",
    "CreatedAtMixin",
    # Identity
    "User",
    "MagicLink",
    "RefreshToken",
    # Trackables and devices
    "Trackable",
    "Device",
    "DeviceToken",
]
