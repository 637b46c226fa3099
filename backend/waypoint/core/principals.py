"""Authenticated principals.

A request carries exactly one of these, or None when anonymous. Code that
makes authorization decisions matches on the concrete class and must handle
both variants.
"""

import uuid
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class UserPrincipal:
    """A browser user authenticated with an access token."""

    user_id: uuid.UUID
    email: str


@dataclass(frozen=True, slots=True)
class DevicePrincipal:
    """A registered device authenticated with a claimed device token.

    Attributes:
        user_id: Owner of the trackable the token was issued for.
        device_id: Identity the device claimed its token with.
        trackable_id: Trackable the token was issued for. A device principal
            never reaches any other trackable.
    """

    user_id: uuid.UUID
    device_id: str
    trackable_id: str


Principal = UserPrincipal | DevicePrincipal
