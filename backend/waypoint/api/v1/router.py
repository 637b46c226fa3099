"""API v1 router aggregator.

All v1 endpoint routers are included here; main.py mounts this router
under /api/v1.
"""

from fastapi import APIRouter

from waypoint.api.v1 import auth_magic_link, auth_session, devices

router = APIRouter()

# =============================================================================
# Authentication
# =============================================================================

_AUTH_PREFIX = "/auth"

router.include_router(auth_magic_link.router, prefix=_AUTH_PREFIX, tags=["auth"])
router.include_router(auth_session.router, prefix=_AUTH_PREFIX, tags=["auth"])

# =============================================================================
# Devices
# =============================================================================

router.include_router(devices.router, prefix="/trackables", tags=["devices"])
