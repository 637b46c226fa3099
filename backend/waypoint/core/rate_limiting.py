"""Rate limiting configuration using slowapi.

Magic link and refresh endpoints are unauthenticated by nature, so they are
keyed per client IP. Requests carrying a valid bearer token are keyed on the
token subject instead, so users behind a shared address do not starve each
other.

Usage in routers:
    from waypoint.core.rate_limiting import limiter

    @router.post("/magic-link/request")
    @limiter.limit(lambda: settings.rate_limit_magic_link_request)
    async def request_magic_link(request: Request, ...):
        ...
"""

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from waypoint.core.auth import get_access_token_issuer
from waypoint.core.authentication import bearer_token
from waypoint.core.config import settings
from waypoint.core.errors import AccessTokenExpiredError, AccessTokenInvalidError


def _rate_limit_key_func(request: Request) -> str:
    """Get rate limit key from request.

    Key format:
    - Valid bearer token: "user:{sub}"
    - Otherwise: "unauth:{ip}"

    Args:
        request: The incoming request.

    Returns:
        Rate limit key string.
    """
    token = bearer_token(request)
    if token:
        try:
            principal = get_access_token_issuer().parse(token)
        except (AccessTokenInvalidError, AccessTokenExpiredError):
            pass
        else:
            return f"user:{principal.user_id}"

    return f"unauth:{get_remote_address(request)}"


# In-memory storage, suitable for a single instance.
# For multi-instance, configure Redis storage via RATELIMIT_STORAGE_URL
limiter = Limiter(
    key_func=_rate_limit_key_func,
    enabled=settings.rate_limit_enabled,
)


def rate_limit_exceeded_handler(
    _request: Request,
    exc: RateLimitExceeded,
) -> Response:
    """Render 429 Too Many Requests in the standard error envelope.

    Args:
        _request: The incoming request.
        exc: The rate limit exception.

    Returns:
        JSONResponse with 429 status and retry-after header.
    """
    # exc.detail looks like "10 per 1 minute"; fall back to 60 seconds
    try:
        retry_after = str(exc.detail.split()[-1])
        int(retry_after.rstrip("s"))
    except (ValueError, AttributeError, IndexError):
        retry_after = "60"

    return JSONResponse(
        status_code=429,
        content={
            "error": {
                "code": "RATE_LIMITED",
                "message": f"Rate limit exceeded: {exc.detail}",
            }
        },
        headers={"Retry-After": retry_after},
    )
