"""API error classes.

Every failure kind of the credential core is an APIError subclass with a
stable machine-readable code and an HTTP status, so the single exception
handler in main.py can render them uniformly.
"""


class APIError(Exception):
    """Base class for API errors.

    All API errors have a code, message, and HTTP status.
    Subclasses set default status_code.

    Attributes:
        code: Machine-readable error code (e.g., "NOT_FOUND").
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional list of additional error details.
        headers: Optional extra response headers.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        self.headers = headers
        super().__init__(message)


class ValidationError(APIError):
    """Field validation failed (400)."""

    def __init__(
        self,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            status_code=400,
            details=details,
        )


class UnauthorizedError(APIError):
    """Authentication required (401).

    Use when no valid auth credentials provided. Subclasses narrow the code
    so clients can tell credential failures apart.
    """

    def __init__(
        self,
        message: str = "Authentication required",
        code: str = "UNAUTHORIZED",
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            status_code=401,
            headers=headers,
        )


class ForbiddenError(APIError):
    """Not allowed to access resource (403)."""

    def __init__(self, message: str = "Access denied") -> None:
        super().__init__(
            code="FORBIDDEN",
            message=message,
            status_code=403,
        )


class NotFoundError(APIError):
    """Resource not found (404).

    Also used when the resource exists but does not belong to the caller,
    so ownership is never revealed.
    """

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        if resource_id:
            message = f"{resource} with id '{resource_id}' not found"
        else:
            message = f"{resource} not found"
        super().__init__(
            code="NOT_FOUND",
            message=message,
            status_code=404,
        )


class ConflictError(APIError):
    """Duplicate or conflicting resource (409)."""

    def __init__(
        self,
        code: str,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details,
        )


class InternalError(APIError):
    """Unexpected server error (500). Never carries stack traces."""

    def __init__(self, message: str = "An unexpected error occurred") -> None:
        super().__init__(
            code="INTERNAL_ERROR",
            message=message,
            status_code=500,
        )


# =============================================================================
# Magic links
# =============================================================================


class InvalidMagicLinkError(APIError):
    """No magic link matches the presented secret (400)."""

    def __init__(self) -> None:
        super().__init__(
            code="INVALID_TOKEN",
            message="The magic link token is invalid.",
            status_code=400,
        )


class ExpiredMagicLinkError(UnauthorizedError):
    """Magic link already used or past its expiry (401).

    Both conditions share one code so the endpoint is not an oracle for
    which of the two happened.
    """

    def __init__(self) -> None:
        super().__init__(
            message="The magic link has expired. Please request a new one.",
            code="EXPIRED_TOKEN",
        )


# =============================================================================
# Access tokens
# =============================================================================


class AccessTokenInvalidError(UnauthorizedError):
    """Access token failed verification for a reason other than expiry."""

    def __init__(self, message: str = "Invalid access token") -> None:
        super().__init__(message=message, code="INVALID_ACCESS_TOKEN")


class AccessTokenExpiredError(UnauthorizedError):
    """Access token is past its exp claim.

    Clients react to TOKEN_EXPIRED by calling the refresh endpoint.
    """

    def __init__(self) -> None:
        super().__init__(
            message="The access token has expired. Refresh and retry.",
            code="TOKEN_EXPIRED",
            headers={
                "WWW-Authenticate": (
                    'Bearer error="invalid_token", error_description="expired"'
                )
            },
        )


# =============================================================================
# Refresh sessions
# =============================================================================


class RefreshTokenError(UnauthorizedError):
    """Base class for refresh-token failures (401)."""

    code = "INVALID_REFRESH_TOKEN"
    default_message = "Invalid refresh token"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message=message or self.default_message,
            code=type(self).code,
        )


class MissingRefreshTokenError(RefreshTokenError):
    code = "MISSING_REFRESH_TOKEN"
    default_message = "Refresh token required"


class InvalidRefreshTokenError(RefreshTokenError):
    code = "INVALID_REFRESH_TOKEN"
    default_message = "Invalid refresh token"


class RevokedRefreshTokenError(RefreshTokenError):
    code = "REVOKED_REFRESH_TOKEN"
    default_message = "Refresh token has been revoked"


class ExpiredRefreshTokenError(RefreshTokenError):
    code = "EXPIRED_REFRESH_TOKEN"
    default_message = "Refresh token has expired"


class ReusedRefreshTokenError(RefreshTokenError):
    """An already-rotated refresh token was presented again.

    Treated as a theft signal: the session chain is revoked.
    """

    code = "REUSED_REFRESH_TOKEN"
    default_message = "Refresh token was already used"


class RefreshUserNotFoundError(RefreshTokenError):
    code = "USER_NOT_FOUND"
    default_message = "User not found"


# =============================================================================
# Device tokens
# =============================================================================


class UnauthorizedDeviceTokenError(UnauthorizedError):
    """Device token unknown, revoked, unclaimed, or without an owner (401)."""

    def __init__(self, message: str = "Invalid device token") -> None:
        super().__init__(message=message, code="UNAUTHORIZED_DEVICE_TOKEN")


class DeviceTokenAlreadyClaimedError(ConflictError):
    """Device token is already bound to a different device id (409)."""

    def __init__(self) -> None:
        super().__init__(
            code="DEVICE_TOKEN_CLAIMED",
            message="This device token is already claimed by another device",
        )
