"""Application configuration loaded from environment variables.

Settings for database, API, and the credential core (signing key, token
lifetimes, refresh cookie, magic link mail). Uses pydantic-settings for
validation and .env file support.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Literal

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Known insecure default password that must not be used in production
_INSECURE_DEFAULT_PASSWORD = "waypoint_dev_password"  # nosec B105

# Minimum length for AUTH_SECRET in production (256 bits = 32 bytes)
_MIN_AUTH_SECRET_LENGTH = 32

# Fallback signing key for local development only (rejected in production)
_DEV_AUTH_SECRET = "waypoint-local-development-signing-key"  # nosec B105


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "waypoint"
    database_user: str = "waypoint_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD

    # CORS
    # Never set to ["*"]: the refresh cookie requires credentialed requests
    allowed_origins: list[str] = ["http://localhost:3000"]

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # Access tokens
    auth_secret: SecretStr = SecretStr("")
    auth_issuer: str = "waypoint"
    jwt_algorithm: str = "HS256"
    access_token_ttl_minutes: int = 15

    # Refresh tokens
    refresh_token_ttl_days: int = 30
    refresh_cookie_name: str = "refresh_token"
    refresh_cookie_secure: bool = True
    refresh_cookie_samesite: Literal["lax", "strict", "none"] = "lax"
    refresh_cookie_domain: str = ""

    # Magic links
    magic_link_ttl_minutes: int = 15
    frontend_magic_link_url: str = "http://localhost:3000/auth/magic"
    email_from: str = "noreply@waypoint.local"
    resend_api_key: SecretStr = SecretStr("")

    # Devices
    device_token_header: str = "X-Device-Token"

    # Rate limiting
    # Format: "count/period" (e.g., "10/minute", "5/hour")
    rate_limit_magic_link_request: str = "5/hour"
    rate_limit_magic_link_consume: str = "10/minute"
    rate_limit_refresh: str = "30/minute"
    rate_limit_enabled: bool = True  # Disable for testing

    @property
    def database_url(self) -> str:
        """Async database URL for SQLAlchemy."""
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate security requirements.

        Checks:
        - Token lifetimes must be positive (all environments)
        - SameSite=None requires the Secure flag (all environments)
        - CORS must not use a wildcard origin (all environments)
        - Database password must not be the default in production
        - AUTH_SECRET must be set and >= 32 chars in production
        """
        for name in (
            "access_token_ttl_minutes",
            "refresh_token_ttl_days",
            "magic_link_ttl_minutes",
        ):
            if getattr(self, name) <= 0:
                msg = f"{name.upper()} must be positive. Got: {getattr(self, name)}"
                raise ValueError(msg)

        if self.refresh_cookie_samesite == "none" and not self.refresh_cookie_secure:
            msg = (
                "REFRESH_COOKIE_SECURE must be true when REFRESH_COOKIE_SAMESITE=none. "
                "Browsers reject SameSite=None cookies without the Secure flag."
            )
            raise ValueError(msg)

        if "*" in self.allowed_origins:
            msg = (
                "ALLOWED_ORIGINS must not contain '*' (wildcard). "
                "The refresh cookie needs credentialed CORS, which is "
                "incompatible with wildcard origins."
            )
            raise ValueError(msg)

        if self.environment == "production":
            if self.database_password == _INSECURE_DEFAULT_PASSWORD:
                msg = (
                    "Cannot use default database password in production. "
                    "Set DATABASE_PASSWORD environment variable to a secure value."
                )
                raise ValueError(msg)

            secret_value = self.auth_secret.get_secret_value()
            if not secret_value:
                msg = (
                    "AUTH_SECRET must be set in production. "
                    'Generate with: python -c "import secrets; '
                    'print(secrets.token_hex(32))"'
                )
                raise ValueError(msg)
            if len(secret_value) < _MIN_AUTH_SECRET_LENGTH:
                msg = (
                    f"AUTH_SECRET must be at least {_MIN_AUTH_SECRET_LENGTH} "
                    "characters for adequate security."
                )
                raise ValueError(msg)

        return self


@dataclass(frozen=True)
class AuthConfig:
    """Immutable credential settings injected into the auth services.

    Built once from Settings at start-up. Swapping the signing key means
    building a new AuthConfig; no call site reads the key directly.

    Attributes:
        signing_key: HMAC key (or private key) for access tokens.
        algorithm: JWT signing algorithm.
        issuer: Value of the iss claim.
        access_ttl: Lifetime of an access token.
        refresh_ttl: Lifetime of a refresh token.
        magic_link_ttl: Lifetime of a magic link.
        refresh_cookie_name: Cookie carrying the raw refresh secret.
        refresh_cookie_secure: Secure flag of the refresh cookie.
        refresh_cookie_samesite: SameSite policy of the refresh cookie.
        refresh_cookie_domain: Cookie domain, or None for host-only.
    """

    signing_key: str
    algorithm: str = "HS256"
    issuer: str = "waypoint"
    access_ttl: timedelta = timedelta(minutes=15)
    refresh_ttl: timedelta = timedelta(days=30)
    magic_link_ttl: timedelta = timedelta(minutes=15)
    refresh_cookie_name: str = "refresh_token"
    refresh_cookie_secure: bool = True
    refresh_cookie_samesite: Literal["lax", "strict", "none"] = "lax"
    refresh_cookie_domain: str | None = None

    @classmethod
    def from_settings(cls, source: Settings) -> "AuthConfig":
        """Derive the auth configuration from application settings.

        Outside production an empty AUTH_SECRET falls back to a fixed
        development key so the service can start locally.
        """
        key = source.auth_secret.get_secret_value()
        if not key and source.environment != "production":
            key = _DEV_AUTH_SECRET
        return cls(
            signing_key=key,
            algorithm=source.jwt_algorithm,
            issuer=source.auth_issuer,
            access_ttl=timedelta(minutes=source.access_token_ttl_minutes),
            refresh_ttl=timedelta(days=source.refresh_token_ttl_days),
            magic_link_ttl=timedelta(minutes=source.magic_link_ttl_minutes),
            refresh_cookie_name=source.refresh_cookie_name,
            refresh_cookie_secure=source.refresh_cookie_secure,
            refresh_cookie_samesite=source.refresh_cookie_samesite,
            refresh_cookie_domain=source.refresh_cookie_domain or None,
        )


settings = Settings()
