"""Token codec: opaque secrets, secret hashing, and JWT signing.

Pure helpers with no mutable state. Raw opaque secrets are handed to the
caller exactly once; only their hash is ever persisted or used as a lookup
key.
"""

import base64
import hashlib
import secrets
from typing import Any, Protocol

import jwt

from waypoint.core.errors import AccessTokenExpiredError, AccessTokenInvalidError

# 256 bits of entropy per opaque secret
_OPAQUE_SECRET_BYTES = 32

# Claims every access token must carry
_REQUIRED_CLAIMS = ["sub", "iss", "iat", "exp", "email"]


def new_opaque_secret() -> str:
    """Generate a URL-safe, unpadded base64 secret of 256 random bits."""
    return secrets.token_urlsafe(_OPAQUE_SECRET_BYTES)


class SecretHasher(Protocol):
    """One-way, deterministic digest used as the storage key of a secret."""

    def hash(self, secret: str) -> str: ...


class Sha256SecretHasher:
    """SHA-256 digest, base64url-encoded without padding (43 chars)."""

    def hash(self, secret: str) -> str:
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


default_hasher: SecretHasher = Sha256SecretHasher()


def hash_secret(secret: str, hasher: SecretHasher | None = None) -> str:
    """Hash a raw secret for storage or lookup.

    Args:
        secret: Raw opaque secret as received from the client.
        hasher: Strategy override. Defaults to SHA-256.

    Returns:
        Storage form of the secret.
    """
    return (hasher or default_hasher).hash(secret)


class JwtCodec:
    """Sign and verify compact claim sets.

    Verification failures are split into exactly two kinds: expiry
    (AccessTokenExpiredError) and everything else (AccessTokenInvalidError).
    """

    def __init__(self, signing_key: str, *, algorithm: str = "HS256", issuer: str) -> None:
        self._signing_key = signing_key
        self._algorithm = algorithm
        self._issuer = issuer

    @property
    def issuer(self) -> str:
        return self._issuer

    def sign(self, claims: dict[str, Any]) -> str:
        """Encode and sign a claim set.

        The iss claim is always set to this codec's issuer.
        """
        payload = {**claims, "iss": self._issuer}
        return jwt.encode(payload, self._signing_key, algorithm=self._algorithm)

    def verify(self, token: str) -> dict[str, Any]:
        """Verify signature, issuer and expiry, then return the claims.

        Raises:
            AccessTokenExpiredError: Token is past its exp claim.
            AccessTokenInvalidError: Any other verification failure.
        """
        try:
            return jwt.decode(
                token,
                self._signing_key,
                algorithms=[self._algorithm],
                issuer=self._issuer,
                options={"require": _REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError as exc:
            raise AccessTokenExpiredError() from exc
        except jwt.InvalidTokenError as exc:
            raise AccessTokenInvalidError() from exc
