"""Email sending via Resend API.

Plain-text magic link emails sent with a single HTTP POST. Delivery failures
are logged and never reach the request that triggered them.
"""

import logging
from urllib.parse import quote, urlencode

import httpx

from waypoint.core.config import settings

logger = logging.getLogger(__name__)

_RESEND_API_URL = "https://api.resend.com/emails"
_RESEND_TIMEOUT = 10.0


def redact_email(address: str) -> str:
    """Mask the local part of an address for logging (a***@example.com)."""
    local, sep, domain = address.partition("@")
    if not sep:
        return "***"
    return f"{local[:1]}***@{domain}"


def build_magic_link_url(token: str) -> str:
    """Frontend URL the user clicks; the frontend posts the token back."""
    params = urlencode({"token": token}, quote_via=quote)
    return f"{settings.frontend_magic_link_url}?{params}"


async def send_magic_link_email(*, to_email: str, token: str, ttl_minutes: int) -> None:
    """Send a magic link sign-in email via Resend.

    Without a Resend API key (local development) nothing is sent; the
    attempt is logged with a redacted recipient and without the token.

    Args:
        to_email: Recipient email address.
        token: Plain (unhashed) magic link secret.
        ttl_minutes: Link lifetime, quoted in the email body.
    """
    api_key = settings.resend_api_key.get_secret_value()
    if not api_key:
        logger.info(
            "Resend API key not configured; magic link email to %s not sent",
            redact_email(to_email),
        )
        return

    link = build_magic_link_url(token)

    try:
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                _RESEND_API_URL,
                headers={"Authorization": f"Bearer {api_key}"},
                json={
                    "from": settings.email_from,
                    "to": to_email,
                    "subject": "Your sign-in link",
                    "text": (
                        f"Click this link to sign in:\n\n{link}\n\n"
                        f"This link will expire in {ttl_minutes} minutes. "
                        "If you didn't request this, you can safely ignore this email."
                    ),
                },
                timeout=_RESEND_TIMEOUT,
            )
            resp.raise_for_status()
    except Exception:
        logger.warning(
            "Failed to send magic link email to %s",
            redact_email(to_email),
            exc_info=True,
        )
