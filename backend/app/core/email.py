"""Verification email delivery via Resend API.

Simple HTTP POST to Resend with a plain-text body. The link is a deep link
into the mobile app carrying the plain token as ``?token=``.

Delivery runs as a background task after the token is committed, so a
failed send is logged and never surfaces to the requester.
"""

import logging
from urllib.parse import quote, urlencode

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)

_RESEND_API_URL = "https://api.resend.com/emails"
_RESEND_TIMEOUT = 10.0


def build_verification_link(token: str) -> str:
    """Return the deep link a verification email carries."""
    params = urlencode({"token": token}, quote_via=quote)
    return f"{settings.magic_link_base_url}?{params}"


async def send_verification_email(
    *, to_email: str, token: str, claim: bool = False
) -> None:
    """Send a magic link email via Resend.

    Without a Resend key outside production the link is logged instead, so
    local development works without an email provider.

    Args:
        to_email: Recipient email address.
        token: Plain (unhashed) verification token.
        claim: True when the link upgrades a guest account.
    """
    link = build_verification_link(token)

    api_key = settings.resend_api_key.get_secret_value()
    if not api_key:
        if settings.environment != "production":
            logger.info("Verification link (email delivery disabled): %s", link)
        else:
            logger.warning("RESEND_API_KEY not configured; verification email dropped")
        return

    if claim:
        subject = "Save your EVN account"
        intro = "Tap this link to save your account and keep your groups:"
    else:
        subject = "Sign in to EVN"
        intro = "Tap this link to sign in:"

    try:
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                _RESEND_API_URL,
                headers={"Authorization": f"Bearer {api_key}"},
                json={
                    "from": settings.email_from,
                    "to": to_email,
                    "subject": subject,
                    "text": (
                        f"{intro}\n\n{link}\n\n"
                        "This link expires in 15 minutes. "
                        "If you didn't request this, you can safely ignore this email."
                    ),
                },
                timeout=_RESEND_TIMEOUT,
            )
            resp.raise_for_status()
    except httpx.HTTPError:
        logger.warning("Failed to send verification email", exc_info=True)
