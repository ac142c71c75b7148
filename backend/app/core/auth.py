"""Session credential issuing and validation.

Shared utilities used by the guest and magic-link endpoints.

Pipeline:
- issue_session: mint a signed JWT for a resolved user
- decode_session: validate a presented JWT (pure: content + clock + secret)
- session_token_from_request: bearer header (mobile) or cookie (web)
- set_auth_cookie / clear_auth_cookie: httpOnly cookie for web clients

Every call to issue_session produces a distinct credential, even for the
same user within the same second: each JWT carries a random ``jti``.
"""

import secrets
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import jwt
from fastapi import Request, Response

from app.core.config import settings
from app.models.user import User

_ALGORITHM = "HS256"
_BEARER_PREFIX = "bearer "

# 128 random bits per credential
_JTI_BYTES = 16


@dataclass(frozen=True)
class SessionClaims:
    """Validated contents of a session credential.

    Attributes:
        user_id: Identity the credential was issued for.
        kind: Identity kind at issuance time.
        email: Identity email at issuance time, if any.
        session_id: Random per-credential identifier (``jti``).
        issued_at: Issuance time.
        expires_at: Expiry time.
    """

    user_id: uuid.UUID
    kind: str
    email: str | None
    session_id: str
    issued_at: datetime
    expires_at: datetime


def _session_ttl() -> timedelta:
    return timedelta(minutes=settings.session_ttl_minutes)


def issue_session(
    user: User | None,
    *,
    secret: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Mint a new session credential for a user.

    Args:
        user: Resolved identity. Must be persisted (has an id).
        secret: HMAC signing secret. Defaults to settings.auth_secret.
        expires_delta: Time until expiration. Defaults to the configured TTL.

    Returns:
        Encoded JWT string.

    Raises:
        ValueError: If the user is missing, has no id, or no secret is configured.
    """
    if user is None or user.id is None or not user.kind:
        raise ValueError("Cannot issue a session for an incomplete identity")

    signing_secret = secret or settings.auth_secret.get_secret_value()
    if not signing_secret:
        raise ValueError("AUTH_SECRET is not configured")

    now = datetime.now(UTC)
    payload: dict[str, object] = {
        "sub": str(user.id),
        "kind": user.kind,
        "aud": settings.auth_audience,
        "iss": settings.auth_issuer,
        "iat": now,
        "exp": now + (expires_delta or _session_ttl()),
        "jti": secrets.token_urlsafe(_JTI_BYTES),
    }
    if user.email:
        payload["email"] = user.email
    return jwt.encode(payload, signing_secret, algorithm=_ALGORITHM)


def decode_session(token: str, *, secret: str | None = None) -> SessionClaims:
    """Validate a session credential and return its claims.

    Checks signature, ``exp``, ``aud`` and ``iss``, and requires ``sub``,
    ``iat`` and ``jti``. No store lookup is performed.

    Args:
        token: Encoded JWT string.
        secret: HMAC signing secret. Defaults to settings.auth_secret.

    Returns:
        SessionClaims for the credential.

    Raises:
        jwt.InvalidTokenError: If the credential is invalid or expired.
    """
    signing_secret = secret or settings.auth_secret.get_secret_value()
    if not signing_secret:
        raise jwt.InvalidTokenError("AUTH_SECRET is not configured")
    payload = jwt.decode(
        token,
        signing_secret,
        algorithms=[_ALGORITHM],
        audience=settings.auth_audience,
        issuer=settings.auth_issuer,
        options={"require": ["sub", "exp", "iat", "jti"]},
    )
    try:
        user_id = uuid.UUID(payload["sub"])
    except (TypeError, ValueError) as exc:
        raise jwt.InvalidTokenError("Malformed subject claim") from exc

    return SessionClaims(
        user_id=user_id,
        kind=str(payload.get("kind", "")),
        email=payload.get("email"),
        session_id=str(payload["jti"]),
        issued_at=datetime.fromtimestamp(payload["iat"], UTC),
        expires_at=datetime.fromtimestamp(payload["exp"], UTC),
    )


def session_token_from_request(request: Request) -> str | None:
    """Return the presented session credential, if any.

    Mobile clients send ``Authorization: Bearer <token>``; web clients carry
    the httpOnly cookie. The header wins when both are present.
    """
    header = request.headers.get("authorization", "")
    if header[: len(_BEARER_PREFIX)].lower() == _BEARER_PREFIX:
        token = header[len(_BEARER_PREFIX) :].strip()
        if token:
            return token
    return request.cookies.get(settings.auth_cookie_name) or None


def set_auth_cookie(response: Response, token: str) -> None:
    """Set httpOnly session cookie on response.

    Security: httpOnly prevents XSS cookie theft. Secure flag and SameSite
    are configured via settings for environment-appropriate security.

    Args:
        response: FastAPI response object.
        token: JWT token string.
    """
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=token,
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite=settings.auth_cookie_samesite,
        path="/",
        max_age=int(_session_ttl().total_seconds()),
        domain=settings.auth_cookie_domain or None,
    )


def clear_auth_cookie(response: Response) -> None:
    """Delete the session cookie.

    Cookie attributes must match set_auth_cookie() for browsers to delete it.

    Args:
        response: FastAPI response object.
    """
    response.delete_cookie(
        key=settings.auth_cookie_name,
        path="/",
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite=settings.auth_cookie_samesite,
        domain=settings.auth_cookie_domain or None,
    )
