"""Rate limiting configuration using slowapi.

Security: Limits how often an address can request or redeem verification
links, and how fast a client can mint guest identities.

Authenticated requests key on the session subject (per-user) so shared IP
addresses behind carrier NAT don't throttle each other. Unauthenticated
requests fall back to IP-based keying.

Usage in routers:
    from app.core.rate_limiting import limiter

    @router.post("/magic-link")
    @limiter.limit("5/hour")
    async def request_magic_link(request: Request, ...):
        ...
"""

import jwt
from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from app.core.auth import decode_session, session_token_from_request
from app.core.config import settings


def _rate_limit_key_func(request: Request) -> str:
    """Get rate limit key from request.

    Key format:
    - Valid session credential: "user:{sub}"
    - No/invalid credential: "unauth:{ip}"

    Args:
        request: The incoming request.

    Returns:
        Rate limit key string.
    """
    # Only the subject is needed for keying. Full auth validation happens
    # in deps.py.
    token = session_token_from_request(request)
    if token:
        try:
            claims = decode_session(token)
            return f"user:{claims.user_id}"
        except jwt.InvalidTokenError:
            pass

    return f"unauth:{get_remote_address(request)}"


# Global limiter instance
# Configured with in-memory storage (suitable for single-instance deployment)
# For multi-instance, configure Redis storage via RATELIMIT_STORAGE_URL
limiter = Limiter(
    key_func=_rate_limit_key_func,
    enabled=settings.rate_limit_enabled,
)


def rate_limit_exceeded_handler(
    _request: Request,
    exc: RateLimitExceeded,
) -> Response:
    """Handle rate limit exceeded errors.

    Security: Returns 429 Too Many Requests with standard error envelope.

    Args:
        request: The incoming request.
        exc: The rate limit exception.

    Returns:
        JSONResponse with 429 status and retry-after header.
    """
    # Window length of the exceeded limit, e.g. 3600 for "5 per 1 hour".
    # Fallback to 60 seconds if it can't be read.
    try:
        retry_after = str(int(exc.limit.limit.get_expiry()))
    except (AttributeError, TypeError, ValueError):
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
