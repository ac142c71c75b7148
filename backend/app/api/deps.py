"""Shared dependencies for API endpoints.

Authentication dependencies: the session credential is read from the
``Authorization: Bearer`` header (mobile) or the httpOnly cookie (web).

WHY DEPENDENCY INJECTION:
- Consistent auth across all endpoints
- Testable with overridden dependencies
"""

import uuid
from typing import Annotated

import jwt
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import decode_session, session_token_from_request
from app.core.database import get_db
from app.core.errors import UnauthorizedError
from app.models import User
from app.repositories.user_repository import UserRepository


async def get_current_user_id(request: Request) -> uuid.UUID:
    """Get current user ID from the presented session credential.

    Validation steps:
    1. Read JWT from bearer header or cookie
    2. Decode + verify signature (HS256)
    3. Verify exp, aud, iss claims
    4. Extract sub as UUID

    Security: The 401 is intentionally vague; it never says WHY auth
    failed (expired, bad signature, etc.).

    Args:
        request: HTTP request (injected by FastAPI).

    Returns:
        UUID of the current authenticated user.

    Raises:
        UnauthorizedError: 401 for any auth failure.
    """
    token = session_token_from_request(request)
    if not token:
        raise UnauthorizedError()

    try:
        claims = decode_session(token)
    except jwt.InvalidTokenError as exc:
        raise UnauthorizedError() from exc

    return claims.user_id


async def get_current_user(
    user_id: Annotated[uuid.UUID, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """Get full User object for current user.

    Args:
        user_id: Current user ID (injected by get_current_user_id).
        db: Database session (injected).

    Returns:
        User object for the current user.

    Raises:
        UnauthorizedError: 401 if user not found (deleted account).
    """
    user = await UserRepository.get_by_id(db, user_id)
    if user is None:
        raise UnauthorizedError()
    return user


# Reusable type aliases for dependency injection
CurrentUserId = Annotated[uuid.UUID, Depends(get_current_user_id)]
CurrentUser = Annotated[User, Depends(get_current_user)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
