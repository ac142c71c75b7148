"""Magic link + session endpoints.

Passwordless sign-in and guest claiming via email magic links, logout,
current identity, and profile update.

Endpoints:
- POST /auth/magic-link: issue a verification token and email the link
- POST /auth/magic-link/verify: redeem a token, issue a session
- POST /auth/logout: clear auth cookie
- GET /auth/me: return current identity
- PATCH /auth/profile: update display name
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Request, status
from starlette.responses import Response

from app.api.deps import CurrentUser, CurrentUserId, DbSession
from app.core.auth import clear_auth_cookie, issue_session, set_auth_cookie
from app.core.email import send_verification_email
from app.core.errors import UnauthorizedError
from app.core.rate_limiting import limiter
from app.core.responses import DataResponse
from app.schemas.auth import (
    MagicLinkRequest,
    MessageResponse,
    SessionResponse,
    UpdateProfileRequest,
    UserResponse,
    VerifyMagicLinkRequest,
)
from app.services.identity_service import update_display_name
from app.services.verification_service import (
    issue_verification_token,
    redeem_verification_token,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ===================================================================
# POST /auth/magic-link
# ===================================================================


@router.post("/magic-link", status_code=status.HTTP_202_ACCEPTED)
@limiter.limit("5/hour")
async def request_magic_link(
    request: Request,  # noqa: ARG001
    body: MagicLinkRequest,
    background_tasks: BackgroundTasks,
    db: DbSession,
) -> DataResponse[MessageResponse]:
    """Request a magic link email.

    Sign-in/sign-up when ``device_id`` is omitted; with ``device_id`` the
    link claims that device's guest. The token is committed before the
    email is scheduled, so a delivered link is always redeemable.

    Rate limit: 5 per hour per IP.
    """
    issued = await issue_verification_token(
        db, email=body.email, device_id=body.device_id
    )
    await db.commit()

    # Send email as background task; response returns immediately
    background_tasks.add_task(
        send_verification_email,
        to_email=issued.email,
        token=issued.token,
        claim=issued.bound_user_id is not None,
    )

    return DataResponse(
        data=MessageResponse(message="Check your email for a sign-in link")
    )


# ===================================================================
# POST /auth/magic-link/verify
# ===================================================================


@router.post("/magic-link/verify")
@limiter.limit("10/minute")
async def verify_magic_link(
    request: Request,  # noqa: ARG001
    body: VerifyMagicLinkRequest,
    response: Response,
    db: DbSession,
) -> DataResponse[SessionResponse]:
    """Redeem a magic link token and issue a session.

    Marking the token used and creating/promoting the identity commit
    together. On failure nothing is committed.

    Rate limit: 10 per minute per IP.
    """
    redemption = await redeem_verification_token(db, token=body.token)
    await db.commit()

    access_token = issue_session(redemption.user)
    set_auth_cookie(response, access_token)
    # Prevent token leakage via Referer header
    response.headers["Referrer-Policy"] = "no-referrer"

    return DataResponse(
        data=SessionResponse(
            user=UserResponse.from_user(redemption.user),
            access_token=access_token,
            outcome=redemption.outcome,
        )
    )


# ===================================================================
# POST /auth/logout
# ===================================================================


@router.post("/logout")
async def logout(response: Response) -> DataResponse[MessageResponse]:
    """Clear auth cookie.

    No auth required; clears cookie regardless. Bearer credentials are
    simply discarded by the client.
    """
    clear_auth_cookie(response)
    return DataResponse(data=MessageResponse(message="Signed out"))


# ===================================================================
# GET /auth/me
# ===================================================================


@router.get("/me")
async def get_me(user: CurrentUser) -> DataResponse[UserResponse]:
    """Return the identity behind the presented credential.

    Returns 401 if no valid credential.
    """
    return DataResponse(data=UserResponse.from_user(user))


# ===================================================================
# PATCH /auth/profile
# ===================================================================


@router.patch("/profile")
async def update_profile(
    body: UpdateProfileRequest,
    user_id: CurrentUserId,
    db: DbSession,
) -> DataResponse[UserResponse]:
    """Update the display name. The only way a name changes."""
    user = await update_display_name(
        db, user_id=user_id, display_name=body.display_name
    )
    if user is None:
        raise UnauthorizedError()
    await db.commit()

    return DataResponse(data=UserResponse.from_user(user))
