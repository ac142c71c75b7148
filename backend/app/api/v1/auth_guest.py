"""Guest identity endpoints.

Endpoints:
- POST /auth/guest: resolve a device to its identity and issue a session
- POST /auth/guest/dismiss-upgrade-prompt: stop nudging a guest to claim
"""

from fastapi import APIRouter, Request
from starlette.responses import Response

from app.api.deps import DbSession
from app.core.auth import issue_session, set_auth_cookie
from app.core.rate_limiting import limiter
from app.core.responses import DataResponse
from app.schemas.auth import (
    DismissUpgradePromptRequest,
    GuestAuthRequest,
    GuestAuthResponse,
    MessageResponse,
    UserResponse,
)
from app.services.identity_service import (
    dismiss_upgrade_prompt,
    resolve_device_identity,
)

router = APIRouter()


@router.post("/guest")
@limiter.limit("30/minute")
async def guest_auth(
    request: Request,  # noqa: ARG001
    body: GuestAuthRequest,
    response: Response,
    db: DbSession,
) -> DataResponse[GuestAuthResponse]:
    """Authenticate a device as a guest.

    Idempotent per device: repeat calls return the same identity with its
    original name and a fresh credential.

    Rate limit: 30 per minute per IP.
    """
    resolution = await resolve_device_identity(
        db, device_id=body.device_id, display_name=body.name
    )
    await db.commit()

    user = resolution.user
    access_token = issue_session(user)
    set_auth_cookie(response, access_token)

    return DataResponse(
        data=GuestAuthResponse(
            user=UserResponse.from_user(user),
            access_token=access_token,
            show_upgrade_prompt=user.show_upgrade_prompt,
        )
    )


@router.post("/guest/dismiss-upgrade-prompt")
async def dismiss_prompt(
    body: DismissUpgradePromptRequest,
    db: DbSession,
) -> DataResponse[MessageResponse]:
    """Record the dismissal. Always acknowledged, even for unknown devices."""
    await dismiss_upgrade_prompt(db, device_id=body.device_id)
    await db.commit()
    return DataResponse(data=MessageResponse(message="Upgrade prompt dismissed"))
