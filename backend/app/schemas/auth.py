"""Identity request/response schemas.

Request models only check shape (presence and type). Business validation
(trimmed emptiness, email syntax) runs in the services so the same rules
apply to every caller and report structured field errors.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from app.models.user import User

# =============================================================================
# Requests
# =============================================================================


class GuestAuthRequest(BaseModel):
    """Request body for POST /auth/guest."""

    model_config = ConfigDict(extra="forbid")

    name: str
    device_id: str


class MagicLinkRequest(BaseModel):
    """Request body for POST /auth/magic-link.

    ``device_id`` turns the request into a claim of that device's guest.
    """

    model_config = ConfigDict(extra="forbid")

    email: str
    device_id: str | None = None


class VerifyMagicLinkRequest(BaseModel):
    """Request body for POST /auth/magic-link/verify."""

    model_config = ConfigDict(extra="forbid")

    token: str


class DismissUpgradePromptRequest(BaseModel):
    """Request body for POST /auth/guest/dismiss-upgrade-prompt."""

    model_config = ConfigDict(extra="forbid")

    device_id: str


class UpdateProfileRequest(BaseModel):
    """Request body for PATCH /auth/profile."""

    model_config = ConfigDict(extra="forbid")

    display_name: str


# =============================================================================
# Responses
# =============================================================================


class UserResponse(BaseModel):
    """Public view of an identity.

    ``device_id`` is deliberately absent: it is a bearer-like anchor and is
    never echoed back.
    """

    id: uuid.UUID
    kind: str
    email: str | None
    display_name: str
    auth_provider: str
    session_count: int
    created_at: datetime | None = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        """Build the response view from an ORM user."""
        return cls(
            id=user.id,
            kind=user.kind,
            email=user.email,
            display_name=user.display_name,
            auth_provider=user.auth_provider,
            session_count=user.session_count,
            created_at=user.created_at,
        )


class GuestAuthResponse(BaseModel):
    """Response data for POST /auth/guest."""

    user: UserResponse
    access_token: str
    show_upgrade_prompt: bool


class SessionResponse(BaseModel):
    """Response data for a completed magic link sign-in."""

    user: UserResponse
    access_token: str
    outcome: str


class MessageResponse(BaseModel):
    """Response data carrying only an acknowledgement message."""

    message: str
