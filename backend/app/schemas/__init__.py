"""Pydantic request/response schemas for API endpoints."""

from app.schemas.auth import (
    DismissUpgradePromptRequest,
    GuestAuthRequest,
    GuestAuthResponse,
    MagicLinkRequest,
    MessageResponse,
    SessionResponse,
    UpdateProfileRequest,
    UserResponse,
    VerifyMagicLinkRequest,
)

__all__ = [
    "DismissUpgradePromptRequest",
    "GuestAuthRequest",
    "GuestAuthResponse",
    "MagicLinkRequest",
    "MessageResponse",
    "SessionResponse",
    "UpdateProfileRequest",
    "UserResponse",
    "VerifyMagicLinkRequest",
]
