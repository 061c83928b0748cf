"""SecureMind API Pydantic models."""

from .auth import TokenResponse
from .common import CountResponse, CursorPage, OkResponse, PaginationParams
from .notifications import BroadcastFactRequest, BroadcastPolicyRequest, PublishFactRequest
from .registration import CompleteRegistrationRequest
from .users import (
    CreateUserRequest,
    DeleteUserRequest,
    SetRoleRequest,
    UpdateUserRequest,
    UserProfileResponse,
)

__all__ = [
    # Auth
    "TokenResponse",
    # Common
    "CountResponse",
    "CursorPage",
    "OkResponse",
    "PaginationParams",
    # Notifications
    "BroadcastFactRequest",
    "BroadcastPolicyRequest",
    "PublishFactRequest",
    # Registration
    "CompleteRegistrationRequest",
    # Users
    "CreateUserRequest",
    "DeleteUserRequest",
    "SetRoleRequest",
    "UpdateUserRequest",
    "UserProfileResponse",
]
