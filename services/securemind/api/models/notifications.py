"""Notification and fact models."""

from uuid import UUID

from pydantic import Field

from .common import SecureMindBaseModel


class BroadcastFactRequest(SecureMindBaseModel):
    """Fact broadcast. target_type is one of all, roles, users."""

    fact_id: str = ""
    title: str = ""
    message: str = ""
    target_type: str = "all"
    roles: list[str] = Field(default_factory=list)
    user_ids: list[str] = Field(default_factory=list)


class BroadcastPolicyRequest(SecureMindBaseModel):
    policy_id: str = ""
    title: str = ""
    roles: list[str] = Field(default_factory=list)


class PublishFactRequest(SecureMindBaseModel):
    message: str = ""
    roles: list[str] | None = None
    priority: str = "normal"
    type: str = "security"


class PublishFactResponse(SecureMindBaseModel):
    id: UUID
