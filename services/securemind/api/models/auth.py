"""Authentication-related Pydantic models."""

from datetime import datetime

from pydantic import Field

from .common import SecureMindBaseModel


class SignupRequest(SecureMindBaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class LoginRequest(SecureMindBaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class RefreshRequest(SecureMindBaseModel):
    refresh_token: str = Field(..., min_length=1)


class LogoutRequest(SecureMindBaseModel):
    refresh_token: str = Field(..., min_length=1)


class TokenResponse(SecureMindBaseModel):
    """Response from sign-up, login and token refresh.

    The ID token is a bearer token for API calls; the refresh token is kept
    by the client to obtain a new ID token when it expires or a role changes.
    """

    uid: str
    email: str
    role: str | None = None
    id_token: str
    refresh_token: str
    expires_at: datetime


class GateResponse(SecureMindBaseModel):
    """Outcome of an authorization gate check."""

    state: str
    destination: str | None = None
    role: str | None = None
