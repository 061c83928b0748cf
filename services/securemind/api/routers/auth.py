"""Authentication router.

Consumers:
    Web UI (login and register pages):
        POST /api/v1/auth/signup   — create account, runs the first sign-in trigger
        POST /api/v1/auth/login    — password sign-in
        POST /api/v1/auth/token    — refresh: new ID token with current claims
        POST /api/v1/auth/logout   — revoke the refresh session

Changes to response shapes must be coordinated with web UI auth code.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from securemind.api.models.auth import (
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    SignupRequest,
    TokenResponse,
)
from securemind.api.models.common import OkResponse
from securemind.db.session import get_db
from securemind.errors import Unauthenticated
from securemind.logging_config import get_logger
from securemind.services import login_service
from securemind.services.audit_service import log_audit_event
from securemind.services.login_service import LoginResult

router = APIRouter(prefix="/auth", tags=["auth"])
logger = get_logger(__name__)


def _token_response(result: LoginResult) -> TokenResponse:
    return TokenResponse(
        uid=result.uid,
        email=result.email,
        role=result.role,
        id_token=result.id_token,
        refresh_token=result.refresh_token,
        expires_at=result.expires_at,
    )


@router.post("/signup", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def signup(body: SignupRequest, db: AsyncSession = Depends(get_db)) -> TokenResponse:
    result, role = await login_service.sign_up(db, email=body.email, password=body.password)
    await log_audit_event(
        db,
        event_type="auth",
        action="signup",
        actor_id=result.uid,
        details={"role": role.value},
    )
    return _token_response(result)


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)) -> TokenResponse:
    try:
        result = await login_service.sign_in(db, body.email, body.password)
    except Unauthenticated as e:
        await log_audit_event(
            db,
            event_type="auth",
            action="login_failed",
            actor_id=body.email,
            success=False,
            error_message=e.message,
        )
        raise

    await log_audit_event(
        db,
        event_type="auth",
        action="login",
        actor_id=result.uid,
        details={"role": result.role},
    )
    return _token_response(result)


@router.post("/token", response_model=TokenResponse)
async def refresh_token(body: RefreshRequest, db: AsyncSession = Depends(get_db)) -> TokenResponse:
    """Exchange a refresh token for a new ID token.

    The new token carries the account's claims as they are now, which is
    how a role change reaches an already signed-in client.
    """
    return _token_response(await login_service.refresh(db, body.refresh_token))


@router.post("/logout", response_model=OkResponse)
async def logout(body: LogoutRequest) -> OkResponse:
    revoked = await login_service.sign_out(body.refresh_token)
    logger.info("Logout", revoked=revoked)
    return OkResponse()
