"""Sign-up, sign-in and token refresh.

Signing in opens a refresh session in Redis and mints an ID token carrying
the account's custom claims at that moment. A refresh re-reads the claims,
so a role change reaches the client on its next refresh.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from securemind.auth import identity
from securemind.auth.sessions import (
    Session,
    _should_refresh_session,
    create_session,
    get_session,
    refresh_session,
    revoke_session,
)
from securemind.auth.tokens import create_id_token
from securemind.config import settings
from securemind.db.models import IdentityAccount, utc_now
from securemind.errors import (
    USER_DISABLED,
    IdentityProviderError,
    Unauthenticated,
    translate_identity_error,
)
from securemind.logging_config import get_logger
from securemind.roles import Role
from securemind.services.registration import handle_user_created

logger = get_logger(__name__)


@dataclass
class LoginResult:
    """Tokens handed to a client after sign-in or refresh."""

    uid: str
    email: str
    role: str | None
    id_token: str
    refresh_token: str
    expires_at: datetime


def _issued_before_revocation(account: IdentityAccount, session: Session) -> bool:
    cutoff = account.tokens_valid_after
    if cutoff is None:
        return False
    if cutoff.tzinfo is None:
        cutoff = cutoff.replace(tzinfo=UTC)
    return datetime.fromisoformat(session.created_at) < cutoff


def _mint(account: IdentityAccount, session: Session) -> LoginResult:
    expires_at = utc_now() + timedelta(minutes=settings.auth.id_token_ttl_minutes)
    claims = dict(account.custom_claims or {})
    id_token = create_id_token(
        account.uid,
        expires_at,
        email=account.email,
        session_id=session.session_id,
        claims=claims,
    )
    return LoginResult(
        uid=account.uid,
        email=account.email,
        role=claims.get("role"),
        id_token=id_token,
        refresh_token=session.token,
        expires_at=expires_at,
    )


async def sign_up(db: AsyncSession, *, email: str, password: str) -> tuple[LoginResult, Role]:
    """Create an account, run the first sign-in trigger and sign it in."""
    try:
        account = await identity.create_account(db, email=email, password=password)
    except IdentityProviderError as e:
        raise translate_identity_error(e) from e

    role = await handle_user_created(db, account)
    await db.refresh(account)

    session = await create_session(account.uid, account.email)
    logger.info("Account signed up", uid=account.uid, role=role)
    return _mint(account, session), role


async def sign_in(db: AsyncSession, email: str, password: str) -> LoginResult:
    """Password sign-in.

    Raises:
        Unauthenticated: Unknown email, wrong password or disabled account
    """
    try:
        account = await identity.authenticate(db, email, password)
    except IdentityProviderError as e:
        logger.info("Sign-in failed", code=e.code)
        if e.code == USER_DISABLED:
            raise Unauthenticated("Account is disabled") from e
        raise Unauthenticated("Invalid email or password") from e

    session = await create_session(account.uid, account.email)
    logger.info("Account signed in", uid=account.uid)
    return _mint(account, session)


async def refresh(db: AsyncSession, refresh_token: str) -> LoginResult:
    """Mint a new ID token from a live refresh session with current claims.

    Raises:
        Unauthenticated: Session unknown, opened before the account's
            tokens were revoked, or account gone or disabled
    """
    session = await get_session(refresh_token)
    if session is None:
        raise Unauthenticated("Invalid or expired refresh token")

    account = await identity.get_account(db, session.uid)
    if account is None or account.disabled:
        await revoke_session(refresh_token)
        raise Unauthenticated("Account is no longer active")
    if _issued_before_revocation(account, session):
        await revoke_session(refresh_token)
        raise Unauthenticated("Session has been revoked")

    if _should_refresh_session(session):
        await refresh_session(session)

    return _mint(account, session)


async def sign_out(refresh_token: str) -> bool:
    return await revoke_session(refresh_token)
