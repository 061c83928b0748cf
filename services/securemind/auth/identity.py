"""Identity provider accounts.

Every write here is committed before returning, the way a call to an
external identity service is durable on its own. Callers that go on to
write the user profile do so in a later, separate commit.

Failures are raised as IdentityProviderError with a stable code; callers
translate them with securemind.errors.translate_identity_error.
"""

from typing import Any

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from securemind.auth.passwords import hash_password, verify_password
from securemind.auth.sessions import revoke_all_user_sessions
from securemind.config import settings
from securemind.db.models import IdentityAccount, utc_now
from securemind.errors import (
    EMAIL_EXISTS,
    INVALID_EMAIL,
    INVALID_PASSWORD,
    USER_DISABLED,
    USER_NOT_FOUND,
    WEAK_PASSWORD,
    IdentityProviderError,
)
from securemind.logging_config import get_logger

logger = get_logger(__name__)

_UPDATABLE_FIELDS = frozenset({"email", "display_name", "disabled", "password", "email_verified"})


def _normalize_email(email: str) -> str:
    email = (email or "").strip()
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError as e:
        raise IdentityProviderError(INVALID_EMAIL, str(e)) from e
    return email.lower()


def _check_password(password: str) -> None:
    if len(password) < settings.auth.min_password_length:
        raise IdentityProviderError(
            WEAK_PASSWORD,
            f"Password must be at least {settings.auth.min_password_length} characters",
        )


async def get_account(db: AsyncSession, uid: str) -> IdentityAccount | None:
    return await db.get(IdentityAccount, uid)


async def get_account_by_email(db: AsyncSession, email: str) -> IdentityAccount | None:
    result = await db.execute(
        select(IdentityAccount).where(IdentityAccount.email == email.strip().lower())
    )
    return result.scalar_one_or_none()


async def _require_account(db: AsyncSession, uid: str) -> IdentityAccount:
    account = await get_account(db, uid)
    if account is None:
        raise IdentityProviderError(USER_NOT_FOUND, f"No account for uid {uid}")
    return account


async def create_account(
    db: AsyncSession,
    *,
    email: str,
    password: str,
    display_name: str | None = None,
    disabled: bool = False,
    email_verified: bool = False,
) -> IdentityAccount:
    """Create an account. Raises on malformed email, weak password or duplicate email."""
    normalized = _normalize_email(email)
    _check_password(password)

    if await get_account_by_email(db, normalized) is not None:
        raise IdentityProviderError(EMAIL_EXISTS, f"Email {normalized} already in use")

    account = IdentityAccount(
        email=normalized,
        password_hash=hash_password(password),
        display_name=display_name,
        disabled=disabled,
        email_verified=email_verified,
        custom_claims={},
    )
    db.add(account)
    try:
        await db.commit()
    except IntegrityError as e:
        # Lost a race with a concurrent signup for the same email
        await db.rollback()
        raise IdentityProviderError(EMAIL_EXISTS, f"Email {normalized} already in use") from e

    logger.info("Identity account created", uid=account.uid)
    return account


async def update_account(db: AsyncSession, uid: str, **fields: Any) -> IdentityAccount:
    """Update email, display_name, disabled, email_verified and/or password."""
    unknown = set(fields) - _UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Unsupported account fields: {sorted(unknown)}")

    account = await _require_account(db, uid)

    if "email" in fields:
        normalized = _normalize_email(fields["email"])
        if normalized != account.email:
            existing = await get_account_by_email(db, normalized)
            if existing is not None:
                raise IdentityProviderError(EMAIL_EXISTS, f"Email {normalized} already in use")
            account.email = normalized
    if "password" in fields:
        _check_password(fields["password"])
        account.password_hash = hash_password(fields["password"])
    if "display_name" in fields:
        account.display_name = fields["display_name"]
    if "disabled" in fields:
        account.disabled = bool(fields["disabled"])
    if "email_verified" in fields:
        account.email_verified = bool(fields["email_verified"])

    await db.commit()
    logger.info("Identity account updated", uid=uid, fields=sorted(fields))
    return account


async def delete_account(db: AsyncSession, uid: str) -> None:
    """Delete an account and revoke its sessions."""
    account = await _require_account(db, uid)
    await revoke_all_user_sessions(uid)
    await db.delete(account)
    await db.commit()
    logger.info("Identity account deleted", uid=uid)


async def set_custom_claims(db: AsyncSession, uid: str, claims: dict[str, Any]) -> None:
    """Replace the account's custom claims. Keys not in claims are dropped."""
    account = await _require_account(db, uid)
    account.custom_claims = dict(claims)
    await db.commit()
    logger.info("Custom claims set", uid=uid, role=claims.get("role"))


async def revoke_refresh_tokens(db: AsyncSession, uid: str) -> int:
    """Invalidate every session of the account. Returns the number revoked."""
    account = await _require_account(db, uid)
    account.tokens_valid_after = utc_now()
    await db.commit()
    return await revoke_all_user_sessions(uid)


async def authenticate(db: AsyncSession, email: str, password: str) -> IdentityAccount:
    """Password sign-in."""
    account = await get_account_by_email(db, email)
    if account is None:
        raise IdentityProviderError(USER_NOT_FOUND, "No account for that email")
    if not account.password_hash or not verify_password(password, account.password_hash):
        raise IdentityProviderError(INVALID_PASSWORD, "Incorrect password")
    if account.disabled:
        raise IdentityProviderError(USER_DISABLED, "Account is disabled")

    account.last_login_at = utc_now()
    await db.commit()
    return account
