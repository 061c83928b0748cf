"""
Bootstrap script for creating the initial admin account.

Idempotent: an existing account is kept and only its admin claim and
profile are (re)applied.
Run via: python -m securemind.cli.bootstrap

Reads configuration from environment variables:
  SECUREMIND_BOOTSTRAP_ADMIN_EMAIL    - Admin email (required)
  SECUREMIND_BOOTSTRAP_ADMIN_PASSWORD - Admin password (optional; generated if omitted)
  DATABASE_URL                        - PostgreSQL connection URL (from Helm)
"""

import asyncio
import logging
import os
import secrets
import sys

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from securemind.auth.passwords import hash_password
from securemind.db.models import IdentityAccount, UserProfile, utc_now
from securemind.roles import Role, claims_for_role

# Use stdlib logging; structlog isn't configured yet during bootstrap
logger = logging.getLogger("securemind.bootstrap")
logging.basicConfig(level=logging.INFO, format="%(message)s")


async def ensure_admin(session: AsyncSession, admin_email: str, admin_password: str) -> bool:
    """Create or repair the admin account. Returns True if the account was created."""
    result = await session.execute(
        select(IdentityAccount).where(IdentityAccount.email == admin_email)
    )
    account = result.scalar_one_or_none()
    created = account is None

    if account is None:
        account = IdentityAccount(
            email=admin_email,
            display_name="Admin",
            password_hash=hash_password(admin_password),
            email_verified=True,
            custom_claims=claims_for_role(Role.ADMIN),
        )
        session.add(account)
        await session.flush()
        logger.info("Created account: %s", admin_email)
    elif account.custom_claims.get("role") != Role.ADMIN:
        account.custom_claims = claims_for_role(Role.ADMIN)
        logger.info("Set admin claim on existing account %s", admin_email)
    else:
        logger.info("Account %s already exists with admin claim, skipping", admin_email)

    profile = await session.get(UserProfile, account.uid)
    if profile is None:
        session.add(
            UserProfile(
                uid=account.uid,
                email=admin_email,
                role=Role.ADMIN.value,
                created_by="system@bootstrap",
            )
        )
        logger.info("Created admin profile for %s", admin_email)
    elif profile.role != Role.ADMIN:
        profile.role = Role.ADMIN.value
        profile.updated_at = utc_now()
        logger.info("Set admin role on profile for %s", admin_email)

    return created


async def bootstrap() -> None:
    admin_email = os.environ.get("SECUREMIND_BOOTSTRAP_ADMIN_EMAIL", "").strip().lower()
    admin_password = os.environ.get("SECUREMIND_BOOTSTRAP_ADMIN_PASSWORD", "").strip()
    database_url = os.environ.get("DATABASE_URL", "").strip()

    if not admin_email:
        logger.error("SECUREMIND_BOOTSTRAP_ADMIN_EMAIL is required")
        sys.exit(1)

    if not database_url:
        logger.error("DATABASE_URL is required")
        sys.exit(1)

    generated = False
    if not admin_password:
        admin_password = secrets.token_urlsafe(24)
        generated = True

    engine = create_async_engine(database_url, echo=False)

    async with engine.begin() as conn:
        # Verify connection
        await conn.execute(text("SELECT 1"))
        logger.info("Connected to database")

    async with AsyncSession(engine, expire_on_commit=False) as session:
        async with session.begin():
            created = await ensure_admin(session, admin_email, admin_password)

    if created and generated:
        logger.info("Generated password: %s", admin_password)
        logger.warning("IMPORTANT: Save this password now. It will not be shown again.")

    await engine.dispose()
    logger.info("Bootstrap complete")


if __name__ == "__main__":
    asyncio.run(bootstrap())
