"""Claim propagation.

A role lives in two places: the identity account's signed claim set (what
ID tokens carry and what authorization checks read) and the user profile
(what the admin UI shows and edits). apply_role writes both, claim first,
each in its own commit.

If the claim write fails nothing else happens. If the claim write succeeds
and the profile write fails, the claim stays written and the caller gets
Internal; the claim is the authoritative copy, and reconcile_roles brings
stale profiles back in line.
"""

from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from securemind.auth import identity
from securemind.db.models import IdentityAccount, UserProfile, utc_now
from securemind.errors import IdentityProviderError, Internal, translate_identity_error
from securemind.logging_config import get_logger
from securemind.roles import Role, claims_for_role, is_valid_role, normalize_role

logger = get_logger(__name__)

PROFILE_PATCH_FIELDS = frozenset(
    {
        "email",
        "first_name",
        "last_name",
        "disabled",
        "employee_id",
        "linked_employee_path",
        "created_by",
        "updated_by",
    }
)


async def upsert_profile(db: AsyncSession, uid: str, fields: dict[str, Any]) -> UserProfile:
    """Merge fields into the profile at uid, creating it if absent."""
    profile = await db.get(UserProfile, uid)
    now = utc_now()
    if profile is None:
        profile = UserProfile(uid=uid, created_at=now)
        db.add(profile)
    for key, value in fields.items():
        setattr(profile, key, value)
    profile.updated_at = now
    await db.commit()
    return profile


async def apply_role(
    db: AsyncSession,
    uid: str,
    role: Role,
    profile_patch: dict[str, Any] | None = None,
    *,
    legacy_flag: bool = False,
    revoke_sessions: bool = False,
) -> UserProfile:
    """Make the account's role claim and its profile both say role.

    Args:
        db: Database session
        uid: Account uid
        role: Resolved role
        profile_patch: Extra profile fields to merge in the same write
        legacy_flag: Also embed {role: True} in the claim set
        revoke_sessions: Invalidate existing sessions after the claim write,
            so the new claim takes effect on the next sign-in or refresh

    Raises:
        NotFound: The account does not exist (nothing written)
        Internal: The claim or profile write failed
    """
    patch = dict(profile_patch or {})
    unknown = set(patch) - PROFILE_PATCH_FIELDS
    if unknown:
        raise ValueError(f"Unsupported profile fields: {sorted(unknown)}")

    try:
        await identity.set_custom_claims(db, uid, claims_for_role(role, legacy_flag=legacy_flag))
        if revoke_sessions:
            revoked = await identity.revoke_refresh_tokens(db, uid)
            logger.info("Sessions revoked after role change", uid=uid, count=revoked)
    except IdentityProviderError as e:
        raise translate_identity_error(e) from e
    except SQLAlchemyError as e:
        await db.rollback()
        raise Internal(f"Failed to set role claim: {e}") from e

    try:
        profile = await upsert_profile(db, uid, {"role": role.value, **patch})
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Profile write failed after claim write", uid=uid, role=role, error=str(e))
        raise Internal(f"Role claim applied but profile update failed: {e}") from e

    logger.info("Role applied", uid=uid, role=role)
    return profile


@dataclass
class RoleDrift:
    """A claim/profile disagreement found by reconcile_roles."""

    uid: str
    claim_role: str | None
    profile_role: str | None
    repaired_to: str | None = None


async def reconcile_roles(db: AsyncSession, *, dry_run: bool = False) -> list[RoleDrift]:
    """Compare every account's role claim with its profile and repair drift.

    The claim wins when it holds a valid role. An account whose claim is
    missing or invalid gets its claim re-propagated from the profile role
    (or Role.USER when there is no profile).
    """
    result = await db.execute(
        select(IdentityAccount, UserProfile).outerjoin(
            UserProfile, UserProfile.uid == IdentityAccount.uid
        )
    )
    drifts: list[RoleDrift] = []

    for account, profile in result.all():
        claim_role = (account.custom_claims or {}).get("role")
        profile_role = profile.role if profile is not None else None
        if is_valid_role(claim_role) and claim_role == profile_role:
            continue

        drift = RoleDrift(uid=account.uid, claim_role=claim_role, profile_role=profile_role)
        drifts.append(drift)
        if dry_run:
            continue

        if is_valid_role(claim_role):
            target = normalize_role(claim_role)
            await upsert_profile(
                db,
                account.uid,
                {"role": target.value}
                if profile is not None
                else {"role": target.value, "email": account.email, "disabled": account.disabled},
            )
        else:
            target = normalize_role(profile_role)
            await apply_role(db, account.uid, target)
        drift.repaired_to = target.value
        logger.warning(
            "Repaired role drift",
            uid=account.uid,
            claim_role=claim_role,
            profile_role=profile_role,
            repaired_to=target,
        )

    return drifts
