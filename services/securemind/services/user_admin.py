"""Admin user management.

Shared by the callable and HTTP transports. The caller's admin role is
checked by the transport before any of these run; everything here assumes
an authorized actor and validates its payload before the first write.
"""

from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from securemind.auth import identity
from securemind.auth.passwords import generate_temporary_password
from securemind.auth.sessions import IdentityToken
from securemind.config import settings
from securemind.db.models import Employee, UserProfile
from securemind.errors import (
    USER_NOT_FOUND,
    Conflict,
    IdentityProviderError,
    InvalidArgument,
    NotFound,
    translate_identity_error,
)
from securemind.logging_config import get_logger
from securemind.roles import Role, normalize_role
from securemind.services.audit_service import log_audit_event
from securemind.services.claim_propagator import apply_role, upsert_profile
from securemind.services.registration import link_employee
from securemind.services.role_resolver import resolve_for_admin_assignment

logger = get_logger(__name__)


@dataclass
class CreatedUser:
    uid: str
    role: Role


@dataclass
class DeleteOutcome:
    """Result of a best-effort delete.

    Callers that only need success can ignore it; the outcome still says
    which parts were removed and why any were not.
    """

    uid: str
    account_deleted: bool = False
    profile_deleted: bool = False
    failures: list[str] = field(default_factory=list)

    @property
    def fully_deleted(self) -> bool:
        return self.account_deleted and self.profile_deleted


def _blank(value: str | None) -> bool:
    return not (value or "").strip()


async def _employee_for_new_user(db: AsyncSession, employee_id: str, desired: Role) -> Employee:
    employee = await db.get(Employee, employee_id)
    if employee is None:
        raise NotFound("Employee ID not found")
    if _blank(employee.role):
        raise InvalidArgument(f"Employee record {employee_id} has no role set")

    employee_role = normalize_role(employee.role)
    if employee_role != desired:
        raise InvalidArgument(
            f"Role mismatch. Employee record shows role: {employee_role}, "
            f"but requested: {desired}"
        )
    if employee.linked_uid is not None:
        raise Conflict("Employee ID is already linked to another account")
    return employee


async def _claim_employee(db: AsyncSession, employee_id: str, uid: str) -> None:
    """Link the employee record to a just-created account.

    Another account may have linked the record since it was checked; the
    new account is then deleted so no unlinked account is left behind.
    """
    try:
        await link_employee(db, employee_id, uid)
    except Conflict:
        logger.warning("Employee linked concurrently, removing new account", uid=uid)
        await identity.delete_account(db, uid)
        raise


async def create_user(
    db: AsyncSession,
    actor: IdentityToken,
    *,
    email: str,
    role: str | None = None,
    password: str | None = None,
    first_name: str | None = None,
    last_name: str | None = None,
    employee_id: str | None = None,
    require_employee_link: bool = False,
) -> CreatedUser:
    """Create an account with a role.

    With require_employee_link (the HTTP form) every field is required and
    the employee record must exist, carry exactly the requested role and be
    unlinked; the new account is linked to it. Otherwise only email is
    required and a temporary password is generated when none is given.
    """
    if require_employee_link:
        if any(_blank(v) for v in (email, password, first_name, last_name, employee_id, role)):
            raise InvalidArgument(
                "Missing required fields: email, password, firstName, lastName, employeeId, role"
            )
    elif _blank(email):
        raise InvalidArgument("email required")

    desired = resolve_for_admin_assignment(role)
    employee = None
    if require_employee_link:
        employee = await _employee_for_new_user(db, employee_id.strip(), desired)

    first = (first_name or "").strip() or None
    last = (last_name or "").strip() or None
    display_name = " ".join(p for p in (first, last) if p) or None

    try:
        account = await identity.create_account(
            db,
            email=email,
            password=password or generate_temporary_password(),
            display_name=display_name,
        )
    except IdentityProviderError as e:
        logger.warning("Account creation rejected", code=e.code, error=e.message)
        raise translate_identity_error(e) from e

    if employee is not None:
        await _claim_employee(db, employee.employee_id, account.uid)

    patch = {"email": account.email, "disabled": False, "created_by": actor.uid}
    if first:
        patch["first_name"] = first
    if last:
        patch["last_name"] = last
    if employee is not None:
        patch["employee_id"] = employee.employee_id

    await apply_role(
        db,
        account.uid,
        desired,
        patch,
        legacy_flag=require_employee_link and settings.auth.legacy_role_flag_claim,
    )

    logger.info("User created", uid=account.uid, role=desired, created_by=actor.uid)
    await log_audit_event(
        db,
        event_type="admin",
        action="user_created",
        actor_id=actor.uid,
        target_type="user",
        target_id=account.uid,
        details={"role": desired.value, "employee_id": employee_id if employee else None},
    )
    return CreatedUser(uid=account.uid, role=desired)


async def update_user(
    db: AsyncSession,
    actor: IdentityToken,
    uid: str,
    *,
    disabled: bool | None = None,
    role: str | None = None,
    first_name: str | None = None,
    last_name: str | None = None,
    email: str | None = None,
) -> list[str]:
    """Apply the supplied fields to an account and its profile.

    Returns the names of the fields that were changed.
    """
    if _blank(uid):
        raise InvalidArgument("uid is required")
    if await identity.get_account(db, uid) is None:
        raise NotFound("User not found")

    account_updates: dict[str, object] = {}
    profile_updates: dict[str, object] = {}
    changed: list[str] = []

    if disabled is not None:
        account_updates["disabled"] = disabled
        profile_updates["disabled"] = disabled
        changed.append("disabled")
    if not _blank(first_name):
        profile_updates["first_name"] = first_name.strip()
        changed.append("firstName")
    if not _blank(last_name):
        profile_updates["last_name"] = last_name.strip()
        changed.append("lastName")
    if not _blank(email):
        account_updates["email"] = email
        profile_updates["email"] = email.strip().lower()
        changed.append("email")

    if "first_name" in profile_updates or "last_name" in profile_updates:
        current = await db.get(UserProfile, uid)
        new_first = profile_updates.get("first_name") or (current and current.first_name) or ""
        new_last = profile_updates.get("last_name") or (current and current.last_name) or ""
        display_name = f"{new_first} {new_last}".strip()
        if display_name:
            account_updates["display_name"] = display_name
            changed.append("displayName")

    if account_updates:
        try:
            await identity.update_account(db, uid, **account_updates)
        except IdentityProviderError as e:
            raise translate_identity_error(e) from e

    if not _blank(role):
        new_role = resolve_for_admin_assignment(role)
        profile_updates["updated_by"] = actor.uid
        await apply_role(
            db,
            uid,
            new_role,
            profile_updates,
            legacy_flag=settings.auth.legacy_role_flag_claim,
        )
        changed.append("role")
    elif profile_updates:
        profile_updates["updated_by"] = actor.uid
        await upsert_profile(db, uid, profile_updates)

    logger.info("User updated", uid=uid, fields=changed, updated_by=actor.uid)
    await log_audit_event(
        db,
        event_type="admin",
        action="user_updated",
        actor_id=actor.uid,
        target_type="user",
        target_id=uid,
        details={"fields": changed},
    )
    return changed


async def delete_user(db: AsyncSession, actor: IdentityToken, uid: str) -> DeleteOutcome:
    """Delete an account and its profile, best effort.

    Each half is attempted regardless of the other. A part that is already
    gone counts as deleted, so repeating the call succeeds.
    """
    if _blank(uid):
        raise InvalidArgument("uid is required")

    outcome = DeleteOutcome(uid=uid)

    try:
        await identity.delete_account(db, uid)
        outcome.account_deleted = True
    except IdentityProviderError as e:
        if e.code == USER_NOT_FOUND:
            outcome.account_deleted = True
        else:
            outcome.failures.append(f"account: {e.message}")
    except Exception as e:
        await db.rollback()
        outcome.failures.append(f"account: {e}")

    try:
        profile = await db.get(UserProfile, uid)
        if profile is not None:
            await db.delete(profile)
            await db.commit()
        outcome.profile_deleted = True
    except Exception as e:
        await db.rollback()
        outcome.failures.append(f"profile: {e}")

    if outcome.failures:
        logger.warning("User partially deleted", uid=uid, failures=outcome.failures)
    else:
        logger.info("User deleted", uid=uid, deleted_by=actor.uid)

    try:
        await log_audit_event(
            db,
            event_type="admin",
            action="user_deleted",
            actor_id=actor.uid,
            target_type="user",
            target_id=uid,
            details={"fully_deleted": outcome.fully_deleted, "failures": outcome.failures},
        )
    except Exception:
        await db.rollback()
        logger.warning("Failed to audit user deletion", uid=uid, exc_info=True)
    return outcome


async def set_user_role(db: AsyncSession, actor: IdentityToken, uid: str, role: str | None) -> Role:
    """Change an account's role and force it to sign in again."""
    if _blank(uid):
        raise InvalidArgument("uid required")

    new_role = resolve_for_admin_assignment(role)
    await apply_role(db, uid, new_role, {"updated_by": actor.uid}, revoke_sessions=True)

    await log_audit_event(
        db,
        event_type="admin",
        action="role_set",
        actor_id=actor.uid,
        target_type="user",
        target_id=uid,
        details={"role": new_role.value},
    )
    return new_role
