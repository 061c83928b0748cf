"""Self-service role assignment: first sign-in and registration completion."""

from sqlalchemy import or_, update
from sqlalchemy.ext.asyncio import AsyncSession

from securemind.auth.sessions import IdentityToken
from securemind.db.models import Employee, IdentityAccount, Preapproval, utc_now
from securemind.errors import Conflict
from securemind.logging_config import get_logger
from securemind.roles import Role
from securemind.services.audit_service import log_audit_event
from securemind.services.claim_propagator import apply_role
from securemind.services.role_resolver import (
    resolve_on_first_sign_in,
    resolve_on_registration_completion,
)

logger = get_logger(__name__)


async def handle_user_created(db: AsyncSession, account: IdentityAccount) -> Role:
    """First sign-in trigger for a newly created account.

    Applies the preapproved role (or Role.USER) with a blank profile and
    marks the preapproval consumed so it is never applied twice.
    """
    role = await resolve_on_first_sign_in(db, account.uid)

    await apply_role(
        db,
        account.uid,
        role,
        {
            "email": account.email,
            "first_name": None,
            "last_name": None,
            "disabled": False,
        },
    )

    preapproval = await db.get(Preapproval, account.uid)
    if preapproval is not None and preapproval.consumed_at is None:
        preapproval.consumed_at = utc_now()
        await db.commit()
        logger.info("Preapproval consumed", uid=account.uid, role=role)

    return role


async def link_employee(db: AsyncSession, employee_id: str, uid: str) -> None:
    """Link an employee record to an account.

    The update only matches an unlinked record (or one already linked to
    this uid), so concurrent registrations cannot both claim it.

    Raises:
        Conflict: The record is linked to a different account
    """
    result = await db.execute(
        update(Employee)
        .where(
            Employee.employee_id == employee_id,
            or_(Employee.linked_uid.is_(None), Employee.linked_uid == uid),
        )
        .values(linked_uid=uid, linked_at=utc_now())
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    if result.rowcount == 0:
        raise Conflict("Employee ID is already linked to another account")


async def complete_registration(
    db: AsyncSession,
    caller: IdentityToken,
    employee_id: str,
    first_name: str,
    last_name: str,
) -> Role:
    """Assign the caller the role recorded for their employee id.

    Raises:
        InvalidArgument: Missing field, or the employee record has no role
        NotFound: Unknown employee id
        Conflict: The employee record already belongs to another account
    """
    resolution = await resolve_on_registration_completion(
        db, caller.uid, employee_id, first_name, last_name
    )
    employee = resolution.employee

    if employee.linked_uid is not None and employee.linked_uid != caller.uid:
        raise Conflict("Employee ID is already linked to another account")

    # The link decides ownership; no role is granted unless it succeeds
    await link_employee(db, employee.employee_id, caller.uid)
    await apply_role(
        db,
        caller.uid,
        resolution.role,
        {
            "email": caller.email,
            "first_name": first_name.strip(),
            "last_name": last_name.strip(),
            "employee_id": employee.employee_id,
            "linked_employee_path": f"employees/{employee.employee_id}",
        },
    )

    await log_audit_event(
        db,
        event_type="registration",
        action="registration_completed",
        actor_id=caller.uid,
        target_type="employee",
        target_id=employee.employee_id,
        details={"role": resolution.role.value},
    )
    return resolution.role
