"""Role resolution.

Produces the canonical Role for an account from one of three triggers:
first sign-in (preapprovals), registration completion (employee directory)
and admin assignment (caller-supplied string). Reads only; nothing here
writes to storage.
"""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from securemind.db.models import Employee, Preapproval
from securemind.errors import InvalidArgument, NotFound
from securemind.logging_config import get_logger
from securemind.roles import Role, normalize_role

logger = get_logger(__name__)


@dataclass
class RegistrationResolution:
    """Role resolved for a registration, plus the employee record it came from."""

    role: Role
    employee: Employee


async def resolve_on_first_sign_in(db: AsyncSession, uid: str) -> Role:
    """Role for a brand-new account.

    An unconsumed preapproval keyed by the uid supplies the role; anything
    else (no preapproval, consumed, or an unknown role) yields Role.USER.
    """
    preapproval = await db.get(Preapproval, uid)
    if preapproval is None:
        return Role.USER
    if preapproval.consumed_at is not None:
        logger.info("Ignoring consumed preapproval", uid=uid)
        return Role.USER
    return normalize_role(preapproval.role)


async def resolve_on_registration_completion(
    db: AsyncSession,
    uid: str,
    employee_id: str,
    first_name: str,
    last_name: str,
) -> RegistrationResolution:
    """Role for an account completing registration against an employee id.

    Raises:
        InvalidArgument: A required field is empty, or the employee record has no role
        NotFound: No employee record for employee_id
    """
    employee_id = (employee_id or "").strip()
    if not employee_id or not (first_name or "").strip() or not (last_name or "").strip():
        raise InvalidArgument("employeeId, firstName, lastName are required")

    employee = await db.get(Employee, employee_id)
    if employee is None:
        raise NotFound("Employee ID not found")

    if not (employee.role or "").strip():
        raise InvalidArgument(f"Employee record {employee_id} has no role set")

    role = normalize_role(employee.role)
    logger.debug("Resolved registration role", uid=uid, employee_id=employee_id, role=role)
    return RegistrationResolution(role=role, employee=employee)


def resolve_for_admin_assignment(requested_role: str | None) -> Role:
    """Role for an admin-supplied string. Unknown values coerce to Role.USER."""
    return normalize_role(requested_role)
