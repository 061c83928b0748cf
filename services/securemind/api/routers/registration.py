"""Registration completion for a signed-in account."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from securemind.api.dependencies import get_current_identity
from securemind.api.models.registration import (
    CompleteRegistrationRequest,
    CompleteRegistrationResponse,
)
from securemind.auth.sessions import IdentityToken
from securemind.db.session import get_db
from securemind.services.registration import complete_registration

router = APIRouter(prefix="/registration", tags=["registration"])


@router.post("/complete", response_model=CompleteRegistrationResponse)
async def complete(
    body: CompleteRegistrationRequest,
    db: AsyncSession = Depends(get_db),
    caller: IdentityToken = Depends(get_current_identity),
) -> CompleteRegistrationResponse:
    """Take the role recorded for the caller's employee id.

    The new role is in the claim set from the next token refresh on.
    """
    role = await complete_registration(
        db, caller, body.employee_id, body.first_name, body.last_name
    )
    return CompleteRegistrationResponse(role=role)
