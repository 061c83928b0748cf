"""Authorization gate check for the web UI.

The UI calls this on every identity change before rendering a
role-restricted page and follows the returned destination when the state
is redirected.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from securemind.api.dependencies import get_optional_identity
from securemind.api.models.auth import GateResponse
from securemind.auth import identity as identity_provider
from securemind.auth.sessions import IdentityToken
from securemind.db.models import UserProfile
from securemind.db.session import get_db_read
from securemind.services.access_gate import ANY_ROLE, AuthorizationGate

router = APIRouter(tags=["gate"])


@router.get("/gate", response_model=GateResponse)
async def check_gate(
    role: str = Query(default=ANY_ROLE, description="Role the page requires, or __any__"),
    caller: IdentityToken | None = Depends(get_optional_identity),
    db: AsyncSession = Depends(get_db_read),
) -> GateResponse:
    async def refresh_claims(token: IdentityToken) -> dict[str, Any]:
        # Current claims from the identity provider, not the ones in the token
        account = await identity_provider.get_account(db, token.uid)
        return dict(account.custom_claims or {}) if account is not None else {}

    async def load_profile_role(uid: str) -> str | None:
        profile = await db.get(UserProfile, uid)
        return profile.role if profile is not None else None

    decision = await AuthorizationGate(role).evaluate(caller, refresh_claims, load_profile_role)
    return GateResponse(state=decision.state, destination=decision.destination, role=decision.role)
