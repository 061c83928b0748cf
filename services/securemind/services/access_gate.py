"""Authorization gate for role-restricted pages.

The gate starts in ``checking`` and settles on ``granted`` or
``redirected`` once the caller's role is known. It is re-evaluated on
every identity change (sign-in, sign-out, token refresh) and holds no
role between evaluations, so a role change made elsewhere shows up at the
next refresh and not before.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from securemind.auth.sessions import IdentityToken
from securemind.logging_config import get_logger
from securemind.roles import is_valid_role, normalize_role

logger = get_logger(__name__)

ANY_ROLE = "__any__"
LOGIN_PATH = "/login"
GENERIC_LANDING = "/"

RefreshClaims = Callable[[IdentityToken], Awaitable[dict[str, Any]]]
LoadProfileRole = Callable[[str], Awaitable[str | None]]


class GateState(StrEnum):
    CHECKING = "checking"
    GRANTED = "granted"
    REDIRECTED = "redirected"


@dataclass(frozen=True)
class GateDecision:
    state: GateState
    destination: str | None = None
    role: str | None = None


def landing_path(role: str) -> str:
    """The role's own dashboard."""
    return f"/dashboard/{role}"


class AuthorizationGate:
    """Decides whether a caller may see a page that requires required_role.

    Pass ANY_ROLE for pages open to every signed-in user with a role.
    """

    def __init__(self, required_role: str = ANY_ROLE):
        self.required_role = (
            required_role if required_role == ANY_ROLE else str(required_role).strip().lower()
        )
        self._decision = GateDecision(GateState.CHECKING)

    @property
    def state(self) -> GateState:
        return self._decision.state

    @property
    def decision(self) -> GateDecision:
        return self._decision

    def reset(self) -> None:
        """Back to checking; called when the identity changes."""
        self._decision = GateDecision(GateState.CHECKING)

    async def resolve_role(
        self,
        identity: IdentityToken,
        refresh_claims: RefreshClaims,
        load_profile_role: LoadProfileRole,
    ) -> str | None:
        """Role from freshly refreshed claims, else from the profile."""
        try:
            claims = await refresh_claims(identity)
        except Exception:
            logger.warning("Claim refresh failed, using token claims", uid=identity.uid, exc_info=True)
            claims = identity.claims

        claim_role = claims.get("role")
        if is_valid_role(claim_role):
            return normalize_role(claim_role).value

        profile_role = await load_profile_role(identity.uid)
        if is_valid_role(profile_role):
            return normalize_role(profile_role).value
        return None

    def _allows(self, role: str) -> bool:
        return self.required_role == ANY_ROLE or role == self.required_role

    async def evaluate(
        self,
        identity: IdentityToken | None,
        refresh_claims: RefreshClaims,
        load_profile_role: LoadProfileRole,
    ) -> GateDecision:
        self.reset()

        if identity is None:
            self._decision = GateDecision(GateState.REDIRECTED, destination=LOGIN_PATH)
            return self._decision

        role = await self.resolve_role(identity, refresh_claims, load_profile_role)
        if role is None:
            decision = GateDecision(GateState.REDIRECTED, destination=GENERIC_LANDING)
        elif self._allows(role):
            decision = GateDecision(GateState.GRANTED, role=role)
        else:
            decision = GateDecision(GateState.REDIRECTED, destination=landing_path(role), role=role)

        logger.debug(
            "Gate evaluated",
            uid=identity.uid,
            required_role=self.required_role,
            state=decision.state,
            destination=decision.destination,
        )
        self._decision = decision
        return decision
