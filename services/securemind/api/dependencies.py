"""FastAPI dependencies for authentication and authorization.

Clients send a signed ID token in the Authorization header. The token is
verified locally (signature, expiry) and its session is looked up in Redis,
so a revoked session rejects every ID token minted from it. Authorization
reads the role claim carried in the token; the profile role is never
consulted here.
"""

from collections.abc import Awaitable, Callable

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from securemind.auth.sessions import IdentityToken, verify_id_token
from securemind.logging_config import get_logger
from securemind.roles import Role

logger = get_logger(__name__)
security = HTTPBearer(auto_error=False)


async def get_optional_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> IdentityToken | None:
    """The caller's verified identity, or None when no token was sent.

    A token that is present but invalid is still rejected.
    """
    if credentials is None:
        return None

    try:
        return await verify_id_token(credentials.credentials, check_revoked=True)
    except ValueError as e:
        logger.info("ID token rejected", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


async def get_current_identity(
    identity: IdentityToken | None = Depends(get_optional_identity),
) -> IdentityToken:
    """Dependency to get the current authenticated identity."""
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity


async def require_admin(
    identity: IdentityToken = Depends(get_current_identity),
) -> IdentityToken:
    """Dependency to require the admin role claim."""
    if identity.role != Role.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return identity


def require_any_role(*roles: str) -> Callable[..., Awaitable[IdentityToken]]:
    """Build a dependency that accepts any of roles."""
    allowed = frozenset(roles)

    async def _require(identity: IdentityToken = Depends(get_current_identity)) -> IdentityToken:
        if identity.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Forbidden",
            )
        return identity

    return _require
