"""Redis-backed refresh sessions.

Signing in creates a session addressed by an opaque refresh token. Redis
keys use the token's SHA-256 digest (the session id), never the token
itself. Every ID token carries the id of the session it was minted from
(``sid``), so deleting a session invalidates both the refresh token and
every ID token derived from it on their next verification.
"""

import hashlib
import json
import secrets
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any

from securemind.auth.tokens import decode_id_token
from securemind.config import settings
from securemind.db.models import utc_now
from securemind.logging_config import get_logger
from securemind.redis.client import get_redis_client

logger = get_logger(__name__)

SESSION_PREFIX = "securemind:session:"
USER_SESSIONS_PREFIX = "securemind:user_sessions:"

# Sliding-window TTL extension happens at most this often per session
SESSION_REFRESH_INTERVAL = timedelta(minutes=5)


def _session_ttl() -> int:
    """Session TTL in seconds from config."""
    return settings.auth.session_ttl_hours * 3600


@dataclass
class Session:
    """Server-side refresh session stored in Redis."""

    session_id: str
    uid: str
    email: str | None
    created_at: str  # ISO 8601
    expires_at: str  # ISO 8601
    last_active_at: str  # ISO 8601

    # Only known to the holder; Redis stores its digest
    token: str = field(default="", repr=False)


@dataclass
class IdentityToken:
    """A verified ID token."""

    uid: str
    email: str | None
    session_id: str | None
    claims: dict[str, Any]

    @property
    def role(self) -> str | None:
        role = self.claims.get("role")
        return role if isinstance(role, str) else None


def generate_session_token() -> str:
    """Generate a cryptographically random refresh token."""
    return secrets.token_urlsafe(32)


def session_id_for(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def _serialize(session: Session) -> str:
    data = asdict(session)
    data.pop("token")
    return json.dumps(data)


async def create_session(uid: str, email: str | None) -> Session:
    """Create a new session in Redis. Returns the Session with its token."""
    redis = get_redis_client()
    token = generate_session_token()
    ttl = _session_ttl()
    now = utc_now()

    session = Session(
        session_id=session_id_for(token),
        uid=uid,
        email=email,
        created_at=now.isoformat(),
        expires_at=(now + timedelta(seconds=ttl)).isoformat(),
        last_active_at=now.isoformat(),
        token=token,
    )

    user_key = USER_SESSIONS_PREFIX + uid

    async with redis.pipeline(transaction=True) as pipe:
        pipe.set(SESSION_PREFIX + session.session_id, _serialize(session), ex=ttl)
        pipe.sadd(user_key, session.session_id)
        pipe.expire(user_key, ttl)
        await pipe.execute()

    logger.info("Session created", uid=uid)
    return session


async def get_session_by_id(session_id: str) -> Session | None:
    """Look up a session by id. Returns None if not found or expired."""
    redis = get_redis_client()
    data = await redis.get(SESSION_PREFIX + session_id)
    if data is None:
        return None

    return Session(**json.loads(data))


async def get_session(token: str) -> Session | None:
    """Look up a session by refresh token."""
    session = await get_session_by_id(session_id_for(token))
    if session is not None:
        session.token = token
    return session


def _should_refresh_session(session: Session) -> bool:
    """True when the session's last activity is older than the refresh interval."""
    last_active = datetime.fromisoformat(session.last_active_at)
    return utc_now() - last_active >= SESSION_REFRESH_INTERVAL


async def refresh_session(session: Session) -> None:
    """Extend a session's TTL and record activity (sliding window)."""
    redis = get_redis_client()
    ttl = _session_ttl()
    now = utc_now()

    session.last_active_at = now.isoformat()
    session.expires_at = (now + timedelta(seconds=ttl)).isoformat()

    async with redis.pipeline(transaction=True) as pipe:
        pipe.set(SESSION_PREFIX + session.session_id, _serialize(session), ex=ttl)
        pipe.expire(USER_SESSIONS_PREFIX + session.uid, ttl)
        await pipe.execute()


async def revoke_session(token: str) -> bool:
    """Revoke a session by deleting it from Redis.

    Returns True if the session existed, False if it was already gone.
    """
    redis = get_redis_client()
    session_id = session_id_for(token)
    session_key = SESSION_PREFIX + session_id

    data = await redis.get(session_key)

    async with redis.pipeline(transaction=True) as pipe:
        pipe.delete(session_key)
        if data is not None:
            pipe.srem(USER_SESSIONS_PREFIX + json.loads(data)["uid"], session_id)
        results = await pipe.execute()

    deleted = results[0] > 0
    if deleted:
        logger.info("Session revoked")
    return deleted


async def revoke_all_user_sessions(uid: str) -> int:
    """Revoke all sessions for an account. Returns count of sessions revoked."""
    redis = get_redis_client()
    user_key = USER_SESSIONS_PREFIX + uid

    session_ids = await redis.smembers(user_key)
    if not session_ids:
        return 0

    async with redis.pipeline(transaction=True) as pipe:
        for value in session_ids:
            session_id = value if isinstance(value, str) else value.decode()
            pipe.delete(SESSION_PREFIX + session_id)
        pipe.delete(user_key)
        results = await pipe.execute()

    # Exclude the final delete of the set itself
    count = sum(1 for r in results[:-1] if r > 0)
    logger.info("Revoked all sessions for account", uid=uid, count=count)
    return count


async def verify_id_token(token: str, *, check_revoked: bool = True) -> IdentityToken:
    """Verify an ID token's signature and expiry.

    With check_revoked, the token's session must still exist in Redis, so
    tokens minted before a revocation stop verifying immediately.

    Raises:
        ValueError: If the token is invalid, expired or revoked
    """
    payload = decode_id_token(token)

    session_id = payload.get("sid")
    if check_revoked:
        if not session_id or await get_session_by_id(session_id) is None:
            raise ValueError("Token has been revoked")

    claims = {k: v for k, v in payload.items() if k not in ("sub", "email", "sid", "iat", "exp")}
    return IdentityToken(
        uid=payload["sub"],
        email=payload.get("email"),
        session_id=session_id,
        claims=claims,
    )
