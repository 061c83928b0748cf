"""Tests for Redis refresh sessions and ID token verification."""

import json
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest

from securemind.auth.sessions import (
    SESSION_PREFIX,
    SESSION_REFRESH_INTERVAL,
    USER_SESSIONS_PREFIX,
    Session,
    _should_refresh_session,
    create_session,
    get_session,
    revoke_all_user_sessions,
    revoke_session,
    session_id_for,
    verify_id_token,
)
from securemind.auth.tokens import create_id_token
from securemind.db.models import utc_now


@pytest.fixture
def mock_redis():
    """Create a mock Redis client with pipeline support."""
    redis = AsyncMock()
    pipeline = AsyncMock()
    pipeline.__aenter__ = AsyncMock(return_value=pipeline)
    pipeline.__aexit__ = AsyncMock(return_value=None)
    redis.pipeline = lambda **kwargs: pipeline
    return redis, pipeline


def _session_data(uid: str = "u1", session_id: str = "sid") -> dict:
    return {
        "session_id": session_id,
        "uid": uid,
        "email": "u1@example.com",
        "created_at": "2026-01-01T00:00:00+00:00",
        "expires_at": "2026-01-15T00:00:00+00:00",
        "last_active_at": "2026-01-01T00:00:00+00:00",
    }


class TestCreateSession:
    """Test session creation."""

    @pytest.mark.asyncio
    async def test_create_session(self, mock_redis):
        """Redis is keyed by the token digest, never the token."""
        redis, pipeline = mock_redis

        with patch("securemind.auth.sessions.get_redis_client", return_value=redis):
            session = await create_session("u1", "u1@example.com")

        assert session.token != ""
        assert session.session_id == session_id_for(session.token)
        assert session.uid == "u1"

        key, payload = pipeline.set.call_args.args
        assert key == SESSION_PREFIX + session.session_id
        assert session.token not in payload
        assert "token" not in json.loads(payload)
        pipeline.sadd.assert_called_once_with(USER_SESSIONS_PREFIX + "u1", session.session_id)
        pipeline.execute.assert_called_once()

    @pytest.mark.asyncio
    async def test_unique_tokens(self, mock_redis):
        redis, _ = mock_redis

        with patch("securemind.auth.sessions.get_redis_client", return_value=redis):
            tokens = {(await create_session("u1", None)).token for _ in range(10)}

        assert len(tokens) == 10


class TestGetSession:
    @pytest.mark.asyncio
    async def test_found(self):
        redis = AsyncMock()
        redis.get = AsyncMock(return_value=json.dumps(_session_data()))

        with patch("securemind.auth.sessions.get_redis_client", return_value=redis):
            session = await get_session("refresh-token")

        assert session.token == "refresh-token"
        assert session.uid == "u1"
        redis.get.assert_awaited_once_with(SESSION_PREFIX + session_id_for("refresh-token"))

    @pytest.mark.asyncio
    async def test_not_found(self):
        redis = AsyncMock()
        redis.get = AsyncMock(return_value=None)

        with patch("securemind.auth.sessions.get_redis_client", return_value=redis):
            assert await get_session("nope") is None


class TestRevokeSession:
    @pytest.mark.asyncio
    async def test_revoke_existing(self, mock_redis):
        redis, pipeline = mock_redis
        redis.get = AsyncMock(return_value=json.dumps(_session_data()))
        pipeline.execute = AsyncMock(return_value=[1, 1])

        with patch("securemind.auth.sessions.get_redis_client", return_value=redis):
            assert await revoke_session("refresh-token") is True

        sid = session_id_for("refresh-token")
        pipeline.delete.assert_called_once_with(SESSION_PREFIX + sid)
        pipeline.srem.assert_called_once_with(USER_SESSIONS_PREFIX + "u1", sid)

    @pytest.mark.asyncio
    async def test_revoke_missing(self, mock_redis):
        redis, pipeline = mock_redis
        redis.get = AsyncMock(return_value=None)
        pipeline.execute = AsyncMock(return_value=[0])

        with patch("securemind.auth.sessions.get_redis_client", return_value=redis):
            assert await revoke_session("gone") is False

        pipeline.srem.assert_not_called()


class TestUserSessions:
    @pytest.mark.asyncio
    async def test_revoke_all(self, mock_redis):
        redis, pipeline = mock_redis
        redis.smembers = AsyncMock(return_value={"a", "b"})
        pipeline.execute = AsyncMock(return_value=[1, 0, 1])

        with patch("securemind.auth.sessions.get_redis_client", return_value=redis):
            count = await revoke_all_user_sessions("u1")

        assert count == 1
        assert pipeline.delete.call_count == 3

    @pytest.mark.asyncio
    async def test_revoke_all_without_sessions(self):
        redis = AsyncMock()
        redis.smembers = AsyncMock(return_value=set())

        with patch("securemind.auth.sessions.get_redis_client", return_value=redis):
            assert await revoke_all_user_sessions("u1") == 0


class TestShouldRefresh:
    def _session(self, last_active) -> Session:
        return Session(
            session_id="sid",
            uid="u1",
            email=None,
            created_at=last_active.isoformat(),
            expires_at=last_active.isoformat(),
            last_active_at=last_active.isoformat(),
        )

    def test_recent_activity(self):
        assert not _should_refresh_session(self._session(utc_now()))

    def test_stale_activity(self):
        stale = utc_now() - SESSION_REFRESH_INTERVAL - timedelta(seconds=1)
        assert _should_refresh_session(self._session(stale))


class TestVerifyIdToken:
    def _token(self, session_id: str | None = "sid-1") -> str:
        return create_id_token(
            "u1",
            utc_now() + timedelta(minutes=5),
            email="u1@example.com",
            session_id=session_id,
            claims={"role": "security"},
        )

    @pytest.mark.asyncio
    async def test_live_session(self):
        redis = AsyncMock()
        redis.get = AsyncMock(return_value=json.dumps(_session_data(session_id="sid-1")))

        with patch("securemind.auth.sessions.get_redis_client", return_value=redis):
            identity = await verify_id_token(self._token())

        assert identity.uid == "u1"
        assert identity.session_id == "sid-1"
        assert identity.claims == {"role": "security"}
        assert identity.role == "security"

    @pytest.mark.asyncio
    async def test_revoked_session(self):
        redis = AsyncMock()
        redis.get = AsyncMock(return_value=None)

        with patch("securemind.auth.sessions.get_redis_client", return_value=redis):
            with pytest.raises(ValueError, match="revoked"):
                await verify_id_token(self._token())

    @pytest.mark.asyncio
    async def test_skip_revocation_check(self):
        identity = await verify_id_token(self._token(session_id=None), check_revoked=False)

        assert identity.session_id is None
