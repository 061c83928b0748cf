"""Tests for the authorization gate endpoint."""

import pytest

from securemind.auth.sessions import IdentityToken
from securemind.db.models import UserProfile

GATE_URL = "/api/v1/gate"


def _identity(uid: str, claims: dict) -> IdentityToken:
    return IdentityToken(uid=uid, email=None, session_id="s", claims=claims)


class TestGateEndpoint:
    @pytest.mark.asyncio
    async def test_signed_out(self, async_client):
        response = await async_client.get(GATE_URL, params={"role": "admin"})

        assert response.json() == {"state": "redirected", "destination": "/login", "role": None}

    @pytest.mark.asyncio
    async def test_current_claim_beats_token(self, async_client, caller, make_account):
        """The account was promoted after the token was minted."""
        await make_account("u1", role="admin")
        caller["identity"] = _identity("u1", {"role": "user"})

        response = await async_client.get(GATE_URL, params={"role": "admin"})

        assert response.json()["state"] == "granted"
        assert response.json()["role"] == "admin"

    @pytest.mark.asyncio
    async def test_redirect_to_own_dashboard(self, async_client, caller, make_account):
        await make_account("u1", role="marketing")
        caller["identity"] = _identity("u1", {"role": "marketing"})

        response = await async_client.get(GATE_URL, params={"role": "security"})

        assert response.json()["destination"] == "/dashboard/marketing"

    @pytest.mark.asyncio
    async def test_profile_fallback(self, async_client, caller, db_session, make_account):
        await make_account("u1")
        profile = await db_session.get(UserProfile, "u1")
        profile.role = "accounting"
        await db_session.commit()
        caller["identity"] = _identity("u1", {})

        response = await async_client.get(GATE_URL)

        assert response.json()["state"] == "granted"
        assert response.json()["role"] == "accounting"

    @pytest.mark.asyncio
    async def test_role_parameter_case_insensitive(self, async_client, caller, make_account):
        await make_account("u1", role="admin")
        caller["identity"] = _identity("u1", {"role": "admin"})

        response = await async_client.get(GATE_URL, params={"role": "Admin"})

        assert response.json()["state"] == "granted"
        assert response.json()["role"] == "admin"
