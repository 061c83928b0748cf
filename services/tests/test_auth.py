"""Tests for password hashing and ID tokens."""

from datetime import UTC, datetime, timedelta

import pytest

from securemind.auth.passwords import generate_temporary_password, hash_password, verify_password
from securemind.auth.tokens import create_id_token, decode_id_token


class TestPasswords:
    def test_hash_and_verify(self):
        hashed = hash_password("correct horse")

        assert hashed.startswith("pbkdf2:sha256:1000$")
        assert verify_password("correct horse", hashed)
        assert not verify_password("wrong horse", hashed)

    def test_salted(self):
        assert hash_password("same") != hash_password("same")

    @pytest.mark.parametrize("stored", ["", "plaintext", "md5:1$salt$abc", "pbkdf2:sha256:x$s$d"])
    def test_malformed_hash_never_verifies(self, stored):
        assert not verify_password("anything", stored)

    def test_temporary_password_is_long_enough(self):
        assert len(generate_temporary_password()) >= 12


class TestIdTokens:
    def _expires(self, minutes: int = 60) -> datetime:
        return datetime.now(UTC) + timedelta(minutes=minutes)

    def test_round_trip_carries_claims(self):
        token = create_id_token(
            "u1",
            self._expires(),
            email="u1@example.com",
            session_id="sid-1",
            claims={"role": "admin"},
        )

        payload = decode_id_token(token)

        assert payload["sub"] == "u1"
        assert payload["email"] == "u1@example.com"
        assert payload["sid"] == "sid-1"
        assert payload["role"] == "admin"

    def test_claims_cannot_override_subject(self):
        token = create_id_token("u1", self._expires(), claims={"sub": "admin-uid", "role": "user"})

        assert decode_id_token(token)["sub"] == "u1"

    def test_naive_expiry_rejected(self):
        with pytest.raises(ValueError, match="timezone-aware"):
            create_id_token("u1", datetime.now() + timedelta(minutes=5))

    def test_expired(self):
        token = create_id_token("u1", self._expires(-1))

        with pytest.raises(ValueError, match="Token expired"):
            decode_id_token(token)

    def test_tampered_payload(self):
        header, _, signature = create_id_token("u1", self._expires(), claims={"role": "user"}).split(".")
        forged = create_id_token("u1", self._expires(), claims={"role": "admin"}).split(".")[1]

        with pytest.raises(ValueError, match="Invalid signature"):
            decode_id_token(f"{header}.{forged}.{signature}")

    def test_malformed(self):
        with pytest.raises(ValueError, match="Invalid token format"):
            decode_id_token("not-a-jwt")
