"""Signed ID tokens.

An ID token is an HS256 JWT minted from an identity account at sign-in or
refresh. Its payload carries the account's custom claims, so a role change
reaches a client only when that client obtains a new token.
"""

import base64
import hashlib
import hmac
import json
from datetime import UTC, datetime
from typing import Any

from securemind.config import settings

JWT_ALGORITHM = "HS256"

# Payload keys owned by the token itself; custom claims may not override them
RESERVED_CLAIMS = frozenset({"sub", "email", "sid", "iat", "exp", "auth_time"})


def _b64_encode(data: bytes) -> str:
    """URL-safe base64 encode without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


def _b64_decode(data: str) -> bytes:
    """URL-safe base64 decode with padding restoration."""
    padding = 4 - (len(data) % 4)
    if padding != 4:
        data += "=" * padding
    return base64.urlsafe_b64decode(data)


def _sign(message: str) -> bytes:
    return hmac.new(
        settings.auth.token_secret.encode(),
        message.encode(),
        hashlib.sha256,
    ).digest()


def create_id_token(
    uid: str,
    expires_at: datetime,
    *,
    email: str | None = None,
    session_id: str | None = None,
    claims: dict[str, Any] | None = None,
) -> str:
    """
    Create a signed ID token.

    Args:
        uid: Account uid (subject)
        expires_at: Token expiration time (must be timezone-aware UTC)
        email: Account email
        session_id: Refresh session the token was minted from
        claims: Custom claims copied from the account

    Returns:
        JWT token string
    """
    if expires_at.tzinfo is None:
        raise ValueError("expires_at must be timezone-aware UTC")

    header = {"alg": JWT_ALGORITHM, "typ": "JWT"}
    payload: dict[str, Any] = {
        key: value for key, value in (claims or {}).items() if key not in RESERVED_CLAIMS
    }
    payload.update(
        {
            "sub": uid,
            "exp": int(expires_at.timestamp()),
            "iat": int(datetime.now(UTC).timestamp()),
        }
    )
    if email is not None:
        payload["email"] = email
    if session_id is not None:
        payload["sid"] = session_id

    header_b64 = _b64_encode(json.dumps(header, separators=(",", ":")).encode())
    payload_b64 = _b64_encode(json.dumps(payload, separators=(",", ":")).encode())

    message = f"{header_b64}.{payload_b64}"
    return f"{message}.{_b64_encode(_sign(message))}"


def decode_id_token(token: str) -> dict[str, Any]:
    """
    Decode and validate an ID token.

    Raises:
        ValueError: If the token is malformed, tampered with or expired
    """
    try:
        parts = token.split(".")
        if len(parts) != 3:
            raise ValueError("Invalid token format")

        header_b64, payload_b64, signature_b64 = parts

        expected_signature = _sign(f"{header_b64}.{payload_b64}")
        if not hmac.compare_digest(expected_signature, _b64_decode(signature_b64)):
            raise ValueError("Invalid signature")

        payload = json.loads(_b64_decode(payload_b64))

        exp = payload.get("exp")
        if exp and datetime.fromtimestamp(exp, tz=UTC) < datetime.now(UTC):
            raise ValueError("Token expired")

        if not payload.get("sub"):
            raise ValueError("Token has no subject")

        return payload
    except (json.JSONDecodeError, UnicodeDecodeError, KeyError) as e:
        raise ValueError(f"Invalid token: {e}") from e
