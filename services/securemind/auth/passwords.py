"""Password hashing for identity accounts.

Hashes are stored as ``pbkdf2:sha256:<iterations>$<salt>$<hex digest>``.
"""

import hashlib
import hmac
import secrets

PBKDF2_ITERATIONS = 600_000
_PREFIX = "pbkdf2:sha256"


def hash_password(password: str) -> str:
    """Hash a password with a random salt."""
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), PBKDF2_ITERATIONS)
    return f"{_PREFIX}:{PBKDF2_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored hash. Malformed hashes never verify."""
    try:
        method, salt, expected = password_hash.split("$", 2)
        prefix, iterations = method.rsplit(":", 1)
        if prefix != _PREFIX:
            return False
        digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), int(iterations))
    except ValueError:
        return False
    return hmac.compare_digest(digest.hex(), expected)


def generate_temporary_password() -> str:
    """Random password for admin-created accounts that were given none."""
    return secrets.token_urlsafe(9) + "A1!"
