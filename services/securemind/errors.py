"""Domain error taxonomy.

Services raise these; the HTTP transport maps them to status codes and the
callable transport wraps them in an error envelope. Each class carries both
representations so the mapping lives in one place.
"""

from fastapi import status


class SecureMindError(Exception):
    """Base class for errors surfaced to API callers."""

    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class Unauthenticated(SecureMindError):
    """No identity token, or one that fails verification."""

    http_status = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHENTICATED"


class PermissionDenied(SecureMindError):
    """Identity present but its role claim does not satisfy the operation."""

    http_status = status.HTTP_403_FORBIDDEN
    code = "PERMISSION_DENIED"


class InvalidArgument(SecureMindError):
    """Caller payload failed validation."""

    http_status = status.HTTP_400_BAD_REQUEST
    code = "INVALID_ARGUMENT"


class NotFound(SecureMindError):
    """A referenced employee record or user does not exist."""

    http_status = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class Conflict(SecureMindError):
    """The target already exists or is already claimed."""

    http_status = status.HTTP_409_CONFLICT
    code = "ALREADY_EXISTS"


class Internal(SecureMindError):
    """Unclassified failure from the identity provider or document store."""


class IdentityProviderError(Exception):
    """Failure reported by the identity provider, keyed by a stable code."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


EMAIL_EXISTS = "auth/email-already-exists"
INVALID_EMAIL = "auth/invalid-email"
WEAK_PASSWORD = "auth/weak-password"
USER_NOT_FOUND = "auth/user-not-found"
INVALID_PASSWORD = "auth/invalid-password"
USER_DISABLED = "auth/user-disabled"

_KNOWN_IDENTITY_ERRORS: dict[str, tuple[type[SecureMindError], str]] = {
    EMAIL_EXISTS: (Conflict, "Email already exists"),
    INVALID_EMAIL: (InvalidArgument, "Invalid email format"),
    WEAK_PASSWORD: (InvalidArgument, "Password is too weak"),
    USER_NOT_FOUND: (NotFound, "User not found"),
}


def translate_identity_error(exc: IdentityProviderError) -> SecureMindError:
    """Map an identity provider failure to a human-readable domain error.

    Unknown codes surface the raw message as Internal.
    """
    known = _KNOWN_IDENTITY_ERRORS.get(exc.code)
    if known is None:
        return Internal(exc.message)
    error_cls, message = known
    return error_cls(message)
