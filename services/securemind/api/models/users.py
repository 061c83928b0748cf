"""Admin user management models.

Required-field checks live in the service layer so both transports report
them with the same messages; the models only fix the field types.
"""

from pydantic import Field

from .common import SecureMindBaseModel, TimestampMixin


class CreateUserRequest(SecureMindBaseModel):
    """Create an account with a role.

    The HTTP form requires every field and an unlinked employee record with
    the same role; the callable form needs only email.
    """

    email: str = ""
    password: str | None = None
    temp_password: str | None = Field(default=None, description="Callable-form password")
    first_name: str | None = None
    last_name: str | None = None
    employee_id: str | None = None
    role: str | None = None


class CreateUserResponse(SecureMindBaseModel):
    success: bool = True
    uid: str
    role: str
    message: str = "User created successfully"


class UpdateUserRequest(SecureMindBaseModel):
    uid: str = ""
    disabled: bool | None = None
    role: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None


class UpdateUserResponse(SecureMindBaseModel):
    success: bool = True
    message: str = "User updated successfully"
    updated_fields: list[str] = Field(default_factory=list)


class DeleteUserRequest(SecureMindBaseModel):
    uid: str = ""


class DeleteUserResponse(SecureMindBaseModel):
    """Delete is reported as a success even when a part could not be removed."""

    success: bool = True
    message: str = "User deleted successfully"
    uid: str
    fully_deleted: bool = True
    failures: list[str] = Field(default_factory=list)


class SetRoleRequest(SecureMindBaseModel):
    uid: str = ""
    role: str | None = None


class SetRoleResponse(SecureMindBaseModel):
    ok: bool = True
    role: str


class UserProfileResponse(TimestampMixin):
    """A user profile as shown in the admin user list."""

    uid: str
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    role: str
    disabled: bool = False
    employee_id: str | None = None
