"""Registration completion models."""

from .common import SecureMindBaseModel


class CompleteRegistrationRequest(SecureMindBaseModel):
    employee_id: str = ""
    first_name: str = ""
    last_name: str = ""


class CompleteRegistrationResponse(SecureMindBaseModel):
    ok: bool = True
    role: str
