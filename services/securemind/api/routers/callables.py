"""Callable transport.

Every operation is reachable as POST /api/v1/callable/{name} with a body of
{"data": {...}}. Success responds {"result": ...}; failure responds
{"error": {"status": CODE, "message": ...}} with the matching HTTP status.

Each operation declares the pydantic schema its payload is validated
against once, the role it requires (None means any signed-in caller) and
its handler. An invalid bearer token is rejected by the auth dependency
before the envelope applies; a missing one gets an UNAUTHENTICATED envelope.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from securemind.api.dependencies import get_optional_identity
from securemind.api.models.common import SecureMindBaseModel
from securemind.api.models.notifications import BroadcastFactRequest, BroadcastPolicyRequest
from securemind.api.models.registration import CompleteRegistrationRequest
from securemind.api.models.users import (
    CreateUserRequest,
    DeleteUserRequest,
    SetRoleRequest,
    UpdateUserRequest,
)
from securemind.auth.sessions import IdentityToken
from securemind.db.session import get_db, get_read_session_factory
from securemind.errors import (
    Internal,
    InvalidArgument,
    NotFound,
    PermissionDenied,
    SecureMindError,
    Unauthenticated,
)
from securemind.logging_config import get_logger
from securemind.roles import Role
from securemind.services import notifications, user_admin
from securemind.services.notifications import BroadcastTarget
from securemind.services.registration import complete_registration

router = APIRouter(prefix="/callable", tags=["callable"])
logger = get_logger(__name__)


@dataclass
class CallContext:
    db: AsyncSession
    read_factory: async_sessionmaker[AsyncSession]
    caller: IdentityToken


Handler = Callable[[CallContext, Any], Awaitable[dict[str, Any]]]


@dataclass(frozen=True)
class CallableOperation:
    schema: type[SecureMindBaseModel]
    handler: Handler
    required_role: Role | None
    unauthenticated_message: str = "Sign in required"


async def _admin_create_user(ctx: CallContext, cmd: CreateUserRequest) -> dict[str, Any]:
    created = await user_admin.create_user(
        ctx.db,
        ctx.caller,
        email=cmd.email,
        role=cmd.role,
        password=cmd.temp_password or cmd.password,
        first_name=cmd.first_name,
        last_name=cmd.last_name,
    )
    return {"uid": created.uid, "role": created.role.value}


async def _admin_update_user(ctx: CallContext, cmd: UpdateUserRequest) -> dict[str, Any]:
    changed = await user_admin.update_user(
        ctx.db,
        ctx.caller,
        cmd.uid,
        disabled=cmd.disabled,
        role=cmd.role,
        first_name=cmd.first_name,
        last_name=cmd.last_name,
        email=cmd.email,
    )
    return {"ok": True, "updatedFields": changed}


async def _admin_delete_user(ctx: CallContext, cmd: DeleteUserRequest) -> dict[str, Any]:
    outcome = await user_admin.delete_user(ctx.db, ctx.caller, cmd.uid)
    return {"ok": True, "fullyDeleted": outcome.fully_deleted}


async def _set_user_role(ctx: CallContext, cmd: SetRoleRequest) -> dict[str, Any]:
    role = await user_admin.set_user_role(ctx.db, ctx.caller, cmd.uid, cmd.role)
    return {"ok": True, "role": role.value}


async def _broadcast_fact(ctx: CallContext, cmd: BroadcastFactRequest) -> dict[str, Any]:
    count = await notifications.broadcast_fact(
        ctx.db,
        ctx.read_factory,
        ctx.caller,
        title=cmd.title,
        message=cmd.message,
        fact_id=cmd.fact_id,
        target=BroadcastTarget(
            target_type=cmd.target_type, roles=cmd.roles, user_ids=cmd.user_ids
        ),
    )
    return {"count": count}


async def _broadcast_policy(ctx: CallContext, cmd: BroadcastPolicyRequest) -> dict[str, Any]:
    count = await notifications.broadcast_policy(
        ctx.db,
        ctx.read_factory,
        ctx.caller,
        policy_id=cmd.policy_id,
        title=cmd.title,
        roles=cmd.roles,
    )
    return {"count": count}


async def _complete_registration(
    ctx: CallContext, cmd: CompleteRegistrationRequest
) -> dict[str, Any]:
    role = await complete_registration(
        ctx.db, ctx.caller, cmd.employee_id, cmd.first_name, cmd.last_name
    )
    return {"ok": True, "role": role.value}


OPERATIONS: dict[str, CallableOperation] = {
    "adminCreateUser": CallableOperation(CreateUserRequest, _admin_create_user, Role.ADMIN),
    "adminUpdateUser": CallableOperation(UpdateUserRequest, _admin_update_user, Role.ADMIN),
    "adminDeleteUser": CallableOperation(DeleteUserRequest, _admin_delete_user, Role.ADMIN),
    "setUserRole": CallableOperation(SetRoleRequest, _set_user_role, Role.ADMIN),
    "broadcastFactNotification": CallableOperation(
        BroadcastFactRequest, _broadcast_fact, Role.ADMIN
    ),
    "broadcastPolicyNotification": CallableOperation(
        BroadcastPolicyRequest, _broadcast_policy, Role.ADMIN
    ),
    "completeRegistration": CallableOperation(
        CompleteRegistrationRequest,
        _complete_registration,
        None,
        unauthenticated_message="Sign in required after signup",
    ),
}


def _error_response(error: SecureMindError) -> JSONResponse:
    return JSONResponse(
        status_code=error.http_status,
        content={"error": {"status": error.code, "message": error.message}},
    )


def _describe_validation_error(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first['msg']}" if location else first["msg"]


@router.post("/{name}")
async def invoke(
    name: str,
    data: dict[str, Any] | None = Body(default=None, embed=True),
    caller: IdentityToken | None = Depends(get_optional_identity),
    db: AsyncSession = Depends(get_db),
    read_factory: async_sessionmaker[AsyncSession] = Depends(get_read_session_factory),
) -> JSONResponse:
    operation = OPERATIONS.get(name)
    if operation is None:
        return _error_response(NotFound(f"Unknown callable: {name}"))

    try:
        if caller is None:
            raise Unauthenticated(operation.unauthenticated_message)
        if operation.required_role is not None and caller.role != operation.required_role:
            raise PermissionDenied("Insufficient role")

        try:
            command = operation.schema.model_validate(data or {})
        except ValidationError as e:
            raise InvalidArgument(_describe_validation_error(e)) from e

        result = await operation.handler(CallContext(db, read_factory, caller), command)
    except SecureMindError as e:
        logger.info("Callable failed", name=name, status=e.code, error=e.message)
        return _error_response(e)
    except Exception:
        logger.error("Callable raised unexpectedly", name=name, exc_info=True)
        return _error_response(Internal("Internal server error"))

    return JSONResponse(content={"result": result})
