"""Admin user management (HTTP form).

Consumers:
    Admin UI users page:
        GET    /api/v1/admin/users              — user list
        POST   /api/v1/admin/users              — create, linked to an employee record
        PATCH  /api/v1/admin/users              — update fields (uid in body)
        DELETE /api/v1/admin/users/{uid}        — best-effort delete
        POST   /api/v1/admin/users/{uid}/role   — set role and revoke sessions

Domain errors propagate to the app-level handler, which renders them as
{"detail": message} with the error's status code.
"""

import base64

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from securemind.api.dependencies import require_admin
from securemind.api.models.common import CursorPage, PaginationParams
from securemind.api.models.users import (
    CreateUserRequest,
    CreateUserResponse,
    DeleteUserResponse,
    SetRoleRequest,
    SetRoleResponse,
    UpdateUserRequest,
    UpdateUserResponse,
    UserProfileResponse,
)
from securemind.auth.sessions import IdentityToken
from securemind.db.models import UserProfile
from securemind.db.session import get_db, get_db_read
from securemind.services import user_admin

router = APIRouter(prefix="/admin/users", tags=["admin"])


@router.get("", response_model=CursorPage[UserProfileResponse])
async def list_users(
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_db_read),
    _admin: IdentityToken = Depends(require_admin),
) -> CursorPage[UserProfileResponse]:
    """List user profiles, newest first."""
    query = (
        select(UserProfile)
        .order_by(UserProfile.created_at.desc(), UserProfile.uid)
        .limit(pagination.limit + 1)
    )

    if pagination.cursor:
        cursor_uid = base64.urlsafe_b64decode(pagination.cursor.encode()).decode()
        cursor_profile = await db.get(UserProfile, cursor_uid)
        if cursor_profile:
            query = query.where(UserProfile.created_at < cursor_profile.created_at)

    result = await db.execute(query)
    profiles = list(result.scalars().all())

    has_more = len(profiles) > pagination.limit
    if has_more:
        profiles = profiles[: pagination.limit]

    next_cursor = None
    if has_more and profiles:
        next_cursor = base64.urlsafe_b64encode(profiles[-1].uid.encode()).decode()

    return CursorPage(
        items=[UserProfileResponse.model_validate(p) for p in profiles],
        next_cursor=next_cursor,
        has_more=has_more,
    )


@router.post("", response_model=CreateUserResponse)
async def create_user(
    body: CreateUserRequest,
    db: AsyncSession = Depends(get_db),
    admin: IdentityToken = Depends(require_admin),
) -> CreateUserResponse:
    """Create an account linked to an employee record carrying the same role."""
    created = await user_admin.create_user(
        db,
        admin,
        email=body.email,
        role=body.role,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        employee_id=body.employee_id,
        require_employee_link=True,
    )
    return CreateUserResponse(uid=created.uid, role=created.role)


@router.patch("", response_model=UpdateUserResponse)
@router.put("", response_model=UpdateUserResponse, include_in_schema=False)
async def update_user(
    body: UpdateUserRequest,
    db: AsyncSession = Depends(get_db),
    admin: IdentityToken = Depends(require_admin),
) -> UpdateUserResponse:
    changed = await user_admin.update_user(
        db,
        admin,
        body.uid,
        disabled=body.disabled,
        role=body.role,
        first_name=body.first_name,
        last_name=body.last_name,
        email=body.email,
    )
    return UpdateUserResponse(updated_fields=changed)


async def _delete(db: AsyncSession, admin: IdentityToken, uid: str) -> DeleteUserResponse:
    outcome = await user_admin.delete_user(db, admin, uid)
    return DeleteUserResponse(
        uid=outcome.uid,
        fully_deleted=outcome.fully_deleted,
        failures=outcome.failures,
    )


@router.delete("", response_model=DeleteUserResponse)
async def delete_user_by_query(
    uid: str = Query(default=""),
    db: AsyncSession = Depends(get_db),
    admin: IdentityToken = Depends(require_admin),
) -> DeleteUserResponse:
    """Delete the account named by ?uid=."""
    return await _delete(db, admin, uid)


@router.delete("/{uid}", response_model=DeleteUserResponse)
async def delete_user(
    uid: str,
    db: AsyncSession = Depends(get_db),
    admin: IdentityToken = Depends(require_admin),
) -> DeleteUserResponse:
    """Delete an account and its profile, best effort."""
    return await _delete(db, admin, uid)


@router.post("/{uid}/role", response_model=SetRoleResponse, status_code=status.HTTP_200_OK)
async def set_user_role(
    uid: str,
    body: SetRoleRequest,
    db: AsyncSession = Depends(get_db),
    admin: IdentityToken = Depends(require_admin),
) -> SetRoleResponse:
    """Set the role and revoke the account's sessions."""
    role = await user_admin.set_user_role(db, admin, uid, body.role)
    return SetRoleResponse(role=role)
