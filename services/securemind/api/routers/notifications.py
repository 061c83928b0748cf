"""Notification broadcast and fact publishing (HTTP form)."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from securemind.api.dependencies import require_admin, require_any_role
from securemind.api.models.common import CountResponse
from securemind.api.models.notifications import (
    BroadcastFactRequest,
    BroadcastPolicyRequest,
    PublishFactRequest,
    PublishFactResponse,
)
from securemind.auth.sessions import IdentityToken
from securemind.db.session import get_db, get_read_session_factory
from securemind.roles import Role
from securemind.services import notifications
from securemind.services.notifications import BroadcastTarget

router = APIRouter(tags=["notifications"])


@router.post("/notifications/facts", response_model=CountResponse)
async def broadcast_fact(
    body: BroadcastFactRequest,
    db: AsyncSession = Depends(get_db),
    read_factory: async_sessionmaker[AsyncSession] = Depends(get_read_session_factory),
    admin: IdentityToken = Depends(require_admin),
) -> CountResponse:
    """Notify all users, users holding given roles, or listed users of a fact."""
    count = await notifications.broadcast_fact(
        db,
        read_factory,
        admin,
        title=body.title,
        message=body.message,
        fact_id=body.fact_id,
        target=BroadcastTarget(
            target_type=body.target_type,
            roles=body.roles,
            user_ids=body.user_ids,
        ),
    )
    return CountResponse(count=count)


@router.post("/notifications/policies", response_model=CountResponse)
async def broadcast_policy(
    body: BroadcastPolicyRequest,
    db: AsyncSession = Depends(get_db),
    read_factory: async_sessionmaker[AsyncSession] = Depends(get_read_session_factory),
    admin: IdentityToken = Depends(require_admin),
) -> CountResponse:
    count = await notifications.broadcast_policy(
        db,
        read_factory,
        admin,
        policy_id=body.policy_id,
        title=body.title,
        roles=body.roles,
    )
    return CountResponse(count=count)


@router.post("/facts", response_model=PublishFactResponse, status_code=status.HTTP_201_CREATED)
async def publish_fact(
    body: PublishFactRequest,
    db: AsyncSession = Depends(get_db),
    caller: IdentityToken = Depends(require_any_role(Role.ADMIN, Role.SECURITY)),
) -> PublishFactResponse:
    """Publish a security fact. Admin or security only."""
    fact = await notifications.publish_fact(
        db,
        caller,
        message=body.message,
        roles=body.roles,
        priority=body.priority,
        fact_type=body.type,
    )
    return PublishFactResponse(id=fact.id)
