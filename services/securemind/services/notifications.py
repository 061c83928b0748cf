"""Notification fan-out and fact publishing.

A broadcast resolves its target spec to recipient uids and writes one
Notification per recipient through BulkWriter. Recipients are not
de-duplicated across separate broadcasts; re-running one after a partial
failure re-notifies the recipients of the batches that did commit.
"""

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Literal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from securemind.auth.sessions import IdentityToken
from securemind.config import settings
from securemind.db.bulk import BulkWriteError, BulkWriter
from securemind.db.models import Fact, Notification, UserProfile
from securemind.errors import Internal, InvalidArgument
from securemind.logging_config import get_logger
from securemind.roles import Role, normalize_role
from securemind.services.audit_service import log_audit_event

logger = get_logger(__name__)

TargetType = Literal["all", "roles", "users"]
TARGET_TYPES: tuple[str, ...] = ("all", "roles", "users")


@dataclass
class BroadcastTarget:
    """Who a broadcast goes to."""

    target_type: str = "all"
    roles: list[str] = field(default_factory=list)
    user_ids: list[str] = field(default_factory=list)


def _chunk(items: Sequence[str], size: int) -> list[Sequence[str]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


async def user_ids_by_roles(
    read_factory: async_sessionmaker[AsyncSession], roles: Sequence[str]
) -> list[str]:
    """Uids of every profile whose role is in roles.

    Roles are queried in groups of at most notifications.roles_per_query,
    one concurrent query per group, each on its own session.
    """
    role_list = list(dict.fromkeys(str(r).strip().lower() for r in roles if str(r).strip()))
    if not role_list:
        return []

    async def _query(group: Sequence[str]) -> list[str]:
        async with read_factory() as session:
            result = await session.execute(
                select(UserProfile.uid).where(UserProfile.role.in_(list(group)))
            )
            return list(result.scalars().all())

    groups = _chunk(role_list, settings.notifications.roles_per_query)
    results = await asyncio.gather(*(_query(g) for g in groups))

    # dict preserves first-seen order while de-duplicating
    ids: dict[str, None] = {}
    for uids in results:
        ids.update(dict.fromkeys(uids))
    return list(ids)


async def resolve_recipients(
    db: AsyncSession,
    read_factory: async_sessionmaker[AsyncSession],
    target: BroadcastTarget,
) -> list[str]:
    """Turn a target spec into recipient uids.

    Raises:
        InvalidArgument: Unknown target type
    """
    if target.target_type == "all":
        result = await db.execute(select(UserProfile.uid))
        return list(result.scalars().all())
    if target.target_type == "roles":
        return await user_ids_by_roles(read_factory, [normalize_role(r) for r in target.roles])
    if target.target_type == "users":
        return [str(uid) for uid in target.user_ids]
    raise InvalidArgument("invalid targetType")


async def broadcast(
    db: AsyncSession,
    read_factory: async_sessionmaker[AsyncSession],
    *,
    kind: str,
    ref_id: str | None,
    title: str,
    message: str | None,
    target: BroadcastTarget,
) -> int:
    """Write one notification per resolved recipient. Returns the recipient count.

    Raises:
        InvalidArgument: Unknown target type
        Internal: A batch failed to commit; earlier batches stay written
    """
    recipients = await resolve_recipients(db, read_factory, target)
    if not recipients:
        logger.info("Broadcast has no recipients", kind=kind, target_type=target.target_type)
        return 0

    writer = BulkWriter(db, batch_size=settings.notifications.batch_size)
    writer.extend(
        Notification(
            user_id=uid,
            type=kind,
            fact_id=ref_id if kind == "fact" else None,
            policy_id=ref_id if kind == "policy" else None,
            title=title,
            message=message,
            read=False,
        )
        for uid in recipients
    )

    try:
        outcomes = await writer.commit()
    except BulkWriteError as e:
        raise Internal(
            f"Notification write failed after {e.committed_count} of "
            f"{len(recipients)} recipients: {e.cause}"
        ) from e

    logger.info(
        "Broadcast sent",
        kind=kind,
        ref_id=ref_id,
        recipients=len(recipients),
        batches=len(outcomes),
    )
    return len(recipients)


async def broadcast_fact(
    db: AsyncSession,
    read_factory: async_sessionmaker[AsyncSession],
    actor: IdentityToken,
    *,
    title: str,
    message: str,
    target: BroadcastTarget,
    fact_id: str | None = None,
) -> int:
    if not (title or "").strip() or not (message or "").strip():
        raise InvalidArgument("title and message are required")
    if target.target_type not in TARGET_TYPES:
        raise InvalidArgument("invalid targetType")

    count = await broadcast(
        db,
        read_factory,
        kind="fact",
        ref_id=fact_id or None,
        title=title,
        message=message,
        target=target,
    )
    await log_audit_event(
        db,
        event_type="notification",
        action="fact_broadcast",
        actor_id=actor.uid,
        target_type="fact",
        target_id=fact_id or None,
        details={"target_type": target.target_type, "count": count},
    )
    return count


async def broadcast_policy(
    db: AsyncSession,
    read_factory: async_sessionmaker[AsyncSession],
    actor: IdentityToken,
    *,
    policy_id: str,
    title: str,
    roles: list[str],
) -> int:
    """Notify every user holding one of roles about a policy."""
    if not (policy_id or "").strip() or not (title or "").strip() or not roles:
        raise InvalidArgument("policyId, title, and roles are required")

    count = await broadcast(
        db,
        read_factory,
        kind="policy",
        ref_id=policy_id,
        title=title,
        message=None,
        target=BroadcastTarget(target_type="roles", roles=roles),
    )
    await log_audit_event(
        db,
        event_type="notification",
        action="policy_broadcast",
        actor_id=actor.uid,
        target_type="policy",
        target_id=policy_id,
        details={"roles": [normalize_role(r).value for r in roles], "count": count},
    )
    return count


async def publish_fact(
    db: AsyncSession,
    actor: IdentityToken,
    *,
    message: str,
    roles: list[str] | None = None,
    priority: str = "normal",
    fact_type: str = "security",
) -> Fact:
    """Store a security fact. Unknown audience roles fall back to security."""
    if not (message or "").strip():
        raise InvalidArgument("message required")

    audience = [normalize_role(r, Role.SECURITY).value for r in (roles or [Role.SECURITY])]
    fact = Fact(
        message=message,
        roles=audience,
        priority=priority or "normal",
        type=fact_type or "security",
        created_by=actor.uid,
        view_count=0,
    )
    db.add(fact)
    await db.commit()

    await log_audit_event(
        db,
        event_type="notification",
        action="fact_published",
        actor_id=actor.uid,
        target_type="fact",
        target_id=str(fact.id),
        details={"roles": audience},
    )
    return fact
