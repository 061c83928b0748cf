"""Audit logging service."""

from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from securemind.db.models import AuditLog

logger = structlog.get_logger(__name__)


async def log_audit_event(
    db: AsyncSession,
    *,
    event_type: str,
    action: str,
    actor_type: str = "user",
    actor_id: str | None = None,
    target_type: str | None = None,
    target_id: str | None = None,
    details: dict[str, Any] | None = None,
    success: bool = True,
    error_message: str | None = None,
    commit: bool = True,
) -> AuditLog:
    """
    Record an audit event.

    Args:
        db: Database session
        event_type: Type of event ('auth', 'admin', 'registration', 'notification')
        action: Specific action ('user_created', 'role_set', 'broadcast', etc.)
        actor_type: Type of actor ('user', 'system')
        actor_id: uid of the acting account
        target_type: Type of target ('user', 'employee', 'fact', etc.)
        target_id: Identifier of the target
        details: Additional event details
        success: Whether the action was successful
        error_message: Error message if action failed
        commit: Commit immediately. Services write audit entries after their
            own durable steps, so the entry must not ride on a later commit.

    Returns:
        The created AuditLog entry
    """
    request_id = structlog.contextvars.get_contextvars().get("request_id")

    entry = AuditLog(
        event_type=event_type,
        action=action,
        actor_type=actor_type,
        actor_id=actor_id,
        target_type=target_type,
        target_id=target_id,
        request_id=request_id,
        details=details or {},
        success=success,
        error_message=error_message,
    )
    db.add(entry)
    if commit:
        await db.commit()

    log_method = logger.info if success else logger.warning
    log_method(
        "audit_event",
        event_type=event_type,
        action=action,
        actor_id=actor_id,
        target_type=target_type,
        target_id=target_id,
        success=success,
        error_message=error_message,
    )

    return entry
