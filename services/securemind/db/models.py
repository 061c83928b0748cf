"""
SQLAlchemy database models for SecureMind.

All models use:
- String primary keys shaped like the identity provider's uids and the
  employee directory's ids; UUIDv7 for generated records
- snake_case column names
- Plural table names
- TIMESTAMPTZ with UTC for all timestamps
- Hard deletes (no soft delete columns)
"""

import secrets
import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Index, Integer, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB on PostgreSQL, plain JSON on other dialects
JSONType = JSON().with_variant(JSONB(), "postgresql")


def generate_uuid7() -> uuid.UUID:
    """Generate a UUIDv7 (time-sortable UUID)."""
    # UUIDv7: timestamp in first 48 bits, version in bits 48-51, random in rest
    import time

    timestamp_ms = int(time.time() * 1000)
    rand_bytes = uuid.uuid4().bytes[6:]

    uuid_bytes = (
        timestamp_ms.to_bytes(6, "big")
        + bytes([0x70 | (rand_bytes[0] & 0x0F)])  # Version 7
        + bytes([0x80 | (rand_bytes[1] & 0x3F)])  # Variant
        + rand_bytes[2:]
    )
    return uuid.UUID(bytes=uuid_bytes)


def generate_uid() -> str:
    """Generate an opaque 28-character account uid."""
    return secrets.token_urlsafe(21)


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all models."""

    type_annotation_map = {
        dict[str, Any]: JSONType,
        list[str]: JSONType,
    }


class IdentityAccount(Base):
    """Identity provider account.

    The uid is the subject of every ID token. custom_claims is the signed
    claim set minted into those tokens; only the claim propagator writes it.
    """

    __tablename__ = "identity_accounts"

    uid: Mapped[str] = mapped_column(String(128), primary_key=True, default=generate_uid)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    disabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    custom_claims: Mapped[dict[str, Any]] = mapped_column(default=dict, nullable=False)

    # Refresh sessions opened before this instant are rejected on refresh
    tokens_valid_after: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )


class UserProfile(Base):
    """Application user profile (the `users` collection).

    role mirrors the identity account's role claim. The two are written by
    separate commits and may briefly disagree; see services.claim_propagator.
    """

    __tablename__ = "users"

    uid: Mapped[str] = mapped_column(String(128), primary_key=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    first_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(32), default="user", nullable=False, index=True)
    disabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    employee_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    linked_employee_path: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )


class Employee(Base):
    """Pre-authorized employee record (the employee directory).

    Seeded offline. The in-app workflow only ever sets the linkage columns,
    and only once: the first account to link wins.
    """

    __tablename__ = "employees"

    employee_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[str | None] = mapped_column(String(32), nullable=True)
    department: Mapped[str | None] = mapped_column(String(255), nullable=True)
    team: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    linked_uid: Mapped[str | None] = mapped_column(String(128), nullable=True, unique=True)
    linked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class Preapproval(Base):
    """Role to grant an account automatically on its first sign-in."""

    __tablename__ = "preapprovals"

    uid: Mapped[str] = mapped_column(String(128), primary_key=True)
    role: Mapped[str] = mapped_column(String(32), nullable=False)
    consumed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )


class Notification(Base):
    """One notification per (broadcast, recipient) pair.

    Immutable after creation except for the read flag.
    """

    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=generate_uuid7)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)  # 'fact', 'policy'
    fact_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    policy_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    __table_args__ = (Index("ix_notifications_user_created", "user_id", "created_at"),)


class Fact(Base):
    """A published security fact."""

    __tablename__ = "facts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=generate_uuid7)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    roles: Mapped[list[str]] = mapped_column(default=list, nullable=False)
    priority: Mapped[str] = mapped_column(String(20), default="normal", nullable=False)
    type: Mapped[str] = mapped_column(String(50), default="security", nullable=False)
    view_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_by: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )


class AuditLog(Base):
    """Audit log for security events and admin actions."""

    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=generate_uuid7)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False, index=True
    )

    # Event classification
    event_type: Mapped[str] = mapped_column(
        String(50), nullable=False, index=True
    )  # 'auth', 'admin', 'notification'
    action: Mapped[str] = mapped_column(
        String(50), nullable=False, index=True
    )  # 'user_created', 'role_set', 'broadcast', etc.

    # Actor
    actor_type: Mapped[str] = mapped_column(String(20), nullable=False)  # 'user', 'system'
    actor_id: Mapped[str | None] = mapped_column(String(255), nullable=True)  # uid

    # Target
    target_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    target_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Request context
    request_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)

    details: Mapped[dict[str, Any]] = mapped_column(default=dict, nullable=False)

    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_audit_logs_timestamp_event", "timestamp", "event_type"),
        Index("ix_audit_logs_actor", "actor_type", "actor_id"),
    )
