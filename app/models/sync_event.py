"""Sync event models - cross-context role propagation log and idempotency ledger."""

import uuid as uuid_pkg
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from sqlalchemy import Column, DateTime, Index, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlmodel import Field, SQLModel


class SyncEventType(str, Enum):
    """What happened to the (user, project) role."""

    ROLE_ASSIGNED = "ROLE_ASSIGNED"
    ROLE_UPDATED = "ROLE_UPDATED"
    ROLE_REMOVED = "ROLE_REMOVED"


class SyncEventStatus(str, Enum):
    """Delivery state of a sync event."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class SourceContext(str, Enum):
    """Which application produced the change."""

    LICENSING = "licensing"
    DASHBOARD = "dashboard"

    @property
    def opposite(self) -> "SourceContext":
        if self is SourceContext.LICENSING:
            return SourceContext.DASHBOARD
        return SourceContext.LICENSING


class SyncEvent(SQLModel, table=True):
    """
    Sync event - append-only audit record of a role change.

    The payload is a serialized RoleMapping (empty for ROLE_REMOVED). Rows are
    never deleted: status, attempt and timing columns move forward as the
    synchronizer delivers the event to the opposite context.
    """

    __tablename__ = "sync_events"
    __table_args__ = (
        Index("ix_sync_events_status_next_attempt", "status", "next_attempt_at"),
        Index("ix_sync_events_user_project", "user_id", "project_id"),
    )

    id: uuid_pkg.UUID = Field(
        default_factory=uuid_pkg.uuid4,
        primary_key=True,
        nullable=False,
        sa_column_kwargs={"server_default": text("gen_random_uuid()")},
    )
    event_type: str = Field(sa_column=Column(String(20), nullable=False))
    source_context: str = Field(sa_column=Column(String(20), nullable=False))
    user_id: uuid_pkg.UUID = Field(sa_column=Column(PG_UUID(as_uuid=True), nullable=False))
    project_id: uuid_pkg.UUID = Field(sa_column=Column(PG_UUID(as_uuid=True), nullable=False))
    organization_id: uuid_pkg.UUID = Field(
        sa_column=Column(PG_UUID(as_uuid=True), nullable=False, index=True),
    )
    payload: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSONB, nullable=False, server_default=text("'{}'::jsonb")),
    )

    status: str = Field(
        default=SyncEventStatus.PENDING.value,
        sa_column=Column(String(20), nullable=False, server_default="PENDING"),
    )
    attempt: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, server_default="0"),
    )
    last_error: str | None = Field(default=None, sa_column=Column(Text, nullable=True))

    # Winning event id when this event lost a conflict
    superseded_by: uuid_pkg.UUID | None = Field(
        default=None,
        sa_column=Column(PG_UUID(as_uuid=True), nullable=True),
    )

    created_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=lambda: datetime.now(UTC),
        nullable=False,
        sa_type=DateTime(timezone=True),
        sa_column_kwargs={"server_default": text("now()")},
    )
    next_attempt_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=lambda: datetime.now(UTC),
        nullable=False,
        sa_type=DateTime(timezone=True),
        sa_column_kwargs={"server_default": text("now()")},
    )
    claimed_at: datetime | None = Field(  # type: ignore[call-overload]
        default=None,
        sa_type=DateTime(timezone=True),
    )
    completed_at: datetime | None = Field(  # type: ignore[call-overload]
        default=None,
        sa_type=DateTime(timezone=True),
    )

    @property
    def target_context(self) -> SourceContext:
        return SourceContext(self.source_context).opposite

    @property
    def is_removal(self) -> bool:
        return self.event_type == SyncEventType.ROLE_REMOVED.value


class AppliedSyncEvent(SQLModel, table=True):
    """
    Idempotency ledger - one row per event delivered to a target context.

    Written in the same transaction as the target mutation, so a redelivered
    event finds its row and becomes a no-op.
    """

    __tablename__ = "applied_sync_events"

    event_id: uuid_pkg.UUID = Field(
        sa_column=Column(PG_UUID(as_uuid=True), primary_key=True, nullable=False),
    )
    target_context: str = Field(
        sa_column=Column(String(20), primary_key=True, nullable=False),
    )
    applied_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=lambda: datetime.now(UTC),
        nullable=False,
        sa_type=DateTime(timezone=True),
        sa_column_kwargs={"server_default": text("now()")},
    )


# Response schemas
class SyncEventRead(SQLModel):
    """Schema for the sync audit view."""

    id: uuid_pkg.UUID
    event_type: str
    source_context: str
    user_id: uuid_pkg.UUID
    project_id: uuid_pkg.UUID
    organization_id: uuid_pkg.UUID
    payload: dict[str, Any]
    status: str
    attempt: int
    last_error: str | None
    superseded_by: uuid_pkg.UUID | None
    created_at: datetime
    next_attempt_at: datetime
    completed_at: datetime | None
