"""Project models - the dashboard context's projects and per-project membership."""

import uuid as uuid_pkg
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlmodel import Field, Relationship, SQLModel

from app.models.base import TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from app.models.organization import Organization


class Project(UUIDMixin, TimestampMixin, table=True):
    """A production project owned by an organization."""

    __tablename__ = "projects"

    organization_id: uuid_pkg.UUID = Field(
        sa_column=Column(
            PG_UUID(as_uuid=True),
            ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
            comment="Organization that owns this project",
        ),
    )
    name: str = Field(max_length=255, nullable=False)

    # Relationships
    organization: Optional["Organization"] = Relationship(back_populates="projects")
    members: list["ProjectMember"] = Relationship(
        back_populates="project",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )


class ProjectMember(SQLModel, table=True):
    """
    Project membership - the dashboard context's view of a user's role.

    Written by the synchronizer when a licensing-side change is delivered, and
    by the assignment service when the dashboard is the source of a change.
    """

    __tablename__ = "project_members"
    __table_args__ = (
        UniqueConstraint("project_id", "user_id", name="uq_project_member_project_user"),
    )

    id: uuid_pkg.UUID = Field(
        default_factory=uuid_pkg.uuid4,
        primary_key=True,
        nullable=False,
        sa_column_kwargs={"server_default": text("gen_random_uuid()")},
    )
    project_id: uuid_pkg.UUID = Field(
        sa_column=Column(
            PG_UUID(as_uuid=True),
            ForeignKey("projects.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    user_id: uuid_pkg.UUID = Field(
        sa_column=Column(
            PG_UUID(as_uuid=True),
            ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    organization_role: str = Field(sa_column=Column(String(20), nullable=False))
    project_role: str = Field(sa_column=Column(String(50), nullable=False))
    hierarchy: int = Field(sa_column=Column(Integer, nullable=False))
    effective_hierarchy: int = Field(sa_column=Column(Integer, nullable=False))
    tier: str = Field(sa_column=Column(String(20), nullable=False))

    # Event that last wrote this row (None when written directly by the dashboard)
    last_sync_event_id: uuid_pkg.UUID | None = Field(
        default=None,
        sa_column=Column(PG_UUID(as_uuid=True), nullable=True),
    )

    created_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=lambda: datetime.now(UTC),
        nullable=False,
        sa_type=DateTime(timezone=True),
        sa_column_kwargs={"server_default": text("now()")},
    )
    updated_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=lambda: datetime.now(UTC),
        nullable=False,
        sa_type=DateTime(timezone=True),
        sa_column_kwargs={"server_default": text("now()")},
    )

    # Relationships
    project: Optional["Project"] = Relationship(back_populates="members")
