"""Role assignment model - the authoritative RoleMapping per user and project."""

import uuid as uuid_pkg
from datetime import UTC, datetime
from typing import Any

from pydantic import Field as PydanticField
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlmodel import Field, SQLModel

from app.models.sync_event import SourceContext
from app.roles.types import RoleMapping


class RoleAssignment(SQLModel, table=True):
    """
    Role assignment - the mapping computed when a role was last assigned.

    One row per (user, project). Both contexts are eventually consistent with
    this row through sync events; the row itself is written in the same
    transaction as the event that announces it.
    """

    __tablename__ = "role_assignments"
    __table_args__ = (
        UniqueConstraint("user_id", "project_id", name="uq_role_assignment_user_project"),
    )

    id: uuid_pkg.UUID = Field(
        default_factory=uuid_pkg.uuid4,
        primary_key=True,
        nullable=False,
        sa_column_kwargs={"server_default": text("gen_random_uuid()")},
    )
    organization_id: uuid_pkg.UUID = Field(
        sa_column=Column(
            PG_UUID(as_uuid=True),
            ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
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
    effective_hierarchy: int = Field(sa_column=Column(Integer, nullable=False))
    mapping_reason: str = Field(sa_column=Column(String(30), nullable=False))
    tier: str = Field(sa_column=Column(String(20), nullable=False))
    clamped_from: str | None = Field(
        default=None,
        sa_column=Column(String(50), nullable=True),
    )

    # Template the role was resolved from; replayed when the tier changes
    template: dict[str, Any] | None = Field(
        default=None,
        sa_column=Column(JSONB, nullable=True),
    )
    source_context: str = Field(sa_column=Column(String(20), nullable=False))

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

    def apply_mapping(self, mapping: RoleMapping) -> None:
        """Copy a freshly computed mapping onto this row."""
        self.organization_role = mapping.organization_role.value
        self.project_role = mapping.project_role.name
        self.effective_hierarchy = mapping.effective_hierarchy
        self.mapping_reason = mapping.mapping_reason.value
        self.tier = mapping.tier
        self.clamped_from = mapping.clamped_from
        self.updated_at = datetime.now(UTC)

    def to_mapping(self) -> RoleMapping:
        """
        Rebuild the RoleMapping from stored columns.

        Permissions are recomputed, and the effective-hierarchy invariant is
        re-checked by RoleMapping itself.
        """
        return RoleMapping.from_payload(
            {
                "organization_role": self.organization_role,
                "project_role": self.project_role,
                "effective_hierarchy": self.effective_hierarchy,
                "mapping_reason": self.mapping_reason,
                "tier": self.tier,
                "clamped_from": self.clamped_from,
            }
        )


# Request/Response schemas
class RoleTemplateIn(SQLModel):
    """Template hint supplied with an assignment or a resolve preview."""

    name: str = ""
    hierarchy_hint: int | None = PydanticField(default=None, ge=0, le=100)
    responsibilities: list[str] = []


class RoleAssignmentUpdate(SQLModel):
    """Schema for assigning or updating a user's project role."""

    organization_role: str | None = None  # Defaults to the member's current org role
    project_role: str | None = None  # Exact catalog name; takes precedence over template
    template: RoleTemplateIn | None = None
    source_context: SourceContext = SourceContext.LICENSING


class TierUpdate(SQLModel):
    """Schema for changing an organization's subscription tier."""

    tier: str


class RoleResolveRequest(SQLModel):
    """Schema for previewing a mapping without persisting it."""

    organization_role: str
    tier: str
    template: RoleTemplateIn | None = None


class RoleMappingRead(SQLModel):
    """Schema for reading a resolved mapping."""

    organization_role: str
    organization_hierarchy: int
    project_role: str
    project_hierarchy: int
    effective_hierarchy: int
    permissions: list[str]
    mapping_reason: str
    tier: str
    clamped_from: str | None = None

    @classmethod
    def from_mapping(cls, mapping: RoleMapping) -> "RoleMappingRead":
        return cls(**mapping.to_payload())


class RoleAssignmentRead(SQLModel):
    """Schema returned by the assignment endpoints."""

    user_id: uuid_pkg.UUID
    project_id: uuid_pkg.UUID
    organization_id: uuid_pkg.UUID
    mapping: RoleMappingRead
    sync_event_id: uuid_pkg.UUID | None = None
    claims_published: bool = False
