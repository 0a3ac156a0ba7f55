"""Role engine tables with claim-based RLS

Revision ID: 5e1a7c3b9d20
Revises:
Create Date: 2026-10-19 10:00:00.000000

Creates the licensing-side tables (organizations, organization_members), the
dashboard-side tables (projects, project_members), the authoritative
role_assignments table and the sync_events queue with its applied ledger.

RLS is enabled on every table. Policies read the verified role claims the
application sets per transaction (app/core/rls.py):

- app.claims_org_id        organization the token's claims belong to
- app.claims_hierarchy     effective hierarchy from the token
- app.claims_permissions   comma separated permission names
- app.claims_project_id    project the token's hierarchy and permissions were issued for
- app.claims_team_hierarchy organization-role hierarchy from the token

The thresholds mirror ACCESS_POLICY in app/core/access_policy.py. Nothing is
granted by default: a table without a matching policy denies the operation.
service_role bypasses RLS for the synchronizer and migrations.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB, UUID

# revision identifiers, used by Alembic.
revision: str = "5e1a7c3b9d20"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps(updated_nullable: bool = False) -> list[sa.Column]:
    return [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=None if updated_nullable else sa.func.now(),
            nullable=updated_nullable,
        ),
    ]


def upgrade() -> None:
    """Create role engine tables and enable claim-based RLS."""

    # =========================================================================
    # TABLES
    # =========================================================================

    op.create_table(
        "users",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("display_name", sa.String(100), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
    )
    op.create_index("ix_users_id", "users", ["id"])

    op.create_table(
        "organizations",
        sa.Column(
            "id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")
        ),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("slug", sa.String(100), unique=True, nullable=False),
        sa.Column("tier", sa.String(20), nullable=False, server_default="BASIC"),
        *_timestamps(updated_nullable=True),
    )
    op.create_index("ix_organizations_slug", "organizations", ["slug"])

    op.create_table(
        "organization_members",
        sa.Column(
            "id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")
        ),
        sa.Column(
            "organization_id",
            UUID(as_uuid=True),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("role", sa.String(20), nullable=False, server_default="member"),
        sa.Column("project_roles", JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column(
            "joined_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("organization_id", "user_id", name="uq_org_member"),
    )
    op.create_index(
        "ix_organization_members_organization_id", "organization_members", ["organization_id"]
    )
    op.create_index("ix_organization_members_user_id", "organization_members", ["user_id"])

    op.create_table(
        "projects",
        sa.Column(
            "id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")
        ),
        sa.Column(
            "organization_id",
            UUID(as_uuid=True),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
            comment="Organization that owns this project",
        ),
        sa.Column("name", sa.String(255), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_projects_id", "projects", ["id"])
    op.create_index("ix_projects_organization_id", "projects", ["organization_id"])

    op.create_table(
        "project_members",
        sa.Column(
            "id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")
        ),
        sa.Column(
            "project_id",
            UUID(as_uuid=True),
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("organization_role", sa.String(20), nullable=False),
        sa.Column("project_role", sa.String(50), nullable=False),
        sa.Column("hierarchy", sa.Integer, nullable=False),
        sa.Column("effective_hierarchy", sa.Integer, nullable=False),
        sa.Column("tier", sa.String(20), nullable=False),
        sa.Column("last_sync_event_id", UUID(as_uuid=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("project_id", "user_id", name="uq_project_member_project_user"),
    )
    op.create_index("ix_project_members_project_id", "project_members", ["project_id"])
    op.create_index("ix_project_members_user_id", "project_members", ["user_id"])

    op.create_table(
        "role_assignments",
        sa.Column(
            "id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")
        ),
        sa.Column(
            "organization_id",
            UUID(as_uuid=True),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "project_id",
            UUID(as_uuid=True),
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("organization_role", sa.String(20), nullable=False),
        sa.Column("project_role", sa.String(50), nullable=False),
        sa.Column("effective_hierarchy", sa.Integer, nullable=False),
        sa.Column("mapping_reason", sa.String(30), nullable=False),
        sa.Column("tier", sa.String(20), nullable=False),
        sa.Column("clamped_from", sa.String(50), nullable=True),
        sa.Column("template", JSONB, nullable=True),
        sa.Column("source_context", sa.String(20), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "project_id", name="uq_role_assignment_user_project"),
    )
    op.create_index(
        "ix_role_assignments_organization_id", "role_assignments", ["organization_id"]
    )
    op.create_index("ix_role_assignments_project_id", "role_assignments", ["project_id"])
    op.create_index("ix_role_assignments_user_id", "role_assignments", ["user_id"])

    # Sync events are an append-only audit log: no foreign keys, so the history
    # survives deletion of the project or membership it describes.
    op.create_table(
        "sync_events",
        sa.Column(
            "id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")
        ),
        sa.Column("event_type", sa.String(20), nullable=False),
        sa.Column("source_context", sa.String(20), nullable=False),
        sa.Column("user_id", UUID(as_uuid=True), nullable=False),
        sa.Column("project_id", UUID(as_uuid=True), nullable=False),
        sa.Column("organization_id", UUID(as_uuid=True), nullable=False),
        sa.Column("payload", JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("attempt", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text, nullable=True),
        sa.Column("superseded_by", UUID(as_uuid=True), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "next_attempt_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_sync_events_organization_id", "sync_events", ["organization_id"])
    op.create_index(
        "ix_sync_events_status_next_attempt", "sync_events", ["status", "next_attempt_at"]
    )
    op.create_index("ix_sync_events_user_project", "sync_events", ["user_id", "project_id"])

    op.create_table(
        "applied_sync_events",
        sa.Column("event_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("target_context", sa.String(20), primary_key=True),
        sa.Column(
            "applied_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
    )

    # =========================================================================
    # CLAIM HELPERS
    # =========================================================================
    # current_setting(..., true) returns NULL instead of raising when unset, so
    # a transaction without claims fails every comparison below.
    # Note: Each statement must be in a separate op.execute() for asyncpg compatibility
    # =========================================================================

    op.execute("""
        CREATE OR REPLACE FUNCTION app_user_id()
        RETURNS UUID AS $$
            SELECT NULLIF(current_setting('app.current_user_id', true), '')::uuid;
        $$ LANGUAGE sql STABLE
    """)

    op.execute("""
        CREATE OR REPLACE FUNCTION app_claims_org_id()
        RETURNS UUID AS $$
            SELECT NULLIF(current_setting('app.claims_org_id', true), '')::uuid;
        $$ LANGUAGE sql STABLE
    """)

    op.execute("""
        CREATE OR REPLACE FUNCTION app_claims_hierarchy()
        RETURNS INTEGER AS $$
            SELECT COALESCE(NULLIF(current_setting('app.claims_hierarchy', true), '')::integer, 0);
        $$ LANGUAGE sql STABLE
    """)

    op.execute("""
        CREATE OR REPLACE FUNCTION app_claims_team_hierarchy()
        RETURNS INTEGER AS $$
            SELECT COALESCE(NULLIF(current_setting('app.claims_team_hierarchy', true), '')::integer, 0);
        $$ LANGUAGE sql STABLE
    """)

    op.execute("""
        CREATE OR REPLACE FUNCTION app_claims_project_id()
        RETURNS UUID AS $$
            SELECT NULLIF(current_setting('app.claims_project_id', true), '')::uuid;
        $$ LANGUAGE sql STABLE
    """)

    op.execute("""
        CREATE OR REPLACE FUNCTION app_claims_has(p_permission TEXT)
        RETURNS BOOLEAN AS $$
            SELECT p_permission = ANY(
                string_to_array(COALESCE(current_setting('app.claims_permissions', true), ''), ',')
            );
        $$ LANGUAGE sql STABLE
    """)

    op.execute("""
        COMMENT ON FUNCTION app_claims_has(TEXT) IS
            'Returns TRUE if the verified token claims for this transaction include '
            'the named permission (e.g. canManageTeam). Set via set_config in rls.py.'
    """)

    op.execute("""
        DO $$
        BEGIN
            IF EXISTS (
                SELECT 1 FROM pg_roles
                WHERE rolname = 'service_role' AND rolbypassrls = false
            ) THEN
                ALTER ROLE service_role BYPASSRLS;
                RAISE NOTICE 'Granted BYPASSRLS to service_role';
            END IF;
        END $$
    """)

    # =========================================================================
    # POLICIES
    # =========================================================================

    for table in (
        "users",
        "organizations",
        "organization_members",
        "projects",
        "project_members",
        "role_assignments",
        "sync_events",
        "applied_sync_events",
    ):
        op.execute(f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY")

    # users: own row only
    op.execute("""
        CREATE POLICY users_select_own ON users
            FOR SELECT
            USING (id = app_user_id())
    """)

    # organizations: read at hierarchy 10+, update with canManageSettings
    op.execute("""
        CREATE POLICY organizations_claims_select ON organizations
            FOR SELECT
            USING (id = app_claims_org_id() AND app_claims_hierarchy() >= 10)
    """)
    op.execute("""
        CREATE POLICY organizations_claims_update ON organizations
            FOR UPDATE
            USING (
                id = app_claims_org_id()
                AND app_claims_team_hierarchy() >= 90
                AND app_claims_has('canManageSettings')
            )
    """)

    # organization_members, projects, project_members: read at 10+, write by permission
    for table, org_expr, permission in (
        ("organization_members", "organization_id", "canManageTeam"),
        ("projects", "organization_id", "canManageProjects"),
        (
            "project_members",
            "(SELECT p.organization_id FROM projects p WHERE p.id = project_id)",
            "canManageTeam",
        ),
    ):
        op.execute(f"""
            CREATE POLICY {table}_claims_select ON {table}
                FOR SELECT
                USING ({org_expr} = app_claims_org_id() AND app_claims_hierarchy() >= 10)
        """)
        op.execute(f"""
            CREATE POLICY {table}_claims_write ON {table}
                FOR ALL
                USING ({org_expr} = app_claims_org_id() AND app_claims_has('{permission}'))
                WITH CHECK ({org_expr} = app_claims_org_id() AND app_claims_has('{permission}'))
        """)

    # role_assignments: project-scoped claims only authorize rows of that project;
    # members always read their own
    op.execute("""
        CREATE POLICY role_assignments_claims_select ON role_assignments
            FOR SELECT
            USING (
                organization_id = app_claims_org_id()
                AND (
                    user_id = app_user_id()
                    OR (project_id = app_claims_project_id() AND app_claims_has('canManageProjects'))
                )
            )
    """)
    op.execute("""
        CREATE POLICY role_assignments_claims_write ON role_assignments
            FOR ALL
            USING (
                organization_id = app_claims_org_id()
                AND project_id = app_claims_project_id()
                AND app_claims_has('canManageTeam')
            )
            WITH CHECK (
                organization_id = app_claims_org_id()
                AND project_id = app_claims_project_id()
                AND app_claims_has('canManageTeam')
            )
    """)

    # sync_events: audit view at 60+ with reports, operator retry with settings
    op.execute("""
        CREATE POLICY sync_events_claims_select ON sync_events
            FOR SELECT
            USING (
                organization_id = app_claims_org_id()
                AND app_claims_hierarchy() >= 60
                AND app_claims_has('canAccessReports')
            )
    """)
    op.execute("""
        CREATE POLICY sync_events_claims_update ON sync_events
            FOR UPDATE
            USING (
                organization_id = app_claims_org_id()
                AND app_claims_team_hierarchy() >= 90
                AND app_claims_has('canManageSettings')
            )
    """)

    # applied_sync_events: no policy, service role only

    print("Role engine tables created:")
    print("  - organizations, organization_members, projects, project_members")
    print("  - role_assignments, sync_events, applied_sync_events")
    print("  - Claim-based RLS enabled on all tables (default deny)")


def downgrade() -> None:
    """Drop role engine tables and claim helpers."""
    op.drop_table("applied_sync_events")
    op.drop_table("sync_events")
    op.drop_table("role_assignments")
    op.drop_table("project_members")
    op.drop_table("projects")
    op.drop_table("organization_members")
    op.drop_table("organizations")
    op.drop_table("users")

    op.execute("DROP FUNCTION IF EXISTS app_claims_has(TEXT)")
    op.execute("DROP FUNCTION IF EXISTS app_claims_project_id()")
    op.execute("DROP FUNCTION IF EXISTS app_claims_team_hierarchy()")
    op.execute("DROP FUNCTION IF EXISTS app_claims_hierarchy()")
    op.execute("DROP FUNCTION IF EXISTS app_claims_org_id()")
    op.execute("DROP FUNCTION IF EXISTS app_user_id()")

    print("Role engine tables removed")
