"""
Context writers - apply a role mapping (or its removal) to one context's store.

- Dashboard context: `project_members` rows
- Licensing context: `organization_members.project_roles`, keyed by project id

Writers are used both for the source context's own write (inside the
assignment transaction) and by the synchronizer when delivering an event to
the opposite context. They never commit.
"""

import logging
import uuid as uuid_pkg
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.org_member_operations import org_member_ops
from app.domain.project_operations import project_member_ops, project_ops
from app.models.sync_event import SourceContext
from app.roles.exceptions import SyncPermanentError
from app.roles.types import RoleMapping

logger = logging.getLogger(__name__)


def licensing_entry(mapping: RoleMapping, sync_event_id: uuid_pkg.UUID | None) -> dict[str, Any]:
    """Shape of one `project_roles` entry on the licensing membership."""
    return {
        "role": mapping.project_role.name,
        "hierarchy": mapping.project_role.hierarchy,
        "effective_hierarchy": mapping.effective_hierarchy,
        "tier": mapping.tier,
        "sync_event_id": str(sync_event_id) if sync_event_id else None,
    }


async def write_dashboard(
    db: AsyncSession,
    organization_id: uuid_pkg.UUID,
    project_id: uuid_pkg.UUID,
    user_id: uuid_pkg.UUID,
    mapping: RoleMapping | None,
    sync_event_id: uuid_pkg.UUID | None = None,
) -> None:
    """
    Upsert (or, with mapping=None, delete) the user's project membership.

    Raises:
        SyncPermanentError: the project no longer exists in the organization.
    """
    if mapping is None:
        removed = await project_member_ops.remove(db, project_id, user_id)
        if not removed:
            logger.debug(f"No dashboard membership to remove for {user_id}/{project_id}")
        return

    project = await project_ops.get_in_org(db, organization_id, project_id)
    if project is None:
        raise SyncPermanentError(f"Project {project_id} not found in organization {organization_id}")
    await project_member_ops.upsert_from_mapping(db, project_id, user_id, mapping, sync_event_id)


async def write_licensing(
    db: AsyncSession,
    organization_id: uuid_pkg.UUID,
    project_id: uuid_pkg.UUID,
    user_id: uuid_pkg.UUID,
    mapping: RoleMapping | None,
    sync_event_id: uuid_pkg.UUID | None = None,
) -> None:
    """
    Record (or, with mapping=None, clear) the project role on the org membership.

    Raises:
        SyncPermanentError: the user is no longer a member of the organization.
    """
    membership = await org_member_ops.get_by_org_and_user(
        db, organization_id, user_id, for_update=True
    )
    if membership is None:
        if mapping is None:
            # Nothing left to clear
            return
        raise SyncPermanentError(f"User {user_id} is not a member of organization {organization_id}")

    if mapping is None:
        await org_member_ops.clear_project_role(db, membership, project_id)
        return
    await org_member_ops.set_project_role(
        db, membership, project_id, licensing_entry(mapping, sync_event_id)
    )


async def write_context(
    db: AsyncSession,
    context: SourceContext,
    organization_id: uuid_pkg.UUID,
    project_id: uuid_pkg.UUID,
    user_id: uuid_pkg.UUID,
    mapping: RoleMapping | None,
    sync_event_id: uuid_pkg.UUID | None = None,
) -> None:
    """Dispatch to the writer for `context`."""
    if context is SourceContext.DASHBOARD:
        await write_dashboard(db, organization_id, project_id, user_id, mapping, sync_event_id)
    else:
        await write_licensing(db, organization_id, project_id, user_id, mapping, sync_event_id)
