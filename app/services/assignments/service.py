"""
Role assignment service - the write path for project roles.

Every role change goes through here:
1. compute_role_mapping() resolves the mapping (bridge, tier clamp, permissions)
2. The authoritative RoleAssignment row, the source context's own store and a
   SyncEvent for the opposite context are written in one transaction
3. After commit the RoleMapping cache is replaced and claims are published

Claims publication happens after the commit, so a publish failure never
rolls back the assignment; it is logged and reported to the caller, and the
next claims refresh repairs it.
"""

import logging
import uuid as uuid_pkg
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.org_member_operations import org_member_ops
from app.domain.organization_operations import organization_ops
from app.domain.role_assignment_operations import role_assignment_ops
from app.models.organization import Organization
from app.models.role_assignment import RoleAssignment
from app.models.sync_event import SourceContext, SyncEvent, SyncEventType
from app.roles.bridge import map_organization_role_to_project
from app.roles.catalog import OrganizationRole, get_project_role, parse_organization_role
from app.roles.claims import build_custom_claims, revoked_claims
from app.roles.tiers import get_tier_policy
from app.roles.types import RoleMapping, RoleTemplate
from app.services.assignments.cache import RoleMappingCache, role_mapping_cache
from app.services.claims_publisher import ClaimsPublishError, publish_claims
from app.services.role_sync.synchronizer import role_synchronizer
from app.services.role_sync.targets import write_context

logger = logging.getLogger(__name__)


class MembershipNotFoundError(Exception):
    """Raised when the user is not a member of the organization."""

    def __init__(self, organization_id: uuid_pkg.UUID, user_id: uuid_pkg.UUID):
        self.organization_id = organization_id
        self.user_id = user_id
        super().__init__(f"User {user_id} is not a member of organization {organization_id}")


class AssignmentNotFoundError(Exception):
    """Raised when no role is assigned to the user on the project."""

    def __init__(self, project_id: uuid_pkg.UUID, user_id: uuid_pkg.UUID):
        self.project_id = project_id
        self.user_id = user_id
        super().__init__(f"User {user_id} has no role on project {project_id}")


@dataclass
class AssignmentResult:
    """Outcome of an assign or refresh call."""

    mapping: RoleMapping
    sync_event: SyncEvent | None
    claims: dict[str, Any] | None
    claims_published: bool


def build_template(
    project_role: str | None = None,
    template: dict[str, Any] | None = None,
) -> RoleTemplate | None:
    """
    Build the bridge input from an assignment request.

    An explicit project role is validated against the catalog and becomes a
    direct-match template; it takes precedence over any free-text template.

    Raises:
        UnknownRoleError: project_role is not in the catalog.
    """
    if project_role:
        return RoleTemplate(name=get_project_role(project_role).name)
    if template is None:
        return None
    return RoleTemplate(
        name=template.get("name") or "",
        hierarchy_hint=template.get("hierarchy_hint"),
        responsibilities=tuple(template.get("responsibilities") or ()),
    )


def template_to_dict(template: RoleTemplate | None) -> dict[str, Any] | None:
    if template is None:
        return None
    return {
        "name": template.name,
        "hierarchy_hint": template.hierarchy_hint,
        "responsibilities": list(template.responsibilities),
    }


async def compute_role_mapping(
    db: AsyncSession,
    organization: Organization,
    user_id: uuid_pkg.UUID,
    template: RoleTemplate | None = None,
    organization_role: "str | OrganizationRole | None" = None,
) -> RoleMapping:
    """
    Resolve the RoleMapping for a user in an organization.

    This is the only place the bridge is invoked for a real user. The
    organization role defaults to the user's current membership role, and the
    tier is always the organization's current tier.

    Raises:
        MembershipNotFoundError: organization_role not given and the user is not a member.
        UnknownRoleError: organization_role is not a valid organization role.
        ConfigurationError: the organization's tier is unknown.
    """
    if organization_role is None:
        membership = await org_member_ops.get_by_org_and_user(db, organization.id, user_id)
        if membership is None:
            raise MembershipNotFoundError(organization.id, user_id)
        organization_role = membership.role
    return map_organization_role_to_project(organization_role, template, organization.tier)


class RoleAssignmentService:
    """Assign, remove and refresh project roles; keep the cache and claims in step."""

    def __init__(self, cache: RoleMappingCache):
        self.cache = cache

    async def get_mapping(
        self,
        db: AsyncSession,
        project_id: uuid_pkg.UUID,
        user_id: uuid_pkg.UUID,
    ) -> RoleMapping | None:
        """Read the stored mapping, through the cache."""
        cached = self.cache.get(user_id, project_id)
        if cached is not None:
            return cached

        assignment = await role_assignment_ops.get(db, user_id, project_id)
        if assignment is None:
            return None
        mapping = assignment.to_mapping()
        self.cache.set(user_id, project_id, mapping)
        return mapping

    async def assign(
        self,
        db: AsyncSession,
        organization: Organization,
        project_id: uuid_pkg.UUID,
        user_id: uuid_pkg.UUID,
        template: RoleTemplate | None = None,
        organization_role: "str | OrganizationRole | None" = None,
        source_context: SourceContext = SourceContext.LICENSING,
        publish: bool = True,
    ) -> AssignmentResult:
        """
        Assign or update the user's role on a project.

        When organization_role is given and differs from the membership, the
        membership is updated and the user's other assignments in the
        organization are recomputed in the same transaction.

        Raises:
            MembershipNotFoundError: the user is not a member of the organization.
            UnknownRoleError / ConfigurationError: from the bridge.
        """
        membership = await org_member_ops.get_by_org_and_user(
            db, organization.id, user_id, for_update=True
        )
        if membership is None:
            raise MembershipNotFoundError(organization.id, user_id)

        role_changed = False
        if organization_role is not None:
            new_role = parse_organization_role(organization_role)
            if new_role.value != membership.role:
                logger.info(
                    f"Organization role for {user_id} in {organization.id}: "
                    f"{membership.role} -> {new_role.value}"
                )
                await org_member_ops.update_role(db, membership, new_role)
                role_changed = True

        mapping = map_organization_role_to_project(membership.role, template, organization.tier)
        assignment, created = await role_assignment_ops.upsert(
            db,
            organization_id=organization.id,
            project_id=project_id,
            user_id=user_id,
            mapping=mapping,
            template=template_to_dict(template),
            source_context=source_context.value,
        )
        await write_context(db, source_context, organization.id, project_id, user_id, mapping)
        event = await role_synchronizer.enqueue(
            db,
            event_type=SyncEventType.ROLE_ASSIGNED if created else SyncEventType.ROLE_UPDATED,
            source_context=source_context,
            organization_id=organization.id,
            project_id=project_id,
            user_id=user_id,
            payload=mapping.to_payload(),
        )

        others: list[RoleAssignment] = []
        if role_changed:
            others = [
                a
                for a in await role_assignment_ops.get_by_org(db, organization.id, for_update=True)
                if a.user_id == user_id and a.project_id != project_id
            ]
            await self._recompute(db, organization, others)

        await db.commit()

        self.cache.set(user_id, project_id, mapping)
        for other in others:
            self.cache.invalidate(user_id, other.project_id)

        logger.info(
            f"Assigned {mapping.project_role.name} to {user_id} on {project_id} "
            f"({mapping.mapping_reason.value}, effective {mapping.effective_hierarchy}"
            f"{', clamped from ' + mapping.clamped_from if mapping.clamped_from else ''})"
        )

        claims, published = None, False
        if publish:
            claims, published = await self._publish(mapping, organization.id, project_id, user_id)
        return AssignmentResult(
            mapping=mapping, sync_event=event, claims=claims, claims_published=published
        )

    async def remove(
        self,
        db: AsyncSession,
        organization: Organization,
        project_id: uuid_pkg.UUID,
        user_id: uuid_pkg.UUID,
        source_context: SourceContext = SourceContext.LICENSING,
    ) -> SyncEvent:
        """
        Remove the user's role on a project and announce it with ROLE_REMOVED.

        Raises:
            AssignmentNotFoundError: nothing is assigned.
        """
        assignment = await role_assignment_ops.get(db, user_id, project_id, for_update=True)
        if assignment is None or assignment.organization_id != organization.id:
            raise AssignmentNotFoundError(project_id, user_id)

        await role_assignment_ops.delete(db, assignment)
        await write_context(db, source_context, organization.id, project_id, user_id, None)
        event = await role_synchronizer.enqueue(
            db,
            event_type=SyncEventType.ROLE_REMOVED,
            source_context=source_context,
            organization_id=organization.id,
            project_id=project_id,
            user_id=user_id,
            payload={},
        )
        await db.commit()

        self.cache.invalidate(user_id, project_id)
        logger.info(f"Removed role for {user_id} on {project_id}")

        try:
            await publish_claims(user_id, revoked_claims())
        except ClaimsPublishError as e:
            logger.warning(f"Failed to revoke claims for {user_id}: {e}")
        return event

    async def change_tier(
        self,
        db: AsyncSession,
        organization: Organization,
        tier: str,
    ) -> list[SyncEvent]:
        """
        Change the organization's tier and recompute every assignment under it.

        Each mapping whose outcome changes gets a ROLE_UPDATED event.

        Raises:
            ConfigurationError: tier is unknown.
        """
        get_tier_policy(tier)
        previous = organization.tier
        # Serializes concurrent tier changes for the organization
        await organization_ops.get_for_update(db, organization.id)
        await organization_ops.set_tier(db, organization, tier)

        assignments = await role_assignment_ops.get_by_org(db, organization.id, for_update=True)
        events = await self._recompute(db, organization, assignments)
        await db.commit()

        self.cache.invalidate_projects({a.project_id for a in assignments})
        changed = [e for e in events if e is not None]
        logger.info(
            f"Tier for {organization.id}: {previous} -> {organization.tier}, "
            f"{len(changed)}/{len(assignments)} assignments changed"
        )
        return changed

    async def refresh_claims(
        self,
        db: AsyncSession,
        organization: Organization,
        project_id: uuid_pkg.UUID,
        user_id: uuid_pkg.UUID,
    ) -> AssignmentResult:
        """
        Recompute the caller's mapping from current state and republish claims.

        Raises:
            AssignmentNotFoundError: nothing is assigned.
            MembershipNotFoundError: the user left the organization.
        """
        assignment = await role_assignment_ops.get(db, user_id, project_id)
        if assignment is None or assignment.organization_id != organization.id:
            raise AssignmentNotFoundError(project_id, user_id)

        mapping = await compute_role_mapping(
            db, organization, user_id, template=_stored_template(assignment)
        )
        self.cache.set(user_id, project_id, mapping)
        claims, published = await self._publish(mapping, organization.id, project_id, user_id)
        return AssignmentResult(
            mapping=mapping, sync_event=None, claims=claims, claims_published=published
        )

    async def _recompute(
        self,
        db: AsyncSession,
        organization: Organization,
        assignments: list[RoleAssignment],
    ) -> list[SyncEvent | None]:
        """Recompute stored assignments; enqueue ROLE_UPDATED for those that changed."""
        events: list[SyncEvent | None] = []
        for assignment in assignments:
            mapping = await compute_role_mapping(
                db, organization, assignment.user_id, template=_stored_template(assignment)
            )
            if mapping == assignment.to_mapping():
                events.append(None)
                continue

            source = SourceContext(assignment.source_context)
            assignment.apply_mapping(mapping)
            db.add(assignment)
            await write_context(
                db, source, organization.id, assignment.project_id, assignment.user_id, mapping
            )
            event = await role_synchronizer.enqueue(
                db,
                event_type=SyncEventType.ROLE_UPDATED,
                source_context=source,
                organization_id=organization.id,
                project_id=assignment.project_id,
                user_id=assignment.user_id,
                payload=mapping.to_payload(),
            )
            events.append(event)
        await db.flush()
        return events

    async def _publish(
        self,
        mapping: RoleMapping,
        organization_id: uuid_pkg.UUID,
        project_id: uuid_pkg.UUID,
        user_id: uuid_pkg.UUID,
    ) -> tuple[dict[str, Any], bool]:
        """Build and publish claims. ClaimsTooLargeError propagates; publish errors do not."""
        claims = build_custom_claims(mapping, str(organization_id), str(project_id))
        try:
            published = await publish_claims(user_id, claims)
        except ClaimsPublishError as e:
            logger.warning(f"Claims not published for {user_id} on {project_id}: {e}")
            published = False
        return claims, published


def _stored_template(assignment: RoleAssignment) -> RoleTemplate | None:
    return build_template(template=assignment.template)


role_assignment_service = RoleAssignmentService(role_mapping_cache)
