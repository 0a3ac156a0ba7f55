"""
Backfill: recompute every stored role mapping and republish identity claims.

Run after a tier-table or catalog change, or after the claim shape changes
(CLAIMS_VERSION bump), so existing tokens pick up the new values on their
next refresh. Assignments whose recomputed mapping differs from the stored
one are not rewritten here; use the tier endpoint for that.

Usage:
    python -m app.tasks.backfill_role_claims              # all organizations
    python -m app.tasks.backfill_role_claims <org-slug>   # one organization
"""

import asyncio
import logging
import sys

from sqlalchemy import select

from app.core.database import async_session_maker
from app.domain.organization_operations import organization_ops
from app.domain.role_assignment_operations import role_assignment_ops
from app.models.organization import Organization
from app.roles.exceptions import RoleEngineError
from app.services.assignments.service import (
    AssignmentNotFoundError,
    MembershipNotFoundError,
    role_assignment_service,
)

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


async def backfill_role_claims(slug: str | None = None) -> None:
    """Republish claims for every assignment, optionally limited to one organization."""
    logger.info("Starting role claims backfill...")

    async with async_session_maker() as db:
        if slug:
            org = await organization_ops.get_by_slug(db, slug)
            if org is None:
                logger.error(f"Organization '{slug}' not found")
                return
            orgs = [org]
        else:
            result = await db.execute(select(Organization))
            orgs = list(result.scalars().all())
        logger.info(f"Found {len(orgs)} organizations to process")

        published_count = 0
        unpublished_count = 0
        failed_count = 0

        for org in orgs:
            assignments = await role_assignment_ops.get_by_org(db, org.id)
            logger.info(f"Organization '{org.name}': {len(assignments)} assignments")

            for assignment in assignments:
                try:
                    result = await role_assignment_service.refresh_claims(
                        db, org, assignment.project_id, assignment.user_id
                    )
                except (AssignmentNotFoundError, MembershipNotFoundError, RoleEngineError) as e:
                    logger.warning(
                        f"Skipping {assignment.user_id} on {assignment.project_id}: {e}"
                    )
                    failed_count += 1
                    continue

                if result.claims_published:
                    published_count += 1
                else:
                    unpublished_count += 1

        logger.info("=" * 60)
        logger.info("Backfill complete!")
        logger.info(f"  Claims published: {published_count}")
        logger.info(f"  Not published (identity provider unavailable): {unpublished_count}")
        logger.info(f"  Failed: {failed_count}")
        logger.info("=" * 60)


def main() -> None:
    """Run the backfill."""
    slug = sys.argv[1] if len(sys.argv) > 1 else None
    asyncio.run(backfill_role_claims(slug))


if __name__ == "__main__":
    main()
