"""
Resource access ledger.
Append-only record of how a user obtained access to a resource. Writes go
through INSERT ... ON CONFLICT DO NOTHING on the (user, resource, type)
unique constraint, so repeated or concurrent calls leave exactly one row.
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import insert_ignoring_conflicts
from app.models import AccessType, Resource, ResourceAccess, new_id, utcnow
from app.services.identity import get_user

logger = logging.getLogger(__name__)

GRANT_KEY = ["user_id", "resource_id", "access_type"]


async def find_access(
    db: AsyncSession, user_id: str, resource_id: str, access_type: AccessType
) -> Optional[ResourceAccess]:
    result = await db.execute(
        select(ResourceAccess).where(
            ResourceAccess.user_id == user_id,
            ResourceAccess.resource_id == resource_id,
            ResourceAccess.access_type == access_type,
        )
    )
    return result.scalar_one_or_none()


async def _insert_grant(
    db: AsyncSession,
    user_id: str,
    resource_id: str,
    access_type: AccessType,
    payment_amount: Optional[float],
) -> bool:
    stmt = insert_ignoring_conflicts(db, ResourceAccess, GRANT_KEY).values(
        id=new_id(),
        user_id=user_id,
        resource_id=resource_id,
        access_type=access_type,
        payment_amount=payment_amount,
        unlocked_at=utcnow(),
    )
    result = await db.execute(stmt)
    return result.rowcount > 0


async def grant_paid_access(db: AsyncSession, user_id: str, resource_id: str, amount: float) -> bool:
    """
    Write the PAID unlock for a completed payment. Returns False when the
    unlock already existed. The caller owns the commit.
    """
    created = await _insert_grant(db, user_id, resource_id, AccessType.PAID, amount)
    if created:
        logger.info(f"Unlocked resource {resource_id} for user {user_id} (paid {amount})")
    else:
        logger.info(f"Resource {resource_id} already unlocked for user {user_id}, skipping")
    return created


async def record_access(db: AsyncSession, user_id: str, resource_id: str) -> Optional[ResourceAccess]:
    """
    Record a view/download for the audit trail.

    Own-college access writes an OWN_COLLEGE row. Cross-college access never
    writes a placeholder PAID row: that slot belongs to payment completion,
    so the existing PAID record (if any) is returned as-is.
    """
    user = await get_user(db, user_id)
    result = await db.execute(select(Resource).where(Resource.id == resource_id))
    resource = result.scalar_one_or_none()

    if not user or not resource:
        return None

    if user.college_id is not None and user.college_id == resource.college_id:
        access_type = AccessType.OWN_COLLEGE
    else:
        access_type = AccessType.PAID

    if access_type == AccessType.OWN_COLLEGE:
        if await _insert_grant(db, user_id, resource_id, access_type, None):
            logger.info(f"Recorded own-college access to {resource_id} for user {user_id}")
        await db.commit()

    return await find_access(db, user_id, resource_id, access_type)


async def query_by_user(
    db: AsyncSession, user_id: str, access_type: Optional[AccessType] = None
) -> List[ResourceAccess]:
    """Access records of a user, most recent first."""
    query = select(ResourceAccess).where(ResourceAccess.user_id == user_id)
    if access_type is not None:
        query = query.where(ResourceAccess.access_type == access_type)
    query = query.order_by(ResourceAccess.unlocked_at.desc())

    result = await db.execute(query)
    return list(result.scalars().all())
