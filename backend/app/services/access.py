"""
Access evaluation for college resources.

Decision table, first match wins:
1. GENERAL_USER / GUEST          -> no access
2. ADMIN                         -> free access
3. same college as the resource  -> free access
4. anyone else                   -> paid access, unlocked once a PAID record exists
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import AccessType, Resource, ResourceAccess, UserRole
from app.schemas import AccessResult
from app.services.identity import resolve

DENIED_ROLES = {UserRole.GENERAL_USER, UserRole.GUEST}


def evaluate_access(
    role: UserRole,
    user_college_id: Optional[str],
    resource_college_id: str,
    has_paid_unlock: bool,
) -> AccessResult:
    """Pure decision over already-loaded facts."""
    if role in DENIED_ROLES:
        return AccessResult(can_access=False, requires_payment=False, is_unlocked=False)
    if role == UserRole.ADMIN:
        return AccessResult(can_access=True, requires_payment=False, is_unlocked=True)
    if user_college_id is not None and user_college_id == resource_college_id:
        return AccessResult(can_access=True, requires_payment=False, is_unlocked=True)
    return AccessResult(can_access=True, requires_payment=True, is_unlocked=has_paid_unlock)


def is_college_member(role: UserRole, user_college_id: Optional[str], college_id: str) -> bool:
    """Whether a user belongs on a college's own panel. Admins belong everywhere."""
    if role in DENIED_ROLES:
        return False
    if role == UserRole.ADMIN:
        return True
    return user_college_id is not None and user_college_id == college_id


async def has_paid_unlock(db: AsyncSession, user_id: str, resource_id: str) -> bool:
    result = await db.execute(
        select(ResourceAccess.id).where(
            ResourceAccess.user_id == user_id,
            ResourceAccess.resource_id == resource_id,
            ResourceAccess.access_type == AccessType.PAID,
        )
    )
    return result.first() is not None


async def can_access_resource(db: AsyncSession, user_id: str, resource_id: str) -> AccessResult:
    """
    Evaluate a user's access to a resource.

    Never raises: a missing user or resource yields no access. Callers that
    need NotFound semantics look the entities up themselves.
    """
    identity = await resolve(db, user_id)
    result = await db.execute(select(Resource.college_id).where(Resource.id == resource_id))
    resource_college_id = result.scalar_one_or_none()

    if identity is None or resource_college_id is None:
        return AccessResult(can_access=False, requires_payment=False, is_unlocked=False)

    decision = evaluate_access(identity.role, identity.college_id, resource_college_id, False)
    if not decision.requires_payment:
        return decision

    unlocked = await has_paid_unlock(db, user_id, resource_id)
    return evaluate_access(identity.role, identity.college_id, resource_college_id, unlocked)
