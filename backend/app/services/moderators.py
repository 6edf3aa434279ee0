"""
Moderator assignment.
Assigning or removing a moderator changes the user's role in place; the
identity resolver picks it up on the next request.
"""

import logging
from typing import List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.exceptions import ConflictException, ForbiddenException, NotFoundException
from app.models import College, Moderator, UserRole
from app.schemas import ModeratorAssignment
from app.services.identity import get_user

logger = logging.getLogger(__name__)


def to_assignment(moderator: Moderator) -> ModeratorAssignment:
    return ModeratorAssignment(
        id=moderator.id,
        user_id=moderator.user.id,
        username=moderator.user.username,
        display_name=moderator.user.display_name,
        email=moderator.user.email,
        college_id=moderator.college.id,
        college_name=moderator.college.name,
        email_domain=moderator.college.email_domain,
        assigned_by=moderator.assigned_by,
        assigned_at=moderator.assigned_at,
    )


async def _require_admin(db: AsyncSession, user_id: str, message: str) -> None:
    user = await get_user(db, user_id)
    if not user or user.role != UserRole.ADMIN:
        raise ForbiddenException(message)


async def _list(db: AsyncSession, *criteria) -> List[ModeratorAssignment]:
    result = await db.execute(
        select(Moderator)
        .where(*criteria)
        .options(selectinload(Moderator.user), selectinload(Moderator.college))
        .order_by(Moderator.assigned_at.desc())
        .execution_options(populate_existing=True)
    )
    return [to_assignment(m) for m in result.scalars().all()]


async def assign_moderator(
    db: AsyncSession, admin_user_id: str, target_user_id: str, college_id: str
) -> ModeratorAssignment:
    await _require_admin(db, admin_user_id, "Only admins can assign moderator roles")

    target = await get_user(db, target_user_id)
    if not target:
        raise NotFoundException("Target user not found")

    if target.role != UserRole.COLLEGE_USER:
        raise ForbiddenException("Only college users can be assigned as moderators")

    result = await db.execute(select(College).where(College.id == college_id))
    if not result.scalar_one_or_none():
        raise NotFoundException("College not found")

    if await is_moderator_for_college(db, target_user_id, college_id):
        raise ConflictException("User is already a moderator for this college")

    moderator = Moderator(user_id=target_user_id, college_id=college_id, assigned_by=admin_user_id)
    db.add(moderator)
    target.role = UserRole.MODERATOR
    await db.commit()

    logger.info(f"User {target_user_id} assigned moderator of college {college_id} by {admin_user_id}")
    assignments = await _list(db, Moderator.id == moderator.id)
    return assignments[0]


async def remove_moderator(
    db: AsyncSession, admin_user_id: str, target_user_id: str, college_id: str
) -> None:
    await _require_admin(db, admin_user_id, "Only admins can remove moderator roles")

    result = await db.execute(
        select(Moderator).where(Moderator.user_id == target_user_id, Moderator.college_id == college_id)
    )
    moderator = result.scalar_one_or_none()
    if not moderator:
        raise NotFoundException("Moderator assignment not found")

    await db.delete(moderator)
    await db.flush()

    remaining = await db.execute(
        select(func.count()).select_from(Moderator).where(Moderator.user_id == target_user_id)
    )
    if remaining.scalar_one() == 0:
        target = await get_user(db, target_user_id)
        if target and target.role == UserRole.MODERATOR:
            target.role = UserRole.COLLEGE_USER

    await db.commit()
    logger.info(f"User {target_user_id} removed as moderator of college {college_id}")


async def is_moderator_for_college(db: AsyncSession, user_id: str, college_id: str) -> bool:
    result = await db.execute(
        select(Moderator.id).where(Moderator.user_id == user_id, Moderator.college_id == college_id)
    )
    return result.first() is not None


async def list_college_moderators(db: AsyncSession, college_id: str) -> List[ModeratorAssignment]:
    return await _list(db, Moderator.college_id == college_id)


async def list_user_assignments(db: AsyncSession, user_id: str) -> List[ModeratorAssignment]:
    return await _list(db, Moderator.user_id == user_id)


async def list_all_moderators(db: AsyncSession, admin_user_id: str) -> List[ModeratorAssignment]:
    await _require_admin(db, admin_user_id, "Only admins can view all moderators")
    return await _list(db)
