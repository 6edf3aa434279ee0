"""
College registry. A college's email domain is what turns a registering
user into a college user, so domains are approved and removed here.
"""

import logging
from typing import List, Optional

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ConflictException, NotFoundException
from app.models import College, Moderator, PaymentSession, Resource, ResourceAccess, User, UserRole
from app.services.posts import delete_college_posts

logger = logging.getLogger(__name__)


def normalize_domain(email_domain: str) -> str:
    return email_domain.strip().lower().lstrip("@")


async def create_college(
    db: AsyncSession, name: str, email_domain: str, logo_url: Optional[str] = None
) -> College:
    domain = normalize_domain(email_domain)
    result = await db.execute(
        select(College).where(or_(College.email_domain == domain, College.name == name.strip()))
    )
    existing = result.scalars().first()
    if existing:
        if existing.email_domain == domain:
            raise ConflictException("Email domain already registered")
        raise ConflictException("College name already registered")

    college = College(name=name.strip(), email_domain=domain, logo_url=logo_url)
    db.add(college)
    await db.commit()
    await db.refresh(college)

    logger.info(f"Registered college {college.name} ({domain})")
    return college


async def list_colleges(db: AsyncSession) -> List[College]:
    result = await db.execute(select(College).order_by(College.name))
    return list(result.scalars().all())


async def get_college(db: AsyncSession, college_id: str) -> College:
    result = await db.execute(select(College).where(College.id == college_id))
    college = result.scalar_one_or_none()
    if not college:
        raise NotFoundException("College not found")
    return college


async def get_college_by_domain(db: AsyncSession, email_domain: str) -> Optional[College]:
    result = await db.execute(
        select(College).where(College.email_domain == normalize_domain(email_domain))
    )
    return result.scalar_one_or_none()


async def _release_moderators(db: AsyncSession, college_id: str) -> None:
    """Drop assignments to the college; moderators left without one go back to college users."""
    result = await db.execute(select(Moderator.user_id).where(Moderator.college_id == college_id))
    user_ids = set(result.scalars().all())
    await db.execute(delete(Moderator).where(Moderator.college_id == college_id))

    for user_id in user_ids:
        remaining = await db.execute(select(Moderator.id).where(Moderator.user_id == user_id))
        if remaining.first() is not None:
            continue
        user = await db.get(User, user_id)
        if user and user.role == UserRole.MODERATOR and user.college_id not in (None, college_id):
            user.role = UserRole.COLLEGE_USER


async def delete_college(db: AsyncSession, college_id: str) -> None:
    """
    Remove a college and everything hanging off it in one transaction.
    Members lose their affiliation and become general users.
    """
    college = await get_college(db, college_id)

    await _release_moderators(db, college_id)

    still_assigned = select(Moderator.user_id)
    demoted = await db.execute(
        update(User)
        .where(
            User.college_id == college_id,
            or_(
                User.role == UserRole.COLLEGE_USER,
                and_(User.role == UserRole.MODERATOR, User.id.not_in(still_assigned)),
            ),
        )
        .values(role=UserRole.GENERAL_USER, college_id=None)
        .execution_options(synchronize_session=False)
    )
    await db.execute(update(User).where(User.college_id == college_id).values(college_id=None))

    resource_ids = select(Resource.id).where(Resource.college_id == college_id)
    await db.execute(
        delete(ResourceAccess)
        .where(ResourceAccess.resource_id.in_(resource_ids))
        .execution_options(synchronize_session=False)
    )
    await db.execute(
        delete(PaymentSession)
        .where(PaymentSession.resource_id.in_(resource_ids))
        .execution_options(synchronize_session=False)
    )
    await db.execute(delete(Resource).where(Resource.college_id == college_id))
    await delete_college_posts(db, college_id)

    await db.delete(college)
    await db.commit()
    logger.info(f"Removed college {college_id}, {demoted.rowcount} members demoted to general users")


async def approve_domain(
    db: AsyncSession, email_domain: str, college_name: str, logo_url: Optional[str] = None
) -> College:
    return await create_college(db, college_name, email_domain, logo_url)


async def remove_domain(db: AsyncSession, email_domain: str) -> None:
    college = await get_college_by_domain(db, email_domain)
    if not college:
        raise NotFoundException("Domain not found")
    await delete_college(db, college.id)
