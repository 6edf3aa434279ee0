"""
Identity and affiliation resolution.
Every entitlement decision starts from a fresh read of the caller's role and
college; nothing here is cached, so role changes apply on the next request.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ConflictException, NotFoundException
from app.models import College, User, UserRole

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    user_id: str
    role: UserRole
    college_id: Optional[str]


async def get_user(db: AsyncSession, user_id: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def resolve(db: AsyncSession, user_id: str) -> Optional[Identity]:
    """Resolve a user id to role and college affiliation, or None."""
    user = await get_user(db, user_id)
    if not user:
        return None
    return Identity(user_id=user.id, role=user.role, college_id=user.college_id)


async def verify_college_email(db: AsyncSession, email: str) -> Optional[College]:
    """Return the college owning the email's domain, if any."""
    _, _, domain = email.partition("@")
    if not domain:
        return None
    result = await db.execute(
        select(College).where(College.email_domain == domain.lower())
    )
    return result.scalar_one_or_none()


async def register_user(
    db: AsyncSession,
    email: str,
    username: str,
    display_name: Optional[str] = None,
) -> User:
    """
    Create a user. The role is decided once, here, from the email domain:
    a recognised college domain gives COLLEGE_USER, anything else GENERAL_USER.
    """
    email = email.strip().lower()
    existing = await db.execute(select(User).where(User.email == email))
    if existing.scalar_one_or_none():
        raise ConflictException("Email already registered")

    existing = await db.execute(select(User).where(User.username == username))
    if existing.scalar_one_or_none():
        raise ConflictException("Username already taken")

    college = await verify_college_email(db, email)
    user = User(
        email=email,
        username=username,
        display_name=display_name or username,
        role=UserRole.COLLEGE_USER if college else UserRole.GENERAL_USER,
        college_id=college.id if college else None,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    logger.info(f"Registered user {user.id} as {user.role.value}")
    return user


async def assign_role(db: AsyncSession, user_id: str, role: UserRole) -> User:
    user = await get_user(db, user_id)
    if not user:
        raise NotFoundException("User not found")

    user.role = role
    await db.commit()
    await db.refresh(user)

    logger.info(f"User {user_id} role set to {role.value}")
    return user


async def check_username_availability(db: AsyncSession, username: str) -> bool:
    result = await db.execute(select(User.id).where(User.username == username))
    return result.first() is None
