"""
Request-level dependencies: caller identity and role gating.
Token parsing happens upstream; the gateway forwards the authenticated
user id in the X-User-Id header.
"""

from typing import Optional
from uuid import UUID

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.exceptions import BadRequestException, ForbiddenException, UnauthorizedException
from app.models import UserRole
from app.services.identity import Identity, resolve


def parse_id(value: str) -> str:
    """Validate an id path parameter."""
    try:
        return str(UUID(value))
    except (ValueError, TypeError):
        raise BadRequestException("Invalid id format")


async def get_current_user_id(x_user_id: str = Header(default="")) -> str:
    if not x_user_id:
        raise UnauthorizedException("Missing X-User-Id header")
    return parse_id(x_user_id)


async def get_optional_user_id(x_user_id: str = Header(default="")) -> Optional[str]:
    """Caller id for endpoints that anonymous visitors may also read."""
    return parse_id(x_user_id) if x_user_id else None


async def get_current_identity(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> Identity:
    identity = await resolve(db, user_id)
    if identity is None:
        raise UnauthorizedException("User not found")
    return identity


def require_roles(*roles: UserRole):
    """Dependency factory allowing only the given roles through."""

    async def checker(identity: Identity = Depends(get_current_identity)) -> Identity:
        if identity.role not in roles:
            college_only = UserRole.COLLEGE_USER in roles and UserRole.GENERAL_USER not in roles
            if college_only and identity.role in (UserRole.GENERAL_USER, UserRole.GUEST):
                raise ForbiddenException("This feature is restricted to college users")
            raise ForbiddenException("Insufficient role for this action")
        return identity

    return checker


registered_users = require_roles(UserRole.GENERAL_USER, UserRole.COLLEGE_USER, UserRole.MODERATOR, UserRole.ADMIN)
college_members = require_roles(UserRole.COLLEGE_USER, UserRole.MODERATOR, UserRole.ADMIN)
uploaders = require_roles(UserRole.MODERATOR, UserRole.ADMIN)
admins = require_roles(UserRole.ADMIN)
