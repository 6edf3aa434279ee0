"""
Resource retrieval and management.
Unlike the access evaluator, these operations raise typed errors for
missing entities and denied actions.
"""

import logging
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.exceptions import BadRequestException, ForbiddenException, NotFoundException
from app.models import (
    PaymentSession,
    Resource,
    ResourceAccess,
    ResourceType,
    UserRole,
)
from app.schemas import FileNode, ResourceView, UploadResourceRequest
from app.services.access import can_access_resource
from app.services.hierarchy import get_college_or_404
from app.services.identity import get_user
from app.services.ledger import record_access
from app.services.moderators import is_moderator_for_college

logger = logging.getLogger(__name__)


async def get_resource(db: AsyncSession, resource_id: str) -> Optional[Resource]:
    result = await db.execute(
        select(Resource)
        .where(Resource.id == resource_id)
        .options(selectinload(Resource.uploader))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_resource_file(db: AsyncSession, file_id: str, user_id: str) -> FileNode:
    """File metadata with lock state. Locked files are still described in full."""
    resource = await get_resource(db, file_id)
    if not resource:
        raise NotFoundException("Resource not found")

    user = await get_user(db, user_id)
    if not user:
        raise NotFoundException("User not found")

    access = await can_access_resource(db, user_id, file_id)
    if not access.can_access:
        raise ForbiddenException("Access denied to this resource")

    return FileNode(
        id=resource.id,
        name=resource.file_name,
        uploaded_by=resource.uploader.username if resource.uploader else resource.uploaded_by,
        batch=resource.batch,
        description=resource.description or "",
        upload_date=resource.upload_date,
        is_locked=access.requires_payment and not access.is_unlocked,
        is_unlocked=access.is_unlocked,
    )


async def _open_resource(db: AsyncSession, file_id: str, user_id: str, action: str) -> ResourceView:
    """Hand out an unlocked file's URL and leave an entry in the access ledger."""
    access = await can_access_resource(db, user_id, file_id)
    if not access.can_access:
        raise ForbiddenException("Access denied to this resource")
    if access.requires_payment and not access.is_unlocked:
        raise ForbiddenException(f"Payment required to {action} this resource")

    file = await get_resource_file(db, file_id, user_id)
    await record_access(db, user_id, file_id)

    resource = await get_resource(db, file_id)
    return ResourceView(message=f"File {action} granted", file=file, file_url=resource.file_url)


async def view_resource(db: AsyncSession, file_id: str, user_id: str) -> ResourceView:
    return await _open_resource(db, file_id, user_id, "view")


async def download_resource(db: AsyncSession, file_id: str, user_id: str) -> ResourceView:
    return await _open_resource(db, file_id, user_id, "download")


def parse_resource_type(value) -> ResourceType:
    try:
        return ResourceType(value)
    except ValueError:
        raise BadRequestException("Invalid resource type")


async def upload_resource(
    db: AsyncSession, uploader_id: str, college_id: str, fields: UploadResourceRequest
) -> Resource:
    """Create a resource. Moderators are limited to colleges they moderate."""
    uploader = await get_user(db, uploader_id)
    if not uploader:
        raise NotFoundException("Uploader not found")

    if uploader.role not in (UserRole.MODERATOR, UserRole.ADMIN):
        raise ForbiddenException("Only moderators and admins can upload resources")

    await get_college_or_404(db, college_id)

    if uploader.role == UserRole.MODERATOR and uploader.college_id != college_id:
        if not await is_moderator_for_college(db, uploader_id, college_id):
            raise ForbiddenException("Moderators can only upload resources to their assigned college")

    resource_type = parse_resource_type(fields.resource_type)

    department = fields.department.strip()
    batch = fields.batch.strip()
    file_name = fields.file_name.strip()
    file_url = fields.file_url.strip()
    if not department or not batch or not file_name or not file_url:
        raise BadRequestException("Department, batch, file_name, and file_url are required")

    resource = Resource(
        college_id=college_id,
        resource_type=resource_type,
        department=department,
        batch=batch,
        file_name=file_name,
        file_url=file_url,
        description=fields.description or "",
        uploaded_by=uploader_id,
    )
    db.add(resource)
    await db.commit()

    logger.info(f"User {uploader_id} uploaded resource {resource.id} to college {college_id}")
    return await get_resource(db, resource.id)


async def get_resources_by_uploader(db: AsyncSession, uploader_id: str) -> List[Resource]:
    uploader = await get_user(db, uploader_id)
    if not uploader:
        raise NotFoundException("Uploader not found")

    result = await db.execute(
        select(Resource)
        .where(Resource.uploaded_by == uploader_id)
        .order_by(Resource.upload_date.desc())
    )
    return list(result.scalars().all())


async def delete_resource(db: AsyncSession, resource_id: str, user_id: str) -> None:
    """Admins delete anything; moderators only their own uploads."""
    user = await get_user(db, user_id)
    if not user:
        raise NotFoundException("User not found")

    resource = await get_resource(db, resource_id)
    if not resource:
        raise NotFoundException("Resource not found")

    is_own_upload = user.role == UserRole.MODERATOR and resource.uploaded_by == user_id
    if user.role != UserRole.ADMIN and not is_own_upload:
        raise ForbiddenException("You can only delete your own uploads")

    await db.execute(delete(ResourceAccess).where(ResourceAccess.resource_id == resource_id))
    await db.execute(delete(PaymentSession).where(PaymentSession.resource_id == resource_id))
    await db.delete(resource)
    await db.commit()

    logger.info(f"User {user_id} deleted resource {resource_id}")
