"""
Resource hierarchy browsing.
Resources are stored flat; the College -> Type -> Department -> Batch -> File
tree is materialised per request by grouping on (type, department, batch).
"""

from typing import Dict, List, Set

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.exceptions import ForbiddenException, NotFoundException
from app.models import AccessType, College, Resource, ResourceAccess, ResourceType, User
from app.schemas import (
    BatchNode,
    CollegeInfo,
    DepartmentNode,
    FileNode,
    ResourceHierarchy,
    ResourceTypeNode,
)
from app.services.access import DENIED_ROLES, evaluate_access
from app.services.identity import get_user


def to_file_node(resource: Resource, user: User, unlocked_ids: Set[str]) -> FileNode:
    access = evaluate_access(user.role, user.college_id, resource.college_id, resource.id in unlocked_ids)
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


def build_hierarchy(resources: List[Resource], user: User, unlocked_ids: Set[str]) -> List[ResourceTypeNode]:
    """Group a flat resource list into type/department/batch nodes, keeping encounter order."""
    grouped: Dict[ResourceType, Dict[str, Dict[str, List[Resource]]]] = {}
    for resource in resources:
        departments = grouped.setdefault(resource.resource_type, {})
        batches = departments.setdefault(resource.department, {})
        batches.setdefault(resource.batch, []).append(resource)

    return [
        ResourceTypeNode(
            name=resource_type,
            departments=[
                DepartmentNode(
                    name=department,
                    batches=[
                        BatchNode(
                            name=batch,
                            files=[to_file_node(r, user, unlocked_ids) for r in batch_resources],
                        )
                        for batch, batch_resources in batches.items()
                    ],
                )
                for department, batches in departments.items()
            ],
        )
        for resource_type, departments in grouped.items()
    ]


async def get_college_or_404(db: AsyncSession, college_id: str) -> College:
    result = await db.execute(select(College).where(College.id == college_id))
    college = result.scalar_one_or_none()
    if not college:
        raise NotFoundException("College not found")
    return college


async def get_resource_hierarchy(db: AsyncSession, college_id: str, user_id: str) -> ResourceHierarchy:
    """Browse a college's resources with lock state stamped on every file."""
    college = await get_college_or_404(db, college_id)

    user = await get_user(db, user_id)
    if not user:
        raise NotFoundException("User not found")

    if user.role in DENIED_ROLES:
        raise ForbiddenException("Resource access requires college email")

    result = await db.execute(
        select(Resource)
        .where(Resource.college_id == college_id)
        .options(selectinload(Resource.uploader))
        .execution_options(populate_existing=True)
        .order_by(Resource.upload_date.desc())
    )
    resources = result.scalars().all()

    # Unlocks only matter when browsing another college
    unlocked_ids: Set[str] = set()
    if user.college_id != college_id:
        unlocks = await db.execute(
            select(ResourceAccess.resource_id).where(
                ResourceAccess.user_id == user_id,
                ResourceAccess.access_type == AccessType.PAID,
            )
        )
        unlocked_ids = set(unlocks.scalars().all())

    return ResourceHierarchy(
        college=CollegeInfo.model_validate(college),
        resource_types=build_hierarchy(resources, user, unlocked_ids),
    )


def list_resource_types() -> List[ResourceType]:
    return list(ResourceType)


async def get_departments(db: AsyncSession, college_id: str, resource_type: ResourceType) -> List[str]:
    result = await db.execute(
        select(Resource.department)
        .where(Resource.college_id == college_id, Resource.resource_type == resource_type)
        .distinct()
        .order_by(Resource.department)
    )
    return list(result.scalars().all())


async def get_batches(
    db: AsyncSession, college_id: str, resource_type: ResourceType, department: str
) -> List[str]:
    result = await db.execute(
        select(Resource.batch)
        .where(
            Resource.college_id == college_id,
            Resource.resource_type == resource_type,
            Resource.department == department,
        )
        .distinct()
        .order_by(Resource.batch)
    )
    return list(result.scalars().all())
