"""
Moderator assignment endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from app.database import get_db
from app.dependencies import admins, get_current_identity, parse_id
from app.schemas import AssignModeratorRequest, ModeratorAssignment
from app.services import moderators
from app.services.identity import Identity

router = APIRouter(prefix="/moderators", tags=["moderators"])


@router.post("/assign", response_model=ModeratorAssignment, status_code=201)
async def assign_moderator(
    request: AssignModeratorRequest,
    identity: Identity = Depends(admins),
    db: AsyncSession = Depends(get_db),
):
    return await moderators.assign_moderator(
        db, identity.user_id, parse_id(request.user_id), parse_id(request.college_id)
    )


@router.post("/remove")
async def remove_moderator(
    request: AssignModeratorRequest,
    identity: Identity = Depends(admins),
    db: AsyncSession = Depends(get_db),
):
    await moderators.remove_moderator(
        db, identity.user_id, parse_id(request.user_id), parse_id(request.college_id)
    )
    return {"message": "Moderator removed successfully"}


@router.get("", response_model=List[ModeratorAssignment])
async def list_all_moderators(
    identity: Identity = Depends(admins),
    db: AsyncSession = Depends(get_db),
):
    return await moderators.list_all_moderators(db, identity.user_id)


@router.get("/me", response_model=List[ModeratorAssignment])
async def list_my_assignments(
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    return await moderators.list_user_assignments(db, identity.user_id)


@router.get("/college/{college_id}", response_model=List[ModeratorAssignment])
async def list_college_moderators(
    college_id: str,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    return await moderators.list_college_moderators(db, parse_id(college_id))
