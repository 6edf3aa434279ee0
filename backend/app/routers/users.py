"""
User registration and role management endpoints.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import admins, parse_id
from app.exceptions import NotFoundException
from app.schemas import AssignRoleRequest, UserInfo, UserRegisterRequest
from app.services import identity as identity_service
from app.services.identity import Identity

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", response_model=UserInfo, status_code=201)
async def register(request: UserRegisterRequest, db: AsyncSession = Depends(get_db)):
    """
    Register a user. Emails on an approved college domain become college
    users; everyone else starts as a general user.
    """
    return await identity_service.register_user(db, request.email, request.username, request.display_name)


@router.get("/username-available")
async def check_username(
    username: str = Query(..., min_length=3, max_length=30),
    db: AsyncSession = Depends(get_db),
):
    available = await identity_service.check_username_availability(db, username)
    return {"username": username, "available": available}


@router.get("/{user_id}", response_model=UserInfo)
async def get_user(user_id: str, db: AsyncSession = Depends(get_db)):
    user = await identity_service.get_user(db, parse_id(user_id))
    if not user:
        raise NotFoundException("User not found")
    return user


@router.put("/{user_id}/role", response_model=UserInfo)
async def assign_role(
    user_id: str,
    request: AssignRoleRequest,
    identity: Identity = Depends(admins),
    db: AsyncSession = Depends(get_db),
):
    return await identity_service.assign_role(db, parse_id(user_id), request.role)
