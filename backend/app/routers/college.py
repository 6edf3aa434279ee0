"""
College-related API endpoints.
Handles college listing and the admin-only approval and removal of email domains.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from app.database import get_db
from app.dependencies import admins, parse_id
from app.schemas import CollegeCreateRequest, CollegeInfo, DomainRemoveRequest
from app.services import colleges
from app.services.identity import Identity

router = APIRouter(prefix="/college", tags=["college"])


@router.get("", response_model=List[CollegeInfo])
async def list_colleges(db: AsyncSession = Depends(get_db)):
    """List all registered colleges by name."""
    return await colleges.list_colleges(db)


@router.post("", response_model=CollegeInfo, status_code=201)
async def create_college(
    request: CollegeCreateRequest,
    identity: Identity = Depends(admins),
    db: AsyncSession = Depends(get_db),
):
    return await colleges.create_college(db, request.name, request.email_domain, request.logo_url)


@router.post("/approve-domain", response_model=CollegeInfo, status_code=201)
async def approve_domain(
    request: CollegeCreateRequest,
    identity: Identity = Depends(admins),
    db: AsyncSession = Depends(get_db),
):
    """
    Approve an institutional email domain. Users registering with it
    afterwards become college users of the new college.
    """
    return await colleges.approve_domain(db, request.email_domain, request.name, request.logo_url)


@router.post("/remove-domain")
async def remove_domain(
    request: DomainRemoveRequest,
    identity: Identity = Depends(admins),
    db: AsyncSession = Depends(get_db),
):
    await colleges.remove_domain(db, request.email_domain)
    return {"message": "Domain removed successfully"}


@router.get("/{college_id}", response_model=CollegeInfo)
async def get_college(college_id: str, db: AsyncSession = Depends(get_db)):
    """Get college information by ID."""
    return await colleges.get_college(db, parse_id(college_id))


@router.delete("/{college_id}")
async def delete_college(
    college_id: str,
    identity: Identity = Depends(admins),
    db: AsyncSession = Depends(get_db),
):
    await colleges.delete_college(db, parse_id(college_id))
    return {"message": "College deleted successfully"}
