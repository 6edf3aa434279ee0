"""
Resource browsing, access and payment endpoints.
Handles hierarchy browsing, file access, cross-college unlock payments and uploads.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from app.database import get_db
from app.dependencies import college_members, get_current_identity, parse_id, uploaders
from app.models import AccessType
from app.schemas import (
    AccessResult,
    CollegeInfo,
    CollegeList,
    FileNode,
    PaymentResult,
    PaymentSessionView,
    ResourceAccessRecord,
    ResourceHierarchy,
    ResourceInfo,
    ResourceView,
    UploadResourceRequest,
    VerifyPaymentRequest,
)
from app.services import hierarchy, ledger, payments, resources
from app.services.access import can_access_resource
from app.services.colleges import list_colleges
from app.services.identity import Identity
from app.services.payment_provider import PaymentProvider, get_payment_provider
from app.services.resources import parse_resource_type

router = APIRouter(prefix="/resources", tags=["resources"])


@router.get("/types")
async def get_resource_types(identity: Identity = Depends(college_members)):
    return {"resource_types": hierarchy.list_resource_types()}


@router.get("/colleges", response_model=CollegeList)
async def get_colleges(
    identity: Identity = Depends(college_members),
    db: AsyncSession = Depends(get_db),
):
    colleges = await list_colleges(db)
    return CollegeList(colleges=[CollegeInfo.model_validate(c) for c in colleges])


@router.get("/hierarchy/{college_id}", response_model=ResourceHierarchy)
async def get_resource_hierarchy(
    college_id: str,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    """
    Browse a college's resources as a Type -> Department -> Batch -> File tree.
    Files from other colleges are listed with their lock state.
    """
    return await hierarchy.get_resource_hierarchy(db, parse_id(college_id), identity.user_id)


@router.get("/file/{file_id}", response_model=FileNode)
async def get_resource_file(
    file_id: str,
    identity: Identity = Depends(college_members),
    db: AsyncSession = Depends(get_db),
):
    return await resources.get_resource_file(db, parse_id(file_id), identity.user_id)


@router.get("/can-access/{file_id}", response_model=AccessResult)
async def check_access(
    file_id: str,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    """Access decision for the caller; never an error for unknown files."""
    return await can_access_resource(db, identity.user_id, file_id)


@router.get("/view/{file_id}", response_model=ResourceView)
async def view_resource_file(
    file_id: str,
    identity: Identity = Depends(college_members),
    db: AsyncSession = Depends(get_db),
):
    return await resources.view_resource(db, parse_id(file_id), identity.user_id)


@router.get("/download/{file_id}", response_model=ResourceView)
async def download_resource_file(
    file_id: str,
    identity: Identity = Depends(college_members),
    db: AsyncSession = Depends(get_db),
):
    """Download link for an unlocked file. Files are served from their own storage URL."""
    return await resources.download_resource(db, parse_id(file_id), identity.user_id)


@router.get("/access/history", response_model=List[ResourceAccessRecord])
async def get_access_history(
    access_type: Optional[AccessType] = Query(default=None),
    identity: Identity = Depends(college_members),
    db: AsyncSession = Depends(get_db),
):
    return await ledger.query_by_user(db, identity.user_id, access_type)


@router.get("/access/own-college", response_model=List[ResourceAccessRecord])
async def get_own_college_access(
    identity: Identity = Depends(college_members),
    db: AsyncSession = Depends(get_db),
):
    return await ledger.query_by_user(db, identity.user_id, AccessType.OWN_COLLEGE)


@router.get("/access/paid", response_model=List[ResourceAccessRecord])
async def get_paid_access(
    identity: Identity = Depends(college_members),
    db: AsyncSession = Depends(get_db),
):
    return await ledger.query_by_user(db, identity.user_id, AccessType.PAID)


@router.post("/payment/initiate/{file_id}", response_model=PaymentSessionView)
async def initiate_payment(
    file_id: str,
    identity: Identity = Depends(college_members),
    db: AsyncSession = Depends(get_db),
):
    return await payments.initiate_payment(db, identity.user_id, parse_id(file_id))


@router.post("/payment/verify", response_model=PaymentResult)
async def verify_payment(
    request: VerifyPaymentRequest,
    identity: Identity = Depends(college_members),
    db: AsyncSession = Depends(get_db),
    provider: PaymentProvider = Depends(get_payment_provider),
):
    """Verify a payment session. Failures are reported in the body, not as errors."""
    return await payments.verify_payment(db, request.session_id, provider)


@router.post("/upload/{college_id}", response_model=ResourceInfo, status_code=201)
async def upload_resource(
    college_id: str,
    request: UploadResourceRequest,
    identity: Identity = Depends(uploaders),
    db: AsyncSession = Depends(get_db),
):
    return await resources.upload_resource(db, identity.user_id, parse_id(college_id), request)


@router.get("/my-uploads", response_model=List[ResourceInfo])
async def get_my_uploads(
    identity: Identity = Depends(uploaders),
    db: AsyncSession = Depends(get_db),
):
    return await resources.get_resources_by_uploader(db, identity.user_id)


@router.get("/{college_id}/departments")
async def get_departments(
    college_id: str,
    resource_type: str = Query(...),
    identity: Identity = Depends(college_members),
    db: AsyncSession = Depends(get_db),
):
    departments = await hierarchy.get_departments(db, parse_id(college_id), parse_resource_type(resource_type))
    return {"departments": departments}


@router.get("/{college_id}/batches")
async def get_batches(
    college_id: str,
    resource_type: str = Query(...),
    department: str = Query(...),
    identity: Identity = Depends(college_members),
    db: AsyncSession = Depends(get_db),
):
    batches = await hierarchy.get_batches(
        db, parse_id(college_id), parse_resource_type(resource_type), department
    )
    return {"batches": batches}


@router.delete("/{resource_id}")
async def delete_resource(
    resource_id: str,
    identity: Identity = Depends(uploaders),
    db: AsyncSession = Depends(get_db),
):
    await resources.delete_resource(db, parse_id(resource_id), identity.user_id)
    return {"message": "Resource deleted successfully"}
