"""
National and college panel endpoints.
Handles posting, feeds, comments, likes and reports.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from app.database import get_db
from app.dependencies import (
    college_members,
    get_current_identity,
    get_optional_user_id,
    parse_id,
    registered_users,
)
from app.schemas import (
    CommentInfo,
    CreateCommentRequest,
    CreatePostRequest,
    FeedPage,
    LikeResult,
    PostInfo,
    ReportRequest,
)
from app.services import posts
from app.services.identity import Identity

router = APIRouter(prefix="/posts", tags=["posts"])


@router.post("/national", response_model=PostInfo, status_code=201)
async def create_national_post(
    request: CreatePostRequest,
    identity: Identity = Depends(registered_users),
    db: AsyncSession = Depends(get_db),
):
    return await posts.create_national_post(db, identity.user_id, request)


@router.get("/national", response_model=FeedPage)
async def get_national_feed(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    user_id: Optional[str] = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_db),
):
    """National feed, newest first. Readable without an account."""
    return await posts.get_national_feed(db, page, limit, user_id)


@router.post("/college", response_model=PostInfo, status_code=201)
async def create_college_post(
    request: CreatePostRequest,
    identity: Identity = Depends(college_members),
    db: AsyncSession = Depends(get_db),
):
    """Post to the caller's own college panel."""
    return await posts.create_college_post(db, identity.user_id, request)


@router.get("/college/{college_id}", response_model=FeedPage)
async def get_college_feed(
    college_id: str,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    return await posts.get_college_feed(db, parse_id(college_id), page, limit, identity.user_id)


@router.post("/comments/{comment_id}/like", response_model=LikeResult)
async def like_comment(
    comment_id: str,
    identity: Identity = Depends(registered_users),
    db: AsyncSession = Depends(get_db),
):
    return await posts.like_comment(db, identity.user_id, parse_id(comment_id))


@router.post("/comments/{comment_id}/report", status_code=201)
async def report_comment(
    comment_id: str,
    request: ReportRequest,
    identity: Identity = Depends(registered_users),
    db: AsyncSession = Depends(get_db),
):
    await posts.report_comment(db, identity.user_id, parse_id(comment_id), request.reason)
    return {"message": "Report submitted successfully"}


@router.get("/{post_id}", response_model=PostInfo)
async def get_post(
    post_id: str,
    user_id: Optional[str] = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await posts.get_post(db, parse_id(post_id), user_id)


@router.post("/{post_id}/comments", response_model=CommentInfo, status_code=201)
async def create_comment(
    post_id: str,
    request: CreateCommentRequest,
    identity: Identity = Depends(registered_users),
    db: AsyncSession = Depends(get_db),
):
    if request.parent_comment_id:
        request.parent_comment_id = parse_id(request.parent_comment_id)
    return await posts.create_comment(db, identity.user_id, parse_id(post_id), request)


@router.get("/{post_id}/comments", response_model=List[CommentInfo])
async def get_comments(
    post_id: str,
    user_id: Optional[str] = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await posts.get_post_comments(db, parse_id(post_id), user_id)


@router.post("/{post_id}/like", response_model=LikeResult)
async def like_post(
    post_id: str,
    identity: Identity = Depends(registered_users),
    db: AsyncSession = Depends(get_db),
):
    """Toggle the caller's like on a post."""
    return await posts.like_post(db, identity.user_id, parse_id(post_id))


@router.post("/{post_id}/report", status_code=201)
async def report_post(
    post_id: str,
    request: ReportRequest,
    identity: Identity = Depends(registered_users),
    db: AsyncSession = Depends(get_db),
):
    await posts.report_post(db, identity.user_id, parse_id(post_id), request.reason)
    return {"message": "Report submitted successfully"}
