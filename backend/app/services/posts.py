"""
National and college panel posts, with comments, likes and reports.

The national panel is open to every registered user. A college panel is
readable and writable only by that college's members and by admins, using
the same affiliation rule as resource access.
"""

import logging
import math
from typing import Iterable, List, Optional, Set

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.database import insert_ignoring_conflicts
from app.exceptions import ForbiddenException, NotFoundException
from app.models import (
    College,
    Comment,
    Like,
    PanelType,
    Post,
    Report,
    ReportStatus,
    TargetType,
    User,
    UserRole,
    new_id,
    utcnow,
)
from app.schemas import (
    CollegeInfo,
    CommentInfo,
    CreateCommentRequest,
    CreatePostRequest,
    FeedPage,
    LikeResult,
    Pagination,
    PostInfo,
)
from app.services.access import is_college_member
from app.services.identity import get_user

logger = logging.getLogger(__name__)

COLLEGE_PANEL_ROLES = {UserRole.COLLEGE_USER, UserRole.MODERATOR, UserRole.ADMIN}
LIKE_KEY = ["target_type", "target_id", "user_id"]


def author_name(user: User) -> str:
    return user.display_name or user.username


def to_post_info(post: Post, liked_ids: Set[str]) -> PostInfo:
    return PostInfo(
        id=post.id,
        author_id=post.author_id,
        author_name=author_name(post.author),
        author_username=post.author.username,
        author_role=post.author.role,
        college_id=post.college_id,
        panel_type=post.panel_type,
        title=post.title,
        content=post.content,
        likes=post.likes,
        comment_count=post.comment_count,
        report_count=post.report_count,
        is_liked=post.id in liked_ids,
        created_at=post.created_at,
        updated_at=post.updated_at,
    )


def to_comment_info(comment: Comment, liked_ids: Set[str]) -> CommentInfo:
    return CommentInfo(
        id=comment.id,
        post_id=comment.post_id,
        author_id=comment.author_id,
        author_name=author_name(comment.author),
        author_username=comment.author.username,
        content=comment.content,
        likes=comment.likes,
        parent_comment_id=comment.parent_comment_id,
        is_liked=comment.id in liked_ids,
        created_at=comment.created_at,
    )


async def _liked_ids(
    db: AsyncSession, user_id: Optional[str], target_type: TargetType, target_ids: Iterable[str]
) -> Set[str]:
    target_ids = list(target_ids)
    if not user_id or not target_ids:
        return set()
    result = await db.execute(
        select(Like.target_id).where(
            Like.target_type == target_type,
            Like.user_id == user_id,
            Like.target_id.in_(target_ids),
        )
    )
    return set(result.scalars().all())


async def _get_writer(db: AsyncSession, user_id: str) -> User:
    user = await get_user(db, user_id)
    if not user:
        raise NotFoundException("User not found")
    if user.role == UserRole.GUEST:
        raise ForbiddenException("Guest accounts cannot post")
    return user


async def _find_post(db: AsyncSession, post_id: str) -> Post:
    result = await db.execute(
        select(Post)
        .where(Post.id == post_id)
        .options(selectinload(Post.author))
        .execution_options(populate_existing=True)
    )
    post = result.scalar_one_or_none()
    if not post:
        raise NotFoundException("Post not found")
    return post


async def _find_comment(db: AsyncSession, comment_id: str) -> Comment:
    result = await db.execute(
        select(Comment)
        .where(Comment.id == comment_id)
        .options(selectinload(Comment.author))
        .execution_options(populate_existing=True)
    )
    comment = result.scalar_one_or_none()
    if not comment:
        raise NotFoundException("Comment not found")
    return comment


async def _check_panel_access(db: AsyncSession, college_id: str, user_id: Optional[str]) -> None:
    if not user_id:
        raise ForbiddenException("Authentication required for college panel access")
    user = await get_user(db, user_id)
    if not user:
        raise NotFoundException("User not found")
    if not is_college_member(user.role, user.college_id, college_id):
        raise ForbiddenException("College panel access restricted to members")


async def _check_post_access(db: AsyncSession, post: Post, user_id: Optional[str]) -> None:
    if post.panel_type == PanelType.COLLEGE:
        await _check_panel_access(db, post.college_id, user_id)


async def _save_post(db: AsyncSession, post: Post) -> PostInfo:
    db.add(post)
    await db.commit()
    logger.info(f"User {post.author_id} posted {post.id} on the {post.panel_type.value} panel")
    return to_post_info(await _find_post(db, post.id), set())


async def create_national_post(db: AsyncSession, user_id: str, fields: CreatePostRequest) -> PostInfo:
    user = await _get_writer(db, user_id)
    post = Post(
        author_id=user.id,
        panel_type=PanelType.NATIONAL,
        title=fields.title,
        content=fields.content,
    )
    return await _save_post(db, post)


async def create_college_post(db: AsyncSession, user_id: str, fields: CreatePostRequest) -> PostInfo:
    """Post to the author's own college panel."""
    user = await get_user(db, user_id)
    if not user:
        raise NotFoundException("User not found")
    if user.college_id is None or user.role not in COLLEGE_PANEL_ROLES:
        raise ForbiddenException("College panel access restricted to college users")

    post = Post(
        author_id=user.id,
        panel_type=PanelType.COLLEGE,
        college_id=user.college_id,
        title=fields.title,
        content=fields.content,
    )
    return await _save_post(db, post)


async def _feed(db: AsyncSession, criteria, page: int, limit: int, user_id: Optional[str]):
    total = (await db.execute(select(func.count()).select_from(Post).where(*criteria))).scalar_one()
    result = await db.execute(
        select(Post)
        .where(*criteria)
        .options(selectinload(Post.author))
        .order_by(Post.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    posts = result.scalars().all()
    liked = await _liked_ids(db, user_id, TargetType.POST, (p.id for p in posts))

    return (
        [to_post_info(p, liked) for p in posts],
        Pagination(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit)),
    )


async def get_national_feed(
    db: AsyncSession, page: int = 1, limit: int = 20, user_id: Optional[str] = None
) -> FeedPage:
    posts, pagination = await _feed(db, [Post.panel_type == PanelType.NATIONAL], page, limit, user_id)
    return FeedPage(posts=posts, pagination=pagination)


async def get_college_feed(
    db: AsyncSession, college_id: str, page: int = 1, limit: int = 20, user_id: Optional[str] = None
) -> FeedPage:
    await _check_panel_access(db, college_id, user_id)

    result = await db.execute(select(College).where(College.id == college_id))
    college = result.scalar_one_or_none()
    if not college:
        raise NotFoundException("College not found")

    criteria = [Post.panel_type == PanelType.COLLEGE, Post.college_id == college_id]
    posts, pagination = await _feed(db, criteria, page, limit, user_id)
    return FeedPage(college=CollegeInfo.model_validate(college), posts=posts, pagination=pagination)


async def get_post(db: AsyncSession, post_id: str, user_id: Optional[str] = None) -> PostInfo:
    post = await _find_post(db, post_id)
    await _check_post_access(db, post, user_id)
    return to_post_info(post, await _liked_ids(db, user_id, TargetType.POST, [post.id]))


async def create_comment(
    db: AsyncSession, user_id: str, post_id: str, fields: CreateCommentRequest
) -> CommentInfo:
    post = await _find_post(db, post_id)
    user = await _get_writer(db, user_id)
    await _check_post_access(db, post, user_id)

    if fields.parent_comment_id:
        result = await db.execute(
            select(Comment.id).where(Comment.id == fields.parent_comment_id, Comment.post_id == post_id)
        )
        if result.first() is None:
            raise NotFoundException("Parent comment not found")

    comment = Comment(
        post_id=post_id,
        author_id=user.id,
        parent_comment_id=fields.parent_comment_id,
        content=fields.content,
    )
    db.add(comment)
    await db.execute(
        update(Post)
        .where(Post.id == post_id)
        .values(comment_count=Post.comment_count + 1)
        .execution_options(synchronize_session=False)
    )
    await db.commit()

    logger.info(f"User {user_id} commented {comment.id} on post {post_id}")
    return to_comment_info(await _find_comment(db, comment.id), set())


async def get_post_comments(db: AsyncSession, post_id: str, user_id: Optional[str] = None) -> List[CommentInfo]:
    """Comments of a post, newest first."""
    post = await _find_post(db, post_id)
    await _check_post_access(db, post, user_id)

    result = await db.execute(
        select(Comment)
        .where(Comment.post_id == post_id)
        .options(selectinload(Comment.author))
        .order_by(Comment.created_at.desc())
        .execution_options(populate_existing=True)
    )
    comments = result.scalars().all()
    liked = await _liked_ids(db, user_id, TargetType.COMMENT, (c.id for c in comments))
    return [to_comment_info(c, liked) for c in comments]


async def _toggle_like(db: AsyncSession, model, target_type: TargetType, target_id: str, user_id: str) -> LikeResult:
    """Like the target, or take the like back if it was already there."""
    inserted = await db.execute(
        insert_ignoring_conflicts(db, Like, LIKE_KEY).values(
            id=new_id(), target_type=target_type, target_id=target_id, user_id=user_id, created_at=utcnow()
        )
    )
    liked = inserted.rowcount > 0

    delta = 1
    if not liked:
        removed = await db.execute(
            delete(Like).where(
                Like.target_type == target_type, Like.target_id == target_id, Like.user_id == user_id
            )
        )
        delta = -removed.rowcount

    if delta:
        await db.execute(
            update(model)
            .where(model.id == target_id)
            .values(likes=model.likes + delta)
            .execution_options(synchronize_session=False)
        )
    await db.commit()
    return LikeResult(liked=liked)


async def like_post(db: AsyncSession, user_id: str, post_id: str) -> LikeResult:
    post = await _find_post(db, post_id)
    await _get_writer(db, user_id)
    await _check_post_access(db, post, user_id)
    return await _toggle_like(db, Post, TargetType.POST, post_id, user_id)


async def like_comment(db: AsyncSession, user_id: str, comment_id: str) -> LikeResult:
    comment = await _find_comment(db, comment_id)
    await _get_writer(db, user_id)
    await _check_post_access(db, await _find_post(db, comment.post_id), user_id)
    return await _toggle_like(db, Comment, TargetType.COMMENT, comment_id, user_id)


def _file_report(db: AsyncSession, target_type: TargetType, target_id: str, user_id: str, reason: str) -> None:
    db.add(Report(
        target_type=target_type,
        target_id=target_id,
        reported_by=user_id,
        reason=reason,
        status=ReportStatus.PENDING,
    ))


async def report_post(db: AsyncSession, user_id: str, post_id: str, reason: str) -> None:
    post = await _find_post(db, post_id)
    await _get_writer(db, user_id)
    await _check_post_access(db, post, user_id)

    _file_report(db, TargetType.POST, post_id, user_id, reason)
    await db.execute(
        update(Post)
        .where(Post.id == post_id)
        .values(report_count=Post.report_count + 1)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    logger.info(f"User {user_id} reported post {post_id}")


async def report_comment(db: AsyncSession, user_id: str, comment_id: str, reason: str) -> None:
    comment = await _find_comment(db, comment_id)
    await _get_writer(db, user_id)
    await _check_post_access(db, await _find_post(db, comment.post_id), user_id)

    _file_report(db, TargetType.COMMENT, comment_id, user_id, reason)
    await db.commit()
    logger.info(f"User {user_id} reported comment {comment_id}")


async def delete_college_posts(db: AsyncSession, college_id: str) -> None:
    """Remove a college panel with its comments, likes and reports. The caller owns the commit."""
    post_ids = select(Post.id).where(Post.college_id == college_id)
    comment_ids = select(Comment.id).where(Comment.post_id.in_(post_ids))

    for model in (Like, Report):
        await db.execute(
            delete(model)
            .where(
                ((model.target_type == TargetType.POST) & model.target_id.in_(post_ids))
                | ((model.target_type == TargetType.COMMENT) & model.target_id.in_(comment_ids))
            )
            .execution_options(synchronize_session=False)
        )
    await db.execute(
        delete(Comment).where(Comment.post_id.in_(post_ids)).execution_options(synchronize_session=False)
    )
    await db.execute(
        delete(Post).where(Post.college_id == college_id).execution_options(synchronize_session=False)
    )
