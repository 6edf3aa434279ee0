"""
Payment sessions for cross-college resource unlocks.

State machine: PENDING -> COMPLETED | FAILED | EXPIRED, all terminal.
Leaving PENDING is a conditional UPDATE (WHERE status = 'PENDING'), so a
session changes state at most once even under concurrent verification.
"""

import asyncio
import logging
from datetime import timedelta
from typing import Optional
from uuid import uuid4

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.database import insert_ignoring_conflicts
from app.exceptions import ConflictException, ForbiddenException, NotFoundException
from app.models import (
    PaymentSession,
    PaymentStatus,
    Resource,
    as_utc,
    new_id,
    pending_key_for,
    utcnow,
)
from app.schemas import PaymentResult, PaymentSessionView
from app.services.access import can_access_resource
from app.services.identity import get_user
from app.services.ledger import grant_paid_access
from app.services.payment_provider import PaymentProvider

logger = logging.getLogger(__name__)


def price_for(resource: Resource) -> float:
    """Unlock price of a resource. Flat rate for every resource type."""
    return get_settings().payment_amount


def is_expired(session: PaymentSession) -> bool:
    return utcnow() > as_utc(session.expires_at)


async def _find_by_session_id(db: AsyncSession, session_id: str) -> Optional[PaymentSession]:
    result = await db.execute(select(PaymentSession).where(PaymentSession.session_id == session_id))
    return result.scalar_one_or_none()


async def _find_pending(db: AsyncSession, key: str) -> Optional[PaymentSession]:
    result = await db.execute(
        select(PaymentSession)
        .where(PaymentSession.pending_key == key)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _leave_pending(
    db: AsyncSession, session: PaymentSession, status: PaymentStatus, completed_at=None
) -> bool:
    """Move a PENDING session to a terminal state. False if it already left PENDING."""
    result = await db.execute(
        update(PaymentSession)
        .where(PaymentSession.id == session.id, PaymentSession.status == PaymentStatus.PENDING)
        .values(status=status, pending_key=None, completed_at=completed_at)
    )
    moved = result.rowcount > 0
    if moved:
        logger.info(f"Payment session {session.session_id} -> {status.value}")
    return moved


def _result(session: PaymentSession, success: bool, message: str, amount: Optional[float] = None) -> PaymentResult:
    return PaymentResult(
        success=success,
        session_id=session.session_id,
        resource_id=session.resource_id,
        user_id=session.user_id,
        amount=amount,
        message=message,
    )


async def initiate_payment(db: AsyncSession, user_id: str, resource_id: str) -> PaymentSessionView:
    """
    Open (or reuse) a payment session for unlocking a locked resource.

    A still-valid PENDING session for the same user and resource is returned
    unchanged. The unique pending key makes concurrent initiations converge
    on a single live session.
    """
    user = await get_user(db, user_id)
    result = await db.execute(select(Resource).where(Resource.id == resource_id))
    resource = result.scalar_one_or_none()

    if not user or not resource:
        raise NotFoundException("User or resource not found")

    access = await can_access_resource(db, user_id, resource_id)
    if not access.can_access:
        raise ForbiddenException("Access denied to this resource")
    if not access.requires_payment:
        raise ForbiddenException("Payment not required for this resource")
    if access.is_unlocked:
        raise ForbiddenException("Resource already unlocked")

    key = pending_key_for(user_id, resource_id)
    existing = await _find_pending(db, key)
    if existing:
        if not is_expired(existing):
            logger.info(f"Reusing payment session {existing.session_id} for user {user_id}")
            return PaymentSessionView.model_validate(existing)
        await _leave_pending(db, existing, PaymentStatus.EXPIRED)

    settings = get_settings()
    now = utcnow()
    session_id = f"pay_{uuid4().hex}"
    stmt = insert_ignoring_conflicts(db, PaymentSession, ["pending_key"]).values(
        id=new_id(),
        session_id=session_id,
        user_id=user_id,
        resource_id=resource_id,
        amount=price_for(resource),
        currency=settings.payment_currency,
        status=PaymentStatus.PENDING,
        pending_key=key,
        created_at=now,
        expires_at=now + timedelta(minutes=settings.payment_session_ttl_minutes),
    )
    inserted = (await db.execute(stmt)).rowcount > 0
    await db.commit()

    if inserted:
        session = await _find_by_session_id(db, session_id)
        logger.info(f"Created payment session {session_id} for user {user_id}, resource {resource_id}")
    else:
        # Lost a race with a concurrent initiation; hand back the winner's session
        session = await _find_pending(db, key)
        if session is None:
            raise ConflictException("Payment session changed concurrently, please retry")
        logger.info(f"Reusing concurrently created payment session {session.session_id}")

    return PaymentSessionView.model_validate(session)


async def verify_payment(db: AsyncSession, session_id: str, provider: PaymentProvider) -> PaymentResult:
    """
    Verify a payment session and unlock its resource.

    Never raises; every outcome is reported in the result. Re-verifying a
    completed session is safe and does not create a second unlock.
    """
    session = await _find_by_session_id(db, session_id)
    if not session:
        return PaymentResult(success=False, session_id=session_id, message="Payment session not found")

    if session.status == PaymentStatus.COMPLETED:
        return _result(session, True, "Payment already completed", amount=session.amount)

    if session.status == PaymentStatus.PENDING and is_expired(session):
        await _leave_pending(db, session, PaymentStatus.EXPIRED)
        await db.commit()
        return _result(session, False, "Payment session expired")

    if session.status != PaymentStatus.PENDING:
        return _result(session, False, f"Payment session is in {session.status.value} state")

    settings = get_settings()
    try:
        verified = await asyncio.wait_for(
            provider.verify_transaction(session_id), timeout=settings.payment_verify_timeout
        )
    except Exception as e:
        logger.warning(f"Payment provider error for session {session_id}: {e!r}")
        verified = False

    if not verified:
        await _leave_pending(db, session, PaymentStatus.FAILED)
        await db.commit()
        return _result(session, False, "Payment verification failed")

    # Session transition and unlock row commit together
    moved = await _leave_pending(db, session, PaymentStatus.COMPLETED, completed_at=utcnow())
    if moved:
        await grant_paid_access(db, session.user_id, session.resource_id, session.amount)
        await db.commit()
        return _result(
            session, True, "Payment verified and resource unlocked successfully", amount=session.amount
        )

    # Another verification finished first
    await db.rollback()
    await db.refresh(session)
    if session.status == PaymentStatus.COMPLETED:
        return _result(session, True, "Payment already completed", amount=session.amount)
    return _result(session, False, f"Payment session is in {session.status.value} state")
