"""
Access ledger tests.
"""

import pytest
from sqlalchemy import func, select

from app.models import AccessType, ResourceAccess
from app.services.ledger import grant_paid_access, query_by_user, record_access

from conftest import create_resource


async def count_rows(db, user_id):
    result = await db.execute(
        select(func.count()).select_from(ResourceAccess).where(ResourceAccess.user_id == user_id)
    )
    return result.scalar_one()


@pytest.mark.asyncio
async def test_record_access_is_idempotent(db, student_a, resource_a):
    for _ in range(3):
        record = await record_access(db, student_a.id, resource_a.id)

    assert record.access_type == AccessType.OWN_COLLEGE
    assert record.payment_amount is None
    assert await count_rows(db, student_a.id) == 1


@pytest.mark.asyncio
async def test_cross_college_view_writes_no_placeholder(db, student_a, resource_b):
    assert await record_access(db, student_a.id, resource_b.id) is None
    assert await count_rows(db, student_a.id) == 0


@pytest.mark.asyncio
async def test_cross_college_view_returns_the_paid_record(db, student_a, resource_b):
    await grant_paid_access(db, student_a.id, resource_b.id, 10.0)
    await db.commit()

    record = await record_access(db, student_a.id, resource_b.id)
    assert record.access_type == AccessType.PAID
    assert record.payment_amount == 10.0
    assert await count_rows(db, student_a.id) == 1


@pytest.mark.asyncio
async def test_record_access_ignores_missing_entities(db, student_a, resource_a):
    assert await record_access(db, "missing", resource_a.id) is None
    assert await record_access(db, student_a.id, "missing") is None


@pytest.mark.asyncio
async def test_grant_paid_access_only_once(db, student_a, resource_b):
    assert await grant_paid_access(db, student_a.id, resource_b.id, 10.0) is True
    assert await grant_paid_access(db, student_a.id, resource_b.id, 10.0) is False
    await db.commit()

    assert await count_rows(db, student_a.id) == 1


@pytest.mark.asyncio
async def test_history_is_most_recent_first_and_filterable(
    db, college_a, moderator_a, student_a, resource_a, resource_b
):
    second_own = await create_resource(db, college_a, moderator_a, file_name="alpha-second.pdf")

    await record_access(db, student_a.id, resource_a.id)
    await grant_paid_access(db, student_a.id, resource_b.id, 10.0)
    await db.commit()
    await record_access(db, student_a.id, second_own.id)

    history = await query_by_user(db, student_a.id)
    assert [r.resource_id for r in history] == [second_own.id, resource_b.id, resource_a.id]

    own = await query_by_user(db, student_a.id, AccessType.OWN_COLLEGE)
    assert [r.resource_id for r in own] == [second_own.id, resource_a.id]

    paid = await query_by_user(db, student_a.id, AccessType.PAID)
    assert [r.resource_id for r in paid] == [resource_b.id]
