"""
Resource retrieval, upload and deletion tests.
"""

import pytest
from fastapi import HTTPException
from sqlalchemy import func, select

from app.models import AccessType, Resource, ResourceAccess, ResourceType
from app.schemas import UploadResourceRequest
from app.services.ledger import grant_paid_access, query_by_user
from app.services.resources import (
    delete_resource,
    download_resource,
    get_resource_file,
    get_resources_by_uploader,
    upload_resource,
    view_resource,
)


def upload_fields(**overrides):
    fields = dict(
        resource_type="TOPPER_NOTES",
        department="MBA",
        batch="2025",
        file_name="strategy.pdf",
        file_url="https://files.example.com/strategy.pdf",
        description="Term 1 notes",
    )
    fields.update(overrides)
    return UploadResourceRequest(**fields)


async def resource_count(db):
    result = await db.execute(select(func.count()).select_from(Resource))
    return result.scalar_one()


class TestGetResourceFile:

    @pytest.mark.asyncio
    async def test_locked_foreign_file_is_previewable(self, db, student_a, resource_b):
        file = await get_resource_file(db, resource_b.id, student_a.id)
        assert file.name == "beta-notes.pdf"
        assert file.uploaded_by == "mark"
        assert file.is_locked is True
        assert file.is_unlocked is False

    @pytest.mark.asyncio
    async def test_missing_entities_raise(self, db, student_a, resource_a):
        with pytest.raises(HTTPException) as exc:
            await get_resource_file(db, "missing", student_a.id)
        assert exc.value.status_code == 404
        assert exc.value.detail == "Resource not found"

        with pytest.raises(HTTPException) as exc:
            await get_resource_file(db, resource_a.id, "missing")
        assert exc.value.status_code == 404
        assert exc.value.detail == "User not found"

    @pytest.mark.asyncio
    async def test_general_user_is_denied(self, db, general_user, resource_a):
        with pytest.raises(HTTPException) as exc:
            await get_resource_file(db, resource_a.id, general_user.id)
        assert exc.value.status_code == 403


class TestViewResource:

    @pytest.mark.asyncio
    async def test_view_records_own_college_access(self, db, student_a, resource_a):
        view = await view_resource(db, resource_a.id, student_a.id)

        assert view.file_url == resource_a.file_url
        assert view.file.is_unlocked
        [record] = await query_by_user(db, student_a.id)
        assert record.access_type == AccessType.OWN_COLLEGE

    @pytest.mark.asyncio
    async def test_locked_file_requires_payment(self, db, student_a, resource_b):
        with pytest.raises(HTTPException) as exc:
            await view_resource(db, resource_b.id, student_a.id)
        assert exc.value.status_code == 403
        assert exc.value.detail == "Payment required to view this resource"

    @pytest.mark.asyncio
    async def test_paid_file_can_be_viewed(self, db, student_a, resource_b):
        await grant_paid_access(db, student_a.id, resource_b.id, 10.0)
        await db.commit()

        view = await view_resource(db, resource_b.id, student_a.id)
        assert view.file.is_unlocked and not view.file.is_locked
        assert len(await query_by_user(db, student_a.id)) == 1


class TestDownloadResource:

    @pytest.mark.asyncio
    async def test_download_records_own_college_access(self, db, student_a, resource_a):
        download = await download_resource(db, resource_a.id, student_a.id)

        assert download.message == "File download granted"
        assert download.file_url == resource_a.file_url
        [record] = await query_by_user(db, student_a.id)
        assert record.access_type == AccessType.OWN_COLLEGE

    @pytest.mark.asyncio
    async def test_locked_file_requires_payment(self, db, student_a, resource_b):
        with pytest.raises(HTTPException) as exc:
            await download_resource(db, resource_b.id, student_a.id)
        assert exc.value.status_code == 403
        assert exc.value.detail == "Payment required to download this resource"
        assert await query_by_user(db, student_a.id) == []

    @pytest.mark.asyncio
    async def test_paid_file_can_be_downloaded(self, db, student_a, resource_b):
        await grant_paid_access(db, student_a.id, resource_b.id, 10.0)
        await db.commit()

        download = await download_resource(db, resource_b.id, student_a.id)
        assert download.file.is_unlocked
        [record] = await query_by_user(db, student_a.id)
        assert record.access_type == AccessType.PAID

    @pytest.mark.asyncio
    async def test_general_user_is_denied(self, db, general_user, resource_a):
        with pytest.raises(HTTPException) as exc:
            await download_resource(db, resource_a.id, general_user.id)
        assert exc.value.detail == "Access denied to this resource"


class TestUploadResource:

    @pytest.mark.asyncio
    async def test_moderator_uploads_to_own_college(self, db, college_a, moderator_a):
        resource = await upload_resource(db, moderator_a.id, college_a.id, upload_fields())

        assert resource.college_id == college_a.id
        assert resource.resource_type == ResourceType.TOPPER_NOTES
        assert resource.uploaded_by == moderator_a.id
        assert resource.uploader.username == "mona"

    @pytest.mark.asyncio
    async def test_moderator_cannot_upload_to_other_college(self, db, college_b, moderator_a):
        with pytest.raises(HTTPException) as exc:
            await upload_resource(db, moderator_a.id, college_b.id, upload_fields())
        assert exc.value.status_code == 403
        assert exc.value.detail == "Moderators can only upload resources to their assigned college"
        assert await resource_count(db) == 0

    @pytest.mark.asyncio
    async def test_admin_uploads_anywhere(self, db, college_b, admin):
        resource = await upload_resource(db, admin.id, college_b.id, upload_fields())
        assert resource.college_id == college_b.id

    @pytest.mark.asyncio
    async def test_college_user_cannot_upload(self, db, college_a, student_a):
        with pytest.raises(HTTPException) as exc:
            await upload_resource(db, student_a.id, college_a.id, upload_fields())
        assert exc.value.status_code == 403

    @pytest.mark.asyncio
    async def test_missing_uploader_or_college(self, db, college_a, moderator_a):
        with pytest.raises(HTTPException) as exc:
            await upload_resource(db, "missing", college_a.id, upload_fields())
        assert exc.value.status_code == 404

        with pytest.raises(HTTPException) as exc:
            await upload_resource(db, moderator_a.id, "missing", upload_fields())
        assert exc.value.status_code == 404

    @pytest.mark.asyncio
    async def test_invalid_resource_type(self, db, college_a, moderator_a):
        with pytest.raises(HTTPException) as exc:
            await upload_resource(db, moderator_a.id, college_a.id, upload_fields(resource_type="MEMES"))
        assert exc.value.status_code == 400
        assert exc.value.detail == "Invalid resource type"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["department", "batch", "file_name", "file_url"])
    async def test_required_fields(self, db, college_a, moderator_a, field):
        with pytest.raises(HTTPException) as exc:
            await upload_resource(db, moderator_a.id, college_a.id, upload_fields(**{field: "  "}))
        assert exc.value.status_code == 400
        assert await resource_count(db) == 0

    @pytest.mark.asyncio
    async def test_my_uploads_newest_first(self, db, college_a, moderator_a):
        first = await upload_resource(db, moderator_a.id, college_a.id, upload_fields(file_name="one.pdf"))
        second = await upload_resource(db, moderator_a.id, college_a.id, upload_fields(file_name="two.pdf"))

        uploads = await get_resources_by_uploader(db, moderator_a.id)
        assert [r.id for r in uploads] == [second.id, first.id]


class TestDeleteResource:

    @pytest.mark.asyncio
    async def test_moderator_deletes_own_upload(self, db, moderator_a, resource_a):
        await delete_resource(db, resource_a.id, moderator_a.id)
        assert await resource_count(db) == 0

    @pytest.mark.asyncio
    async def test_moderator_cannot_delete_others(self, db, moderator_a, resource_b):
        with pytest.raises(HTTPException) as exc:
            await delete_resource(db, resource_b.id, moderator_a.id)
        assert exc.value.status_code == 403
        assert exc.value.detail == "You can only delete your own uploads"

    @pytest.mark.asyncio
    async def test_admin_deletes_anything_with_its_unlocks(self, db, admin, student_a, resource_b):
        await grant_paid_access(db, student_a.id, resource_b.id, 10.0)
        await db.commit()

        await delete_resource(db, resource_b.id, admin.id)

        assert await resource_count(db) == 0
        result = await db.execute(select(func.count()).select_from(ResourceAccess))
        assert result.scalar_one() == 0

    @pytest.mark.asyncio
    async def test_missing_entities(self, db, admin, resource_a):
        with pytest.raises(HTTPException) as exc:
            await delete_resource(db, "missing", admin.id)
        assert exc.value.status_code == 404

        with pytest.raises(HTTPException) as exc:
            await delete_resource(db, resource_a.id, "missing")
        assert exc.value.status_code == 404
