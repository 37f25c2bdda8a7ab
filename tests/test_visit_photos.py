"""Tests for visit photo upload, confirmation, listing and removal."""

from __future__ import annotations

from uuid import uuid4

import pytest

from field_service.core.exceptions import ForbiddenError, NotFoundError, ValidationError


# ============================================================================
# Create
# ============================================================================

class TestCreateVisitPhoto:
    """Tests for VisitPhotoService.create_visit_photo."""

    @pytest.mark.asyncio
    async def test_creates_pending_photo(self, services, seed, storage, tenant_id, owner_id, audit_repository):
        """Test a pending row and an upload authorisation are returned."""
        visit = await seed.visit(status="started")

        result = await services.photos.create_visit_photo(
            tenant_id, owner_id, "owner", visit.id, "roof.png", "image/png", size_bytes=2048
        )

        photo = result.photo
        assert photo.status == "pending"
        assert photo.file_name == "roof.png"
        assert photo.size_bytes == 2048
        assert photo.storage_key == f"tenants/{tenant_id}/visits/{visit.id}/photos/{photo.id}.png"
        assert storage.authorised == [photo.storage_key]
        assert result.upload.fields["key"] == photo.storage_key
        assert result.upload.fields["Content-Type"] == "image/png"

        events = await audit_repository.list_for_subject(tenant_id, "visit", visit.id)
        assert [e.event_name for e in events] == ["visit.photo_upload_started"]
        assert events[0].metadata_json == {"fileName": "roof.png", "photoId": str(photo.id)}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("file_name", ["", "   "])
    async def test_requires_file_name(self, services, seed, tenant_id, owner_id, file_name):
        """Test a blank file name is rejected."""
        visit = await seed.visit(status="started")

        with pytest.raises(ValidationError, match="File name is required"):
            await services.photos.create_visit_photo(
                tenant_id, owner_id, "owner", visit.id, file_name, "image/jpeg"
            )

    @pytest.mark.asyncio
    async def test_rejects_content_type(self, services, seed, tenant_id, owner_id):
        """Test only image types are accepted."""
        visit = await seed.visit(status="started")

        with pytest.raises(ValidationError, match="Invalid content type"):
            await services.photos.create_visit_photo(
                tenant_id, owner_id, "owner", visit.id, "notes.pdf", "application/pdf"
            )

    @pytest.mark.asyncio
    async def test_rejects_oversized_file(self, services, seed, tenant_id, owner_id):
        """Test a declared size over the limit is rejected."""
        visit = await seed.visit(status="started")

        with pytest.raises(ValidationError, match="maximum size"):
            await services.photos.create_visit_photo(
                tenant_id, owner_id, "owner", visit.id, "big.jpg", "image/jpeg",
                size_bytes=50 * 1024 * 1024,
            )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["scheduled", "cancelled"])
    async def test_rejects_non_editable_visit(self, services, seed, tenant_id, owner_id, status):
        """Test photos cannot be added before work starts or after cancellation."""
        visit = await seed.visit(status=status)

        with pytest.raises(ValidationError, match=f'status "{status}"'):
            await services.photos.create_visit_photo(
                tenant_id, owner_id, "owner", visit.id, "a.jpg", "image/jpeg"
            )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["en_route", "started", "completed"])
    async def test_accepts_editable_visit(self, services, seed, tenant_id, owner_id, status):
        """Test photos may be added while travelling, working or after completion."""
        visit = await seed.visit(status=status)

        result = await services.photos.create_visit_photo(
            tenant_id, owner_id, "owner", visit.id, "a.jpg", "image/jpeg"
        )

        assert result.photo.status == "pending"

    @pytest.mark.asyncio
    async def test_unknown_visit(self, services, tenant_id, owner_id):
        """Test a missing visit is reported as not found."""
        with pytest.raises(NotFoundError):
            await services.photos.create_visit_photo(
                tenant_id, owner_id, "owner", uuid4(), "a.jpg", "image/jpeg"
            )

    @pytest.mark.asyncio
    async def test_member_other_visit(self, services, seed, tenant_id, member_id):
        """Test members only add photos to their own visits."""
        visit = await seed.visit(status="started", assigned_user_id=uuid4())

        with pytest.raises(ForbiddenError, match="add photos to their own"):
            await services.photos.create_visit_photo(
                tenant_id, member_id, "member", visit.id, "a.jpg", "image/jpeg"
            )

    @pytest.mark.asyncio
    async def test_member_own_visit(self, services, seed, tenant_id, member_id):
        """Test a member adds photos to their own visit."""
        visit = await seed.visit(status="started", assigned_user_id=member_id)

        result = await services.photos.create_visit_photo(
            tenant_id, member_id, "member", visit.id, "a.jpg", "image/jpeg"
        )

        assert result.photo.storage_key.endswith(".jpg")

    @pytest.mark.asyncio
    async def test_ready_limit(self, services, seed, tenant_id, owner_id):
        """Test no new uploads once 20 photos are ready."""
        visit = await seed.visit(status="started")
        for _ in range(20):
            await seed.photo(visit, status="ready")

        with pytest.raises(ValidationError, match="Maximum of 20 photos per visit"):
            await services.photos.create_visit_photo(
                tenant_id, owner_id, "owner", visit.id, "a.jpg", "image/jpeg"
            )

    @pytest.mark.asyncio
    async def test_pending_limit(self, services, seed, tenant_id, owner_id):
        """Test at most five uploads may be outstanding."""
        visit = await seed.visit(status="started")
        for _ in range(5):
            await seed.photo(visit, status="pending")

        with pytest.raises(ValidationError, match="Too many pending uploads"):
            await services.photos.create_visit_photo(
                tenant_id, owner_id, "owner", visit.id, "a.jpg", "image/jpeg"
            )

    @pytest.mark.asyncio
    async def test_stale_pending_are_collected(self, services, seed, storage, tenant_id, owner_id, db_session):
        """Test abandoned uploads free their slots and storage objects."""
        from field_service.db.repositories import VisitPhotoRepository

        visit = await seed.visit(status="started")
        stale = [await seed.photo(visit, age_minutes=20) for _ in range(5)]

        result = await services.photos.create_visit_photo(
            tenant_id, owner_id, "owner", visit.id, "a.jpg", "image/jpeg"
        )

        assert sorted(storage.deleted) == sorted(p.storage_key for p in stale)
        repo = VisitPhotoRepository(db_session)
        assert await repo.count_pending(tenant_id, visit.id) == 1
        assert (await repo.get(tenant_id, result.photo.id)) is not None

    @pytest.mark.asyncio
    async def test_rejected_create_keeps_stale_objects(self, services, seed, storage, tenant_id, owner_id, db_session):
        """Test a quota rejection deletes no stored objects."""
        from field_service.db.repositories import VisitPhotoRepository

        visit = await seed.visit(status="started")
        for _ in range(20):
            await seed.photo(visit, status="ready")
        stale = await seed.photo(visit, age_minutes=20)

        with pytest.raises(ValidationError, match="Maximum of 20 photos per visit"):
            await services.photos.create_visit_photo(
                tenant_id, owner_id, "owner", visit.id, "a.jpg", "image/jpeg"
            )
        await db_session.rollback()

        assert storage.deleted == []
        assert await VisitPhotoRepository(db_session).get(tenant_id, stale.id) is not None

    @pytest.mark.asyncio
    async def test_visit_locked_before_counting(self, db_session, seed, storage, tenant_id, owner_id):
        """Test the visit row is locked before the quota counts are taken."""
        from field_service.db.repositories import (
            AuditEventRepository,
            VisitPhotoRepository,
            VisitRepository,
        )
        from field_service.services.audit_trail import AuditTrail
        from field_service.services.visit_photos import VisitPhotoService

        visit = await seed.visit(status="started")
        photo_repo = VisitPhotoRepository(db_session)
        calls = []

        def record(name, method):
            async def wrapper(*args, **kwargs):
                calls.append(name)
                return await method(*args, **kwargs)
            return wrapper

        for name in ("lock_visit", "delete_stale_pending", "count_ready", "count_pending"):
            setattr(photo_repo, name, record(name, getattr(photo_repo, name)))

        service = VisitPhotoService(
            VisitRepository(db_session),
            photo_repo,
            storage,
            AuditTrail(AuditEventRepository(db_session)),
        )
        await service.create_visit_photo(tenant_id, owner_id, "owner", visit.id, "a.jpg", "image/jpeg")

        assert calls == ["lock_visit", "delete_stale_pending", "count_ready", "count_pending"]

    @pytest.mark.asyncio
    async def test_honours_configured_limits(self, db_session, seed, storage, tenant_id, owner_id):
        """Test quotas come from settings."""
        from field_service.config import PhotoSettings
        from field_service.db.repositories import (
            AuditEventRepository,
            VisitPhotoRepository,
            VisitRepository,
        )
        from field_service.services.audit_trail import AuditTrail
        from field_service.services.visit_photos import VisitPhotoService

        visit = await seed.visit(status="started")
        await seed.photo(visit, status="ready")
        service = VisitPhotoService(
            VisitRepository(db_session),
            VisitPhotoRepository(db_session),
            storage,
            AuditTrail(AuditEventRepository(db_session)),
            settings=PhotoSettings(max_ready_per_visit=1),
        )

        with pytest.raises(ValidationError, match="Maximum of 1 photos"):
            await service.create_visit_photo(
                tenant_id, owner_id, "owner", visit.id, "a.jpg", "image/jpeg"
            )


# ============================================================================
# Confirm
# ============================================================================

class TestConfirmVisitPhoto:
    """Tests for VisitPhotoService.confirm_visit_photo."""

    @pytest.mark.asyncio
    async def test_confirms_pending(self, services, seed, tenant_id, owner_id, audit_repository):
        """Test a pending photo becomes ready."""
        visit = await seed.visit(status="started")
        photo = await seed.photo(visit, file_name="door.jpg")

        confirmed = await services.photos.confirm_visit_photo(
            tenant_id, owner_id, "owner", visit.id, photo.id
        )

        assert confirmed.status == "ready"
        events = await audit_repository.list_for_subject(tenant_id, "visit", visit.id)
        assert [e.event_name for e in events] == ["visit.photo_added"]
        assert events[0].metadata_json == {"fileName": "door.jpg", "photoId": str(photo.id)}

    @pytest.mark.asyncio
    async def test_confirm_is_idempotent(self, services, seed, tenant_id, owner_id, audit_repository):
        """Test confirming a ready photo changes nothing."""
        visit = await seed.visit(status="started")
        photo = await seed.photo(visit)

        await services.photos.confirm_visit_photo(tenant_id, owner_id, "owner", visit.id, photo.id)
        again = await services.photos.confirm_visit_photo(tenant_id, owner_id, "owner", visit.id, photo.id)

        assert again.status == "ready"
        events = await audit_repository.list_for_subject(tenant_id, "visit", visit.id)
        assert [e.event_name for e in events] == ["visit.photo_added"]

    @pytest.mark.asyncio
    async def test_ready_photo_at_cap_is_still_idempotent(self, services, seed, tenant_id, owner_id):
        """Test re-confirming one of 20 ready photos succeeds."""
        visit = await seed.visit(status="started")
        photos = [await seed.photo(visit, status="ready") for _ in range(20)]

        again = await services.photos.confirm_visit_photo(
            tenant_id, owner_id, "owner", visit.id, photos[0].id
        )

        assert again.status == "ready"

    @pytest.mark.asyncio
    async def test_quota_exceeded(self, services, seed, tenant_id, owner_id, db_session):
        """Test the 21st photo cannot be confirmed."""
        from field_service.db.repositories import VisitPhotoRepository

        visit = await seed.visit(status="started")
        for _ in range(20):
            await seed.photo(visit, status="ready")
        photo = await seed.photo(visit)

        with pytest.raises(ValidationError, match="Photo quota exceeded"):
            await services.photos.confirm_visit_photo(
                tenant_id, owner_id, "owner", visit.id, photo.id
            )

        repo = VisitPhotoRepository(db_session)
        assert await repo.count_ready(tenant_id, visit.id) == 20
        assert (await repo.get(tenant_id, photo.id)).status == "pending"

    @pytest.mark.asyncio
    async def test_photo_of_other_visit(self, services, seed, tenant_id, owner_id):
        """Test a photo is only reachable through its own visit."""
        visit = await seed.visit(status="started")
        other_visit = await seed.visit(status="started")
        photo = await seed.photo(other_visit)

        with pytest.raises(NotFoundError, match="Photo not found"):
            await services.photos.confirm_visit_photo(
                tenant_id, owner_id, "owner", visit.id, photo.id
            )

    @pytest.mark.asyncio
    async def test_unknown_photo(self, services, seed, tenant_id, owner_id):
        """Test a missing photo is reported as not found."""
        visit = await seed.visit(status="started")

        with pytest.raises(NotFoundError):
            await services.photos.confirm_visit_photo(
                tenant_id, owner_id, "owner", visit.id, uuid4()
            )

    @pytest.mark.asyncio
    async def test_cancelled_visit(self, services, seed, tenant_id, owner_id):
        """Test nothing is confirmed on a cancelled visit."""
        visit = await seed.visit(status="cancelled")
        photo = await seed.photo(visit)

        with pytest.raises(ValidationError, match='Cannot confirm photos on a visit with status "cancelled"'):
            await services.photos.confirm_visit_photo(
                tenant_id, owner_id, "owner", visit.id, photo.id
            )

    @pytest.mark.asyncio
    async def test_member_other_visit(self, services, seed, tenant_id, member_id):
        """Test members only confirm on their own visits."""
        visit = await seed.visit(status="started", assigned_user_id=uuid4())
        photo = await seed.photo(visit)

        with pytest.raises(ForbiddenError):
            await services.photos.confirm_visit_photo(
                tenant_id, member_id, "member", visit.id, photo.id
            )


# ============================================================================
# List
# ============================================================================

class TestListVisitPhotos:
    """Tests for VisitPhotoService.list_visit_photos."""

    @pytest.mark.asyncio
    async def test_lists_ready_with_urls(self, services, seed, tenant_id, owner_id):
        """Test only ready photos are listed, each with a download URL."""
        visit = await seed.visit(status="completed")
        older = await seed.photo(visit, status="ready", age_minutes=10)
        newer = await seed.photo(visit, status="ready", age_minutes=5)
        await seed.photo(visit, status="pending")

        photos = await services.photos.list_visit_photos(tenant_id, owner_id, "owner", visit.id)

        assert [p.photo.id for p in photos] == [older.id, newer.id]
        assert photos[0].download_url == f"https://storage.test/{older.storage_key}?signature=mock"

    @pytest.mark.asyncio
    async def test_lists_on_any_visit_status(self, services, seed, tenant_id, owner_id):
        """Test listing is allowed on visits that no longer accept photos."""
        visit = await seed.visit(status="cancelled")
        await seed.photo(visit, status="ready")

        photos = await services.photos.list_visit_photos(tenant_id, owner_id, "admin", visit.id)

        assert len(photos) == 1

    @pytest.mark.asyncio
    async def test_member_other_visit(self, services, seed, tenant_id, member_id):
        """Test members only view photos of their own visits."""
        visit = await seed.visit(status="started", assigned_user_id=uuid4())

        with pytest.raises(ForbiddenError, match="view photos"):
            await services.photos.list_visit_photos(tenant_id, member_id, "member", visit.id)

    @pytest.mark.asyncio
    async def test_other_tenant(self, services, seed, other_tenant_id, owner_id):
        """Test a visit of another tenant is not found."""
        visit = await seed.visit(status="started")

        with pytest.raises(NotFoundError):
            await services.photos.list_visit_photos(other_tenant_id, owner_id, "owner", visit.id)


# ============================================================================
# Delete
# ============================================================================

class TestDeleteVisitPhoto:
    """Tests for VisitPhotoService.delete_visit_photo."""

    @pytest.mark.asyncio
    async def test_deletes_row_and_object(self, services, seed, storage, tenant_id, owner_id, db_session, audit_repository):
        """Test the row and its stored object are removed."""
        from field_service.db.repositories import VisitPhotoRepository

        visit = await seed.visit(status="started")
        photo = await seed.photo(visit, status="ready")

        await services.photos.delete_visit_photo(tenant_id, owner_id, "owner", visit.id, photo.id)

        assert await VisitPhotoRepository(db_session).get(tenant_id, photo.id) is None
        assert storage.deleted == [photo.storage_key]
        events = await audit_repository.list_for_subject(tenant_id, "visit", visit.id)
        assert [e.event_name for e in events] == ["visit.photo_removed"]

    @pytest.mark.asyncio
    async def test_storage_failure_is_swallowed(self, db_session, seed, storage, tenant_id, owner_id, monkeypatch):
        """Test a failed object delete does not fail the operation."""
        from field_service.db.repositories import (
            AuditEventRepository,
            VisitPhotoRepository,
            VisitRepository,
        )
        from field_service.integrations.storage.base import StorageError
        from field_service.services.audit_trail import AuditTrail
        from field_service.services.visit_photos import VisitPhotoService

        async def failing_delete(key):
            raise StorageError("bucket unavailable")

        monkeypatch.setattr(storage, "delete_object", failing_delete)
        visit = await seed.visit(status="started")
        photo = await seed.photo(visit, status="ready")
        service = VisitPhotoService(
            VisitRepository(db_session),
            VisitPhotoRepository(db_session),
            storage,
            AuditTrail(AuditEventRepository(db_session)),
        )

        await service.delete_visit_photo(tenant_id, owner_id, "owner", visit.id, photo.id)

        assert await VisitPhotoRepository(db_session).get(tenant_id, photo.id) is None

    @pytest.mark.asyncio
    async def test_member_other_visit(self, services, seed, tenant_id, member_id):
        """Test members only delete on their own visits."""
        visit = await seed.visit(status="started", assigned_user_id=uuid4())
        photo = await seed.photo(visit, status="ready")

        with pytest.raises(ForbiddenError, match="delete photos from their own"):
            await services.photos.delete_visit_photo(
                tenant_id, member_id, "member", visit.id, photo.id
            )

    @pytest.mark.asyncio
    async def test_photo_of_other_visit(self, services, seed, tenant_id, owner_id):
        """Test a photo cannot be deleted through another visit."""
        visit = await seed.visit(status="started")
        photo = await seed.photo(await seed.visit(status="started"), status="ready")

        with pytest.raises(NotFoundError):
            await services.photos.delete_visit_photo(tenant_id, owner_id, "owner", visit.id, photo.id)


# ============================================================================
# Maintenance
# ============================================================================

class TestPurgeStaleUploads:
    """Tests for VisitPhotoService.purge_stale_uploads."""

    @pytest.mark.asyncio
    async def test_purges_across_visits(self, services, seed, storage, tenant_id):
        """Test stale pending uploads of every visit are removed."""
        first_visit = await seed.visit(status="started")
        second_visit = await seed.visit(status="completed")
        stale_a = await seed.photo(first_visit, age_minutes=40)
        stale_b = await seed.photo(second_visit, age_minutes=20)
        await seed.photo(first_visit, age_minutes=1)
        await seed.photo(second_visit, status="ready", age_minutes=90)

        removed = await services.photos.purge_stale_uploads()

        assert removed == 2
        assert sorted(storage.deleted) == sorted([stale_a.storage_key, stale_b.storage_key])

    @pytest.mark.asyncio
    async def test_custom_age(self, services, seed, storage):
        """Test the age threshold can be overridden."""
        visit = await seed.visit(status="started")
        await seed.photo(visit, age_minutes=20)

        assert await services.photos.purge_stale_uploads(older_than_minutes=30) == 0
        assert await services.photos.purge_stale_uploads(older_than_minutes=10) == 1
