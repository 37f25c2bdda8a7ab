"""Visit photo evidence with a bounded, race-safe quota.

Upload flow:
1. ``create_visit_photo`` authorises a direct upload and inserts a pending row
2. The client uploads the binary straight to object storage
3. ``confirm_visit_photo`` flips the row to ready if the visit still has room

Pending rows that are never confirmed go stale and are garbage-collected.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from uuid import UUID, uuid4

from field_service.config import PhotoSettings
from field_service.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from field_service.core.logging import get_logger, resolve_correlation_id
from field_service.db.base import utcnow
from field_service.db.models.audit import PrincipalType
from field_service.db.models.jobs import PhotoStatus, VisitModel, VisitPhotoModel, VisitStatus
from field_service.db.repositories.jobs import VisitRepository
from field_service.db.repositories.visit_photos import VisitPhotoRepository
from field_service.integrations.storage.base import FileStorage, PresignedPost
from field_service.services.audit_trail import AuditTrail
from field_service.services.visit_status import UserRole

log = get_logger(__name__)

# Content type -> storage key extension
ALLOWED_CONTENT_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/heic": "heic",
    "image/webp": "webp",
}

# Visit statuses in which evidence may be added, confirmed or removed
EDITABLE_VISIT_STATUSES = (VisitStatus.EN_ROUTE, VisitStatus.STARTED, VisitStatus.COMPLETED)


def photo_storage_key(tenant_id: UUID, visit_id: UUID, photo_id: UUID, content_type: str) -> str:
    ext = ALLOWED_CONTENT_TYPES[content_type]
    return f"tenants/{tenant_id}/visits/{visit_id}/photos/{photo_id}.{ext}"


@dataclass
class PhotoUpload:
    """Pending photo plus the authorisation to upload its binary."""

    photo: VisitPhotoModel
    upload: PresignedPost


@dataclass
class PhotoWithUrl:
    """Ready photo plus a time-limited download URL."""

    photo: VisitPhotoModel
    download_url: str


class VisitPhotoService:
    """Create, confirm, list and delete visit photos.

    Usage:
        service = VisitPhotoService(visit_repo, photo_repo, storage, audit)
        upload = await service.create_visit_photo(
            tenant_id, user_id, UserRole.MEMBER, visit_id, "roof.jpg", "image/jpeg",
        )
    """

    def __init__(
        self,
        visit_repo: VisitRepository,
        photo_repo: VisitPhotoRepository,
        storage: FileStorage,
        audit: AuditTrail,
        settings: PhotoSettings | None = None,
    ) -> None:
        """Initialize service.

        Args:
            visit_repo: Visit reads
            photo_repo: Photo reads and quota-guarded writes
            storage: Object storage gateway
            audit: Best-effort audit trail
            settings: Quota limits (defaults: 20 ready, 5 pending, 15 min)
        """
        self._visit_repo = visit_repo
        self._photo_repo = photo_repo
        self._storage = storage
        self._audit = audit
        self._settings = settings or PhotoSettings()

    # =========================================================================
    # Guards
    # =========================================================================

    async def _load_visit(
        self,
        tenant_id: UUID,
        visit_id: UUID,
        caller_user_id: UUID,
        caller_role: str,
        *,
        verb: str,
        forbidden_message: str,
    ) -> VisitModel:
        visit = await self._visit_repo.get(tenant_id, visit_id)
        if visit is None:
            raise NotFoundError("Visit not found", details={"visit_id": str(visit_id)})

        if visit.status not in EDITABLE_VISIT_STATUSES:
            raise ValidationError(f"Cannot {verb} a visit with status \"{visit.status}\"")

        self._check_access(visit, caller_user_id, caller_role, forbidden_message)
        return visit

    @staticmethod
    def _check_access(
        visit: VisitModel,
        caller_user_id: UUID,
        caller_role: str,
        message: str,
    ) -> None:
        if caller_role in UserRole.PRIVILEGED:
            return
        if visit.assigned_user_id != caller_user_id:
            raise ForbiddenError(message)

    async def _load_photo(self, tenant_id: UUID, visit_id: UUID, photo_id: UUID) -> VisitPhotoModel:
        photo = await self._photo_repo.get(tenant_id, photo_id)
        if photo is None or photo.visit_id != visit_id:
            raise NotFoundError("Photo not found", details={"photo_id": str(photo_id)})
        return photo

    async def _delete_objects(self, keys: list[str]) -> None:
        for key in keys:
            try:
                await self._storage.delete_object(key)
            except Exception:
                log.warning("Storage object not deleted", key=key, exc_info=True)

    # =========================================================================
    # Operations
    # =========================================================================

    async def create_visit_photo(
        self,
        tenant_id: UUID,
        caller_user_id: UUID,
        caller_role: str,
        visit_id: UUID,
        file_name: str,
        content_type: str,
        size_bytes: int | None = None,
        correlation_id: str | None = None,
    ) -> PhotoUpload:
        """Authorise a photo upload and record it as pending.

        Raises:
            ValidationError: Bad file name or type, visit not editable, or
                quota reached
            NotFoundError: Visit does not exist in the tenant
            ForbiddenError: Member adding to a visit not assigned to them
        """
        correlation_id = resolve_correlation_id(correlation_id)

        if not file_name or not file_name.strip():
            raise ValidationError("File name is required")

        if content_type not in ALLOWED_CONTENT_TYPES:
            raise ValidationError(
                f"Invalid content type \"{content_type}\". "
                f"Allowed: {', '.join(ALLOWED_CONTENT_TYPES)}"
            )

        if size_bytes is not None and size_bytes > self._settings.max_file_size_bytes:
            raise ValidationError(
                f"File exceeds the maximum size of {self._settings.max_file_size_bytes} bytes"
            )

        await self._load_visit(
            tenant_id,
            visit_id,
            caller_user_id,
            caller_role,
            verb="add photos to",
            forbidden_message="Members can only add photos to their own assigned visits",
        )

        # Held until commit so the counts below cannot go stale
        await self._photo_repo.lock_visit(tenant_id, visit_id)

        # Stale objects are deleted only after the insert; a rejection rolls the rows back
        stale_before = utcnow() - timedelta(minutes=self._settings.stale_pending_minutes)
        stale_keys = await self._photo_repo.delete_stale_pending(tenant_id, visit_id, stale_before)

        if await self._photo_repo.count_ready(tenant_id, visit_id) >= self._settings.max_ready_per_visit:
            raise ValidationError(
                f"Maximum of {self._settings.max_ready_per_visit} photos per visit"
            )

        if await self._photo_repo.count_pending(tenant_id, visit_id) >= self._settings.max_pending_per_visit:
            raise ValidationError(
                "Too many pending uploads. Please wait for current uploads to complete."
            )

        photo_id = uuid4()
        storage_key = photo_storage_key(tenant_id, visit_id, photo_id, content_type)

        upload = await self._storage.generate_upload_post(
            storage_key, content_type, self._settings.max_file_size_bytes
        )

        photo = await self._photo_repo.create(
            VisitPhotoModel(
                id=photo_id,
                tenant_id=tenant_id,
                visit_id=visit_id,
                storage_key=storage_key,
                file_name=file_name,
                content_type=content_type,
                size_bytes=size_bytes,
                status=PhotoStatus.PENDING,
            )
        )

        if stale_keys:
            log.info(
                "Removed stale pending photos",
                visit_id=str(visit_id),
                count=len(stale_keys),
                correlation_id=correlation_id,
            )
            await self._delete_objects(stale_keys)

        log.info(
            "Photo upload started",
            tenant_id=str(tenant_id),
            visit_id=str(visit_id),
            photo_id=str(photo_id),
            correlation_id=correlation_id,
        )

        await self._audit.record(
            tenant_id=tenant_id,
            principal_type=PrincipalType.INTERNAL,
            principal_id=str(caller_user_id),
            event_name="visit.photo_upload_started",
            subject_type="visit",
            subject_id=visit_id,
            correlation_id=correlation_id,
            metadata={"fileName": file_name, "photoId": str(photo_id)},
        )

        return PhotoUpload(photo=photo, upload=upload)

    async def confirm_visit_photo(
        self,
        tenant_id: UUID,
        caller_user_id: UUID,
        caller_role: str,
        visit_id: UUID,
        photo_id: UUID,
        correlation_id: str | None = None,
    ) -> VisitPhotoModel:
        """Mark an uploaded photo as ready.

        Confirming an already ready photo is a no-op.

        Raises:
            NotFoundError: Visit or photo missing, or photo on another visit
            ValidationError: Visit not editable, or the photo quota is full
            ForbiddenError: Member confirming on a visit not assigned to them
        """
        correlation_id = resolve_correlation_id(correlation_id)

        await self._load_visit(
            tenant_id,
            visit_id,
            caller_user_id,
            caller_role,
            verb="confirm photos on",
            forbidden_message="Members can only add photos to their own assigned visits",
        )
        await self._load_photo(tenant_id, visit_id, photo_id)

        confirmed = await self._photo_repo.confirm_upload(
            tenant_id, visit_id, photo_id, self._settings.max_ready_per_visit
        )

        if confirmed is None:
            current = await self._load_photo(tenant_id, visit_id, photo_id)
            if current.status == PhotoStatus.READY:
                return current
            log.info(
                "Photo quota exceeded",
                tenant_id=str(tenant_id),
                visit_id=str(visit_id),
                photo_id=str(photo_id),
                correlation_id=correlation_id,
            )
            raise ValidationError("Photo quota exceeded")

        log.info(
            "Photo confirmed",
            tenant_id=str(tenant_id),
            visit_id=str(visit_id),
            photo_id=str(photo_id),
            correlation_id=correlation_id,
        )

        await self._audit.record(
            tenant_id=tenant_id,
            principal_type=PrincipalType.INTERNAL,
            principal_id=str(caller_user_id),
            event_name="visit.photo_added",
            subject_type="visit",
            subject_id=visit_id,
            correlation_id=correlation_id,
            metadata={"fileName": confirmed.file_name, "photoId": str(photo_id)},
        )

        return confirmed

    async def list_visit_photos(
        self,
        tenant_id: UUID,
        caller_user_id: UUID,
        caller_role: str,
        visit_id: UUID,
    ) -> list[PhotoWithUrl]:
        """Ready photos of a visit with download URLs, oldest first.

        Raises:
            NotFoundError: Visit does not exist in the tenant
            ForbiddenError: Member viewing a visit not assigned to them
        """
        visit = await self._visit_repo.get(tenant_id, visit_id)
        if visit is None:
            raise NotFoundError("Visit not found", details={"visit_id": str(visit_id)})

        self._check_access(
            visit,
            caller_user_id,
            caller_role,
            "Members can only view photos on their own assigned visits",
        )

        photos = await self._photo_repo.list_ready(tenant_id, visit_id)
        return [
            PhotoWithUrl(photo=photo, download_url=await self._storage.generate_download_url(photo.storage_key))
            for photo in photos
        ]

    async def delete_visit_photo(
        self,
        tenant_id: UUID,
        caller_user_id: UUID,
        caller_role: str,
        visit_id: UUID,
        photo_id: UUID,
        correlation_id: str | None = None,
    ) -> None:
        """Remove a photo row and, best-effort, its stored object.

        Raises:
            NotFoundError: Visit or photo missing, or photo on another visit
            ValidationError: Visit not editable
            ForbiddenError: Member deleting on a visit not assigned to them
        """
        correlation_id = resolve_correlation_id(correlation_id)

        await self._load_visit(
            tenant_id,
            visit_id,
            caller_user_id,
            caller_role,
            verb="delete photos from",
            forbidden_message="Members can only delete photos from their own assigned visits",
        )
        photo = await self._load_photo(tenant_id, visit_id, photo_id)

        deleted = await self._photo_repo.delete(tenant_id, visit_id, photo_id)
        if not deleted:
            raise NotFoundError("Photo not found", details={"photo_id": str(photo_id)})

        await self._delete_objects([photo.storage_key])

        log.info(
            "Photo deleted",
            tenant_id=str(tenant_id),
            visit_id=str(visit_id),
            photo_id=str(photo_id),
            correlation_id=correlation_id,
        )

        await self._audit.record(
            tenant_id=tenant_id,
            principal_type=PrincipalType.INTERNAL,
            principal_id=str(caller_user_id),
            event_name="visit.photo_removed",
            subject_type="visit",
            subject_id=visit_id,
            correlation_id=correlation_id,
            metadata={"fileName": photo.file_name, "photoId": str(photo_id)},
        )

    async def purge_stale_uploads(self, older_than_minutes: int | None = None) -> int:
        """Remove stale pending uploads across all tenants.

        Returns:
            Number of pending rows removed
        """
        minutes = (
            older_than_minutes
            if older_than_minutes is not None
            else self._settings.stale_pending_minutes
        )
        keys = await self._photo_repo.purge_stale_pending(utcnow() - timedelta(minutes=minutes))
        await self._delete_objects(keys)

        log.info("Purged stale pending photos", count=len(keys), older_than_minutes=minutes)
        return len(keys)
