"""Visit photo repository.

The quota on ready photos is enforced in the database: ``confirm_upload``
flips a photo to ready in one conditional statement whose predicate counts
the visit's ready photos, so two confirmations can never both take the
last slot.
"""
from __future__ import annotations

from datetime import datetime
from typing import Sequence
from uuid import UUID

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from field_service.db.models.jobs import PhotoStatus, VisitModel, VisitPhotoModel
from field_service.db.repositories.base import TenantRepository


class VisitPhotoRepository(TenantRepository[VisitPhotoModel]):
    """Repository for visit photos."""

    def __init__(self, session: AsyncSession):
        super().__init__(VisitPhotoModel, session)

    # ========================================================================
    # Counting and listing
    # ========================================================================

    async def _count(self, tenant_id: UUID, visit_id: UUID, status: str) -> int:
        stmt = select(func.count()).select_from(VisitPhotoModel).where(
            VisitPhotoModel.tenant_id == tenant_id,
            VisitPhotoModel.visit_id == visit_id,
            VisitPhotoModel.status == status,
        )
        result = await self._session.execute(stmt)
        return result.scalar_one()

    async def count_ready(self, tenant_id: UUID, visit_id: UUID) -> int:
        """Number of confirmed photos on a visit."""
        return await self._count(tenant_id, visit_id, PhotoStatus.READY)

    async def count_pending(self, tenant_id: UUID, visit_id: UUID) -> int:
        """Number of authorised but unconfirmed uploads on a visit."""
        return await self._count(tenant_id, visit_id, PhotoStatus.PENDING)

    async def list_ready(self, tenant_id: UUID, visit_id: UUID) -> Sequence[VisitPhotoModel]:
        """Ready photos of a visit, oldest first."""
        stmt = (
            select(VisitPhotoModel)
            .where(
                VisitPhotoModel.tenant_id == tenant_id,
                VisitPhotoModel.visit_id == visit_id,
                VisitPhotoModel.status == PhotoStatus.READY,
            )
            .order_by(VisitPhotoModel.created_at, VisitPhotoModel.id)
        )
        result = await self._session.execute(stmt)
        return result.scalars().all()

    # ========================================================================
    # Quota-enforcing confirmation
    # ========================================================================

    async def lock_visit(self, tenant_id: UUID, visit_id: UUID) -> None:
        """Lock the parent visit row until the transaction ends.

        Serialises quota checks and writes on the same visit (no-op on
        SQLite, where writers are already serialised).
        """
        await self._session.execute(
            select(VisitModel.id)
            .where(VisitModel.tenant_id == tenant_id, VisitModel.id == visit_id)
            .with_for_update()
        )

    async def confirm_upload(
        self,
        tenant_id: UUID,
        visit_id: UUID,
        photo_id: UUID,
        max_ready: int,
    ) -> VisitPhotoModel | None:
        """Flip a pending photo to ready if the visit still has room.

        Args:
            tenant_id: Owning tenant
            visit_id: Visit the photo must belong to
            photo_id: Photo to confirm
            max_ready: Maximum number of ready photos per visit

        Returns:
            The confirmed photo, or None when the photo was not pending or
            the visit already holds ``max_ready`` ready photos
        """
        await self.lock_visit(tenant_id, visit_id)

        ready = aliased(VisitPhotoModel)
        ready_count = (
            select(func.count())
            .select_from(ready)
            .where(
                ready.tenant_id == tenant_id,
                ready.visit_id == visit_id,
                ready.status == PhotoStatus.READY,
            )
            .scalar_subquery()
        )

        stmt = (
            update(VisitPhotoModel)
            .where(
                and_(
                    VisitPhotoModel.tenant_id == tenant_id,
                    VisitPhotoModel.id == photo_id,
                    VisitPhotoModel.visit_id == visit_id,
                    VisitPhotoModel.status == PhotoStatus.PENDING,
                    ready_count < max_ready,
                )
            )
            .values(status=PhotoStatus.READY)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None

        return await self.get(tenant_id, photo_id)

    # ========================================================================
    # Deletion
    # ========================================================================

    async def delete(self, tenant_id: UUID, visit_id: UUID, photo_id: UUID) -> bool:
        """Delete one photo row.

        Returns:
            True if a row was deleted
        """
        stmt = delete(VisitPhotoModel).where(
            VisitPhotoModel.tenant_id == tenant_id,
            VisitPhotoModel.visit_id == visit_id,
            VisitPhotoModel.id == photo_id,
        ).execution_options(synchronize_session=False)
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def delete_stale_pending(
        self,
        tenant_id: UUID,
        visit_id: UUID,
        older_than: datetime,
    ) -> list[str]:
        """Delete a visit's pending uploads created before ``older_than``.

        Returns:
            Storage keys of the deleted rows
        """
        return await self._delete_pending(
            older_than,
            VisitPhotoModel.tenant_id == tenant_id,
            VisitPhotoModel.visit_id == visit_id,
        )

    async def purge_stale_pending(self, older_than: datetime) -> list[str]:
        """Delete pending uploads of every tenant created before ``older_than``.

        Returns:
            Storage keys of the deleted rows
        """
        return await self._delete_pending(older_than)

    async def _delete_pending(self, older_than: datetime, *criteria) -> list[str]:
        conditions = [
            VisitPhotoModel.status == PhotoStatus.PENDING,
            VisitPhotoModel.created_at < older_than,
            *criteria,
        ]
        result = await self._session.execute(
            select(VisitPhotoModel.id, VisitPhotoModel.storage_key).where(*conditions)
        )
        rows = result.all()
        if not rows:
            return []

        await self._session.execute(
            delete(VisitPhotoModel)
            .where(
                VisitPhotoModel.id.in_([row.id for row in rows]),
                VisitPhotoModel.status == PhotoStatus.PENDING,
            )
            .execution_options(synchronize_session=False)
        )
        return [row.storage_key for row in rows]
