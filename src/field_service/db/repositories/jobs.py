"""Job and visit repositories."""
from __future__ import annotations

from typing import Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from field_service.db.models.jobs import JobModel, VisitModel
from field_service.db.repositories.base import TenantRepository


class JobRepository(TenantRepository[JobModel]):
    """Repository for jobs."""

    def __init__(self, session: AsyncSession):
        super().__init__(JobModel, session)

    async def get_by_quote_id(self, tenant_id: UUID, quote_id: UUID) -> JobModel | None:
        """Get the job created from a quote.

        Args:
            tenant_id: Owning tenant
            quote_id: Source quote

        Returns:
            Job or None if the quote has not been converted
        """
        stmt = (
            select(JobModel)
            .where(JobModel.tenant_id == tenant_id, JobModel.quote_id == quote_id)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_for_update(self, tenant_id: UUID, job_id: UUID) -> JobModel | None:
        """Get a job and hold its row lock until the transaction ends.

        Status derivation reads a job's visits under this lock, so two
        visits finishing at once are derived one after the other and the
        second sees the first's committed status. No-op on SQLite, where
        writers are already serialised.
        """
        stmt = (
            select(JobModel)
            .where(JobModel.tenant_id == tenant_id, JobModel.id == job_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def set_status(self, tenant_id: UUID, job_id: UUID, status: str) -> JobModel | None:
        """Write a derived job status unconditionally.

        Job statuses are a projection of visit statuses, so the last writer
        wins and re-deriving is always safe.
        """
        stmt = (
            update(JobModel)
            .where(JobModel.tenant_id == tenant_id, JobModel.id == job_id)
            .values(status=status)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self.get(tenant_id, job_id)


class VisitRepository(TenantRepository[VisitModel]):
    """Repository for visits."""

    def __init__(self, session: AsyncSession):
        super().__init__(VisitModel, session)

    async def list_by_job_id(self, tenant_id: UUID, job_id: UUID) -> Sequence[VisitModel]:
        """All visits of a job, oldest first."""
        stmt = (
            select(VisitModel)
            .where(VisitModel.tenant_id == tenant_id, VisitModel.job_id == job_id)
            .order_by(VisitModel.created_at, VisitModel.id)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return result.scalars().all()
