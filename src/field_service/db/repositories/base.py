"""Base Repository Pattern for the lifecycle engine.

Provides tenant-scoped reads and the conditional status write that every
state machine is built on. All specialized repositories inherit from
TenantRepository.
"""
from __future__ import annotations

from typing import Any, Generic, Iterable, Sequence, TypeVar
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from field_service.db.base import Base

# Type variable for model classes
ModelT = TypeVar("ModelT", bound=Base)


class TenantRepository(Generic[ModelT]):
    """Generic tenant-scoped repository with async operations.

    Every query is filtered by ``tenant_id``; a row owned by a different
    tenant is reported exactly like a missing row.

    Usage:
        class VisitRepository(TenantRepository[VisitModel]):
            def __init__(self, session: AsyncSession):
                super().__init__(VisitModel, session)
    """

    def __init__(self, model: type[ModelT], session: AsyncSession):
        """Initialize repository with model class and session.

        Args:
            model: SQLAlchemy model class
            session: Async database session
        """
        self._model = model
        self._session = session

    @property
    def session(self) -> AsyncSession:
        """Get the current database session."""
        return self._session

    # ========================================================================
    # Reads
    # ========================================================================

    async def get(self, tenant_id: UUID, id: UUID) -> ModelT | None:
        """Get a single record by tenant and ID.

        Always refreshes the identity map so a re-read after a lost race
        observes the committed state of the winner.

        Args:
            tenant_id: Owning tenant
            id: Primary key

        Returns:
            Model instance or None if not found
        """
        stmt = (
            select(self._model)
            .where(self._model.tenant_id == tenant_id, self._model.id == id)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_ids(self, tenant_id: UUID, ids: Iterable[UUID]) -> Sequence[ModelT]:
        """Get multiple records of one tenant by their IDs."""
        ids = list(ids)
        if not ids:
            return []

        stmt = select(self._model).where(
            self._model.tenant_id == tenant_id,
            self._model.id.in_(ids),
        )
        result = await self._session.execute(stmt)
        return result.scalars().all()

    # ========================================================================
    # Writes
    # ========================================================================

    async def create(self, obj_in: ModelT) -> ModelT:
        """Insert a new record.

        Args:
            obj_in: Model instance to create

        Returns:
            Created model instance with server defaults loaded
        """
        self._session.add(obj_in)
        await self._session.flush()
        await self._session.refresh(obj_in)
        return obj_in

    async def update_status(
        self,
        tenant_id: UUID,
        entity_id: UUID,
        new_status: str,
        extra_fields: dict[str, Any] | None = None,
        expected_statuses: Iterable[str] = (),
    ) -> ModelT | None:
        """Compare-and-swap the status of one record.

        Issues a single ``UPDATE ... WHERE tenant_id AND id AND status IN
        (expected)``. Concurrent callers racing on the same transition
        cannot both win: the loser matches zero rows.

        Args:
            tenant_id: Owning tenant
            entity_id: Primary key
            new_status: Status to write
            extra_fields: Additional columns written in the same statement
            expected_statuses: Statuses the record must currently have

        Returns:
            The updated record, or None if no row matched
        """
        expected = list(expected_statuses)
        if not expected:
            return None

        values = {"status": new_status, **(extra_fields or {})}
        stmt = (
            update(self._model)
            .where(
                self._model.tenant_id == tenant_id,
                self._model.id == entity_id,
                self._model.status.in_(expected),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None

        return await self.get(tenant_id, entity_id)
