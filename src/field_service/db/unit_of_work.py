"""Unit of work for multi-entity writes.

Runs a callable against repositories bound to one fresh session inside one
transaction. The transaction commits when the callable returns and rolls
back when it raises; the exception propagates unchanged so callers can
inspect constraint violations.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from field_service.db.repositories import (
    AuditEventRepository,
    JobRepository,
    QuoteRepository,
    VisitRepository,
)

T = TypeVar("T")


@dataclass
class TransactionRepositories:
    """Repositories sharing one transactional session."""

    session: AsyncSession
    quotes: QuoteRepository
    jobs: JobRepository
    visits: VisitRepository
    audit: AuditEventRepository

    @classmethod
    def for_session(cls, session: AsyncSession) -> "TransactionRepositories":
        return cls(
            session=session,
            quotes=QuoteRepository(session),
            jobs=JobRepository(session),
            visits=VisitRepository(session),
            audit=AuditEventRepository(session),
        )


class UnitOfWork:
    """All-or-nothing execution of a multi-entity write.

    Usage:
        uow = UnitOfWork(get_session_factory())
        job = await uow.run(create_job_and_visit)
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def run(self, fn: Callable[[TransactionRepositories], Awaitable[T]]) -> T:
        """Execute ``fn`` in a new transaction.

        Args:
            fn: Coroutine function receiving the transactional repositories

        Returns:
            Whatever ``fn`` returns, after the transaction has committed
        """
        async with self._session_factory() as session:
            async with session.begin():
                return await fn(TransactionRepositories.for_session(session))
