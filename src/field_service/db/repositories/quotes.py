"""Quote and service item repositories."""
from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from field_service.db.models.quotes import QuoteModel, ServiceItemModel
from field_service.db.repositories.base import TenantRepository


class QuoteRepository(TenantRepository[QuoteModel]):
    """Repository for quotes.

    Status changes go through ``update_status`` so that approve, decline,
    send, expire and schedule all race safely against each other.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(QuoteModel, session)


class ServiceItemRepository(TenantRepository[ServiceItemModel]):
    """Read access to the service catalog."""

    def __init__(self, session: AsyncSession):
        super().__init__(ServiceItemModel, session)
