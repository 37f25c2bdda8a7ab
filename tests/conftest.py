"""Pytest configuration and fixtures for lifecycle engine tests."""

from __future__ import annotations

import os
import sys
from datetime import timedelta
from pathlib import Path
from typing import Any, AsyncGenerator
from uuid import UUID, uuid4

import pytest
import pytest_asyncio

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

# Set test environment
os.environ["FS_ENV"] = "test"
os.environ["FS_DEBUG"] = "true"


# ============================================================================
# Async Database Fixtures
# ============================================================================

@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path):
    """Create a file-backed SQLite engine.

    A file (rather than ``:memory:``) lets independent sessions hold their
    own connections, which the concurrency tests rely on.
    """
    from field_service.db.base import Base
    from field_service.db import models  # noqa: F401
    from field_service.db.session import create_engine_for_url

    engine = create_engine_for_url(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(db_engine):
    """Session factory bound to the test engine."""
    from field_service.db.session import make_session_factory

    return make_session_factory(db_engine)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator:
    """Create test database session.

    Provides a session that rolls back after each test.
    """
    async with session_factory() as session:
        yield session
        await session.rollback()


# ============================================================================
# Identity Fixtures
# ============================================================================

@pytest.fixture
def tenant_id() -> UUID:
    return uuid4()


@pytest.fixture
def other_tenant_id() -> UUID:
    return uuid4()


@pytest.fixture
def owner_id() -> UUID:
    return uuid4()


@pytest.fixture
def member_id() -> UUID:
    return uuid4()


# ============================================================================
# Collaborator Fixtures
# ============================================================================

@pytest.fixture
def storage():
    """In-memory object storage."""
    from field_service.integrations.storage.base import MockFileStorage

    return MockFileStorage()


@pytest.fixture
def email_gateway():
    """In-memory email gateway."""
    from field_service.integrations.email.base import MockEmailGateway

    return MockEmailGateway()


@pytest.fixture
def test_settings():
    """Settings with notifications pointed at a fixed owner address."""
    from field_service.config import NotificationSettings, Settings

    return Settings(
        environment="test",
        notifications=NotificationSettings(
            enabled=True,
            app_base_url="https://app.example.com",
            owner_email="owner@example.com",
        ),
    )


@pytest_asyncio.fixture
async def services(db_session, session_factory, storage, email_gateway, test_settings):
    """All orchestrators bound to the test session."""
    from field_service.dependencies import build_services

    return build_services(
        db_session,
        session_factory=session_factory,
        storage=storage,
        email_gateway=email_gateway,
        settings=test_settings,
    )


@pytest_asyncio.fixture
async def audit_repository(db_session):
    """Create AuditEventRepository instance for testing."""
    from field_service.db.repositories.audit import AuditEventRepository

    return AuditEventRepository(db_session)


# ============================================================================
# Seed Data
# ============================================================================

class Seeder:
    """Inserts committed rows for a test.

    Every helper commits, so the rows are visible to other sessions.
    """

    def __init__(self, session, tenant_id: UUID):
        self.session = session
        self.tenant_id = tenant_id

    async def _add(self, obj):
        self.session.add(obj)
        await self.session.commit()
        return obj

    async def service_item(self, duration: int | None = None, name: str = "Lawn mowing", **kwargs: Any):
        from field_service.db.models import ServiceItemModel

        return await self._add(
            ServiceItemModel(
                tenant_id=kwargs.pop("tenant_id", self.tenant_id),
                name=name,
                unit_price=5000,
                estimated_duration_minutes=duration,
                **kwargs,
            )
        )

    async def quote(self, status: str = "sent", service_items=(), **kwargs: Any):
        from field_service.db.models import QuoteModel

        line_items = kwargs.pop(
            "line_items",
            [
                {
                    "service_item_id": str(item.id) if item is not None else None,
                    "description": item.name if item is not None else "Custom work",
                    "quantity": 1,
                    "unit_price": 5000,
                    "total": 5000,
                }
                for item in service_items
            ],
        )
        return await self._add(
            QuoteModel(
                tenant_id=kwargs.pop("tenant_id", self.tenant_id),
                client_id=kwargs.pop("client_id", uuid4()),
                property_id=kwargs.pop("property_id", uuid4()),
                title=kwargs.pop("title", "Spring cleanup"),
                line_items=line_items,
                subtotal=5000 * len(line_items),
                total=5000 * len(line_items),
                status=status,
                **kwargs,
            )
        )

    async def job(self, status: str = "scheduled", quote=None, **kwargs: Any):
        from field_service.db.models import JobModel

        if quote is None:
            quote = await self.quote(status="scheduled")
        return await self._add(
            JobModel(
                tenant_id=kwargs.pop("tenant_id", self.tenant_id),
                quote_id=quote.id,
                client_id=quote.client_id,
                property_id=quote.property_id,
                title=quote.title,
                status=status,
                **kwargs,
            )
        )

    async def visit(self, job=None, status: str = "scheduled", assigned_user_id: UUID | None = None, **kwargs: Any):
        from field_service.db.models import VisitModel

        if job is None:
            job = await self.job()
        return await self._add(
            VisitModel(
                tenant_id=kwargs.pop("tenant_id", self.tenant_id),
                job_id=job.id,
                status=status,
                assigned_user_id=assigned_user_id,
                estimated_duration_minutes=kwargs.pop("estimated_duration_minutes", 60),
                **kwargs,
            )
        )

    async def photo(self, visit, status: str = "pending", age_minutes: int = 0, **kwargs: Any):
        from field_service.db.base import utcnow
        from field_service.db.models import VisitPhotoModel

        photo_id = kwargs.pop("id", uuid4())
        created_at = utcnow() - timedelta(minutes=age_minutes)
        return await self._add(
            VisitPhotoModel(
                id=photo_id,
                tenant_id=kwargs.pop("tenant_id", self.tenant_id),
                visit_id=visit.id,
                storage_key=f"tenants/{self.tenant_id}/visits/{visit.id}/photos/{photo_id}.jpg",
                file_name=kwargs.pop("file_name", "photo.jpg"),
                content_type="image/jpeg",
                status=status,
                created_at=created_at,
                updated_at=created_at,
                **kwargs,
            )
        )


@pytest_asyncio.fixture
async def seed(db_session, tenant_id):
    """Seed helper bound to the test session and tenant."""
    return Seeder(db_session, tenant_id)
