import os

os.environ.setdefault("AUTH_JWT_SECRET", "test-secret")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from storefront.backend.db import Base
from storefront.dependencies.database import get_db, get_session_factory
from storefront.main import app
from storefront.models import Brand, Profile, Promotion
from storefront.utils.get_current_admin import get_current_admin


@pytest.fixture
async def session_factory(tmp_path):
    """On-disk SQLite so that bulk extend can open one connection per item."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'promotions.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def admin(db_session):
    profile = Profile(id=uuid.uuid4(), email="admin@example.com", role="admin")
    db_session.add(profile)
    await db_session.commit()
    return profile


@pytest.fixture
async def customer(db_session):
    profile = Profile(id=uuid.uuid4(), email="customer@example.com", role="customer")
    db_session.add(profile)
    await db_session.commit()
    return profile


@pytest.fixture
async def brands(db_session):
    """Two active brands and one inactive one."""
    items = [
        Brand(id=uuid.uuid4(), name="Northwind", slug="northwind", is_active=True, sort_order=2,
              primary_color="#112233", secondary_color="#ffffff"),
        Brand(id=uuid.uuid4(), name="Contoso", slug="contoso", is_active=True, sort_order=1),
        Brand(id=uuid.uuid4(), name="Retired", slug="retired", is_active=False, sort_order=3),
    ]
    db_session.add_all(items)
    await db_session.commit()
    return items


@pytest.fixture
def make_promotion(db_session):
    """Inserts a promotion; fields default to an active, unlimited one."""

    async def _make(brand, **overrides):
        now = datetime.now(timezone.utc)
        values = dict(
            id=uuid.uuid4(),
            brand_id=brand.id,
            code=f"TEST_{uuid.uuid4().hex[:8].upper()}",
            description="Test promotion",
            discount_percent=10,
            valid_from=now - timedelta(days=1),
            valid_until=now + timedelta(days=10),
            is_active=True,
            usage_limit=0,
            times_used=0,
            created_at=now,
            updated_at=now,
        )
        values.update(overrides)
        promo = Promotion(**values)
        db_session.add(promo)
        await db_session.commit()
        return promo

    return _make


def _override_db(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory


@pytest.fixture
async def client(session_factory, admin):
    """Client authenticated as an admin."""
    _override_db(session_factory)
    app.dependency_overrides[get_current_admin] = lambda: admin
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
async def anonymous_client(session_factory):
    """Client with no admin override; authentication runs for real."""
    _override_db(session_factory)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client
    app.dependency_overrides.clear()
