"""
Shared fixtures.

Environment must be set before anything imports ``jelantah.config``.
Every test gets its own SQLite file database.
"""
import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./jelantah_test.db"
os.environ["SECRET_KEY"] = "test-secret-key-not-for-production"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["SMTP_USER"] = ""
os.environ["SMTP_PASSWORD"] = ""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from jelantah.core.security import create_access_token
from jelantah.database import Base, get_db
from jelantah.main import app
from jelantah.models import User, UserRole
from jelantah.schemas.pickup import PickupCreate, PickupProofUpdate
from jelantah.services.pickup_service import PickupService
from jelantah.services.settings_service import settings_cache


@pytest.fixture(autouse=True)
def reset_settings_cache():
    settings_cache.invalidate()
    yield
    settings_cache.invalidate()


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def users(db):
    """admin, warehouse, two couriers, a referrer, a referred and a plain customer"""
    admin = User(email="admin@jelantahgo.com", name="Admin", role=UserRole.ADMIN.value)
    warehouse = User(email="gudang@jelantahgo.com", name="Gudang", role=UserRole.WAREHOUSE.value)
    courier = User(email="budi@jelantahgo.com", name="Budi", role=UserRole.COURIER.value)
    other_courier = User(email="sari@jelantahgo.com", name="Sari", role=UserRole.COURIER.value)
    referrer = User(email="ani@example.com", name="Warung Bu Ani", role=UserRole.CUSTOMER.value,
                    referral_code="ANI2024")
    db.add_all([admin, warehouse, courier, other_courier, referrer])
    await db.flush()

    referred_customer = User(email="padang@example.com", name="Resto Padang",
                             role=UserRole.CUSTOMER.value, referred_by_id=referrer.id)
    customer = User(email="bakso@example.com", name="Bakso Pak Kumis", role=UserRole.CUSTOMER.value)
    inactive = User(email="old@example.com", name="Old Account", role=UserRole.CUSTOMER.value,
                    is_active=False)
    db.add_all([referred_customer, customer, inactive])
    await db.commit()

    return SimpleNamespace(
        admin=admin,
        warehouse=warehouse,
        courier=courier,
        other_courier=other_courier,
        referrer=referrer,
        referred_customer=referred_customer,
        customer=customer,
        inactive=inactive,
    )


@pytest.fixture
def tomorrow():
    return datetime.now(timezone.utc) + timedelta(days=1)


@pytest.fixture
def create_pickup(db, tomorrow):
    async def _create(customer, volume="150", actor=None):
        service = PickupService(db)
        data = PickupCreate(
            volume=Decimal(volume),
            scheduled_date=tomorrow,
            customer_id=customer.id if actor is not None else None,
        )
        return await service.create_pickup(actor or customer, data)

    return _create


@pytest.fixture
def in_progress_pickup(db, create_pickup):
    """Pickup accepted and started by ``courier``, optionally with proof uploaded."""
    async def _make(customer, courier, volume="150", actual_volume="150", with_proof=True):
        service = PickupService(db)
        pickup = await create_pickup(customer, volume)
        await service.accept_pickup(pickup.id, courier)
        await service.start_pickup(pickup.id, courier)
        if with_proof:
            await service.update_proof(
                pickup.id,
                courier,
                PickupProofUpdate(
                    photo_proof="https://cdn.jelantahgo.com/proof/jerrycan.jpg",
                    actual_volume=Decimal(actual_volume),
                    bank_name="BCA",
                    account_name="Budi Santoso",
                    account_number="1234567890",
                ),
            )
        return pickup

    return _make


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def auth():
    return auth_headers

