from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from config import get_db
from main import app
from models import Base, UserProfile, SupplierProfile, VendorProfile, Product
import utils.notifications as notifications

VENDOR_POINT = (28.6519, 77.1909)
BASE_TIME = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def no_outbound_messages(monkeypatch):
    """Keep SMS and e-mail offline regardless of the developer's .env"""
    monkeypatch.setattr(notifications, "TWILIO_ACCOUNT_SID", None)
    monkeypatch.setattr(notifications, "SMTP_SERVER", None)


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


class Factory:
    """Creates committed marketplace rows with sensible defaults"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self._phone = 9000000000

    def _next_phone(self) -> str:
        self._phone += 1
        return f"+91{self._phone}"

    async def supplier(self, latitude=None, longitude=None, is_online=True, name="Supplier",
                       created_at=BASE_TIME, avg_delivery_time_minutes=30) -> SupplierProfile:
        user = UserProfile(
            phone=self._next_phone(), name=name, role="supplier",
            latitude=latitude, longitude=longitude, created_at=created_at, updated_at=created_at
        )
        self.db.add(user)
        await self.db.flush()
        supplier = SupplierProfile(
            user_profile_id=user.id, business_name=f"{name} Traders", is_online=is_online,
            avg_delivery_time_minutes=avg_delivery_time_minutes,
            created_at=created_at, updated_at=created_at
        )
        self.db.add(supplier)
        await self.db.commit()
        return supplier

    async def vendor(self, latitude=VENDOR_POINT[0], longitude=VENDOR_POINT[1], name="Vendor") -> VendorProfile:
        user = UserProfile(phone=self._next_phone(), name=name, role="vendor", latitude=latitude, longitude=longitude)
        self.db.add(user)
        await self.db.flush()
        vendor = VendorProfile(user_profile_id=user.id, stall_name=f"{name} Chaat Corner")
        self.db.add(vendor)
        await self.db.commit()
        return vendor

    async def product(self, supplier: SupplierProfile, name="Onions", price_per_unit=30.0, stock_quantity=100,
                      minimum_order_quantity=1, category="vegetables", is_available=True,
                      created_at=BASE_TIME) -> Product:
        product = Product(
            supplier_profile_id=supplier.id, name=name, category=category, unit="kg",
            price_per_unit=price_per_unit, stock_quantity=stock_quantity,
            minimum_order_quantity=minimum_order_quantity, is_available=is_available,
            created_at=created_at, updated_at=created_at
        )
        self.db.add(product)
        await self.db.commit()
        return product


@pytest.fixture
def factory(db):
    return Factory(db)


def km_north(point, km):
    """Point km kilometres due north of point (same meridian)"""
    return point[0] + km / 111.19492664455873, point[1]


class FixedClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FixedClock(BASE_TIME)
