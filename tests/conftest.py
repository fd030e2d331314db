"""Pytest configuration and shared fixtures for all tests."""

import itertools
import os
import sys
from pathlib import Path

# Minimal environment for tests
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.models import Affiliate, AffiliateStatus, Base, Order, OrderStatus, Product


# Named in-memory database shared by every connection of the engine
TEST_DB_URL = "sqlite+aiosqlite:///file:affiliate_testdb?mode=memory&cache=shared&uri=true"


@pytest.fixture
def mock_session():
    """Mock AsyncSession for tests without a database."""
    session = AsyncMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.flush = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    session.delete = MagicMock()
    session.refresh = AsyncMock()
    return session


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create fresh schema in the shared in-memory database."""
    engine = create_async_engine(
        TEST_DB_URL, echo=False, connect_args={"check_same_thread": False}
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine):
    """Async session bound to the test database."""
    session_maker = async_sessionmaker(
        bind=db_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_maker() as session:
        yield session


_mobile_counter = itertools.count(9000000000)


@pytest.fixture
def make_affiliate(db_session):
    """
    Factory for affiliates.

    Defaults to an approved, active, unpaid affiliate without a coupon.
    """

    async def factory(**overrides) -> Affiliate:
        data = {
            "full_name": "Test Affiliate",
            "mobile": str(next(_mobile_counter)),
            "status": AffiliateStatus.APPROVED.value,
            "is_active": True,
        }
        data.update(overrides)
        affiliate = Affiliate(**data)
        db_session.add(affiliate)
        await db_session.commit()
        await db_session.refresh(affiliate)
        return affiliate

    return factory


@pytest.fixture
def make_product(db_session):
    """Factory for product cost configs."""

    async def factory(product_id: str, pool_percent=None, **overrides) -> Product:
        product = Product(
            id=product_id,
            name=overrides.pop("name", f"Product {product_id}"),
            affiliate_pool_percent=pool_percent,
            **overrides,
        )
        db_session.add(product)
        await db_session.commit()
        return product

    return factory


@pytest.fixture
def make_order(db_session):
    """Factory for storefront orders."""

    async def factory(
        order_id: str,
        coupon_code: str | None,
        items: list[dict],
        status: OrderStatus = OrderStatus.PAYMENT_CONFIRMED,
        total_amount: Decimal | None = None,
    ) -> Order:
        if total_amount is None:
            total_amount = sum(
                (Decimal(str(item["price"])) * item["quantity"] for item in items),
                Decimal("0"),
            )
        order = Order(
            order_id=order_id,
            coupon_code=coupon_code,
            status=status.value,
            total_amount=total_amount,
            items=items,
        )
        db_session.add(order)
        await db_session.commit()
        return order

    return factory
