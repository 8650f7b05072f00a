"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
from pathlib import Path

# Minimal environment for Settings() before any app import
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("PUBLIC_BASE_URL", "https://probaly.app")
os.environ.setdefault("PAYOUT_CURRENCY", "usd")

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.models import Base
from app.services.affiliate.registry import AffiliateRegistry
from app.services.payout_destination.base import DestinationStatus
from app.services.referral.ledger import ReferralLedger


@pytest.fixture
def mock_session():
    """Mock AsyncSession for tests without a database."""
    session = AsyncMock(spec=AsyncSession)
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.refresh = AsyncMock()
    session.add = MagicMock()
    return session


@pytest_asyncio.fixture
async def engine():
    """In-memory SQLite engine with the affiliate program schema."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    """Session factory configured like the application's."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def session(session_maker):
    """Database session per test."""
    async with session_maker() as session:
        yield session


@pytest.fixture
def payout_provider():
    """Mock payout destination provider (Stripe Connect stand-in)."""
    provider = AsyncMock()
    provider.create_destination = AsyncMock(return_value="acct_test_123")
    provider.get_destination_status = AsyncMock(
        return_value=DestinationStatus(charges_enabled=True, payouts_enabled=True)
    )
    provider.create_onboarding_link = AsyncMock(
        return_value="https://connect.stripe.com/setup/e/acct_test_123"
    )
    provider.transfer = AsyncMock(return_value="tr_test_001")
    provider.find_transfer = AsyncMock(return_value=None)
    return provider


@pytest.fixture
def registry(session, payout_provider):
    """Affiliate registry issuing the code PRO4X7K2."""
    return AffiliateRegistry(
        session, payout_provider, code_factory=lambda: "PRO4X7K2"
    )


@pytest.fixture
def ledger(session):
    """Referral ledger with the default 14 business day window."""
    return ReferralLedger(session, clearance_days=14)


@pytest_asyncio.fixture
async def affiliate_id(registry) -> int:
    """ID of a registered, not yet onboarded affiliate."""
    affiliate, _created = await registry.register("user-affiliate")
    return affiliate.id


@pytest_asyncio.fixture
async def onboarded_affiliate_id(registry, affiliate_id) -> int:
    """ID of a registered affiliate with a verified payout destination."""
    await registry.link_payout_destination(affiliate_id)
    assert await registry.confirm_onboarding(affiliate_id) is True
    return affiliate_id
