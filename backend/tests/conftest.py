"""
Shared fixtures: a controllable clock, an in-memory SQLite database and a
token signer bound to the clock.
"""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from database import Base, create_session_factory
from services.tokens import TokenSigner

TEST_SECRET = "test-secret-key-that-is-long-enough-for-hs256"
TEST_ISSUER = "contact-manager"
TEST_AUDIENCE = "contact-manager-clients"


class FakeClock:
    """Callable clock that only moves when told to"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def signer(clock):
    return TokenSigner(TEST_SECRET, TEST_ISSUER, TEST_AUDIENCE, expire_minutes=60, clock=clock)


@pytest.fixture
def fast_hashing():
    """bcrypt at the minimum cost keeps the suite quick"""
    return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=4)


@pytest_asyncio.fixture
async def engine():
    from database import models  # noqa: F401

    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db(engine):
    async with create_session_factory(engine)() as session:
        yield session
