"""
Test fixtures and configuration.
"""

import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio

from monnayeur.infrastructure.persistence.database import Database
from monnayeur.infrastructure.persistence.models import Base
from tests.helpers import FakeLedger, FixedClock, InMemoryClaimStore

# Set to a PostgreSQL URL to run store tests against a real server
TEST_DATABASE_URL_ENV = "MONNAYEUR_TEST_DATABASE_URL"


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def claim_store() -> InMemoryClaimStore:
    return InMemoryClaimStore()


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncGenerator[Database, None]:
    """
    Connected database with fresh tables.

    SQLite file per test unless MONNAYEUR_TEST_DATABASE_URL is set.
    """
    url = os.getenv(TEST_DATABASE_URL_ENV) or (
        f"sqlite+aiosqlite:///{tmp_path / 'monnayeur_test.db'}"
    )
    db = Database(database_url=url, echo=False)
    await db.connect()

    async with db.engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield db

    async with db.engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await db.disconnect()
