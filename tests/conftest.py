import os
import uuid
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

# Keep the default engine away from the real data directory
os.environ.setdefault("SQLITE_PATH", "live_data/test_giftparty.db")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from giftparty.core.scheduler import PartyScheduler
from giftparty.db.session import init_db
from giftparty.models.party import Party
from giftparty.models.signup import Signup
from giftparty.utils.datetime_helpers import utcnow


@pytest.fixture
def mock_session():
    session = AsyncMock()

    mock_result = MagicMock()
    mock_result.scalar_one_or_none.return_value = None
    mock_result.scalars.return_value.all.return_value = []
    session.execute.return_value = mock_result
    session.get.return_value = None

    session.add = MagicMock()
    session.add_all = MagicMock()
    session.refresh = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """File-backed SQLite so concurrent sessions get real locking."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def mock_party_scheduler():
    scheduler_mock = MagicMock(spec=PartyScheduler)
    scheduler_mock.arm.return_value = 60.0
    scheduler_mock.disarm.return_value = True
    return scheduler_mock


@pytest.fixture
def make_party(session_factory):
    """Insert a party directly, bypassing the scheduler."""
    async def _make(ends_in=timedelta(minutes=5), admin_id=1, name="Office Party", user_ids=(), matches_made=False):
        now = utcnow()
        party = Party(
            id=uuid.uuid4(),
            admin_id=admin_id,
            name=name,
            started_at=now,
            ends_at=now + ends_in,
            matches_made=matches_made,
        )
        async with session_factory() as session:
            session.add(party)
            for uid in user_ids:
                session.add(Signup(
                    party_id=party.id,
                    user_id=uid,
                    display_payload=f"name-{uid}".encode(),
                    hint_payload=f"hint-{uid}".encode(),
                ))
            await session.commit()
        return party

    return _make
