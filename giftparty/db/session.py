import logging
from pathlib import Path
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from giftparty.core.config import settings
from giftparty.db.base import Base

logger = logging.getLogger(__name__)

_url = make_url(settings.DATABASE_URL)
_engine_kwargs = {"echo": settings.DB_ECHO}
if _url.get_backend_name() != "sqlite":
    _engine_kwargs.update(
        pool_pre_ping=True,  # Verify connections before using
        pool_size=10,
        max_overflow=20,
    )

engine = create_async_engine(settings.DATABASE_URL, **_engine_kwargs)
AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(bind: AsyncEngine = engine):
    """Create the party tables if they do not exist yet."""
    # Import models so they register on Base.metadata
    import giftparty.models  # noqa: F401

    url = bind.url
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready")
