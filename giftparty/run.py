import asyncio
import logging
import signal
import sys

from giftparty.core.config import settings
from giftparty.core.scheduler import PartyScheduler
from giftparty.db.session import AsyncSessionLocal, engine, init_db

logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    handlers=[logging.StreamHandler(sys.stdout)]
)
logging.getLogger("apscheduler").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


async def serve(stop: asyncio.Event) -> PartyScheduler:
    """Bring up storage and the deadline scheduler, then wait for `stop`."""
    logger.info("Setting up database")
    await init_db()

    party_scheduler = PartyScheduler(AsyncSessionLocal)
    party_scheduler.start()
    await party_scheduler.recover()

    logger.info("Starting...")
    try:
        await stop.wait()
    finally:
        party_scheduler.shutdown()
        await engine.dispose()
    return party_scheduler


async def _main():
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            pass  # Windows
    await serve(stop)


def main():
    asyncio.run(_main())


if __name__ == '__main__':
    main()
