import logging
import uuid
from datetime import datetime, timedelta
from typing import List, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from giftparty.core.config import settings
from giftparty.core.exceptions import DerangementError, PartyNotFound, SignupsChanged, StorageError
from giftparty.services.matching_service import MatchingService, ResolutionOutcome
from giftparty.services.party_repository import PartyRepository
from giftparty.utils.datetime_helpers import ensure_utc, utcnow

logger = logging.getLogger(__name__)

JOB_PREFIX = "party:"


class PartyScheduler:
    """
    Registry of deadline jobs, one per open party, keyed by party id.

    Jobs live in memory only. The source of truth is party_info: recover()
    re-arms every unresolved party from its stored ends_at, so a restart
    loses nothing. Parties whose deadline passed while the process was down
    are dispatched straight away.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        scheduler: Optional[AsyncIOScheduler] = None,
        retry_seconds: Optional[int] = None,
        max_retries: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.scheduler = scheduler or AsyncIOScheduler(timezone=settings.SCHEDULER_TIMEZONE)
        self.retry_seconds = settings.RESOLUTION_RETRY_SECONDS if retry_seconds is None else retry_seconds
        self.max_retries = settings.RESOLUTION_MAX_RETRIES if max_retries is None else max_retries

    @staticmethod
    def job_id(party_id: uuid.UUID) -> str:
        return f"{JOB_PREFIX}{party_id}"

    def start(self):
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Party scheduler started.")

    def shutdown(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Party scheduler shut down.")

    def arm(self, party_id: uuid.UUID, ends_at: datetime, now: Optional[datetime] = None, attempt: int = 0) -> float:
        """
        Schedule resolution of a party at its deadline.

        Returns the delay in seconds; zero or less means dispatched now.
        """
        now = now or utcnow()
        ends_at = ensure_utc(ends_at)
        delay = (ends_at - now).total_seconds()
        run_date = ends_at if delay > 0 else now

        self.scheduler.add_job(
            self._fire,
            'date',
            run_date=run_date,
            args=[party_id, attempt],
            id=self.job_id(party_id),
            replace_existing=True,
            misfire_grace_time=None,  # late is fine, skipped is not
            coalesce=True,
        )
        if delay > 0:
            logger.info(f"Armed party {party_id} to resolve in {delay:.0f}s at {ends_at}")
        else:
            logger.info(f"Party {party_id} deadline already passed, dispatching now")
        return delay

    def disarm(self, party_id: uuid.UUID) -> bool:
        try:
            self.scheduler.remove_job(self.job_id(party_id))
            return True
        except JobLookupError:
            return False

    def is_armed(self, party_id: uuid.UUID) -> bool:
        return self.scheduler.get_job(self.job_id(party_id)) is not None

    def armed_party_ids(self) -> List[uuid.UUID]:
        return [
            uuid.UUID(job.id[len(JOB_PREFIX):])
            for job in self.scheduler.get_jobs()
            if job.id.startswith(JOB_PREFIX)
        ]

    async def recover(self) -> int:
        """Re-arm every unresolved party from persisted deadlines."""
        async with self.session_factory() as session:
            parties = await PartyRepository(session).list_open_parties()

        now = utcnow()
        for party in parties:
            self.arm(party.id, party.ends_at, now=now)
        logger.info(f"Recovered {len(parties)} open part{'y' if len(parties) == 1 else 'ies'}")
        return len(parties)

    async def _fire(self, party_id: uuid.UUID, attempt: int = 0) -> Optional[ResolutionOutcome]:
        logger.info(f"Deadline reached for party {party_id} (attempt {attempt + 1})")
        try:
            async with self.session_factory() as session:
                return await MatchingService(session).resolve_party(party_id)
        except PartyNotFound:
            logger.warning(f"Party {party_id} vanished before its deadline fired")
        except (StorageError, DerangementError, SignupsChanged):
            logger.exception(f"Resolution of party {party_id} failed, party stays open")
            if attempt < self.max_retries:
                retry_at = utcnow() + timedelta(seconds=self.retry_seconds)
                self.arm(party_id, retry_at, attempt=attempt + 1)
            else:
                logger.error(f"Giving up on party {party_id} until the next restart")
        return None
