import asyncio
import logging
import uuid
from datetime import datetime
from typing import Awaitable, Iterable, List, Optional, TypeVar

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from giftparty.core.config import settings
from giftparty.core.exceptions import (
    DuplicateSignup,
    MatchNotFound,
    PartyClosed,
    PartyNotFound,
    ResolutionConflict,
    SignupsChanged,
    StorageError,
)
from giftparty.models.match import Match
from giftparty.models.party import Party
from giftparty.models.signup import Signup
from giftparty.utils.datetime_helpers import ensure_utc, utcnow

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PartyRepository:
    """
    Storage contract for parties, signups and matches.

    Every call is bounded by STORAGE_TIMEOUT_SECONDS. Driver failures and
    timeouts roll the session back and surface as StorageError.
    """

    def __init__(self, session: AsyncSession, timeout: Optional[float] = None):
        self.session = session
        self.timeout = settings.STORAGE_TIMEOUT_SECONDS if timeout is None else timeout

    async def _bounded(self, operation: str, work: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(work, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            await self.session.rollback()
            raise StorageError(f"{operation} timed out after {self.timeout}s") from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"{operation} failed: {e}")
            raise StorageError(f"{operation} failed") from e

    # ------------------------------------------------------------------
    # Parties
    # ------------------------------------------------------------------

    async def create_party(self, party: Party) -> Party:
        async def _create():
            self.session.add(party)
            await self.session.commit()
            await self.session.refresh(party)
            return party

        return await self._bounded("create_party", _create())

    async def party_exists(self, party_id: uuid.UUID) -> bool:
        async def _exists():
            result = await self.session.execute(select(Party.id).where(Party.id == party_id))
            return result.scalar_one_or_none() is not None

        return await self._bounded("party_exists", _exists())

    async def get_party(self, party_id: uuid.UUID) -> Party:
        async def _get():
            stmt = select(Party).where(Party.id == party_id).execution_options(populate_existing=True)
            result = await self.session.execute(stmt)
            return result.scalar_one_or_none()

        party = await self._bounded("get_party", _get())
        if party is None:
            raise PartyNotFound(party_id)
        return party

    async def list_open_parties(self) -> List[Party]:
        async def _list():
            stmt = (
                select(Party)
                .where(Party.matches_made.is_(False))
                .order_by(Party.ends_at.asc())
                .execution_options(populate_existing=True)
            )
            result = await self.session.execute(stmt)
            return list(result.scalars().all())

        return await self._bounded("list_open_parties", _list())

    async def list_parties_for_admin(self, admin_id: int) -> List[Party]:
        async def _list():
            stmt = (
                select(Party)
                .where(Party.admin_id == admin_id)
                .order_by(Party.ends_at.asc())
                .execution_options(populate_existing=True)
            )
            result = await self.session.execute(stmt)
            return list(result.scalars().all())

        return await self._bounded("list_parties_for_admin", _list())

    async def list_parties_for_user(self, user_id: int) -> List[Party]:
        """Parties the user has signed up for, earliest deadline first."""
        async def _list():
            stmt = (
                select(Party)
                .join(Signup, Signup.party_id == Party.id)
                .where(Signup.user_id == user_id)
                .order_by(Party.ends_at.asc())
                .execution_options(populate_existing=True)
            )
            result = await self.session.execute(stmt)
            return list(result.scalars().all())

        return await self._bounded("list_parties_for_user", _list())

    # ------------------------------------------------------------------
    # Signups
    # ------------------------------------------------------------------

    async def add_signup(self, party_id: uuid.UUID, signup: Signup, now: Optional[datetime] = None) -> Signup:
        """
        Store a signup while the party is still open.

        Raises PartyNotFound, PartyClosed, or DuplicateSignup if the user is
        already in the party. A failed attempt leaves stored state untouched.

        The party row is locked where the backend supports it, and
        matches_made is read again after the insert inside the same
        transaction, so a signup can never land in a party whose draw has
        already been recorded.
        """
        now = now or utcnow()

        async def _add():
            party = await self.session.get(Party, party_id, populate_existing=True, with_for_update=True)
            if party is None:
                await self.session.rollback()
                raise PartyNotFound(party_id)
            if party.matches_made or ensure_utc(party.ends_at) <= now:
                await self.session.rollback()
                raise PartyClosed(f"Party {party_id} is not accepting signups")

            signup.party_id = party_id
            self.session.add(signup)
            try:
                await self.session.flush()
            except IntegrityError as e:
                await self.session.rollback()
                raise DuplicateSignup(party_id, signup.user_id) from e

            resolved = await self.session.execute(select(Party.matches_made).where(Party.id == party_id))
            if resolved.scalar_one():
                await self.session.rollback()
                raise PartyClosed(f"Party {party_id} was resolved while the signup was stored")

            await self.session.commit()
            return signup

        return await self._bounded("add_signup", _add())

    async def list_signups(self, party_id: uuid.UUID) -> List[Signup]:
        async def _list():
            stmt = select(Signup).where(Signup.party_id == party_id).order_by(Signup.id.asc())
            result = await self.session.execute(stmt)
            return list(result.scalars().all())

        return await self._bounded("list_signups", _list())

    async def count_signups(self, party_id: uuid.UUID) -> int:
        async def _count():
            stmt = select(func.count()).select_from(Signup).where(Signup.party_id == party_id)
            result = await self.session.execute(stmt)
            return result.scalar_one()

        return await self._bounded("count_signups", _count())

    # ------------------------------------------------------------------
    # Matches
    # ------------------------------------------------------------------

    async def record_matches(
        self,
        party_id: uuid.UUID,
        matches: Iterable[Match],
        signup_ids: Optional[Iterable[int]] = None,
    ) -> int:
        """
        Flip matches_made and store the match set in one transaction.

        The flip is conditional on matches_made still being false, so a
        second resolution of the same party raises ResolutionConflict and
        writes nothing. Once the flip holds the write, the stored signups
        are read again and compared with `signup_ids`, the users the draw
        was made from (the givers, if not given). A signup that slipped in
        after the draw was loaded rolls everything back with SignupsChanged.
        Returns the number of matches stored.
        """
        matches = list(matches)
        expected = {m.giver_id for m in matches} if signup_ids is None else set(signup_ids)

        async def _record():
            stmt = (
                update(Party)
                .where(Party.id == party_id, Party.matches_made.is_(False))
                .values(matches_made=True)
                .execution_options(synchronize_session=False)
            )
            result = await self.session.execute(stmt)
            if result.rowcount == 0:
                await self.session.rollback()
                exists = await self.session.execute(select(Party.id).where(Party.id == party_id))
                if exists.scalar_one_or_none() is None:
                    raise PartyNotFound(party_id)
                raise ResolutionConflict(f"Party {party_id} is already resolved")

            stored = await self.session.execute(select(Signup.user_id).where(Signup.party_id == party_id))
            stored_ids = set(stored.scalars().all())
            if stored_ids != expected:
                await self.session.rollback()
                raise SignupsChanged(
                    f"Party {party_id} has {len(stored_ids)} signups, draw covered {len(expected)}"
                )

            for match in matches:
                match.party_id = party_id
            self.session.add_all(matches)
            await self.session.commit()
            return len(matches)

        return await self._bounded("record_matches", _record())

    async def mark_resolved(self, party_id: uuid.UUID, signup_ids: Iterable[int] = ()) -> None:
        """Resolve a party without matches. `signup_ids` are the (at most one) users it holds."""
        await self.record_matches(party_id, [], signup_ids=signup_ids)

    async def get_match_for(self, party_id: uuid.UUID, giver_id: int) -> Match:
        async def _get():
            stmt = select(Match).where(Match.party_id == party_id, Match.giver_id == giver_id)
            result = await self.session.execute(stmt)
            return result.scalar_one_or_none()

        match = await self._bounded("get_match_for", _get())
        if match is None:
            raise MatchNotFound(party_id, giver_id)
        return match

    async def list_matches(self, party_id: uuid.UUID) -> List[Match]:
        async def _list():
            stmt = select(Match).where(Match.party_id == party_id).order_by(Match.id.asc())
            result = await self.session.execute(stmt)
            return list(result.scalars().all())

        return await self._bounded("list_matches", _list())
