import enum
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from giftparty.config.constants import MAX_PARTY_ID_ATTEMPTS, MAX_PARTY_NAME_LENGTH
from giftparty.core.exceptions import (
    DecodeError,
    DuplicateSignup,
    GiftPartyError,
    MatchNotFound,
    NotPartyAdmin,
    PartyClosed,
    PartyNotFound,
)
from giftparty.core.scheduler import PartyScheduler
from giftparty.models.party import Party
from giftparty.models.signup import Signup
from giftparty.services import phrase_codec
from giftparty.services.matching_service import MatchingService, ResolutionOutcome
from giftparty.services.party_repository import PartyRepository
from giftparty.utils.datetime_helpers import ensure_utc, utcnow
from giftparty.utils.duration_parser import parse_signup_window

logger = logging.getLogger(__name__)


class JoinStatus(str, enum.Enum):
    OK = "ok"
    INVALID_PHRASE = "invalid_phrase"
    NOT_FOUND = "not_found"
    PARTY_CLOSED = "party_closed"
    ALREADY_JOINED = "already_joined"


class AssignmentStatus(str, enum.Enum):
    PENDING = "pending"
    MATCHED = "matched"
    UNMATCHED = "unmatched"


@dataclass
class CreatedParty:
    join_phrase: str
    party_id: uuid.UUID
    ends_at: datetime


@dataclass
class PartySummary:
    party_id: uuid.UUID
    name: str
    ends_at: datetime
    matches_made: bool
    signup_count: int


@dataclass
class JoinResult:
    status: JoinStatus
    party_name: Optional[str] = None


@dataclass
class Assignment:
    party_id: uuid.UUID
    party_name: str
    status: AssignmentStatus
    resolves_at: Optional[datetime] = None
    receiver_display: Optional[bytes] = None
    receiver_hint: Optional[bytes] = None


class PartyService:
    """
    Request-side entry points for the chat layer.

    Codec and constraint failures are translated into JoinStatus values
    here; storage failures propagate as StorageError.
    """

    def __init__(self, session: AsyncSession, scheduler: PartyScheduler):
        self.session = session
        self.scheduler = scheduler
        self.repository = PartyRepository(session)

    async def create_party(
        self,
        admin_id: int,
        name: str,
        signup_window: Union[timedelta, str],
        now: Optional[datetime] = None,
    ) -> CreatedParty:
        now = ensure_utc(now) or utcnow()
        if isinstance(signup_window, str):
            signup_window = parse_signup_window(signup_window, now=now)
        name = name.strip()[:MAX_PARTY_NAME_LENGTH]

        for _ in range(MAX_PARTY_ID_ATTEMPTS):
            seed = phrase_codec.new_seed()
            party_id = phrase_codec.derive_identifier(seed)
            if not await self.repository.party_exists(party_id):
                break
            logger.warning(f"Seed collision on party id {party_id}, drawing again")
        else:
            raise GiftPartyError("Could not allocate an unused join phrase")

        join_phrase = phrase_codec.encode_phrase(seed)
        party = Party(
            id=party_id,
            admin_id=admin_id,
            name=name,
            started_at=now,
            ends_at=now + signup_window,
            matches_made=False,
        )
        await self.repository.create_party(party)
        logger.info(f"Created a party with the seed phrase {join_phrase} and the uuid {party_id}")

        self.scheduler.arm(party_id, party.ends_at, now=now)
        return CreatedParty(join_phrase=join_phrase, party_id=party_id, ends_at=ensure_utc(party.ends_at))

    async def lookup_party(self, join_phrase: str) -> Party:
        """Resolve a join phrase to its party, for the join confirmation step."""
        party_id = phrase_codec.identifier_for_phrase(join_phrase)
        return await self.repository.get_party(party_id)

    async def join_party(
        self,
        join_phrase: str,
        user_id: int,
        display_payload: bytes,
        hint_payload: bytes,
    ) -> JoinResult:
        try:
            party = await self.lookup_party(join_phrase)
        except DecodeError:
            return JoinResult(JoinStatus.INVALID_PHRASE)
        except PartyNotFound:
            return JoinResult(JoinStatus.NOT_FOUND)

        signup = Signup(user_id=user_id, display_payload=display_payload, hint_payload=hint_payload)
        try:
            await self.repository.add_signup(party.id, signup)
        except PartyClosed:
            return JoinResult(JoinStatus.PARTY_CLOSED, party.name)
        except DuplicateSignup:
            return JoinResult(JoinStatus.ALREADY_JOINED, party.name)

        logger.info(f"User {user_id} joined party {party.id}")
        return JoinResult(JoinStatus.OK, party.name)

    async def get_assignment(self, user_id: int) -> List[Assignment]:
        assignments = []
        for party in await self.repository.list_parties_for_user(user_id):
            if not party.matches_made:
                assignments.append(Assignment(
                    party_id=party.id,
                    party_name=party.name,
                    status=AssignmentStatus.PENDING,
                    resolves_at=ensure_utc(party.ends_at),
                ))
                continue

            try:
                match = await self.repository.get_match_for(party.id, user_id)
            except MatchNotFound:
                assignments.append(Assignment(party.id, party.name, AssignmentStatus.UNMATCHED))
                continue

            assignments.append(Assignment(
                party_id=party.id,
                party_name=party.name,
                status=AssignmentStatus.MATCHED,
                receiver_display=match.receiver_display,
                receiver_hint=match.receiver_hint,
            ))
        return assignments

    async def list_admin_parties(self, admin_id: int) -> List[PartySummary]:
        """Parties the user runs, with how many people have joined each."""
        summaries = []
        for party in await self.repository.list_parties_for_admin(admin_id):
            summaries.append(PartySummary(
                party_id=party.id,
                name=party.name,
                ends_at=ensure_utc(party.ends_at),
                matches_made=party.matches_made,
                signup_count=await self.repository.count_signups(party.id),
            ))
        return summaries

    async def resolve_now(self, party_id: uuid.UUID, admin_id: int) -> ResolutionOutcome:
        """Close signups early and draw matches. Admin only."""
        party = await self.repository.get_party(party_id)
        if party.admin_id != admin_id:
            raise NotPartyAdmin(f"User {admin_id} is not the admin of party {party_id}")

        self.scheduler.disarm(party_id)
        logger.info(f"Admin {admin_id} triggered resolution of party {party_id}")
        try:
            return await MatchingService(self.session).resolve_party(party_id)
        except GiftPartyError:
            # Party is still open; put its deadline back
            self.scheduler.arm(party_id, party.ends_at)
            raise
