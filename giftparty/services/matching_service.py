import logging
import random
import uuid
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from giftparty.config.constants import MAX_RESOLUTION_REDRAWS
from giftparty.core.exceptions import ResolutionConflict, SignupsChanged
from giftparty.models.match import Match
from giftparty.models.signup import Signup
from giftparty.services.derangement import derange
from giftparty.services.party_repository import PartyRepository

logger = logging.getLogger(__name__)


@dataclass
class ResolutionOutcome:
    party_id: uuid.UUID
    matches_recorded: int = 0
    degenerate: bool = False
    already_resolved: bool = False


class MatchingService:
    """
    Draws the gift pairings for a party whose signup window has closed.

    Safe to run more than once per party: only the first run commits, later
    runs find the party resolved (or lose the conditional update) and
    report already_resolved without touching stored matches.
    """

    def __init__(self, session: AsyncSession, rng: Optional[random.Random] = None):
        self.session = session
        self.repository = PartyRepository(session)
        self.rng = rng or random.SystemRandom()

    def pair_signups(self, signups: List[Signup]) -> List[Match]:
        """Build a full giver→receiver match set with no self-pairs."""
        shuffled = list(signups)
        self.rng.shuffle(shuffled)

        givers = derange([s.user_id for s in shuffled], rng=self.rng)
        # givers[i] was drawn against shuffled[i]; walking givers backwards
        # while popping receivers off the end keeps those two aligned.
        givers.reverse()

        matches = []
        for giver_id in givers:
            receiver = shuffled.pop()
            matches.append(Match(
                giver_id=giver_id,
                receiver_id=receiver.user_id,
                receiver_display=receiver.display_payload,
                receiver_hint=receiver.hint_payload,
            ))
        return matches

    async def resolve_party(self, party_id: uuid.UUID) -> ResolutionOutcome:
        for redraw in range(MAX_RESOLUTION_REDRAWS + 1):
            try:
                return await self._draw(party_id)
            except SignupsChanged:
                if redraw == MAX_RESOLUTION_REDRAWS:
                    raise
                logger.warning(f"Signups for party {party_id} changed during the draw, drawing again")

    async def _draw(self, party_id: uuid.UUID) -> ResolutionOutcome:
        party = await self.repository.get_party(party_id)
        if party.matches_made:
            logger.info(f"Party {party_id} already resolved, skipping")
            return ResolutionOutcome(party_id, already_resolved=True)

        signups = await self.repository.list_signups(party_id)
        signup_ids = [s.user_id for s in signups]
        outcome = ResolutionOutcome(party_id)
        try:
            if len(signups) <= 1:
                logger.info(f"Party {party_id} has {len(signups)} signup(s), resolving without matches")
                await self.repository.mark_resolved(party_id, signup_ids=signup_ids)
                outcome.degenerate = True
                return outcome

            matches = self.pair_signups(signups)
            outcome.matches_recorded = await self.repository.record_matches(party_id, matches, signup_ids=signup_ids)
        except ResolutionConflict:
            logger.warning(f"Party {party_id} was resolved concurrently, discarding this draw")
            return ResolutionOutcome(party_id, already_resolved=True)

        logger.info(f"Party {party_id} completed with {outcome.matches_recorded} matches")
        return outcome
