import logging
import random
from typing import List, Optional, Sequence, TypeVar

from giftparty.config.constants import DERANGEMENT_MAX_ATTEMPTS
from giftparty.core.exceptions import DerangementError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Shuffles must be unpredictable to participants
_system_random = random.SystemRandom()


def has_fixed_point(original: Sequence[T], permuted: Sequence[T]) -> bool:
    return any(a == b for a, b in zip(original, permuted))


def derange(
    ids: Sequence[T],
    rng: Optional[random.Random] = None,
    max_attempts: int = DERANGEMENT_MAX_ATTEMPTS,
) -> List[T]:
    """
    Return a random permutation of `ids` where no element keeps its index.

    Uses rejection sampling: shuffle, and retry while any position is fixed.
    About e attempts are needed on average. There is no derangement of a
    single element, so callers must route one-person parties elsewhere.
    """
    if len(ids) == 0:
        return []
    if len(ids) == 1:
        raise ValueError("A single participant has no derangement")

    rng = rng or _system_random
    candidate = list(ids)
    for attempt in range(1, max_attempts + 1):
        rng.shuffle(candidate)
        if not has_fixed_point(ids, candidate):
            logger.debug(f"Derangement of {len(ids)} found after {attempt} attempt(s)")
            return candidate
        logger.debug("Shuffle collision detected, rerandomizing")

    raise DerangementError(f"No derangement of {len(ids)} ids after {max_attempts} attempts")
