"""
Guess Policy: pick an answer from the visible candidates.

Decision order, first match wins:
1. KNOWN  - the key's confirmed name is among the candidates
2. SMART  - uniform pick among candidates not excluded for this key and
            not already claimed by another key
3. RANDOM - uniform pick among all candidates (everything was eliminated,
            which means earlier learning was wrong somewhere)

This is greedy elimination, not a matching solver: eliminations are never
revisited, and accuracy improves as exclusions accumulate.
"""

import logging
import random
from enum import Enum
from typing import NamedTuple, Sequence

logger = logging.getLogger(__name__)


class GuessMethod(Enum):
    """How a guess was produced."""
    KNOWN = "KNOWN"
    SMART = "SMART"
    RANDOM = "RANDOM"


class Guess(NamedTuple):
    name: str
    method: GuessMethod
    remaining: int  # candidates left after elimination


def choose(key: str, candidates: Sequence[str], knowledge, rng=random) -> Guess:
    """
    Choose an answer for key among candidates.

    Args:
        key: IdentityKey of the presented image
        candidates: Names offered this round, in display order
        knowledge: KnowledgeBase to read from
        rng: Object with a choice() method (random module by default)

    Returns:
        Guess(name, method, remaining)

    Raises:
        ValueError: If candidates is empty
    """
    if not candidates:
        raise ValueError(f"No candidates to choose from for {key}")

    known = knowledge.lookup(key)
    if known is not None and known in candidates:
        return Guess(known, GuessMethod.KNOWN, 1)

    negatives = knowledge.exclusions_for(key)
    claimed = knowledge.assigned_names()
    if known is not None:
        # The key's own name isn't offered this round; it is not "elsewhere"
        claimed.discard(known)

    smart_options = [
        name for name in candidates
        if name not in negatives and name not in claimed
    ]
    if smart_options:
        return Guess(rng.choice(smart_options), GuessMethod.SMART, len(smart_options))

    logger.warning(
        f"All {len(candidates)} candidates eliminated for {key}; guessing at random"
    )
    return Guess(rng.choice(list(candidates)), GuessMethod.RANDOM, 0)
