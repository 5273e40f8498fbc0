"""
Knowledge Base: what the bot has learned about which image is whom.

Two maps, keyed by IdentityKey:
- assignment: key -> confirmed name
- excluded: key -> names proven wrong for that key

Invariants:
- Bijection: no name is assigned to two different keys
- Exclusion coherence: a name assigned to one key is excluded for every
  other tracked key (maintained by propagation.propagate)

record_outcome() is the only mutating path besides reset(). Exclusions are
monotonic: a later correction never retracts them.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from facequiz.propagation import propagate
from facequiz.surfaces import KnowledgeStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LearningResult:
    """What a single record_outcome() call changed."""

    key: str
    name: str
    is_new: bool
    previous_name: Optional[str]
    negatives_added: int
    propagated: int
    released_keys: tuple = ()

    @property
    def is_conflict(self) -> bool:
        return self.previous_name is not None and self.previous_name != self.name


class KnowledgeBase:
    """
    Hash-keyed knowledge with bijection enforcement.

    Internal structures:
    - _assignment: key -> name
    - _excluded: key -> set of names
    """

    def __init__(self, store: Optional[KnowledgeStore] = None):
        self.store = store
        self._assignment: dict[str, str] = {}
        self._excluded: dict[str, set[str]] = {}
        if store is not None:
            self._restore(store.load())

    def _restore(self, data: Optional[dict]) -> None:
        if not data:
            return
        self._excluded = {
            key: set(names) for key, names in data.get("excluded", {}).items()
        }
        self._assignment = {}
        claimed: dict[str, str] = {}
        for key, name in data.get("assignment", {}).items():
            if name in claimed:
                # First claim wins; later keys get the name as an exclusion
                logger.warning(
                    f"Stored name {name} claimed by {claimed[name]} and {key}; "
                    f"dropping {key}"
                )
                self._excluded.setdefault(key, set()).add(name)
                continue
            claimed[name] = key
            self._assignment[key] = name

        logger.info(
            f"Loaded knowledge: {len(self._assignment)} people, "
            f"{self.negative_count} negative associations"
        )

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def lookup(self, key: str) -> Optional[str]:
        """Confirmed name for key, or None."""
        return self._assignment.get(key)

    def exclusions_for(self, key: str) -> set[str]:
        """Names known to be wrong for key (a copy; empty if none)."""
        return set(self._excluded.get(key, ()))

    def assigned_names(self) -> set[str]:
        """Every name currently claimed by some key."""
        return set(self._assignment.values())

    @property
    def people_count(self) -> int:
        return len(self._assignment)

    @property
    def negative_count(self) -> int:
        return sum(len(names) for names in self._excluded.values())

    def recent_assignments(self, limit: int = 5) -> list[tuple[str, str]]:
        """Last (key, name) pairs in learning order, oldest first."""
        if limit <= 0:
            return []
        return list(self._assignment.items())[-limit:]

    def snapshot(self) -> dict:
        """Serializable {assignment, excluded} copy."""
        return {
            "assignment": dict(self._assignment),
            "excluded": {key: sorted(names) for key, names in self._excluded.items()},
        }

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def record_outcome(
        self,
        key: str,
        presented_candidates: Iterable[str],
        confirmed_name: str,
    ) -> LearningResult:
        """
        Learn from one round whose correct answer was revealed.

        Steps:
        1. Assign confirmed_name to key (overwriting a different prior name)
        2. Release confirmed_name from any other key still claiming it
        3. Exclude every other presented candidate for key (a key seen for
           the first time also excludes every name already assigned)
        4. Propagate: exclude confirmed_name for every other tracked key
        5. Persist

        Args:
            key: IdentityKey of the presented image
            presented_candidates: All names offered in the round
            confirmed_name: The name revealed as correct

        Returns:
            LearningResult describing the change
        """
        previous = self._assignment.get(key)
        first_seen = key not in self._assignment and key not in self._excluded
        if previous is not None and previous != confirmed_name:
            logger.warning(
                f"Reassigning {key}: {previous} -> {confirmed_name} "
                f"(conflicts with earlier learning)"
            )

        released = []
        for other_key, name in list(self._assignment.items()):
            if other_key != key and name == confirmed_name:
                # Keep the released key tracked so propagation excludes the name
                self._excluded.setdefault(other_key, set())
                del self._assignment[other_key]
                released.append(other_key)
                logger.warning(
                    f"Released {confirmed_name} from {other_key}; "
                    f"now confirmed for {key}"
                )

        if first_seen:
            # Names confirmed before this key was tracked are wrong for it too
            self._excluded[key] = set(self._assignment.values())

        self._assignment[key] = confirmed_name

        negatives = self._excluded.setdefault(key, set())
        negatives_added = 0
        for name in presented_candidates:
            if name != confirmed_name and name not in negatives:
                negatives.add(name)
                negatives_added += 1

        propagated = propagate(self._assignment, self._excluded, confirmed_name, key)

        self._persist()

        return LearningResult(
            key=key,
            name=confirmed_name,
            is_new=previous is None,
            previous_name=previous,
            negatives_added=negatives_added,
            propagated=propagated,
            released_keys=tuple(released),
        )

    def reset(self) -> None:
        """Forget everything, including the persisted copy."""
        self._assignment.clear()
        self._excluded.clear()
        if self.store is not None:
            self.store.clear()
        logger.info("Knowledge base cleared")

    def _persist(self) -> None:
        if self.store is None:
            return
        try:
            self.store.save(self.snapshot())
        except OSError as e:
            logger.error(f"Failed to persist knowledge: {e}")
