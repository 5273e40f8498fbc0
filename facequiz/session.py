"""
Quiz Session: owns the knowledge, hasher, controller, counters and tasks.

Lifecycle: create -> start(mode) -> set_mode(...) ... -> stop()

Modes:
- LEARNING: poll the presentation source every POLL_INTERVAL seconds and
  play full learning rounds
- GUESSING: subscribe to presentation changes and click KNOWN answers the
  moment a new image appears; unknown images get a learning round

Switching mode or stopping cancels every task and discards any pending
learning record. That loss is accepted: the next round relearns it.

In GUESSING mode a change that arrives while a round is in flight is kept
as the deferred source and replayed once that round ends.
"""

import asyncio
import logging
import random
from enum import Enum

from facequiz import config
from facequiz.controller import RoundController, SessionStats
from facequiz.hasher import IdentityHasher, RequestsImageLoader
from facequiz.knowledge import KnowledgeBase
from facequiz.surfaces import resolve

logger = logging.getLogger(__name__)


class Mode(Enum):
    LEARNING = "LEARNING"
    GUESSING = "GUESSING"
    STOPPED = "STOPPED"


class QuizSession:
    """
    Explicitly owned bot state, injected into every component.

    Internal structures:
    - _tasks: running asyncio tasks (poll loop, in-flight rounds)
    - _unsubscribe: handle returned by the host's change subscription
    """

    def __init__(
        self,
        host,
        knowledge: KnowledgeBase,
        hasher: IdentityHasher,
        poll_interval: float = config.POLL_INTERVAL,
        outcome_timeout: float = config.OUTCOME_TIMEOUT,
        outcome_poll_interval: float = config.OUTCOME_POLL_INTERVAL,
        rng=random,
    ):
        self.host = host
        self.knowledge = knowledge
        self.hasher = hasher
        self.poll_interval = poll_interval
        self.stats = SessionStats()
        self.controller = RoundController(
            knowledge,
            hasher,
            host,
            stats=self.stats,
            outcome_timeout=outcome_timeout,
            outcome_poll_interval=outcome_poll_interval,
            rng=rng,
        )
        self.mode = Mode.STOPPED
        self._tasks: set[asyncio.Task] = set()
        self._unsubscribe = None
        self._deferred_source = None

    @classmethod
    def create(cls, host, store=None, loader=None, **kwargs) -> "QuizSession":
        """
        Build a session with a knowledge base restored from store.

        Images are fetched with requests unless the host supplies a loader.
        """
        if loader is None:
            loader = RequestsImageLoader()
        return cls(host, KnowledgeBase(store), IdentityHasher(loader), **kwargs)

    # -------------------------------------------------------------------------
    # Control surface
    # -------------------------------------------------------------------------

    async def start(self, mode: Mode = Mode.GUESSING) -> None:
        """(Re)start in mode with fresh session counters."""
        if mode is Mode.STOPPED:
            await self.stop()
            return

        await self._teardown()
        self.stats.reset()
        self.controller.reset()
        self.mode = mode

        if mode is Mode.LEARNING:
            self._spawn(self._poll_loop())
            logger.info("LEARNING MODE ACTIVE (polling with negative elimination)")
        else:
            self._unsubscribe = await resolve(
                self.host.on_presentation_changed(self._on_presentation_changed)
            )
            logger.info("GUESSING MODE ACTIVE (reacting to presentation changes)")

    async def set_mode(self, mode: Mode) -> None:
        logger.info(f"Switching to {mode.value} MODE...")
        await self.start(mode)

    async def stop(self) -> None:
        """Cancel every task and drop pending learning. Counters are kept."""
        await self._teardown()
        self.mode = Mode.STOPPED
        logger.info("Bot stopped")

    async def reset_knowledge(self) -> None:
        """
        Destructive full wipe: knowledge, persisted copy, hash cache, counters.

        The host must get user confirmation before calling this. A round in
        flight is cancelled first and monitoring resumes in the same mode.
        """
        mode = self.mode
        await self._teardown()
        self.controller.reset()
        self.knowledge.reset()
        self.hasher.clear_cache()
        self.stats.reset()
        logger.info("All data cleared (including URL hash cache)")

        if mode is not Mode.STOPPED:
            await self.start(mode)

    def get_stats(self) -> dict:
        people = self.knowledge.people_count
        negatives = self.knowledge.negative_count
        return {
            "people": people,
            "negatives": negatives,
            "accuracy": self.stats.accuracy,
            "avg_negatives": negatives / max(1, people),
            "rounds": self.stats.rounds,
            "attempts": self.stats.attempts,
            "correct": self.stats.correct,
            "new_people": self.stats.new_people,
            "timeouts": self.stats.timeouts,
        }

    def progress(self, limit: int = 5) -> dict:
        pending = self.controller.pending
        return {
            "people": self.knowledge.people_count,
            "pending_guess": pending.guess if pending else None,
            "recent": self.knowledge.recent_assignments(limit),
        }

    def debug_info(self, limit: int = 5) -> dict:
        return {
            "mode": self.mode.value,
            "cache_size": self.hasher.cache_size,
            "subscribed": self._unsubscribe is not None,
            "active_tasks": len(self._tasks),
            "current_source": self.controller.last_source,
            "state": self.controller.state.value,
            "cache_entries": self.hasher.cached_entries(limit),
        }

    # -------------------------------------------------------------------------
    # Monitoring strategies
    # -------------------------------------------------------------------------

    async def _poll_loop(self) -> None:
        while True:
            source = await resolve(self.host.current_image_source())
            if self.controller.can_start(source):
                self._spawn(self._guarded(self.controller.play_round(source)))
            await asyncio.sleep(self.poll_interval)

    def _on_presentation_changed(self, source: str) -> None:
        if self.mode is not Mode.GUESSING:
            return
        self._spawn(self._guarded(self._react(source)))

    async def _react(self, source: str):
        if self.controller.is_busy:
            logger.debug(f"Round in flight; deferring {source}")
            self._deferred_source = source
            return None
        return await self.controller.play_known(source)

    def _replay_deferred(self) -> None:
        if self._deferred_source is None or self.controller.is_busy:
            return
        source, self._deferred_source = self._deferred_source, None
        if self.mode is Mode.GUESSING:
            self._spawn(self._guarded(self._react(source)))

    async def _guarded(self, round_coro):
        """Run a round; a host failure ends the round, never the session."""
        try:
            result = await round_coro
        except Exception:
            logger.exception("Round failed; discarding it")
            self.controller.cancel()
            result = None
        self._replay_deferred()
        return result

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _teardown(self) -> None:
        self._deferred_source = None
        if self._unsubscribe is not None:
            await resolve(self._unsubscribe())
            self._unsubscribe = None

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self.controller.cancel()
