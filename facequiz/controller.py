"""
Round Controller: one presentation -> guess -> outcome -> learning cycle.

State machine per round:

    IDLE -> DETECTED -> HASHING -> AWAITING_GUESS -> SUBMITTED
         -> AWAITING_OUTCOME -> (LEARNED | TIMEOUT) -> IDLE

Core invariant: at most one round is in flight. A new presentation is
refused while the controller is not IDLE or a pending-learning record
exists; the poll loop simply retries on its next tick, so the round is
deferred rather than lost.

Suspension points are the hasher's image load and the outcome wait. The
outcome wait has a hard timeout so a stalled page can't wedge the loop.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from facequiz import config, reporting
from facequiz.knowledge import LearningResult
from facequiz.policy import GuessMethod, choose
from facequiz.surfaces import CandidateOption, open_candidates, resolve

logger = logging.getLogger(__name__)


class RoundState(Enum):
    """Round lifecycle states."""
    IDLE = "IDLE"
    DETECTED = "DETECTED"
    HASHING = "HASHING"
    AWAITING_GUESS = "AWAITING_GUESS"
    SUBMITTED = "SUBMITTED"
    AWAITING_OUTCOME = "AWAITING_OUTCOME"
    LEARNED = "LEARNED"
    TIMEOUT = "TIMEOUT"


@dataclass(frozen=True)
class PendingLearning:
    """A submitted guess waiting for the page to reveal the right answer."""

    key: str
    source: str
    candidates: tuple
    guess: str
    method: GuessMethod


@dataclass
class SessionStats:
    """Observational counters. Never read by the policy."""

    rounds: int = 0
    attempts: int = 0
    correct: int = 0
    new_people: int = 0
    timeouts: int = 0
    contradictions: int = 0

    @property
    def accuracy(self) -> Optional[float]:
        if self.attempts == 0:
            return None
        return self.correct / self.attempts * 100

    def reset(self) -> None:
        self.rounds = 0
        self.attempts = 0
        self.correct = 0
        self.new_people = 0
        self.timeouts = 0
        self.contradictions = 0


@dataclass(frozen=True)
class RoundResult:
    """How a round ended."""

    key: str
    guess: str
    method: GuessMethod
    outcome: RoundState  # SUBMITTED (known shortcut), LEARNED or TIMEOUT
    confirmed_name: Optional[str] = None
    learning: Optional[LearningResult] = None

    @property
    def correct(self) -> Optional[bool]:
        if self.outcome is RoundState.SUBMITTED:
            return True
        if self.confirmed_name is None:
            return None
        return self.guess == self.confirmed_name


class RoundController:
    """
    Drives rounds against a host page.

    The host provides current_candidates() and confirmed_name(); the
    presentation side is watched by the session, which hands locators in
    through play_round() / play_known().
    """

    def __init__(
        self,
        knowledge,
        hasher,
        host,
        stats: Optional[SessionStats] = None,
        outcome_timeout: float = config.OUTCOME_TIMEOUT,
        outcome_poll_interval: float = config.OUTCOME_POLL_INTERVAL,
        detailed_progress_every: int = config.DETAILED_PROGRESS_EVERY,
        guessing_report_every: int = config.GUESSING_REPORT_EVERY,
        rng=random,
    ):
        self.knowledge = knowledge
        self.hasher = hasher
        self.host = host
        self.stats = stats if stats is not None else SessionStats()
        self.outcome_timeout = outcome_timeout
        self.outcome_poll_interval = outcome_poll_interval
        self.detailed_progress_every = detailed_progress_every
        self.guessing_report_every = guessing_report_every
        self.rng = rng

        self.state = RoundState.IDLE
        self.pending: Optional[PendingLearning] = None
        self.last_source: Optional[str] = None

    @property
    def has_pending(self) -> bool:
        return self.pending is not None

    @property
    def is_busy(self) -> bool:
        return self.state is not RoundState.IDLE or self.pending is not None

    @property
    def round_number(self) -> int:
        return self.stats.rounds

    def can_start(self, source: Optional[str]) -> bool:
        """True if source is a new presentation and no round is in flight."""
        if not source or self.is_busy:
            return False
        return source != self.last_source

    # -------------------------------------------------------------------------
    # Rounds
    # -------------------------------------------------------------------------

    async def play_round(self, source: str) -> Optional[RoundResult]:
        """
        Play a full learning round for source.

        Returns None if the round was refused (busy, or same source as the
        last round) or if no open candidates were visible.
        """
        if not self.can_start(source):
            return None

        detected = await self._detect(source)
        if detected is None:
            return None
        key, options = detected
        return await self._guess_and_learn(key, source, options)

    async def play_known(self, source: str) -> Optional[RoundResult]:
        """
        Event-driven round: click straight away when the answer is KNOWN.

        A known answer carries no new information, so there is no outcome
        wait and nothing is learned. Unknown images fall through to a full
        learning round.
        """
        if not self.can_start(source):
            return None

        detected = await self._detect(source)
        if detected is None:
            return None
        key, options = detected

        known = self.knowledge.lookup(key)
        target = _find_option(options, known) if known is not None else None
        if target is None:
            return await self._guess_and_learn(key, source, options)

        self.state = RoundState.SUBMITTED
        try:
            await resolve(target.submit())
        except Exception:
            self._release(source)
            raise
        finally:
            self.state = RoundState.IDLE

        self.stats.rounds += 1
        self.stats.attempts += 1
        self.stats.correct += 1
        if self.guessing_report_every and self.stats.rounds % self.guessing_report_every == 0:
            reporting.log_guessing_progress(self.stats.rounds, self.stats, self.knowledge)

        return RoundResult(key, known, GuessMethod.KNOWN, RoundState.SUBMITTED)

    async def _detect(self, source: str):
        """DETECTED -> HASHING -> read candidates. Returns (key, options) or None."""
        previous_source = self.last_source
        self.state = RoundState.DETECTED
        self.last_source = source

        try:
            self.state = RoundState.HASHING
            key = await self.hasher.hash(source)
            options = open_candidates(await resolve(self.host.current_candidates()))
        except asyncio.CancelledError:
            self.state = RoundState.IDLE
            raise
        except Exception:
            # Failed rounds stay eligible for the next tick
            self.last_source = previous_source
            self.state = RoundState.IDLE
            raise

        if not options:
            # Buttons not rendered yet; let the next tick retry this source
            logger.debug(f"No open candidates for {source}")
            self.last_source = previous_source
            self.state = RoundState.IDLE
            return None

        return key, options

    async def _guess_and_learn(
        self, key: str, source: str, options: list[CandidateOption]
    ) -> Optional[RoundResult]:
        self.state = RoundState.AWAITING_GUESS
        names = [option.name for option in options]

        self.stats.rounds += 1
        self.stats.attempts += 1
        reporting.log_round_start(self.stats.rounds, key, names)

        guess = choose(key, names, self.knowledge, self.rng)
        if guess.method is GuessMethod.KNOWN:
            logger.info(f"Known person: {guess.name}")
        else:
            claimed = self.knowledge.assigned_names() - {self.knowledge.lookup(key)}
            reporting.log_guess(
                guess,
                negatives=self.knowledge.exclusions_for(key),
                claimed=[name for name in names if name in claimed],
            )
        if guess.method is GuessMethod.RANDOM:
            self.stats.contradictions += 1

        pending = PendingLearning(
            key=key,
            source=source,
            candidates=tuple(names),
            guess=guess.name,
            method=guess.method,
        )
        # Record before clicking so a fast reveal can't be missed
        self.pending = pending
        self.state = RoundState.SUBMITTED
        try:
            await resolve(_find_option(options, guess.name).submit())
        except asyncio.CancelledError:
            self.cancel()
            raise
        except Exception:
            self.cancel()
            self._release(source)
            raise

        self.state = RoundState.AWAITING_OUTCOME
        return await self.await_outcome(pending)

    async def await_outcome(self, pending: PendingLearning) -> Optional[RoundResult]:
        """
        Wait for the page to reveal the right answer, then learn from it.

        Polls the outcome surface every outcome_poll_interval seconds. After
        outcome_timeout seconds the record is discarded without learning.
        Returns None if the record was cancelled while waiting.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.outcome_timeout

        try:
            while self.pending is pending:
                confirmed = await resolve(self.host.confirmed_name())
                if confirmed and confirmed.strip():
                    return self._learn(pending, confirmed.strip())
                if loop.time() >= deadline:
                    return self._expire(pending)
                await asyncio.sleep(self.outcome_poll_interval)
        except asyncio.CancelledError:
            if self.pending is pending:
                self.cancel()
            raise

        return None

    def _learn(self, pending: PendingLearning, confirmed: str) -> RoundResult:
        result = self.knowledge.record_outcome(pending.key, pending.candidates, confirmed)
        self.state = RoundState.LEARNED

        was_correct = pending.guess == confirmed
        if was_correct:
            self.stats.correct += 1
        if result.is_new:
            self.stats.new_people += 1

        reporting.log_learning(result, was_correct, self.stats, self.knowledge)
        if self.detailed_progress_every and self.stats.rounds % self.detailed_progress_every == 0:
            reporting.log_detailed_progress(self.stats.rounds, self.stats, self.knowledge)

        self.pending = None
        self.state = RoundState.IDLE
        return RoundResult(
            key=pending.key,
            guess=pending.guess,
            method=pending.method,
            outcome=RoundState.LEARNED,
            confirmed_name=confirmed,
            learning=result,
        )

    def _expire(self, pending: PendingLearning) -> RoundResult:
        self.state = RoundState.TIMEOUT
        self.stats.timeouts += 1
        logger.warning(
            f"No answer revealed within {self.outcome_timeout}s for {pending.key}; "
            f"discarding guess {pending.guess}"
        )
        self.pending = None
        self.state = RoundState.IDLE
        return RoundResult(
            key=pending.key,
            guess=pending.guess,
            method=pending.method,
            outcome=RoundState.TIMEOUT,
        )

    def cancel(self) -> None:
        """Drop any pending learning (not flushed) and return to IDLE."""
        if self.pending is not None:
            logger.info(f"Discarding pending learning for {self.pending.key}")
        self.pending = None
        self.state = RoundState.IDLE

    def reset(self) -> None:
        """Forget round tracking, as on a mode switch."""
        self.cancel()
        self.last_source = None

    def _release(self, source: str) -> None:
        """Let a failed source be played again."""
        if self.last_source == source:
            self.last_source = None


def _find_option(options: list[CandidateOption], name: str) -> Optional[CandidateOption]:
    for option in options:
        if option.name == name:
            return option
    return None
