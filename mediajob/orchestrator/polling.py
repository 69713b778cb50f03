"""Poll-until-terminal loop used to track remote jobs."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


class PollDecision(Enum):
    """Outcome of a single poll tick."""
    CONTINUE = "continue"    # non-terminal value, or a swallowed fetch error
    TERMINAL = "terminal"    # fetched value satisfied the terminal predicate
    EXHAUSTED = "exhausted"  # attempt budget used up
    STOPPED = "stopped"      # caller asked the loop to stop


@dataclass(frozen=True)
class PollOutcome(Generic[T]):
    decision: PollDecision
    value: Optional[T] = None
    error: Optional[Exception] = None

    @property
    def finished(self) -> bool:
        return self.decision is not PollDecision.CONTINUE


class PollLoop(Generic[T]):
    """
    Bounded polling as an explicit state machine.

    ``tick()`` performs one attempt and reports what happened, so the loop
    can be stepped by hand (tests, custom schedulers). ``run()`` drives the
    ticks with a sleep between them; the first tick runs immediately.

    Fetch errors are transient: they are logged, counted as an attempt and
    polling continues.

    Usage:
        loop = PollLoop(lambda: service.query_job_status(job_id),
                        lambda s: s.is_terminal, max_attempts=200)
        outcome = await loop.run(interval=3.0)
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[T]],
        is_terminal: Callable[[T], bool],
        max_attempts: int,
        on_update: Optional[Callable[[T], None]] = None,
        should_continue: Optional[Callable[[], bool]] = None,
    ):
        self._fetch = fetch
        self._is_terminal = is_terminal
        self._max_attempts = max_attempts
        self._on_update = on_update
        self._should_continue = should_continue or (lambda: True)
        self.attempts = 0
        self.last_value: Optional[T] = None

    async def tick(self) -> PollOutcome[T]:
        if not self._should_continue():
            return PollOutcome(PollDecision.STOPPED)

        self.attempts += 1
        if self.attempts > self._max_attempts:
            return PollOutcome(PollDecision.EXHAUSTED)

        try:
            value = await self._fetch()
        except Exception as e:
            logger.debug(f"Polling attempt {self.attempts} failed: {e}")
            return PollOutcome(PollDecision.CONTINUE, error=e)

        # The caller may have stopped us while the fetch was in flight.
        if not self._should_continue():
            return PollOutcome(PollDecision.STOPPED)

        self.last_value = value
        if self._on_update:
            self._on_update(value)

        if self._is_terminal(value):
            return PollOutcome(PollDecision.TERMINAL, value=value)
        return PollOutcome(PollDecision.CONTINUE, value=value)

    async def run(self, interval: float, sleep: Optional[Sleep] = None) -> PollOutcome[T]:
        sleep = sleep or asyncio.sleep
        while True:
            outcome = await self.tick()
            if outcome.finished:
                return outcome
            await sleep(interval)
