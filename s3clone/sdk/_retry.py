"""Bounded exponential-backoff retry policy for dispatched requests.

The policy is expressed with tenacity: ``stop_after_attempt`` bounds the
attempt budget, ``wait_exponential`` yields the 1s, 2s, 4s backoff sequence
and ``reraise=True`` surfaces the last observed error instead of a
``RetryError``. A :class:`RetryState` records the state machine of one
logical call.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from tenacity import (
    AsyncRetrying,
    Retrying,
    RetryCallState,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from .exceptions import is_retryable

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
BASE_DELAY_SECONDS = 1.0


class RetryPhase(str, enum.Enum):
    IDLE = "idle"
    ATTEMPTING = "attempting"
    RETRY_SCHEDULED = "retry_scheduled"
    SUCCESS = "success"
    EXHAUSTED = "exhausted"


@dataclass
class RetryState:
    """Progress of one logical call. Never shared between calls."""

    max_attempts: int
    attempt: int = 0
    phase: RetryPhase = RetryPhase.IDLE
    last_error: BaseException | None = None
    next_delay: float = 0.0
    delays: list[float] = field(default_factory=list)

    def _on_attempt(self, retry_state: RetryCallState) -> None:
        self.attempt = retry_state.attempt_number
        self.phase = RetryPhase.ATTEMPTING

    def _on_backoff(self, retry_state: RetryCallState) -> None:
        self.phase = RetryPhase.RETRY_SCHEDULED
        self.last_error = retry_state.outcome.exception() if retry_state.outcome else None
        self.next_delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        self.delays.append(self.next_delay)

    def succeed(self) -> None:
        self.phase = RetryPhase.SUCCESS
        self.next_delay = 0.0

    def exhaust(self, error: BaseException) -> None:
        self.phase = RetryPhase.EXHAUSTED
        self.last_error = error
        self.next_delay = 0.0


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget and backoff for one dispatcher.

    ``delay(n) = base_delay * 2 ** (n - 1)`` after the n-th failed attempt,
    capped at ``max_delay``.
    """

    max_attempts: int = MAX_ATTEMPTS
    base_delay: float = BASE_DELAY_SECONDS
    max_delay: float = 60.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("RetryPolicy.max_attempts must be >= 1")
        if self.base_delay < 0:
            raise ValueError("RetryPolicy.base_delay must be >= 0")

    def compute_delay(self, attempt: int) -> float:
        return min(self.max_delay, self.base_delay * 2 ** max(0, attempt - 1))

    def new_state(self) -> RetryState:
        return RetryState(max_attempts=self.max_attempts)

    def _tenacity_kwargs(self, state: RetryState) -> dict[str, Any]:
        log_before_sleep = before_sleep_log(logger, logging.WARNING)

        def before_sleep(retry_state: RetryCallState) -> None:
            state._on_backoff(retry_state)
            log_before_sleep(retry_state)

        return {
            "stop": stop_after_attempt(self.max_attempts),
            "wait": wait_exponential(multiplier=self.base_delay, max=self.max_delay),
            "retry": retry_if_exception(is_retryable),
            "before": state._on_attempt,
            "before_sleep": before_sleep,
            "reraise": True,
        }

    def retrying(self, state: RetryState, sleep: Callable[[float], None]) -> Retrying:
        """Blocking retry controller; ``sleep`` suspends the calling thread."""
        return Retrying(sleep=sleep, **self._tenacity_kwargs(state))

    def async_retrying(
        self, state: RetryState, sleep: Callable[[float], Awaitable[None]]
    ) -> AsyncRetrying:
        """Non-blocking retry controller; ``sleep`` suspends the task only."""
        return AsyncRetrying(sleep=sleep, **self._tenacity_kwargs(state))
