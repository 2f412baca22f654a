from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable

from .constants import MAX_RETRIES, RETRY_BACKOFF_FACTOR, RETRY_BASE_DELAY_SECS, RETRY_JITTER_RATIO
from .errors import BrdError, ErrorKind
from .models import AttemptOutcome, OutcomeKind, RetryState

logger = logging.getLogger(__name__)

_RETRYABLE = frozenset({OutcomeKind.NETWORK, OutcomeKind.RETRYABLE_STATUS})

_ERROR_KINDS = {
    OutcomeKind.NETWORK: ErrorKind.TRANSIENT,
    OutcomeKind.RETRYABLE_STATUS: ErrorKind.TRANSIENT,
    OutcomeKind.AUTHENTICATION: ErrorKind.AUTHENTICATION,
    OutcomeKind.VALIDATION: ErrorKind.VALIDATION,
    OutcomeKind.PARSE: ErrorKind.API,
    OutcomeKind.API: ErrorKind.API,
}


@dataclass(frozen=True)
class RetryDecision:
    retry: bool
    delay: float = 0.0


class RetryPolicy:
    """Exponential backoff with jitter for transport retries.

    The delay before retry number ``attempt + 1`` is
    base * factor^attempt plus up to 10% random jitter. Only network faults
    and the retryable statuses (429, 5xx gateway family) are retried;
    authentication, validation, parse and other API failures stop at once.
    """

    def __init__(
        self,
        max_retries: int = MAX_RETRIES,
        backoff_factor: float = RETRY_BACKOFF_FACTOR,
        base_delay: float = RETRY_BASE_DELAY_SECS,
        jitter_ratio: float = RETRY_JITTER_RATIO,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self._max_retries = max_retries
        self._factor = backoff_factor
        self._base = base_delay
        self._jitter = jitter_ratio

    @property
    def max_retries(self) -> int:
        return self._max_retries

    def get_sleep(self, attempt: int) -> float:
        """Backoff delay in seconds after the zero-based ``attempt`` failed."""
        delay = self._base * (self._factor ** max(attempt, 0))
        jitter = random.uniform(0, delay * self._jitter)
        return delay + jitter

    def decide(self, outcome: AttemptOutcome, attempt: int) -> RetryDecision:
        if attempt < 0:
            raise ValueError("attempt must be >= 0")
        if outcome.ok or outcome.kind not in _RETRYABLE:
            return RetryDecision(retry=False)
        if attempt >= self._max_retries:
            return RetryDecision(retry=False)
        return RetryDecision(retry=True, delay=self.get_sleep(attempt))

    async def run(
        self,
        attempt_fn: Callable[[], Awaitable[AttemptOutcome]],
        operation: str = "request",
    ) -> RetryState:
        """Drive ``attempt_fn`` until success or a stop decision.

        Returns the RetryState whose ``last`` outcome is the success; raises
        BrdError for every terminal failure.
        """
        state = RetryState()
        while True:
            outcome = await attempt_fn()
            index = state.attempt
            state.attempt += 1
            state.last = outcome

            if outcome.ok:
                if index > 0:
                    logger.info(
                        "request succeeded after retries",
                        extra={"data": {"operation": operation, "retries": index}},
                    )
                return state

            decision = self.decide(outcome, index)
            logger.warning(
                "request attempt failed",
                extra={
                    "data": {
                        "operation": operation,
                        "attempt": state.attempt,
                        "max_attempts": self._max_retries + 1,
                        "kind": outcome.kind.value,
                        "status": outcome.status_code,
                        "error": outcome.message,
                    }
                },
            )
            if not decision.retry:
                raise self.to_error(outcome, state.attempt)

            state.next_delay = decision.delay
            logger.debug(
                "retrying",
                extra={"data": {"operation": operation, "delay": round(decision.delay, 3)}},
            )
            await asyncio.sleep(decision.delay)

    def to_error(self, outcome: AttemptOutcome, attempts: int) -> BrdError:
        kind = _ERROR_KINDS[outcome.kind]
        if outcome.kind in _RETRYABLE:
            return BrdError(
                kind,
                f"request failed after {attempts} attempts: {outcome.message}",
                status_code=outcome.status_code,
                response_text=outcome.body,
                attempts=attempts,
                exhausted=True,
            )
        return BrdError(
            kind,
            outcome.message,
            status_code=outcome.status_code,
            response_text=outcome.body,
            attempts=attempts,
        )
