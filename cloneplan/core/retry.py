"""Bounded exponential-backoff retrier for async operations.

Each attempt produces an AttemptOutcome (success, retryable failure or
fatal failure). Only retryable failures are retried; the wait schedule
starts at delay_ms, multiplies by backoff_multiplier each time and is
capped at max_delay_ms. Scheduling is delegated to backoff.on_predicate
with jitter disabled so waits are exact.

Raw output from each attempt is checkpointed to a PartialResultStore slot
before the caller's validation step runs, so the last-seen output can be
inspected after a final failure. The slot is cleared on success.

Usage:
    retrier = BackoffRetrier(RetryPolicy(max_attempts=3, delay_ms=1000))
    result = await retrier.run(fetch, checkpoint_key="stage-abc-2", validate=parse)
    if not result.success:
        partial = retrier.partials.load("stage-abc-2")
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

import backoff
import httpx

from .errors import RETRYABLE_STATUS_CODES, AppError

logger = logging.getLogger(__name__)


def is_retryable_error(exc: BaseException) -> bool:
    """Default classifier: transport-class failures only.

    AppError instances carry their own retryable flag. Plain exceptions
    are retryable when they are timeouts, connection failures or carry a
    429/502/503/504 status code.
    """
    if isinstance(exc, AppError):
        return exc.retryable
    if isinstance(exc, (TimeoutError, asyncio.TimeoutError, ConnectionError)):
        return True
    if isinstance(exc, (httpx.TimeoutException, httpx.NetworkError)):
        return True
    return getattr(exc, "status_code", None) in RETRYABLE_STATUS_CODES


class OutcomeKind(Enum):
    SUCCESS = "success"
    RETRYABLE_FAILURE = "retryable_failure"
    FATAL_FAILURE = "fatal_failure"


@dataclass
class AttemptOutcome:
    kind: OutcomeKind
    attempt: int
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def should_retry(self) -> bool:
        return self.kind is OutcomeKind.RETRYABLE_FAILURE


@dataclass
class RetryPolicy:
    max_attempts: int = 3
    delay_ms: int = 1000
    backoff_multiplier: float = 2.0
    max_delay_ms: int = 10000


@dataclass
class RetryResult:
    success: bool
    attempts: int
    total_time_ms: float
    data: Any = None
    error: Optional[BaseException] = None

    def to_dict(self) -> dict:
        out = {
            "success": self.success,
            "attempts": self.attempts,
            "totalTimeMs": round(self.total_time_ms, 1),
        }
        if self.success:
            out["data"] = self.data
        else:
            out["error"] = str(self.error) if self.error else None
        return out


class PartialResultStore:
    """Keyed slots holding the last raw output of a retried operation."""

    def __init__(self):
        self._slots: Dict[str, Any] = {}

    def save(self, key: str, value: Any) -> None:
        self._slots[key] = value

    def load(self, key: str) -> Optional[Any]:
        return self._slots.get(key)

    def clear(self, key: str) -> None:
        self._slots.pop(key, None)

    def __len__(self) -> int:
        return len(self._slots)


OnRetry = Callable[[AttemptOutcome, float], None]


class BackoffRetrier:
    """Retry an async operation under a RetryPolicy."""

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        is_retryable: Callable[[BaseException], bool] = is_retryable_error,
        partials: Optional[PartialResultStore] = None,
    ):
        self.policy = policy or RetryPolicy()
        self._is_retryable = is_retryable
        self.partials = partials if partials is not None else PartialResultStore()

    async def run(
        self,
        fn: Callable[[], Awaitable[Any]],
        checkpoint_key: Optional[str] = None,
        validate: Optional[Callable[[Any], Any]] = None,
        on_retry: Optional[OnRetry] = None,
    ) -> RetryResult:
        """Invoke fn until success, a fatal failure, or attempts run out.

        Args:
            fn: Zero-argument coroutine factory for one attempt
            checkpoint_key: Partial-result slot for raw attempt output
            validate: Applied to the raw output; its return value becomes
                the result data. Exceptions it raises are classified like
                any other failure.
            on_retry: Called with (failed outcome, wait seconds) before
                each backoff sleep

        Returns:
            RetryResult; never raises for failures of fn
        """
        policy = self.policy
        started = time.monotonic()
        attempt_counter = {"n": 0}

        def _log_backoff(details: dict) -> None:
            outcome: AttemptOutcome = details["value"]
            wait = details["wait"]
            logger.warning(
                f"Retry {outcome.attempt}/{policy.max_attempts} in {wait:.1f}s "
                f"after {type(outcome.error).__name__}: {outcome.error}"
            )
            if on_retry is not None:
                on_retry(outcome, wait)

        @backoff.on_predicate(
            backoff.expo,
            predicate=lambda outcome: outcome.should_retry,
            max_tries=max(policy.max_attempts, 1),
            jitter=None,
            on_backoff=_log_backoff,
            logger=None,
            base=policy.backoff_multiplier,
            factor=policy.delay_ms / 1000,
            max_value=policy.max_delay_ms / 1000,
        )
        async def _attempt() -> AttemptOutcome:
            attempt_counter["n"] += 1
            return await self._run_once(fn, attempt_counter["n"], checkpoint_key, validate)

        outcome = await _attempt()
        elapsed_ms = (time.monotonic() - started) * 1000

        if outcome.kind is OutcomeKind.SUCCESS:
            if checkpoint_key:
                self.partials.clear(checkpoint_key)
            return RetryResult(
                success=True,
                attempts=outcome.attempt,
                total_time_ms=elapsed_ms,
                data=outcome.value,
            )

        logger.error(
            f"Giving up after {outcome.attempt} attempt(s) "
            f"({outcome.kind.value}): {outcome.error}"
        )
        return RetryResult(
            success=False,
            attempts=outcome.attempt,
            total_time_ms=elapsed_ms,
            error=outcome.error,
        )

    async def _run_once(
        self,
        fn: Callable[[], Awaitable[Any]],
        attempt: int,
        checkpoint_key: Optional[str],
        validate: Optional[Callable[[Any], Any]],
    ) -> AttemptOutcome:
        try:
            raw = await fn()
            if checkpoint_key:
                self.partials.save(checkpoint_key, raw)
            value = validate(raw) if validate is not None else raw
        except asyncio.CancelledError:
            raise
        except Exception as e:
            kind = (
                OutcomeKind.RETRYABLE_FAILURE
                if self._is_retryable(e)
                else OutcomeKind.FATAL_FAILURE
            )
            return AttemptOutcome(kind=kind, attempt=attempt, error=e)
        return AttemptOutcome(kind=OutcomeKind.SUCCESS, attempt=attempt, value=value)
