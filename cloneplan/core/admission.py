"""Admission control and race helpers for analysis work.

AdmissionController bounds how many analyses run at once and collapses
duplicate requests: a second caller with the same key joins the in-flight
task instead of starting new upstream work. Over the cap, callers are
rejected immediately with RateLimitError; nothing queues.

All state is touched from the event loop thread only, so no lock.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from .errors import GatewayTimeoutError, RateLimitError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_CONCURRENT = 5


class AdmissionController:
    """In-flight dedup map plus an active-analysis counter.

    Usage:
        admission = AdmissionController(max_concurrent=5)
        result = await admission.run("https://acme.io-with-fp", lambda: work(...))
    """

    def __init__(self, max_concurrent: int = DEFAULT_MAX_CONCURRENT):
        self.max_concurrent = max_concurrent
        self._in_flight: Dict[str, asyncio.Task] = {}
        self._active = 0
        self._stats = {"admitted": 0, "joined": 0, "rejected": 0, "failed": 0}

    @property
    def active(self) -> int:
        return self._active

    def is_in_flight(self, key: str) -> bool:
        return key in self._in_flight

    async def run(self, key: str, work: Callable[[], Awaitable[T]]) -> T:
        """Run work under key, joining an in-flight run with the same key.

        Raises:
            RateLimitError: the cap is reached and key is not in flight
        """
        existing = self._in_flight.get(key)
        if existing is not None:
            self._stats["joined"] += 1
            logger.info(f"Reusing in-flight analysis for {key}")
            return await asyncio.shield(existing)

        if self._active >= self.max_concurrent:
            self._stats["rejected"] += 1
            logger.warning(
                f"Admission rejected for {key}: {self._active}/{self.max_concurrent} active"
            )
            raise RateLimitError(
                "System is currently processing maximum concurrent analyses. "
                "Please try again in a moment.",
                details={"active": self._active, "max": self.max_concurrent},
            )

        self._active += 1
        self._stats["admitted"] += 1
        task = asyncio.ensure_future(self._run_admitted(key, work))
        self._in_flight[key] = task
        # shield: a cancelled caller must not cancel work that others joined
        return await asyncio.shield(task)

    async def _run_admitted(self, key: str, work: Callable[[], Awaitable[T]]) -> T:
        try:
            return await work()
        except Exception:
            self._stats["failed"] += 1
            raise
        finally:
            self._active -= 1
            self._in_flight.pop(key, None)

    def get_stats(self) -> dict:
        return {
            **self._stats,
            "active": self._active,
            "inFlight": sorted(self._in_flight),
            "maxConcurrent": self.max_concurrent,
        }


# ── Race helpers ──────────────────────────────────────────────────────

async def with_timeout(aw: Awaitable[T], seconds: float, label: str) -> T:
    """Await aw for at most `seconds`; the loser is cancelled.

    Raises:
        GatewayTimeoutError: the timer won the race
    """
    try:
        return await asyncio.wait_for(aw, timeout=seconds)
    except asyncio.TimeoutError as e:
        logger.warning(f"{label} timed out after {seconds}s")
        raise GatewayTimeoutError(
            f"{label} timeout after {seconds}s",
            details={"operation": label, "timeoutSeconds": seconds},
        ) from e


async def settle_all(*aws: Awaitable[Any]) -> List[Any]:
    """Wait for every branch to finish; failures come back as exception values."""
    return await asyncio.gather(*aws, return_exceptions=True)


async def first_or_none(aw: Awaitable[Optional[T]], seconds: float, label: str) -> Optional[T]:
    """Like with_timeout, but a timeout yields None."""
    try:
        return await with_timeout(aw, seconds, label)
    except GatewayTimeoutError:
        return None
