"""Unit tests for BackoffRetrier: attempts, waits, classification, checkpoints.

Tests cover:
- Exact attempt count and wait schedule for retryable failures
- Immediate stop on non-retryable failures
- Wait cap at max_delay_ms
- Partial-result checkpoint before validation, cleared on success
- Default retryable classification
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import httpx

from cloneplan.core.errors import (
    AIValidationError,
    GatewayTimeoutError,
    ProviderDownError,
    TransientProviderError,
)
from cloneplan.core.retry import (
    BackoffRetrier,
    OutcomeKind,
    PartialResultStore,
    RetryPolicy,
    is_retryable_error,
)


# ── Fixtures ──────────────────────────────────────────────────────────────


def _failing(error):
    """Coroutine factory that always raises `error`, counting calls."""
    calls = {"n": 0}

    async def fn():
        calls["n"] += 1
        raise error

    return fn, calls


def _run(retrier, fn, **kwargs):
    with patch("asyncio.sleep", new=AsyncMock()) as sleep:
        result = asyncio.run(retrier.run(fn, **kwargs))
    waits = [c.args[0] for c in sleep.await_args_list]
    return result, waits


# ── Tests: Attempts and Waits ────────────────────────────────────────────


class TestRetrySchedule:
    """Tests for attempt counting and backoff waits."""

    def test_retryable_failure_makes_exactly_three_attempts(self):
        retrier = BackoffRetrier(RetryPolicy(max_attempts=3, delay_ms=1000, backoff_multiplier=2, max_delay_ms=10000))
        fn, calls = _failing(TransientProviderError("connection reset"))

        result, waits = _run(retrier, fn)

        assert result.success is False
        assert result.attempts == 3
        assert calls["n"] == 3
        assert waits == [1.0, 2.0]
        assert isinstance(result.error, TransientProviderError)

    def test_non_retryable_failure_stops_after_first_attempt(self):
        retrier = BackoffRetrier(RetryPolicy(max_attempts=3, delay_ms=1000))
        fn, calls = _failing(ProviderDownError("invalid API key"))

        result, waits = _run(retrier, fn)

        assert result.success is False
        assert result.attempts == 1
        assert calls["n"] == 1
        assert waits == []

    def test_success_after_transient_failure(self):
        retrier = BackoffRetrier(RetryPolicy(max_attempts=3, delay_ms=2000))
        outcomes = [GatewayTimeoutError("slow"), {"ok": True}]

        async def fn():
            value = outcomes.pop(0)
            if isinstance(value, Exception):
                raise value
            return value

        result, waits = _run(retrier, fn)

        assert result.success is True
        assert result.attempts == 2
        assert result.data == {"ok": True}
        assert waits == [2.0]

    def test_wait_is_capped_at_max_delay(self):
        retrier = BackoffRetrier(RetryPolicy(max_attempts=4, delay_ms=5000, backoff_multiplier=3, max_delay_ms=8000))
        fn, _ = _failing(TimeoutError("timed out"))

        result, waits = _run(retrier, fn)

        assert result.attempts == 4
        assert waits == [5.0, 8.0, 8.0]

    def test_on_retry_receives_failed_outcome_and_wait(self):
        retrier = BackoffRetrier(RetryPolicy(max_attempts=2, delay_ms=1000))
        fn, _ = _failing(TransientProviderError("502"))
        on_retry = MagicMock()

        _run(retrier, fn, on_retry=on_retry)

        on_retry.assert_called_once()
        outcome, wait = on_retry.call_args.args
        assert outcome.kind is OutcomeKind.RETRYABLE_FAILURE
        assert outcome.attempt == 1
        assert wait == 1.0

    def test_result_to_dict(self):
        retrier = BackoffRetrier(RetryPolicy(max_attempts=1))
        fn, _ = _failing(ProviderDownError("down"))

        result, _ = _run(retrier, fn)
        body = result.to_dict()

        assert body["success"] is False
        assert body["attempts"] == 1
        assert "down" in body["error"]


# ── Tests: Partial Results ───────────────────────────────────────────────


class TestPartialResults:
    """Tests for checkpointing raw output before validation."""

    def test_invalid_output_is_kept_and_not_retried(self):
        partials = PartialResultStore()
        retrier = BackoffRetrier(RetryPolicy(max_attempts=3), partials=partials)
        calls = {"n": 0}

        async def fn():
            calls["n"] += 1
            return {"half": "done"}

        def validate(raw):
            raise AIValidationError("missing fields")

        result, waits = _run(retrier, fn, checkpoint_key="stage-a-2", validate=validate)

        assert result.success is False
        assert calls["n"] == 1
        assert waits == []
        assert partials.load("stage-a-2") == {"half": "done"}

    def test_slot_cleared_on_success(self):
        partials = PartialResultStore()
        retrier = BackoffRetrier(RetryPolicy(max_attempts=3), partials=partials)
        partials.save("stage-a-3", {"stale": True})

        async def fn():
            return {"fresh": True}

        result, _ = _run(retrier, fn, checkpoint_key="stage-a-3", validate=lambda raw: raw["fresh"])

        assert result.success is True
        assert result.data is True
        assert partials.load("stage-a-3") is None
        assert len(partials) == 0


# ── Tests: Classification ────────────────────────────────────────────────


class TestIsRetryableError:
    """Tests for the default classifier."""

    def test_app_errors_use_their_flag(self):
        assert is_retryable_error(TransientProviderError("reset")) is True
        assert is_retryable_error(GatewayTimeoutError("slow")) is True
        assert is_retryable_error(ProviderDownError("bad key")) is False
        assert is_retryable_error(AIValidationError("bad json")) is False

    def test_transport_exceptions(self):
        assert is_retryable_error(httpx.ConnectTimeout("t")) is True
        assert is_retryable_error(httpx.ConnectError("c")) is True
        assert is_retryable_error(ConnectionResetError()) is True
        assert is_retryable_error(asyncio.TimeoutError()) is True

    def test_status_codes(self):
        for status in (429, 502, 503, 504):
            exc = Exception("upstream")
            exc.status_code = status
            assert is_retryable_error(exc) is True

        exc = Exception("bad request")
        exc.status_code = 400
        assert is_retryable_error(exc) is False

    def test_message_text_is_not_inspected(self):
        assert is_retryable_error(ValueError("timeout while rate limit quota")) is False
