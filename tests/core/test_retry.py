# tests/core/test_retry.py
"""
Tests for the retry executor: error classification, backoff and the retry loop.
"""

import asyncio
import time

import httpx
import ovh.exceptions
import pytest

from karpenter_ovhcloud.core.exceptions import RetryExhaustedError
from karpenter_ovhcloud.core.metrics import InMemoryMetricsSink
from karpenter_ovhcloud.core.retry import RetryConfig, calculate_backoff, is_retryable_error, retryable_call

FAST = RetryConfig(max_retries=2, initial_backoff=0.001, max_backoff=0.004, backoff_factor=2.0)


def _status_error(status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://eu.api.ovh.com/1.0/cloud/project")
    response = httpx.Response(status, request=request)
    return httpx.HTTPStatusError(f"HTTP {status}", request=request, response=response)


@pytest.mark.parametrize(
    "error, expected",
    [
        (_status_error(429), True),
        (_status_error(500), True),
        (_status_error(503), True),
        (_status_error(400), False),
        (_status_error(404), False),
        (httpx.ConnectError("connection failed"), True),
        (httpx.ReadTimeout("read timed out"), True),
        (ConnectionError("boom"), True),
        (TimeoutError(), True),
        (ovh.exceptions.HTTPError("Low HTTP request failed error"), True),
        (ovh.exceptions.ResourceNotFoundError("This service does not exist"), False),
        (ovh.exceptions.BadParametersError("Invalid flavor"), False),
        (Exception("connection reset by peer"), True),
        (Exception("Too Many Requests"), True),
        (Exception("server answered 502 Bad Gateway"), True),
        (ValueError("invalid flavor name"), False),
        (asyncio.CancelledError(), False),
    ],
)
def test_is_retryable_error(error, expected):
    assert is_retryable_error(error) is expected


@pytest.mark.asyncio
async def test_retryable_call_succeeds_after_transient_failures():
    """Two retryable failures then a success: the success is returned."""
    attempts = 0
    metrics = InMemoryMetricsSink()

    async def flaky():
        nonlocal attempts
        attempts += 1
        if attempts <= 2:
            raise _status_error(503)
        return {"id": "pool-1"}

    result = await retryable_call("GetNodePool", flaky, FAST, metrics)

    assert result == {"id": "pool-1"}
    assert attempts == 3
    assert attempts <= FAST.max_retries + 1
    assert metrics.count("api_retries_total", "GetNodePool") == 2


@pytest.mark.asyncio
async def test_retryable_call_terminal_error_is_attempted_once():
    attempts = 0

    async def bad_request():
        nonlocal attempts
        attempts += 1
        raise ValueError("invalid flavor name")

    with pytest.raises(ValueError, match="invalid flavor name"):
        await retryable_call("CreateNodePool", bad_request, FAST)

    assert attempts == 1


@pytest.mark.asyncio
async def test_retryable_call_exhausts_budget():
    attempts = 0
    last = _status_error(429)

    async def rate_limited():
        nonlocal attempts
        attempts += 1
        raise last

    with pytest.raises(RetryExhaustedError) as exc_info:
        await retryable_call("ListNodePools", rate_limited, FAST)

    assert attempts == FAST.max_retries + 1
    assert exc_info.value.operation == "ListNodePools"
    assert exc_info.value.attempts == 3
    assert exc_info.value.last_error is last
    assert exc_info.value.__cause__ is last
    assert "ListNodePools failed after 3 attempts" in str(exc_info.value)


@pytest.mark.asyncio
async def test_retryable_call_with_zero_retries_makes_one_attempt():
    attempts = 0

    async def down():
        nonlocal attempts
        attempts += 1
        raise ConnectionError("connection refused")

    with pytest.raises(RetryExhaustedError):
        await retryable_call("ListFlavors", down, RetryConfig(max_retries=0))

    assert attempts == 1


@pytest.mark.asyncio
async def test_cancellation_interrupts_backoff():
    """Cancelling the task during a long backoff returns promptly."""
    slow = RetryConfig(max_retries=3, initial_backoff=30.0, max_backoff=30.0)

    async def down():
        raise ConnectionError("connection refused")

    task = asyncio.create_task(retryable_call("ListNodePools", down, slow))
    await asyncio.sleep(0.05)

    start = time.monotonic()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert time.monotonic() - start < 1.0


def test_backoff_grows_without_jitter(mocker):
    mocker.patch("karpenter_ovhcloud.core.retry.random.random", return_value=0.5)
    cfg = RetryConfig(max_retries=10, initial_backoff=1.0, max_backoff=30.0, backoff_factor=2.0)

    backoffs = [calculate_backoff(attempt, cfg) for attempt in range(10)]

    assert backoffs[:4] == [1.0, 2.0, 4.0, 8.0]
    assert backoffs == sorted(backoffs)
    assert max(backoffs) == 30.0


@pytest.mark.parametrize("attempt", range(12))
def test_backoff_never_exceeds_cap_plus_jitter(attempt):
    cfg = RetryConfig(max_retries=12, initial_backoff=1.0, max_backoff=30.0, backoff_factor=2.0)
    for _ in range(50):
        backoff = calculate_backoff(attempt, cfg)
        assert 0 < backoff <= cfg.max_backoff * 1.25
        assert backoff >= min(cfg.initial_backoff * 2**attempt, cfg.max_backoff) * 0.75 - 1e-9


def test_backoff_jitter_bounds(mocker):
    cfg = RetryConfig(initial_backoff=4.0, max_backoff=30.0)

    mocker.patch("karpenter_ovhcloud.core.retry.random.random", return_value=0.0)
    assert calculate_backoff(0, cfg) == pytest.approx(3.0)

    mocker.patch("karpenter_ovhcloud.core.retry.random.random", return_value=1.0)
    assert calculate_backoff(0, cfg) == pytest.approx(5.0)
