# src/karpenter_ovhcloud/core/retry.py
"""
Retry executor for calls against the OVH control plane.

Any zero-argument coroutine factory can be wrapped. Failures are classified
as retryable (rate limiting, 5xx, transient network errors) or terminal.
Terminal errors propagate after a single attempt; retryable ones are retried
with capped exponential backoff and ±25% jitter until the attempt budget is
spent. Cancelling the calling task interrupts the backoff sleep at once.
"""

import asyncio
import logging
import random
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

import httpx
import ovh.exceptions

from .config import config
from .exceptions import RetryExhaustedError
from .metrics import MetricsSink

logger = logging.getLogger(__name__)

T = TypeVar("T")

JITTER_RATIO = 0.25

_TRANSIENT_MESSAGES = (
    "too many requests",
    "connection refused",
    "connection reset",
    "timeout",
    "timed out",
    "temporary failure",
)
_RETRYABLE_CODE_RE = re.compile(r"\b(429|5\d\d)\b")


@dataclass(frozen=True)
class RetryConfig:
    max_retries: int = 3
    initial_backoff: float = 1.0
    max_backoff: float = 30.0
    backoff_factor: float = 2.0

    @classmethod
    def from_config(cls) -> "RetryConfig":
        return cls(
            max_retries=config.API_MAX_RETRIES,
            initial_backoff=config.API_INITIAL_BACKOFF_SECONDS,
            max_backoff=config.API_MAX_BACKOFF_SECONDS,
            backoff_factor=config.API_BACKOFF_FACTOR,
        )


DEFAULT_RETRY_CONFIG = RetryConfig()


def _status_code(exc: BaseException) -> Optional[int]:
    response = getattr(exc, "response", None)
    status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def _is_retryable_status(status: int) -> bool:
    return status == 429 or 500 <= status <= 599


def is_retryable_error(exc: BaseException) -> bool:
    """Returns True when `exc` is worth retrying."""
    if exc is None or isinstance(exc, asyncio.CancelledError):
        return False

    if isinstance(exc, httpx.HTTPStatusError):
        return _is_retryable_status(exc.response.status_code)
    if isinstance(exc, (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError)):
        return True

    # ovh.exceptions.HTTPError is the SDK's wrapper for low-level transport failures.
    if isinstance(exc, (ovh.exceptions.HTTPError, ovh.exceptions.NetworkError)):
        return True

    status = _status_code(exc)
    if status is not None:
        return _is_retryable_status(status)

    if isinstance(exc, (ConnectionError, TimeoutError, asyncio.TimeoutError)):
        return True

    message = str(exc).lower()
    if any(fragment in message for fragment in _TRANSIENT_MESSAGES):
        return True
    return bool(_RETRYABLE_CODE_RE.search(message))


def calculate_backoff(attempt: int, retry_config: RetryConfig = DEFAULT_RETRY_CONFIG) -> float:
    """Backoff in seconds before retry number `attempt` (0-based)."""
    backoff = retry_config.initial_backoff * (retry_config.backoff_factor**attempt)
    backoff = min(backoff, retry_config.max_backoff)
    jitter = backoff * JITTER_RATIO * (random.random() * 2 - 1)
    return backoff + jitter


async def retryable_call(
    operation: str,
    call: Callable[[], Awaitable[T]],
    retry_config: RetryConfig = DEFAULT_RETRY_CONFIG,
    metrics: Optional[MetricsSink] = None,
) -> T:
    """
    Executes `call` with retry and backoff.

    Raises:
        RetryExhaustedError: When every attempt failed with a retryable error.
        asyncio.CancelledError: When the calling task is cancelled.
        Exception: Any terminal error raised by `call`, unchanged.
    """
    attempts = retry_config.max_retries + 1
    last_error: Optional[BaseException] = None

    for attempt in range(attempts):
        try:
            return await call()
        except Exception as exc:
            if not is_retryable_error(exc):
                raise
            last_error = exc

        if attempt < retry_config.max_retries:
            backoff = calculate_backoff(attempt, retry_config)
            logger.warning(
                "%s failed (attempt %d/%d): %s; retrying in %.2fs",
                operation,
                attempt + 1,
                attempts,
                last_error,
                backoff,
            )
            if metrics is not None:
                metrics.record_api_retry(operation)
            await asyncio.sleep(backoff)

    raise RetryExhaustedError(operation, attempts, last_error) from last_error
