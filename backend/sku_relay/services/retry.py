"""Generic retry-with-linear-backoff for async operations"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from sku_relay.config.upload_config import RETRY_BACKOFF_BASE_MS, RETRY_MAX_ATTEMPTS
from sku_relay.services.exceptions import ProcessingFailed

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = RETRY_MAX_ATTEMPTS
    backoff_base_ms: int = RETRY_BACKOFF_BASE_MS

    def delay_before(self, attempt: int) -> float:
        """Seconds to wait before ``attempt`` (1-based); 0 for the first."""
        if attempt <= 1:
            return 0.0
        return self.backoff_base_ms * (attempt - 1) / 1000


async def retry_with_backoff(
    operation: Callable[[int], Awaitable[T]],
    policy: RetryPolicy = RetryPolicy(),
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    retryable: Callable[[BaseException], bool] = lambda exc: True,
    on_retry: Optional[Callable[[int, BaseException], None]] = None,
) -> T:
    """
    Run ``operation(attempt)`` until it succeeds or the policy is exhausted.

    Raises:
        ProcessingFailed: wrapping the last error, after ``max_attempts``
            failures or on the first non-retryable one
    """
    last_error: Optional[BaseException] = None
    attempts = max(1, policy.max_attempts)

    for attempt in range(1, attempts + 1):
        delay = policy.delay_before(attempt)
        if delay:
            await sleep(delay)
        try:
            return await operation(attempt)
        except Exception as exc:
            last_error = exc
            if not retryable(exc):
                raise ProcessingFailed(exc, attempt) from exc
            if attempt < attempts:
                if on_retry is not None:
                    on_retry(attempt, exc)
                logger.warning(f"Attempt {attempt}/{attempts} failed: {exc}")

    raise ProcessingFailed(last_error, attempts) from last_error
