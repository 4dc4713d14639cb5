"""Rate-limit retry around extraction calls."""

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.services.extraction_service import RateLimitedError
from src.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_INITIAL_BACKOFF = 5.0


def _log_retry(retry_state: RetryCallState) -> None:
    logger.warning(
        "Extraction rate limited, backing off",
        attempt=retry_state.attempt_number,
        backoff_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
    )


async def call_with_rate_limit_retry(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    initial_backoff: float = DEFAULT_INITIAL_BACKOFF,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    **kwargs: Any,
) -> T:
    """
    Await ``func`` and retry only while it raises RateLimitedError.

    Backoff starts at ``initial_backoff`` seconds and doubles after each
    retried attempt (5s, 10s, 20s, ...). When attempts run out the last
    RateLimitedError is re-raised. Any other exception propagates on the
    first occurrence.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=initial_backoff, exp_base=2, min=initial_backoff),
        retry=retry_if_exception_type(RateLimitedError),
        before_sleep=_log_retry,
        sleep=sleep,
        reraise=True,
    )
    return await retrying(func, *args, **kwargs)
