import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from .config import Settings
from .errors import GitHubAPIError, RetriesExhausted

logger = logging.getLogger(__name__)

T = TypeVar("T")

Classifier = Callable[[BaseException], Optional[float]]
Sleep = Callable[[float], Awaitable[None]]
RetryHook = Callable[[int, float, BaseException], None]


def backoff_for(exc: BaseException, settings: Settings) -> float:
    """Seconds to wait before retrying after ``exc``.

    Rate-limited GitHub responses (403/429) wait for the advised Retry-After,
    or ``settings.rate_limit_backoff`` when none was sent. Everything else
    waits ``settings.error_backoff``.
    """
    if isinstance(exc, GitHubAPIError) and exc.is_rate_limited:
        if exc.retry_after is not None:
            return exc.retry_after
        return settings.rate_limit_backoff
    return settings.error_backoff


def is_rate_limit(exc: BaseException) -> bool:
    return isinstance(exc, GitHubAPIError) and exc.is_rate_limited


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int,
    classify: Classifier,
    sleep: Sleep = asyncio.sleep,
    on_retry: Optional[RetryHook] = None,
) -> T:
    """Runs ``operation`` until it succeeds or ``attempts`` are used up.

    ``classify`` maps a failure to the wait before the next attempt; returning
    ``None`` marks the failure as not retryable and it is re-raised as is.
    ``on_retry(attempt, wait, exc)`` runs before each wait. There is no wait
    after the final attempt; ``RetriesExhausted`` carries the last failure.
    """
    last_error: Optional[BaseException] = None
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except Exception as exc:
            wait = classify(exc)
            if wait is None:
                raise
            last_error = exc
            logger.debug("Attempt %d of %d failed: %s", attempt, attempts, exc)
            if attempt == attempts:
                break
            if on_retry:
                on_retry(attempt, wait, exc)
            await sleep(wait)
    raise RetriesExhausted(attempts, last_error)
