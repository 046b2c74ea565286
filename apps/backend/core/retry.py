"""
Retry policy for fallible async operations, built on tenacity.

Delays are deterministic (no jitter): with exponential backoff the wait
before retry N is retry_delay * 2 ** (N - 1), otherwise retry_delay.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_fixed,
)

from core.event_log import EventLog
from core.scraper_config import DEFAULT_SETTINGS, ScraperSettings

logger = logging.getLogger(__name__)

T = TypeVar('T')


class RetryOptions:
    def __init__(
        self,
        max_retries: int = DEFAULT_SETTINGS['max_retries'],
        retry_delay: float = DEFAULT_SETTINGS['retry_delay'],
        exponential_backoff: bool = DEFAULT_SETTINGS['exponential_backoff'],
    ):
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {max_retries}")
        if retry_delay < 0:
            raise ValueError(f"retry_delay must be >= 0, got {retry_delay}")
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.exponential_backoff = exponential_backoff

    @classmethod
    def from_settings(cls, settings: ScraperSettings, max_retries: Optional[int] = None) -> 'RetryOptions':
        return cls(
            max_retries=settings.max_retries if max_retries is None else max_retries,
            retry_delay=settings.retry_delay,
            exponential_backoff=settings.exponential_backoff,
        )

    def delay_for(self, retry_number: int) -> float:
        """Seconds slept before the given retry (1-based)."""
        if self.exponential_backoff:
            return self.retry_delay * (2 ** (retry_number - 1))
        return self.retry_delay

    def __repr__(self):
        return (f"RetryOptions(max_retries={self.max_retries}, retry_delay={self.retry_delay}, "
                f"exponential_backoff={self.exponential_backoff})")


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    site_label: Optional[str],
    options: Optional[RetryOptions] = None,
    event_log: Optional[EventLog] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Run `operation`, retrying on any exception.

    The operation is invoked at most max_retries + 1 times. Once attempts
    are exhausted the last exception is re-raised unchanged.

    Args:
        operation: Zero-argument coroutine function to run
        site_label: Site name used to tag log events
        options: Retry configuration (defaults to RetryOptions())
        event_log: Run event log; falls back to the module logger
        sleep: Awaitable sleep used between attempts (injectable for tests)
    """
    opts = options or RetryOptions()
    event_log = event_log or EventLog()

    def after_attempt(retry_state: RetryCallState):
        error = retry_state.outcome.exception()
        event_log.warn(f"Attempt {retry_state.attempt_number} failed", site_label, {'error': str(error)})

    def before_sleep(retry_state: RetryCallState):
        delay = retry_state.next_action.sleep if retry_state.next_action else 0
        event_log.info(f"Retry attempt {retry_state.attempt_number}/{opts.max_retries} after {delay:.2f}s", site_label)

    if opts.exponential_backoff:
        wait = wait_exponential(multiplier=opts.retry_delay, exp_base=2)
    else:
        wait = wait_fixed(opts.retry_delay)

    retrying = AsyncRetrying(
        stop=stop_after_attempt(opts.max_retries + 1),
        wait=wait,
        retry=retry_if_exception_type(Exception),
        after=after_attempt,
        before_sleep=before_sleep,
        reraise=True,
        sleep=sleep,
    )

    try:
        async for attempt in retrying:
            with attempt:
                result = await operation()
    except Exception as e:
        event_log.error("All retry attempts exhausted", site_label, {'error': str(e)})
        raise

    return result
