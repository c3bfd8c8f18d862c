"""Retry utilities using tenacity.

Concurrent git processes (an editor integration, a fetch, another review
session) can briefly hold the notes ref lock. Note writes are retried on that
condition only; every other git failure propagates immediately.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from tenacity import (
    RetryCallState,
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from diffnotes.domain.config.retry import RetryConfig

logger = logging.getLogger(__name__)

_LOCK_MARKERS = (
    "cannot lock ref",
    "unable to create",
    ".lock': file exists",
    "another git process seems to be running",
)


def is_lock_contention(exception: BaseException) -> bool:
    """Check if a git failure was caused by a held ref/index lock."""
    stderr = getattr(exception, "stderr", None) or str(exception)
    lowered = stderr.lower()
    return any(marker in lowered for marker in _LOCK_MARKERS)


def create_retry_decorator(
    retry_config: RetryConfig,
    retry_condition: Callable[[BaseException], bool],
    before_sleep: Callable[[RetryCallState], None] | None = None,
) -> Callable[[Callable], Callable]:
    """Create a retry decorator with tenacity.

    Args:
        retry_config: Retry configuration
        retry_condition: Function that returns True if exception should be retried
        before_sleep: Optional callback before sleep (defaults to logging)

    Returns:
        Retry decorator
    """
    # Exponential backoff: initial_delay * (backoff_multiplier ^ attempt)
    wait = wait_exponential(
        multiplier=retry_config.initial_delay,
        exp_base=retry_config.backoff_multiplier,
        min=retry_config.initial_delay,
        max=10.0,
    )

    if retry_config.jitter > 0:
        jitter_amount = retry_config.initial_delay * retry_config.jitter
        wait = wait + wait_random(0, jitter_amount)

    if before_sleep is None:
        before_sleep = before_sleep_log(logger, logging.WARNING)

    def decorator(func: Callable) -> Callable:
        return retry(
            stop=stop_after_attempt(retry_config.max_attempts),
            wait=wait,
            retry=retry_if_exception(retry_condition),
            reraise=True,
            before_sleep=before_sleep,
        )(func)

    return decorator


def retry_on_lock(retry_config: Optional[RetryConfig] = None) -> Callable[[Callable], Callable]:
    """Create a retry decorator for git calls that take the notes ref lock."""
    retry_config = retry_config or RetryConfig()

    def _before_sleep_log(retry_state: RetryCallState) -> None:
        if retry_state.outcome is None:
            return
        exception = retry_state.outcome.exception()
        attempt = retry_state.attempt_number
        logger.warning(
            f"Git ref locked (attempt {attempt}/{retry_config.max_attempts}): {exception}. Retrying..."
        )

    return create_retry_decorator(retry_config, is_lock_contention, _before_sleep_log)


def call_with_lock_retry(
    retry_config: Optional[RetryConfig], func: Callable[..., Any], *args: Any, **kwargs: Any
) -> Any:
    """Invoke func, retrying while git reports lock contention."""
    return retry_on_lock(retry_config)(func)(*args, **kwargs)
