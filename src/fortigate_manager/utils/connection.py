"""Retry helper and the result envelope returned by session operations.

The session itself never retries. `with_retry` is for callers that decide a
retry is appropriate, such as the server's startup auto-connect.
"""
import logging
from functools import wraps
from typing import Any, Awaitable, Callable, Optional

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_result,
    before_sleep_log,
)

logger = logging.getLogger(__name__)


class OperationResult:
    """Outcome of a session operation: a success flag plus a message."""

    def __init__(self, success: bool, message: str = ""):
        self.success = success
        self.message = message

    def to_dict(self) -> dict:
        return {"success": self.success, "message": self.message}

    def __bool__(self) -> bool:
        return self.success

    def __repr__(self) -> str:
        status = "OK" if self.success else "FAILED"
        return f"OperationResult({status}, {self.message!r})"


def _is_failed_result(result: Any) -> bool:
    return isinstance(result, OperationResult) and not result.success


def with_retry(
    max_attempts: int = 3,
    min_wait: float = 1,
    max_wait: float = 10,
) -> Callable:
    """Decorator factory retrying an async call while it returns a failed OperationResult.

    Waits grow exponentially between attempts. Exceptions are not retried;
    they propagate from the attempt that raised them.

    Args:
        max_attempts: Maximum number of attempts
        min_wait: Minimum wait time between retries (seconds)
        max_wait: Maximum wait time between retries (seconds)

    Returns:
        The first successful result, or the last failed one once attempts run out
    """
    def decorator(func: Callable[..., Awaitable[OperationResult]]) -> Callable[..., Awaitable[OperationResult]]:
        @retry(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
            retry=retry_if_result(_is_failed_result),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            retry_error_callback=_last_result,
            reraise=True,
        )
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> OperationResult:
            return await func(*args, **kwargs)

        return wrapper

    return decorator


def _last_result(retry_state) -> Optional[Any]:
    """Hand back the final attempt's outcome instead of raising RetryError."""
    outcome = retry_state.outcome
    if outcome.failed:
        raise outcome.exception()
    return outcome.result()
