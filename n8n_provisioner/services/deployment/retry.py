"""Retry policy and retry loop for remote n8n calls.

Delay formula: min(initial_delay * (backoff_multiplier ^ attempt), max_delay)
Rate-limited responses wait at least ``rate_limit_delay`` and never less than
the server's Retry-After.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

import httpx

from n8n_provisioner.constants import RATE_LIMIT_STATUS, TRANSIENT_SERVER_STATUSES
from n8n_provisioner.core.config import Settings
from n8n_provisioner.core.logging import get_logger, log_remote_call
from n8n_provisioner.services.n8n.exceptions import N8nApiError, N8nConnectionError

logger = get_logger(__name__)

T = TypeVar("T")


class ErrorClass(str, Enum):
    """How a failed remote call is treated by the retry loop."""
    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient"
    FATAL = "fatal"


def classify_error(error: BaseException) -> ErrorClass:
    """Classify an exception raised by a remote call.

    Auth, validation and not-found responses are fatal: repeating them
    cannot succeed.
    """
    if isinstance(error, N8nApiError):
        if error.status_code == RATE_LIMIT_STATUS:
            return ErrorClass.RATE_LIMITED
        if error.status_code in TRANSIENT_SERVER_STATUSES:
            return ErrorClass.TRANSIENT
        return ErrorClass.FATAL
    if isinstance(error, (N8nConnectionError, httpx.TimeoutException, httpx.NetworkError)):
        return ErrorClass.TRANSIENT
    if isinstance(error, (ConnectionError, TimeoutError)):
        return ErrorClass.TRANSIENT
    return ErrorClass.FATAL


@dataclass
class RetryPolicy:
    """Retry configuration for remote calls made during a deployment.

    ``max_retries`` counts retries, so a call is attempted at most
    ``1 + max_retries`` times.
    """
    max_retries: int = 3
    initial_delay: float = 1.0       # seconds
    max_delay: float = 30.0          # seconds
    backoff_multiplier: float = 2.0
    rate_limit_delay: float = 5.0    # seconds, floor for 429 responses

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay before the next attempt.

        Args:
            attempt: Current attempt number (0-indexed)

        Returns:
            Delay in seconds before next attempt
        """
        delay = self.initial_delay * (self.backoff_multiplier ** attempt)
        return min(delay, self.max_delay)

    def delay_for(self, error: BaseException, attempt: int) -> float:
        """Delay before retrying after ``error`` on ``attempt``."""
        delay = self.calculate_delay(attempt)
        if classify_error(error) is ErrorClass.RATE_LIMITED:
            delay = max(delay, self.rate_limit_delay)
            retry_after = getattr(error, "retry_after", None)
            if retry_after is not None:
                delay = max(delay, retry_after)
        return delay

    def should_retry(self, error: BaseException, attempt: int) -> bool:
        """Determine if a failed call should be attempted again.

        Args:
            error: Exception raised by the call
            attempt: Attempt that just failed (0-indexed)
        """
        if attempt >= self.max_retries:
            return False
        return classify_error(error) is not ErrorClass.FATAL

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "max_retries": self.max_retries,
            "initial_delay": self.initial_delay,
            "max_delay": self.max_delay,
            "backoff_multiplier": self.backoff_multiplier,
            "rate_limit_delay": self.rate_limit_delay,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RetryPolicy":
        """Create from dict."""
        return cls(
            max_retries=data.get("max_retries", 3),
            initial_delay=data.get("initial_delay", 1.0),
            max_delay=data.get("max_delay", 30.0),
            backoff_multiplier=data.get("backoff_multiplier", 2.0),
            rate_limit_delay=data.get("rate_limit_delay", 5.0),
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_retries=settings.deploy_max_retries,
            initial_delay=settings.deploy_retry_delay,
            max_delay=settings.deploy_retry_max_delay,
            rate_limit_delay=settings.deploy_rate_limit_delay,
        )


NO_RETRY = RetryPolicy(max_retries=0)


async def retry_call(
    operation: str,
    func: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    **log_context: Any,
) -> T:
    """Await ``func()`` until it succeeds, fails fatally, or retries run out.

    The last error is re-raised unchanged on exhaustion. ``CancelledError``
    is never caught, so cancelling the caller stops the loop immediately.
    """
    policy = policy or RetryPolicy()
    attempt = 0

    while True:
        try:
            result = await func()
        except Exception as e:
            if not policy.should_retry(e, attempt):
                log_remote_call(logger, operation, success=False, attempts=attempt + 1,
                                error=str(e), error_class=classify_error(e).value, **log_context)
                raise

            delay = policy.delay_for(e, attempt)
            logger.warning("Remote call failed, retrying", operation=operation,
                           attempt=attempt + 1, delay=delay, error=str(e), **log_context)
            await sleep(delay)
            attempt += 1
            continue

        log_remote_call(logger, operation, success=True, attempts=attempt + 1, **log_context)
        return result
