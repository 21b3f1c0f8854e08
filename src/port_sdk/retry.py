"""Retry/backoff policy for the request executors.

Only transient failures are retried: :class:`~port_sdk.exceptions.NetworkError`,
:class:`~port_sdk.exceptions.RequestTimeoutError`,
:class:`~port_sdk.exceptions.ServerError` and
:class:`~port_sdk.exceptions.RateLimitError`. A caller-cancelled request and
every other kind (auth, forbidden, not found, validation, generic) fail on
the first attempt.

Delays grow exponentially: ``base_delay_ms * 2**attempt`` (1 s, 2 s, 4 s, ...
with the defaults). A rate-limit error carrying a ``Retry-After`` hint waits
at least as long as the hint.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Optional

from port_sdk.exceptions import PortError, RateLimitError


def should_retry(error: BaseException, attempt: int, max_retries: int) -> bool:
    """Decide whether the failed attempt number *attempt* (0-based) is retried.

    At most *max_retries* retries follow the first attempt, so attempts
    ``0 .. max_retries - 1`` may be retried.
    """
    if attempt >= max_retries:
        return False
    return isinstance(error, PortError) and error.retryable


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff settings for one client.

    Args:
        max_retries: Retries allowed after the first attempt.
        base_delay_ms: Delay before the first retry.
        jitter_ms: Upper bound of a uniform random delay added to every
            wait; ``0`` disables jitter.
    """

    max_retries: int = 3
    base_delay_ms: float = 1000
    jitter_ms: float = 0

    def should_retry(self, error: BaseException, attempt: int) -> bool:
        return should_retry(error, attempt, self.max_retries)

    def delay_for(self, attempt: int, error: Optional[BaseException] = None) -> float:
        """Milliseconds to wait before the retry that follows *attempt*."""
        delay = self.base_delay_ms * (2 ** attempt)
        if isinstance(error, RateLimitError) and error.retry_after:
            delay = max(delay, error.retry_after * 1000)
        if self.jitter_ms:
            delay += random.uniform(0, self.jitter_ms)
        return delay
