"""
Retry policy for outbound deliveries.

Two pure functions drive every retry decision:

- ``delay_for`` maps the number of the *upcoming* attempt to a wait in seconds.
- ``should_retry`` classifies a failed attempt as transient or permanent.

``RetryPolicy`` bundles them with the configured base delay and optional cap.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from .domain.delivery import ErrorKind

BASE_DELAY_SECONDS = 30


def delay_for(
    attempt_number: int,
    base_delay: int = BASE_DELAY_SECONDS,
    max_delay: Optional[int] = None,
) -> int:
    """
    Backoff delay before *attempt_number*.

    ``base_delay * 2 ** (attempt_number - 1)``: 30, 60, 120, 240, ...

    Args:
        attempt_number: The attempt about to be scheduled (1-based)
        base_delay: Delay before the first attempt
        max_delay: Optional upper bound; None leaves growth uncapped

    Raises:
        ValueError: If attempt_number is less than 1
    """
    if attempt_number < 1:
        raise ValueError(f"attempt_number must be >= 1, got {attempt_number}")

    delay = base_delay * 2 ** (attempt_number - 1)
    if max_delay is not None:
        return min(delay, max_delay)
    return delay


def should_retry(error_kind: Optional[ErrorKind], http_status: Optional[int] = None) -> bool:
    """
    Decide whether a failed attempt is worth another try.

    Rules, first match wins:
        status >= 500            -> retry
        status == 429            -> retry
        400 <= status < 500      -> give up
        permanent error kind     -> give up
        timeout / network error  -> retry
        anything else            -> retry
    """
    if http_status is not None:
        if http_status >= 500:
            return True
        if http_status == 429:
            return True
        if 400 <= http_status < 500:
            return False

    if error_kind == ErrorKind.PERMANENT:
        return False
    if error_kind in (ErrorKind.TIMEOUT, ErrorKind.NETWORK):
        return True

    # Unclassified failures are retried rather than silently dropped
    return True


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff settings applied by the batch coordinator."""

    base_delay: int = BASE_DELAY_SECONDS
    max_delay: Optional[int] = None

    def delay_for(self, attempt_number: int) -> int:
        return delay_for(attempt_number, self.base_delay, self.max_delay)

    def should_retry(self, error_kind: Optional[ErrorKind], http_status: Optional[int] = None) -> bool:
        return should_retry(error_kind, http_status)

    def next_attempt_at(self, now: datetime, attempts_made: int) -> tuple[datetime, int]:
        """Due time and delay for the attempt after *attempts_made* completed ones."""
        delay = self.delay_for(attempts_made + 1)
        return now + timedelta(seconds=delay), delay
