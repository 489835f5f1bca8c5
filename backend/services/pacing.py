"""
Request pacing for outbound provider calls.

Keeps a minimum gap between consecutive calls in one batch pass so a burst
of due posts does not trip provider rate limits.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable


class RequestPacer:
    """Waits until at least ``interval_ms`` has passed since the last call."""

    def __init__(
        self,
        interval_ms: int,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.interval = max(interval_ms, 0) / 1000
        self._clock = clock
        self._sleep = sleep
        self._last: float | None = None

    async def wait(self) -> float:
        """
        Sleep for whatever is left of the interval.

        Returns:
            Seconds slept (0 for the first call of a pass)
        """
        slept = 0.0
        if self._last is not None and self.interval:
            remaining = self.interval - (self._clock() - self._last)
            if remaining > 0:
                await self._sleep(remaining)
                slept = remaining
        self._last = self._clock()
        return slept

    def reset(self) -> None:
        self._last = None
