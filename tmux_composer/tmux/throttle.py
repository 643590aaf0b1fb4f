"""Trailing throttle that coalesces bursts into one call."""

from __future__ import annotations

import asyncio
from typing import Callable


class Throttle:
    """Run ``callback`` once ``interval_s`` after the first of a burst of calls.

    Calls made while a run is already scheduled are folded into it, so at
    most one run happens per interval.
    """

    def __init__(
        self,
        callback: Callable[[], None],
        interval_s: float,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.callback = callback
        self.interval_s = interval_s
        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def __call__(self) -> None:
        if self._handle is not None:
            return
        loop = self._loop or asyncio.get_running_loop()
        self._handle = loop.call_later(self.interval_s, self._fire)

    def _fire(self) -> None:
        self._handle = None
        self.callback()

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
