from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class Timer:
    """
    Single-shot timer on an asyncio event loop.

    start() always cancels any pending firing before scheduling the next one,
    so at most one callback is outstanding per Timer.

    Example use:
        >>> loop = asyncio.new_event_loop()
        >>> t = Timer(loop, lambda: None, name="probe")
        >>> t.start(2.0)
        >>> t.active
        True
        >>> t.cancel()
        >>> loop.close()
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        callback: Callable[[], None],
        *,
        name: str = "timer",
    ) -> None:
        self._loop = loop
        self._callback = callback
        self._handle: Optional[asyncio.TimerHandle] = None
        self.name = name

    @property
    def active(self) -> bool:
        return self._handle is not None

    def start(self, delay: float) -> None:
        self.cancel()
        logger.debug("%s timer armed for %.1fs", self.name, delay)
        self._handle = self._loop.call_later(delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self._callback()
