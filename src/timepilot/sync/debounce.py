"""Cancellable scheduled task used for debounced writes."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

log = logging.getLogger(__name__)

# Default quiet period in seconds
_DEFAULT_DELAY = 1.0


class DebouncedTask:
    """Run an async action once the caller has been quiet for ``delay`` seconds.

    Each schedule() cancels the pending timer and starts a new one, so only
    the most recent request fires. flush() runs a pending action right away,
    which lets tests avoid waiting on real time.
    """

    def __init__(
        self,
        action: Callable[[], Awaitable[object]],
        delay: float = _DEFAULT_DELAY,
    ) -> None:
        self.action = action
        self.delay = delay
        self._timer: asyncio.Task | None = None

    @property
    def pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def schedule(self) -> None:
        """(Re)start the quiet-period timer. Needs a running event loop."""
        self.cancel()
        self._timer = asyncio.get_running_loop().create_task(self._wait_and_fire())

    def cancel(self) -> bool:
        """Drop the pending action, if any. Returns True if one was pending."""
        if not self.pending:
            return False
        self._timer.cancel()
        self._timer = None
        return True

    async def flush(self) -> bool:
        """Run the pending action now. Returns True if one was pending."""
        if not self.cancel():
            return False
        await self._fire()
        return True

    async def _wait_and_fire(self) -> None:
        await asyncio.sleep(self.delay)
        self._timer = None
        await self._fire()

    async def _fire(self) -> None:
        try:
            await self.action()
        except Exception:
            log.warning("Debounced action failed", exc_info=True)
