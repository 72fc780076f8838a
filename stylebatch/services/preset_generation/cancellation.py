"""
Cooperative cancellation for in-flight generation jobs
"""

import asyncio
import logging
from typing import Awaitable, Optional, TypeVar

from stylebatch.core.exceptions import JobCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """Handle that lets a caller stop a poll loop it holds no reference to.

    Once cancelled a token stays cancelled.
    """

    def __init__(self, label: Optional[str] = None):
        self.label = label
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> bool:
        """Cancel the token. Returns False if it was already cancelled."""
        if self._event.is_set():
            return False
        self._event.set()
        logger.debug(f"Cancellation requested for {self.label or 'token'}")
        return True

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise JobCancelledError(self.label)

    async def sleep(self, delay: float) -> bool:
        """Wait for ``delay`` seconds. Returns False if cancelled before it elapsed."""
        if self._event.is_set():
            return False
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return True
        return False

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token is cancelled first.

        The pending awaitable is cancelled and ``JobCancelledError`` raised
        when the token fires before it finishes.
        """
        if self._event.is_set():
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise JobCancelledError(self.label)

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)

        if self._event.is_set():
            if not task.cancelled():
                # discarded
                task.exception()
            raise JobCancelledError(self.label)
        return task.result()
