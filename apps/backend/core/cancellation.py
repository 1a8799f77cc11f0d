"""
Cancellation token shared by every stage of a pipeline run.

The token is passed explicitly into each operation that can suspend. Firing it
makes pending sleeps and guarded awaits raise OperationCancelled right away.
"""
import asyncio
import logging
from typing import Any, Awaitable, Optional

from .errors import OperationCancelled

logger = logging.getLogger(__name__)


class CancellationToken:
    """One-shot cancellation signal backed by an asyncio.Event"""

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: Optional[str] = None):
        """Fire the token. Calling it again is a no-op."""
        if self._event.is_set():
            return
        self.reason = reason
        self._event.set()
        logger.info(f"[cancel] Cancellation requested{': ' + reason if reason else ''}")

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise OperationCancelled(self.reason or "operation cancelled")

    async def wait(self):
        """Block until the token fires."""
        await self._event.wait()

    async def sleep(self, delay: float):
        """
        Sleep for `delay` seconds unless the token fires first.

        Raises:
            OperationCancelled: if the token fires before the delay elapses
        """
        self.raise_if_cancelled()
        if delay <= 0:
            return
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        self.raise_if_cancelled()

    async def guard(self, awaitable: Awaitable[Any]) -> Any:
        """
        Await `awaitable`, abandoning it if the token fires first.

        The wrapped work is cancelled and awaited before OperationCancelled is
        raised, so nothing keeps running in the background.
        """
        if self._event.is_set():
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            self.raise_if_cancelled()

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for pending in (task, waiter):
                if not pending.done():
                    pending.cancel()
            await asyncio.gather(task, waiter, return_exceptions=True)

        if task.done() and not task.cancelled():
            return task.result()
        raise OperationCancelled(self.reason or "operation cancelled")
