"""
Bounded hand-off queue between pipeline stages.

A Channel is an asyncio.Queue with close semantics: after close() the
consumers drain what is left and then see the end of the stream. Any number
of consumers may read from one channel.
"""
import asyncio
from typing import Any, Optional

from core.cancellation import CancellationToken

_CLOSED = object()


class ChannelClosed(Exception):
    """Raised by receive() once the channel is closed and drained."""


class Channel:
    """Bounded multi-consumer queue that can be closed by its producer side"""

    def __init__(self, maxsize: int = 100):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        return self._queue.qsize()

    async def send(self, item: Any, token: Optional[CancellationToken] = None):
        """
        Put `item`, waiting while the channel is full.

        Raises:
            ChannelClosed: the channel was already closed
            OperationCancelled: the token fired while waiting for space
        """
        if self._closed:
            raise ChannelClosed("send on closed channel")
        if token is None:
            await self._queue.put(item)
        else:
            await token.guard(self._queue.put(item))

    def close(self):
        """Mark the end of the stream. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        # A full queue has no waiting consumers; they will see closed+empty after draining
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            pass

    async def receive(self, token: Optional[CancellationToken] = None) -> Any:
        """
        Take the next item.

        Raises:
            ChannelClosed: the channel is closed and drained
            OperationCancelled: the token fired while waiting
        """
        if self._closed and self._queue.empty():
            raise ChannelClosed()

        if token is None:
            item = await self._queue.get()
        else:
            item = await token.guard(self._queue.get())

        if item is _CLOSED:
            # Leave the marker for the other consumers
            self._queue.put_nowait(_CLOSED)
            raise ChannelClosed()

        if self._closed and self._queue.empty():
            # close() found the queue full; wake consumers still parked in get()
            self._queue.put_nowait(_CLOSED)
        return item

    def __aiter__(self):
        return self

    async def __anext__(self) -> Any:
        try:
            return await self.receive()
        except ChannelClosed:
            raise StopAsyncIteration
