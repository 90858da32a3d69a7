"""Bridge from the relay thread to the asyncio response body."""
from __future__ import annotations

import asyncio
import concurrent.futures
from typing import Any, AsyncIterator

from fastapi.responses import StreamingResponse
from starlette.types import Receive, Scope, Send

from src.shared.constants import RESPONSE_QUEUE_SIZE
from src.shared.errors import StreamClosedError

_END = object()

# How often a blocked producer rechecks whether the consumer went away.
_POLL_SECONDS = 0.5


class ResponseChannel:
    """Bounded, thread-safe line channel consumed by a streaming response.

    Producers on other threads call :meth:`write`, which blocks while the
    queue is full, so a slow client slows the relay down instead of the
    daemon buffering the whole build log. The event loop drains the channel
    with ``async for``; each chunk becomes its own ASGI body message, so the
    client sees every line as soon as it is written.

    Producers must never run on the event loop's own thread.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        maxsize: int = RESPONSE_QUEUE_SIZE,
    ) -> None:
        self._loop = loop
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=maxsize)
        self._closed_event = asyncio.Event()
        self._closed = False
        self._finished = False

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        return self._queue.qsize()

    async def _put(self, item: object) -> None:
        if self._closed:
            raise StreamClosedError("response stream closed by client")
        put = asyncio.ensure_future(self._queue.put(item))
        closed = asyncio.ensure_future(self._closed_event.wait())
        try:
            done, _ = await asyncio.wait(
                {put, closed}, return_when=asyncio.FIRST_COMPLETED
            )
        except BaseException:
            put.cancel()
            closed.cancel()
            raise
        closed.cancel()
        if put not in done:
            put.cancel()
            raise StreamClosedError("response stream closed by client")

    def _post(self, item: object) -> None:
        if self._closed:
            raise StreamClosedError("response stream closed by client")
        coro = self._put(item)
        try:
            future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        except RuntimeError as exc:
            # Event loop already shut down.
            coro.close()
            self._closed = True
            raise StreamClosedError(str(exc)) from exc

        while True:
            try:
                future.result(timeout=_POLL_SECONDS)
                return
            except concurrent.futures.TimeoutError:
                if self._loop.is_closed() or not self._loop.is_running():
                    future.cancel()
                    self._closed = True
                    raise StreamClosedError("event loop stopped") from None
            except concurrent.futures.CancelledError as exc:
                raise StreamClosedError("response stream closed by client") from exc

    def write(self, data: bytes) -> None:
        self._post(data)

    def flush(self) -> None:
        if self._closed:
            raise StreamClosedError("response stream closed by client")

    def finish(self) -> None:
        """Post end-of-stream. Producers must not write afterwards."""
        if self._finished:
            return
        self._finished = True
        if not self._closed:
            try:
                self._post(_END)
            except StreamClosedError:
                pass

    def close(self) -> None:
        """Mark the consumer gone; blocked and later writes raise StreamClosedError."""
        self._closed = True
        try:
            self._loop.call_soon_threadsafe(self._closed_event.set)
        except RuntimeError:
            pass

    async def __aiter__(self) -> AsyncIterator[bytes]:
        try:
            while True:
                item = await self._queue.get()
                if item is _END:
                    return
                yield item  # type: ignore[misc]
        finally:
            self.close()


class ChannelStreamingResponse(StreamingResponse):
    """Streams a :class:`ResponseChannel` and closes it however sending ends.

    Closing on every exit, including a client that vanishes before the body
    is ever iterated, is what unblocks a relay waiting on a full channel.
    """

    def __init__(self, channel: ResponseChannel, **kwargs: Any) -> None:
        super().__init__(channel, **kwargs)
        self.channel = channel

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            self.channel.close()
