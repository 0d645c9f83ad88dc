"""FIFO request queue that runs one operation at a time.

Every outbound API call goes through a single queue owned by the client
context.  After each operation settles, successfully or not, the queue
sleeps for the inter-request delay before starting the next, which caps
the outbound request rate no matter how fast callers enqueue work.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Operation = Callable[[], "Awaitable[Any] | Any"]

DEFAULT_DELAY_SECONDS = 0.15


class RequestQueue:
    """Serialises asynchronous operations with a fixed gap between them.

    Operations are zero-argument callables returning an awaitable (or a
    plain value).  Each one runs exactly once, in submission order, and
    its result or exception is delivered through the future returned by
    :meth:`enqueue`.  A failing operation never blocks the ones behind it.
    """

    def __init__(self, delay: float = DEFAULT_DELAY_SECONDS) -> None:
        self.delay = delay
        self._pending: deque[tuple[Operation, asyncio.Future[Any]]] = deque()
        self._processing = False
        self._worker: asyncio.Task[None] | None = None

    @property
    def pending(self) -> int:
        """Number of operations waiting to start."""
        return len(self._pending)

    @property
    def is_processing(self) -> bool:
        return self._processing

    def enqueue(self, operation: Callable[[], Awaitable[T] | T]) -> asyncio.Future[T]:
        """Queue *operation* and return a future for its outcome.

        Must be called from within a running event loop.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[T] = loop.create_future()
        self._pending.append((operation, future))
        if not self._processing:
            self._processing = True
            self._worker = loop.create_task(self._drain())
        return future

    async def _drain(self) -> None:
        try:
            while self._pending:
                operation, future = self._pending.popleft()
                try:
                    result = operation()
                    if inspect.isawaitable(result):
                        result = await result
                except Exception as exc:
                    if not future.done():
                        future.set_exception(exc)
                else:
                    if not future.done():
                        future.set_result(result)
                await asyncio.sleep(self.delay)
        finally:
            self._processing = False
            self._worker = None
