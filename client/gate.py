from __future__ import annotations
import asyncio
import inspect
from collections import deque
from typing import Any, Awaitable, Callable, Deque, TypeVar, Union

from shared.log import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
Action = Callable[[], Union[T, Awaitable[T]]]


class ConnectionGate:
    """
    Admission point for operations that need a completed handshake.

    Closed on construction. While closed, callers of run() queue up and are
    admitted in arrival order once resume() is called. pause() closes the gate
    again; anyone queued afterwards waits until the next resume(). The gate
    only orders callers, the action's result or exception goes straight back
    to whoever called run().
    """

    def __init__(self) -> None:
        self._open = False
        self._waiters: Deque[asyncio.Future] = deque()

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def waiting(self) -> int:
        """Callers queued and not yet admitted."""
        return sum(1 for w in self._waiters if not w.done())

    def pause(self) -> None:
        if self._open:
            logger.debug("Gate paused")
        self._open = False

    def resume(self) -> None:
        if not self._open:
            logger.debug("Gate resumed, admitting %d queued caller(s)", self.waiting)
        self._open = True
        for waiter in self._waiters:
            if not waiter.done():
                waiter.set_result(None)

    def fail_waiting(self, make_error: Callable[[], BaseException]) -> None:
        """Fail every queued caller with a fresh make_error() instead of admitting it."""
        for waiter in self._waiters:
            if not waiter.done():
                waiter.set_exception(make_error())

    async def run(self, action: Action) -> Any:
        # Queue behind admitted-but-not-yet-running callers to keep FIFO order
        if not self._open or self._waiters:
            waiter = asyncio.get_running_loop().create_future()
            self._waiters.append(waiter)
            if self._open:
                waiter.set_result(None)
            try:
                await waiter
            finally:
                self._waiters.remove(waiter)

        result = action()
        if inspect.isawaitable(result):
            result = await result
        return result
