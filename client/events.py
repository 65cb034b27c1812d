from __future__ import annotations
import asyncio
import inspect
from typing import Any, Callable, Dict, List, Set

from shared.log import get_logger

logger = get_logger(__name__)


EventHandler = Callable[[Any], Any]


class EventEmitter:
    """
    Observer lists keyed by event name.

    Handlers may be plain functions or coroutine functions. Plain handlers run
    inline during emit(); coroutines are scheduled as tasks on the running
    loop. A failing handler is logged and never stops the others.
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, List[EventHandler]] = {}
        self._background_tasks: Set[asyncio.Task] = set()

    def on(self, event: str, handler: EventHandler) -> None:
        self._handlers.setdefault(event, []).append(handler)

    def off(self, event: str, handler: EventHandler) -> None:
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def listener_count(self, event: str) -> int:
        return len(self._handlers.get(event, []))

    def emit(self, event: str, value: Any = None) -> None:
        # Copy so handlers can unsubscribe while being called
        for handler in list(self._handlers.get(event, [])):
            try:
                result = handler(value)
            except Exception:
                logger.exception("Handler for '%s' event failed", event)
                continue
            if inspect.isawaitable(result):
                self._track_background_task(asyncio.ensure_future(result), event)

    def _track_background_task(self, task: asyncio.Future, event: str) -> None:
        """Keep a strong reference to handler tasks until completion."""
        self._background_tasks.add(task)

        def _done(_task: asyncio.Future) -> None:
            self._background_tasks.discard(_task)
            if not _task.cancelled() and _task.exception() is not None:
                logger.error("Async handler for '%s' event failed: %s", event, _task.exception())

        task.add_done_callback(_done)
