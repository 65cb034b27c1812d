from __future__ import annotations
import asyncio
from typing import Any, Callable, Dict

from client.errors import DuplicateRequestError, HubRequestError
from shared.log import get_logger

logger = get_logger(__name__)


class CorrelationTable:
    """
    Pending requests keyed by request_id.

    Each slot is a single-use asyncio future. A slot is removed as soon as it
    is completed, or when its waiter gives up (cancellation, timeout), so the
    table only ever holds requests that are still waiting on the hub.
    """

    def __init__(self) -> None:
        self._pending: Dict[int, asyncio.Future] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._pending

    def wait(self, request_id: int) -> asyncio.Future:
        """
        Register a slot for request_id and return the future that completes it.

        Raises:
            DuplicateRequestError: request_id already has a pending slot
        """
        if request_id in self._pending:
            raise DuplicateRequestError(f"request_id {request_id} is already pending")
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future

        def _discard(fut: asyncio.Future) -> None:
            # Only drop our own slot; the id is never reused but stay exact
            if self._pending.get(request_id) is fut:
                del self._pending[request_id]

        future.add_done_callback(_discard)
        return future

    def resolve(self, request_id: int, payload: Any) -> None:
        future = self._take(request_id)
        if future is not None:
            future.set_result(payload)

    def reject(self, request_id: int, reason: str) -> None:
        future = self._take(request_id)
        if future is not None:
            future.set_exception(HubRequestError(reason, request_id))

    def discard(self, request_id: int) -> None:
        """Drop a slot whose caller stopped waiting; its future is cancelled."""
        future = self._pending.pop(request_id, None)
        if future is not None and not future.done():
            future.cancel()

    def reject_all(self, make_error: Callable[[], BaseException]) -> int:
        """Fail every pending slot with a fresh make_error(). Returns how many were failed."""
        futures = list(self._pending.values())
        self._pending.clear()
        count = 0
        for future in futures:
            if not future.done():
                future.set_exception(make_error())
                count += 1
        return count

    def _take(self, request_id: int) -> asyncio.Future | None:
        future = self._pending.pop(request_id, None)
        if future is None:
            # Only a misbehaving hub answers an id nobody is waiting for
            logger.debug("No pending request for response", extra={"request_id": request_id})
            return None
        if future.done():
            logger.debug("Pending request already completed", extra={"request_id": request_id})
            return None
        return future
