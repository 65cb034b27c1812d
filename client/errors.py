from __future__ import annotations
from typing import Optional


class HubError(Exception):
    """Base class for errors raised by the hub client."""
    pass


class HubRequestError(HubError):
    """The hub answered a register/lookup with a failure."""

    def __init__(self, reason: str, request_id: Optional[int] = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.request_id = request_id


class DuplicateRequestError(HubError):
    """A request_id was registered twice in the correlation table."""
    pass


class HubStateError(HubError):
    """An operation was used before the client had what it needs (e.g. no binding)."""
    pass


class HubClosedError(HubError):
    """The client was closed while the operation was pending or before it started."""
    pass


class HubTimeoutError(HubError):
    """No response arrived within the configured request_timeout."""

    def __init__(self, request_id: int, timeout: float) -> None:
        super().__init__(f"No response to request {request_id} after {timeout}s")
        self.request_id = request_id
        self.timeout = timeout
