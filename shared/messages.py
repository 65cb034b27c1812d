from __future__ import annotations

from enum import Enum
from typing import Set


class MessageType(str, Enum):
    """Hub signalling message types (the ``type`` discriminant on the wire)."""

    # Handshake, sent once by the hub per connection
    BINDING = "binding"

    # Relay between peers, uninterpreted by the hub
    FORWARD = "forward"

    # Hostname registration
    REGISTER = "register"
    REGISTER_OK = "register-ok"
    REGISTER_FAIL = "register-fail"

    # Hostname lookup
    LOOKUP = "lookup"
    LOOKUP_OK = "lookup-ok"
    LOOKUP_FAIL = "lookup-fail"

    @classmethod
    def is_valid(cls, value: str) -> bool:
        """Check if string is a valid message type."""
        try:
            cls(value)
            return True
        except ValueError:
            return False


class ConnectionState(str, Enum):
    """Client connection lifecycle."""
    AWAITING_HANDSHAKE = "awaiting-handshake"
    READY = "ready"
    PAUSED = "paused"


# Hub -> client responses that complete a pending request successfully
SUCCESS_MESSAGES: Set[MessageType] = {
    MessageType.REGISTER_OK,
    MessageType.LOOKUP_OK,
}

# Hub -> client responses that fail a pending request
FAILURE_MESSAGES: Set[MessageType] = {
    MessageType.REGISTER_FAIL,
    MessageType.LOOKUP_FAIL,
}

