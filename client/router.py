from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Dict, Union

from shared.envelope import (
    Binding,
    Forward,
    LookupFail,
    LookupOk,
    MalformedMessageError,
    Message,
    RegisterFail,
    RegisterOk,
    decode_message,
)
from shared.messages import FAILURE_MESSAGES, SUCCESS_MESSAGES, MessageType
from shared.log import get_logger

if TYPE_CHECKING:
    from client.hub import HubClient

logger = get_logger(__name__)

MISSING_REASON = "unspecified"

# Type alias for handler functions
MessageHandler = Callable[["HubClient", Message], None]


# ========================================
#           HANDLERS
# ========================================

def handle_binding(hub: "HubClient", message: Binding) -> None:
    hub._set_binding(message)


def handle_forward(hub: "HubClient", message: Forward) -> None:
    logger.debug("Forward from %s", message.from_, extra={"msg_type": message.type.value})
    hub.events.emit("forward", message)


def handle_success(hub: "HubClient", message: Union[RegisterOk, LookupOk]) -> None:
    logger.debug("Request succeeded", extra={"request_id": message.request_id, "msg_type": message.type.value})
    hub.table.resolve(message.request_id, message)


def handle_failure(hub: "HubClient", message: Union[RegisterFail, LookupFail]) -> None:
    logger.debug("Request failed: %s", message.reason,
                 extra={"request_id": message.request_id, "msg_type": message.type.value})
    hub.table.reject(message.request_id, message.reason)


HANDLER_REGISTRY: Dict[MessageType, MessageHandler] = {
    MessageType.BINDING: handle_binding,
    MessageType.FORWARD: handle_forward,
    **{msg_type: handle_success for msg_type in SUCCESS_MESSAGES},
    **{msg_type: handle_failure for msg_type in FAILURE_MESSAGES},
}


class MessageRouter:
    """
    Decodes inbound frames and applies each one to the client.

    dispatch() runs to completion for one frame before the transport hands it
    the next, and it never raises: frames that cannot be decoded are reported
    on the client's 'error' event instead.
    """

    def __init__(self, hub: "HubClient", registry: Dict[MessageType, MessageHandler] = HANDLER_REGISTRY) -> None:
        self.hub = hub
        self.registry = registry

    def dispatch(self, raw: Union[str, bytes]) -> None:
        try:
            message = decode_message(raw)
        except MalformedMessageError as e:
            logger.warning("Dropping malformed frame: %s", e)
            self.hub.events.emit("error", e)
            if e.request_id is not None and MessageType.is_valid(e.msg_type or "") \
                    and MessageType(e.msg_type) in FAILURE_MESSAGES:
                # The request failed even if the hub gave no usable reason
                self.hub.table.reject(e.request_id, MISSING_REASON)
            return

        handler = self.registry.get(message.type) if isinstance(message.type, MessageType) else None
        if handler is None:
            # Unknown types and echoed requests are not ours to handle
            msg_type = getattr(message.type, "value", message.type)
            logger.debug("Ignoring message", extra={"msg_type": msg_type})
            return
        handler(self.hub, message)
