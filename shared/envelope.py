from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Union
import json

from shared.messages import MessageType
from shared.utils import is_json_object, is_request_id


class MalformedMessageError(Exception):
    """
    Raised when an inbound frame cannot be classified or is missing fields.

    msg_type and request_id are filled in when the frame got far enough to
    name them, so a broken response can still be matched to its request.
    """

    def __init__(self, detail: str, *, msg_type: Optional[str] = None, request_id: Optional[int] = None) -> None:
        super().__init__(detail)
        self.msg_type = msg_type
        self.request_id = request_id


class UnknownTypeError(MalformedMessageError):
    """Raised when encoding is asked for a message type the codec does not know."""
    pass


# ========================================
#           MESSAGE SHAPES
# ========================================
"""
Every frame on the wire is one JSON object:
{
  "type": "binding" | "forward" | "register" | "register-ok" | ...,
  ...fields
}

Success responses (register-ok, lookup-ok) carry arbitrary extra fields;
everything other than "type" and "request_id" is collected into `payload`.
"""


@dataclass(frozen=True)
class Binding:
    """Handshake: the address and transport configuration for this connection."""
    address: str
    configuration: Dict[str, Any] = field(default_factory=dict)
    type: MessageType = field(default=MessageType.BINDING, init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "address": self.address, "configuration": self.configuration}


@dataclass
class Forward:
    """Opaque payload relayed from one peer to another through the hub."""
    to: str
    from_: str          # renamed to avoid keyword collision
    data: Any = None
    type: MessageType = field(default=MessageType.FORWARD, init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "to": self.to, "from": self.from_, "data": self.data}


@dataclass
class Register:
    request_id: int
    hostname: str
    type: MessageType = field(default=MessageType.REGISTER, init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "request_id": self.request_id, "hostname": self.hostname}


@dataclass
class RegisterOk:
    request_id: int
    payload: Dict[str, Any] = field(default_factory=dict)
    type: MessageType = field(default=MessageType.REGISTER_OK, init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {**self.payload, "type": self.type.value, "request_id": self.request_id}


@dataclass
class RegisterFail:
    request_id: int
    reason: str
    type: MessageType = field(default=MessageType.REGISTER_FAIL, init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "request_id": self.request_id, "reason": self.reason}


@dataclass
class Lookup:
    request_id: int
    hostname: str
    type: MessageType = field(default=MessageType.LOOKUP, init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "request_id": self.request_id, "hostname": self.hostname}


@dataclass
class LookupOk:
    request_id: int
    payload: Dict[str, Any] = field(default_factory=dict)
    type: MessageType = field(default=MessageType.LOOKUP_OK, init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {**self.payload, "type": self.type.value, "request_id": self.request_id}


@dataclass
class LookupFail:
    request_id: int
    reason: str
    type: MessageType = field(default=MessageType.LOOKUP_FAIL, init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "request_id": self.request_id, "reason": self.reason}


@dataclass
class UnknownMessage:
    """A well-formed frame whose discriminant this client does not know."""
    type: str
    fields: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {**self.fields, "type": self.type}


Message = Union[
    Binding, Forward, Register, RegisterOk, RegisterFail,
    Lookup, LookupOk, LookupFail, UnknownMessage,
]


# ========================================
#           DECODING
# ========================================

def _require_str(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise MalformedMessageError(f"'{key}' must be a string in {data.get('type')!r} message")
    return value


def _require_request_id(data: Dict[str, Any]) -> int:
    value = data.get("request_id")
    if not is_request_id(value):
        raise MalformedMessageError(f"'request_id' must be a non-negative integer in {data.get('type')!r} message")
    return value


def _success_payload(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if k not in ("type", "request_id")}


def _decode_binding(data: Dict[str, Any]) -> Binding:
    configuration = data.get("configuration", {})
    if configuration is None:
        configuration = {}
    if not is_json_object(configuration):
        raise MalformedMessageError("'configuration' must be an object in 'binding' message")
    return Binding(address=_require_str(data, "address"), configuration=configuration)


def _decode_forward(data: Dict[str, Any]) -> Forward:
    return Forward(to=_require_str(data, "to"), from_=_require_str(data, "from"), data=data.get("data"))


def _decode_failure(cls: Callable[[int, str], Message]) -> Callable[[Dict[str, Any]], Message]:
    def decode(data: Dict[str, Any]) -> Message:
        request_id = _require_request_id(data)
        reason = data.get("reason")
        if not isinstance(reason, str):
            raise MalformedMessageError(
                f"'reason' must be a string in {data['type']!r} message",
                msg_type=data["type"],
                request_id=request_id,
            )
        return cls(request_id, reason)
    return decode


_DECODERS: Dict[MessageType, Callable[[Dict[str, Any]], Message]] = {
    MessageType.BINDING: _decode_binding,
    MessageType.FORWARD: _decode_forward,
    MessageType.REGISTER: lambda d: Register(_require_request_id(d), _require_str(d, "hostname")),
    MessageType.REGISTER_OK: lambda d: RegisterOk(_require_request_id(d), _success_payload(d)),
    MessageType.REGISTER_FAIL: _decode_failure(RegisterFail),
    MessageType.LOOKUP: lambda d: Lookup(_require_request_id(d), _require_str(d, "hostname")),
    MessageType.LOOKUP_OK: lambda d: LookupOk(_require_request_id(d), _success_payload(d)),
    MessageType.LOOKUP_FAIL: _decode_failure(LookupFail),
}


def message_from_dict(data: Any) -> Message:
    """Create a typed message from a decoded JSON value, validating required fields"""
    if not is_json_object(data):
        raise MalformedMessageError(f"Frame must be a JSON object, got {type(data).__name__}")
    msg_type = data.get("type")
    if not isinstance(msg_type, str):
        raise MalformedMessageError("'type' must be a string")

    if not MessageType.is_valid(msg_type):
        # Tolerated: newer hubs may speak message types this client predates
        return UnknownMessage(type=msg_type, fields={k: v for k, v in data.items() if k != "type"})
    return _DECODERS[MessageType(msg_type)](data)


def decode_message(raw: Union[str, bytes]) -> Message:
    """Parse one transport frame into a typed message"""
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = bytes(raw).decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedMessageError(f"Frame is not UTF-8: {e}")
    try:
        data = json.loads(raw)
    except (ValueError, RecursionError) as e:
        # ValueError covers JSONDecodeError and the int digit limit
        raise MalformedMessageError(f"Invalid JSON: {e}")
    return message_from_dict(data)


# ========================================
#           ENCODING
# ========================================

def encode_message(message: Message) -> str:
    """Convert a message to its compact JSON frame"""
    to_dict = getattr(message, "to_dict", None)
    if to_dict is None:
        raise UnknownTypeError(f"Cannot encode {type(message).__name__}")
    return json.dumps(to_dict(), separators=(",", ":"), sort_keys=True)
