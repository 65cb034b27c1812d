"""
Hub signalling client.

The client holds one transport connection to the hub. Every public operation
waits for the hub's binding (the handshake that assigns this client its
address), and register/lookup calls are matched to their responses by an
integer request_id.

Example:

    config = load_config()
    async with await HubClient.connect(config) as hub:
        hub.on("forward", lambda msg: print(msg.from_, msg.data))
        await hub.register("alice")
        peers = await hub.lookup("bob")
        await hub.forward(peers.payload["addresses"][0], {"offer": "..."})
"""

from __future__ import annotations
import asyncio
import copy
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from client.correlation import CorrelationTable
from client.errors import HubClosedError, HubStateError, HubTimeoutError
from client.events import EventEmitter, EventHandler
from client.gate import ConnectionGate
from client.router import MessageRouter
from client.transport import Transport, WebSocketTransport
from shared.config import HubConfig
from shared.envelope import Binding, Forward, Lookup, LookupOk, Register, RegisterOk, encode_message
from shared.messages import ConnectionState
from shared.log import get_logger

logger = get_logger(__name__)


class HubClient:
    """
    Client side of the hub signalling protocol.

    Events (subscribe with on()):
        forward  - Forward message relayed to us by another peer
        error    - transport faults and malformed inbound frames
        binding  - a new Binding was received (first connect or reconnect)
        close    - the transport connection was lost

    Pending requests survive a connection loss; they are only failed, with
    HubClosedError, when close() is called.
    """

    def __init__(self, transport: Transport, *, request_timeout: Optional[float] = None) -> None:
        self.transport = transport
        self.request_timeout = request_timeout
        self.gate = ConnectionGate()
        self.table = CorrelationTable()
        self.events = EventEmitter()
        self.router = MessageRouter(self)
        self.binding: Optional[Binding] = None
        self.state = ConnectionState.AWAITING_HANDSHAKE
        self._next_request_id = 0
        self._closed = False

        transport.on_message(self.router.dispatch)
        transport.on_error(self._on_error)
        transport.on_close(self._on_close)

    @classmethod
    async def connect(cls, config: HubConfig) -> "HubClient":
        """Open a WebSocket to config.url and return a client bound to it."""
        transport = WebSocketTransport(
            config.url, ping_interval=config.ping_interval, ping_timeout=config.ping_timeout
        )
        hub = cls(transport, request_timeout=config.request_timeout)
        await transport.connect()
        return hub

    async def __aenter__(self) -> "HubClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Requests sent and still waiting on the hub."""
        return len(self.table)

    # ========================================
    #           EVENTS
    # ========================================

    def on(self, event: str, handler: EventHandler) -> None:
        """Subscribe to 'forward', 'error', 'binding' or 'close'."""
        self.events.on(event, handler)

    def off(self, event: str, handler: EventHandler) -> None:
        self.events.off(event, handler)

    # ========================================
    #           OPERATIONS
    # ========================================

    async def address(self) -> str:
        """Returns the address the hub assigned to this client."""
        return await self._run(lambda: self._require_binding().address)

    async def configuration(self) -> Dict[str, Any]:
        """Returns a copy of the transport configuration (e.g. ICE servers) from the binding."""
        return await self._run(lambda: copy.deepcopy(self._require_binding().configuration))

    async def register(self, hostname: str) -> RegisterOk:
        """Registers a hostname for this client's address."""
        return await self._run(lambda: self._request(lambda request_id: Register(request_id, hostname)))

    async def lookup(self, hostname: str) -> LookupOk:
        """Looks up the addresses registered under a hostname."""
        return await self._run(lambda: self._request(lambda request_id: Lookup(request_id, hostname)))

    async def forward(self, to: str, data: Any) -> None:
        """
        Forwards data to the peer at address `to`.

        Returns once the frame is handed to the transport; there is no
        delivery acknowledgement from the hub.
        """
        async def action() -> None:
            binding = self._require_binding()
            await self.transport.send(encode_message(Forward(to=to, from_=binding.address, data=data)))
            logger.debug("Forwarded to %s", to, extra={"address": binding.address, "msg_type": "forward"})

        await self._run(action)

    async def close(self) -> None:
        """
        Close the transport and fail everything still waiting.

        Pending requests and callers queued at the gate get HubClosedError.
        Calling close() more than once is harmless.
        """
        if self._closed:
            return
        self._closed = True
        self.gate.pause()
        self.gate.fail_waiting(lambda: HubClosedError("Hub client closed"))
        failed = self.table.reject_all(lambda: HubClosedError("Hub client closed"))
        if failed:
            logger.info("Closed with %d pending request(s)", failed)
        await self.transport.close()

    # ========================================
    #           INTERNALS
    # ========================================

    async def _run(self, action: Callable[[], Any]) -> Any:
        if self._closed:
            raise HubClosedError("Hub client closed")

        def admitted() -> Any:
            if self._closed:
                raise HubClosedError("Hub client closed")
            return action()

        return await self.gate.run(admitted)

    def _require_binding(self) -> Binding:
        if self.binding is None:
            raise HubStateError("No binding received from hub")
        return self.binding

    def _allocate_request_id(self) -> int:
        request_id = self._next_request_id
        self._next_request_id += 1
        return request_id

    async def _request(self, build: Callable[[int], Union[Register, Lookup]]) -> Any:
        request_id = self._allocate_request_id()
        message = build(request_id)
        # Register before sending so an immediate response is never missed
        future = self.table.wait(request_id)
        try:
            await self.transport.send(encode_message(message))
        except BaseException:
            self.table.discard(request_id)
            raise
        logger.debug("Sent request", extra={"request_id": request_id, "msg_type": message.type.value})
        return await self._await_response(request_id, future)

    async def _await_response(self, request_id: int, future: Awaitable[Any]) -> Any:
        if self.request_timeout is None:
            return await future
        try:
            return await asyncio.wait_for(future, self.request_timeout)
        except asyncio.TimeoutError:
            self.table.discard(request_id)
            raise HubTimeoutError(request_id, self.request_timeout)

    def _set_binding(self, binding: Binding) -> None:
        if self._closed:
            logger.debug("Ignoring binding received after close")
            return
        reconnect = self.state is ConnectionState.PAUSED
        self.binding = binding
        self.state = ConnectionState.READY
        logger.info("%s as %s", "Rebound" if reconnect else "Bound", binding.address,
                    extra={"address": binding.address})
        self.gate.resume()
        self.events.emit("binding", binding)

    def _on_error(self, error: BaseException) -> None:
        logger.error("Transport error: %s", error)
        self.events.emit("error", error)

    def _on_close(self) -> None:
        self.gate.pause()
        if not self._closed:
            self.state = ConnectionState.PAUSED
            logger.warning("Connection to hub lost; %d request(s) pending", len(self.table))
        self.events.emit("close")
