import asyncio
import json

import pytest
import websockets

from client.hub import HubClient
from client.transport import Transport


class FakeTransport(Transport):
    """In-memory transport: records sent frames, lets tests inject inbound ones."""

    def __init__(self) -> None:
        super().__init__()
        self.sent_messages: list[str] = []
        self.closed = False
        self.fail_sends: BaseException | None = None

    async def send(self, frame: str) -> None:
        if self.fail_sends is not None:
            raise self.fail_sends
        self.sent_messages.append(frame)

    async def close(self) -> None:
        self.closed = True
        self._deliver_close()

    # --- test helpers ---

    @property
    def sent(self) -> list[dict]:
        return [json.loads(m) for m in self.sent_messages]

    def receive(self, message) -> None:
        frame = message if isinstance(message, (str, bytes)) else json.dumps(message)
        self._deliver_message(frame)

    def drop(self) -> None:
        self._deliver_close()

    def reopen(self) -> None:
        self._connection_opened()

    def fault(self, error: BaseException) -> None:
        self._deliver_error(error)


BINDING = {"type": "binding", "address": "peer-42", "configuration": {"iceServers": []}}


class StubHub:
    """Minimal hub: binds each connection, answers register/lookup, relays forwards."""

    def __init__(self) -> None:
        self.connections = []
        self.hostnames: dict[str, list[str]] = {}
        self.peers: dict[str, object] = {}
        self.received: list[dict] = []

    async def handler(self, websocket) -> None:
        address = f"peer-{len(self.connections)}"
        self.connections.append(websocket)
        self.peers[address] = websocket
        await websocket.send(json.dumps({"type": "binding", "address": address, "configuration": {"iceServers": []}}))
        async for raw in websocket:
            msg = json.loads(raw)
            self.received.append(msg)
            if msg["type"] == "register":
                self.hostnames.setdefault(msg["hostname"], []).append(address)
                reply = {"type": "register-ok", "request_id": msg["request_id"], "hostname": msg["hostname"]}
            elif msg["type"] == "lookup":
                addresses = self.hostnames.get(msg["hostname"])
                if addresses:
                    reply = {"type": "lookup-ok", "request_id": msg["request_id"], "addresses": addresses}
                else:
                    reply = {"type": "lookup-fail", "request_id": msg["request_id"], "reason": "not-found"}
            elif msg["type"] == "forward":
                target = self.peers.get(msg["to"])
                if target is not None:
                    await target.send(raw)
                continue
            else:
                continue
            await websocket.send(json.dumps(reply))


async def settle(rounds: int = 10) -> None:
    """Let scheduled tasks run until they block."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def hub(transport: FakeTransport) -> HubClient:
    return HubClient(transport)


@pytest.fixture
def bound_hub(hub: HubClient, transport: FakeTransport) -> HubClient:
    transport.receive(BINDING)
    return hub
