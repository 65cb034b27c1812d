import asyncio
import threading
import time

import pytest
import websockets
from typer.testing import CliRunner

from client.hub_cli import app

from conftest import StubHub


@pytest.fixture
def stub_hub(monkeypatch, tmp_path):
    """Run a StubHub on its own loop so the CLI can drive it synchronously."""
    for name in ("HUB_URL", "HUB_REQUEST_TIMEOUT", "HUB_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)

    stub = StubHub()
    loop = asyncio.new_event_loop()
    thread = threading.Thread(target=loop.run_forever, daemon=True)
    thread.start()

    async def start():
        return await websockets.serve(stub.handler, "127.0.0.1", 0)

    server = asyncio.run_coroutine_threadsafe(start(), loop).result(5)
    port = next(iter(server.sockets)).getsockname()[1]

    yield stub, f"ws://127.0.0.1:{port}"

    async def stop():
        server.close()
        await server.wait_closed()

    asyncio.run_coroutine_threadsafe(stop(), loop).result(5)
    loop.call_soon_threadsafe(loop.stop)
    thread.join(5)
    loop.close()


def _invoke(url: str, *args: str):
    return CliRunner().invoke(app, [*args, "--server", url])


def test_register_prints_result(stub_hub):
    stub, url = stub_hub

    result = _invoke(url, "register", "alice")

    assert result.exit_code == 0, result.output
    assert "Registered alice" in result.output
    assert stub.hostnames == {"alice": ["peer-0"]}


def test_lookup_prints_addresses(stub_hub):
    stub, url = stub_hub
    stub.hostnames["alice"] = ["peer-7"]

    result = _invoke(url, "lookup", "alice")

    assert result.exit_code == 0, result.output
    assert "Lookup alice" in result.output
    assert "peer-7" in result.output


def test_lookup_failure_exits_with_reason(stub_hub):
    _, url = stub_hub

    result = _invoke(url, "lookup", "carol")

    assert result.exit_code == 1
    assert "Hub refused request" in result.output
    assert "not-found" in result.output


def test_forward_reaches_hub(stub_hub):
    stub, url = stub_hub

    result = _invoke(url, "forward", "peer-9", '{"a": 1}')

    assert result.exit_code == 0, result.output
    assert "Forwarded to peer-9" in result.output

    deadline = time.monotonic() + 3
    forwards = []
    while not forwards and time.monotonic() < deadline:
        forwards = [m for m in stub.received if m["type"] == "forward"]
        time.sleep(0.01)
    assert forwards == [{"type": "forward", "to": "peer-9", "from": "peer-0", "data": {"a": 1}}]


def test_address_prints_binding(stub_hub):
    _, url = stub_hub

    result = _invoke(url, "address")

    assert result.exit_code == 0, result.output
    assert "peer-0" in result.output
    assert "iceServers" in result.output
