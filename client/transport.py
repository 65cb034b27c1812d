from __future__ import annotations
import asyncio
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Union

import websockets

from shared.log import get_logger

logger = get_logger(__name__)


Frame = Union[str, bytes]
MessageCallback = Callable[[Frame], None]
ErrorCallback = Callable[[BaseException], None]
CloseCallback = Callable[[], None]


class Transport(ABC):
    """
    Duplex frame transport the hub client runs on.

    Implementations call _deliver_message() once per inbound frame in arrival
    order, _deliver_error() for I/O faults and _deliver_close() when the
    connection is lost. The close notification fires once per connection even
    if _deliver_close() is called repeatedly; _connection_opened() re-arms it.
    """

    def __init__(self) -> None:
        self._message_callbacks: List[MessageCallback] = []
        self._error_callbacks: List[ErrorCallback] = []
        self._close_callbacks: List[CloseCallback] = []
        self._close_delivered = False

    def on_message(self, callback: MessageCallback) -> None:
        self._message_callbacks.append(callback)

    def on_error(self, callback: ErrorCallback) -> None:
        self._error_callbacks.append(callback)

    def on_close(self, callback: CloseCallback) -> None:
        self._close_callbacks.append(callback)

    @abstractmethod
    async def send(self, frame: str) -> None:
        """Queue or transmit one text frame."""

    @abstractmethod
    async def close(self) -> None:
        """Terminate the connection."""

    def _connection_opened(self) -> None:
        self._close_delivered = False

    def _deliver_message(self, frame: Frame) -> None:
        for callback in list(self._message_callbacks):
            try:
                callback(frame)
            except Exception as e:
                logger.error("Failed to process inbound frame: %s", e)

    def _deliver_error(self, error: BaseException) -> None:
        for callback in list(self._error_callbacks):
            try:
                callback(error)
            except Exception as e:
                logger.error("Error callback failed: %s", e)

    def _deliver_close(self) -> None:
        if self._close_delivered:
            return
        self._close_delivered = True
        for callback in list(self._close_callbacks):
            try:
                callback()
            except Exception as e:
                logger.error("Close callback failed: %s", e)


class WebSocketTransport(Transport):
    """Transport over a single websockets client connection."""

    def __init__(
        self,
        url: str,
        *,
        ping_interval: Optional[float] = 15.0,
        ping_timeout: Optional[float] = 45.0,
    ) -> None:
        super().__init__()
        self.url = url
        self.ping_interval = ping_interval
        self.ping_timeout = ping_timeout
        self.websocket: Optional[websockets.ClientConnection] = None
        self._recv_task: Optional[asyncio.Task] = None

    @property
    def connected(self) -> bool:
        return self._recv_task is not None and not self._recv_task.done()

    async def connect(self) -> None:
        """
        Open the connection and start delivering frames.

        Calling connect() again after a connection loss opens a fresh
        connection; the hub then sends a new binding.
        """
        if self.connected:
            raise RuntimeError(f"Already connected to {self.url}")
        self.websocket = await websockets.connect(
            self.url, ping_interval=self.ping_interval, ping_timeout=self.ping_timeout
        )
        self._connection_opened()
        logger.info("Connected to hub at %s", self.url)
        self._recv_task = asyncio.create_task(self._recv_loop(self.websocket))

    async def _recv_loop(self, websocket: websockets.ClientConnection) -> None:
        try:
            async for raw in websocket:
                self._deliver_message(raw)
        except websockets.exceptions.ConnectionClosedError as e:
            logger.warning("Connection to %s lost: %s", self.url, e)
            self._deliver_error(e)
        except Exception as e:
            logger.error("Receive loop for %s failed: %s", self.url, e)
            self._deliver_error(e)
        finally:
            logger.info("Connection to %s closed", self.url)
            self._deliver_close()

    async def send(self, frame: str) -> None:
        if self.websocket is None:
            raise ConnectionError(f"Not connected to {self.url}")
        await self.websocket.send(frame)

    async def close(self) -> None:
        if self.websocket is not None:
            await self.websocket.close(code=1000)
        if self._recv_task is not None:
            # Let the receive loop observe the close and notify once
            await asyncio.gather(self._recv_task, return_exceptions=True)
