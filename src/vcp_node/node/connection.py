"""ConnectionManager - Owns the WebSocket link to the main server.

Handles:
- Connection state machine (disconnected, connecting, open, closed)
- Reconnection with exponential backoff
- Inbound frame queue for the protocol handler
- Fire-and-forget sends
"""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed

from .errors import map_transport_error, redact_url
from .types import ConnectionState

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_MIN_BACKOFF_MS = 5000
DEFAULT_MAX_BACKOFF_MS = 60000

# Inbound frames may carry large base64 tool arguments
DEFAULT_MAX_FRAME_BYTES = 100 * 1024 * 1024

Connector = Callable[[str], Awaitable[Any]]
OpenListener = Callable[[], Awaitable[None]]


async def websocket_connector(url: str) -> Any:
    """Open a WebSocket connection to the main server."""
    return await ws_connect(url, max_size=DEFAULT_MAX_FRAME_BYTES)


def encode_message(message: dict[str, Any]) -> str:
    """Serialize a message as strict JSON text.

    Raises:
        TypeError: If the message holds keys JSON cannot represent
        ValueError: If it holds NaN, Infinity or circular references
    """
    return json.dumps(message, default=str, allow_nan=False)


class ConnectionManager:
    """Maintains a single connection to the main server.

    Only ``connect`` starts an attempt, and it is a no-op unless the
    connection is disconnected, so attempts never overlap. Every close or
    failure re-arms exactly one reconnect timer until ``shutdown``.
    """

    def __init__(
        self,
        url: str,
        connector: Connector | None = None,
        min_backoff_ms: int = DEFAULT_MIN_BACKOFF_MS,
        max_backoff_ms: int = DEFAULT_MAX_BACKOFF_MS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize ConnectionManager.

        Args:
            url: Full connection URL, including the pre-shared key
            connector: Coroutine function opening the transport (default: websockets)
            min_backoff_ms: Initial reconnect delay in milliseconds
            max_backoff_ms: Upper bound for the reconnect delay in milliseconds
            sleep: Coroutine used to wait out reconnect delays
        """
        self._url = url
        self._connector = connector or websocket_connector
        self.min_backoff_ms = min_backoff_ms
        self.max_backoff_ms = max_backoff_ms
        self._sleep = sleep

        self._state = ConnectionState.DISCONNECTED
        self._backoff_ms = min_backoff_ms
        self._transport: Any = None
        self._connect_task: asyncio.Task | None = None
        self._reconnect_task: asyncio.Task | None = None
        self._open_listeners: list[OpenListener] = []
        self._inbound: asyncio.Queue = asyncio.Queue()

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def is_open(self) -> bool:
        """Whether messages can be sent."""
        return self._state is ConnectionState.OPEN

    @property
    def backoff_interval_ms(self) -> int:
        """Delay the next reconnect timer will wait."""
        return self._backoff_ms

    @property
    def inbound(self) -> asyncio.Queue:
        """Queue of raw frames received from the main server."""
        return self._inbound

    @property
    def reconnect_pending(self) -> bool:
        """Whether a reconnect timer is armed."""
        return self._reconnect_task is not None and not self._reconnect_task.done()

    def add_open_listener(self, listener: OpenListener) -> None:
        """Register a coroutine function to run after each successful open."""
        self._open_listeners.append(listener)

    def connect(self) -> None:
        """Start a connection attempt if currently disconnected."""
        if self._state is not ConnectionState.DISCONNECTED:
            logger.debug(f"Connect skipped, connection is {self._state.value}")
            return

        self._state = ConnectionState.CONNECTING
        logger.info(f"Attempting to connect to main server at {redact_url(self._url)}")
        self._connect_task = asyncio.create_task(self._run_connection())

    def schedule_reconnect(self) -> None:
        """Arm the reconnect timer and grow the backoff for the next attempt."""
        if self._state is ConnectionState.CLOSED:
            return

        delay_ms = self._backoff_ms
        logger.info(f"Reconnecting in {delay_ms / 1000:g}s...")
        self._reconnect_task = asyncio.create_task(self._reconnect_after(delay_ms))
        self._backoff_ms = min(self._backoff_ms * 2, self.max_backoff_ms)

    async def _reconnect_after(self, delay_ms: int) -> None:
        """Wait out the backoff delay, then reconnect."""
        await self._sleep(delay_ms / 1000)
        self._reconnect_task = None
        self.connect()

    async def _run_connection(self) -> None:
        """Open the transport and pump inbound frames until it closes."""
        try:
            transport = await self._connector(self._url)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            fault = map_transport_error(e, self._url)
            logger.error(f"Connection failed: {fault.message}")
            self._on_disconnected()
            return

        if self._state is ConnectionState.CLOSED:
            # Shut down while the handshake was in flight
            await transport.close()
            return

        self._transport = transport
        self._state = ConnectionState.OPEN
        self._backoff_ms = self.min_backoff_ms
        logger.info("Successfully connected to main server")

        try:
            for listener in self._open_listeners:
                await listener()

            async for frame in transport:
                await self._inbound.put(frame)

            logger.info("Disconnected from main server")
        except ConnectionClosed as e:
            logger.warning(f"Connection to main server closed: {e}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            fault = map_transport_error(e, self._url)
            logger.error(f"Connection error: {fault.message}")
            await transport.close()
        finally:
            self._transport = None
            self._on_disconnected()

    def _on_disconnected(self) -> None:
        """Move back to disconnected and schedule the next attempt."""
        if self._state is ConnectionState.CLOSED:
            return
        self._state = ConnectionState.DISCONNECTED
        self.schedule_reconnect()

    async def send(self, message: dict[str, Any]) -> bool:
        """Send a message to the main server.

        The message is dropped, not queued, when the connection is not open.

        Args:
            message: JSON-serializable message

        Returns:
            True if the message was handed to the transport
        """
        msg_type = message.get("type", "message")
        try:
            frame = encode_message(message)
        except (TypeError, ValueError) as e:
            logger.error(f"Cannot send {msg_type}, not serializable: {e}")
            return False

        transport = self._transport
        if self._state is not ConnectionState.OPEN or transport is None:
            logger.error(f"Cannot send {msg_type}, connection is {self._state.value}")
            return False

        try:
            await transport.send(frame)
        except ConnectionClosed as e:
            logger.error(f"Send failed, connection closed: {e}")
            return False
        except OSError as e:
            logger.error(f"Send failed: {map_transport_error(e, self._url).message}")
            return False
        return True

    async def shutdown(self) -> None:
        """Close the connection for good. No reconnects happen afterwards."""
        if self._state is ConnectionState.CLOSED:
            return

        logger.info("Shutting down connection")
        self._state = ConnectionState.CLOSED

        tasks = [t for t in (self._reconnect_task, self._connect_task) if t is not None]
        current = asyncio.current_task()

        if self._transport is not None:
            transport, self._transport = self._transport, None
            try:
                await transport.close()
            except Exception as e:
                logger.debug(f"Error closing transport: {e}")

        for task in tasks:
            if task is current or task.done():
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        self._reconnect_task = None
        self._connect_task = None
        logger.info("Connection closed")
