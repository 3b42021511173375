"""ProtocolHandler - Interprets messages from the main server.

Handles:
- Tool registration after each successful connection
- Decoding inbound frames into typed messages
- Routing execute_tool requests to the dispatcher
"""

import asyncio
import json
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from .errors import ProtocolViolation
from .types import MessageType

if TYPE_CHECKING:
    from .connection import ConnectionManager
    from .dispatcher import ToolDispatcher

logger = logging.getLogger(__name__)

DEFAULT_DRAIN_TIMEOUT = 5.0


def decode_frame(raw: str | bytes) -> dict[str, Any]:
    """Decode a raw frame into a ``{type, data}`` message.

    Raises:
        ProtocolViolation: If the frame is not a JSON object with a string type
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ProtocolViolation(message=f"Frame is not valid UTF-8: {e}") from e

    try:
        message = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ProtocolViolation(message=f"Frame is not valid JSON: {e}") from e

    if not isinstance(message, dict):
        raise ProtocolViolation(message="Frame is not a JSON object")
    if not isinstance(message.get("type"), str):
        raise ProtocolViolation(message="Frame has no message type")
    return message


class ProtocolHandler:
    """Drives the message protocol on top of a ConnectionManager."""

    def __init__(
        self,
        connection: "ConnectionManager",
        dispatcher: "ToolDispatcher",
        manifests: Sequence[dict[str, Any]],
        server_name: str,
    ):
        """Initialize ProtocolHandler.

        Args:
            connection: Connection to register on and read from
            dispatcher: Dispatcher for execute_tool requests
            manifests: Capability manifests to advertise, snapshotted here
            server_name: Display name sent with the registration
        """
        self._connection = connection
        self._dispatcher = dispatcher
        self._manifests = tuple(manifests)
        self._server_name = server_name
        self._in_flight: set[asyncio.Task] = set()

        connection.add_open_listener(self.register_tools)

    @property
    def manifests(self) -> tuple[dict[str, Any], ...]:
        """Manifest snapshot advertised on each connection."""
        return self._manifests

    @property
    def in_flight_count(self) -> int:
        """Number of execute_tool requests still running."""
        return len(self._in_flight)

    async def register_tools(self) -> None:
        """Send the tool registration for the current connection."""
        if not self._manifests:
            logger.debug(f"[{self._server_name}] No local tools found to register.")
            return

        payload = {
            "type": MessageType.REGISTER_TOOLS,
            "data": {
                "serverName": self._server_name,
                "tools": list(self._manifests),
            },
        }
        if await self._connection.send(payload):
            logger.info(
                f"[{self._server_name}] Sent registration for "
                f"{len(self._manifests)} tools to the main server."
            )

    async def handle_frame(self, raw: str | bytes) -> None:
        """Handle one inbound frame.

        Malformed frames are logged and discarded; the connection stays open.
        """
        try:
            message = decode_frame(raw)
        except ProtocolViolation as e:
            logger.error(f"Error parsing message from main server: {e.message}")
            return

        msg_type = message["type"]
        logger.debug(f"Received message from main server: {msg_type}")

        if msg_type == MessageType.EXECUTE_TOOL:
            data = message.get("data")
            if not isinstance(data, dict):
                logger.error("Error parsing message from main server: execute_tool without data")
                return
            task = asyncio.create_task(self._dispatcher.handle(data))
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)
        # Other message types are ignored for forward compatibility

    async def run(self) -> None:
        """Process inbound frames until cancelled."""
        inbound = self._connection.inbound
        while True:
            raw = await inbound.get()
            try:
                await self.handle_frame(raw)
            except Exception as e:
                logger.exception(f"Unexpected error handling message: {e}")

    async def drain(self, timeout: float = DEFAULT_DRAIN_TIMEOUT) -> None:
        """Wait for in-flight requests to complete, up to ``timeout`` seconds."""
        if not self._in_flight:
            return

        logger.info(f"Waiting for {len(self._in_flight)} in-flight requests...")
        done, pending = await asyncio.wait(set(self._in_flight), timeout=timeout)
        if pending:
            logger.warning(f"Drain timeout, {len(pending)} requests still in-flight")
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        logger.info("Request drain complete")
