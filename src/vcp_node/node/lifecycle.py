"""Node - Owns the connection, protocol handler and dispatcher.

Handles:
- Startup: config check, manifest snapshot, first connect
- Running the inbound processing loop
- Graceful shutdown with in-flight request drain
"""

import asyncio
import logging
from typing import TYPE_CHECKING

from .connection import ConnectionManager, Connector
from .dispatcher import ToolDispatcher
from .errors import ConfigMissingError
from .protocol import DEFAULT_DRAIN_TIMEOUT, ProtocolHandler
from .types import ConnectionState

if TYPE_CHECKING:
    from ..capabilities import CapabilityProvider
    from ..config import NodeConfig

logger = logging.getLogger(__name__)


class Node:
    """A distributed tool node attached to one main server.

    One instance per process; everything the handlers need hangs off it.
    """

    def __init__(
        self,
        config: "NodeConfig",
        provider: "CapabilityProvider",
        connector: Connector | None = None,
        drain_timeout: float = DEFAULT_DRAIN_TIMEOUT,
        **connection_options,
    ):
        """Initialize Node.

        Args:
            config: Node configuration
            provider: Capability provider; its manifests are snapshotted here
            connector: Optional transport factory (default: websockets)
            drain_timeout: Max time to wait for in-flight requests on shutdown
            **connection_options: Passed through to ConnectionManager
        """
        self.config = config
        self.provider = provider
        self.drain_timeout = drain_timeout

        self._shutdown_event = asyncio.Event()
        self._processing_task: asyncio.Task | None = None
        self.connection: ConnectionManager | None = None
        self.protocol: ProtocolHandler | None = None
        self.dispatcher: ToolDispatcher | None = None

        from ..config import build_connection_url

        try:
            url = build_connection_url(config)
        except ConfigMissingError as e:
            logger.error(f"[{config.server_name}] {e.message}")
            return

        self.connection = ConnectionManager(url, connector=connector, **connection_options)
        self.dispatcher = ToolDispatcher(provider, self.connection)
        self.protocol = ProtocolHandler(
            self.connection,
            self.dispatcher,
            manifests=provider.list_manifests(),
            server_name=config.server_name,
        )

    @property
    def name(self) -> str:
        return self.config.server_name

    @property
    def can_connect(self) -> bool:
        """Whether the connection subsystem is configured."""
        return self.connection is not None

    @property
    def state(self) -> ConnectionState:
        if self.connection is None:
            return ConnectionState.CLOSED
        return self.connection.state

    def start(self) -> None:
        """Start processing inbound messages and connect."""
        if self.connection is None or self.protocol is None:
            return
        if self._processing_task is None:
            self._processing_task = asyncio.create_task(self.protocol.run())
        self.connection.connect()

    async def run(self) -> None:
        """Run until shutdown is requested.

        Without connection settings the node stays idle: no connect attempts
        are made, but the process keeps running until stopped.
        """
        logger.info(f"[{self.name}] Initializing...")
        if self.can_connect:
            logger.info(f"[{self.name}] Advertising {len(self.protocol.manifests)} tools")
            self.start()
        else:
            logger.warning(f"[{self.name}] Connection disabled, idling until shutdown")

        try:
            await self._shutdown_event.wait()
        finally:
            await self.close()

    def request_shutdown(self) -> None:
        """Ask ``run`` to stop. Safe to call from signal handlers."""
        self._shutdown_event.set()

    async def close(self) -> None:
        """Stop processing, drain in-flight requests, close the connection."""
        if self._processing_task is not None:
            self._processing_task.cancel()
            try:
                await self._processing_task
            except asyncio.CancelledError:
                pass
            self._processing_task = None

        if self.protocol is not None:
            await self.protocol.drain(self.drain_timeout)

        if self.connection is not None:
            await self.connection.shutdown()

        logger.info(f"[{self.name}] Shutdown complete")
