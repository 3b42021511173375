"""Node execution logic.

Provides the run_node function that is called by the ``run`` CLI command.
"""

import asyncio
import signal
from typing import TYPE_CHECKING

from ..shared.logging import get_logger

if TYPE_CHECKING:
    from ..config import NodeConfig

logger = get_logger(__name__)


def run_node(config: "NodeConfig") -> None:
    """Execute the node in the foreground until interrupted.

    It:
    1. Loads the plugin directory and snapshots its manifests
    2. Creates the Node
    3. Runs until SIGINT/SIGTERM, then shuts down gracefully

    Args:
        config: Node configuration
    """
    from ..capabilities import PluginDirectoryProvider
    from .lifecycle import Node

    async def _run() -> None:
        provider = PluginDirectoryProvider(config.plugin_dir)
        loaded = provider.load()
        logger.info(
            "Starting node",
            server_name=config.server_name,
            plugin_dir=str(provider.plugin_dir),
            tools=loaded,
        )
        node = Node(config=config, provider=provider)

        def signal_handler(sig: signal.Signals) -> None:
            logger.info("Received shutdown signal", signal=sig.name)
            node.request_shutdown()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, signal_handler, sig)

        await node.run()

    asyncio.run(_run())
