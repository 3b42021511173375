"""Shared modules for vcp-node: paths and logging setup."""

from .logging import configure_logging, get_logger
from .paths import CONFIG_FILE, LOG_FILE, NODE_DIR

__all__ = [
    # Paths
    "NODE_DIR",
    "CONFIG_FILE",
    "LOG_FILE",
    # Logging
    "configure_logging",
    "get_logger",
]
