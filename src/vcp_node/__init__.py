"""VCP Node - Distributed tool node for a VCP main server."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("vcp-node")
except PackageNotFoundError:
    __version__ = "0.0.0.dev0"  # Fallback for editable installs without metadata

from .main import main

__all__ = ["main", "__version__"]
