"""Path management for vcp-node.

Manages the ~/.vcp-node/ directory structure.
"""

from pathlib import Path

# Base directory for all node data
NODE_DIR = Path.home() / ".vcp-node"

# Default config file
CONFIG_FILE = NODE_DIR / "config.yaml"

# Default log file when logging to file is requested without a path
LOG_FILE = NODE_DIR / "node.log"
