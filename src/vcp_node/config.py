"""Node configuration management.

Handles node configuration stored in ~/.vcp-node/config.yaml.
Supports environment variable overrides and CLI flag precedence.
Configuration is read once at startup and is immutable afterwards.
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from .node.errors import ConfigMissingError
from .shared.paths import CONFIG_FILE

# Default values
DEFAULT_SERVER_NAME = "Unnamed-Distributed-Server"
DEFAULT_PLUGIN_DIR = "Plugin"

CONNECTION_PATH = "/vcp-distributed-server/VCP_Key="

# Environment variable mappings (the variable names existing node deployments set)
ENV_VARS = {
    "server_url": "Main_Server_URL",
    "vcp_key": "VCP_Key",
    "server_name": "ServerName",
    "debug": "DebugMode",
    "plugin_dir": "VCP_PLUGIN_DIR",
}

REDACTED = "********"


def parse_bool(value: Any) -> bool:
    """Parse a boolean setting; only "true" (any case) is true for strings."""
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


@dataclass(frozen=True)
class NodeConfig:
    """Node configuration."""

    server_url: str | None = None
    vcp_key: str | None = None
    server_name: str = DEFAULT_SERVER_NAME
    debug: bool = False
    plugin_dir: str = DEFAULT_PLUGIN_DIR

    # Track where each value came from
    _sources: dict[str, str] = field(default_factory=dict, compare=False, repr=False)

    def get_source(self, key: str) -> str:
        """Get the source of a config value."""
        return self._sources.get(key, "default")

    @property
    def log_level(self) -> str:
        return "debug" if self.debug else "info"

    def require_connection(self) -> None:
        """Check that the node can connect.

        Raises:
            ConfigMissingError: If the server URL or key is not set
        """
        missing = [
            ENV_VARS[key] for key in ("server_url", "vcp_key") if not getattr(self, key)
        ]
        if missing:
            raise ConfigMissingError(
                message=f"{' or '.join(missing)} is not defined. Cannot connect.",
                data={"missing": missing},
            )

    def redacted(self) -> dict[str, Any]:
        """Config values safe for display."""
        values = {f.name: getattr(self, f.name) for f in fields(self) if not f.name.startswith("_")}
        if values["vcp_key"]:
            values["vcp_key"] = REDACTED
        return values


def get_config_path() -> Path:
    """Get the node config file path.

    Returns:
        Path to ~/.vcp-node/config.yaml
    """
    return CONFIG_FILE


def build_connection_url(config: NodeConfig) -> str:
    """Build the coordinator URL with the pre-shared key embedded.

    Raises:
        ConfigMissingError: If the server URL or key is not set
    """
    config.require_connection()
    return f"{config.server_url.rstrip('/')}{CONNECTION_PATH}{config.vcp_key}"


def _coerce(key: str, value: Any) -> Any:
    if key == "debug":
        return parse_bool(value)
    return str(value)


def load_config(
    path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> NodeConfig:
    """Load node configuration.

    Precedence (highest to lowest):
    1. Overrides (CLI flags); None values are ignored
    2. Environment variables
    3. Config file (~/.vcp-node/config.yaml or ``path``)
    4. Defaults

    Args:
        path: Optional config file path
        overrides: Values from CLI flags

    Returns:
        NodeConfig with values and sources
    """
    values: dict[str, Any] = {}
    sources: dict[str, str] = {key: "default" for key in ENV_VARS}

    # Load from config file
    config_path = Path(path).expanduser() if path else get_config_path()
    if config_path.exists():
        try:
            with open(config_path) as f:
                file_config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError):
            file_config = {}  # Ignore config file errors, use defaults

        if isinstance(file_config, dict):
            for key in ENV_VARS:
                if file_config.get(key) is not None:
                    values[key] = _coerce(key, file_config[key])
                    sources[key] = "config file"

    # Override with environment variables
    for key, env_var in ENV_VARS.items():
        if os.environ.get(env_var):
            values[key] = _coerce(key, os.environ[env_var])
            sources[key] = "environment"

    # Override with CLI flags
    for key, value in (overrides or {}).items():
        if key in ENV_VARS and value is not None:
            values[key] = _coerce(key, value)
            sources[key] = "command line"

    return NodeConfig(**values, _sources=sources)
