"""Plugin directory provider.

Discovers plugins laid out as::

    Plugin/
      SomeTool/
        plugin-manifest.json
        ...

and runs synchronous stdio plugins as subprocesses: the tool arguments are
written to stdin as JSON and stdout is returned as the tool output.
"""

import asyncio
import json
import logging
import shlex
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..node.errors import InvocationError
from ..node.types import InvocationOutcome
from .base import not_found

logger = logging.getLogger(__name__)

MANIFEST_FILE = "plugin-manifest.json"
SYNCHRONOUS_PLUGIN = "synchronous"


@dataclass(frozen=True)
class Plugin:
    """A loaded plugin and where it lives."""

    name: str
    directory: Path
    manifest: dict[str, Any]

    @property
    def command(self) -> list[str]:
        entry = self.manifest.get("entryPoint") or {}
        return shlex.split(entry.get("command", ""))

    @property
    def timeout(self) -> float | None:
        """Execution timeout in seconds, if the manifest sets one."""
        timeout_ms = (self.manifest.get("communication") or {}).get("timeout")
        if not timeout_ms:
            return None
        return float(timeout_ms) / 1000

    @property
    def runnable(self) -> bool:
        plugin_type = self.manifest.get("pluginType", SYNCHRONOUS_PLUGIN)
        return plugin_type == SYNCHRONOUS_PLUGIN and bool(self.command)


def read_manifest(path: Path) -> dict[str, Any] | None:
    """Read a plugin manifest, returning None if it is unusable."""
    try:
        manifest = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning(f"Skipping plugin manifest {path}: {e}")
        return None

    if not isinstance(manifest, dict) or not manifest.get("name"):
        logger.warning(f"Skipping plugin manifest {path}: missing name")
        return None
    return manifest


async def _terminate(process: asyncio.subprocess.Process) -> None:
    """Kill a plugin process that is still running and reap it."""
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
    await process.wait()


class PluginDirectoryProvider:
    """Capability provider for a directory of stdio plugins."""

    def __init__(self, plugin_dir: str | Path):
        """Initialize plugin provider.

        Args:
            plugin_dir: Directory containing one subdirectory per plugin
        """
        self._plugin_dir = Path(plugin_dir).expanduser()
        self._plugins: dict[str, Plugin] = {}

    @property
    def plugin_dir(self) -> Path:
        return self._plugin_dir

    def load(self) -> int:
        """Scan the plugin directory.

        Returns:
            Number of runnable plugins loaded
        """
        self._plugins = {}
        if not self._plugin_dir.is_dir():
            logger.warning(f"Plugin directory not found: {self._plugin_dir}")
            return 0

        for directory in sorted(p for p in self._plugin_dir.iterdir() if p.is_dir()):
            manifest_path = directory / MANIFEST_FILE
            if not manifest_path.is_file():
                continue
            manifest = read_manifest(manifest_path)
            if manifest is None:
                continue

            plugin = Plugin(name=manifest["name"], directory=directory, manifest=manifest)
            if not plugin.runnable:
                logger.debug(f"Skipping plugin '{plugin.name}': not a runnable stdio plugin")
                continue
            if plugin.name in self._plugins:
                logger.warning(f"Duplicate plugin name '{plugin.name}' in {directory}, skipping")
                continue
            self._plugins[plugin.name] = plugin

        logger.info(f"Loaded {len(self._plugins)} plugins from {self._plugin_dir}")
        return len(self._plugins)

    def list_manifests(self) -> Sequence[dict[str, Any]]:
        return [plugin.manifest for plugin in self._plugins.values()]

    async def invoke(self, name: str, arguments: Any) -> InvocationOutcome:
        plugin = self._plugins.get(name)
        if plugin is None:
            return not_found(name)

        try:
            output = await self._run(plugin, arguments)
        except InvocationError as e:
            return InvocationOutcome.failed(e.message, error_kind=e.kind)
        return InvocationOutcome.succeeded(output)

    async def _run(self, plugin: Plugin, arguments: Any) -> str:
        """Run a plugin process and return its stdout.

        Raises:
            InvocationError: If the process cannot start, times out or fails
        """
        stdin = json.dumps(arguments if arguments is not None else {}).encode("utf-8")

        try:
            process = await asyncio.create_subprocess_exec(
                *plugin.command,
                cwd=str(plugin.directory),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise InvocationError(message=f"Failed to start plugin '{plugin.name}': {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(stdin),
                timeout=plugin.timeout,
            )
        except asyncio.TimeoutError as e:
            await _terminate(process)
            raise InvocationError(
                message=f"Plugin '{plugin.name}' timed out after {plugin.timeout}s"
            ) from e
        except asyncio.CancelledError:
            await _terminate(process)
            raise

        if process.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip()
            raise InvocationError(
                message=detail or f"Plugin '{plugin.name}' exited with code {process.returncode}",
                data={"returncode": process.returncode},
            )

        return stdout.decode("utf-8", errors="replace").strip()
