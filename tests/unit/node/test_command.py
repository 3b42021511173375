"""Unit tests for run_node."""

from unittest.mock import AsyncMock, MagicMock, patch

from vcp_node.config import NodeConfig
from vcp_node.node.command import run_node


class TestRunNode:
    """Tests for the run command entry point."""

    def test_builds_node_from_plugin_dir(self, tmp_path):
        """run_node loads the configured plugin directory and runs a Node."""
        config = NodeConfig(server_url="ws://main:6005", vcp_key="k", plugin_dir=str(tmp_path))
        node = MagicMock()
        node.run = AsyncMock()

        with patch("vcp_node.node.lifecycle.Node", return_value=node) as mock_node:
            run_node(config)

        kwargs = mock_node.call_args.kwargs
        assert kwargs["config"] is config
        assert kwargs["provider"].plugin_dir == tmp_path
        assert kwargs["provider"].list_manifests() == []
        node.run.assert_awaited_once()
