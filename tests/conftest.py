"""Shared test fixtures for vcp-node tests.

This module provides fixtures for testing the node:
- fake_connector: Scripted transport factory (see tests/mocks)
- echo_provider: In-memory capability provider with a few tools
- node_config: Complete configuration pointing at a dummy main server
"""

from typing import Any

import pytest

from tests.mocks import FakeConnector, RecordingSleep
from vcp_node.capabilities import StaticCapabilityProvider
from vcp_node.config import NodeConfig


@pytest.fixture
def fake_connector() -> FakeConnector:
    """Connector that succeeds with a fresh FakeWebSocket on every attempt."""
    return FakeConnector()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    """Sleep that records delays and stops after a handful of reconnects."""
    return RecordingSleep(limit=8)


@pytest.fixture
def sample_manifests() -> list[dict[str, Any]]:
    """Sample plugin manifests."""
    return [
        {
            "name": "echo",
            "displayName": "Echo",
            "version": "1.0.0",
            "description": "Returns its input",
            "pluginType": "synchronous",
        },
        {
            "name": "weather",
            "displayName": "Weather",
            "version": "0.2.0",
            "description": "Looks up the weather",
            "pluginType": "synchronous",
        },
        {
            "name": "calc",
            "displayName": "Calculator",
            "version": "2.1.0",
            "description": "Evaluates arithmetic",
            "pluginType": "synchronous",
        },
    ]


@pytest.fixture
def echo_provider(sample_manifests: list[dict[str, Any]]) -> StaticCapabilityProvider:
    """Provider with echo, weather and calc tools."""

    async def weather(args: Any) -> str:
        return '{"city": "Berlin", "temp": 21}'

    def calc(args: Any) -> dict[str, Any]:
        return {"value": args["a"] + args["b"]}

    return StaticCapabilityProvider(
        handlers={
            "echo": lambda args: "hello",
            "weather": weather,
            "calc": calc,
        },
        manifests=sample_manifests,
    )


@pytest.fixture
def node_config() -> NodeConfig:
    """Configuration with connection settings present."""
    return NodeConfig(
        server_url="ws://coordinator.test:6005",
        vcp_key="secret-key",
        server_name="test-node",
    )
