"""Unit tests for Node lifecycle.

Exercises the connection, protocol handler and dispatcher together over a
fake transport.
"""

import asyncio
import logging

import pytest

from tests.mocks import FakeConnector, RecordingSleep, wait_until
from vcp_node.capabilities import StaticCapabilityProvider
from vcp_node.config import NodeConfig
from vcp_node.node.lifecycle import Node
from vcp_node.node.types import ConnectionState


async def start_node(node: Node) -> asyncio.Task:
    task = asyncio.create_task(node.run())
    await asyncio.sleep(0)
    return task


async def stop_node(node: Node, task: asyncio.Task) -> None:
    node.request_shutdown()
    await asyncio.wait_for(task, 2.0)


class TestStartup:
    """Tests for node startup."""

    @pytest.mark.asyncio
    async def test_connects_with_key_in_url(self, node_config, echo_provider, fake_connector):
        """The node connects to the server URL with the key in the path."""
        node = Node(node_config, echo_provider, connector=fake_connector)
        task = await start_node(node)

        await wait_until(lambda: node.state is ConnectionState.OPEN)
        assert fake_connector.urls == [
            "ws://coordinator.test:6005/vcp-distributed-server/VCP_Key=secret-key"
        ]

        await stop_node(node, task)

    @pytest.mark.asyncio
    async def test_registers_three_tools_on_open(self, node_config, echo_provider, fake_connector):
        """Provider with 3 manifests sends one register_tools with 3 tools."""
        node = Node(node_config, echo_provider, connector=fake_connector)
        task = await start_node(node)

        await wait_until(lambda: fake_connector.sockets and fake_connector.current.sent)
        registrations = fake_connector.current.messages_of_type("register_tools")

        assert len(registrations) == 1
        assert len(registrations[0]["data"]["tools"]) == 3

        await stop_node(node, task)

    @pytest.mark.asyncio
    async def test_missing_config_idles_without_connecting(self, echo_provider, caplog):
        """Without URL and key the node logs once and never connects."""
        connector = FakeConnector()

        with caplog.at_level(logging.ERROR):
            node = Node(NodeConfig(server_name="lonely"), echo_provider, connector=connector)
            task = await start_node(node)
            await asyncio.sleep(0.02)

        assert node.can_connect is False
        assert connector.attempts == 0
        assert not task.done()
        assert caplog.text.count("is not defined. Cannot connect.") == 1

        await stop_node(node, task)
        assert node.state is ConnectionState.CLOSED


class TestRequests:
    """Tests for end-to-end request handling."""

    @pytest.mark.asyncio
    async def test_request_gets_matching_result(self, node_config, echo_provider, fake_connector):
        """An execute_tool frame yields one tool_result with the same requestId."""
        node = Node(node_config, echo_provider, connector=fake_connector)
        task = await start_node(node)
        await wait_until(lambda: node.state is ConnectionState.OPEN)

        fake_connector.current.feed(
            {
                "type": "execute_tool",
                "data": {"requestId": "abc123", "toolName": "echo", "toolArgs": {}},
            }
        )
        await wait_until(lambda: fake_connector.current.messages_of_type("tool_result"))

        assert fake_connector.current.messages_of_type("tool_result") == [
            {
                "type": "tool_result",
                "data": {
                    "requestId": "abc123",
                    "status": "success",
                    "result": {"originalOutput": "hello"},
                },
            }
        ]

        await stop_node(node, task)

    @pytest.mark.asyncio
    async def test_concurrent_requests_each_get_one_result(self, node_config, fake_connector):
        """Concurrent requests are answered independently, in any order."""

        async def slow(args):
            await asyncio.sleep(0.05)
            return {"who": "slow"}

        provider = StaticCapabilityProvider({"slow": slow, "fast": lambda args: {"who": "fast"}})
        node = Node(node_config, provider, connector=fake_connector)
        task = await start_node(node)
        await wait_until(lambda: node.state is ConnectionState.OPEN)

        socket = fake_connector.current
        socket.feed({"type": "execute_tool", "data": {"requestId": "1", "toolName": "slow"}})
        socket.feed({"type": "execute_tool", "data": {"requestId": "2", "toolName": "fast"}})
        socket.feed({"type": "execute_tool", "data": {"requestId": "3", "toolName": "nope"}})
        await wait_until(lambda: len(socket.messages_of_type("tool_result")) == 3)

        by_id = {m["data"]["requestId"]: m["data"] for m in socket.messages_of_type("tool_result")}
        assert by_id["1"]["result"] == {"who": "slow"}
        assert by_id["2"]["result"] == {"who": "fast"}
        assert by_id["3"]["status"] == "error"

        await stop_node(node, task)

    @pytest.mark.asyncio
    async def test_node_recovers_after_disconnect(self, node_config, echo_provider):
        """After the server drops the link the node reconnects and serves again."""
        connector = FakeConnector()
        sleep = RecordingSleep()
        node = Node(node_config, echo_provider, connector=connector, sleep=sleep)
        task = await start_node(node)
        await wait_until(lambda: node.state is ConnectionState.OPEN)

        connector.current.drop()
        await wait_until(lambda: connector.attempts == 2 and node.state is ConnectionState.OPEN)
        connector.current.feed({"type": "execute_tool", "data": {"requestId": "r", "toolName": "echo"}})
        await wait_until(lambda: connector.current.messages_of_type("tool_result"))

        assert sleep.delays_ms == [5000]
        assert len(connector.current.messages_of_type("register_tools")) == 1

        await stop_node(node, task)


class TestShutdown:
    """Tests for graceful shutdown."""

    @pytest.mark.asyncio
    async def test_shutdown_closes_connection(self, node_config, echo_provider, fake_connector):
        """Shutdown closes the socket and leaves the connection closed."""
        node = Node(node_config, echo_provider, connector=fake_connector)
        task = await start_node(node)
        await wait_until(lambda: node.state is ConnectionState.OPEN)

        await stop_node(node, task)

        assert node.state is ConnectionState.CLOSED
        assert fake_connector.current.closed is True
        assert fake_connector.attempts == 1

    @pytest.mark.asyncio
    async def test_shutdown_drains_in_flight_requests(self, node_config, fake_connector):
        """Requests running at shutdown still deliver their result."""
        started = asyncio.Event()

        async def slow(args):
            started.set()
            await asyncio.sleep(0.05)
            return "finished"

        node = Node(node_config, StaticCapabilityProvider({"slow": slow}), connector=fake_connector)
        task = await start_node(node)
        await wait_until(lambda: node.state is ConnectionState.OPEN)

        fake_connector.current.feed({"type": "execute_tool", "data": {"requestId": "s", "toolName": "slow"}})
        await asyncio.wait_for(started.wait(), 1.0)
        await stop_node(node, task)

        results = fake_connector.current.messages_of_type("tool_result")
        assert [r["data"]["result"] for r in results] == [{"originalOutput": "finished"}]
