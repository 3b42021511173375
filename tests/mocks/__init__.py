"""Test mocks for vcp-node.

Provides mock implementations for testing:
- FakeWebSocket / FakeConnector: Simulate the main server connection
- RecordingSleep: Captures reconnect backoff delays
"""

from .coordinator import FakeConnector, FakeWebSocket, RecordingSleep, wait_until

__all__ = ["FakeConnector", "FakeWebSocket", "RecordingSleep", "wait_until"]
