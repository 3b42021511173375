"""Node module - the connection and dispatch core.

Connects to the main server over WebSocket, registers local tools and
executes tool requests on the server's behalf.
"""

from .command import run_node
from .connection import ConnectionManager
from .dispatcher import ToolDispatcher, normalize_payload
from .errors import (
    ConfigMissingError,
    InvocationError,
    NodeError,
    ProtocolViolation,
    TransportFault,
    map_transport_error,
)
from .lifecycle import Node
from .protocol import ProtocolHandler, decode_frame
from .types import (
    ConnectionState,
    ExecutionRequest,
    ExecutionResult,
    InvocationOutcome,
    MessageType,
    ResultStatus,
)

__all__ = [
    # Node execution
    "run_node",
    "Node",
    # Core components
    "ConnectionManager",
    "ProtocolHandler",
    "ToolDispatcher",
    "decode_frame",
    "normalize_payload",
    # Errors
    "NodeError",
    "ConfigMissingError",
    "ProtocolViolation",
    "InvocationError",
    "TransportFault",
    "map_transport_error",
    # Types
    "ConnectionState",
    "MessageType",
    "ResultStatus",
    "ExecutionRequest",
    "ExecutionResult",
    "InvocationOutcome",
]
