"""Types shared by the node components.

Wire message names, connection states, and the request/result/outcome
records that flow between the protocol handler, dispatcher and providers.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

UNKNOWN_ERROR_MESSAGE = "An unknown error occurred."


class ConnectionState(str, Enum):
    """Lifecycle state of the coordinator connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class MessageType:
    """Wire message types exchanged with the coordinator."""

    REGISTER_TOOLS = "register_tools"
    EXECUTE_TOOL = "execute_tool"
    TOOL_RESULT = "tool_result"


class ResultStatus(str, Enum):
    """Status of an execution result."""

    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class ExecutionRequest:
    """A single tool invocation requested by the coordinator."""

    request_id: str
    tool_name: str
    arguments: Any = None

    @classmethod
    def from_data(cls, data: dict[str, Any]) -> "ExecutionRequest | None":
        """Build a request from an ``execute_tool`` payload.

        Returns None when ``requestId`` or ``toolName`` is missing or empty,
        since there is no key to address a response to.
        """
        request_id = data.get("requestId")
        tool_name = data.get("toolName")
        if not request_id or not tool_name:
            return None
        return cls(
            request_id=str(request_id),
            tool_name=str(tool_name),
            arguments=data.get("toolArgs"),
        )


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one execution request, addressed by request ID."""

    request_id: str
    status: ResultStatus
    payload: Any = None
    error: str | None = None

    @classmethod
    def success(cls, request_id: str, payload: Any) -> "ExecutionResult":
        return cls(request_id=request_id, status=ResultStatus.SUCCESS, payload=payload)

    @classmethod
    def failure(cls, request_id: str, error: str | None) -> "ExecutionResult":
        return cls(
            request_id=request_id,
            status=ResultStatus.ERROR,
            error=error or UNKNOWN_ERROR_MESSAGE,
        )

    def to_message(self) -> dict[str, Any]:
        """Convert to a ``tool_result`` wire message."""
        data: dict[str, Any] = {
            "requestId": self.request_id,
            "status": self.status.value,
        }
        if self.status is ResultStatus.SUCCESS:
            data["result"] = self.payload
        else:
            data["error"] = self.error
        return {"type": MessageType.TOOL_RESULT, "data": data}


@dataclass(frozen=True)
class InvocationOutcome:
    """Result of invoking a capability.

    Providers return one of these instead of raising, so a failing tool is
    ordinary data rather than a fault of the node.
    """

    ok: bool
    value: Any = None
    error_kind: str | None = None
    message: str | None = None

    @classmethod
    def succeeded(cls, value: Any) -> "InvocationOutcome":
        return cls(ok=True, value=value)

    @classmethod
    def failed(cls, message: str | None, error_kind: str = "invocation_error") -> "InvocationOutcome":
        return cls(ok=False, error_kind=error_kind, message=message)
