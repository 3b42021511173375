"""Tool dispatcher for handling execute_tool messages.

Handles:
- Validating execution requests from the main server
- Invoking capabilities through the provider
- Normalizing outputs and sending exactly one tool_result per request
"""

import json
import logging
from typing import TYPE_CHECKING, Any

from .connection import ConnectionManager, encode_message
from .errors import INTERNAL_ERROR
from .types import ExecutionRequest, ExecutionResult, InvocationOutcome

if TYPE_CHECKING:
    from ..capabilities import CapabilityProvider

logger = logging.getLogger(__name__)

ORIGINAL_OUTPUT_KEY = "originalOutput"


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-standard JSON constant: {name}")


def normalize_payload(value: Any) -> Any:
    """Normalize a capability's output into structured data.

    Structured values pass through unchanged. Text is parsed as JSON and,
    when it is not valid JSON, wrapped as ``{"originalOutput": text}``.
    NaN and Infinity count as invalid, so they end up wrapped.
    """
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8", errors="replace")
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value, parse_constant=_reject_constant)
    except ValueError:
        return {ORIGINAL_OUTPUT_KEY: value}


class ToolDispatcher:
    """Executes tool requests against a capability provider.

    Keeps no per-request state; the request ID copied into the result is
    the only correlation with the coordinator.
    """

    def __init__(self, provider: "CapabilityProvider", connection: ConnectionManager):
        """Initialize tool dispatcher.

        Args:
            provider: Capability provider used to run tools
            connection: Connection used to deliver results
        """
        self._provider = provider
        self._connection = connection

    async def handle(self, data: dict[str, Any]) -> ExecutionResult | None:
        """Handle an execute_tool payload.

        Args:
            data: Message data with requestId, toolName and toolArgs

        Returns:
            The result that was sent (or dropped), None for invalid requests
        """
        request = ExecutionRequest.from_data(data)
        if request is None:
            logger.error(
                f"Invalid tool execution request received: "
                f"requestId={data.get('requestId')!r} toolName={data.get('toolName')!r}"
            )
            return None

        logger.debug(
            f"Executing tool '{request.tool_name}' for request ID: {request.request_id}"
        )

        outcome = await self._invoke(request)
        result = self._to_result(request, outcome)

        delivered = await self._connection.send(result.to_message())
        if delivered:
            logger.debug(f"Sent result for request ID: {request.request_id}")
        else:
            logger.warning(f"Dropped result for request ID: {request.request_id}")
        return result

    async def _invoke(self, request: ExecutionRequest) -> InvocationOutcome:
        """Invoke the provider, converting stray exceptions into failures."""
        try:
            return await self._provider.invoke(request.tool_name, request.arguments)
        except Exception as e:
            logger.exception(f"Provider raised while executing '{request.tool_name}'")
            return InvocationOutcome.failed(str(e), error_kind=INTERNAL_ERROR)

    def _to_result(
        self,
        request: ExecutionRequest,
        outcome: InvocationOutcome,
    ) -> ExecutionResult:
        """Convert a provider outcome into an execution result."""
        if outcome.ok:
            result = ExecutionResult.success(request.request_id, normalize_payload(outcome.value))
            try:
                encode_message(result.to_message())
            except (TypeError, ValueError) as e:
                outcome = InvocationOutcome.failed(
                    f"Tool output is not JSON serializable: {e}", error_kind=INTERNAL_ERROR
                )
            else:
                return result

        logger.error(
            f"Error executing tool '{request.tool_name}' "
            f"({outcome.error_kind}): {outcome.message}"
        )
        return ExecutionResult.failure(request.request_id, outcome.message)
