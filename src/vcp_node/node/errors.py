"""Error types for the node.

Every error carries a stable ``kind`` so log lines and reported failures can
be classified without string matching on messages.
"""

from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlparse

# Error kinds
CONFIG_MISSING = "config_missing"
PROTOCOL_VIOLATION = "protocol_violation"
NOT_CONNECTED = "not_connected"
INVOCATION_ERROR = "invocation_error"
TRANSPORT_FAULT = "transport_fault"
INTERNAL_ERROR = "internal"


@dataclass
class NodeError(Exception):
    """Base error class for node errors."""

    kind: str
    message: str
    data: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.message


@dataclass
class ConfigMissingError(NodeError):
    """Required connection settings are absent."""

    kind: str = CONFIG_MISSING
    message: str = "Main server URL or VCP key is not configured"


@dataclass
class ProtocolViolation(NodeError):
    """Inbound frame could not be parsed or is structurally invalid."""

    kind: str = PROTOCOL_VIOLATION
    message: str = "Invalid message from main server"


@dataclass
class InvocationError(NodeError):
    """A capability invocation failed."""

    kind: str = INVOCATION_ERROR
    message: str = ""


@dataclass
class TransportFault(NodeError):
    """Socket-level failure while connecting or connected."""

    kind: str = TRANSPORT_FAULT
    message: str = "Transport failure"
    retryable: bool = True


def redact_url(url: str) -> str:
    """Strip path and query from a URL so credentials embedded there are not logged."""
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        return "<invalid url>"
    return f"{parsed.scheme}://{parsed.netloc}"


def map_transport_error(error: BaseException, url: str) -> TransportFault:
    """Map a connection-level exception to a TransportFault.

    Args:
        error: Exception raised by the transport
        url: URL that was being accessed (credentials are redacted)

    Returns:
        TransportFault describing the failure
    """
    target = redact_url(url)
    detail = str(error) or type(error).__name__

    if isinstance(error, ConnectionRefusedError):
        message = f"Connection refused by {target}"
    elif isinstance(error, TimeoutError):
        message = f"Timed out connecting to {target}"
    else:
        message = f"Cannot reach main server at {target}: {detail}"

    return TransportFault(
        message=message,
        data={"url": target, "original_error": detail, "error_type": type(error).__name__},
    )
