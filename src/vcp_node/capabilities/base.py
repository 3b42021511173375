"""Capability provider interface and an in-memory implementation."""

import inspect
from collections.abc import Callable, Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from ..node.types import InvocationOutcome


@runtime_checkable
class CapabilityProvider(Protocol):
    """Source of tools the node can advertise and execute."""

    def list_manifests(self) -> Sequence[dict[str, Any]]:
        """Return the ordered tool manifests."""
        ...

    async def invoke(self, name: str, arguments: Any) -> InvocationOutcome:
        """Invoke a tool by name."""
        ...


def not_found(name: str) -> InvocationOutcome:
    return InvocationOutcome.failed(f"Tool '{name}' not found", error_kind="not_found")


class StaticCapabilityProvider:
    """Provider backed by plain Python callables.

    Handlers may be sync or async and receive the tool arguments as their
    only parameter. Any exception they raise becomes a failed outcome.
    """

    def __init__(
        self,
        handlers: Mapping[str, Callable[[Any], Any]] | None = None,
        manifests: Sequence[dict[str, Any]] | None = None,
    ):
        self._handlers: dict[str, Callable[[Any], Any]] = dict(handlers or {})
        if manifests is None:
            manifests = [{"name": name} for name in self._handlers]
        self._manifests = list(manifests)

    def add(
        self,
        name: str,
        handler: Callable[[Any], Any],
        manifest: dict[str, Any] | None = None,
    ) -> None:
        """Register a tool."""
        self._handlers[name] = handler
        self._manifests.append(manifest or {"name": name})

    def list_manifests(self) -> Sequence[dict[str, Any]]:
        return list(self._manifests)

    async def invoke(self, name: str, arguments: Any) -> InvocationOutcome:
        handler = self._handlers.get(name)
        if handler is None:
            return not_found(name)

        try:
            value = handler(arguments)
            if inspect.isawaitable(value):
                value = await value
        except Exception as e:
            return InvocationOutcome.failed(str(e))
        return InvocationOutcome.succeeded(value)
