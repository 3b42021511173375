"""Capability providers - where the node's tools come from."""

from .base import CapabilityProvider, StaticCapabilityProvider
from .plugins import Plugin, PluginDirectoryProvider

__all__ = [
    "CapabilityProvider",
    "StaticCapabilityProvider",
    "Plugin",
    "PluginDirectoryProvider",
]
