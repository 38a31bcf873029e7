"""Adapters — bindings for scp/ssh, docker and the shell.

Public re-exports for convenient access.
"""

from certdeploy.adapters.base import Adapter, ExecutionContext
from certdeploy.adapters.mock import MockAdapter
from certdeploy.adapters.registry import AdapterRegistry, default_registry

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "ExecutionContext",
    "MockAdapter",
    "default_registry",
]
