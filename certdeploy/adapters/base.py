"""
Adapter base — how certdeploy reaches scp, ssh, docker and the shell.

Subclasses turn an Action into a subprocess call and report back with a
Receipt; a nonzero exit, a timeout or a missing binary is a failed
Receipt, not an exception.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel

from certdeploy.core.models.action import Action, Receipt


class ExecutionContext(BaseModel):
    action: Action
    workdir: str = "."              # getssl work dir, cwd for shell commands
    dry_run: bool = False

    @property
    def domain(self) -> str:
        return self.action.domain


class Adapter(ABC):
    """One external tool (or tool pair, for ssh/scp)."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Value of ``Action.adapter`` this adapter answers."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the binaries are on PATH."""

    @abstractmethod
    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        """Check the action's params; returns (ok, reason)."""

    @abstractmethod
    def execute(self, context: ExecutionContext) -> Receipt:
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
