"""
Delivery steps and their outcomes.

The planner turns each remote or container artifact into Actions
("scp the staged PEM to host1", "chmod it there"); the install use case
adds one for the reload command. Adapters answer every Action with a
Receipt instead of raising, and the executor decides what a failed
Receipt means (DeliveryError, ReloadError, AcmeClientError).
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

ReceiptStatus = Literal["ok", "skipped", "failed"]


class Action(BaseModel):
    """One external step: which adapter runs it and with what params."""

    id: str                          # "<domain>:<artifact>:<step>" or "<domain>:reload"
    adapter: str                     # shell, ssh, docker
    name: str = ""
    domain: str = ""
    artifact: str | None = None      # None for domain-wide steps
    params: dict[str, Any] = Field(default_factory=dict)


class Receipt(BaseModel):
    adapter: str
    action_id: str
    status: ReceiptStatus = "ok"
    output: str = ""
    error: str | None = None
    duration_ms: int = 0
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @classmethod
    def for_action(cls, action: Action, status: ReceiptStatus = "ok", **fields: Any) -> Receipt:
        """Receipt answering *action*."""
        return cls(adapter=action.adapter, action_id=action.id, status=status, **fields)

    @classmethod
    def success(cls, adapter: str, action_id: str, output: str = "", **fields: Any) -> Receipt:
        return cls(adapter=adapter, action_id=action_id, output=output, **fields)

    @classmethod
    def failure(cls, adapter: str, action_id: str, error: str, **fields: Any) -> Receipt:
        return cls(adapter=adapter, action_id=action_id, status="failed", error=error, **fields)
