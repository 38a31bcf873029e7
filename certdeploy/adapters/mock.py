"""
Recording adapter for tests: stands in for shell, ssh or docker.
"""

from __future__ import annotations

from certdeploy.adapters.base import Adapter, ExecutionContext
from certdeploy.core.models.action import Receipt


class MockAdapter(Adapter):
    """Succeeds unless told otherwise, and remembers every call."""

    def __init__(self, adapter_name: str = "mock", available: bool = True):
        self._name = adapter_name
        self._available = available
        self._canned: dict[str, Receipt] = {}
        self.call_log: list[ExecutionContext] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_count(self) -> int:
        return len(self.call_log)

    @property
    def action_ids(self) -> list[str]:
        return [ctx.action.id for ctx in self.call_log]

    def is_available(self) -> bool:
        return self._available

    def set_response(self, action_id: str, receipt: Receipt) -> None:
        self._canned[action_id] = receipt

    def set_failure(self, action_id: str, error: str = "mock failure") -> None:
        self._canned[action_id] = Receipt.failure(self._name, action_id, error)

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        self.call_log.append(context)
        canned = self._canned.get(context.action.id)
        if canned is not None:
            return canned
        return Receipt.for_action(context.action, output=f"[mock] {context.action.name or context.action.id}")
