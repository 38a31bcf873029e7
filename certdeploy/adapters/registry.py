"""
Adapter registry — every Action goes through here.

The executor and the use cases never call an adapter directly: the
registry looks it up by ``Action.adapter``, validates the params, turns
dry runs into skipped receipts, and makes sure a Receipt comes back
even if an adapter misbehaves.
"""

from __future__ import annotations

import logging
import time

from certdeploy.adapters.base import Adapter, ExecutionContext
from certdeploy.core.models.action import Action, Receipt
from certdeploy.core.models.settings import Settings

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Adapters by name, plus dispatch."""

    def __init__(self) -> None:
        self._adapters: dict[str, Adapter] = {}

    def register(self, adapter: Adapter) -> None:
        if adapter.name in self._adapters:
            logger.warning("Replacing adapter %s", adapter.name)
        self._adapters[adapter.name] = adapter

    def get(self, name: str) -> Adapter | None:
        return self._adapters.get(name)

    def unavailable(self, names: list[str]) -> list[str]:
        """Which of *names* are unregistered or missing their binaries."""
        missing = []
        for name in names:
            adapter = self._adapters.get(name)
            if adapter is None or not adapter.is_available():
                missing.append(name)
        return missing

    def execute_action(
        self,
        action: Action,
        workdir: str = ".",
        dry_run: bool = False,
    ) -> Receipt:
        """Validate and run *action*. Never raises."""
        start = time.monotonic()

        adapter = self._adapters.get(action.adapter)
        if adapter is None:
            return Receipt.for_action(
                action, "failed", error=f"No adapter registered for '{action.adapter}'",
            )

        context = ExecutionContext(action=action, workdir=workdir, dry_run=dry_run)

        try:
            is_valid, reason = adapter.validate(context)
        except Exception as e:
            return Receipt.for_action(action, "failed", error=f"Validation error: {e}")
        if not is_valid:
            return Receipt.for_action(action, "failed", error=f"Validation failed: {reason}")

        if dry_run:
            return Receipt.for_action(
                action, "skipped", output=f"[dry-run] would {action.name or action.id}",
            )

        try:
            receipt = adapter.execute(context)
        except Exception as e:
            logger.error("Adapter %s raised on %s: %s", action.adapter, action.id, e)
            receipt = Receipt.for_action(action, "failed", error=f"Unexpected error: {e}")

        receipt.duration_ms = int((time.monotonic() - start) * 1000)
        return receipt


def default_registry(settings: Settings | None = None) -> AdapterRegistry:
    """Registry with the shell, ssh and docker adapters configured from *settings*."""
    from certdeploy.adapters.containers.docker import DockerAdapter
    from certdeploy.adapters.remote.ssh import SshAdapter
    from certdeploy.adapters.shell.command import ShellCommandAdapter

    settings = settings or Settings()
    registry = AdapterRegistry()
    registry.register(ShellCommandAdapter(timeout=settings.timeout))
    registry.register(
        SshAdapter(
            options=settings.ssh_options,
            sudo=settings.remote_sudo,
            timeout=settings.timeout,
        )
    )
    registry.register(DockerAdapter(timeout=settings.timeout))
    return registry
