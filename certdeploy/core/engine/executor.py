"""
Engine executor — build and deliver the artifacts of a plan.

Nodes run one at a time in plan order (dependencies first). For every
node marked for rebuild:

    build bytes → atomic write → chmod/chown → copy to remote → remote perms

Nothing is rolled back. Every step is idempotent, so the remedy for a
failure is to fix the cause and run again. A failed delivery removes
the staging file so that the next run rebuilds and re-delivers it.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from certdeploy.adapters.registry import AdapterRegistry
from certdeploy.core.engine.builders import build_content
from certdeploy.core.engine.planner import BuildPlan, PlanNode
from certdeploy.core.errors import DeliveryError
from certdeploy.core.models.action import Receipt
from certdeploy.core.models.artifact import PermissionProfile

logger = logging.getLogger(__name__)


@dataclass
class ArtifactOutcome:
    """What happened to one plan node."""

    kind: str
    status: str = "skipped"        # built, skipped, planned, failed
    output: str = ""
    reason: str = ""
    receipts: list[Receipt] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "status": self.status,
            "output": self.output,
            "reason": self.reason,
            "receipts": [r.model_dump(mode="json") for r in self.receipts],
        }


@dataclass
class InstallReport:
    """Result of executing one domain's plan."""

    domain: str = ""
    outcomes: list[ArtifactOutcome] = field(default_factory=list)
    dry_run: bool = False

    @property
    def built(self) -> list[str]:
        return [o.kind for o in self.outcomes if o.status == "built"]

    @property
    def skipped(self) -> list[str]:
        return [o.kind for o in self.outcomes if o.status == "skipped"]

    @property
    def changed(self) -> bool:
        return bool(self.built)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.status == "failed")

    @property
    def status(self) -> str:
        if self.failed == 0:
            return "ok"
        if self.built:
            return "partial"
        return "failed"

    def to_dict(self) -> dict:
        return {
            "domain": self.domain,
            "status": self.status,
            "dry_run": self.dry_run,
            "built": self.built,
            "skipped": self.skipped,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


def execute_plan(
    plan: BuildPlan,
    registry: AdapterRegistry,
    *,
    workdir: str = ".",
    dry_run: bool = False,
    generated_at: datetime | None = None,
) -> InstallReport:
    """Build and deliver every node of *plan* that needs it.

    Args:
        plan: The plan from ``build_plan()``.
        registry: Adapter registry used for remote/container delivery.
        workdir: Work directory, passed to adapters as their cwd.
        dry_run: Report what would happen, touching nothing.
        generated_at: Timestamp for text report headers (default: now).

    Raises:
        DeliveryError: Writing, permission fixing or delivery failed.
            ``err.report`` holds the outcomes up to the failure.
    """
    report = InstallReport(domain=plan.domain, dry_run=dry_run)
    generated_at = generated_at or datetime.now(UTC)

    for node in plan.nodes:
        outcome = ArtifactOutcome(kind=str(node.kind), output=str(node.output), reason=node.reason)
        report.outcomes.append(outcome)

        if not node.rebuild:
            outcome.status = "skipped"
            continue

        if dry_run:
            outcome.status = "planned"
            for action in node.delivery:
                outcome.receipts.append(
                    registry.execute_action(action, workdir=workdir, dry_run=True)
                )
            continue

        try:
            _build_node(node, plan, generated_at)
            _deliver_node(node, registry, workdir, outcome)
        except DeliveryError as e:
            outcome.status = "failed"
            e.domain = plan.domain
            e.report = report
            raise

        outcome.status = "built"
        logger.info("✓ %s:%s → %s (%s)", plan.domain, node.kind, node.output, node.reason)

    return report


def _build_node(node: PlanNode, plan: BuildPlan, generated_at: datetime) -> None:
    try:
        content = build_content(node, plan, generated_at)
        write_atomic(node.output, content, node.profile.mode)
        apply_ownership(node.output, node.profile)
    except (OSError, LookupError, ValueError, TypeError) as e:
        raise DeliveryError(
            f"Cannot write {node.output}: {e}",
            step=f"write {node.kind}",
        ) from e


def _deliver_node(
    node: PlanNode,
    registry: AdapterRegistry,
    workdir: str,
    outcome: ArtifactOutcome,
) -> None:
    for action in node.delivery:
        receipt = registry.execute_action(action, workdir=workdir)
        outcome.receipts.append(receipt)
        if receipt.failed:
            # Forget the staged copy so the next run delivers again
            node.output.unlink(missing_ok=True)
            raise DeliveryError(
                receipt.error or "delivery failed",
                step=f"deliver {node.kind}",
            )
        logger.debug("%s → %s", action.id, receipt.status)


# ── Filesystem helpers ──────────────────────────────────────────


def write_atomic(path: Path, content: bytes, mode: int) -> None:
    """Write *content* to *path* with *mode*, never exposing a partial file.

    The temp file gets its final mode before any byte is written, so
    private material is never readable under a looser mode.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".certdeploy_", suffix=".tmp")
    try:
        os.fchmod(fd, mode)
        with os.fdopen(fd, "wb") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def apply_ownership(path: Path, profile: PermissionProfile) -> None:
    """chmod and (when configured) chown *path* per *profile*."""
    os.chmod(path, profile.mode)
    if profile.owner or profile.group:
        shutil.chown(path, user=profile.owner or None, group=profile.group or None)
