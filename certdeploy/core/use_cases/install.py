"""
Install use case — the full vertical slice for one domain, or all.

    load settings + config → build plan → execute → reload hook → audit

Typed errors from the layers below stop here: each becomes a one-line
diagnostic on the result ("example.com: deliver domain_pem: ...") so the
CLI can print it and exit non-zero, and so one failing domain never
stops the others in all-domains mode.
"""

from __future__ import annotations

import concurrent.futures
import logging
import threading
import time
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from certdeploy.adapters.registry import AdapterRegistry, default_registry
from certdeploy.core.config.loader import load_domain_config
from certdeploy.core.config.paths import WorkPaths, list_domains
from certdeploy.core.config.settings_loader import load_settings
from certdeploy.core.engine.executor import InstallReport, execute_plan
from certdeploy.core.engine.planner import BuildPlan, build_plan
from certdeploy.core.errors import InstallError, ReloadError
from certdeploy.core.models.action import Action
from certdeploy.core.models.domain import DomainConfig
from certdeploy.core.models.settings import Settings
from certdeploy.core.persistence.audit import AuditEntry, AuditWriter

logger = logging.getLogger(__name__)


@dataclass
class InstallResult:
    """Result of installing one domain."""

    domain: str
    plan: BuildPlan | None = None
    report: InstallReport | None = None
    reloaded: bool = False
    error: str | None = None
    error_type: str | None = None
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        result: dict = {"domain": self.domain, "ok": self.ok}
        if self.error:
            result["error"] = self.error
            result["error_type"] = self.error_type
        if self.report:
            result["report"] = self.report.to_dict()
        elif self.plan:
            result["plan"] = self.plan.to_dict()
        result["reloaded"] = self.reloaded
        result["duration_ms"] = self.duration_ms
        return result


def generate_operation_id() -> str:
    """Generate a unique operation ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"op-{now}-{short}"


def run_reload(
    config: DomainConfig,
    report: InstallReport,
    registry: AdapterRegistry,
    *,
    workdir: str,
    force: bool = False,
) -> bool:
    """Run RELOAD_CMD once if anything changed. Never after a forced rebuild.

    Returns:
        Whether the command ran.

    Raises:
        ReloadError: The command failed.
    """
    if not config.reload_cmd or report.dry_run or not report.changed:
        return False
    if force:
        logger.info("%s: forced rebuild, not running reload command", config.domain)
        return False

    action = Action(
        id=f"{config.domain}:reload",
        name="reload",
        adapter="shell",
        domain=config.domain,
        params={"command": config.reload_cmd},
    )
    receipt = registry.execute_action(action, workdir=workdir)
    if receipt.failed:
        raise ReloadError(
            receipt.error or "reload command failed",
            domain=config.domain,
        )
    logger.info("%s: reloaded (%s)", config.domain, config.reload_cmd)
    return True


def install_domain(
    domain: str,
    workdir: Path | str,
    *,
    force: bool = False,
    include_text: bool = False,
    dry_run: bool = False,
    registry: AdapterRegistry | None = None,
    settings: Settings | None = None,
    operation_id: str | None = None,
) -> InstallResult:
    """Plan, build, deliver and reload for one domain.

    Args:
        domain: Domain name (directory under the work dir).
        workdir: getssl work directory.
        force: Rebuild every artifact; skips the reload command.
        include_text: Also build the text reports.
        dry_run: Plan and report only.
        registry: Adapter registry (default: shell/ssh/docker from settings).
        settings: Installer settings (default: loaded from the work dir).
        operation_id: Shared ID when called as part of an all-domains run.
    """
    start = time.monotonic()
    result = InstallResult(domain=domain)
    paths = WorkPaths.for_domain(workdir, domain)

    try:
        settings = settings or load_settings(paths.workdir)
        config = load_domain_config(domain, paths.workdir)

        result.plan = build_plan(
            config, paths, settings, force=force, include_text=include_text,
        )

        if registry is None:
            registry = default_registry(settings)

        result.report = execute_plan(
            result.plan, registry, workdir=str(paths.workdir), dry_run=dry_run,
        )
        result.reloaded = run_reload(
            config, result.report, registry, workdir=str(paths.workdir), force=force,
        )
    except InstallError as e:
        e.domain = e.domain or domain
        if e.report is not None:
            result.report = e.report
        result.error = e.diagnostic()
        result.error_type = type(e).__name__
        logger.error("%s", result.error)

    result.duration_ms = int((time.monotonic() - start) * 1000)

    if not dry_run:
        _audit(result, paths.workdir, operation_id or generate_operation_id(), force)

    return result


def install_all(
    workdir: Path | str,
    *,
    max_workers: int | None = None,
    force: bool = False,
    include_text: bool = False,
    dry_run: bool = False,
    registry: AdapterRegistry | None = None,
    settings: Settings | None = None,
) -> list[InstallResult]:
    """Install every domain under *workdir*, several at a time.

    Domains are independent: their staging areas are domain-scoped and
    a failure in one is reported without affecting the others.

    Raises:
        ConfigurationError: The shared settings file is invalid.
    """
    root = Path(workdir).expanduser()
    settings = settings or load_settings(root)
    registry = registry or default_registry(settings)
    domains = list_domains(root)
    workers = max_workers or settings.max_workers
    operation_id = generate_operation_id()

    logger.info("Installing %d domain(s) with %d worker(s)", len(domains), workers)

    def _worker(domain: str) -> InstallResult:
        threading.current_thread().name = domain
        return install_domain(
            domain,
            root,
            force=force,
            include_text=include_text,
            dry_run=dry_run,
            registry=registry,
            settings=settings,
            operation_id=operation_id,
        )

    results: dict[str, InstallResult] = {}
    with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as pool:
        futures = {pool.submit(_worker, d): d for d in domains}
        for future in concurrent.futures.as_completed(futures):
            result = future.result()
            results[result.domain] = result

    return [results[d] for d in domains]


def _audit(result: InstallResult, workdir: Path, operation_id: str, force: bool) -> None:
    report = result.report
    AuditWriter(workdir=workdir).write(
        AuditEntry(
            operation_id=operation_id,
            operation_type="install",
            domain=result.domain,
            force=force,
            status="ok" if result.ok else "failed",
            built=report.built if report else [],
            skipped=report.skipped if report else [],
            reloaded=result.reloaded,
            duration_ms=result.duration_ms,
            error=result.error,
        )
    )
