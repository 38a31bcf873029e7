"""
Issue use case — run the ACME client, then install.

The ACME client (getssl by default) is an external program: we only
build its command line, open the challenge directories for the length
of the run, and hand its output over to ``install_domain``.
"""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass
from pathlib import Path

from certdeploy.adapters.registry import AdapterRegistry, default_registry
from certdeploy.core.config.settings_loader import load_settings
from certdeploy.core.errors import AcmeClientError, InstallError
from certdeploy.core.models.action import Action
from certdeploy.core.models.settings import Settings
from certdeploy.core.services.challenge import challenge_access
from certdeploy.core.use_cases.install import InstallResult, install_domain

logger = logging.getLogger(__name__)


@dataclass
class IssueResult:
    """Result of issuing (or renewing) and installing one domain."""

    domain: str
    command: str = ""
    output: str = ""
    install: InstallResult | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        if self.error:
            return False
        return self.install is None or self.install.ok

    def to_dict(self) -> dict:
        result: dict = {"domain": self.domain, "ok": self.ok, "command": self.command}
        if self.error:
            result["error"] = self.error
        if self.install:
            result["install"] = self.install.to_dict()
        return result


def acme_command(domain: str, workdir: Path, settings: Settings, *, force: bool = False) -> str:
    """Command line for the ACME client.

    >>> acme_command("example.com", Path("/w"), Settings())
    'getssl -w /w example.com'
    """
    argv = [*shlex.split(settings.acme_command), "-w", str(workdir)]
    if force:
        argv.append("-f")
    argv.append(domain)
    if settings.acme_user:
        argv = ["sudo", "-u", settings.acme_user, "-H", *argv]
    return shlex.join(argv)


def issue_domain(
    domain: str,
    workdir: Path | str,
    *,
    force: bool = False,
    include_text: bool = False,
    dry_run: bool = False,
    registry: AdapterRegistry | None = None,
    settings: Settings | None = None,
) -> IssueResult:
    """Issue or renew *domain* with the ACME client, then install it.

    Args:
        force: Ask the ACME client to renew now. The install that follows
            is not forced: the renewed files are newer than every installed
            artifact, so they all rebuild and the reload command runs.
        dry_run: Show the ACME command and the install plan only.
    """
    root = Path(workdir).expanduser()
    result = IssueResult(domain=domain)

    try:
        settings = settings or load_settings(root)
        registry = registry or default_registry(settings)
        result.command = acme_command(domain, root, settings, force=force)

        if dry_run:
            logger.info("%s: would run %s", domain, result.command)
        else:
            result.output = _run_acme_client(domain, result.command, root, settings, registry)
    except InstallError as e:
        e.domain = e.domain or domain
        result.error = e.diagnostic()
        logger.error("%s", result.error)
        return result

    result.install = install_domain(
        domain,
        root,
        include_text=include_text,
        dry_run=dry_run,
        registry=registry,
        settings=settings,
    )
    return result


def _run_acme_client(
    domain: str,
    command: str,
    workdir: Path,
    settings: Settings,
    registry: AdapterRegistry,
) -> str:
    action = Action(
        id=f"{domain}:issue",
        name="issue",
        adapter="shell",
        domain=domain,
        params={"command": command, "cwd": str(workdir)},
    )

    logger.info("%s: running %s", domain, command)
    with challenge_access(settings.challenge_dirs):
        receipt = registry.execute_action(action, workdir=str(workdir))

    if receipt.failed:
        raise AcmeClientError(receipt.error or "ACME client failed", domain=domain)
    return receipt.output
