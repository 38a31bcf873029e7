"""
Config check use case — validate a domain's configuration and report issues.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from certdeploy.adapters.registry import AdapterRegistry, default_registry
from certdeploy.core.catalog.recipes import config_key
from certdeploy.core.config.loader import load_domain_config
from certdeploy.core.config.paths import WorkPaths
from certdeploy.core.config.settings_loader import load_settings
from certdeploy.core.config.targets import resolve_targets
from certdeploy.core.errors import ConfigurationError
from certdeploy.core.models.domain import DomainConfig
from certdeploy.core.models.target import TargetClass

# Adapter each target class is delivered through
_ADAPTERS = {
    TargetClass.REMOTE: "ssh",
    TargetClass.CONTAINER: "docker",
}


@dataclass
class ConfigCheckResult:
    """Result of configuration validation."""

    domain: str
    valid: bool = False
    config: DomainConfig | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        targets = {}
        if self.config:
            targets = {config_key(k): str(t) for k, t in self.config.targets.items()}
        return {
            "domain": self.domain,
            "valid": self.valid,
            "errors": self.errors,
            "warnings": self.warnings,
            "targets": targets,
            "dhparam_len": self.config.dhparam_len if self.config else None,
            "reuse_dhparam": self.config.reuse_dhparam if self.config else None,
            "reload_cmd": self.config.reload_cmd if self.config else None,
        }


def check_config(
    domain: str,
    workdir: Path | str,
    registry: AdapterRegistry | None = None,
) -> ConfigCheckResult:
    """Validate the settings file and *domain*'s merged configuration.

    Missing ACME output and missing local tools are warnings: the
    configuration itself can be fine before the first issuance.
    """
    result = ConfigCheckResult(domain=domain)
    paths = WorkPaths.for_domain(workdir, domain)

    try:
        settings = load_settings(paths.workdir)
        config = load_domain_config(domain, paths.workdir)
        resolved = resolve_targets(config, paths)
    except ConfigurationError as e:
        result.errors.append(str(e))
        return result

    result.config = config

    for source in (paths.cert_source, paths.key_source, paths.chain_source):
        if not source.is_file():
            result.warnings.append(f"Not issued yet: {source} does not exist")

    needed = sorted({
        _ADAPTERS[r.target_class] for r in resolved.values() if r.target_class in _ADAPTERS
    })
    registry = registry or default_registry(settings)
    for name in registry.unavailable(needed):
        result.warnings.append(
            f"'{name}' delivery unavailable: its tools are not on PATH"
        )

    if not config.reuse_dhparam:
        result.warnings.append(
            "REUSE_DHPARAM is not true: DH parameters are regenerated on every run"
        )

    result.valid = not result.errors
    return result
