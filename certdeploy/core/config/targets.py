"""
Target resolver — classify install locations and pick staging files.

Location strings come straight from getssl.cfg. The prefix decides the
target class once, here; nothing downstream looks at the raw string.
"""

from __future__ import annotations

import hashlib
import logging
import re
from pathlib import Path

from certdeploy.core.config.paths import WorkPaths
from certdeploy.core.errors import ConfigurationError
from certdeploy.core.models.artifact import ArtifactKind
from certdeploy.core.models.domain import DomainConfig
from certdeploy.core.models.target import (
    ContainerTarget,
    InstallTarget,
    LocalTarget,
    RemoteTarget,
    ResolvedTarget,
)

logger = logging.getLogger(__name__)

# "scheme:" at the start of a location, e.g. ssh: docker: ftp:
_SCHEME_RE = re.compile(r"^([A-Za-z][A-Za-z0-9+.-]*):")


def parse_target(value: str) -> InstallTarget:
    """Classify one location string.

    Raises:
        ConfigurationError: Unsupported scheme, missing host/container,
            or a path that is empty or relative.
    """
    raw = value.strip()
    if not raw:
        raise ConfigurationError("Empty install location")

    match = _SCHEME_RE.match(raw)
    if match is None:
        return LocalTarget(path=_check_path(str(Path(raw).expanduser()), raw))

    scheme = match.group(1)
    rest = raw[match.end():]

    if scheme not in ("ssh", "docker"):
        raise ConfigurationError(
            f"Unsupported install location scheme '{scheme}:' in '{raw}' "
            "(expected a path, ssh:HOST:PATH or docker:CONTAINER:PATH)"
        )

    where, sep, path = rest.partition(":")
    if not sep or not where:
        raise ConfigurationError(f"Missing {'host' if scheme == 'ssh' else 'container'} in '{raw}'")
    path = _check_path(path, raw)

    if scheme == "ssh":
        return RemoteTarget(host=where, path=path)
    return ContainerTarget(container=where, path=path)


def _check_path(path: str, raw: str) -> str:
    if not path:
        raise ConfigurationError(f"Missing path in '{raw}'")
    if not path.startswith("/"):
        raise ConfigurationError(f"Install path must be absolute in '{raw}'")
    return path


def staging_path_for(target: InstallTarget, paths: WorkPaths) -> Path:
    """Local file an artifact is built into before it reaches *target*.

    Remote and container targets get a file named after the SHA-256 of
    the full target string, so an unchanged target keeps its staging
    file (and its timestamp) across runs.
    """
    if isinstance(target, LocalTarget):
        return Path(target.path)
    digest = hashlib.sha256(str(target).encode("utf-8")).hexdigest()
    return paths.staging_dir / digest


def resolve_targets(
    config: DomainConfig,
    paths: WorkPaths,
) -> dict[ArtifactKind, ResolvedTarget]:
    """Resolve every declared target of a domain.

    Raises:
        ConfigurationError: When two kinds are declared to the same target.
    """
    resolved: dict[ArtifactKind, ResolvedTarget] = {}
    seen: dict[str, ArtifactKind] = {}

    for kind in config.declared_kinds:
        target = config.targets[kind]
        key = str(target)
        if key in seen:
            raise ConfigurationError(
                f"'{key}' is the install location of both {seen[key]} and {kind}",
                domain=config.domain,
            )
        seen[key] = kind

        resolved[kind] = ResolvedTarget(
            target=target,
            staging_path=staging_path_for(target, paths),
        )
        logger.debug(
            "%s: %s → %s (%s)",
            config.domain, kind, key, resolved[kind].target_class,
        )

    return resolved
