"""
Configuration loader — reads getssl.cfg files into a DomainConfig.

getssl configs are shell fragments that getssl sources. We only need
the assignments, so each line is tokenized with ``shlex`` and lines
that are not ``KEY=value`` are ignored:

    # comment
    DOMAIN_CERT_LOCATION="/etc/ssl/example.crt"
    DOMAIN_PEM_LOCATION=ssh:host1:/etc/nginx/example.pem
    RELOAD_CMD="systemctl reload nginx"

The domain file overrides the global one, key by key. As when getssl
sources them, $DOMAIN and earlier assignments are expanded in values
(``"/etc/ssl/${DOMAIN}.crt"``); anything left unexpanded in a location is
rejected.
"""

from __future__ import annotations

import logging
import re
import shlex
from pathlib import Path
from string import Template

from pydantic import ValidationError

from certdeploy.core.catalog.recipes import kind_for_key
from certdeploy.core.config.paths import WorkPaths
from certdeploy.core.config.targets import parse_target
from certdeploy.core.errors import ConfigurationError
from certdeploy.core.models.artifact import ArtifactKind
from certdeploy.core.models.domain import DomainConfig
from certdeploy.core.models.target import InstallTarget

logger = logging.getLogger(__name__)

_ASSIGN_RE = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)=(.*)$", re.DOTALL)

# Keys we interpret besides the *_LOCATION ones
DHPARAM_LEN_KEY = "DOMAIN_DHPARAM_LEN"
REUSE_DHPARAM_KEY = "REUSE_DHPARAM"
RELOAD_CMD_KEY = "RELOAD_CMD"


def parse_config_text(
    text: str,
    source: str = "<string>",
    env: dict[str, str] | None = None,
) -> dict[str, str]:
    """Extract ``KEY=value`` assignments from a getssl config.

    ``$NAME`` / ``${NAME}`` in a value is replaced from *env* and the
    assignments above it; unknown names are left as written.

    Raises:
        ConfigurationError: On a line ``shlex`` cannot tokenize
            (e.g. an unterminated quote).
    """
    values: dict[str, str] = {}
    scope = dict(env or {})

    for line_num, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue

        try:
            tokens = shlex.split(stripped, comments=True)
        except ValueError as e:
            raise ConfigurationError(f"{source}:{line_num}: {e}") from e

        if tokens and tokens[0] == "export":
            tokens = tokens[1:]
        if not tokens:
            continue

        match = _ASSIGN_RE.match(tokens[0])
        if match is None:
            logger.debug("%s:%d: not an assignment, ignored", source, line_num)
            continue

        key, value = match.groups()
        value = Template(value).safe_substitute(scope)
        values[key] = scope[key] = value

    return values


def read_config_file(path: Path, env: dict[str, str] | None = None) -> dict[str, str]:
    """Read and parse one config file (missing file → empty mapping)."""
    if not path.is_file():
        return {}
    try:
        raw = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Cannot read {path}: {e}") from e
    return parse_config_text(raw, source=str(path), env=env)


def build_domain_config(domain: str, values: dict[str, str]) -> DomainConfig:
    """Turn merged key-value pairs into a validated DomainConfig.

    Raises:
        ConfigurationError: No install location declared, a malformed
            location, or an invalid DH parameter length.
    """
    targets: dict[ArtifactKind, InstallTarget] = {}

    for key, value in values.items():
        kind = kind_for_key(key)
        if kind is None:
            continue
        if not value.strip():
            continue  # declared but empty → not installed
        if "$" in value:
            raise ConfigurationError(
                f"{key}: unexpanded variable in '{value}'", domain=domain,
            )
        try:
            targets[kind] = parse_target(value)
        except ConfigurationError as e:
            raise ConfigurationError(f"{key}: {e}", domain=domain) from e

    if not targets:
        raise ConfigurationError(
            "No install location configured (set at least one *_LOCATION key)",
            domain=domain,
        )

    fields: dict[str, object] = {
        "domain": domain,
        "targets": targets,
        "reload_cmd": values.get(RELOAD_CMD_KEY, "").strip(),
    }

    raw_len = values.get(DHPARAM_LEN_KEY, "").strip()
    if raw_len:
        try:
            fields["dhparam_len"] = int(raw_len)
        except ValueError as e:
            raise ConfigurationError(
                f"{DHPARAM_LEN_KEY} must be an integer, got '{raw_len}'",
                domain=domain,
            ) from e

    if REUSE_DHPARAM_KEY in values:
        fields["reuse_dhparam"] = values[REUSE_DHPARAM_KEY].strip() == "true"

    try:
        return DomainConfig.model_validate(fields)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}", domain=domain) from e


def load_domain_config(domain: str, workdir: Path | str) -> DomainConfig:
    """Load the global and domain config files for *domain*.

    Raises:
        ConfigurationError: If the domain has no config file or the
            merged configuration is invalid.
    """
    paths = WorkPaths.for_domain(workdir, domain)

    if not paths.domain_config.is_file():
        raise ConfigurationError(
            f"Config file not found: {paths.domain_config}",
            domain=domain,
        )

    logger.debug("Loading config for %s from %s", domain, paths.domain_dir)

    env = {"DOMAIN": domain}
    values = read_config_file(paths.global_config, env=env)
    values.update(read_config_file(paths.domain_config, env={**env, **values}))

    config = build_domain_config(domain, values)
    logger.info(
        "Loaded %s: %d install location(s)", domain, len(config.targets)
    )
    return config
