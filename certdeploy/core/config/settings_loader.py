"""
Settings loader — reads the optional certdeploy.yml into Settings.

A missing file means defaults. A present but broken file is an error:
silently falling back would install keys with the wrong permissions.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from certdeploy.core.config.paths import SETTINGS_FILE
from certdeploy.core.errors import ConfigurationError
from certdeploy.core.models.settings import Settings

logger = logging.getLogger(__name__)


def load_settings(workdir: Path | str, path: Path | None = None) -> Settings:
    """Load installer settings.

    Args:
        workdir: The getssl work directory.
        path: Explicit settings file (default: ``<workdir>/certdeploy.yml``).

    Raises:
        ConfigurationError: If the file is unreadable or invalid.
    """
    if path is None:
        path = Path(workdir).expanduser() / SETTINGS_FILE

    if not path.is_file():
        logger.debug("No settings file at %s — using defaults", path)
        return Settings()

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return Settings()
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Expected a YAML mapping in {path}, got {type(data).__name__}"
        )

    try:
        settings = Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings in {path}: {e}") from e

    logger.info("Loaded settings from %s", path)
    return settings
