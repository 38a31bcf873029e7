"""
Work directory layout.

certdeploy shares getssl's working directory (``~/.getssl`` by default):

    <workdir>/getssl.cfg                     global config
    <workdir>/certdeploy.yml                 installer settings (optional)
    <workdir>/<domain>/getssl.cfg            domain config
    <workdir>/<domain>/<domain>.crt          issued certificate
    <workdir>/<domain>/<domain>.key          private key
    <workdir>/<domain>/chain.crt             CA chain
    <workdir>/<domain>/.install/             intermediates (ours)
    <workdir>/<domain>/.install/staging/     remote/container staging (ours)
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

DEFAULT_WORKDIR = "~/.getssl"
CONFIG_FILE = "getssl.cfg"
SETTINGS_FILE = "certdeploy.yml"
INSTALL_DIR = ".install"
STAGING_DIR = "staging"


@dataclass(frozen=True)
class WorkPaths:
    """Paths for one domain inside the work directory."""

    workdir: Path
    domain: str

    @classmethod
    def for_domain(cls, workdir: Path | str, domain: str) -> WorkPaths:
        return cls(workdir=Path(workdir).expanduser(), domain=domain)

    @property
    def global_config(self) -> Path:
        return self.workdir / CONFIG_FILE

    @property
    def domain_dir(self) -> Path:
        return self.workdir / self.domain

    @property
    def domain_config(self) -> Path:
        return self.domain_dir / CONFIG_FILE

    @property
    def cert_source(self) -> Path:
        return self.domain_dir / f"{self.domain}.crt"

    @property
    def key_source(self) -> Path:
        return self.domain_dir / f"{self.domain}.key"

    @property
    def chain_source(self) -> Path:
        return self.domain_dir / "chain.crt"

    @property
    def install_dir(self) -> Path:
        return self.domain_dir / INSTALL_DIR

    @property
    def staging_dir(self) -> Path:
        return self.install_dir / STAGING_DIR


def list_domains(workdir: Path | str) -> list[str]:
    """Domains with a config file under *workdir*, sorted."""
    root = Path(workdir).expanduser()
    if not root.is_dir():
        return []
    return sorted(
        entry.name
        for entry in root.iterdir()
        if entry.is_dir() and (entry / CONFIG_FILE).is_file()
    )
