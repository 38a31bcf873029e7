"""
Domain configuration — everything one domain declares about installation.

Loaded once per invocation from the global and per-domain getssl.cfg
files and passed explicitly to the planner. Never mutated.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from certdeploy.core.models.artifact import ArtifactKind
from certdeploy.core.models.target import InstallTarget


class DomainConfig(BaseModel):
    """Install targets and DH settings for one domain."""

    model_config = ConfigDict(frozen=True)

    domain: str
    targets: dict[ArtifactKind, InstallTarget] = Field(default_factory=dict)
    dhparam_len: int = Field(default=2048, ge=512)
    reuse_dhparam: bool = True
    reload_cmd: str = ""

    @property
    def declared_kinds(self) -> list[ArtifactKind]:
        """Kinds with a target, in catalog order."""
        return [k for k in ArtifactKind if k in self.targets]
