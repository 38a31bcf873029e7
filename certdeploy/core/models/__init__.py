"""
Domain models — Pydantic types for the installer.

    from certdeploy.core.models import ArtifactKind, DomainConfig, Action, Receipt
"""

from certdeploy.core.models.action import Action, Receipt
from certdeploy.core.models.artifact import ArtifactKind, PermissionProfile, Privacy
from certdeploy.core.models.domain import DomainConfig
from certdeploy.core.models.settings import Settings
from certdeploy.core.models.target import (
    ContainerTarget,
    InstallTarget,
    LocalTarget,
    RemoteTarget,
    ResolvedTarget,
    TargetClass,
)

__all__ = [
    "Action",
    "ArtifactKind",
    "ContainerTarget",
    "DomainConfig",
    "InstallTarget",
    "LocalTarget",
    "PermissionProfile",
    "Privacy",
    "Receipt",
    "RemoteTarget",
    "ResolvedTarget",
    "Settings",
    "TargetClass",
]
