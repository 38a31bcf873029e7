"""
Install targets — where one artifact of one domain ends up.

A target is decided once, at load time, from its configuration string:

    /etc/ssl/example.crt              → LocalTarget
    ssh:host1:/etc/nginx/example.pem  → RemoteTarget
    docker:web:/etc/ssl/example.key   → ContainerTarget
"""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class TargetClass(StrEnum):
    """How an artifact reaches its destination."""

    LOCAL = "local"
    REMOTE = "remote"
    CONTAINER = "container"


class LocalTarget(BaseModel):
    """A path on this machine."""

    model_config = ConfigDict(frozen=True)

    type: Literal["local"] = "local"
    path: str

    @property
    def target_class(self) -> TargetClass:
        return TargetClass.LOCAL

    def __str__(self) -> str:
        return self.path


class RemoteTarget(BaseModel):
    """A path on another host, reached over SSH."""

    model_config = ConfigDict(frozen=True)

    type: Literal["remote"] = "remote"
    host: str
    path: str

    @property
    def target_class(self) -> TargetClass:
        return TargetClass.REMOTE

    def __str__(self) -> str:
        return f"ssh:{self.host}:{self.path}"


class ContainerTarget(BaseModel):
    """A path inside a named Docker container."""

    model_config = ConfigDict(frozen=True)

    type: Literal["container"] = "container"
    container: str
    path: str

    @property
    def target_class(self) -> TargetClass:
        return TargetClass.CONTAINER

    def __str__(self) -> str:
        return f"docker:{self.container}:{self.path}"


InstallTarget = Annotated[
    Union[LocalTarget, RemoteTarget, ContainerTarget],
    Field(discriminator="type"),
]


class ResolvedTarget(BaseModel):
    """A target plus the local file the artifact is built into.

    For local targets ``staging_path`` is the destination itself. For
    remote and container targets it is a scratch file in the domain's
    work directory, named after a hash of the target string.
    """

    model_config = ConfigDict(frozen=True)

    target: InstallTarget
    staging_path: Path

    @property
    def target_class(self) -> TargetClass:
        return self.target.target_class

    @property
    def canonical_path(self) -> str:
        return self.target.path

    @property
    def is_remote(self) -> bool:
        return self.target_class is not TargetClass.LOCAL

    def as_tuple(self) -> tuple[TargetClass, str, Path]:
        return self.target_class, self.canonical_path, self.staging_path
