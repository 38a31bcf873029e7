"""
Artifact kinds and permission profiles.

An artifact is one file the installer can produce: a copied certificate
or key, generated DH parameters, a concatenated bundle, or a text report.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ArtifactKind(StrEnum):
    """Every class of artifact the planner knows how to produce."""

    CA_CERT = "ca_cert"
    DOMAIN_CERT = "domain_cert"
    DOMAIN_CHAIN = "domain_chain"
    DOMAIN_KEY = "domain_key"
    DHPARAM = "dhparam"
    DOMAIN_PEM = "domain_pem"
    DH_PEM = "dh_pem"
    DH_KEY = "dh_key"
    DH_CERT = "dh_cert"
    CRT_KEY = "crt_key"
    TXT_CERT = "txt_cert"
    TXT_KEY = "txt_key"


class Privacy(StrEnum):
    """Which permission profile an artifact receives."""

    PUBLIC = "public"
    PRIVATE = "private"


class PermissionProfile(BaseModel):
    """Mode and ownership applied to an artifact after it is written.

    ``owner`` and ``group`` are optional: when unset, ownership is left
    to whatever the writing process produces.
    """

    model_config = ConfigDict(frozen=True)

    privacy: Privacy
    mode: int = Field(ge=0, le=0o7777)
    owner: str | None = None
    group: str | None = None

    @field_validator("mode", mode="before")
    @classmethod
    def _parse_octal(cls, value: object) -> object:
        # YAML and config files spell modes as "0640"
        if isinstance(value, str):
            return int(value, 8)
        return value

    @property
    def octal(self) -> str:
        return f"{self.mode:04o}"

    @property
    def ownership(self) -> str:
        """``owner:group`` in chown syntax, or empty if neither is set."""
        if not self.owner and not self.group:
            return ""
        if self.group:
            return f"{self.owner or ''}:{self.group}"
        return self.owner or ""


DEFAULT_PUBLIC_PROFILE = PermissionProfile(privacy=Privacy.PUBLIC, mode=0o644)
DEFAULT_PRIVATE_PROFILE = PermissionProfile(privacy=Privacy.PRIVATE, mode=0o640)
