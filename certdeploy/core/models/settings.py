"""
Tool settings — optional ``certdeploy.yml`` in the work directory.

These are the knobs getssl.cfg has no keys for: permission profiles,
SSH options, concurrency, and how to invoke the ACME client.

Example::

    public:
      mode: "0644"
    private:
      mode: "0640"
      owner: root
      group: ssl-cert
    ssh_options: ["-o", "BatchMode=yes"]
    max_workers: 4
    acme_user: getssl
    challenge_dirs:
      - /var/www/html/.well-known/acme-challenge
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from certdeploy.core.models.artifact import (
    DEFAULT_PRIVATE_PROFILE,
    DEFAULT_PUBLIC_PROFILE,
    PermissionProfile,
    Privacy,
)


def _with_privacy(value: Any, privacy: Privacy) -> Any:
    if isinstance(value, dict) and "privacy" not in value:
        return {**value, "privacy": privacy}
    return value


class Settings(BaseModel):
    """Installer-wide settings shared by every domain."""

    public: PermissionProfile = DEFAULT_PUBLIC_PROFILE
    private: PermissionProfile = DEFAULT_PRIVATE_PROFILE

    ssh_options: list[str] = Field(
        default_factory=lambda: ["-o", "BatchMode=yes", "-o", "ConnectTimeout=10"]
    )
    remote_sudo: bool = True
    timeout: int = Field(default=300, ge=1)

    max_workers: int = Field(default=4, ge=1)

    acme_command: str = "getssl"
    acme_user: str = ""
    challenge_dirs: list[str] = Field(default_factory=list)

    @field_validator("public", mode="before")
    @classmethod
    def _public_privacy(cls, value: Any) -> Any:
        return _with_privacy(value, Privacy.PUBLIC)

    @field_validator("private", mode="before")
    @classmethod
    def _private_privacy(cls, value: Any) -> Any:
        return _with_privacy(value, Privacy.PRIVATE)

    @model_validator(mode="after")
    def _profiles_match_privacy(self) -> Settings:
        if self.public.privacy is not Privacy.PUBLIC:
            raise ValueError("public profile must have privacy=public")
        if self.private.privacy is not Privacy.PRIVATE:
            raise ValueError("private profile must have privacy=private")
        return self

    def profile_for(self, privacy: Privacy) -> PermissionProfile:
        return self.private if privacy is Privacy.PRIVATE else self.public
