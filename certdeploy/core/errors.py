"""
Error hierarchy for planning and installing artifacts.

Every error is fatal to the current domain's run. The use-case layer
catches ``InstallError`` and turns it into a single-line diagnostic:

    example.com: deliver domain_pem: scp exited with code 1
"""

from __future__ import annotations


class InstallError(Exception):
    """Base class for all installation failures."""

    step = "install"

    def __init__(self, message: str, *, domain: str = "", step: str | None = None):
        super().__init__(message)
        self.domain = domain
        self.report = None  # partial InstallReport, when one exists
        if step is not None:
            self.step = step

    def diagnostic(self) -> str:
        """One line naming the domain and the failing step."""
        prefix = f"{self.domain}: " if self.domain else ""
        return f"{prefix}{self.step}: {self}"


class ConfigurationError(InstallError):
    """Missing or malformed configuration (bad target scheme, bad values)."""

    step = "config"


class PreconditionError(InstallError):
    """A source artifact is absent or the certificate and key do not match."""

    step = "precondition"


class DependencyCycle(InstallError):
    """The recipe catalog contains a cycle."""

    step = "catalog"


class DeliveryError(InstallError):
    """Copying an artifact to its destination or fixing its permissions failed."""

    step = "deliver"


class ReloadError(InstallError):
    """The post-install reload command failed."""

    step = "reload"


class AcmeClientError(InstallError):
    """The external ACME client failed to issue or renew."""

    step = "issue"
