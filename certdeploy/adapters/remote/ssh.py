"""
SSH adapter — deliver artifacts to remote hosts.

Copies with ``scp`` and fixes permissions over ``ssh``, using ``sudo``
on the remote side so the connecting user does not need to own the
destination. Uses the OpenSSH CLIs, so ``~/.ssh/config`` applies.
"""

from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
import time

from certdeploy.adapters.base import Adapter, ExecutionContext
from certdeploy.core.models.action import Receipt

logger = logging.getLogger(__name__)

_OPERATIONS = {"copy", "chmod"}


class SshAdapter(Adapter):
    """Remote copy and permission changes over SSH.

    Action params:
        operation (str): 'copy' or 'chmod'.
        host (str): Destination, ``host`` or ``user@host``.
        source (str): Local file (copy).
        dest (str): Remote path (copy).
        path (str): Remote path (chmod).
        mode (str): Octal mode, e.g. "0640" (chmod).
        owner (str): ``user:group`` for chown, optional (chmod).
    """

    def __init__(
        self,
        options: list[str] | None = None,
        sudo: bool = True,
        timeout: int = 300,
    ):
        self._options = list(options or [])
        self._sudo = sudo
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "ssh"

    def is_available(self) -> bool:
        return shutil.which("ssh") is not None and shutil.which("scp") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        params = context.action.params
        operation = params.get("operation", "")
        if operation not in _OPERATIONS:
            return False, f"Unknown operation '{operation}'. Valid: {', '.join(sorted(_OPERATIONS))}"
        if not params.get("host"):
            return False, "Missing required param: 'host'"

        required = {
            "copy": ("source", "dest"),
            "chmod": ("path", "mode"),
        }[operation]
        for key in required:
            if not params.get(key):
                return False, f"Missing required param: '{key}'"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        params = context.action.params
        operation = params["operation"]
        start = time.monotonic()

        try:
            if operation == "copy":
                argv = self.copy_command(params["source"], params["host"], params["dest"])
            else:
                remote = self.permission_command(params["path"], params["mode"], params.get("owner", ""))
                argv = self.ssh_command(params["host"], remote)
            output = self._run(argv, params.get("timeout", self._timeout))
        except subprocess.TimeoutExpired:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"ssh {operation} timed out",
            )
        except (OSError, RuntimeError) as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"ssh {operation} failed: {e}",
                metadata={"host": params["host"]},
            )

        return Receipt.success(
            adapter=self.name,
            action_id=context.action.id,
            output=output,
            duration_ms=int((time.monotonic() - start) * 1000),
            metadata={"host": params["host"], "operation": operation},
        )

    # ── Command construction ────────────────────────────────────

    def copy_command(self, source: str, host: str, dest: str) -> list[str]:
        return ["scp", "-q", *self._options, source, f"{host}:{dest}"]

    def ssh_command(self, host: str, remote_command: str) -> list[str]:
        return ["ssh", *self._options, host, remote_command]

    def permission_command(self, path: str, mode: str, owner: str = "") -> str:
        """Remote shell line applying *mode* (and *owner*) to *path*."""
        sudo = "sudo -n " if self._sudo else ""
        quoted = shlex.quote(path)
        parts = [f"{sudo}chmod {shlex.quote(mode)} {quoted}"]
        if owner:
            parts.append(f"{sudo}chown {shlex.quote(owner)} {quoted}")
        return " && ".join(parts)

    # ── Helpers ─────────────────────────────────────────────────

    def _run(self, argv: list[str], timeout: int) -> str:
        logger.debug("Running: %s", " ".join(shlex.quote(a) for a in argv))
        result = subprocess.run(
            argv,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        if result.returncode != 0:
            raise RuntimeError(
                result.stderr.strip() or f"{argv[0]} exited with code {result.returncode}"
            )
        return result.stdout.strip()
