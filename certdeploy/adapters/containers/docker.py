"""
Docker adapter — deliver artifacts into containers.

Uses the docker CLI — never the Docker API directly. Files are copied
with ``docker cp`` and permissions fixed with ``docker exec -u root``,
which works regardless of the container's default user.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import time

from certdeploy.adapters.base import Adapter, ExecutionContext
from certdeploy.core.models.action import Receipt

logger = logging.getLogger(__name__)

_OPERATIONS = {"copy", "chmod"}


class DockerAdapter(Adapter):
    """Container copy and permission operations.

    Action params:
        operation (str): 'copy' or 'chmod'.
        container (str): Target container name or ID.
        source (str): Local file (copy).
        dest (str): Path inside the container (copy).
        path (str): Path inside the container (chmod).
        mode (str): Octal mode, e.g. "0640" (chmod).
        owner (str): ``user:group`` for chown, optional (chmod).
    """

    def __init__(self, timeout: int = 300):
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "docker"

    def is_available(self) -> bool:
        return shutil.which("docker") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        params = context.action.params
        operation = params.get("operation", "")
        if operation not in _OPERATIONS:
            return False, f"Unknown operation '{operation}'. Valid: {', '.join(sorted(_OPERATIONS))}"
        if not params.get("container"):
            return False, "Missing required param: 'container'"

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
                output = self._docker(
                    ["cp", params["source"], f"{params['container']}:{params['dest']}"],
                    params,
                )
            else:
                output = self._chmod(params)
        except subprocess.TimeoutExpired:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"docker {operation} timed out",
            )
        except (OSError, RuntimeError) as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Docker error: {e}",
                metadata={"container": params.get("container", "")},
            )

        return Receipt.success(
            adapter=self.name,
            action_id=context.action.id,
            output=output,
            duration_ms=int((time.monotonic() - start) * 1000),
            metadata={"container": params.get("container", ""), "operation": operation},
        )

    # ── Operations ──────────────────────────────────────────────

    def _chmod(self, params: dict) -> str:
        container, path = params["container"], params["path"]
        outputs = [
            self._docker(["exec", "-u", "root", container, "chmod", params["mode"], path], params)
        ]
        if params.get("owner"):
            outputs.append(
                self._docker(["exec", "-u", "root", container, "chown", params["owner"], path], params)
            )
        return "\n".join(o for o in outputs if o)

    # ── Helpers ─────────────────────────────────────────────────

    def _docker(self, args: list[str], params: dict) -> str:
        """Run a docker command and return stdout."""
        timeout = params.get("timeout", self._timeout)
        logger.debug("Running: docker %s", " ".join(args))
        result = subprocess.run(
            ["docker", *args],
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        if result.returncode != 0:
            raise RuntimeError(result.stderr.strip() or f"docker {args[0]} failed")
        return result.stdout.strip()
