"""
ACME challenge directories — temporary "other"-write access.

getssl runs as an unprivileged user but must drop challenge files into
web roots owned by someone else. For the duration of the run the
directories get o+wx; afterwards their original modes are restored.

Several domains may share one challenge directory, so the window is
serialized process-wide by ``CHALLENGE_LOCK``.
"""

from __future__ import annotations

import logging
import os
import stat
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path

from certdeploy.core.errors import PreconditionError

logger = logging.getLogger(__name__)

CHALLENGE_LOCK = threading.Lock()

_OPEN_BITS = stat.S_IWOTH | stat.S_IXOTH


@contextmanager
def challenge_access(dirs: Iterable[Path | str]) -> Iterator[dict[Path, int]]:
    """Open *dirs* for other-write while the block runs.

    Yields the original modes. Modes are restored even if the block
    raises; a directory whose mode cannot be restored is logged.

    Raises:
        PreconditionError: A directory does not exist.
    """
    paths = [Path(d).expanduser() for d in dirs]
    missing = [str(p) for p in paths if not p.is_dir()]
    if missing:
        raise PreconditionError(
            f"Challenge directory not found: {', '.join(missing)}",
            step="challenge",
        )

    with CHALLENGE_LOCK:
        saved: dict[Path, int] = {}
        try:
            for path in paths:
                mode = stat.S_IMODE(path.stat().st_mode)
                try:
                    os.chmod(path, mode | _OPEN_BITS)
                except OSError as e:
                    raise PreconditionError(
                        f"Cannot open {path} for the ACME client: {e}",
                        step="challenge",
                    ) from e
                saved[path] = mode
                logger.debug("Opened %s (%04o → %04o)", path, mode, mode | _OPEN_BITS)
            yield dict(saved)
        finally:
            for path, mode in saved.items():
                try:
                    os.chmod(path, mode)
                    logger.debug("Restored %s to %04o", path, mode)
                except OSError as e:
                    logger.error("Cannot restore mode of %s: %s", path, e)
