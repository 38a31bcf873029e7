"""
Audit ledger — append-only install history.

Every install or issue run appends one NDJSON line to
``<workdir>/.state/audit.ndjson``: which domain, what was built, whether
the reload hook ran, and the diagnostic if the run failed.

The ledger is append-only: entries are never modified or deleted.
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_AUDIT_DIR = ".state"
DEFAULT_AUDIT_FILE = "audit.ndjson"

# Domains installed concurrently share one ledger file
_WRITE_LOCK = threading.Lock()


class AuditEntry(BaseModel):
    """A single audit log entry."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    operation_id: str = ""
    operation_type: str = ""       # install

    domain: str = ""
    force: bool = False

    status: str = ""               # ok, failed
    built: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    reloaded: bool = False
    duration_ms: int = 0

    error: str | None = None


class AuditWriter:
    """Append-only audit ledger writer.

    Each call to write() appends a single JSON line to the ledger file.
    The file is created if it doesn't exist.
    """

    def __init__(self, path: Path | None = None, workdir: Path | None = None):
        if path is not None:
            self._path = path
        elif workdir is not None:
            self._path = Path(workdir).expanduser() / DEFAULT_AUDIT_DIR / DEFAULT_AUDIT_FILE
        else:
            self._path = Path(DEFAULT_AUDIT_DIR) / DEFAULT_AUDIT_FILE

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: AuditEntry) -> None:
        """Append an audit entry to the ledger.

        A ledger that cannot be written is logged, not fatal: the
        certificates are already installed by the time we get here.
        """
        line = json.dumps(entry.model_dump(mode="json"), ensure_ascii=False) + "\n"

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with _WRITE_LOCK, self._path.open("a", encoding="utf-8") as f:
                f.write(line)
            logger.debug("Audit entry written: %s/%s", entry.operation_type, entry.domain)
        except OSError as e:
            logger.error("Failed to write audit entry: %s", e)

    def read_all(self) -> list[AuditEntry]:
        """All entries, oldest first. Corrupt lines are skipped."""
        if not self._path.is_file():
            return []

        entries = []
        try:
            with self._path.open("r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entries.append(AuditEntry.model_validate(json.loads(line)))
                    except ValueError as e:
                        logger.warning("Skipping corrupt audit entry at line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Failed to read audit ledger: %s", e)

        return entries

    def read_recent(self, n: int = 20, domain: str | None = None) -> list[AuditEntry]:
        """The most recent *n* entries, optionally for one domain."""
        entries = self.read_all()
        if domain is not None:
            entries = [e for e in entries if e.domain == domain]
        return entries[-n:]
