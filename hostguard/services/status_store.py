"""StatusStore — single-file JSON persistence for the scan status record.

:class:`StatusStore` owns one JSON document (by default
``/var/lib/security-monitor/status.json``).  It is passed explicitly to the
scan orchestrator (writer) and the dashboard renderer (reader); there is no
process-wide instance.

Writes are atomic: the record is written to a temporary file in the same
directory, flushed to disk and moved over the previous file with
:func:`os.replace`, so a reader never observes a partially written record.
Neither reading nor writing ever raises to the caller.

Usage::

    from hostguard.services.status_store import StatusStore

    store = StatusStore(settings.status_file)
    record = store.load()          # defaults when nothing was saved yet
    store.save(record)             # True on success
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from hostguard.schemas.status import StatusRecord

logger = logging.getLogger(__name__)


class StatusStore:
    """Read and atomically overwrite the persisted :class:`StatusRecord`.

    Concurrent writers are not coordinated here; the scan orchestrator holds
    the run lock around its whole lifecycle.

    Args:
        path: Location of the JSON status document.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.is_file()

    def read(self) -> StatusRecord | None:
        """Return the stored record, or ``None`` if absent or unreadable."""
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            logger.warning("Status file unreadable path=%s error=%r", self._path, exc)
            return None

        try:
            payload = json.loads(raw)
        except ValueError as exc:
            logger.warning("Status file is not valid JSON path=%s error=%s", self._path, exc)
            return None

        if not isinstance(payload, dict):
            logger.warning("Status file does not hold a JSON object path=%s", self._path)
            return None

        try:
            return StatusRecord.model_validate(payload)
        except ValidationError as exc:
            logger.warning("Status file failed validation path=%s error=%s", self._path, exc)
            return None

    def load(self) -> StatusRecord:
        """Return the stored record, falling back to the never-scanned default."""
        record = self.read()
        if record is None:
            return StatusRecord()
        return record

    def save(self, record: StatusRecord) -> bool:
        """Atomically replace the stored record with *record*.

        Returns:
            ``True`` when the new record is in place, ``False`` on any
            filesystem error (the previous record, if any, is left intact).
        """
        payload = json.dumps(record.to_json_dict(), indent=2) + "\n"
        tmp_name: str | None = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.chmod(tmp_name, 0o644)
            os.replace(tmp_name, self._path)
            tmp_name = None
        except OSError as exc:
            logger.error("Failed to save status record path=%s error=%r", self._path, exc)
            return False
        finally:
            if tmp_name is not None:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)

        logger.debug("Status record saved path=%s", self._path)
        return True
