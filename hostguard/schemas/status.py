"""Pydantic schema for the persisted scan status record.

``StatusRecord`` is the single snapshot of the most recently completed scan.
It is serialised with the legacy JSON key names so that files written by the
shell-based monitor remain readable::

    {
      "last_scan": "2026-10-19T02:00:04+00:00",
      "scan_status": "clean",
      "infected_files": 0,
      "scanned_files": 7654,
      "updates_available": 0
    }

Usage::

    from hostguard.schemas.status import StatusRecord

    record = StatusRecord.from_counts(
        last_scan_time=started_at.isoformat(timespec="seconds"),
        infected_count=0,
        scanned_count=7654,
        pending_updates=3,
    )
    payload = record.to_json_dict()
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from hostguard.core.sanitize import sanitize

NEVER = "never"


class ScanVerdict(str, Enum):
    """Outcome of the last completed scan."""

    CLEAN = "clean"
    ATTENTION = "attention"


class StatusRecord(BaseModel):
    """Persisted status of the most recent scan.

    Every counter is run through :func:`~hostguard.core.sanitize.sanitize`
    during validation, so a record built from a fresh scan and a record read
    back from disk obey the same invariant: counters are never negative and
    never non-numeric.  Counters written as strings by older writers are
    accepted.

    ``scan_verdict`` is always recomputed from ``infected_count``.
    """

    model_config = ConfigDict(populate_by_name=True)

    last_scan_time: str = Field(default=NEVER, alias="last_scan")
    scan_verdict: ScanVerdict = Field(default=ScanVerdict.CLEAN, alias="scan_status")
    infected_count: int = Field(default=0, ge=0, alias="infected_files")
    scanned_count: int = Field(default=0, ge=0, alias="scanned_files")
    pending_updates: int = Field(default=0, ge=0, alias="updates_available")

    @field_validator("infected_count", "scanned_count", "pending_updates", mode="before")
    @classmethod
    def sanitize_counter(cls, v: Any) -> int:
        if isinstance(v, bool):
            return 0
        if isinstance(v, int):
            v = str(v)
        return sanitize(v)

    @field_validator("last_scan_time", mode="before")
    @classmethod
    def normalise_timestamp(cls, v: Any) -> str:
        if not isinstance(v, str) or not v.strip():
            return NEVER
        return v.strip()

    @field_validator("scan_verdict", mode="before")
    @classmethod
    def tolerate_unknown_verdict(cls, v: Any) -> Any:
        # Overwritten by derive_verdict; only needs to pass enum validation.
        if isinstance(v, ScanVerdict):
            return v
        return ScanVerdict.CLEAN

    @model_validator(mode="after")
    def derive_verdict(self) -> "StatusRecord":
        self.scan_verdict = (
            ScanVerdict.ATTENTION if self.infected_count > 0 else ScanVerdict.CLEAN
        )
        return self

    @classmethod
    def from_counts(
        cls,
        *,
        last_scan_time: str,
        infected_count: Any,
        scanned_count: Any,
        pending_updates: Any,
    ) -> "StatusRecord":
        return cls(
            last_scan_time=last_scan_time,
            infected_count=infected_count,
            scanned_count=scanned_count,
            pending_updates=pending_updates,
        )

    @property
    def has_scanned(self) -> bool:
        return self.last_scan_time != NEVER

    def to_json_dict(self) -> dict[str, Any]:
        """Return the record keyed by its on-disk field names."""
        return self.model_dump(by_alias=True, mode="json")
