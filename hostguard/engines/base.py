"""Abstract AV engine adapter interface.

All antivirus engine integrations must implement :class:`AVEngineAdapter`.
The default implementation is :class:`~hostguard.engines.clamav.ClamScanAdapter`.

Adapters hand back the engine's raw summary text rather than parsed results;
:func:`extract_summary` turns that text into counts.  Keeping parsing out of
the adapter means a scan that the engine aborted half way still yields
whatever counts it managed to print.

Usage::

    from hostguard.engines.base import AVEngineAdapter, ScanMode, extract_summary

    class MyAdapter(AVEngineAdapter):
        def scan(self, mode: ScanMode) -> str:
            ...

        def update_definitions(self) -> DefinitionsResult:
            ...

        def ping(self) -> bool:
            ...
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

from hostguard.core.sanitize import sanitize

INFECTED_LABEL = "Infected files:"
SCANNED_LABEL = "Scanned files:"


class ScanMode(str, Enum):
    """Scan-run configuration.

    ``QUICK`` restricts the path set and imposes file-size and recursion
    ceilings; ``FULL`` covers a superset of paths with no ceilings.
    """

    QUICK = "quick"
    FULL = "full"


class DefinitionsResult(str, Enum):
    """Outcome of a signature-database refresh."""

    UPDATED = "updated"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class ScanSummary:
    """Counts pulled from an engine's summary output."""

    infected: int = 0
    scanned: int = 0


def _last_value(raw: str, label: str) -> int:
    value = ""
    for line in raw.splitlines():
        if label in line:
            tail = line.split(label, 1)[1].split()
            value = tail[0] if tail else ""
    return sanitize(value)


def extract_summary(raw: str | None) -> ScanSummary:
    """Return the infected and scanned counts reported in *raw*.

    The last line carrying each label wins.  A missing label or a malformed
    value yields ``0`` for that count.
    """
    if not raw:
        return ScanSummary()
    return ScanSummary(
        infected=_last_value(raw, INFECTED_LABEL),
        scanned=_last_value(raw, SCANNED_LABEL),
    )


class AVEngineAdapter(ABC):
    """Abstract interface for antivirus scan engine adapters.

    Implementations must not raise from any method: engine failures are
    reported through the returned text or result value.

    Example — minimal stub for unit tests::

        class FakeAVAdapter(AVEngineAdapter):
            def __init__(self, output: str = "") -> None:
                self._output = output

            def scan(self, mode: ScanMode) -> str:
                return self._output

            def update_definitions(self) -> DefinitionsResult:
                return DefinitionsResult.UPDATED

            def ping(self) -> bool:
                return True
    """

    @abstractmethod
    def scan(self, mode: ScanMode) -> str:
        """Scan the path set for *mode* and return the engine's raw output.

        A non-zero engine exit status (for example because infections were
        found) is not a failure; the captured output is returned either way.

        Args:
            mode: Quick or full scan.

        Returns:
            Raw engine output.  Empty when the engine could not be invoked.
        """

    @abstractmethod
    def update_definitions(self) -> DefinitionsResult:
        """Refresh the signature database.

        Returns:
            :attr:`DefinitionsResult.UPDATED` on success,
            :attr:`DefinitionsResult.SKIPPED` on any failure, including
            upstream rate limiting (cooldown).
        """

    @abstractmethod
    def ping(self) -> bool:
        """Return ``True`` if the engine is installed and runnable."""
