"""ClamAV command-line engine adapter.

Runs ``clamscan`` over a mode-dependent path set and ``freshclam`` for
signature refreshes.  The adapter is stateless beyond its configuration; the
scan orchestrator decides when each operation runs and what to do with the
output.

``clamscan`` exits with ``1`` when it finds infections and ``2`` on errors.
Neither is treated as a failure here: the summary it prints is still the
authoritative source of counts, and a scan that could not start at all
simply produces no summary, which the extractor reads as zero.
"""
from __future__ import annotations

import logging

from hostguard.core.runner import Runner
from hostguard.engines.base import AVEngineAdapter, DefinitionsResult, ScanMode

logger = logging.getLogger(__name__)

QUICK_SCAN_PATHS: tuple[str, ...] = ("/home", "/root")
FULL_SCAN_PATHS: tuple[str, ...] = ("/home", "/root", "/opt", "/tmp", "/var", "/usr/local")

# Resource ceilings bounding the wall-clock time of a quick scan.
QUICK_SCAN_LIMITS: tuple[str, ...] = (
    "--max-filesize=50M",
    "--max-scansize=100M",
    "--max-recursion=5",
)

# Applied in every mode: virtual filesystems, VCS metadata and caches.
EXCLUDES: tuple[str, ...] = (
    "--exclude-dir=^/sys",
    "--exclude-dir=^/proc",
    "--exclude-dir=^/dev",
    r"--exclude=\.git",
    "--exclude=node_modules",
    r"--exclude=\.cache",
)


def scan_paths(mode: ScanMode) -> tuple[str, ...]:
    return FULL_SCAN_PATHS if mode is ScanMode.FULL else QUICK_SCAN_PATHS


def build_scan_command(mode: ScanMode, binary: str = "clamscan") -> list[str]:
    """Return the ``clamscan`` argument vector for *mode*."""
    options = () if mode is ScanMode.FULL else QUICK_SCAN_LIMITS
    return [binary, "-r", "-i", *EXCLUDES, *options, *scan_paths(mode)]


class ClamScanAdapter(AVEngineAdapter):
    """Antivirus adapter for the ClamAV command-line scanner.

    Args:
        runner: Command runner used for every invocation.
        scan_timeout: Deadline in seconds for one ``clamscan`` run.
        definitions_timeout: Deadline in seconds for one ``freshclam`` run.
        clamscan: Name or path of the ``clamscan`` binary.
        freshclam: Name or path of the ``freshclam`` binary.

    Example::

        adapter = ClamScanAdapter(CommandRunner(), scan_timeout=3600)
        raw = adapter.scan(ScanMode.QUICK)
        summary = extract_summary(raw)
    """

    ENGINE_NAME = "clamav"

    def __init__(
        self,
        runner: Runner,
        *,
        scan_timeout: float | None = None,
        definitions_timeout: float | None = None,
        clamscan: str = "clamscan",
        freshclam: str = "freshclam",
    ) -> None:
        self._runner = runner
        self._scan_timeout = scan_timeout
        self._definitions_timeout = definitions_timeout
        self._clamscan = clamscan
        self._freshclam = freshclam

    # ------------------------------------------------------------------
    # AVEngineAdapter interface
    # ------------------------------------------------------------------

    def scan(self, mode: ScanMode) -> str:
        """Run ``clamscan`` for *mode* and return its combined output."""
        command = build_scan_command(mode, self._clamscan)
        logger.info(
            "ClamAV scan starting mode=%s paths=%s", mode.value, " ".join(scan_paths(mode))
        )

        result = self._runner.run(command, timeout=self._scan_timeout, merge_stderr=True)

        if result.timed_out:
            logger.error("ClamAV scan timed out mode=%s; parsing partial output", mode.value)
        elif result.returncode not in (0, 1):
            logger.warning(
                "ClamAV scan exited abnormally mode=%s returncode=%d",
                mode.value,
                result.returncode,
            )
        else:
            logger.info("ClamAV scan finished mode=%s returncode=%d", mode.value, result.returncode)

        return result.output

    def update_definitions(self) -> DefinitionsResult:
        """Run ``freshclam`` and report whether the database was refreshed."""
        result = self._runner.run([self._freshclam, "--quiet"], timeout=self._definitions_timeout)
        if result.ok:
            logger.info("Virus definitions updated")
            return DefinitionsResult.UPDATED

        logger.warning(
            "Freshclam failed returncode=%d timed_out=%s (may be in cooldown)",
            result.returncode,
            result.timed_out,
        )
        return DefinitionsResult.SKIPPED

    def ping(self) -> bool:
        """Return ``True`` if ``clamscan --version`` succeeds."""
        return self._runner.run([self._clamscan, "--version"], timeout=30).ok
