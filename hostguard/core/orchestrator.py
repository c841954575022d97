"""ScanOrchestrator — the scan workflow with OpenTelemetry instrumentation.

:class:`ScanOrchestrator` runs one scan through a fixed, linear sequence of
steps:

1. **definitions_update** — refresh signatures with the signature updater
   service suspended (see :class:`~hostguard.core.services.ServiceGuard`)
2. **package_update**     — count and apply pending OS updates
3. **malware_scan**       — run the AV engine for the requested mode
4. **result_extraction**  — pull infected/scanned counts from engine output
5. **persist**            — write a fresh :class:`~hostguard.schemas.status.StatusRecord`

Each step mutates :class:`ScanRun` in place and runs inside its own child
span of the ``hostguard.scan`` root span.

**Fail-safe contract**: a failing step never aborts the run.  The exception is
recorded on the step's span, logged, and turned into a warning on the
:class:`ScanRun`; the step's outputs keep their zero defaults.  The
orchestrator therefore always reaches ``persist`` and always returns a run
carrying a record, so the dashboard never shows a scan that is stuck in
progress.  No step is retried.

The whole run holds an exclusive :class:`~hostguard.core.locking.RunLock`, so
overlapping invocations are serialised rather than racing on the status file.

Usage::

    orchestrator = ScanOrchestrator(
        engine=ClamScanAdapter(runner),
        prober=PackageUpdateProber(package_manager_for(family, runner)),
        services=ServiceManager(runner),
        store=StatusStore(settings.status_file),
        settings=settings,
    )
    run = orchestrator.run(ScanMode.FULL)
    print(run.record.scan_verdict)
"""

from __future__ import annotations

import contextlib
import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from hostguard.config import Settings, get_settings
from hostguard.console import ConsoleUI
from hostguard.core.locking import RunLock
from hostguard.core.packages import PackageUpdateProber
from hostguard.core.services import ServiceControl, suspended
from hostguard.engines.base import (
    AVEngineAdapter,
    DefinitionsResult,
    ScanMode,
    extract_summary,
)
from hostguard.engines.clamav import scan_paths
from hostguard.schemas.status import StatusRecord
from hostguard.services.status_store import StatusStore

logger = logging.getLogger(__name__)

tracer = trace.get_tracer("hostguard.scan")

WARN_DEFINITIONS = "Freshclam had issues (may be in cooldown)"

_MODE_DESCRIPTIONS = {
    ScanMode.QUICK: "QUICK SCAN (critical directories, 30-90 seconds)",
    ScanMode.FULL: "FULL SCAN (all directories, 10-30 minutes)",
}


def _now() -> datetime:
    return datetime.now().astimezone()


@dataclass
class ScanRun:
    """Mutable state of one orchestrator invocation.

    Attributes:
        mode: Quick or full scan.
        started_at: Timestamp captured at run start; persisted as the last
            scan time.
        run_id: Identifier used in logs and spans.
        definitions_result: Outcome of the signature refresh.
        update_count: Sanitized pending-update count from the prober.
        updates_skipped: ``True`` when the OS family is unsupported.
        raw_engine_output: Engine output; cleared once counts are extracted.
        infected_count: Infected files reported by the engine.
        scanned_count: Files scanned reported by the engine.
        warnings: Human-readable warnings from degraded steps.
        record: The record built by the ``persist`` step.
        persisted: Whether the record reached disk.
    """

    mode: ScanMode = ScanMode.QUICK
    started_at: datetime = field(default_factory=_now)
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    definitions_result: DefinitionsResult = DefinitionsResult.SKIPPED
    update_count: int = 0
    updates_skipped: bool = False
    raw_engine_output: str | None = None
    infected_count: int = 0
    scanned_count: int = 0
    warnings: list[str] = field(default_factory=list)
    record: StatusRecord | None = None
    persisted: bool = False

    def build_record(self) -> StatusRecord:
        return StatusRecord.from_counts(
            last_scan_time=self.started_at.isoformat(timespec="seconds"),
            infected_count=self.infected_count,
            scanned_count=self.scanned_count,
            pending_updates=self.update_count,
        )


class ScanOrchestrator:
    """Sequences definitions update, OS update, malware scan and persistence.

    All collaborators are injected so tests can drive the orchestrator with
    fakes.

    Args:
        engine: AV engine adapter.
        prober: Package-update prober for this host.
        services: Service controller used by the signature-updater guard.
        store: Status store the final record is written through.
        settings: Application settings; defaults to :func:`get_settings`.
        ui: Console for inline progress; silent when ``None``.
        clock: Returns the current timezone-aware time.
        sleep: Sleep function for service settle delays.
        use_lock: Hold the run lock for the whole run.
    """

    def __init__(
        self,
        *,
        engine: AVEngineAdapter,
        prober: PackageUpdateProber,
        services: ServiceControl,
        store: StatusStore,
        settings: Settings | None = None,
        ui: ConsoleUI | None = None,
        clock: Callable[[], datetime] = _now,
        sleep: Callable[[float], None] = time.sleep,
        use_lock: bool = True,
    ) -> None:
        self._engine = engine
        self._prober = prober
        self._services = services
        self._store = store
        self._settings = settings or get_settings()
        self._ui = ui or ConsoleUI.quiet()
        self._clock = clock
        self._sleep = sleep
        self._use_lock = use_lock

    # ------------------------------------------------------------------
    # Public entry point
    # ------------------------------------------------------------------

    def run(self, mode: ScanMode = ScanMode.QUICK) -> ScanRun:
        """Execute one scan and persist its outcome.

        Never raises for step failures; inspect ``run.warnings`` for what
        degraded.

        Returns:
            The completed :class:`ScanRun`; ``run.record`` is always set.
        """
        lock = RunLock(self._settings.lock_file) if self._use_lock else contextlib.nullcontext()
        with lock:
            run = ScanRun(mode=mode, started_at=self._clock())
            start = time.monotonic()
            logger.info("Starting %s scan run_id=%s", mode.value, run.run_id)

            if mode is ScanMode.FULL:
                self._ui.info("Running FULL security scan...")
            else:
                self._ui.info("Running quick security scan...")
                self._ui.detail("(For full scan, use: hostguard scan full)")

            with tracer.start_as_current_span(
                "hostguard.scan",
                kind=trace.SpanKind.INTERNAL,
            ) as root_span:
                root_span.set_attribute("scan.id", run.run_id)
                root_span.set_attribute("scan.mode", mode.value)

                self._ui.step(1, 3, "Updating virus definitions")
                self._run_step(run, "definitions_update", self._step_definitions, WARN_DEFINITIONS)

                self._ui.step(2, 3, "Applying system updates")
                self._run_step(run, "package_update", self._step_packages, "System update check failed")

                self._ui.step(3, 3, "Scanning for malware")
                self._run_step(run, "malware_scan", self._step_malware_scan, "Malware scan failed")
                self._run_step(
                    run, "result_extraction", self._step_extract, "Could not read scan results"
                )
                self._run_step(run, "persist", self._step_persist, "Could not save scan status")

                if run.record is None:
                    run.record = run.build_record()
                record = run.record

                duration_ms = int((time.monotonic() - start) * 1000)
                root_span.set_attribute("scan.verdict", record.scan_verdict.value)
                root_span.set_attribute("scan.infected", run.infected_count)
                root_span.set_attribute("scan.scanned", run.scanned_count)
                root_span.set_attribute("scan.warnings", len(run.warnings))
                root_span.set_attribute("scan.duration_ms", duration_ms)

            self._report(run, record, duration_ms)
            return run

    # ------------------------------------------------------------------
    # Step runner
    # ------------------------------------------------------------------

    def _run_step(
        self,
        run: ScanRun,
        step_name: str,
        step_fn: Callable[[ScanRun], None],
        warning: str,
    ) -> None:
        with tracer.start_as_current_span(f"hostguard.scan.{step_name}") as span:
            step_start = time.monotonic()
            try:
                step_fn(run)
            except Exception as exc:  # noqa: BLE001
                span.record_exception(exc)
                span.set_status(Status(StatusCode.ERROR, str(exc)))
                logger.error(
                    "Scan step '%s' failed run_id=%s error=%r; continuing",
                    step_name,
                    run.run_id,
                    exc,
                )
                run.warnings.append(warning)
                self._ui.warn(warning)
            span.set_attribute("step.duration_ms", int((time.monotonic() - step_start) * 1000))

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _step_definitions(self, run: ScanRun) -> None:
        with suspended(
            self._services,
            self._settings.freshclam_service,
            settle_seconds=self._settings.service_settle_seconds,
            sleep=self._sleep,
        ):
            run.definitions_result = self._engine.update_definitions()

        if run.definitions_result is DefinitionsResult.UPDATED:
            self._ui.ok("Virus definitions updated")
        else:
            run.warnings.append(WARN_DEFINITIONS)
            self._ui.warn(WARN_DEFINITIONS)

    def _step_packages(self, run: ScanRun) -> None:
        result = self._prober.check_and_apply(apply=True)
        run.update_count = result.count
        run.updates_skipped = result.skipped

        if result.skipped:
            self._ui.warn("Unknown OS, skipping updates")
        elif result.count == 0:
            self._ui.ok("System up to date")
        elif result.applied:
            self._ui.detail(f"Found {result.count} updates, applying...")
            self._ui.ok("Updates applied")
        else:
            message = f"Found {result.count} updates, but applying them failed"
            run.warnings.append(message)
            self._ui.warn(message)

    def _step_malware_scan(self, run: ScanRun) -> None:
        self._ui.detail(f"Mode: {_MODE_DESCRIPTIONS[run.mode]}")
        self._ui.detail(f"Scanning: {' '.join(scan_paths(run.mode))}")
        run.raw_engine_output = self._engine.scan(run.mode)
        self._archive_output(run)

    def _step_extract(self, run: ScanRun) -> None:
        summary = extract_summary(run.raw_engine_output)
        run.infected_count = summary.infected
        run.scanned_count = summary.scanned
        run.raw_engine_output = None

    def _step_persist(self, run: ScanRun) -> None:
        run.record = run.build_record()
        run.persisted = self._store.save(run.record)
        if not run.persisted:
            raise OSError(f"status record not written to {self._store.path}")

    def _archive_output(self, run: ScanRun) -> None:
        if not run.raw_engine_output:
            return
        path = self._settings.log_dir / f"scan-{int(run.started_at.timestamp())}.log"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(run.raw_engine_output, encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not archive scan output path=%s error=%r", path, exc)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def _report(self, run: ScanRun, record: StatusRecord, duration_ms: int) -> None:

        self._ui.emit()
        self._ui.detail(f"Scanned: {run.scanned_count} files")
        self._ui.detail(f"Infected: {run.infected_count} files")
        self._ui.detail(f"Updates: {run.update_count} available")
        self._ui.ok("Scan complete!")

        logger.info(
            json.dumps(
                {
                    "event": "scan_complete",
                    "run_id": run.run_id,
                    "mode": run.mode.value,
                    "scan_status": record.scan_verdict.value,
                    "infected_files": record.infected_count,
                    "scanned_files": record.scanned_count,
                    "updates_available": record.pending_updates,
                    "definitions": run.definitions_result.value,
                    "persisted": run.persisted,
                    "warnings": run.warnings,
                    "duration_ms": duration_ms,
                }
            )
        )
