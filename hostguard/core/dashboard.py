"""DashboardRenderer — compose the status view from the record and live probes.

The persisted :class:`~hostguard.schemas.status.StatusRecord` is only used for
what cannot be re-derived cheaply: the outcome of the last completed scan.
Everything else (service states, the scheduling artifact, the signature
database on disk) is probed live every time :meth:`DashboardRenderer.render`
is called.

Sections are produced in a fixed order:

1. Scan Status
2. Security Compliance
3. System Updates
4. Services Status
5. Virus Database
6. Quick Actions

When no readable record exists a single "No scan data available" section is
returned instead, and no counters are read.

The renderer builds plain data (:class:`Dashboard`, :class:`Section`,
:class:`Row`); :mod:`hostguard.console` turns that into terminal text.
"""

from __future__ import annotations

import logging
import stat
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, Protocol

from hostguard.config import Settings
from hostguard.core.compliance import ComplianceAssessment, evaluate, is_automation_configured
from hostguard.core.packages import PackageUpdateProber
from hostguard.schemas.status import ScanVerdict, StatusRecord
from hostguard.services.status_store import StatusStore

logger = logging.getLogger(__name__)

# Hours since the last scan before the freshness indicator degrades.
FRESH_HOURS = 24
STALE_HOURS = 48

DEFINITIONS_FILES = ("daily.cvd", "daily.cld")
BAR_CELLS = 20


class Tone(str, Enum):
    GOOD = "good"
    WARN = "warn"
    BAD = "bad"
    INFO = "info"
    PLAIN = "plain"


@dataclass(frozen=True)
class Row:
    label: str
    value: str
    tone: Tone = Tone.INFO


@dataclass
class Section:
    title: str
    icon: str = ""
    rows: list[Row] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)

    def row(self, label: str, value: str, tone: Tone = Tone.INFO) -> None:
        self.rows.append(Row(label, value, tone))

    def value_of(self, label: str) -> str | None:
        for row in self.rows:
            if row.label == label:
                return row.value
        return None


@dataclass
class Dashboard:
    sections: list[Section] = field(default_factory=list)
    record: StatusRecord | None = None
    compliance: ComplianceAssessment | None = None

    @property
    def has_data(self) -> bool:
        return self.record is not None

    def section(self, title: str) -> Section | None:
        for section in self.sections:
            if section.title == title:
                return section
        return None


class ServiceProbe(Protocol):
    def any_active(self, units: Iterable[str]) -> bool: ...

    def any_enabled(self, units: Iterable[str]) -> bool: ...

    def is_active(self, unit: str) -> bool: ...

    def is_enabled(self, unit: str) -> bool: ...


def _now() -> datetime:
    return datetime.now().astimezone()


def compliance_bar(score: int, cells: int = BAR_CELLS) -> str:
    """Return a fixed-width bar, one filled cell per 5 points."""
    filled = max(0, min(cells, score * cells // 100))
    return "█" * filled + "░" * (cells - filled)


def newest_definitions(db_dir: Path) -> tuple[Path, float] | None:
    """Return the most recently modified daily signature file and its mtime.

    Each candidate is stat'ed once; a file replaced or removed mid-check
    by freshclam is skipped.
    """
    found: list[tuple[Path, float]] = []
    for name in DEFINITIONS_FILES:
        path = db_dir / name
        try:
            info = path.stat()
        except OSError:
            continue
        if stat.S_ISREG(info.st_mode):
            found.append((path, info.st_mtime))
    if not found:
        return None
    return max(found, key=lambda item: item[1])


def next_scheduled_scan(now: datetime, hour: int) -> datetime:
    candidate = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


def _parse_timestamp(value: str) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed


class DashboardRenderer:
    """Build the multi-section status view.

    Args:
        store: Status store holding the last scan's record.
        services: Service probe (``is_active``/``is_enabled`` and the
            ``any_*`` variants).
        settings: Application settings (paths, unit names, schedule).
        prober: Optional package-update prober used when a live update
            count is requested.
        upgrade_hint: Command suggested for applying updates manually.
        clock: Returns the current timezone-aware time.
    """

    def __init__(
        self,
        *,
        store: StatusStore,
        services: ServiceProbe,
        settings: Settings,
        prober: PackageUpdateProber | None = None,
        upgrade_hint: str = "",
        clock: Callable[[], datetime] = _now,
    ) -> None:
        self._store = store
        self._services = services
        self._settings = settings
        self._prober = prober
        self._upgrade_hint = upgrade_hint
        self._clock = clock

    def render(self, refresh_updates: bool = False) -> Dashboard:
        """Return the dashboard for the current host state.

        Args:
            refresh_updates: Re-count pending updates live instead of using
                the count stored by the last scan.
        """
        record = self._store.read()
        if record is None:
            return Dashboard(sections=[self._no_data_section()])

        now = self._clock()
        automated = is_automation_configured(self._settings.cron_file)
        assessment = evaluate(record, automated)

        sections = [
            self._scan_section(record, automated, now),
            self._compliance_section(assessment),
            self._updates_section(record, refresh_updates),
            self._services_section(automated),
            self._virus_db_section(now),
            self._quick_actions_section(),
        ]
        return Dashboard(sections=sections, record=record, compliance=assessment)

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def _no_data_section(self) -> Section:
        section = Section("No scan data available", "⚠")
        section.notes.append("Run your first scan:")
        section.notes.append("  sudo hostguard scan")
        return section

    def _scan_section(self, record: StatusRecord, automated: bool, now: datetime) -> Section:
        section = Section("Scan Status", "📊")
        if record.scan_verdict is ScanVerdict.CLEAN:
            section.row("Status", "✓ CLEAN", Tone.GOOD)
        else:
            section.row("Status", "⚠ ATTENTION REQUIRED", Tone.BAD)

        section.row("Last Scan", record.last_scan_time)
        if automated:
            next_scan = next_scheduled_scan(now, self._settings.scan_hour)
            section.row("Next Scan", next_scan.strftime("%Y-%m-%d %H:%M"))
        else:
            section.row("Next Scan", "Not scheduled", Tone.WARN)
        section.row("Files Scanned", str(record.scanned_count))
        section.row(
            "Infected",
            str(record.infected_count),
            Tone.GOOD if record.infected_count == 0 else Tone.BAD,
        )

        freshness = self._freshness(record, now)
        if freshness is not None:
            section.rows.append(freshness)
        return section

    def _freshness(self, record: StatusRecord, now: datetime) -> Row | None:
        if not record.has_scanned:
            return None
        scanned_at = _parse_timestamp(record.last_scan_time)
        if scanned_at is None:
            logger.debug("Unparsable last scan time %r", record.last_scan_time)
            return None

        hours_ago = max(0, int((now - scanned_at).total_seconds() // 3600))
        if hours_ago < FRESH_HOURS:
            return Row("Freshness", "● Recently scanned", Tone.GOOD)
        if hours_ago < STALE_HOURS:
            return Row("Freshness", f"○ Scanned {hours_ago}h ago", Tone.WARN)
        return Row("Freshness", "✗ Scan overdue", Tone.BAD)

    def _compliance_section(self, assessment: ComplianceAssessment) -> Section:
        section = Section("Security Compliance", "✓")
        if assessment.score == 100:
            tone = Tone.GOOD
        elif assessment.score >= 50:
            tone = Tone.WARN
        else:
            tone = Tone.BAD
        section.row("Compliance", f"{assessment.score}%", tone)
        section.notes.append(compliance_bar(assessment.score))
        if assessment.issues:
            section.notes.extend(f"✗ {issue}" for issue in assessment.issues)
        else:
            section.notes.append("● All systems operational")
        return section

    def _updates_section(self, record: StatusRecord, refresh_updates: bool) -> Section:
        section = Section("System Updates", "🔄")
        count = record.pending_updates
        source = "During last scan"
        if refresh_updates and self._prober is not None:
            live = self._prober.check_and_apply(apply=False)
            if not live.skipped:
                count = live.count
                source = "Just now"

        if count == 0:
            section.row("Available", "0 updates (system up to date)", Tone.GOOD)
        else:
            section.row("Available", f"{count} updates", Tone.WARN)
        section.row("Auto-Apply", "Enabled (during scans)", Tone.GOOD)
        section.row("Apply Now", "sudo hostguard scan")
        section.row("Last Check", source)
        section.row("Schedule", f"Daily at {self._settings.scan_hour}:00")
        return section

    def _services_section(self, automated: bool) -> Section:
        section = Section("Services Status", "⚙️")
        settings = self._settings

        if self._services.any_active(settings.daemon_services):
            section.row("ClamAV Daemon", "● Running", Tone.GOOD)
        else:
            section.row("ClamAV Daemon", "○ On-demand mode", Tone.WARN)

        if self._services.is_active(settings.freshclam_service):
            section.row("FreshClam", "● Running", Tone.GOOD)
        elif self._services.is_enabled(settings.freshclam_service):
            section.row("FreshClam", "● Enabled", Tone.GOOD)
        else:
            section.row("FreshClam", "○ Updates during scans", Tone.WARN)

        if automated:
            section.row(
                "Scheduled Scans",
                f"● Active (daily at {settings.scan_hour}:00)",
                Tone.GOOD,
            )
        else:
            section.row("Scheduled Scans", "✗ Not configured", Tone.BAD)

        if self._services.any_enabled(settings.auto_update_units):
            section.row("Auto Updates", "● Enabled", Tone.GOOD)
        else:
            section.row("Auto Updates", "○ Manual", Tone.WARN)
        return section

    def _virus_db_section(self, now: datetime) -> Section:
        section = Section("Virus Database", "🦠")
        newest = newest_definitions(self._settings.clamav_db_dir)
        if newest is None:
            section.row("Status", "⚠ Not downloaded", Tone.WARN)
            section.row("Action", "Waiting for first update")
            section.row("Info", "Database will download automatically")
        else:
            path, mtime = newest
            updated = datetime.fromtimestamp(mtime).astimezone()
            age_hours = max(0, int((now - updated).total_seconds() // 3600))
            if age_hours < FRESH_HOURS:
                section.row("Status", "● Current", Tone.GOOD)
            else:
                section.row("Status", f"○ Stale ({age_hours}h old)", Tone.WARN)
            section.row("Database", path.name)
            section.row("Last Updated", updated.strftime("%Y-%m-%d %H:%M"))
        section.row("Check Logs", "sudo tail /var/log/clamav/freshclam.log", Tone.WARN)
        return section

    def _quick_actions_section(self) -> Section:
        section = Section("Quick Actions", "⚡")
        section.row("Force Scan Now", "sudo hostguard scan", Tone.WARN)
        section.row("Full Scan", "sudo hostguard scan full", Tone.WARN)
        section.row("View Status", "hostguard status", Tone.WARN)
        section.row("Check Health", "sudo hostguard health", Tone.WARN)
        section.row("Update Virus DB", "sudo freshclam", Tone.WARN)
        section.row(
            "System Updates",
            self._upgrade_hint or "Use your distribution's package manager",
            Tone.WARN,
        )
        return section
