"""HealthChecker — self-healing checks for the scanning toolchain.

Runs three checks and fixes what it can:

* signature updater service running (restarted when it is not),
* signature database present (a refresh is triggered when it is not),
* scheduled scanning configured (reported only; the schedule is owned by the
  installer).

Usage::

    checker = HealthChecker(engine=engine, services=services, settings=settings)
    report = checker.run()
    print(report.issues)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

from hostguard.config import Settings
from hostguard.core.compliance import is_automation_configured
from hostguard.core.dashboard import newest_definitions
from hostguard.engines.base import AVEngineAdapter, DefinitionsResult

logger = logging.getLogger(__name__)


class ServiceRestart(Protocol):
    def is_active(self, unit: str) -> bool: ...

    def restart(self, unit: str) -> bool: ...


@dataclass(frozen=True)
class HealthCheck:
    """One check outcome.

    Attributes:
        name: Short name of the check.
        ok: ``True`` when the check passed without intervention.
        detail: What was found or what was done about it.
    """

    name: str
    ok: bool
    detail: str


@dataclass
class HealthReport:
    checks: list[HealthCheck] = field(default_factory=list)

    @property
    def issues(self) -> int:
        return sum(1 for check in self.checks if not check.ok)

    @property
    def healthy(self) -> bool:
        return self.issues == 0


class HealthChecker:
    """Check and repair the signature updater, database and schedule.

    Args:
        engine: AV engine used to refresh missing definitions.
        services: Service controller (``is_active`` and ``restart``).
        settings: Application settings.
    """

    def __init__(
        self,
        *,
        engine: AVEngineAdapter,
        services: ServiceRestart,
        settings: Settings,
    ) -> None:
        self._engine = engine
        self._services = services
        self._settings = settings

    def run(self) -> HealthReport:
        report = HealthReport()
        report.checks.append(self._check_updater())
        report.checks.append(self._check_definitions())
        report.checks.append(self._check_schedule())
        logger.info("Health check complete issues=%d", report.issues)
        return report

    def _check_updater(self) -> HealthCheck:
        unit = self._settings.freshclam_service
        if self._services.is_active(unit):
            return HealthCheck("signature_updater", True, f"{unit} running")

        restarted = self._services.restart(unit)
        logger.warning("Signature updater %s inactive; restart ok=%s", unit, restarted)
        detail = f"Restarted {unit}" if restarted else f"Restarting {unit} failed"
        return HealthCheck("signature_updater", False, detail)

    def _check_definitions(self) -> HealthCheck:
        if newest_definitions(self._settings.clamav_db_dir) is not None:
            return HealthCheck("definitions", True, "Definitions present")

        result = self._engine.update_definitions()
        logger.warning("Virus definitions missing; refresh result=%s", result.value)
        if result is DefinitionsResult.UPDATED:
            return HealthCheck("definitions", False, "Definitions were missing; downloaded")
        return HealthCheck("definitions", False, "Definitions missing; update failed (may be in cooldown)")

    def _check_schedule(self) -> HealthCheck:
        if is_automation_configured(self._settings.cron_file):
            return HealthCheck("schedule", True, "Cron configured")
        return HealthCheck("schedule", False, f"Cron missing ({self._settings.cron_file})")
