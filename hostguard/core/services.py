"""systemd service control and the service state guard.

:class:`ServiceManager` wraps the handful of ``systemctl`` verbs HostGuard
needs.  Every method returns a boolean and never raises.

:class:`ServiceGuard` suspends a background service for the duration of a
``with`` block and restores its previous run state on exit, however the block
ends.  It is used around signature refreshes so ``freshclam`` run on demand
does not collide with the ``clamav-freshclam`` updater::

    with suspended(services, "clamav-freshclam", settle_seconds=1.0):
        engine.update_definitions()
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from types import TracebackType
from typing import Callable, Iterable, Protocol

from hostguard.core.runner import Runner

logger = logging.getLogger(__name__)


class ServiceControl(Protocol):
    def is_active(self, unit: str) -> bool: ...

    def start(self, unit: str) -> bool: ...

    def stop(self, unit: str) -> bool: ...


class ServiceManager:
    """Query and control systemd units through ``systemctl``.

    Args:
        runner: Command runner used for every ``systemctl`` invocation.
        timeout: Deadline in seconds for each invocation.
    """

    def __init__(self, runner: Runner, timeout: float | None = 60) -> None:
        self._runner = runner
        self._timeout = timeout

    def _systemctl(self, *args: str) -> bool:
        return self._runner.run(["systemctl", *args], timeout=self._timeout).ok

    def is_active(self, unit: str) -> bool:
        return self._systemctl("is-active", "--quiet", unit)

    def is_enabled(self, unit: str) -> bool:
        return self._systemctl("is-enabled", "--quiet", unit)

    def start(self, unit: str) -> bool:
        return self._systemctl("start", unit)

    def stop(self, unit: str) -> bool:
        return self._systemctl("stop", unit)

    def restart(self, unit: str) -> bool:
        return self._systemctl("restart", unit)

    def any_active(self, units: Iterable[str]) -> bool:
        """Return ``True`` if at least one of *units* is active."""
        return any(self.is_active(unit) for unit in units)

    def any_enabled(self, units: Iterable[str]) -> bool:
        """Return ``True`` if at least one of *units* is enabled."""
        return any(self.is_enabled(unit) for unit in units)


@dataclass
class ServiceGuardState:
    """Snapshot owned by one :class:`ServiceGuard`.

    Attributes:
        service_id: Unit that was guarded.
        was_active: Whether the unit was running when the guard was entered.
        restored: Whether the restart on exit succeeded.  ``None`` when no
            restart was needed.
    """

    service_id: str
    was_active: bool = False
    restored: bool | None = None


class ServiceGuard:
    """Context manager that stops a service and restores its prior state.

    On entry the service is probed; if active it is stopped and the guard
    waits *settle_seconds*.  On exit, normal or exceptional, the service is
    started again if and only if it was active on entry.  A failed restart is
    logged and swallowed; exceptions raised inside the block propagate
    unchanged.

    Args:
        services: Object providing ``is_active``, ``start`` and ``stop``.
        service_id: Unit name to guard.
        settle_seconds: Delay after stopping the unit.
        sleep: Sleep function, replaceable in tests.
    """

    def __init__(
        self,
        services: ServiceControl,
        service_id: str,
        *,
        settle_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._services = services
        self._settle_seconds = settle_seconds
        self._sleep = sleep
        self.state = ServiceGuardState(service_id=service_id)

    def __enter__(self) -> ServiceGuardState:
        unit = self.state.service_id
        self.state.was_active = self._services.is_active(unit)
        if self.state.was_active:
            logger.info("Suspending service %s", unit)
            if not self._services.stop(unit):
                logger.warning("Stopping service %s failed; continuing", unit)
            if self._settle_seconds > 0:
                self._sleep(self._settle_seconds)
        return self.state

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if not self.state.was_active:
            return None

        unit = self.state.service_id
        try:
            self.state.restored = self._services.start(unit)
        except Exception as start_exc:  # noqa: BLE001
            logger.warning("Restarting service %s raised %r", unit, start_exc)
            self.state.restored = False
            return None

        if self.state.restored:
            logger.info("Restored service %s", unit)
        else:
            logger.warning("Restarting service %s failed", unit)
        return None


def suspended(
    services: ServiceControl,
    service_id: str,
    *,
    settle_seconds: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
) -> ServiceGuard:
    """Return a :class:`ServiceGuard` for *service_id*."""
    return ServiceGuard(services, service_id, settle_seconds=settle_seconds, sleep=sleep)
