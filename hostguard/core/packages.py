"""OS package-update prober.

Each supported package-manager family implements the same four primitives
(refresh the index, count upgradable packages, apply the upgrade, clean up)
behind :class:`PackageManager`.  :class:`PackageUpdateProber` sequences them
and is the only caller the orchestrator and dashboard talk to.

Failure policy: a stale index, a failed upgrade or a failed autoremove is
logged and absorbed.  The count observed before applying updates is always
the value returned, so the dashboard's live probe and the persisted record
report the same number for the same host state.

Usage::

    from hostguard.core.packages import PackageUpdateProber, detect_os_family, package_manager_for

    family = detect_os_family(settings.os_release_path)
    prober = PackageUpdateProber(package_manager_for(family, CommandRunner()))
    result = prober.check_and_apply(apply=True)
    print(result.count, result.skipped)
"""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from hostguard.core.runner import Runner
from hostguard.core.sanitize import sanitize

logger = logging.getLogger(__name__)

# dnf check-update exits with 100 when updates are available.
_DNF_UPDATES_AVAILABLE = 100

_DEBIAN_IDS = frozenset({"debian", "ubuntu"})
_RPM_IDS = frozenset({"amzn", "fedora", "rhel", "centos", "rocky", "almalinux", "ol"})


class OsFamily(str, Enum):
    """Package-manager family of the host."""

    DEBIAN = "debian"
    RPM = "rpm"
    UNKNOWN = "unknown"


def _parse_os_release(text: str) -> dict[str, str]:
    fields: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        fields[key.strip()] = value.strip().strip("\"'")
    return fields


def detect_os_family(os_release_path: Path | str = Path("/etc/os-release")) -> OsFamily:
    """Classify the host from its os-release ``ID`` and ``ID_LIKE`` fields.

    A missing or unreadable file yields :attr:`OsFamily.UNKNOWN`.
    """
    try:
        text = Path(os_release_path).read_text(encoding="utf-8", errors="replace")
    except OSError:
        logger.info("os-release not readable at %s; OS family unknown", os_release_path)
        return OsFamily.UNKNOWN

    fields = _parse_os_release(text)
    ids = {fields.get("ID", "").lower()}
    ids.update(fields.get("ID_LIKE", "").lower().split())

    if ids & _DEBIAN_IDS:
        return OsFamily.DEBIAN
    if ids & _RPM_IDS:
        return OsFamily.RPM
    return OsFamily.UNKNOWN


@dataclass(frozen=True)
class UpdateCheck:
    """Result of one :meth:`PackageUpdateProber.check_and_apply` call.

    Attributes:
        count: Sanitized number of pending updates observed before applying.
        skipped: ``True`` when the OS family is unsupported and nothing ran.
        applied: ``True`` when an upgrade was attempted and succeeded.
    """

    count: int
    skipped: bool = False
    applied: bool = False


class PackageManager(abc.ABC):
    """Abstract package-manager family."""

    family: OsFamily
    supported: bool = True

    #: Command a human would run to apply pending updates.
    upgrade_hint: str = ""

    @abc.abstractmethod
    def refresh_index(self) -> bool:
        """Refresh the package index.  Returns ``False`` on failure."""

    @abc.abstractmethod
    def count_upgradable(self) -> int:
        """Return the sanitized number of upgradable packages."""

    @abc.abstractmethod
    def apply_upgrade(self) -> bool:
        """Apply all pending upgrades non-interactively."""

    @abc.abstractmethod
    def cleanup(self) -> bool:
        """Remove packages that are no longer required."""


class _CommandPackageManager(PackageManager):
    def __init__(self, runner: Runner, timeout: float | None = None) -> None:
        self._runner = runner
        self._timeout = timeout


class DebianPackageManager(_CommandPackageManager):
    """apt-based hosts (Debian, Ubuntu and derivatives)."""

    family = OsFamily.DEBIAN
    upgrade_hint = "sudo apt-get upgrade -y"

    _ENV = {"DEBIAN_FRONTEND": "noninteractive"}

    def refresh_index(self) -> bool:
        return self._runner.run(["apt-get", "update", "-qq"], timeout=self._timeout).ok

    def count_upgradable(self) -> int:
        result = self._runner.run(["apt", "list", "--upgradable"], timeout=self._timeout)
        if not result.ok:
            return 0
        count = sum(1 for line in result.output.splitlines() if "upgradable" in line)
        return sanitize(str(count))

    def apply_upgrade(self) -> bool:
        return self._runner.run(
            ["apt-get", "upgrade", "-y", "-qq"], timeout=self._timeout, env=self._ENV
        ).ok

    def cleanup(self) -> bool:
        return self._runner.run(
            ["apt-get", "autoremove", "-y", "-qq"], timeout=self._timeout, env=self._ENV
        ).ok


class RpmPackageManager(_CommandPackageManager):
    """dnf-based hosts (Amazon Linux, Fedora, RHEL and derivatives)."""

    family = OsFamily.RPM
    upgrade_hint = "sudo dnf upgrade -y"

    def refresh_index(self) -> bool:
        result = self._runner.run(["dnf", "check-update", "-q"], timeout=self._timeout)
        return result.returncode in (0, _DNF_UPDATES_AVAILABLE)

    def count_upgradable(self) -> int:
        result = self._runner.run(["dnf", "list", "updates", "-q"], timeout=self._timeout)
        if not result.ok:
            return 0
        lines = [line for line in result.output.splitlines()[1:] if line.strip()]
        return sanitize(str(len(lines)))

    def apply_upgrade(self) -> bool:
        return self._runner.run(["dnf", "upgrade", "-y", "--refresh"], timeout=self._timeout).ok

    def cleanup(self) -> bool:
        return self._runner.run(["dnf", "autoremove", "-y"], timeout=self._timeout).ok


class UnsupportedPackageManager(PackageManager):
    """Placeholder for hosts with no recognised package manager."""

    family = OsFamily.UNKNOWN
    supported = False

    def refresh_index(self) -> bool:
        return True

    def count_upgradable(self) -> int:
        return 0

    def apply_upgrade(self) -> bool:
        return True

    def cleanup(self) -> bool:
        return True


def package_manager_for(
    family: OsFamily,
    runner: Runner,
    timeout: float | None = None,
) -> PackageManager:
    """Return the :class:`PackageManager` variant for *family*."""
    if family is OsFamily.DEBIAN:
        return DebianPackageManager(runner, timeout)
    if family is OsFamily.RPM:
        return RpmPackageManager(runner, timeout)
    return UnsupportedPackageManager()


class PackageUpdateProber:
    """Query and optionally apply pending OS updates.

    Args:
        manager: Package-manager family implementation for this host.
    """

    def __init__(self, manager: PackageManager) -> None:
        self._manager = manager

    @property
    def manager(self) -> PackageManager:
        return self._manager

    def check_and_apply(self, apply: bool) -> UpdateCheck:
        """Refresh the index, count pending updates and optionally apply them.

        Args:
            apply: When ``True`` and updates are pending, run the upgrade and
                the cleanup.

        Returns:
            An :class:`UpdateCheck` whose ``count`` is the number observed
            before any upgrade was applied.
        """
        if not self._manager.supported:
            logger.warning("Unknown OS family, skipping system updates")
            return UpdateCheck(count=0, skipped=True)

        if not self._manager.refresh_index():
            logger.warning(
                "Package index refresh failed family=%s; using stale index",
                self._manager.family.value,
            )

        count = self._manager.count_upgradable()
        logger.info("Pending updates family=%s count=%d", self._manager.family.value, count)

        if not apply or count == 0:
            return UpdateCheck(count=count)

        applied = self._manager.apply_upgrade()
        if not applied:
            logger.warning("Applying %d updates failed family=%s", count, self._manager.family.value)
        if not self._manager.cleanup():
            logger.warning("Package cleanup failed family=%s", self._manager.family.value)

        return UpdateCheck(count=count, applied=applied)
