"""HostGuard command-line entry point.

Usage:
    hostguard scan [quick|full]              # run a scan (default: quick)
    hostguard status [--refresh-updates]     # show the dashboard (default)
    hostguard health                         # check and repair the toolchain
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass

from hostguard import __version__
from hostguard.config import Settings, get_settings
from hostguard.console import ConsoleUI
from hostguard.core.dashboard import DashboardRenderer
from hostguard.core.orchestrator import ScanOrchestrator
from hostguard.core.packages import PackageUpdateProber, detect_os_family, package_manager_for
from hostguard.core.runner import CommandRunner, Runner
from hostguard.core.services import ServiceManager
from hostguard.engines.base import ScanMode
from hostguard.engines.clamav import ClamScanAdapter
from hostguard.services.health import HealthChecker
from hostguard.services.status_store import StatusStore

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


@dataclass
class Components:
    """Collaborators wired from settings for one CLI invocation."""

    settings: Settings
    engine: ClamScanAdapter
    prober: PackageUpdateProber
    services: ServiceManager
    store: StatusStore


def build_components(settings: Settings, runner: Runner | None = None) -> Components:
    runner = runner or CommandRunner()
    family = detect_os_family(settings.os_release_path)
    manager = package_manager_for(family, runner, timeout=settings.package_timeout_seconds)
    return Components(
        settings=settings,
        engine=ClamScanAdapter(
            runner,
            scan_timeout=settings.engine_timeout_seconds,
            definitions_timeout=settings.definitions_timeout_seconds,
        ),
        prober=PackageUpdateProber(manager),
        services=ServiceManager(runner),
        store=StatusStore(settings.status_file),
    )


def configure_logging(settings: Settings) -> None:
    """Log to ``<log_dir>/monitor.log``, or stderr if it is not writable."""
    handlers: list[logging.Handler] = []
    try:
        settings.log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(settings.log_dir / "monitor.log", encoding="utf-8"))
    except OSError:
        stderr = logging.StreamHandler(sys.stderr)
        stderr.setLevel(logging.WARNING)
        handlers.append(stderr)
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT, handlers=handlers, force=True)


def _color_options(default: object) -> argparse.ArgumentParser:
    options = argparse.ArgumentParser(add_help=False)
    options.add_argument("--no-color", action="store_true", default=default, help="Disable ANSI colors")
    return options


def build_parser() -> argparse.ArgumentParser:
    # --no-color is accepted before or after the subcommand
    shared = _color_options(argparse.SUPPRESS)
    parser = argparse.ArgumentParser(
        parents=[_color_options(False)],
        prog="hostguard",
        description="HostGuard — antivirus scanning, OS patching and service health",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command")

    scan = sub.add_parser("scan", parents=[shared], help="Update definitions, apply OS updates and scan for malware")
    scan.add_argument(
        "mode",
        nargs="?",
        choices=[m.value for m in ScanMode],
        default=ScanMode.QUICK.value,
        help="quick (default) or full",
    )

    status = sub.add_parser("status", parents=[shared], help="Show the security status dashboard")
    status.add_argument(
        "--refresh-updates",
        action="store_true",
        help="Re-count pending OS updates instead of using the last scan's count",
    )

    sub.add_parser("health", parents=[shared], help="Check and repair the scanning toolchain")
    return parser


def cmd_scan(components: Components, ui: ConsoleUI, mode: ScanMode) -> int:
    orchestrator = ScanOrchestrator(
        engine=components.engine,
        prober=components.prober,
        services=components.services,
        store=components.store,
        settings=components.settings,
        ui=ui,
    )
    orchestrator.run(mode)
    return 0


def cmd_status(components: Components, ui: ConsoleUI, refresh_updates: bool = False) -> int:
    renderer = DashboardRenderer(
        store=components.store,
        services=components.services,
        settings=components.settings,
        prober=components.prober,
        upgrade_hint=components.prober.manager.upgrade_hint,
    )
    ui.dashboard(renderer.render(refresh_updates=refresh_updates))
    return 0


def cmd_health(components: Components, ui: ConsoleUI) -> int:
    ui.banner("Health Check")
    report = HealthChecker(
        engine=components.engine,
        services=components.services,
        settings=components.settings,
    ).run()
    for check in report.checks:
        if check.ok:
            ui.ok(check.detail)
        else:
            ui.warn(check.detail)
    ui.emit()
    if report.healthy:
        ui.ok("All checks passed")
    else:
        ui.warn(f"Found {report.issues} issue(s)")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings)
    components = build_components(settings)
    ui = ConsoleUI(stream=sys.stdout, color=not args.no_color and sys.stdout.isatty())

    command = args.command or "status"
    logger.debug("hostguard %s command=%s", __version__, command)

    if command == "scan":
        return cmd_scan(components, ui, ScanMode(args.mode))
    if command == "health":
        return cmd_health(components, ui)
    return cmd_status(components, ui, getattr(args, "refresh_updates", False))


if __name__ == "__main__":
    sys.exit(main())
