"""Shared pytest configuration and fixtures for HostGuard tests.

Every host interaction goes through a command runner or a service manager,
so the fixtures here replace both with in-memory fakes.  No test ever runs
``systemctl``, ``apt``, ``dnf``, ``clamscan`` or ``freshclam``.
"""
from __future__ import annotations

from pathlib import Path
from typing import Mapping, Sequence

import pytest

from hostguard.config import Settings
from hostguard.core.runner import RC_NOT_FOUND, CommandResult
from hostguard.services.status_store import StatusStore


class FakeRunner:
    """Command runner returning scripted results keyed by argv prefix.

    ``responses`` maps a tuple prefix (e.g. ``("apt", "list")``) to a
    :class:`CommandResult` or a ``(returncode, output)`` pair.  The longest
    matching prefix wins; unmatched commands look like a missing binary.
    """

    def __init__(self, responses: Mapping[tuple[str, ...], object] | None = None) -> None:
        self.responses: dict[tuple[str, ...], object] = dict(responses or {})
        self.calls: list[dict] = []

    def add(self, prefix: Sequence[str], returncode: int = 0, output: str = "", timed_out: bool = False) -> None:
        self.responses[tuple(prefix)] = CommandResult(
            args=tuple(prefix), returncode=returncode, output=output, timed_out=timed_out
        )

    def run(
        self,
        args: Sequence[str],
        *,
        timeout: float | None = None,
        env: Mapping[str, str] | None = None,
        merge_stderr: bool = False,
    ) -> CommandResult:
        argv = tuple(args)
        self.calls.append(
            {"args": argv, "timeout": timeout, "env": dict(env or {}), "merge_stderr": merge_stderr}
        )
        best: tuple[str, ...] | None = None
        for prefix in self.responses:
            if argv[: len(prefix)] == prefix and (best is None or len(prefix) > len(best)):
                best = prefix
        if best is None:
            return CommandResult(args=argv, returncode=RC_NOT_FOUND)
        response = self.responses[best]
        if isinstance(response, CommandResult):
            return CommandResult(
                args=argv,
                returncode=response.returncode,
                output=response.output,
                timed_out=response.timed_out,
            )
        returncode, output = response  # type: ignore[misc]
        return CommandResult(args=argv, returncode=returncode, output=output)

    def commands(self) -> list[tuple[str, ...]]:
        return [call["args"] for call in self.calls]

    def ran(self, *prefix: str) -> bool:
        return any(args[: len(prefix)] == prefix for args in self.commands())


class FakeServices:
    """In-memory systemd: units are active/enabled according to two sets."""

    def __init__(
        self,
        active: set[str] | None = None,
        enabled: set[str] | None = None,
        fail_start: bool = False,
        raise_on_start: bool = False,
    ) -> None:
        self.active = set(active or ())
        self.enabled = set(enabled or ())
        self.fail_start = fail_start
        self.raise_on_start = raise_on_start
        self.log: list[tuple[str, str]] = []

    def is_active(self, unit: str) -> bool:
        return unit in self.active

    def is_enabled(self, unit: str) -> bool:
        return unit in self.enabled

    def any_active(self, units) -> bool:
        return any(self.is_active(u) for u in units)

    def any_enabled(self, units) -> bool:
        return any(self.is_enabled(u) for u in units)

    def start(self, unit: str) -> bool:
        self.log.append(("start", unit))
        if self.raise_on_start:
            raise RuntimeError("systemd unavailable")
        if self.fail_start:
            return False
        self.active.add(unit)
        return True

    def stop(self, unit: str) -> bool:
        self.log.append(("stop", unit))
        self.active.discard(unit)
        return True

    def restart(self, unit: str) -> bool:
        self.log.append(("restart", unit))
        self.active.add(unit)
        return True


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def fake_services() -> FakeServices:
    return FakeServices()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings with every host path redirected under ``tmp_path``."""
    return Settings(
        security_dir=tmp_path / "state",
        log_dir=tmp_path / "log",
        cron_file=tmp_path / "cron.d" / "security-monitor",
        clamav_db_dir=tmp_path / "clamav",
        os_release_path=tmp_path / "os-release",
        service_settle_seconds=0,
    )


@pytest.fixture
def store(settings: Settings) -> StatusStore:
    return StatusStore(settings.status_file)


@pytest.fixture
def cron_configured(settings: Settings) -> Path:
    settings.cron_file.parent.mkdir(parents=True, exist_ok=True)
    settings.cron_file.write_text("0 2 * * * root hostguard scan\n")
    return settings.cron_file
