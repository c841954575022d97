"""Application configuration via Pydantic Settings.

All configuration is driven by environment variables prefixed with
``HOSTGUARD_``.  Every field has a default matching the standard Linux layout
used by the security monitor, so a bare host needs no configuration at all.

Usage::

    from hostguard.config import get_settings

    settings = get_settings()
    print(settings.status_file)

The ``get_settings`` function is cached with ``functools.lru_cache``. To override
settings in tests, construct :class:`Settings` directly with keyword arguments
or set the relevant environment variables before calling ``get_settings()``
for the first time.
"""
from __future__ import annotations

import functools
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """HostGuard settings.

    Environment variables are read case-insensitively. A ``.env`` file in the
    working directory is loaded automatically when present.
    """

    model_config = SettingsConfigDict(
        env_prefix="HOSTGUARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Filesystem layout
    security_dir: Path = Field(
        default=Path("/var/lib/security-monitor"),
        description="Directory holding the persisted status record and run lock",
    )
    log_dir: Path = Field(
        default=Path("/var/log/security-monitor"),
        description="Directory for monitor.log and archived scan output",
    )
    cron_file: Path = Field(
        default=Path("/etc/cron.d/security-monitor"),
        description="Scheduling artifact whose presence means scans are automated",
    )
    clamav_db_dir: Path = Field(
        default=Path("/var/lib/clamav"),
        description="ClamAV signature database directory",
    )
    os_release_path: Path = Field(
        default=Path("/etc/os-release"),
        description="os-release file used to detect the package manager family",
    )

    # Services
    freshclam_service: str = Field(
        default="clamav-freshclam",
        description="Signature-updater unit suspended while definitions refresh",
    )
    daemon_services: list[str] = Field(
        default_factory=lambda: ["clamd@scan", "clamav-daemon"],
        description="Candidate unit names of the ClamAV scanning daemon",
    )
    auto_update_units: list[str] = Field(
        default_factory=lambda: ["unattended-upgrades", "dnf-automatic.timer"],
        description="Candidate unit names of the OS automatic-update service",
    )
    service_settle_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Delay after stopping a service before continuing",
    )

    # Subprocess deadlines
    engine_timeout_seconds: float = Field(
        default=4 * 60 * 60,
        description="Deadline for a single clamscan invocation",
    )
    package_timeout_seconds: float = Field(
        default=60 * 60,
        description="Deadline for each package-manager invocation",
    )
    definitions_timeout_seconds: float = Field(
        default=10 * 60,
        description="Deadline for a freshclam definitions refresh",
    )

    # Schedule
    scan_hour: int = Field(
        default=2,
        description="Hour of day (local time) at which the scheduled scan runs",
    )

    log_level: str = Field(
        default="INFO",
        description="Root log level: DEBUG, INFO, WARNING or ERROR",
    )

    @field_validator(
        "engine_timeout_seconds",
        "package_timeout_seconds",
        "definitions_timeout_seconds",
    )
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be positive")
        return v

    @field_validator("scan_hour")
    @classmethod
    def validate_scan_hour(cls, v: int) -> int:
        if not 0 <= v <= 23:
            raise ValueError("scan_hour must be between 0 and 23")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR"}:
            raise ValueError("log_level must be DEBUG, INFO, WARNING or ERROR")
        return level

    @property
    def status_file(self) -> Path:
        """Path of the persisted status record."""
        return self.security_dir / "status.json"

    @property
    def lock_file(self) -> Path:
        """Path of the exclusive scan-run lock."""
        return self.security_dir / "scan.lock"


@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached application settings singleton.

    The first call reads environment variables (and ``.env``). Subsequent calls
    return the cached instance. Clear the cache with ``get_settings.cache_clear()``
    between tests.
    """
    return Settings()
