"""AV engine adapters for HostGuard.

Public re-exports for the engines package. Import adapters via this
module to avoid coupling to internal module layout::

    from hostguard.engines import AVEngineAdapter, ClamScanAdapter, ScanMode
"""

from hostguard.engines.base import (
    AVEngineAdapter,
    DefinitionsResult,
    ScanMode,
    ScanSummary,
    extract_summary,
)
from hostguard.engines.clamav import ClamScanAdapter, build_scan_command

__all__ = [
    "AVEngineAdapter",
    "ClamScanAdapter",
    "DefinitionsResult",
    "ScanMode",
    "ScanSummary",
    "build_scan_command",
    "extract_summary",
]
