"""HostGuard core scan-and-status components.

This package contains the integer sanitizer, the subprocess runner, the
package-update prober, the service state guard, the scan orchestrator, the
compliance evaluator and the dashboard renderer.
"""
