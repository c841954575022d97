"""Compliance evaluator.

Collapses the host's posture into a coarse 0/50/100 score.  Rules are checked
in priority order and the first match wins:

1. automated scanning not scheduled -> 0
2. infected files in the last scan  -> 50
3. otherwise                        -> 100

A host with no automation *and* an infection reports the automation issue:
missing automation is treated as the root cause, since nothing else would
ever re-check the host.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from hostguard.schemas.status import StatusRecord

SCORE_COMPLIANT = 100
SCORE_INFECTED = 50
SCORE_UNSCHEDULED = 0

ISSUE_UNSCHEDULED = "Automated scanning not scheduled"


@dataclass(frozen=True)
class ComplianceAssessment:
    score: int
    issues: tuple[str, ...] = field(default_factory=tuple)

    @property
    def compliant(self) -> bool:
        return self.score == SCORE_COMPLIANT


def evaluate(record: StatusRecord, automation_configured: bool) -> ComplianceAssessment:
    """Return the compliance assessment for *record*.  Pure."""
    if not automation_configured:
        return ComplianceAssessment(SCORE_UNSCHEDULED, (ISSUE_UNSCHEDULED,))
    if record.infected_count != 0:
        return ComplianceAssessment(
            SCORE_INFECTED, (f"{record.infected_count} infected files detected",)
        )
    return ComplianceAssessment(SCORE_COMPLIANT)


def is_automation_configured(cron_file: Path | str) -> bool:
    """Return ``True`` if the scheduled-scan artifact exists."""
    return Path(cron_file).is_file()
