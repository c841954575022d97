"""Unit tests for the compliance evaluator."""

from __future__ import annotations

from pathlib import Path

import pytest

from hostguard.core.compliance import (
    ISSUE_UNSCHEDULED,
    ComplianceAssessment,
    evaluate,
    is_automation_configured,
)
from hostguard.schemas.status import StatusRecord


@pytest.mark.parametrize(
    ("infected", "automated", "expected"),
    [
        (0, True, ComplianceAssessment(100)),
        (3, True, ComplianceAssessment(50, ("3 infected files detected",))),
        (0, False, ComplianceAssessment(0, (ISSUE_UNSCHEDULED,))),
        # Missing automation takes priority over infections.
        (3, False, ComplianceAssessment(0, (ISSUE_UNSCHEDULED,))),
    ],
)
def test_evaluate(infected: int, automated: bool, expected: ComplianceAssessment) -> None:
    assert evaluate(StatusRecord(infected_count=infected), automated) == expected


def test_score_is_always_one_of_three_values() -> None:
    for infected in (0, 1, 10_000):
        for automated in (True, False):
            assert evaluate(StatusRecord(infected_count=infected), automated).score in {0, 50, 100}


def test_compliant_property() -> None:
    assert ComplianceAssessment(100).compliant is True
    assert ComplianceAssessment(50, ("x",)).compliant is False


def test_is_automation_configured(tmp_path: Path) -> None:
    cron = tmp_path / "security-monitor"
    assert is_automation_configured(cron) is False
    cron.write_text("0 2 * * * root hostguard scan\n")
    assert is_automation_configured(cron) is True
    assert is_automation_configured(tmp_path) is False
