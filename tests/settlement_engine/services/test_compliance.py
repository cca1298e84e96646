from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from src.settlement_engine.services.compliance import (
    assess_variance,
    compliance_rating,
    compliance_score,
    expected_software_fee,
    is_submission_timely,
    system_health,
)

NEW_YORK = ZoneInfo("America/New_York")


def test_expected_software_fee() -> None:
    assert expected_software_fee(Decimal("10000"), Decimal("5")) == Decimal("500.00")
    assert expected_software_fee(Decimal("1234.56"), Decimal("7.5")) == Decimal("92.59")


def test_over_remitted_fee_is_flagged() -> None:
    late = datetime(2026, 3, 10, 15, 0, tzinfo=timezone.utc)

    assessment = assess_variance(
        expected_fee=Decimal("500"),
        actual_fee=Decimal("560"),
        submitted_at=late,
        reconciliation_date=date(2026, 3, 9),
        tz=NEW_YORK,
    )

    assert assessment.variance == Decimal("60.00")
    assert assessment.variance_percentage == Decimal("12")
    assert assessment.timely is False
    assert assessment.compliance_score == 88
    assert assessment.should_flag is True
    assert assessment.flag_reason == "Variance of 12.00% exceeds 10% threshold"


def test_exact_fee_scores_100_with_or_without_bonus() -> None:
    for submitted_at in (
        datetime(2026, 3, 9, 20, 0, tzinfo=timezone.utc),
        datetime(2026, 3, 12, 20, 0, tzinfo=timezone.utc),
    ):
        assessment = assess_variance(
            expected_fee=Decimal("500"),
            actual_fee=Decimal("500"),
            submitted_at=submitted_at,
            reconciliation_date=date(2026, 3, 9),
            tz=NEW_YORK,
        )
        assert assessment.variance_percentage == Decimal("0")
        assert assessment.compliance_score == 100
        assert assessment.should_flag is False


def test_ten_percent_variance_is_not_flagged() -> None:
    assessment = assess_variance(
        expected_fee=Decimal("500"),
        actual_fee=Decimal("450"),
        submitted_at=datetime(2026, 3, 9, 20, 0, tzinfo=timezone.utc),
        reconciliation_date=date(2026, 3, 9),
        tz=NEW_YORK,
    )

    assert assessment.variance == Decimal("-50.00")
    assert assessment.variance_percentage == Decimal("-10")
    assert assessment.should_flag is False
    # 90 + 5 timely bonus
    assert assessment.compliance_score == 95


def test_zero_expected_fee_has_zero_variance_percentage() -> None:
    assessment = assess_variance(
        expected_fee=Decimal("0"),
        actual_fee=Decimal("25"),
        submitted_at=datetime(2026, 3, 20, tzinfo=timezone.utc),
        reconciliation_date=date(2026, 3, 9),
        tz=NEW_YORK,
    )

    assert assessment.variance == Decimal("25.00")
    assert assessment.variance_percentage == Decimal("0")
    assert assessment.compliance_score == 100
    assert assessment.should_flag is False


def test_score_never_negative() -> None:
    assert compliance_score(Decimal("250"), timely=False) == 0
    assert compliance_score(Decimal("-250"), timely=True) == 5


def test_timeliness_is_measured_from_start_of_business_day() -> None:
    # 2026-03-09 starts at 04:00 UTC in New York (EDT).
    assert is_submission_timely(datetime(2026, 3, 10, 4, 0, tzinfo=timezone.utc), date(2026, 3, 9), NEW_YORK)
    assert not is_submission_timely(datetime(2026, 3, 10, 4, 1, tzinfo=timezone.utc), date(2026, 3, 9), NEW_YORK)
    # naive values are treated as UTC
    assert is_submission_timely(datetime(2026, 3, 9, 23, 0), date(2026, 3, 9), NEW_YORK)


@pytest.mark.parametrize(
    "score, rating",
    [
        (None, "Unknown"),
        (Decimal("97.5"), "Excellent"),
        (95, "Excellent"),
        (90.0, "Good"),
        (Decimal("85"), "Fair"),
        (70, "Poor"),
        (Decimal("12"), "Critical"),
    ],
)
def test_compliance_rating_bands(score, rating: str) -> None:
    assert compliance_rating(score) == rating


def test_system_health_labels() -> None:
    assert system_health(95, 0, 20) == "Healthy"
    assert system_health(80, 1, 20) == "Good"
    assert system_health(60, 3, 20) == "Fair"
    assert system_health(40, 0, 20) == "Needs Attention"
    assert system_health(0, 0, 0) == "Needs Attention"
