from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from zoneinfo import ZoneInfo

from src.settlement_engine import config
from src.utils.helper import as_utc, business_day_bounds, round_2_decimals

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class VarianceAssessment:
    """Derived fee-compliance figures for one reconciliation row."""
    variance: Decimal
    variance_percentage: Decimal
    compliance_score: int
    timely: bool
    should_flag: bool

    @property
    def flag_reason(self) -> str:
        return (
            f"Variance of {self.variance_percentage:.2f}% exceeds "
            f"{config.VARIANCE_FLAG_THRESHOLD_PCT}% threshold"
        )


def expected_software_fee(gaming_revenue: Decimal, fee_percentage: Decimal) -> Decimal:
    return round_2_decimals(gaming_revenue * fee_percentage / HUNDRED)


def is_submission_timely(submitted_at: datetime, reconciliation_date: date, tz: ZoneInfo) -> bool:
    # Measured from the start of the reconciliation business day.
    day_start, _ = business_day_bounds(reconciliation_date, tz)
    delay = as_utc(submitted_at) - day_start
    return delay <= timedelta(hours=config.TIMELY_SUBMISSION_HOURS)


def compliance_score(variance_percentage: Decimal, timely: bool) -> int:
    score = max(Decimal("0"), HUNDRED - abs(variance_percentage))
    if timely:
        score = min(HUNDRED, score + config.TIMELY_SUBMISSION_BONUS)
    return int(score.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def assess_variance(
    expected_fee: Decimal,
    actual_fee: Decimal,
    submitted_at: datetime,
    reconciliation_date: date,
    tz: ZoneInfo,
) -> VarianceAssessment:
    variance = round_2_decimals(actual_fee - expected_fee)
    if expected_fee == 0:
        variance_percentage = Decimal("0")
    else:
        variance_percentage = (variance / expected_fee * HUNDRED).quantize(
            Decimal("0.0001"), rounding=ROUND_HALF_UP
        )
    timely = is_submission_timely(submitted_at, reconciliation_date, tz)
    return VarianceAssessment(
        variance=variance,
        variance_percentage=variance_percentage,
        compliance_score=compliance_score(variance_percentage, timely),
        timely=timely,
        should_flag=abs(variance_percentage) > config.VARIANCE_FLAG_THRESHOLD_PCT,
    )


def compliance_rating(average_score: Decimal | float | None) -> str:
    if average_score is None:
        return "Unknown"
    score = Decimal(str(average_score))
    if score >= 95:
        return "Excellent"
    if score >= 90:
        return "Good"
    if score >= 80:
        return "Fair"
    if score >= 70:
        return "Poor"
    return "Critical"


def system_health(submission_rate: int, flagged_count: int, total_stores: int) -> str:
    flagged_ratio = flagged_count / total_stores if total_stores else 0
    if submission_rate >= 90 and flagged_ratio < 0.05:
        return "Healthy"
    if submission_rate >= 75 and flagged_ratio < 0.10:
        return "Good"
    if submission_rate >= 50 and flagged_ratio < 0.20:
        return "Fair"
    return "Needs Attention"
