from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

from src.utils.helper import as_utc, business_day, business_day_bounds, round_2_decimals, to_decimal

NEW_YORK = ZoneInfo("America/New_York")


def test_round_2_decimals_rounds_half_up() -> None:
    assert round_2_decimals(Decimal("2.345")) == Decimal("2.35")
    assert round_2_decimals(0.125) == Decimal("0.13")
    assert round_2_decimals(None) is None


def test_to_decimal() -> None:
    assert to_decimal(None) == Decimal("0")
    assert to_decimal(1.1) == Decimal("1.1")
    assert to_decimal("7.25") == Decimal("7.25")


def test_as_utc_treats_naive_values_as_utc() -> None:
    naive = datetime(2026, 3, 10, 12, 0)
    assert as_utc(naive) == datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
    assert as_utc(None) is None


def test_business_day_uses_reference_timezone() -> None:
    # 02:00 UTC on the 10th is still the evening of the 9th in New York.
    assert business_day(datetime(2026, 3, 10, 2, 0, tzinfo=timezone.utc), NEW_YORK) == date(2026, 3, 9)
    assert business_day(datetime(2026, 3, 10, 5, 0, tzinfo=timezone.utc), NEW_YORK) == date(2026, 3, 10)


def test_business_day_bounds_follow_dst() -> None:
    start, end = business_day_bounds(date(2026, 3, 8), NEW_YORK)

    assert start == datetime(2026, 3, 8, 5, 0, tzinfo=timezone.utc)
    assert end == datetime(2026, 3, 9, 4, 0, tzinfo=timezone.utc)
