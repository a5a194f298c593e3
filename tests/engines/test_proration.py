"""
Tests for the Occupancy Proration Engine.

Covers:
- Gregorian leap-year rule
- Inclusive day counts
- Occupation period clipping, including leases outside the year
- Exact prorata and prorated amounts
- Engine tracing
"""

from datetime import date
from decimal import Decimal

import pytest

from tenancy_engines.proration import (
    OccupationPeriod,
    days_between,
    effective_occupation_period,
    exact_prorata,
    get_days_in_year,
    is_leap_year,
    prorated_amount,
)
from tenancy_kernel.exceptions import InvalidDateRangeError


class TestLeapYears:
    """Gregorian rule: divisible by 4, except centuries not divisible by 400."""

    @pytest.mark.parametrize(
        "year,expected",
        [(2024, True), (2023, False), (2000, True), (1900, False)],
    )
    def test_is_leap_year(self, year, expected):
        assert is_leap_year(year) is expected

    def test_days_in_year(self):
        assert get_days_in_year(2024) == 366
        assert get_days_in_year(2023) == 365
        assert get_days_in_year(1900) == 365


class TestDaysBetween:

    def test_same_day_counts_one(self):
        assert days_between(date(2024, 1, 1), date(2024, 1, 1)) == 1

    def test_leap_february(self):
        assert days_between(date(2024, 2, 1), date(2024, 2, 29)) == 29

    def test_end_before_start_raises(self):
        with pytest.raises(InvalidDateRangeError) as exc_info:
            days_between(date(2024, 2, 1), date(2024, 1, 31))
        assert exc_info.value.code == "INVALID_DATE_RANGE"


class TestEffectiveOccupationPeriod:

    def test_open_lease_clipped_to_year(self):
        period = effective_occupation_period(date(2022, 5, 10), None, 2024)
        assert period == OccupationPeriod(date(2024, 1, 1), date(2024, 12, 31))

    def test_lease_ending_mid_year(self):
        period = effective_occupation_period(date(2023, 3, 1), date(2024, 4, 30), 2024)
        assert period.start == date(2024, 1, 1)
        assert period.end == date(2024, 4, 30)
        assert period.days == 121

    def test_lease_ended_before_year_is_empty(self):
        period = effective_occupation_period(date(2022, 1, 1), date(2023, 6, 30), 2024)
        assert period.is_empty
        assert period.days == 0
        assert period.start == period.end == date(2024, 1, 1)

    def test_lease_starting_after_year_collapses_to_later_start(self):
        period = effective_occupation_period(date(2025, 2, 1), None, 2024)
        assert period.is_empty
        assert period.start == period.end == date(2025, 2, 1)

    def test_period_inside_lease_and_year(self):
        lease_start, lease_end = date(2023, 9, 15), date(2024, 3, 14)
        period = effective_occupation_period(lease_start, lease_end, 2024)
        year = OccupationPeriod(date(2024, 1, 1), date(2024, 12, 31))
        lease = OccupationPeriod(lease_start, lease_end)
        assert year.contains(period)
        assert lease.contains(period)

    def test_end_before_start_raises(self):
        with pytest.raises(InvalidDateRangeError):
            effective_occupation_period(date(2024, 5, 1), date(2024, 4, 1), 2024)


class TestExactProrata:

    def test_full_leap_year(self):
        prorata = exact_prorata(date(2024, 1, 1), None, 2024)
        assert prorata.total_days == 366
        assert prorata.occupation_days == 366
        assert prorata.percentage == Decimal("100")
        assert prorata.exact_months == Decimal("12")

    def test_second_half_of_2024(self):
        prorata = exact_prorata(date(2024, 7, 1), None, 2024)
        assert prorata.occupation_days == 184
        assert prorata.total_days == 366
        assert prorata.percentage == Decimal(184) / Decimal(366) * Decimal(100)
        assert prorata.exact_months == Decimal(184) / (Decimal(366) / Decimal(12))

    def test_no_overlap_gives_zero(self):
        prorata = exact_prorata(date(2020, 1, 1), date(2022, 12, 31), 2024)
        assert prorata.occupation_days == 0
        assert prorata.percentage == Decimal("0")
        assert prorata.ratio == Decimal("0")

    def test_prorated_amount_keeps_full_precision(self):
        prorata = exact_prorata(date(2024, 7, 1), None, 2024)
        amount = prorated_amount(Decimal("1200"), prorata)
        assert amount == Decimal("1200") * Decimal(184) / Decimal(366)
        assert amount != amount.quantize(Decimal("0.01"))

    def test_prorata_is_traced(self, captured_logs):
        exact_prorata(date(2024, 7, 1), None, 2024)
        traces = [r for r in captured_logs() if r["message"] == "LEASE_ENGINE_TRACE"]
        assert traces
        assert traces[-1]["engine_name"] == "proration"
        assert len(traces[-1]["input_fingerprint"]) == 16

    def test_same_inputs_same_fingerprint(self, captured_logs):
        exact_prorata(date(2024, 7, 1), None, 2024)
        exact_prorata(lease_start=date(2024, 7, 1), lease_end=None, target_year=2024)
        traces = [r for r in captured_logs() if r["message"] == "LEASE_ENGINE_TRACE"]
        assert traces[-1]["input_fingerprint"] == traces[-2]["input_fingerprint"]
