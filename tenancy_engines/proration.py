"""
Module: tenancy_engines.proration
Responsibility:
    Calendar and day-count math for occupancy within a calendar year:
    leap years, year length, the effective occupation period of a lease in
    a target year, inclusive day counts, and the exact prorata share used to
    split annual charges.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Purity: no clock access, no I/O.
    - Day counts are inclusive of both endpoints.
    - Full ``Decimal`` precision; no rounding happens here. Rounding belongs
      to the presentation layer so charge lines do not compound error.
    - An empty occupation period has zero occupation days.

Failure modes:
    - InvalidDateRangeError when a lease ends before it starts.

Usage:
    from datetime import date
    from tenancy_engines.proration import exact_prorata, prorated_amount

    prorata = exact_prorata(date(2024, 7, 1), None, 2024)
    prorata.occupation_days       # 184
    prorated_amount(Decimal("1200"), prorata)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from tenancy_engines.tracer import traced_engine
from tenancy_kernel.domain.amounts import HUNDRED, to_decimal
from tenancy_kernel.exceptions import InvalidDateRangeError
from tenancy_kernel.logging_config import get_logger

logger = get_logger("engines.proration")

MONTHS_PER_YEAR = Decimal("12")


@dataclass(frozen=True)
class OccupationPeriod:
    """
    Clipped occupation window of a lease inside one calendar year.

    Contract:
        ``start <= end`` always holds. When the lease does not overlap the
        year, both bounds collapse onto the later of the two starts and
        ``is_empty`` is True.
    """

    start: date
    end: date
    is_empty: bool = False

    @property
    def days(self) -> int:
        """Inclusive day count, zero for an empty period."""
        if self.is_empty:
            return 0
        return days_between(self.start, self.end)

    def contains(self, other: OccupationPeriod) -> bool:
        """True if ``other`` lies entirely inside this period."""
        return self.start <= other.start and other.end <= self.end


@dataclass(frozen=True)
class Prorata:
    """
    Exact occupancy share of a calendar year.

    Guarantees:
        - ``0 <= occupation_days <= total_days``.
        - ``percentage == occupation_days / total_days * 100``.
        - ``exact_months == occupation_days / (total_days / 12)``.
    """

    year: int
    total_days: int
    occupation_days: int
    percentage: Decimal
    exact_months: Decimal
    period: OccupationPeriod

    @property
    def ratio(self) -> Decimal:
        """Occupancy as a fraction of the year."""
        return Decimal(self.occupation_days) / Decimal(self.total_days)


def is_leap_year(year: int) -> bool:
    """Gregorian leap-year rule."""
    return (year % 4 == 0 and year % 100 != 0) or year % 400 == 0


def get_days_in_year(year: int) -> int:
    """365, or 366 in a leap year."""
    return 366 if is_leap_year(year) else 365


def days_between(start: date, end: date) -> int:
    """
    Number of days from ``start`` to ``end``, both included.

    Raises:
        InvalidDateRangeError: If ``end`` is before ``start``.
    """
    if end < start:
        raise InvalidDateRangeError(start, end)
    return (end - start).days + 1


def effective_occupation_period(
    lease_start: date,
    lease_end: date | None,
    target_year: int,
) -> OccupationPeriod:
    """
    Clip ``[lease_start, lease_end or open]`` to the calendar year.

    Raises:
        InvalidDateRangeError: If ``lease_end`` is before ``lease_start``.
    """
    if lease_end is not None and lease_end < lease_start:
        raise InvalidDateRangeError(lease_start, lease_end)

    year_start = date(target_year, 1, 1)
    year_end = date(target_year, 12, 31)

    start = max(lease_start, year_start)
    end = year_end if lease_end is None else min(lease_end, year_end)

    if end < start:
        return OccupationPeriod(start=start, end=start, is_empty=True)
    return OccupationPeriod(start=start, end=end)


@traced_engine("proration", "1.0", fingerprint_fields=("lease_start", "lease_end", "target_year"))
def exact_prorata(
    lease_start: date,
    lease_end: date | None,
    target_year: int,
) -> Prorata:
    """
    Exact share of ``target_year`` occupied by the lease.

    Raises:
        InvalidDateRangeError: If ``lease_end`` is before ``lease_start``.
    """
    period = effective_occupation_period(lease_start, lease_end, target_year)
    total_days = get_days_in_year(target_year)
    occupation_days = period.days

    total = Decimal(total_days)
    occupied = Decimal(occupation_days)
    prorata = Prorata(
        year=target_year,
        total_days=total_days,
        occupation_days=occupation_days,
        percentage=occupied / total * HUNDRED,
        exact_months=occupied / (total / MONTHS_PER_YEAR),
        period=period,
    )

    logger.debug(
        "prorata_computed",
        extra={
            "target_year": target_year,
            "occupation_days": occupation_days,
            "total_days": total_days,
        },
    )
    return prorata


def prorated_amount(annual_amount: Decimal | int | str, prorata: Prorata) -> Decimal:
    """Share of an annual amount matching the occupied days. Not rounded."""
    amount = to_decimal(annual_amount)
    return amount * Decimal(prorata.occupation_days) / Decimal(prorata.total_days)
