"""
Module: tenancy_engines.revision_anchor
Responsibility:
    Decide whether a lease's annual rent revision is due today or in exactly
    thirty days, from its anchor (month and day), its start date, and the
    caller-supplied "today".

Architecture position:
    Engines -- pure calculation layer, zero I/O. The daily cadence and the
    dedup store belong to ``tenancy_batch``.

Invariants enforced:
    - A lease is never revised before its first anniversary.
    - Reminders fire on exact date equality, never on proximity: an anchor
      31 days out produces nothing today and is picked up tomorrow.
    - Every reminder carries its dedup key
      ``(lease_id, anchor_date, reminder_type)``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from uuid import UUID

from tenancy_engines.tracer import traced_engine
from tenancy_kernel.domain.dates import add_years, clamped_date
from tenancy_kernel.logging_config import get_logger
from tenancy_kernel.utils.idempotency import generate_idempotency_key

logger = get_logger("engines.revision_anchor")

DEFAULT_LEAD_DAYS = 30


class ReminderType(str, Enum):
    """Kind of revision reminder."""

    TODAY = "today"
    THIRTY_DAYS = "30_days"


@dataclass(frozen=True)
class RevisionAnchor:
    """Calendar month and day on which a lease becomes revisable each year."""

    month: int
    day: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"Anchor month out of range: {self.month}")
        # Checked against a leap year so Feb 29 is accepted.
        if not 1 <= self.day <= 31 or clamped_date(2024, self.month, self.day).day != self.day:
            raise ValueError(f"Anchor day {self.day} does not exist in month {self.month}")

    @classmethod
    def from_date(cls, value: date) -> RevisionAnchor:
        return cls(month=value.month, day=value.day)

    def in_year(self, year: int) -> date:
        """The anchor in ``year``; Feb 29 falls back to Feb 28 in common years."""
        return clamped_date(year, self.month, self.day)


@dataclass(frozen=True)
class RevisionReminder:
    """A reminder that a lease revision is due."""

    lease_id: UUID
    anchor_date: date
    reminder_type: ReminderType

    @property
    def dedup_key(self) -> str:
        return generate_idempotency_key(
            self.lease_id, self.anchor_date, self.reminder_type.value
        )


def effective_anchor_date(
    revision_anchor: RevisionAnchor,
    start_date: date,
    today: date,
) -> date:
    """``max(this year's anchor, first anniversary of start_date)``."""
    this_year_anchor = revision_anchor.in_year(today.year)
    first_eligible = add_years(start_date, 1)
    return max(this_year_anchor, first_eligible)


@traced_engine(
    "revision_anchor", "1.0",
    fingerprint_fields=("lease_id", "revision_anchor", "start_date", "today"),
)
def evaluate(
    lease_id: UUID,
    revision_anchor: RevisionAnchor,
    start_date: date,
    today: date,
    lead_days: int = DEFAULT_LEAD_DAYS,
) -> RevisionReminder | None:
    """
    Reminder due for the lease on ``today``, or None.

    Emits ``today`` when the effective anchor is today, ``30_days`` when it
    is exactly ``lead_days`` days ahead.
    """
    anchor = effective_anchor_date(revision_anchor, start_date, today)

    if anchor == today:
        reminder_type = ReminderType.TODAY
    elif anchor == today + timedelta(days=lead_days):
        reminder_type = ReminderType.THIRTY_DAYS
    else:
        return None

    reminder = RevisionReminder(
        lease_id=lease_id,
        anchor_date=anchor,
        reminder_type=reminder_type,
    )
    logger.info(
        "revision_reminder_due",
        extra={
            "lease_id": str(lease_id),
            "anchor_date": anchor.isoformat(),
            "reminder_type": reminder_type.value,
        },
    )
    return reminder
