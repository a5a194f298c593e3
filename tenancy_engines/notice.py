"""
Module: tenancy_engines.notice
Responsibility:
    Termination notice (congé) deadlines. Adds whole calendar months to the
    notice date to find the legal move-out date, and builds immutable
    ``Notice`` records after validating the notice at issuance.

Architecture position:
    Engines -- pure calculation layer, zero I/O. "Today" is a parameter.

Invariants enforced:
    - Months are calendar months, not day counts; a day missing from the
      target month clamps to that month's last day.
    - ``Notice.move_out_date`` is derived from the notice inputs every time
      it is read, never stored on its own.
    - A Notice is frozen. A correction is a new Notice with ``supersedes_id``.

Failure modes:
    - InvalidNoticePeriodError when the period is not a positive month count.
    - InvalidNoticeDateError when the notice is dated before the issuing day.

Non-goals:
    - Does NOT choose the number of months. Furnished, unfurnished and
      rent-control-zone rules belong to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from uuid import UUID, uuid4

from tenancy_engines.tracer import traced_engine
from tenancy_kernel.domain.dates import add_months
from tenancy_kernel.domain.parties import PartyRole
from tenancy_kernel.exceptions import InvalidNoticeDateError, InvalidNoticePeriodError
from tenancy_kernel.logging_config import get_logger

logger = get_logger("engines.notice")


@dataclass(frozen=True)
class Notice:
    """
    Formal termination declaration.

    Contract:
        Frozen. ``move_out_date`` is a derived property: the legal date
        (notice date plus the notice period), or the desired move-out date
        when the issuer asked for a later one.
    """

    lease_id: UUID
    notice_date: date
    notice_period_months: int
    issued_by: PartyRole
    desired_move_out: date | None = None
    supersedes_id: UUID | None = None
    id: UUID = field(default_factory=uuid4)

    @property
    def legal_move_out_date(self) -> date:
        return compute_move_out_date(self.notice_date, self.notice_period_months)

    @property
    def move_out_date(self) -> date:
        legal = self.legal_move_out_date
        if self.desired_move_out is not None and self.desired_move_out > legal:
            return self.desired_move_out
        return legal


def compute_move_out_date(notice_date: date, notice_period_months: int) -> date:
    """
    Legal move-out date: ``notice_date`` plus whole calendar months.

    Jan 31 + 1 month is Feb 29 in a leap year and Feb 28 otherwise.

    Raises:
        InvalidNoticePeriodError: If ``notice_period_months <= 0``.
    """
    if notice_period_months <= 0:
        raise InvalidNoticePeriodError(notice_period_months)
    return add_months(notice_date, notice_period_months)


@traced_engine(
    "notice", "1.0",
    fingerprint_fields=("notice_date", "notice_period_months", "issued_by", "today"),
)
def issue_notice(
    lease_id: UUID,
    notice_date: date,
    notice_period_months: int,
    issued_by: PartyRole,
    today: date,
    desired_move_out: date | None = None,
    supersedes_id: UUID | None = None,
) -> Notice:
    """
    Validate and build a Notice.

    A desired move-out date before the legal date is ignored in favour of
    the legal date; a later one is kept.

    Raises:
        InvalidNoticePeriodError: If ``notice_period_months <= 0``.
        InvalidNoticeDateError: If ``notice_date`` is before ``today``.
    """
    if notice_period_months <= 0:
        raise InvalidNoticePeriodError(notice_period_months)
    if notice_date < today:
        raise InvalidNoticeDateError(notice_date, today)

    notice = Notice(
        lease_id=lease_id,
        notice_date=notice_date,
        notice_period_months=notice_period_months,
        issued_by=PartyRole(issued_by),
        desired_move_out=desired_move_out,
        supersedes_id=supersedes_id,
    )

    logger.info(
        "notice_issued",
        extra={
            "lease_id": str(lease_id),
            "issued_by": notice.issued_by.value,
            "notice_date": notice_date.isoformat(),
            "move_out_date": notice.move_out_date.isoformat(),
        },
    )
    return notice
