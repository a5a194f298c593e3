"""
Module: tenancy_engines.deposit
Responsibility:
    Security-deposit settlement at the end of a lease: the amount retained,
    the refund, and the statutory restitution deadline counted from the
    move-out date.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - ``refund_amount == max(0, deposit_amount - retained_amount)``.
    - ``deadline_date == move_out_date + restitution_deadline_days``.
    - Retentions above the deposit are an error, never clamped.
    - A provisional-charges retention is capped at a share of the deposit.
    - Settlements are frozen; a correction is a new settlement naming the
      one it supersedes.

Failure modes:
    - InvalidRetentionError on a negative retention.
    - RetainedExceedsDepositError when retentions exceed the deposit.
    - ProvisionalRetentionExceededError over the provisional cap.

Non-goals:
    - Does NOT pick between the 30-day and 60-day legal deadlines. The
      deadline is a parameter, defaulted to 30 days.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Sequence
from uuid import UUID, uuid4

from tenancy_engines.tracer import traced_engine
from tenancy_kernel.domain.amounts import ZERO, to_decimal
from tenancy_kernel.exceptions import (
    InvalidRetentionError,
    ProvisionalRetentionExceededError,
    RetainedExceedsDepositError,
)
from tenancy_kernel.logging_config import get_logger

logger = get_logger("engines.deposit")

DEFAULT_RESTITUTION_DEADLINE_DAYS = 30
DEFAULT_PROVISIONAL_RATIO = Decimal("0.20")
PROVISIONAL_CHARGES = "provisional_charges"


@dataclass(frozen=True)
class RetentionLine:
    """One justified deduction from the deposit."""

    category: str
    description: str
    amount: Decimal
    attachment_ref: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount))

    @property
    def is_provisional(self) -> bool:
        return self.category == PROVISIONAL_CHARGES


@dataclass(frozen=True)
class DepositSettlement:
    """Final deposit settlement record."""

    lease_id: UUID
    deposit_amount: Decimal
    retained_amount: Decimal
    retained_reasons: tuple[str, ...]
    refund_amount: Decimal
    move_out_date: date
    restitution_deadline_days: int
    deadline_date: date
    lines: tuple[RetentionLine, ...] = ()
    supersedes_id: UUID | None = None
    id: UUID = field(default_factory=uuid4)


@traced_engine(
    "deposit", "1.0",
    fingerprint_fields=(
        "deposit_amount", "retained_amount", "move_out_date", "restitution_deadline_days",
    ),
)
def compute_settlement(
    lease_id: UUID,
    deposit_amount: Decimal | int | str,
    retained_amount: Decimal | int | str,
    retained_reasons: Sequence[str],
    move_out_date: date,
    restitution_deadline_days: int = DEFAULT_RESTITUTION_DEADLINE_DAYS,
    lines: Sequence[RetentionLine] = (),
    supersedes_id: UUID | None = None,
) -> DepositSettlement:
    """
    Settle the deposit.

    Raises:
        InvalidRetentionError: If ``retained_amount < 0``.
        RetainedExceedsDepositError: If ``retained_amount > deposit_amount``.
        ValueError: If ``restitution_deadline_days`` is negative.
    """
    deposit = to_decimal(deposit_amount)
    retained = to_decimal(retained_amount)

    if retained < ZERO:
        raise InvalidRetentionError(retained)
    if retained > deposit:
        raise RetainedExceedsDepositError(deposit, retained)
    if restitution_deadline_days < 0:
        raise ValueError("restitution_deadline_days cannot be negative")

    settlement = DepositSettlement(
        lease_id=lease_id,
        deposit_amount=deposit,
        retained_amount=retained,
        retained_reasons=tuple(retained_reasons),
        refund_amount=max(ZERO, deposit - retained),
        move_out_date=move_out_date,
        restitution_deadline_days=restitution_deadline_days,
        deadline_date=move_out_date + timedelta(days=restitution_deadline_days),
        lines=tuple(lines),
        supersedes_id=supersedes_id,
    )

    logger.info(
        "deposit_settlement_computed",
        extra={
            "lease_id": str(lease_id),
            "deposit_amount": str(deposit),
            "retained_amount": str(retained),
            "refund_amount": str(settlement.refund_amount),
            "deadline_date": settlement.deadline_date.isoformat(),
        },
    )
    return settlement


def compute_settlement_from_lines(
    lease_id: UUID,
    deposit_amount: Decimal | int | str,
    lines: Sequence[RetentionLine],
    move_out_date: date,
    restitution_deadline_days: int = DEFAULT_RESTITUTION_DEADLINE_DAYS,
    provisional_ratio: Decimal = DEFAULT_PROVISIONAL_RATIO,
    supersedes_id: UUID | None = None,
) -> DepositSettlement:
    """
    Settle the deposit from itemized retention lines.

    Raises:
        InvalidRetentionError: If any line amount is negative.
        ProvisionalRetentionExceededError: If provisional-charge lines
            exceed ``provisional_ratio`` of the deposit.
        RetainedExceedsDepositError: If the lines exceed the deposit.
    """
    deposit = to_decimal(deposit_amount)

    for line in lines:
        if line.amount < ZERO:
            raise InvalidRetentionError(line.amount)

    provisional = sum((l.amount for l in lines if l.is_provisional), ZERO)
    max_provisional = deposit * provisional_ratio
    if provisional > max_provisional:
        raise ProvisionalRetentionExceededError(provisional, max_provisional)

    return compute_settlement(
        lease_id,
        deposit,
        sum((l.amount for l in lines), ZERO),
        [l.description or l.category for l in lines],
        move_out_date,
        restitution_deadline_days=restitution_deadline_days,
        lines=lines,
        supersedes_id=supersedes_id,
    )
