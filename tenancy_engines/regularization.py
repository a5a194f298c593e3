"""
Module: tenancy_engines.regularization
Responsibility:
    Year-end reconciliation of the charge provisions a tenant paid against
    the real charges of the year. Recoverable charges are prorated to the
    lease's effective occupation of the year; the tenant balance is the
    provisions collected minus the tenant's recoverable share.

Architecture position:
    Engines -- pure calculation layer, zero I/O. Uses
    ``tenancy_engines.proration`` for the occupation period.

Invariants enforced:
    - The regularization period lies inside both the lease and the year.
    - Full ``Decimal`` precision; presentation rounds.
    - ``balance_type`` is ``refund`` when the balance is zero or positive,
      ``due`` otherwise.

Failure modes:
    - InvalidDateRangeError when the lease ends before it starts.
    - ValueError on a negative real charge amount.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Sequence
from uuid import UUID, uuid4

from tenancy_engines.proration import OccupationPeriod, Prorata, exact_prorata, prorated_amount
from tenancy_engines.tracer import traced_engine
from tenancy_kernel.domain.amounts import ZERO, to_decimal
from tenancy_kernel.logging_config import get_logger

logger = get_logger("engines.regularization")


class BalanceType(str, Enum):
    """Direction of the tenant balance after regularization."""

    REFUND = "refund"
    DUE = "due"


@dataclass(frozen=True)
class ChargeLine:
    """
    One category of real charges for the year.

    ``real_amount`` is the full-year amount for the building or unit;
    ``recoverable`` marks charges the owner may pass on to the tenant.
    """

    category: str
    real_amount: Decimal
    recoverable: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "real_amount", to_decimal(self.real_amount))
        if self.real_amount < ZERO:
            raise ValueError(f"Real amount for {self.category} cannot be negative")


@dataclass(frozen=True)
class RegularizationLine:
    """A charge line with the tenant share computed for the period."""

    category: str
    real_amount: Decimal
    recoverable: bool
    tenant_share: Decimal


@dataclass(frozen=True)
class ChargeRegularization:
    """Outcome of a year-end charge regularization."""

    lease_id: UUID
    year: int
    period: OccupationPeriod
    total_provisions_collected: Decimal
    total_real_charges: Decimal
    recoverable_charges: Decimal
    non_recoverable_charges: Decimal
    tenant_balance: Decimal
    balance_type: BalanceType
    occupation_days: int
    total_days: int
    lines: tuple[RegularizationLine, ...] = ()
    id: UUID = field(default_factory=uuid4)


@traced_engine(
    "regularization", "1.0",
    fingerprint_fields=("year", "lease_start", "lease_end", "provisions_collected"),
)
def compute_regularization(
    lease_id: UUID,
    year: int,
    lease_start: date,
    lease_end: date | None,
    provisions_collected: Decimal | int | str,
    lines: Sequence[ChargeLine],
) -> ChargeRegularization:
    """
    Reconcile provisions against real charges for ``year``.

    Raises:
        InvalidDateRangeError: If ``lease_end`` is before ``lease_start``.
    """
    prorata: Prorata = exact_prorata(lease_start, lease_end, year)
    provisions = to_decimal(provisions_collected)

    computed: list[RegularizationLine] = []
    total_real = ZERO
    recoverable = ZERO
    for line in lines:
        share = prorated_amount(line.real_amount, prorata) if line.recoverable else ZERO
        computed.append(
            RegularizationLine(
                category=line.category,
                real_amount=line.real_amount,
                recoverable=line.recoverable,
                tenant_share=share,
            )
        )
        total_real += line.real_amount
        recoverable += share

    balance = provisions - recoverable
    regularization = ChargeRegularization(
        lease_id=lease_id,
        year=year,
        period=prorata.period,
        total_provisions_collected=provisions,
        total_real_charges=total_real,
        recoverable_charges=recoverable,
        non_recoverable_charges=total_real - recoverable,
        tenant_balance=balance,
        balance_type=BalanceType.REFUND if balance >= ZERO else BalanceType.DUE,
        occupation_days=prorata.occupation_days,
        total_days=prorata.total_days,
        lines=tuple(computed),
    )

    logger.info(
        "regularization_computed",
        extra={
            "lease_id": str(lease_id),
            "year": year,
            "occupation_days": prorata.occupation_days,
            "tenant_balance": str(balance),
            "balance_type": regularization.balance_type.value,
        },
    )
    return regularization
