"""
Module: tenancy_engines.rent_revision
Responsibility:
    Annual rent indexation on the rent reference index (IRL):
    ``new_rent = old_rent * new_irl / reference_irl``, with the increase and
    its percentage, each rounded half-up to the cent. Also packages results
    into ``RevisionRecord`` and picks the live record of a revision year.
    Checks the increase against the statutory cap, lower in
    rent-controlled zones.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Decimal-only arithmetic.
    - Identical index values leave the rent unchanged (zero increase).
    - At most one non-superseded record per revision year; superseding is
      by reference, records are never edited.

Failure modes:
    - InvalidIndexError when either index value is zero or negative.

Usage:
    revision = compute_revision(Decimal("600"), Decimal("130.26"), Decimal("132.59"))
    revision.new_rent            # Decimal("610.73")
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable
from uuid import UUID, uuid4

from tenancy_engines.tracer import traced_engine
from tenancy_kernel.domain.amounts import HUNDRED, ZERO, round2, to_decimal
from tenancy_kernel.exceptions import InvalidIndexError
from tenancy_kernel.logging_config import get_logger

logger = get_logger("engines.rent_revision")


@dataclass(frozen=True)
class RentRevision:
    """Result of one indexation."""

    old_rent: Decimal
    new_rent: Decimal
    increase: Decimal
    percentage: Decimal


@dataclass(frozen=True)
class RevisionRecord:
    """
    Audit record of an applied rent revision.

    Contract:
        One live record per lease and revision year. A newer record of the
        same year names the older one in ``supersedes_id``.
    """

    lease_id: UUID
    revision_year: int
    irl_quarter: str
    reference_irl_value: Decimal
    new_irl_value: Decimal
    old_rent_amount: Decimal
    new_rent_amount: Decimal
    increase_amount: Decimal
    increase_percentage: Decimal
    supersedes_id: UUID | None = None
    id: UUID = field(default_factory=uuid4)


@traced_engine("rent_revision", "1.0", fingerprint_fields=("old_rent", "reference_irl", "new_irl"))
def compute_revision(
    old_rent: Decimal | int | str,
    reference_irl: Decimal | int | str,
    new_irl: Decimal | int | str,
) -> RentRevision:
    """
    Index ``old_rent`` from ``reference_irl`` to ``new_irl``.

    Raises:
        InvalidIndexError: If either index is not strictly positive.
    """
    old = to_decimal(old_rent)
    reference = to_decimal(reference_irl)
    new = to_decimal(new_irl)

    if reference <= ZERO or new <= ZERO:
        raise InvalidIndexError(reference, new)

    new_rent = round2(old * new / reference)
    increase = round2(new_rent - old)
    percentage = round2(increase / old * HUNDRED) if old != ZERO else round2(ZERO)

    return RentRevision(
        old_rent=old,
        new_rent=new_rent,
        increase=increase,
        percentage=percentage,
    )


def build_revision_record(
    lease_id: UUID,
    revision_year: int,
    irl_quarter: str,
    old_rent: Decimal | int | str,
    reference_irl: Decimal | int | str,
    new_irl: Decimal | int | str,
    supersedes_id: UUID | None = None,
) -> RevisionRecord:
    """Compute a revision and wrap it in a ``RevisionRecord``."""
    revision = compute_revision(old_rent, reference_irl, new_irl)
    record = RevisionRecord(
        lease_id=lease_id,
        revision_year=revision_year,
        irl_quarter=irl_quarter,
        reference_irl_value=to_decimal(reference_irl),
        new_irl_value=to_decimal(new_irl),
        old_rent_amount=revision.old_rent,
        new_rent_amount=revision.new_rent,
        increase_amount=revision.increase,
        increase_percentage=revision.percentage,
        supersedes_id=supersedes_id,
    )
    logger.info(
        "revision_record_built",
        extra={
            "lease_id": str(lease_id),
            "revision_year": revision_year,
            "irl_quarter": irl_quarter,
            "new_rent_amount": str(revision.new_rent),
        },
    )
    return record


def current_revision(
    records: Iterable[RevisionRecord],
    revision_year: int,
) -> RevisionRecord | None:
    """The record of ``revision_year`` that no other record supersedes."""
    of_year = [r for r in records if r.revision_year == revision_year]
    superseded = {r.supersedes_id for r in of_year if r.supersedes_id is not None}
    live = [r for r in of_year if r.id not in superseded]
    if len(live) > 1:
        raise ValueError(
            f"{len(live)} live revision records for year {revision_year}; "
            "expected at most one"
        )
    return live[0] if live else None


# Statutory caps on the yearly increase, in percent
DEFAULT_MAX_INCREASE_PERCENTAGE = Decimal("3.5")
RENT_CONTROLLED_MAX_INCREASE_PERCENTAGE = Decimal("2.5")


@dataclass(frozen=True)
class LegalCompliance:
    """Outcome of checking a revision against the increase cap."""

    is_compliant: bool
    max_allowed_increase: Decimal
    warnings: tuple[str, ...] = ()


def check_legal_compliance(
    increase_percentage: Decimal | int | str,
    rent_controlled_zone: bool = False,
    max_increase: Decimal | int | str = DEFAULT_MAX_INCREASE_PERCENTAGE,
    rent_controlled_max_increase: Decimal | int | str = RENT_CONTROLLED_MAX_INCREASE_PERCENTAGE,
) -> LegalCompliance:
    """
    Compare an increase percentage with the applicable cap.

    Rent-controlled zones use the lower cap and always carry a warning
    saying so. An increase equal to the cap is compliant. The check never
    raises; callers decide what to do with a non-compliant revision.
    """
    percentage = to_decimal(increase_percentage)
    cap = to_decimal(rent_controlled_max_increase if rent_controlled_zone else max_increase)

    warnings: list[str] = []
    if rent_controlled_zone:
        warnings.append(f"Rent-controlled zone: increase limited to {cap}%")
    if percentage > cap:
        warnings.append(f"Increase of {round2(percentage)}% exceeds the {cap}% cap")
        logger.warning(
            "revision_exceeds_cap",
            extra={
                "increase_percentage": str(percentage),
                "max_allowed_increase": str(cap),
                "rent_controlled_zone": rent_controlled_zone,
            },
        )

    return LegalCompliance(
        is_compliant=percentage <= cap,
        max_allowed_increase=cap,
        warnings=tuple(warnings),
    )
