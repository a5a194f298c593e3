"""
Module: tenancy_engines
Responsibility:
    Package entrypoint re-exporting the public symbols of the pure lease
    calculation engines. This is the canonical import surface for
    ``tenancy_modules`` and ``tenancy_batch``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import tenancy_kernel (domain values, exceptions, logging).
    MUST NOT import tenancy_modules or tenancy_batch.

Invariants enforced:
    - Purity: engines NEVER call ``date.today()``. "Today" is a parameter.
    - Decimal-only arithmetic for amounts and index values.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Engine invocations are traced via ``@traced_engine``, emitting
    LEASE_ENGINE_TRACE records with an input fingerprint.
"""

from tenancy_kernel.logging_config import get_logger

logger = get_logger("engines")

from tenancy_engines.deposit import (
    DepositSettlement,
    RetentionLine,
    compute_settlement,
    compute_settlement_from_lines,
)
from tenancy_engines.notice import Notice, compute_move_out_date, issue_notice
from tenancy_engines.proration import (
    OccupationPeriod,
    Prorata,
    days_between,
    effective_occupation_period,
    exact_prorata,
    get_days_in_year,
    is_leap_year,
    prorated_amount,
)
from tenancy_engines.regularization import (
    BalanceType,
    ChargeLine,
    ChargeRegularization,
    RegularizationLine,
    compute_regularization,
)
from tenancy_engines.rent_revision import (
    LegalCompliance,
    RentRevision,
    RevisionRecord,
    build_revision_record,
    check_legal_compliance,
    compute_revision,
    current_revision,
)
from tenancy_engines.revision_anchor import (
    ReminderType,
    RevisionAnchor,
    RevisionReminder,
    effective_anchor_date,
    evaluate,
)

__all__ = [
    "BalanceType",
    "ChargeLine",
    "ChargeRegularization",
    "DepositSettlement",
    "LegalCompliance",
    "Notice",
    "OccupationPeriod",
    "Prorata",
    "RegularizationLine",
    "ReminderType",
    "RentRevision",
    "RetentionLine",
    "RevisionAnchor",
    "RevisionRecord",
    "RevisionReminder",
    "build_revision_record",
    "check_legal_compliance",
    "compute_move_out_date",
    "compute_regularization",
    "compute_revision",
    "compute_settlement",
    "compute_settlement_from_lines",
    "current_revision",
    "days_between",
    "effective_anchor_date",
    "effective_occupation_period",
    "evaluate",
    "exact_prorata",
    "get_days_in_year",
    "is_leap_year",
    "issue_notice",
    "prorated_amount",
]
