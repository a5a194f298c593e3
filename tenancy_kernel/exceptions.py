"""
Typed Exception Hierarchy for the Tenancy Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Lease rules carry legal weight. Callers must be able to tell a rejected
index value from a retention that exceeds the deposit without parsing
message strings. Every error therefore:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes (not just a message string)

Example:
    try:
        settlement = compute_settlement(...)
    except RetainedExceedsDepositError as e:
        api_response(code=e.code, deposit=e.deposit_amount, retained=e.retained_amount)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    TenancyKernelError (base)
    |
    +-- LifecycleError
    |   +-- InvalidTransitionError
    |   +-- LeaseNotFoundError
    |
    +-- SignatureError
    |   +-- MethodMismatchError
    |   +-- MissingEvidenceError
    |   +-- SignatureAlreadyRecordedError
    |   +-- UnknownProviderStatusError
    |   +-- SignatureRoundFailedError
    |
    +-- NoticeError
    |   +-- InvalidNoticeDateError
    |   +-- InvalidNoticePeriodError
    |
    +-- RevisionError
    |   +-- InvalidIndexError
    |
    +-- DateRangeError
    |   +-- InvalidDateRangeError
    |
    +-- DepositError
    |   +-- RetainedExceedsDepositError
    |   +-- InvalidRetentionError
    |   +-- ProvisionalRetentionExceededError
    |
    +-- ConcurrencyError
        +-- PersistenceConflictError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                            | When Raised
-------------|---------------------------------|-------------------------------------
Lifecycle    | INVALID_TRANSITION              | End transition from a disallowed state
             | LEASE_NOT_FOUND                 | Repository has no lease with that id
-------------|---------------------------------|-------------------------------------
Signature    | METHOD_MISMATCH                 | Method differs from the party's method
             | MISSING_EVIDENCE                | Manual signature without a document
             | SIGNATURE_ALREADY_RECORDED      | Method change after the party signed
             | UNKNOWN_PROVIDER_STATUS         | Provider status outside the vocabulary
             | SIGNATURE_ROUND_FAILED          | Electronic signature on a failed round
-------------|---------------------------------|-------------------------------------
Notice       | INVALID_NOTICE_DATE             | Notice dated before the issuing day
             | INVALID_NOTICE_PERIOD           | Notice period of zero or fewer months
-------------|---------------------------------|-------------------------------------
Revision     | INVALID_INDEX                   | Non-positive IRL value
-------------|---------------------------------|-------------------------------------
Date range   | INVALID_DATE_RANGE              | End date before start date
-------------|---------------------------------|-------------------------------------
Deposit      | RETAINED_EXCEEDS_DEPOSIT        | Retentions larger than the deposit
             | INVALID_RETENTION               | Negative retention
             | PROVISIONAL_RETENTION_EXCEEDED  | Provisional charges over the cap
-------------|---------------------------------|-------------------------------------
Concurrency  | PERSISTENCE_CONFLICT            | Lease modified by another writer

===============================================================================
DESIGN DECISIONS
===============================================================================

1. Exceptions inherit from Exception, not ValueError: domain errors are
   catchable as a group without mixing in programming errors.
2. ``code`` is a class attribute, readable without instantiation.
3. Calculators raise before constructing any record, so an error never
   leaves a partially built result behind.
"""

from datetime import date
from decimal import Decimal


class TenancyKernelError(Exception):
    """
    Base exception for all tenancy kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "TENANCY_KERNEL_ERROR"


# Lifecycle exceptions


class LifecycleError(TenancyKernelError):
    """Base exception for lease lifecycle errors."""

    code: str = "LIFECYCLE_ERROR"


class InvalidTransitionError(LifecycleError):
    """
    A lifecycle action is not allowed from the current status.

    Signature transitions never raise this; only the explicit end-of-lease
    actions (terminate, expire, renew) do.
    """

    code: str = "INVALID_TRANSITION"

    def __init__(self, lease_id: str, current_status: str, action: str):
        self.lease_id = lease_id
        self.current_status = current_status
        self.action = action
        super().__init__(
            f"Cannot {action} lease {lease_id} from status {current_status}"
        )


class LeaseNotFoundError(LifecycleError):
    """Lease with given ID was not found."""

    code: str = "LEASE_NOT_FOUND"

    def __init__(self, lease_id: str):
        self.lease_id = lease_id
        super().__init__(f"Lease not found: {lease_id}")


# Signature exceptions


class SignatureError(TenancyKernelError):
    """Base exception for signature errors."""

    code: str = "SIGNATURE_ERROR"


class MethodMismatchError(SignatureError):
    """Signature submitted with a method other than the party's chosen one."""

    code: str = "METHOD_MISMATCH"

    def __init__(self, lease_id: str, party: str, expected: str, received: str):
        self.lease_id = lease_id
        self.party = party
        self.expected = expected
        self.received = received
        super().__init__(
            f"Signature method mismatch on lease {lease_id} for {party}: "
            f"expected {expected}, received {received}"
        )


class MissingEvidenceError(SignatureError):
    """A signature was submitted without its evidence reference."""

    code: str = "MISSING_EVIDENCE"

    def __init__(self, lease_id: str, party: str, method: str):
        self.lease_id = lease_id
        self.party = party
        self.method = method
        super().__init__(
            f"Signature by {party} on lease {lease_id} via {method} "
            "requires an evidence reference"
        )


class SignatureAlreadyRecordedError(SignatureError):
    """The party already signed; its signature method is frozen."""

    code: str = "SIGNATURE_ALREADY_RECORDED"

    def __init__(self, lease_id: str, party: str):
        self.lease_id = lease_id
        self.party = party
        super().__init__(f"{party} already signed lease {lease_id}")


class UnknownProviderStatusError(SignatureError):
    """The e-signature provider reported a status outside the vocabulary."""

    code: str = "UNKNOWN_PROVIDER_STATUS"

    def __init__(self, status: str):
        self.status = status
        super().__init__(f"Unknown signature provider status: {status}")


class SignatureRoundFailedError(SignatureError):
    """The envelope of the current round was declined or voided."""

    code: str = "SIGNATURE_ROUND_FAILED"

    def __init__(self, lease_id: str, party: str, round_number: int):
        self.lease_id = lease_id
        self.party = party
        self.round_number = round_number
        super().__init__(
            f"Signature round {round_number} of lease {lease_id} failed; "
            f"{party} must sign on a new envelope"
        )


# Notice exceptions


class NoticeError(TenancyKernelError):
    """Base exception for termination notice errors."""

    code: str = "NOTICE_ERROR"


class InvalidNoticeDateError(NoticeError):
    """Notice is dated before the day it is issued."""

    code: str = "INVALID_NOTICE_DATE"

    def __init__(self, notice_date: date, today: date):
        self.notice_date = notice_date
        self.today = today
        super().__init__(
            f"Notice date {notice_date.isoformat()} is before {today.isoformat()}"
        )


class InvalidNoticePeriodError(NoticeError):
    """Notice period is not a positive number of months."""

    code: str = "INVALID_NOTICE_PERIOD"

    def __init__(self, notice_period_months: int):
        self.notice_period_months = notice_period_months
        super().__init__(
            f"Notice period must be positive, got {notice_period_months} months"
        )


# Revision exceptions


class RevisionError(TenancyKernelError):
    """Base exception for rent revision errors."""

    code: str = "REVISION_ERROR"


class InvalidIndexError(RevisionError):
    """A rent reference index value is zero or negative."""

    code: str = "INVALID_INDEX"

    def __init__(self, reference_irl: Decimal, new_irl: Decimal):
        self.reference_irl = reference_irl
        self.new_irl = new_irl
        super().__init__(
            f"IRL values must be positive: reference={reference_irl}, new={new_irl}"
        )


# Date range exceptions


class DateRangeError(TenancyKernelError):
    """Base exception for date range errors."""

    code: str = "DATE_RANGE_ERROR"


class InvalidDateRangeError(DateRangeError):
    """End date falls before start date."""

    code: str = "INVALID_DATE_RANGE"

    def __init__(self, start: date, end: date):
        self.start = start
        self.end = end
        super().__init__(
            f"End date {end.isoformat()} is before start date {start.isoformat()}"
        )


# Deposit exceptions


class DepositError(TenancyKernelError):
    """Base exception for deposit settlement errors."""

    code: str = "DEPOSIT_ERROR"


class RetainedExceedsDepositError(DepositError):
    """Retentions are larger than the deposit. Never clamped."""

    code: str = "RETAINED_EXCEEDS_DEPOSIT"

    def __init__(self, deposit_amount: Decimal, retained_amount: Decimal):
        self.deposit_amount = deposit_amount
        self.retained_amount = retained_amount
        super().__init__(
            f"Retained amount {retained_amount} exceeds deposit {deposit_amount}"
        )


class InvalidRetentionError(DepositError):
    """A retention amount is negative."""

    code: str = "INVALID_RETENTION"

    def __init__(self, retained_amount: Decimal):
        self.retained_amount = retained_amount
        super().__init__(f"Retained amount cannot be negative: {retained_amount}")


class ProvisionalRetentionExceededError(DepositError):
    """Provisional charge retention is above the allowed share of the deposit."""

    code: str = "PROVISIONAL_RETENTION_EXCEEDED"

    def __init__(self, amount: Decimal, max_allowed: Decimal):
        self.amount = amount
        self.max_allowed = max_allowed
        super().__init__(
            f"Provisional retention {amount} exceeds maximum {max_allowed}"
        )


# Concurrency exceptions


class ConcurrencyError(TenancyKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class PersistenceConflictError(ConcurrencyError):
    """Optimistic version check failed; another writer changed the lease."""

    code: str = "PERSISTENCE_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str, expected_version: int | None = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_version = expected_version
        super().__init__(
            f"Persistence conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )
