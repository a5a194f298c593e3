"""
Lease Domain Models (``tenancy_modules.lease.models``).

Responsibility
--------------
Frozen dataclass value objects for the lease aggregate: the lease itself,
its lifecycle status, the per-party signature state with its append-only
history, and the current electronic signature round.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O. Consumed by the
signature coordinator, the state machine and the lifecycle service.

Invariants enforced
-------------------
* All models are ``frozen=True``; changes produce new instances.
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* ``SignatureState.history`` only grows.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from tenancy_engines.revision_anchor import RevisionAnchor
from tenancy_kernel.domain.amounts import ZERO, to_decimal
from tenancy_kernel.domain.parties import PartyRole


class LeaseStatus(str, Enum):
    """Lease lifecycle states."""

    DRAFT = "draft"
    SENT_TO_TENANT = "sent_to_tenant"
    SIGNED_BY_TENANT = "signed_by_tenant"
    SIGNED_BY_OWNER = "signed_by_owner"
    ACTIVE = "active"
    EXPIRED = "expired"
    TERMINATED = "terminated"
    RENEWED = "renewed"


PRE_ACTIVATION_STATUSES = frozenset({
    LeaseStatus.DRAFT,
    LeaseStatus.SENT_TO_TENANT,
    LeaseStatus.SIGNED_BY_TENANT,
    LeaseStatus.SIGNED_BY_OWNER,
})


class SignatureMethod(str, Enum):
    """How a party signs."""

    ELECTRONIC = "electronic"            # e-signature provider envelope
    MANUAL_PHYSICAL = "manual_physical"  # signed on paper in person, scan uploaded
    MANUAL_REMOTE = "manual_remote"      # signed on paper remotely, scan uploaded

    @property
    def is_manual(self) -> bool:
        return self is not SignatureMethod.ELECTRONIC


class ProviderStatus(str, Enum):
    """Status vocabulary of the e-signature provider."""

    SENT = "sent"
    DELIVERED = "delivered"
    SIGNED = "signed"
    COMPLETED = "completed"
    DECLINED = "declined"
    VOIDED = "voided"


class SignatureEventKind(str, Enum):
    """Kinds of entries in a party's signature history."""

    METHOD_CHOSEN = "method_chosen"
    SIGNED = "signed"
    PROVIDER_STATUS = "provider_status"
    ROUND_STARTED = "round_started"


@dataclass(frozen=True)
class SignatureEvent:
    """One append-only entry of a party's signature audit trail."""

    kind: SignatureEventKind
    occurred_at: datetime
    round_number: int
    method: SignatureMethod | None = None
    evidence_ref: str | None = None
    provider_status: ProviderStatus | None = None


@dataclass(frozen=True)
class SignatureState:
    """
    Signature evidence of one party.

    Contract:
        Created empty with the lease. Only the signature coordinator builds
        new states, always by appending to ``history``.
    """

    signed: bool = False
    signed_at: datetime | None = None
    evidence_ref: str | None = None
    method: SignatureMethod | None = None
    history: tuple[SignatureEvent, ...] = ()

    def append(self, event: SignatureEvent, **changes) -> SignatureState:
        return replace(self, history=self.history + (event,), **changes)


@dataclass(frozen=True)
class SignatureRound:
    """
    Current electronic signature round.

    A declined or voided envelope sets ``terminal_failure``; only a new
    round (new envelope) clears it.
    """

    number: int = 1
    envelope_id: str | None = None
    provider_status: ProviderStatus | None = None
    terminal_failure: bool = False


@dataclass(frozen=True)
class Lease:
    """A residential lease contract."""

    owner_id: UUID
    tenant_id: UUID
    property_id: UUID
    start_date: date
    monthly_rent: Decimal
    signature_method: SignatureMethod
    revision_anchor: RevisionAnchor
    end_date: date | None = None
    charges_provision: Decimal = ZERO
    deposit_amount: Decimal = ZERO
    status: LeaseStatus = LeaseStatus.DRAFT
    owner_signature: SignatureState = field(default_factory=SignatureState)
    tenant_signature: SignatureState = field(default_factory=SignatureState)
    signature_round: SignatureRound = field(default_factory=SignatureRound)
    version: int = 0
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        for name in ("monthly_rent", "charges_provision", "deposit_amount"):
            object.__setattr__(self, name, to_decimal(getattr(self, name)))
        object.__setattr__(self, "status", LeaseStatus(self.status))
        object.__setattr__(self, "signature_method", SignatureMethod(self.signature_method))
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("Lease end_date cannot be before start_date")

    @property
    def signatures(self) -> dict[PartyRole, SignatureState]:
        return {
            PartyRole.OWNER: self.owner_signature,
            PartyRole.TENANT: self.tenant_signature,
        }

    def signature(self, party: PartyRole) -> SignatureState:
        return self.owner_signature if PartyRole(party) is PartyRole.OWNER else self.tenant_signature

    def with_signature(self, party: PartyRole, state: SignatureState) -> Lease:
        if PartyRole(party) is PartyRole.OWNER:
            return replace(self, owner_signature=state)
        return replace(self, tenant_signature=state)

    @property
    def both_signed(self) -> bool:
        return self.owner_signature.signed and self.tenant_signature.signed

    @property
    def activation_eligible(self) -> bool:
        """Both parties signed and the signature round is not failed."""
        return self.both_signed and not self.signature_round.terminal_failure
