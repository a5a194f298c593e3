"""
Lease Ports (``tenancy_modules.lease.ports``).

Interfaces of the collaborators the lifecycle depends on. Persistence is an
abstract base with a SQLAlchemy implementation in ``repository.py``; the
e-signature vendor and notification delivery are structural protocols
supplied by the host application.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from tenancy_engines.deposit import DepositSettlement
from tenancy_engines.notice import Notice
from tenancy_engines.regularization import ChargeRegularization
from tenancy_engines.rent_revision import RevisionRecord
from tenancy_engines.revision_anchor import RevisionReminder
from tenancy_kernel.domain.parties import PartyRole
from tenancy_modules.lease.events import LifecycleIntent
from tenancy_modules.lease.models import Lease, ProviderStatus


class LeaseRepository(ABC):
    """
    Storage of leases and their derived records.

    Contract:
        ``save`` fails with ``PersistenceConflictError`` when the stored
        version differs from ``lease.version``. Derived records are
        insert-only; corrections are new records that supersede old ones.
    """

    @abstractmethod
    def get(self, lease_id: UUID) -> Lease:
        """Load a lease. Raises ``LeaseNotFoundError``."""
        ...

    @abstractmethod
    def add(self, lease: Lease, actor_id: UUID) -> Lease:
        """Store a new lease and return it with its stored version."""
        ...

    @abstractmethod
    def save(self, lease: Lease, actor_id: UUID) -> Lease:
        """Store changes to an existing lease under the optimistic check."""
        ...

    @abstractmethod
    def add_notice(self, notice: Notice, actor_id: UUID) -> Notice:
        ...

    @abstractmethod
    def latest_notice(self, lease_id: UUID) -> Notice | None:
        ...

    @abstractmethod
    def add_revision(self, record: RevisionRecord, actor_id: UUID) -> RevisionRecord:
        """Store a revision, superseding the live record of the same year."""
        ...

    @abstractmethod
    def current_revision(self, lease_id: UUID, revision_year: int) -> RevisionRecord | None:
        ...

    @abstractmethod
    def add_regularization(
        self, regularization: ChargeRegularization, actor_id: UUID,
    ) -> ChargeRegularization:
        ...

    @abstractmethod
    def add_settlement(self, settlement: DepositSettlement, actor_id: UUID) -> DepositSettlement:
        ...

    @abstractmethod
    def latest_settlement(self, lease_id: UUID) -> DepositSettlement | None:
        ...

    @abstractmethod
    def list_revisable_leases(self) -> list[Lease]:
        """Leases the revision reminder batch must evaluate."""
        ...


class ReminderLedger(ABC):
    """Record of revision reminders already emitted."""

    @abstractmethod
    def claim(self, reminder: RevisionReminder) -> bool:
        """Claim the reminder's dedup key. False if it was claimed before."""
        ...


@dataclass(frozen=True)
class EnvelopeSigner:
    """A signer handed to the e-signature provider."""

    role: PartyRole
    party_id: UUID


class SignatureProvider(Protocol):
    """Pluggable e-signature vendor."""

    def create_envelope(self, document: bytes, signers: Sequence[EnvelopeSigner]) -> str:
        """Send ``document`` for signature and return the envelope id."""
        ...

    def get_status(self, envelope_id: str) -> ProviderStatus | str:
        """Current status of an envelope, in the provider vocabulary."""
        ...

    def download_signed(self, envelope_id: str) -> bytes:
        """Signed document of a completed envelope."""
        ...


class NotificationDispatcher(Protocol):
    """Delivers lifecycle intents (email, in-app, ...)."""

    def dispatch(self, intent: LifecycleIntent) -> None:
        ...
