"""
Lease Lifecycle Module (``tenancy_modules.lease``).

Responsibility
--------------
The lease aggregate and everything that moves it: per-party signatures in
three methods, reconciliation of the e-signature provider's status, the
lifecycle state machine, notices, rent revisions, charge regularizations
and deposit settlement.

Architecture position
---------------------
**Modules layer** -- frozen models, declarative workflows, a pure state
machine and signature coordinator, a SQLAlchemy repository, and the
``LeaseLifecycleService`` facade that owns transaction boundaries.

Invariants enforced
-------------------
* A lease is ``active`` exactly when both parties signed and the current
  signature round has no terminal failure.
* Signature history and derived records are append-only.
* Lease writes are optimistic, retried on conflict.
"""

from tenancy_modules.lease.config import LeaseConfig
from tenancy_modules.lease.events import IntentType, LifecycleIntent
from tenancy_modules.lease.models import (
    PRE_ACTIVATION_STATUSES,
    Lease,
    LeaseStatus,
    ProviderStatus,
    SignatureEvent,
    SignatureEventKind,
    SignatureMethod,
    SignatureRound,
    SignatureState,
)
from tenancy_modules.lease.ports import (
    EnvelopeSigner,
    LeaseRepository,
    NotificationDispatcher,
    ReminderLedger,
    SignatureProvider,
)
from tenancy_modules.lease.repository import (
    SqlAlchemyLeaseRepository,
    SqlAlchemyReminderLedger,
)
from tenancy_modules.lease.service import LeaseLifecycleService
from tenancy_modules.lease.signatures import (
    SignatureCoordinator,
    map_provider_status,
)
from tenancy_modules.lease.state_machine import (
    LeaseStateMachine,
    TransitionResult,
    next_status,
    resolve_status,
)
from tenancy_modules.lease.workflows import LEASE_END_WORKFLOW, LEASE_SIGNATURE_WORKFLOW

__all__ = [
    "LEASE_END_WORKFLOW",
    "LEASE_SIGNATURE_WORKFLOW",
    "PRE_ACTIVATION_STATUSES",
    "EnvelopeSigner",
    "IntentType",
    "Lease",
    "LeaseConfig",
    "LeaseLifecycleService",
    "LeaseRepository",
    "LeaseStateMachine",
    "LeaseStatus",
    "LifecycleIntent",
    "NotificationDispatcher",
    "ProviderStatus",
    "ReminderLedger",
    "SignatureCoordinator",
    "SignatureEvent",
    "SignatureEventKind",
    "SignatureMethod",
    "SignatureProvider",
    "SignatureRound",
    "SignatureState",
    "SqlAlchemyLeaseRepository",
    "SqlAlchemyReminderLedger",
    "TransitionResult",
    "map_provider_status",
    "next_status",
    "resolve_status",
]
