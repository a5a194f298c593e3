"""
Lease Lifecycle Service (``tenancy_modules.lease.service``).

Responsibility
--------------
Entry point for everything that happens to a lease: creation, signature
method choice, manual and electronic signatures, provider status updates,
notices, rent revisions, charge regularizations, deposit settlement and
the end-of-lease transitions. Pure computation is delegated to
``tenancy_engines`` and to the state machine; persistence to a
``LeaseRepository``; delivery of intents to a ``NotificationDispatcher``.

Architecture position
---------------------
**Modules layer** -- imperative shell around the pure core.

Invariants enforced
-------------------
* Each public method owns its transaction: commit on success, rollback on
  any exception.
* Lease writes are optimistic. On ``PersistenceConflictError`` the lease
  is reloaded and the operation re-applied, up to
  ``LeaseConfig.max_conflict_retries`` attempts in total.
* Intents are dispatched only after the commit. A dispatcher failure is
  logged and never undoes the stored change.
* "Today" comes from the injected ``Clock``.

Failure modes
-------------
* Calculator and signature errors propagate unchanged; nothing is stored.
* ``PersistenceConflictError`` once the retries are exhausted.
* ``LeaseNotFoundError`` for an unknown lease id.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Any, Generator
from uuid import UUID

from sqlalchemy.orm import Session

from tenancy_engines.deposit import (
    DepositSettlement,
    RetentionLine,
    compute_settlement,
    compute_settlement_from_lines,
)
from tenancy_engines.notice import Notice, issue_notice
from tenancy_engines.regularization import (
    ChargeLine,
    ChargeRegularization,
    compute_regularization,
)
from tenancy_engines.rent_revision import (
    RevisionRecord,
    build_revision_record,
    check_legal_compliance,
)
from tenancy_engines.revision_anchor import RevisionAnchor
from tenancy_kernel.domain.clock import Clock, SystemClock
from tenancy_kernel.domain.parties import PartyRole
from tenancy_kernel.exceptions import PersistenceConflictError
from tenancy_kernel.logging_config import LogContext, get_logger
from tenancy_modules.lease.config import LeaseConfig
from tenancy_modules.lease.events import IntentType, LifecycleIntent
from tenancy_modules.lease.models import (
    Lease,
    ProviderStatus,
    SignatureMethod,
)
from tenancy_modules.lease.ports import (
    EnvelopeSigner,
    LeaseRepository,
    NotificationDispatcher,
    SignatureProvider,
)
from tenancy_modules.lease.repository import SqlAlchemyLeaseRepository
from tenancy_modules.lease.state_machine import LeaseStateMachine, TransitionResult

logger = get_logger("modules.lease.service")


@dataclass(frozen=True)
class _Outcome:
    value: Any
    intents: tuple[LifecycleIntent, ...] = ()


class LeaseLifecycleService:
    """
    Orchestrates the lease lifecycle through the engines and the repository.

    Contract
    --------
    * Lease-changing methods return a ``TransitionResult`` whose lease
      carries the stored version.
    * Record-producing methods (notice, revision, regularization,
      settlement) return the stored record.

    Non-goals
    ---------
    * Does NOT decide whether an actor may trigger an action.
    * Does NOT render or store documents; only references are kept.
    * Does NOT retry notification delivery.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        config: LeaseConfig | None = None,
        dispatcher: NotificationDispatcher | None = None,
        signature_provider: SignatureProvider | None = None,
        state_machine: LeaseStateMachine | None = None,
        repository_factory: Callable[[Session], LeaseRepository] = SqlAlchemyLeaseRepository,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._config = config or LeaseConfig.with_defaults()
        self._dispatcher = dispatcher
        self._provider = signature_provider
        self._machine = state_machine or LeaseStateMachine()
        self._repository_factory = repository_factory

    # =========================================================================
    # Transaction plumbing
    # =========================================================================

    @contextmanager
    def _transaction(self) -> Generator[LeaseRepository, None, None]:
        session = self._session_factory()
        try:
            yield self._repository_factory(session)
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _run(
        self,
        operation: str,
        lease_id: UUID | None,
        actor_id: UUID,
        work: Callable[[LeaseRepository], _Outcome],
    ) -> Any:
        attempts = self._config.max_conflict_retries
        with LogContext.bind(
            lease_id=str(lease_id) if lease_id else None,
            actor_id=str(actor_id),
        ):
            for attempt in range(1, attempts + 1):
                try:
                    with self._transaction() as repository:
                        outcome = work(repository)
                    break
                except PersistenceConflictError:
                    if attempt >= attempts:
                        logger.error(
                            "lease_conflict_retries_exhausted",
                            extra={"operation": operation, "attempts": attempt},
                        )
                        raise
                    logger.warning(
                        "lease_conflict_retry",
                        extra={"operation": operation, "attempt": attempt},
                    )

            logger.info("lease_operation_committed", extra={"operation": operation})
            self._dispatch(outcome.intents)
        return outcome.value

    def _dispatch(self, intents: Iterable[LifecycleIntent]) -> None:
        if self._dispatcher is None:
            return
        for intent in intents:
            try:
                self._dispatcher.dispatch(intent)
            except Exception:
                logger.exception(
                    "intent_dispatch_failed",
                    extra={"intent_type": intent.intent_type.value},
                )

    def _transition(
        self,
        operation: str,
        lease_id: UUID,
        actor_id: UUID,
        apply: Callable[[Lease], TransitionResult],
    ) -> TransitionResult:
        def work(repository: LeaseRepository) -> _Outcome:
            result = apply(repository.get(lease_id))
            stored = repository.save(result.lease, actor_id)
            return _Outcome(replace(result, lease=stored), result.intents)

        return self._run(operation, lease_id, actor_id, work)

    def _intent(
        self, intent_type: IntentType, lease_id: UUID, payload: dict[str, Any],
    ) -> LifecycleIntent:
        return LifecycleIntent(
            intent_type=intent_type,
            lease_id=lease_id,
            occurred_at=self._clock.now(),
            payload=payload,
        )

    # =========================================================================
    # Lease
    # =========================================================================

    def create_lease(
        self,
        owner_id: UUID,
        tenant_id: UUID,
        property_id: UUID,
        start_date: date,
        monthly_rent: Decimal | int | str,
        signature_method: SignatureMethod,
        actor_id: UUID,
        end_date: date | None = None,
        charges_provision: Decimal | int | str = Decimal("0"),
        deposit_amount: Decimal | int | str = Decimal("0"),
        revision_anchor: RevisionAnchor | None = None,
    ) -> Lease:
        """Create a draft lease. The revision anchor defaults to the start date."""
        lease = Lease(
            owner_id=owner_id,
            tenant_id=tenant_id,
            property_id=property_id,
            start_date=start_date,
            end_date=end_date,
            monthly_rent=monthly_rent,
            charges_provision=charges_provision,
            deposit_amount=deposit_amount,
            signature_method=signature_method,
            revision_anchor=revision_anchor or RevisionAnchor.from_date(start_date),
        )
        return self._run(
            "create_lease", lease.id, actor_id,
            lambda repository: _Outcome(repository.add(lease, actor_id)),
        )

    def get_lease(self, lease_id: UUID) -> Lease:
        with self._transaction() as repository:
            return repository.get(lease_id)

    def available_actions(self, lease_id: UUID, party: PartyRole) -> tuple[str, ...]:
        return self._machine.signatures.available_actions(self.get_lease(lease_id), party)

    # =========================================================================
    # Signatures
    # =========================================================================

    def choose_signature_method(
        self,
        lease_id: UUID,
        party: PartyRole,
        method: SignatureMethod,
        actor_id: UUID,
    ) -> TransitionResult:
        at = self._clock.now()

        def apply(lease: Lease) -> TransitionResult:
            updated = self._machine.signatures.choose_method(lease, party, method, at)
            return TransitionResult(lease=updated, previous_status=lease.status)

        return self._transition("choose_signature_method", lease_id, actor_id, apply)

    def sign(
        self,
        lease_id: UUID,
        party: PartyRole,
        method: SignatureMethod,
        actor_id: UUID,
        evidence_ref: str | None = None,
    ) -> TransitionResult:
        """
        Record a signature by ``party``.

        Manual methods pass the reference of the uploaded signed document;
        electronic signatures default to the current envelope id.
        """
        at = self._clock.now()
        return self._transition(
            "sign", lease_id, actor_id,
            lambda lease: self._machine.apply_signature(lease, party, method, evidence_ref, at),
        )

    def send_for_electronic_signature(
        self,
        lease_id: UUID,
        document: bytes,
        actor_id: UUID,
    ) -> TransitionResult:
        """
        Create a provider envelope for the lease and open a signature round.

        Raises:
            RuntimeError: If the service has no signature provider.
        """
        provider = self._require_provider()
        lease = self.get_lease(lease_id)
        signers = [
            EnvelopeSigner(role=PartyRole.OWNER, party_id=lease.owner_id),
            EnvelopeSigner(role=PartyRole.TENANT, party_id=lease.tenant_id),
        ]
        envelope_id = provider.create_envelope(document, signers)
        logger.info(
            "signature_envelope_created",
            extra={"lease_id": str(lease_id), "envelope_id": envelope_id},
        )

        at = self._clock.now()

        return self._transition(
            "send_for_electronic_signature", lease_id, actor_id,
            lambda current: self._machine.start_new_round(current, envelope_id, at),
        )

    def record_provider_status(
        self,
        lease_id: UUID,
        provider_status: ProviderStatus | str,
        actor_id: UUID,
        party: PartyRole | None = None,
    ) -> TransitionResult:
        """Apply a status pushed by the provider (webhook)."""
        at = self._clock.now()
        return self._transition(
            "record_provider_status", lease_id, actor_id,
            lambda lease: self._machine.apply_provider_status(
                lease, provider_status, party, at=at,
            ),
        )

    def sync_envelope(
        self,
        lease_id: UUID,
        actor_id: UUID,
        party: PartyRole | None = None,
    ) -> TransitionResult:
        """Poll the provider for the current envelope status and apply it."""
        provider = self._require_provider()
        lease = self.get_lease(lease_id)
        envelope_id = lease.signature_round.envelope_id
        if envelope_id is None:
            raise ValueError(f"Lease {lease_id} has no signature envelope")
        return self.record_provider_status(
            lease_id, provider.get_status(envelope_id), actor_id, party=party,
        )

    def download_signed_document(self, lease_id: UUID) -> bytes:
        provider = self._require_provider()
        envelope_id = self.get_lease(lease_id).signature_round.envelope_id
        if envelope_id is None:
            raise ValueError(f"Lease {lease_id} has no signature envelope")
        return provider.download_signed(envelope_id)

    def _require_provider(self) -> SignatureProvider:
        if self._provider is None:
            raise RuntimeError("No signature provider configured")
        return self._provider

    # =========================================================================
    # End of lease
    # =========================================================================

    def terminate_lease(self, lease_id: UUID, actor_id: UUID) -> TransitionResult:
        at = self._clock.now()
        return self._transition(
            "terminate_lease", lease_id, actor_id,
            lambda lease: self._machine.terminate(lease, at),
        )

    def expire_lease(self, lease_id: UUID, actor_id: UUID) -> TransitionResult:
        at = self._clock.now()
        return self._transition(
            "expire_lease", lease_id, actor_id,
            lambda lease: self._machine.expire(lease, at),
        )

    def renew_lease(self, lease_id: UUID, actor_id: UUID) -> TransitionResult:
        at = self._clock.now()
        return self._transition(
            "renew_lease", lease_id, actor_id,
            lambda lease: self._machine.renew(lease, at),
        )

    # =========================================================================
    # Notice
    # =========================================================================

    def issue_notice(
        self,
        lease_id: UUID,
        notice_date: date,
        notice_period_months: int,
        issued_by: PartyRole,
        actor_id: UUID,
        desired_move_out: date | None = None,
        supersedes_id: UUID | None = None,
    ) -> Notice:
        today = self._clock.today()

        def work(repository: LeaseRepository) -> _Outcome:
            repository.get(lease_id)
            notice = issue_notice(
                lease_id,
                notice_date,
                notice_period_months,
                issued_by,
                today,
                desired_move_out=desired_move_out,
                supersedes_id=supersedes_id,
            )
            repository.add_notice(notice, actor_id)
            intent = self._intent(
                IntentType.NOTICE_ISSUED,
                lease_id,
                {
                    "notice_id": str(notice.id),
                    "issued_by": notice.issued_by.value,
                    "notice_date": notice.notice_date.isoformat(),
                    "move_out_date": notice.move_out_date.isoformat(),
                },
            )
            return _Outcome(notice, (intent,))

        return self._run("issue_notice", lease_id, actor_id, work)

    # =========================================================================
    # Rent revision
    # =========================================================================

    def revise_rent(
        self,
        lease_id: UUID,
        revision_year: int,
        irl_quarter: str,
        reference_irl: Decimal | int | str,
        new_irl: Decimal | int | str,
        actor_id: UUID,
        rent_controlled_zone: bool = False,
    ) -> RevisionRecord:
        """
        Index the rent for ``revision_year`` and update the lease rent.

        A second revision for the same year is a correction: it starts from
        the rent the corrected record started from and supersedes it.
        The increase is checked against the configured cap; a revision
        above it is stored and flagged in the ``rent_revised`` intent.
        """

        def work(repository: LeaseRepository) -> _Outcome:
            lease = repository.get(lease_id)
            previous = repository.current_revision(lease_id, revision_year)
            old_rent = previous.old_rent_amount if previous else lease.monthly_rent

            record = build_revision_record(
                lease_id,
                revision_year,
                irl_quarter,
                old_rent,
                reference_irl,
                new_irl,
                supersedes_id=previous.id if previous else None,
            )
            compliance = check_legal_compliance(
                record.increase_percentage,
                rent_controlled_zone=rent_controlled_zone,
                max_increase=self._config.max_rent_increase_percentage,
                rent_controlled_max_increase=self._config.rent_controlled_max_increase_percentage,
            )
            stored = repository.add_revision(record, actor_id)
            repository.save(replace(lease, monthly_rent=record.new_rent_amount), actor_id)

            intent = self._intent(
                IntentType.RENT_REVISED,
                lease_id,
                {
                    "revision_year": revision_year,
                    "irl_quarter": irl_quarter,
                    "old_rent_amount": str(record.old_rent_amount),
                    "new_rent_amount": str(record.new_rent_amount),
                    "increase_percentage": str(record.increase_percentage),
                    "is_compliant": compliance.is_compliant,
                    "max_allowed_increase": str(compliance.max_allowed_increase),
                    "compliance_warnings": list(compliance.warnings),
                },
            )
            return _Outcome(stored, (intent,))

        return self._run("revise_rent", lease_id, actor_id, work)

    # =========================================================================
    # Charge regularization
    # =========================================================================

    def regularize_charges(
        self,
        lease_id: UUID,
        year: int,
        provisions_collected: Decimal | int | str,
        lines: Sequence[ChargeLine],
        actor_id: UUID,
    ) -> ChargeRegularization:
        def work(repository: LeaseRepository) -> _Outcome:
            lease = repository.get(lease_id)
            regularization = compute_regularization(
                lease_id,
                year,
                lease.start_date,
                lease.end_date,
                provisions_collected,
                lines,
            )
            repository.add_regularization(regularization, actor_id)
            intent = self._intent(
                IntentType.REGULARIZATION_COMPUTED,
                lease_id,
                {
                    "year": year,
                    "tenant_balance": str(regularization.tenant_balance),
                    "balance_type": regularization.balance_type.value,
                },
            )
            return _Outcome(regularization, (intent,))

        return self._run("regularize_charges", lease_id, actor_id, work)

    # =========================================================================
    # Deposit
    # =========================================================================

    def settle_deposit(
        self,
        lease_id: UUID,
        actor_id: UUID,
        retained_amount: Decimal | int | str = Decimal("0"),
        retained_reasons: Sequence[str] = (),
        lines: Sequence[RetentionLine] | None = None,
        move_out_date: date | None = None,
    ) -> DepositSettlement:
        """
        Settle the lease deposit.

        With ``lines`` the retention is itemized and the provisional-charges
        cap applies; otherwise ``retained_amount`` is used as given. The
        move-out date defaults to the latest notice, then to the lease end
        date. A later settlement supersedes the previous one.
        """

        def work(repository: LeaseRepository) -> _Outcome:
            lease = repository.get(lease_id)
            move_out = move_out_date or self._default_move_out(repository, lease)
            previous = repository.latest_settlement(lease_id)
            supersedes_id = previous.id if previous else None

            if lines is not None:
                settlement = compute_settlement_from_lines(
                    lease_id,
                    lease.deposit_amount,
                    lines,
                    move_out,
                    restitution_deadline_days=self._config.restitution_deadline_days,
                    provisional_ratio=self._config.provisional_retention_ratio,
                    supersedes_id=supersedes_id,
                )
            else:
                settlement = compute_settlement(
                    lease_id,
                    lease.deposit_amount,
                    retained_amount,
                    retained_reasons,
                    move_out,
                    restitution_deadline_days=self._config.restitution_deadline_days,
                    supersedes_id=supersedes_id,
                )
            repository.add_settlement(settlement, actor_id)

            intent = self._intent(
                IntentType.DEPOSIT_SETTLEMENT_READY,
                lease_id,
                {
                    "refund_amount": str(settlement.refund_amount),
                    "retained_amount": str(settlement.retained_amount),
                    "deadline_date": settlement.deadline_date.isoformat(),
                },
            )
            return _Outcome(settlement, (intent,))

        return self._run("settle_deposit", lease_id, actor_id, work)

    def _default_move_out(self, repository: LeaseRepository, lease: Lease) -> date:
        notice = repository.latest_notice(lease.id)
        if notice is not None:
            return notice.move_out_date
        if lease.end_date is not None:
            return lease.end_date
        raise ValueError(f"Lease {lease.id} has no notice or end date; pass move_out_date")
