"""
Signature Coordinator (``tenancy_modules.lease.signatures``).

Responsibility
--------------
Records per-party signature evidence for the three signature methods and
reconciles the status reported by the e-signature provider. It is the only
code that builds new ``SignatureState`` values.

Architecture position
---------------------
**Modules layer** -- pure functions over the lease aggregate, ZERO I/O.
The provider itself sits behind ``ports.SignatureProvider``; this module
only consumes its status vocabulary.

Invariants enforced
-------------------
* Signature history is append-only; nothing is removed or rewritten.
* A second signature by the same party is an idempotent no-op.
* Each party signs with its effective method: its own choice if it made
  one, otherwise the lease default. Parties may therefore mix methods.
* A declined or voided envelope blocks activation until a new round
  starts. The lease status is never rolled back.

Failure modes
-------------
* ``MethodMismatchError`` -- method differs from the effective method.
* ``MissingEvidenceError`` -- no document / envelope reference supplied.
* ``SignatureAlreadyRecordedError`` -- method change after signing.
* ``SignatureRoundFailedError`` -- electronic signature on a failed round.
* ``UnknownProviderStatusError`` -- status outside the vocabulary.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime

from tenancy_kernel.domain.parties import PartyRole
from tenancy_kernel.exceptions import (
    MethodMismatchError,
    MissingEvidenceError,
    SignatureAlreadyRecordedError,
    SignatureRoundFailedError,
    UnknownProviderStatusError,
)
from tenancy_kernel.logging_config import get_logger
from tenancy_modules.lease.models import (
    PRE_ACTIVATION_STATUSES,
    Lease,
    ProviderStatus,
    SignatureEvent,
    SignatureEventKind,
    SignatureMethod,
    SignatureRound,
    SignatureState,
)

logger = get_logger("modules.lease.signatures")

INITIATE_SIGNATURE = "initiate_signature"
SIGN_ELECTRONICALLY = "sign_electronically"
DOWNLOAD_DOCUMENT = "download_document"
UPLOAD_SIGNED_DOCUMENT = "upload_signed_document"
DOWNLOAD_SIGNED_DOCUMENT = "download_signed_document"


@dataclass(frozen=True)
class ProviderOutcome:
    """Internal meaning of a provider status."""

    status: ProviderStatus
    signed: bool
    terminal_failure: bool
    all_parties: bool = False


_PROVIDER_OUTCOMES: dict[ProviderStatus, ProviderOutcome] = {
    ProviderStatus.SENT: ProviderOutcome(ProviderStatus.SENT, signed=False, terminal_failure=False),
    ProviderStatus.DELIVERED: ProviderOutcome(ProviderStatus.DELIVERED, signed=False, terminal_failure=False),
    ProviderStatus.SIGNED: ProviderOutcome(ProviderStatus.SIGNED, signed=True, terminal_failure=False),
    ProviderStatus.COMPLETED: ProviderOutcome(
        ProviderStatus.COMPLETED, signed=True, terminal_failure=False, all_parties=True,
    ),
    ProviderStatus.DECLINED: ProviderOutcome(ProviderStatus.DECLINED, signed=False, terminal_failure=True),
    ProviderStatus.VOIDED: ProviderOutcome(ProviderStatus.VOIDED, signed=False, terminal_failure=True),
}


@dataclass(frozen=True)
class Reconciliation:
    """Lease after a provider status was applied, and who became signed."""

    lease: Lease
    outcome: ProviderOutcome
    newly_signed: tuple[PartyRole, ...] = ()


def map_provider_status(provider_status: ProviderStatus | str) -> ProviderOutcome:
    """
    Translate provider vocabulary into signed / terminal-failure flags.

    Raises:
        UnknownProviderStatusError: For a status outside the vocabulary.
    """
    try:
        status = ProviderStatus(provider_status)
    except ValueError:
        raise UnknownProviderStatusError(str(provider_status)) from None
    return _PROVIDER_OUTCOMES[status]


class SignatureCoordinator:
    """
    Builds signature states for a lease.

    Contract
    --------
    * Every method takes a lease and returns new values; the input lease is
      never mutated.
    * Timestamps are supplied by the caller.

    Non-goals
    ---------
    * Does NOT decide the lease status (see ``state_machine``).
    * Does NOT talk to the provider or store anything.
    """

    def effective_method(self, lease: Lease, party: PartyRole) -> SignatureMethod:
        return lease.signature(party).method or lease.signature_method

    def choose_method(
        self,
        lease: Lease,
        party: PartyRole,
        method: SignatureMethod,
        at: datetime,
    ) -> Lease:
        """
        Let a party pick its own signature method before it signs.

        Raises:
            SignatureAlreadyRecordedError: If the party already signed.
        """
        party = PartyRole(party)
        method = SignatureMethod(method)
        state = lease.signature(party)
        if state.signed:
            raise SignatureAlreadyRecordedError(str(lease.id), party.value)

        event = SignatureEvent(
            kind=SignatureEventKind.METHOD_CHOSEN,
            occurred_at=at,
            round_number=lease.signature_round.number,
            method=method,
        )
        logger.info(
            "signature_method_chosen",
            extra={"lease_id": str(lease.id), "party": party.value, "method": method.value},
        )
        return lease.with_signature(party, state.append(event, method=method))

    def record_signature(
        self,
        lease: Lease,
        party: PartyRole,
        method: SignatureMethod,
        evidence_ref: str | None,
        at: datetime,
    ) -> SignatureState:
        """
        Record that ``party`` signed.

        Electronic signatures take the envelope id as evidence, defaulting
        to the current round's envelope. Manual signatures need the
        reference of the uploaded signed document.

        Returns:
            The new state, or the existing one when the party already signed.

        Raises:
            MethodMismatchError: If ``method`` is not the effective method.
            MissingEvidenceError: If no evidence reference is available.
            SignatureRoundFailedError: If an electronic signature targets a
                declined or voided round.
        """
        party = PartyRole(party)
        method = SignatureMethod(method)
        state = lease.signature(party)

        if state.signed:
            logger.info(
                "signature_already_recorded",
                extra={"lease_id": str(lease.id), "party": party.value},
            )
            return state

        expected = self.effective_method(lease, party)
        if method is not expected:
            raise MethodMismatchError(str(lease.id), party.value, expected.value, method.value)

        if method is SignatureMethod.ELECTRONIC:
            if lease.signature_round.terminal_failure:
                raise SignatureRoundFailedError(
                    str(lease.id), party.value, lease.signature_round.number,
                )
            evidence_ref = evidence_ref or lease.signature_round.envelope_id
        if not evidence_ref:
            raise MissingEvidenceError(str(lease.id), party.value, method.value)

        event = SignatureEvent(
            kind=SignatureEventKind.SIGNED,
            occurred_at=at,
            round_number=lease.signature_round.number,
            method=method,
            evidence_ref=evidence_ref,
        )
        logger.info(
            "signature_recorded",
            extra={
                "lease_id": str(lease.id),
                "party": party.value,
                "method": method.value,
                "round_number": lease.signature_round.number,
            },
        )
        return state.append(
            event, signed=True, signed_at=at, evidence_ref=evidence_ref, method=method,
        )

    def reconcile_provider_status(
        self,
        lease: Lease,
        provider_status: ProviderStatus | str,
        party: PartyRole | None = None,
        *,
        at: datetime,
    ) -> Reconciliation:
        """
        Apply an envelope status reported by the provider.

        ``signed`` marks ``party`` (ignored without one); ``completed`` marks
        every unsigned electronic party; ``declined`` and ``voided`` flag the
        round as failed. Every call is appended to the history of the
        parties it concerns.

        Raises:
            UnknownProviderStatusError: For a status outside the vocabulary.
        """
        outcome = map_provider_status(provider_status)
        round_ = lease.signature_round

        if outcome.all_parties:
            targets = tuple(PartyRole)
        elif party is not None:
            targets = (PartyRole(party),)
        else:
            targets = ()

        newly_signed: list[PartyRole] = []
        for target in targets:
            if self.effective_method(lease, target) is not SignatureMethod.ELECTRONIC:
                continue
            state = lease.signature(target)
            event = SignatureEvent(
                kind=SignatureEventKind.PROVIDER_STATUS,
                occurred_at=at,
                round_number=round_.number,
                method=SignatureMethod.ELECTRONIC,
                evidence_ref=round_.envelope_id,
                provider_status=outcome.status,
            )
            if outcome.signed and not state.signed and not round_.terminal_failure:
                state = state.append(
                    event,
                    signed=True,
                    signed_at=at,
                    evidence_ref=round_.envelope_id,
                    method=SignatureMethod.ELECTRONIC,
                )
                newly_signed.append(target)
            else:
                state = state.append(event)
            lease = lease.with_signature(target, state)

        if round_.terminal_failure:
            # A failed round stays failed until a new envelope is issued.
            new_round = replace(round_, provider_status=outcome.status)
        else:
            new_round = replace(
                round_,
                provider_status=outcome.status,
                terminal_failure=outcome.terminal_failure,
            )
        lease = replace(lease, signature_round=new_round)

        logger.info(
            "provider_status_reconciled",
            extra={
                "lease_id": str(lease.id),
                "provider_status": outcome.status.value,
                "envelope_id": round_.envelope_id,
                "terminal_failure": new_round.terminal_failure,
                "newly_signed": [p.value for p in newly_signed],
            },
        )
        return Reconciliation(lease=lease, outcome=outcome, newly_signed=tuple(newly_signed))

    def start_new_round(self, lease: Lease, envelope_id: str, at: datetime) -> Lease:
        """
        Open a signature round on a new envelope.

        The first envelope of a lease reuses round 1; any later envelope
        starts the next round and clears a terminal failure.
        """
        current = lease.signature_round
        if current.envelope_id is None and not current.terminal_failure:
            new_round = replace(current, envelope_id=envelope_id)
        else:
            new_round = SignatureRound(number=current.number + 1, envelope_id=envelope_id)

        event = SignatureEvent(
            kind=SignatureEventKind.ROUND_STARTED,
            occurred_at=at,
            round_number=new_round.number,
            method=SignatureMethod.ELECTRONIC,
            evidence_ref=envelope_id,
        )
        for party in PartyRole:
            lease = lease.with_signature(party, lease.signature(party).append(event))

        logger.info(
            "signature_round_started",
            extra={
                "lease_id": str(lease.id),
                "round_number": new_round.number,
                "envelope_id": envelope_id,
            },
        )
        return replace(lease, signature_round=new_round)

    def is_complete(self, lease: Lease) -> bool:
        """Both parties signed, whatever their methods, and the round holds."""
        return lease.activation_eligible

    def available_actions(self, lease: Lease, party: PartyRole) -> tuple[str, ...]:
        """Signature actions open to ``party`` on ``lease``."""
        party = PartyRole(party)
        if lease.both_signed:
            return (DOWNLOAD_SIGNED_DOCUMENT,)
        if lease.status not in PRE_ACTIVATION_STATUSES:
            return ()

        state = lease.signature(party)
        method = self.effective_method(lease, party)
        round_ = lease.signature_round

        if method is SignatureMethod.ELECTRONIC:
            needs_envelope = round_.envelope_id is None or round_.terminal_failure
            if needs_envelope:
                return (INITIATE_SIGNATURE,) if party is PartyRole.OWNER else ()
            return () if state.signed else (SIGN_ELECTRONICALLY,)

        if state.signed:
            return ()
        return (DOWNLOAD_DOCUMENT, UPLOAD_SIGNED_DOCUMENT)
