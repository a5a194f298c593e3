"""
Lease State Machine (``tenancy_modules.lease.state_machine``).

Responsibility
--------------
Decides the lease status after a signature, a provider status update or an
end-of-lease action, and names the lifecycle intents the change produces.

Architecture position
---------------------
**Modules layer** -- pure, ZERO I/O. The transition tables live in
``workflows.py``; signature evidence is built by ``signatures.py``.

Invariants enforced
-------------------
* ``next_status`` is total: it never raises, and unknown values as well as
  terminal states are fixed points.
* ``active`` is reached exactly when both parties are signed and the
  current signature round has no terminal failure. A table step into
  ``active`` without that evidence is held back, and a pre-activation
  lease with that evidence is promoted whatever the table says.
* End-of-lease actions follow ``LEASE_END_WORKFLOW`` and raise
  ``InvalidTransitionError`` otherwise.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime

from tenancy_kernel.domain.parties import PartyRole
from tenancy_kernel.exceptions import InvalidTransitionError
from tenancy_kernel.logging_config import get_logger
from tenancy_modules.lease.events import IntentType, LifecycleIntent
from tenancy_modules.lease.models import (
    PRE_ACTIVATION_STATUSES,
    Lease,
    LeaseStatus,
    ProviderStatus,
    SignatureMethod,
)
from tenancy_modules.lease.signatures import SignatureCoordinator
from tenancy_modules.lease.workflows import (
    EXPIRE,
    LEASE_END_WORKFLOW,
    LEASE_SIGNATURE_WORKFLOW,
    OWNER_SIGNS,
    RENEW,
    TENANT_SIGNS,
    TERMINATE,
)

logger = get_logger("modules.lease.state_machine")

_SIGNER_ACTIONS = {
    PartyRole.OWNER: OWNER_SIGNS,
    PartyRole.TENANT: TENANT_SIGNS,
}


def next_status(current: LeaseStatus | str, signer: PartyRole | str) -> LeaseStatus | str:
    """
    Status after ``signer`` signs a lease in status ``current``.

    Pairs missing from the signature table leave the status unchanged.
    Unrecognised statuses or signers are returned as given.
    """
    try:
        status = LeaseStatus(current)
        action = _SIGNER_ACTIONS[PartyRole(signer)]
    except (ValueError, KeyError):
        return current

    transition = LEASE_SIGNATURE_WORKFLOW.find(status.value, action)
    if transition is None:
        return status
    return LeaseStatus(transition.to_state)


def resolve_status(lease: Lease, signer: PartyRole | None = None) -> LeaseStatus:
    """
    Status of ``lease`` once its current signatures are taken into account.

    ``lease`` already carries the new signature. Without a ``signer`` only
    the activation rule is applied.
    """
    current = lease.status
    computed = next_status(current, signer) if signer is not None else current

    if current in PRE_ACTIVATION_STATUSES and lease.activation_eligible:
        return LeaseStatus.ACTIVE
    if computed is LeaseStatus.ACTIVE and not lease.activation_eligible:
        return current
    return computed


@dataclass(frozen=True)
class TransitionResult:
    """New lease value and the intents to dispatch once it is stored."""

    lease: Lease
    previous_status: LeaseStatus
    intents: tuple[LifecycleIntent, ...] = ()

    @property
    def status_changed(self) -> bool:
        return self.lease.status is not self.previous_status

    @property
    def activated(self) -> bool:
        return self.status_changed and self.lease.status is LeaseStatus.ACTIVE


class LeaseStateMachine:
    """
    Applies lifecycle events to a lease value.

    Contract
    --------
    * Every method returns a ``TransitionResult``; the input lease is left
      untouched.
    * Signature events never raise for status reasons, only for invalid
      evidence (see ``SignatureCoordinator``).

    Non-goals
    ---------
    * Does NOT check who is allowed to trigger an action.
    * Does NOT store or dispatch anything.
    """

    def __init__(self, signatures: SignatureCoordinator | None = None):
        self._signatures = signatures or SignatureCoordinator()

    @property
    def signatures(self) -> SignatureCoordinator:
        return self._signatures

    def apply_signature(
        self,
        lease: Lease,
        party: PartyRole,
        method: SignatureMethod,
        evidence_ref: str | None,
        at: datetime,
    ) -> TransitionResult:
        party = PartyRole(party)
        previous = lease.signature(party)
        state = self._signatures.record_signature(lease, party, method, evidence_ref, at)
        if state is previous:
            return TransitionResult(lease=lease, previous_status=lease.status)

        signed = lease.with_signature(party, state)
        updated = replace(signed, status=resolve_status(signed, party))

        intents = [
            LifecycleIntent(
                intent_type=IntentType.SIGNATURE_RECORDED,
                lease_id=lease.id,
                occurred_at=at,
                payload={
                    "party": party.value,
                    "method": state.method.value,
                    "evidence_ref": state.evidence_ref,
                },
            ),
        ]
        result = self._finish(lease, updated, intents, at)
        logger.info(
            "lease_signature_applied",
            extra={
                "lease_id": str(lease.id),
                "party": party.value,
                "from_status": lease.status.value,
                "to_status": updated.status.value,
            },
        )
        return result

    def apply_provider_status(
        self,
        lease: Lease,
        provider_status: ProviderStatus | str,
        party: PartyRole | None = None,
        *,
        at: datetime,
    ) -> TransitionResult:
        reconciliation = self._signatures.reconcile_provider_status(
            lease, provider_status, party, at=at,
        )
        updated = reconciliation.lease
        for signer in reconciliation.newly_signed:
            updated = replace(updated, status=resolve_status(updated, signer))
        updated = replace(updated, status=resolve_status(updated))

        intents = [
            LifecycleIntent(
                intent_type=IntentType.SIGNATURE_RECORDED,
                lease_id=lease.id,
                occurred_at=at,
                payload={
                    "party": signer.value,
                    "method": SignatureMethod.ELECTRONIC.value,
                    "evidence_ref": updated.signature(signer).evidence_ref,
                },
            )
            for signer in reconciliation.newly_signed
        ]
        return self._finish(lease, updated, intents, at)

    def start_new_round(self, lease: Lease, envelope_id: str, at: datetime) -> TransitionResult:
        """
        Open a signature round on ``envelope_id``.

        A new round clears a terminal failure, so a lease whose parties
        already signed activates here.
        """
        updated = self._signatures.start_new_round(lease, envelope_id, at)
        updated = replace(updated, status=resolve_status(updated))
        return self._finish(lease, updated, [], at)

    def terminate(self, lease: Lease, at: datetime) -> TransitionResult:
        result = self._end(lease, TERMINATE)
        intent = LifecycleIntent(
            intent_type=IntentType.LEASE_TERMINATED,
            lease_id=lease.id,
            occurred_at=at,
            payload={"previous_status": lease.status.value},
        )
        return replace(result, intents=(intent,))

    def expire(self, lease: Lease, at: datetime) -> TransitionResult:
        return self._end(lease, EXPIRE)

    def renew(self, lease: Lease, at: datetime) -> TransitionResult:
        return self._end(lease, RENEW)

    def _end(self, lease: Lease, action: str) -> TransitionResult:
        transition = LEASE_END_WORKFLOW.find(lease.status.value, action)
        if transition is None:
            raise InvalidTransitionError(str(lease.id), lease.status.value, action)

        updated = replace(lease, status=LeaseStatus(transition.to_state))
        logger.info(
            "lease_end_transition",
            extra={
                "lease_id": str(lease.id),
                "action": action,
                "from_status": lease.status.value,
                "to_status": updated.status.value,
            },
        )
        return TransitionResult(lease=updated, previous_status=lease.status)

    def _finish(
        self,
        before: Lease,
        after: Lease,
        intents: list[LifecycleIntent],
        at: datetime,
    ) -> TransitionResult:
        if before.status is not LeaseStatus.ACTIVE and after.status is LeaseStatus.ACTIVE:
            intents.append(
                LifecycleIntent(
                    intent_type=IntentType.LEASE_ACTIVATED,
                    lease_id=after.id,
                    occurred_at=at,
                    payload={"signature_round": after.signature_round.number},
                ),
            )
            logger.info(
                "lease_activated",
                extra={"lease_id": str(after.id), "from_status": before.status.value},
            )
        return TransitionResult(
            lease=after,
            previous_status=before.status,
            intents=tuple(intents),
        )
