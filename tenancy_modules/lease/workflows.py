"""Lease Workflows.

Transition tables of the lease lifecycle, declared as data.

* ``LEASE_SIGNATURE_WORKFLOW``: how a signature by the owner or the tenant
  moves a lease towards ``active``. Pairs absent from the table are no-ops.
* ``LEASE_END_WORKFLOW``: what can happen to a lease once it runs.
"""

from tenancy_kernel.domain.workflow import Guard, Transition, Workflow
from tenancy_kernel.logging_config import get_logger

logger = get_logger("modules.lease.workflows")

OWNER_SIGNS = "owner_signs"
TENANT_SIGNS = "tenant_signs"

TERMINATE = "terminate"
EXPIRE = "expire"
RENEW = "renew"

BOTH_PARTIES_SIGNED = Guard(
    "both_parties_signed",
    "Owner and tenant signatures recorded and the signature round not failed",
)

_ALL_STATES = (
    "draft",
    "sent_to_tenant",
    "signed_by_tenant",
    "signed_by_owner",
    "active",
    "expired",
    "terminated",
    "renewed",
)


LEASE_SIGNATURE_WORKFLOW = Workflow(
    name="lease_signature",
    description="Signature path from draft to active",
    initial_state="draft",
    states=_ALL_STATES,
    transitions=(
        Transition("draft", "signed_by_owner", action=OWNER_SIGNS),
        Transition("draft", "sent_to_tenant", action=TENANT_SIGNS),
        Transition("sent_to_tenant", "signed_by_tenant", action=TENANT_SIGNS),
        Transition("signed_by_tenant", "active", action=OWNER_SIGNS, guard=BOTH_PARTIES_SIGNED),
        Transition("signed_by_owner", "active", action=TENANT_SIGNS, guard=BOTH_PARTIES_SIGNED),
    ),
    terminal_states=("active", "expired", "terminated", "renewed"),
)


LEASE_END_WORKFLOW = Workflow(
    name="lease_end",
    description="Running lease to its end",
    initial_state="active",
    states=_ALL_STATES,
    transitions=(
        Transition("active", "terminated", action=TERMINATE),
        Transition("active", "expired", action=EXPIRE),
        Transition("active", "renewed", action=RENEW),
        Transition("expired", "renewed", action=RENEW),
    ),
    terminal_states=("terminated", "renewed"),
)

logger.info(
    "lease_workflows_registered",
    extra={
        "workflows": [LEASE_SIGNATURE_WORKFLOW.name, LEASE_END_WORKFLOW.name],
        "transition_count": len(LEASE_SIGNATURE_WORKFLOW.transitions)
        + len(LEASE_END_WORKFLOW.transitions),
    },
)
