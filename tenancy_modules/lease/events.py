"""
Lifecycle intents (``tenancy_modules.lease.events``).

Plain data handed to the notification dispatcher. Formatting and delivery
are the dispatcher's concern; an intent only says what happened to which
lease and carries the figures.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID


class IntentType(str, Enum):
    SIGNATURE_RECORDED = "signature_recorded"
    LEASE_ACTIVATED = "lease_activated"
    LEASE_TERMINATED = "lease_terminated"
    NOTICE_ISSUED = "notice_issued"
    RENT_REVISED = "rent_revised"
    REVISION_DUE = "revision_due"
    REGULARIZATION_COMPUTED = "regularization_computed"
    DEPOSIT_SETTLEMENT_READY = "deposit_settlement_ready"


@dataclass(frozen=True)
class LifecycleIntent:
    """Something the outside world may want to be told about."""

    intent_type: IntentType
    lease_id: UUID
    occurred_at: datetime
    payload: dict[str, Any] = field(default_factory=dict)
