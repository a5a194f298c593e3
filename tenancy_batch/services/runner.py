"""
RevisionReminderRunner -- One daily pass over the revisable leases.

Contract:
    ``run(today)`` evaluates every lease returned by
    ``LeaseRepository.list_revisable_leases()`` once, claims each due
    reminder in the ``ReminderLedger`` and dispatches a ``revision_due``
    intent.

Invariants enforced:
    - SAVEPOINT per lease: claim and dispatch commit together. A failed
      dispatch rolls the claim back so a rerun can retry it.
    - A claimed dedup key is never dispatched twice.
    - Per-lease failures are logged and recorded, never raised.
    - Does NOT commit; the caller owns the outer transaction.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from tenancy_batch.domain.types import (
    ReminderItemResult,
    ReminderItemStatus,
    ReminderRunResult,
)
from tenancy_engines.revision_anchor import DEFAULT_LEAD_DAYS, RevisionReminder, evaluate
from tenancy_kernel.domain.clock import Clock, SystemClock
from tenancy_kernel.logging_config import LogContext, get_logger
from tenancy_modules.lease.events import IntentType, LifecycleIntent
from tenancy_modules.lease.models import Lease
from tenancy_modules.lease.ports import (
    LeaseRepository,
    NotificationDispatcher,
    ReminderLedger,
)
from tenancy_modules.lease.repository import (
    SqlAlchemyLeaseRepository,
    SqlAlchemyReminderLedger,
)

logger = get_logger("batch.runner")


class RevisionReminderRunner:
    """Evaluates revision anchors for all revisable leases on one day."""

    def __init__(
        self,
        session: Session,
        dispatcher: NotificationDispatcher,
        actor_id: UUID,
        clock: Clock | None = None,
        lead_days: int = DEFAULT_LEAD_DAYS,
        repository: LeaseRepository | None = None,
        ledger: ReminderLedger | None = None,
    ):
        self._session = session
        self._dispatcher = dispatcher
        self._clock = clock or SystemClock()
        self._lead_days = lead_days
        self._repository = repository or SqlAlchemyLeaseRepository(session)
        self._ledger = ledger or SqlAlchemyReminderLedger(session, actor_id)

    def run(self, today: date | None = None) -> ReminderRunResult:
        today = today or self._clock.today()
        leases = self._repository.list_revisable_leases()
        logger.info(
            "reminder_run_started",
            extra={"run_date": today.isoformat(), "lease_count": len(leases)},
        )

        items = tuple(self._process(lease, today) for lease in leases)
        result = ReminderRunResult(run_date=today, items=items)

        logger.info(
            "reminder_run_completed",
            extra={
                "run_date": today.isoformat(),
                "evaluated": result.evaluated,
                "emitted": result.emitted,
                "skipped": result.skipped,
                "failed": result.failed,
            },
        )
        return result

    def _process(self, lease: Lease, today: date) -> ReminderItemResult:
        with LogContext.bind(lease_id=str(lease.id)):
            savepoint = self._session.begin_nested()
            try:
                reminder = evaluate(
                    lease.id,
                    lease.revision_anchor,
                    lease.start_date,
                    today,
                    lead_days=self._lead_days,
                )
                if reminder is None:
                    savepoint.rollback()
                    return ReminderItemResult(lease.id, ReminderItemStatus.NO_REMINDER)

                if not self._ledger.claim(reminder):
                    savepoint.rollback()
                    logger.info(
                        "revision_reminder_duplicate",
                        extra={"dedup_key": reminder.dedup_key},
                    )
                    return ReminderItemResult(
                        lease.id, ReminderItemStatus.SKIPPED_DUPLICATE, reminder,
                    )

                self._dispatcher.dispatch(self._intent(lease, reminder))
                savepoint.commit()
                logger.info(
                    "revision_reminder_emitted",
                    extra={
                        "dedup_key": reminder.dedup_key,
                        "reminder_type": reminder.reminder_type.value,
                    },
                )
                return ReminderItemResult(lease.id, ReminderItemStatus.EMITTED, reminder)

            except Exception as exc:
                savepoint.rollback()
                logger.exception(
                    "revision_reminder_failed",
                    extra={"run_date": today.isoformat()},
                )
                return ReminderItemResult(
                    lease.id,
                    ReminderItemStatus.FAILED,
                    error_code=getattr(exc, "code", "UNHANDLED_EXCEPTION"),
                    error_message=str(exc),
                )

    def _intent(self, lease: Lease, reminder: RevisionReminder) -> LifecycleIntent:
        return LifecycleIntent(
            intent_type=IntentType.REVISION_DUE,
            lease_id=lease.id,
            occurred_at=self._clock.now(),
            payload={
                "anchor_date": reminder.anchor_date.isoformat(),
                "reminder_type": reminder.reminder_type.value,
                "dedup_key": reminder.dedup_key,
                "monthly_rent": str(lease.monthly_rent),
            },
        )
