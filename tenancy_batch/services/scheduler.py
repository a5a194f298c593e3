"""
ReminderScheduler -- In-process daily driver for the reminder runner.

Contract:
    Wakes up every ``tick_interval_seconds`` and, once per calendar day of
    the injected Clock, runs ``RevisionReminderRunner`` in its own
    transaction.

Invariants enforced:
    - All dates from the injected Clock.
    - At most one complete run per day per scheduler; a run with failed
      leases is repeated on the next tick; the ledger's dedup keys make
      any extra run (restart, second instance) a no-op.
    - Graceful shutdown: ``stop()`` lets the current tick finish.
"""

from __future__ import annotations

import threading
from datetime import date
from typing import Callable
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from tenancy_batch.domain.types import ReminderRunResult
from tenancy_batch.services.runner import RevisionReminderRunner
from tenancy_kernel.domain.clock import Clock, SystemClock
from tenancy_kernel.logging_config import LogContext, get_logger
from tenancy_modules.lease.config import LeaseConfig
from tenancy_modules.lease.ports import NotificationDispatcher

logger = get_logger("batch.scheduler")


class ReminderScheduler:
    """Daily background scheduler for revision reminders.

    Contract:
        - ``tick()`` runs the reminders if today has not been run yet.
        - ``start()`` / ``stop()`` for background thread operation.

    Non-goals:
        - NOT a distributed scheduler (no leader election).
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        dispatcher: NotificationDispatcher,
        clock: Clock | None = None,
        config: LeaseConfig | None = None,
        actor_id: UUID | None = None,
    ):
        self._session_factory = session_factory
        self._dispatcher = dispatcher
        self._clock = clock or SystemClock()
        self._config = config or LeaseConfig.with_defaults()
        self._actor_id = actor_id or uuid4()
        self._tick_interval = self._config.reminder_tick_interval_seconds
        self._last_run_date: date | None = None
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    @property
    def last_run_date(self) -> date | None:
        return self._last_run_date

    def tick(self) -> ReminderRunResult | None:
        """Run today's reminders if not done yet (public for testing).

        A day with failed leases stays open so the next tick retries them.
        Returns the run result, or None when today was already run or the
        run raised.
        """
        today = self._clock.today()
        if self._last_run_date == today:
            return None

        session = self._session_factory()
        try:
            with LogContext.bind(job_id=f"revision-reminders-{today.isoformat()}"):
                runner = RevisionReminderRunner(
                    session,
                    self._dispatcher,
                    self._actor_id,
                    clock=self._clock,
                    lead_days=self._config.revision_reminder_lead_days,
                )
                result = runner.run(today)
            session.commit()
            if result.failed == 0:
                self._last_run_date = today
            else:
                logger.warning(
                    "scheduler_day_left_open",
                    extra={"run_date": today.isoformat(), "failed": result.failed},
                )
            return result
        except Exception:
            session.rollback()
            logger.exception("scheduler_tick_failed", extra={"run_date": today.isoformat()})
            return None
        finally:
            session.close()

    def start(self) -> None:
        """Start the scheduler in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="revision-reminder-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info("scheduler_started", extra={"tick_interval": self._tick_interval})

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the scheduler to finish.

        Args:
            timeout: Max seconds to wait for the thread to finish.
        """
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("scheduler_stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        """Background polling loop. Exits when stop_event is set."""
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("scheduler_tick_exception")
            self._stop_event.wait(timeout=self._tick_interval)
