"""
Tests for tenancy_batch.services.scheduler -- ReminderScheduler.

Validates tick() once-per-day behaviour, the committed reminder ledger,
and the start/stop lifecycle.
"""

from datetime import date

import pytest

from tenancy_batch.services.scheduler import ReminderScheduler
from tenancy_engines.revision_anchor import RevisionAnchor
from tenancy_modules.lease.config import LeaseConfig
from tenancy_modules.lease.events import IntentType
from tenancy_modules.lease.models import LeaseStatus
from tenancy_modules.lease.repository import SqlAlchemyLeaseRepository
from tests.conftest import TEST_ACTOR_ID, RecordingDispatcher, make_lease


@pytest.fixture
def due_lease(session_factory):
    session = session_factory()
    try:
        lease = SqlAlchemyLeaseRepository(session).add(
            make_lease(
                status=LeaseStatus.ACTIVE,
                start_date=date(2022, 5, 10),
                revision_anchor=RevisionAnchor(3, 1),
            ),
            TEST_ACTOR_ID,
        )
        session.commit()
    finally:
        session.close()
    return lease


class TestReminderScheduler:

    def test_tick_runs_once_per_day(self, session_factory, clock, dispatcher, due_lease):
        scheduler = ReminderScheduler(session_factory, dispatcher, clock=clock, actor_id=TEST_ACTOR_ID)

        result = scheduler.tick()
        assert result.emitted == 1
        assert scheduler.last_run_date == date(2024, 3, 1)

        assert scheduler.tick() is None
        assert len(dispatcher.of_type(IntentType.REVISION_DUE)) == 1

    def test_next_day_runs_again(self, session_factory, clock, dispatcher, due_lease):
        scheduler = ReminderScheduler(session_factory, dispatcher, clock=clock)
        scheduler.tick()

        clock.advance_days(1)
        result = scheduler.tick()
        assert result.run_date == date(2024, 3, 2)
        assert result.evaluated == 1
        assert result.emitted == 0

    def test_restarted_scheduler_does_not_repeat_reminders(
        self, session_factory, clock, dispatcher, due_lease,
    ):
        ReminderScheduler(session_factory, dispatcher, clock=clock).tick()

        restarted = ReminderScheduler(session_factory, dispatcher, clock=clock)
        result = restarted.tick()
        assert result.skipped == 1
        assert len(dispatcher.of_type(IntentType.REVISION_DUE)) == 1

    def test_uses_configured_lead_days(self, session_factory, clock, dispatcher, due_lease):
        clock.set_time(date(2024, 2, 16))
        scheduler = ReminderScheduler(
            session_factory,
            dispatcher,
            clock=clock,
            config=LeaseConfig(revision_reminder_lead_days=14),
        )
        result = scheduler.tick()
        assert result.emitted == 1
        assert dispatcher.intents[0].payload["reminder_type"] == "30_days"

    def test_failed_dispatch_is_retried_the_same_day(self, session_factory, clock, due_lease):
        failing = RecordingDispatcher(fail_on={IntentType.REVISION_DUE})
        scheduler = ReminderScheduler(session_factory, failing, clock=clock, actor_id=TEST_ACTOR_ID)

        first = scheduler.tick()
        assert first.failed == 1
        assert scheduler.last_run_date is None

        failing.fail_on.clear()
        clock.advance(3600)
        second = scheduler.tick()
        assert second.emitted == 1
        assert second.failed == 0
        assert scheduler.last_run_date == date(2024, 3, 1)
        assert len(failing.of_type(IntentType.REVISION_DUE)) == 1

        assert scheduler.tick() is None

    def test_start_stop(self, session_factory, clock, dispatcher):
        scheduler = ReminderScheduler(session_factory, dispatcher, clock=clock)
        assert not scheduler.is_running

        scheduler.start()
        assert scheduler.is_running
        scheduler.stop(timeout=5)
        assert not scheduler.is_running
