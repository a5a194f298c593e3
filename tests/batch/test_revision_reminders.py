"""
Tests for tenancy_batch.services.runner -- daily revision reminders.

Validates RevisionReminderRunner: which leases are evaluated, reminder
types, dedup across reruns, per-lease failure isolation, and that a failed
dispatch leaves the reminder unclaimed.

Uses in-memory SQLite with real ORM models.
"""

from datetime import date

import pytest

from tenancy_batch.domain.types import ReminderItemStatus
from tenancy_batch.services.runner import RevisionReminderRunner
from tenancy_engines.revision_anchor import ReminderType, RevisionAnchor
from tenancy_modules.lease.events import IntentType
from tenancy_modules.lease.models import LeaseStatus
from tenancy_modules.lease.repository import SqlAlchemyLeaseRepository
from tests.conftest import TEST_ACTOR_ID, RecordingDispatcher, make_lease


@pytest.fixture
def seeded_leases(session):
    """One lease due on 2024-03-01, one not due, one draft lease."""
    repository = SqlAlchemyLeaseRepository(session)
    due = repository.add(
        make_lease(
            status=LeaseStatus.ACTIVE,
            start_date=date(2022, 5, 10),
            revision_anchor=RevisionAnchor(3, 1),
        ),
        TEST_ACTOR_ID,
    )
    not_due = repository.add(
        make_lease(status=LeaseStatus.ACTIVE, revision_anchor=RevisionAnchor(6, 1)),
        TEST_ACTOR_ID,
    )
    repository.add(
        make_lease(status=LeaseStatus.DRAFT, revision_anchor=RevisionAnchor(3, 1)),
        TEST_ACTOR_ID,
    )
    return due, not_due


def _runner(session, dispatcher, clock):
    return RevisionReminderRunner(session, dispatcher, TEST_ACTOR_ID, clock=clock)


class TestRevisionReminderRunner:

    def test_anchor_day_reminder(self, session, clock, dispatcher, seeded_leases):
        due, not_due = seeded_leases
        result = _runner(session, dispatcher, clock).run()

        assert result.run_date == date(2024, 3, 1)
        assert result.evaluated == 2
        assert result.emitted == 1
        statuses = {item.lease_id: item.status for item in result.items}
        assert statuses[due.id] is ReminderItemStatus.EMITTED
        assert statuses[not_due.id] is ReminderItemStatus.NO_REMINDER

        [intent] = dispatcher.of_type(IntentType.REVISION_DUE)
        assert intent.lease_id == due.id
        assert intent.payload["reminder_type"] == "today"
        assert intent.payload["anchor_date"] == "2024-03-01"
        assert intent.payload["dedup_key"] == f"{due.id}:2024-03-01:today"

    def test_thirty_days_ahead(self, session, clock, dispatcher, seeded_leases):
        due, _ = seeded_leases
        result = _runner(session, dispatcher, clock).run(date(2024, 1, 31))
        assert [r.reminder_type for r in result.reminders] == [ReminderType.THIRTY_DAYS]
        assert result.reminders[0].lease_id == due.id

    def test_rerun_same_day_is_deduplicated(self, session, clock, dispatcher, seeded_leases):
        runner = _runner(session, dispatcher, clock)
        runner.run()
        second = runner.run()

        assert second.emitted == 0
        assert second.skipped == 1
        assert len(dispatcher.of_type(IntentType.REVISION_DUE)) == 1

    def test_failed_dispatch_is_retried_next_run(self, session, clock, seeded_leases):
        failing = RecordingDispatcher(fail_on={IntentType.REVISION_DUE})
        first = _runner(session, failing, clock).run()
        assert first.failed == 1
        failed = [i for i in first.items if i.status is ReminderItemStatus.FAILED][0]
        assert failed.error_code == "UNHANDLED_EXCEPTION"
        assert "delivery failed" in failed.error_message

        working = RecordingDispatcher()
        second = _runner(session, working, clock).run()
        assert second.emitted == 1
        assert len(working.intents) == 1

    def test_no_revisable_leases(self, session, clock, dispatcher):
        result = _runner(session, dispatcher, clock).run()
        assert result.evaluated == 0
        assert result.reminders == ()
