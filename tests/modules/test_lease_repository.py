"""
Tests for the SQLAlchemy lease repository and reminder ledger.

Validates:
- DTO round trip through the ORM, including signature history
- Optimistic versioning: stale values and concurrent UPDATEs conflict
- Superseding of notices, revision records and settlements
- The revisable-lease query
- Reminder dedup claims

Uses in-memory SQLite with real ORM models.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, date, datetime
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select, update

from tenancy_engines.deposit import compute_settlement
from tenancy_engines.notice import issue_notice
from tenancy_engines.regularization import ChargeLine, compute_regularization
from tenancy_engines.rent_revision import build_revision_record
from tenancy_engines.revision_anchor import ReminderType, RevisionAnchor, RevisionReminder
from tenancy_kernel.domain.parties import PartyRole
from tenancy_kernel.exceptions import LeaseNotFoundError, PersistenceConflictError
from tenancy_modules.lease.models import LeaseStatus, SignatureEventKind, SignatureMethod
from tenancy_modules.lease.orm import (
    ChargeRegularizationModel,
    LeaseModel,
    RevisionRecordModel,
)
from tenancy_modules.lease.repository import (
    SqlAlchemyLeaseRepository,
    SqlAlchemyReminderLedger,
)
from tenancy_modules.lease.signatures import SignatureCoordinator
from tests.conftest import TEST_ACTOR_ID, make_lease

AT = datetime(2024, 3, 1, 9, 0, 0, tzinfo=UTC)


@pytest.fixture
def repository(session):
    return SqlAlchemyLeaseRepository(session)


# =============================================================================
# Leases
# =============================================================================


class TestLeasePersistence:

    def test_add_and_get(self, repository, session):
        lease = make_lease(end_date=date(2026, 2, 28), revision_anchor=RevisionAnchor(2, 29))
        stored = repository.add(lease, TEST_ACTOR_ID)
        assert stored.version == 1

        session.expire_all()
        loaded = repository.get(lease.id)
        assert loaded.id == lease.id
        assert loaded.status is LeaseStatus.DRAFT
        assert loaded.monthly_rent == Decimal("600")
        assert loaded.deposit_amount == Decimal("1000")
        assert loaded.end_date == date(2026, 2, 28)
        assert loaded.revision_anchor == RevisionAnchor(2, 29)
        assert loaded.signature_method is SignatureMethod.MANUAL_PHYSICAL
        assert not loaded.owner_signature.signed
        assert loaded.signature_round.number == 1
        assert loaded.version == 1

    def test_created_by_is_recorded(self, repository, session):
        lease = make_lease()
        repository.add(lease, TEST_ACTOR_ID)
        model = session.get(LeaseModel, lease.id)
        assert model.created_by_id == TEST_ACTOR_ID

    def test_unknown_lease(self, repository):
        with pytest.raises(LeaseNotFoundError) as exc_info:
            repository.get(uuid4())
        assert exc_info.value.code == "LEASE_NOT_FOUND"

    def test_save_bumps_version_and_keeps_history(self, repository, session):
        stored = repository.add(make_lease(), TEST_ACTOR_ID)
        state = SignatureCoordinator().record_signature(
            stored, PartyRole.OWNER, SignatureMethod.MANUAL_PHYSICAL, "owner.pdf", AT,
        )
        signed = replace(
            stored.with_signature(PartyRole.OWNER, state),
            status=LeaseStatus.SIGNED_BY_OWNER,
        )

        saved = repository.save(signed, TEST_ACTOR_ID)
        assert saved.version == 2

        session.expire_all()
        loaded = repository.get(stored.id)
        assert loaded.status is LeaseStatus.SIGNED_BY_OWNER
        assert loaded.owner_signature.signed
        assert loaded.owner_signature.signed_at == AT
        assert loaded.owner_signature.evidence_ref == "owner.pdf"
        assert [e.kind for e in loaded.owner_signature.history] == [SignatureEventKind.SIGNED]
        assert loaded.owner_signature.history[0].occurred_at == AT
        assert loaded.tenant_signature.history == ()

    def test_saving_a_stale_value_conflicts(self, repository):
        stored = repository.add(make_lease(), TEST_ACTOR_ID)
        repository.save(replace(stored, monthly_rent=Decimal("610")), TEST_ACTOR_ID)

        with pytest.raises(PersistenceConflictError) as exc_info:
            repository.save(replace(stored, monthly_rent=Decimal("620")), TEST_ACTOR_ID)
        assert exc_info.value.expected_version == 1

    def test_concurrent_update_conflicts(self, repository, session):
        stored = repository.add(make_lease(), TEST_ACTOR_ID)
        # Another writer bumps the row behind the session's back.
        session.execute(
            update(LeaseModel.__table__)
            .where(LeaseModel.__table__.c.id == str(stored.id))
            .values(version=2)
        )

        with pytest.raises(PersistenceConflictError):
            repository.save(replace(stored, monthly_rent=Decimal("650")), TEST_ACTOR_ID)

    def test_revisable_leases_are_active_only(self, repository):
        active = repository.add(make_lease(status=LeaseStatus.ACTIVE), TEST_ACTOR_ID)
        repository.add(make_lease(status=LeaseStatus.DRAFT), TEST_ACTOR_ID)
        repository.add(make_lease(status=LeaseStatus.TERMINATED), TEST_ACTOR_ID)

        assert [l.id for l in repository.list_revisable_leases()] == [active.id]


# =============================================================================
# Derived records
# =============================================================================


class TestDerivedRecords:

    def setup_method(self):
        self.lease = make_lease()

    def test_latest_notice_skips_superseded(self, repository):
        repository.add(self.lease, TEST_ACTOR_ID)
        first = issue_notice(self.lease.id, date(2024, 3, 1), 1, PartyRole.TENANT, date(2024, 3, 1))
        repository.add_notice(first, TEST_ACTOR_ID)
        assert repository.latest_notice(self.lease.id).id == first.id

        second = issue_notice(
            self.lease.id, date(2024, 3, 1), 3, PartyRole.TENANT, date(2024, 3, 1),
            supersedes_id=first.id,
        )
        repository.add_notice(second, TEST_ACTOR_ID)

        latest = repository.latest_notice(self.lease.id)
        assert latest.id == second.id
        assert latest.move_out_date == date(2024, 6, 1)
        assert latest.supersedes_id == first.id

    def test_no_notice(self, repository):
        repository.add(self.lease, TEST_ACTOR_ID)
        assert repository.latest_notice(self.lease.id) is None

    def test_notice_for_unknown_lease(self, repository):
        notice = issue_notice(uuid4(), date(2024, 3, 1), 1, PartyRole.OWNER, date(2024, 3, 1))
        with pytest.raises(LeaseNotFoundError):
            repository.add_notice(notice, TEST_ACTOR_ID)

    def test_one_current_revision_per_year(self, repository, session):
        repository.add(self.lease, TEST_ACTOR_ID)
        first = build_revision_record(self.lease.id, 2024, "Q4-2023", "600", "130.26", "132.59")
        repository.add_revision(first, TEST_ACTOR_ID)

        correction = build_revision_record(self.lease.id, 2024, "Q4-2023", "600", "130.26", "133")
        stored = repository.add_revision(correction, TEST_ACTOR_ID)
        assert stored.supersedes_id == first.id

        current = repository.current_revision(self.lease.id, 2024)
        assert current.id == correction.id
        assert current.new_rent_amount == Decimal("612.62")

        current_rows = session.execute(
            select(func.count())
            .select_from(RevisionRecordModel)
            .where(RevisionRecordModel.is_current.is_(True))
        ).scalar_one()
        assert current_rows == 1

    def test_revisions_of_other_years_stay_current(self, repository):
        repository.add(self.lease, TEST_ACTOR_ID)
        repository.add_revision(
            build_revision_record(self.lease.id, 2023, "Q4-2022", "590", "126", "130.26"),
            TEST_ACTOR_ID,
        )
        repository.add_revision(
            build_revision_record(self.lease.id, 2024, "Q4-2023", "600", "130.26", "132.59"),
            TEST_ACTOR_ID,
        )
        assert repository.current_revision(self.lease.id, 2023).revision_year == 2023
        assert repository.current_revision(self.lease.id, 2024).supersedes_id is None

    def test_regularization_is_stored(self, repository, session):
        repository.add(self.lease, TEST_ACTOR_ID)
        regularization = compute_regularization(
            self.lease.id, 2024, self.lease.start_date, None, "600",
            [ChargeLine("water", Decimal("732"))],
        )
        repository.add_regularization(regularization, TEST_ACTOR_ID)

        model = session.get(ChargeRegularizationModel, regularization.id)
        restored = model.to_dto()
        assert restored.tenant_balance == Decimal("-132")
        assert restored.lines[0].category == "water"
        assert restored.lines[0].tenant_share == Decimal("732")

    def test_latest_settlement_skips_superseded(self, repository):
        repository.add(self.lease, TEST_ACTOR_ID)
        first = compute_settlement(self.lease.id, "1000", "200", ["Repairs"], date(2024, 6, 15))
        repository.add_settlement(first, TEST_ACTOR_ID)
        second = compute_settlement(
            self.lease.id, "1000", "150", ["Repairs, revised quote"], date(2024, 6, 15),
            supersedes_id=first.id,
        )
        repository.add_settlement(second, TEST_ACTOR_ID)

        latest = repository.latest_settlement(self.lease.id)
        assert latest.id == second.id
        assert latest.refund_amount == Decimal("850")
        assert latest.retained_reasons == ("Repairs, revised quote",)
        assert latest.deadline_date == date(2024, 7, 15)


# =============================================================================
# Reminder ledger
# =============================================================================


class TestReminderLedger:

    def test_claim_once(self, repository, session):
        lease = repository.add(make_lease(status=LeaseStatus.ACTIVE), TEST_ACTOR_ID)
        ledger = SqlAlchemyReminderLedger(session, TEST_ACTOR_ID)
        reminder = RevisionReminder(lease.id, date(2024, 3, 1), ReminderType.TODAY)

        assert ledger.claim(reminder) is True
        assert ledger.claim(reminder) is False

    def test_different_type_is_a_different_claim(self, repository, session):
        lease = repository.add(make_lease(status=LeaseStatus.ACTIVE), TEST_ACTOR_ID)
        ledger = SqlAlchemyReminderLedger(session, TEST_ACTOR_ID)

        assert ledger.claim(RevisionReminder(lease.id, date(2024, 3, 1), ReminderType.TODAY))
        assert ledger.claim(
            RevisionReminder(lease.id, date(2024, 3, 1), ReminderType.THIRTY_DAYS)
        )
