"""
Lease Repository (``tenancy_modules.lease.repository``).

Responsibility
--------------
SQLAlchemy implementations of ``LeaseRepository`` and ``ReminderLedger``.
Converts between the frozen DTOs and the ORM rows in ``orm.py``.

Architecture position
---------------------
**Modules layer** -- persistence adapter. Works inside a caller-owned
``Session``; never commits.

Invariants enforced
-------------------
* ``save`` compares ``lease.version`` with the stored version and relies
  on the ORM version counter for the UPDATE itself, so a lease value read
  in an older transaction can never overwrite a newer one.
* Signature history rows are appended, never rewritten.
* ``add_revision`` leaves exactly one current record per lease and year.
* ``ReminderLedger.claim`` inserts the dedup key inside a SAVEPOINT so a
  duplicate does not poison the caller's transaction.

Failure modes
-------------
* ``LeaseNotFoundError`` -- unknown lease id.
* ``PersistenceConflictError`` -- version mismatch or stale UPDATE.
"""

from __future__ import annotations

from dataclasses import replace
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from tenancy_engines.deposit import DepositSettlement
from tenancy_engines.notice import Notice
from tenancy_engines.regularization import ChargeRegularization
from tenancy_engines.rent_revision import RevisionRecord
from tenancy_engines.revision_anchor import RevisionReminder
from tenancy_kernel.domain.parties import PartyRole
from tenancy_kernel.exceptions import LeaseNotFoundError, PersistenceConflictError
from tenancy_kernel.logging_config import get_logger
from tenancy_modules.lease.models import Lease, LeaseStatus
from tenancy_modules.lease.orm import (
    ChargeRegularizationModel,
    DepositSettlementModel,
    LeaseModel,
    NoticeModel,
    RevisionRecordModel,
    RevisionReminderModel,
    SignatureEventModel,
)
from tenancy_modules.lease.ports import LeaseRepository, ReminderLedger

logger = get_logger("modules.lease.repository")

# Leases the revision reminder batch evaluates
REVISABLE_STATUSES = (LeaseStatus.ACTIVE,)


class SqlAlchemyLeaseRepository(LeaseRepository):
    """
    ``LeaseRepository`` backed by a SQLAlchemy session.

    Non-goals:
        Does NOT commit or roll back; the caller owns the transaction.
    """

    def __init__(self, session: Session):
        self._session = session

    def _load(self, lease_id: UUID) -> LeaseModel:
        model = self._session.get(LeaseModel, lease_id)
        if model is None:
            raise LeaseNotFoundError(str(lease_id))
        return model

    def get(self, lease_id: UUID) -> Lease:
        return self._load(lease_id).to_dto()

    def add(self, lease: Lease, actor_id: UUID) -> Lease:
        model = LeaseModel.from_dto(lease, created_by_id=actor_id)
        self._append_history(model, lease, actor_id)
        self._session.add(model)
        self._session.flush()
        logger.info(
            "lease_added",
            extra={"lease_id": str(lease.id), "status": lease.status.value},
        )
        return model.to_dto()

    def save(self, lease: Lease, actor_id: UUID) -> Lease:
        model = self._load(lease.id)
        if model.version != lease.version:
            logger.warning(
                "lease_version_mismatch",
                extra={
                    "lease_id": str(lease.id),
                    "expected_version": lease.version,
                    "stored_version": model.version,
                },
            )
            raise PersistenceConflictError("Lease", str(lease.id), lease.version)

        model.apply_dto(lease, updated_by_id=actor_id)
        self._append_history(model, lease, actor_id)
        try:
            self._session.flush()
        except StaleDataError as exc:
            raise PersistenceConflictError("Lease", str(lease.id), lease.version) from exc

        logger.debug(
            "lease_saved",
            extra={
                "lease_id": str(lease.id),
                "status": lease.status.value,
                "version": model.version,
            },
        )
        return model.to_dto()

    def _append_history(self, model: LeaseModel, lease: Lease, actor_id: UUID) -> None:
        for party in PartyRole:
            stored = sum(1 for e in model.signature_events if e.party == party.value)
            history = lease.signature(party).history
            for seq, event in enumerate(history[stored:], start=stored + 1):
                model.signature_events.append(
                    SignatureEventModel.from_dto(
                        event,
                        lease_id=lease.id,
                        party=party.value,
                        seq=seq,
                        created_by_id=actor_id,
                    )
                )

    # -- notices --------------------------------------------------------------

    def add_notice(self, notice: Notice, actor_id: UUID) -> Notice:
        self._load(notice.lease_id)
        self._session.add(NoticeModel.from_dto(notice, created_by_id=actor_id))
        self._session.flush()
        return notice

    def latest_notice(self, lease_id: UUID) -> Notice | None:
        superseded = select(NoticeModel.supersedes_id).where(
            NoticeModel.lease_id == lease_id,
            NoticeModel.supersedes_id.is_not(None),
        )
        model = self._session.execute(
            select(NoticeModel)
            .where(NoticeModel.lease_id == lease_id)
            .where(NoticeModel.id.not_in(superseded))
            .order_by(NoticeModel.notice_date.desc(), NoticeModel.created_at.desc())
            .limit(1)
        ).scalar_one_or_none()
        return model.to_dto() if model else None

    # -- revisions ------------------------------------------------------------

    def _current_revision_model(
        self, lease_id: UUID, revision_year: int,
    ) -> RevisionRecordModel | None:
        return self._session.execute(
            select(RevisionRecordModel).where(
                RevisionRecordModel.lease_id == lease_id,
                RevisionRecordModel.revision_year == revision_year,
                RevisionRecordModel.is_current.is_(True),
            )
        ).scalar_one_or_none()

    def add_revision(self, record: RevisionRecord, actor_id: UUID) -> RevisionRecord:
        self._load(record.lease_id)
        previous = self._current_revision_model(record.lease_id, record.revision_year)
        if previous is not None:
            previous.is_current = False
            previous.updated_by_id = actor_id
            # Clear the flag before the insert so the partial index never sees two.
            self._session.flush()
            if record.supersedes_id is None:
                record = replace(record, supersedes_id=previous.id)
            logger.info(
                "revision_superseded",
                extra={
                    "lease_id": str(record.lease_id),
                    "revision_year": record.revision_year,
                    "superseded_id": str(previous.id),
                },
            )

        self._session.add(RevisionRecordModel.from_dto(record, created_by_id=actor_id))
        self._session.flush()
        return record

    def current_revision(self, lease_id: UUID, revision_year: int) -> RevisionRecord | None:
        model = self._current_revision_model(lease_id, revision_year)
        return model.to_dto() if model else None

    # -- regularizations and settlements ---------------------------------------

    def add_regularization(
        self, regularization: ChargeRegularization, actor_id: UUID,
    ) -> ChargeRegularization:
        self._load(regularization.lease_id)
        self._session.add(
            ChargeRegularizationModel.from_dto(regularization, created_by_id=actor_id)
        )
        self._session.flush()
        return regularization

    def add_settlement(self, settlement: DepositSettlement, actor_id: UUID) -> DepositSettlement:
        self._load(settlement.lease_id)
        self._session.add(DepositSettlementModel.from_dto(settlement, created_by_id=actor_id))
        self._session.flush()
        return settlement

    def latest_settlement(self, lease_id: UUID) -> DepositSettlement | None:
        superseded = select(DepositSettlementModel.supersedes_id).where(
            DepositSettlementModel.lease_id == lease_id,
            DepositSettlementModel.supersedes_id.is_not(None),
        )
        model = self._session.execute(
            select(DepositSettlementModel)
            .where(DepositSettlementModel.lease_id == lease_id)
            .where(DepositSettlementModel.id.not_in(superseded))
            .order_by(DepositSettlementModel.created_at.desc())
            .limit(1)
        ).scalar_one_or_none()
        return model.to_dto() if model else None

    # -- batch ----------------------------------------------------------------

    def list_revisable_leases(self) -> list[Lease]:
        models = self._session.execute(
            select(LeaseModel)
            .where(LeaseModel.status.in_([s.value for s in REVISABLE_STATUSES]))
            .order_by(LeaseModel.start_date, LeaseModel.id)
        ).scalars().all()
        return [m.to_dto() for m in models]


class SqlAlchemyReminderLedger(ReminderLedger):
    """``ReminderLedger`` over the ``tenancy_revision_reminders`` table."""

    def __init__(self, session: Session, actor_id: UUID):
        self._session = session
        self._actor_id = actor_id

    def claim(self, reminder: RevisionReminder) -> bool:
        existing = self._session.execute(
            select(RevisionReminderModel.id).where(
                RevisionReminderModel.dedup_key == reminder.dedup_key,
            )
        ).scalar_one_or_none()
        if existing is not None:
            return False

        savepoint = self._session.begin_nested()
        try:
            self._session.add(
                RevisionReminderModel.from_dto(reminder, created_by_id=self._actor_id)
            )
            self._session.flush()
            savepoint.commit()
        except IntegrityError:
            # Another worker claimed the key between the check and the insert.
            savepoint.rollback()
            logger.debug("reminder_claim_race", extra={"dedup_key": reminder.dedup_key})
            return False
        return True
