"""
Module: tenancy_modules.lease.orm
Responsibility:
    SQLAlchemy ORM persistence models for the lease lifecycle. Maps the
    frozen dataclass DTOs from ``tenancy_modules.lease.models`` and the
    engine records from ``tenancy_engines`` to relational tables.

Architecture position:
    **Modules layer** -- ORM models inheriting from ``TrackedBase``
    (kernel DB base).

Invariants enforced:
    - All monetary and index fields use Decimal (Numeric(38,9)).
    - Enum fields stored as String(50) for safe serialization.
    - ``tenancy_leases.version`` is the ORM version counter; a stale
      UPDATE raises ``StaleDataError``.
    - Signature events are append-only, numbered per party.
    - At most one current revision record per lease and year.
    - A revision reminder dedup key is stored once.

Failure modes:
    - IntegrityError on duplicate unique constraints.
    - StaleDataError on a concurrent lease update.
"""

from datetime import UTC, date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tenancy_kernel.db.base import TrackedBase, UUIDString


def _aware(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo; stored values are always UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _enum_value(value):
    return value.value if hasattr(value, "value") else value


# =============================================================================
# Lease
# =============================================================================


class LeaseModel(TrackedBase):
    """
    A residential lease with its signature progress.

    Guarantees:
        - ``status`` is a ``LeaseStatus`` value.
        - ``version`` increments on every UPDATE (optimistic concurrency).
        - Per-party signature summary columns mirror the latest
          ``SignatureState``; the full trail is in ``signature_events``.
    """

    __tablename__ = "tenancy_leases"

    __table_args__ = (
        Index("idx_tenancy_lease_status", "status"),
        Index("idx_tenancy_lease_owner", "owner_id"),
        Index("idx_tenancy_lease_tenant", "tenant_id"),
        Index("idx_tenancy_lease_property", "property_id"),
    )

    owner_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    property_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    monthly_rent: Mapped[Decimal] = mapped_column(nullable=False)
    charges_provision: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    deposit_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    status: Mapped[str] = mapped_column(String(50), default="draft")
    signature_method: Mapped[str] = mapped_column(String(50), nullable=False)
    revision_anchor_month: Mapped[int] = mapped_column(Integer, nullable=False)
    revision_anchor_day: Mapped[int] = mapped_column(Integer, nullable=False)

    owner_signed: Mapped[bool] = mapped_column(Boolean, default=False)
    owner_signed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    owner_evidence_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)
    owner_method: Mapped[str | None] = mapped_column(String(50), nullable=True)

    tenant_signed: Mapped[bool] = mapped_column(Boolean, default=False)
    tenant_signed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    tenant_evidence_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)
    tenant_method: Mapped[str | None] = mapped_column(String(50), nullable=True)

    signature_round: Mapped[int] = mapped_column(Integer, default=1)
    envelope_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    provider_status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    round_terminal_failure: Mapped[bool] = mapped_column(Boolean, default=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    signature_events: Mapped[list["SignatureEventModel"]] = relationship(
        "SignatureEventModel",
        back_populates="lease",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="SignatureEventModel.seq",
    )

    def to_dto(self):
        from tenancy_engines.revision_anchor import RevisionAnchor
        from tenancy_kernel.domain.parties import PartyRole
        from tenancy_modules.lease.models import (
            Lease,
            LeaseStatus,
            ProviderStatus,
            SignatureMethod,
            SignatureRound,
            SignatureState,
        )

        def state(party: PartyRole, signed, signed_at, evidence_ref, method):
            return SignatureState(
                signed=bool(signed),
                signed_at=_aware(signed_at),
                evidence_ref=evidence_ref,
                method=SignatureMethod(method) if method else None,
                history=tuple(
                    e.to_dto() for e in self.signature_events if e.party == party.value
                ),
            )

        return Lease(
            id=self.id,
            owner_id=self.owner_id,
            tenant_id=self.tenant_id,
            property_id=self.property_id,
            start_date=self.start_date,
            end_date=self.end_date,
            monthly_rent=self.monthly_rent,
            charges_provision=self.charges_provision,
            deposit_amount=self.deposit_amount,
            status=LeaseStatus(self.status),
            signature_method=SignatureMethod(self.signature_method),
            revision_anchor=RevisionAnchor(
                month=self.revision_anchor_month, day=self.revision_anchor_day,
            ),
            owner_signature=state(
                PartyRole.OWNER, self.owner_signed, self.owner_signed_at,
                self.owner_evidence_ref, self.owner_method,
            ),
            tenant_signature=state(
                PartyRole.TENANT, self.tenant_signed, self.tenant_signed_at,
                self.tenant_evidence_ref, self.tenant_method,
            ),
            signature_round=SignatureRound(
                number=self.signature_round,
                envelope_id=self.envelope_id,
                provider_status=(
                    ProviderStatus(self.provider_status) if self.provider_status else None
                ),
                terminal_failure=bool(self.round_terminal_failure),
            ),
            version=self.version,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "LeaseModel":
        model = cls(id=dto.id, created_by_id=created_by_id)
        model.apply_dto(dto)
        return model

    def apply_dto(self, dto, updated_by_id: UUID | None = None) -> None:
        """Copy the mutable lease fields from ``dto`` onto this row."""
        self.owner_id = dto.owner_id
        self.tenant_id = dto.tenant_id
        self.property_id = dto.property_id
        self.start_date = dto.start_date
        self.end_date = dto.end_date
        self.monthly_rent = dto.monthly_rent
        self.charges_provision = dto.charges_provision
        self.deposit_amount = dto.deposit_amount
        self.status = _enum_value(dto.status)
        self.signature_method = _enum_value(dto.signature_method)
        self.revision_anchor_month = dto.revision_anchor.month
        self.revision_anchor_day = dto.revision_anchor.day

        owner, tenant = dto.owner_signature, dto.tenant_signature
        self.owner_signed = owner.signed
        self.owner_signed_at = owner.signed_at
        self.owner_evidence_ref = owner.evidence_ref
        self.owner_method = _enum_value(owner.method) if owner.method else None
        self.tenant_signed = tenant.signed
        self.tenant_signed_at = tenant.signed_at
        self.tenant_evidence_ref = tenant.evidence_ref
        self.tenant_method = _enum_value(tenant.method) if tenant.method else None

        round_ = dto.signature_round
        self.signature_round = round_.number
        self.envelope_id = round_.envelope_id
        self.provider_status = (
            _enum_value(round_.provider_status) if round_.provider_status else None
        )
        self.round_terminal_failure = round_.terminal_failure

        if updated_by_id is not None:
            self.updated_by_id = updated_by_id

    def __repr__(self) -> str:
        return f"<LeaseModel {self.id} ({self.status}) v{self.version}>"


# =============================================================================
# Signature Event
# =============================================================================


class SignatureEventModel(TrackedBase):
    """
    One entry of a party's signature audit trail.

    Guarantees:
        - (lease_id, party, seq) is unique; rows are never updated.
    """

    __tablename__ = "tenancy_signature_events"

    __table_args__ = (
        UniqueConstraint("lease_id", "party", "seq", name="uq_tenancy_signature_event_seq"),
        Index("idx_tenancy_signature_event_lease", "lease_id"),
    )

    lease_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tenancy_leases.id"),
        nullable=False,
    )
    party: Mapped[str] = mapped_column(String(20), nullable=False)
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    kind: Mapped[str] = mapped_column(String(50), nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)
    round_number: Mapped[int] = mapped_column(Integer, nullable=False)
    method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    evidence_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)
    provider_status: Mapped[str | None] = mapped_column(String(50), nullable=True)

    lease: Mapped["LeaseModel"] = relationship(
        "LeaseModel",
        back_populates="signature_events",
    )

    def to_dto(self):
        from tenancy_modules.lease.models import (
            ProviderStatus,
            SignatureEvent,
            SignatureEventKind,
            SignatureMethod,
        )

        return SignatureEvent(
            kind=SignatureEventKind(self.kind),
            occurred_at=_aware(self.occurred_at),
            round_number=self.round_number,
            method=SignatureMethod(self.method) if self.method else None,
            evidence_ref=self.evidence_ref,
            provider_status=ProviderStatus(self.provider_status) if self.provider_status else None,
        )

    @classmethod
    def from_dto(
        cls, dto, lease_id: UUID, party: str, seq: int, created_by_id: UUID,
    ) -> "SignatureEventModel":
        return cls(
            lease_id=lease_id,
            party=party,
            seq=seq,
            kind=_enum_value(dto.kind),
            occurred_at=dto.occurred_at,
            round_number=dto.round_number,
            method=_enum_value(dto.method) if dto.method else None,
            evidence_ref=dto.evidence_ref,
            provider_status=_enum_value(dto.provider_status) if dto.provider_status else None,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<SignatureEventModel {self.party}#{self.seq} {self.kind}>"


# =============================================================================
# Notice
# =============================================================================


class NoticeModel(TrackedBase):
    """A notice to vacate. Insert-only; corrections supersede."""

    __tablename__ = "tenancy_notices"

    __table_args__ = (
        Index("idx_tenancy_notice_lease", "lease_id"),
    )

    lease_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tenancy_leases.id"),
        nullable=False,
    )
    notice_date: Mapped[date] = mapped_column(Date, nullable=False)
    notice_period_months: Mapped[int] = mapped_column(Integer, nullable=False)
    issued_by: Mapped[str] = mapped_column(String(20), nullable=False)
    desired_move_out: Mapped[date | None] = mapped_column(Date, nullable=True)
    move_out_date: Mapped[date] = mapped_column(Date, nullable=False)
    supersedes_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("tenancy_notices.id"),
        nullable=True,
    )

    def to_dto(self):
        from tenancy_engines.notice import Notice
        from tenancy_kernel.domain.parties import PartyRole

        return Notice(
            id=self.id,
            lease_id=self.lease_id,
            notice_date=self.notice_date,
            notice_period_months=self.notice_period_months,
            issued_by=PartyRole(self.issued_by),
            desired_move_out=self.desired_move_out,
            supersedes_id=self.supersedes_id,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "NoticeModel":
        return cls(
            id=dto.id,
            lease_id=dto.lease_id,
            notice_date=dto.notice_date,
            notice_period_months=dto.notice_period_months,
            issued_by=_enum_value(dto.issued_by),
            desired_move_out=dto.desired_move_out,
            move_out_date=dto.move_out_date,
            supersedes_id=dto.supersedes_id,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<NoticeModel {self.notice_date} -> {self.move_out_date}>"


# =============================================================================
# Revision Record
# =============================================================================


class RevisionRecordModel(TrackedBase):
    """
    An annual rent revision.

    Guarantees:
        - One row with ``is_current`` per (lease_id, revision_year),
          enforced by a partial unique index.
    """

    __tablename__ = "tenancy_revision_records"

    __table_args__ = (
        Index(
            "uq_tenancy_revision_current_year",
            "lease_id",
            "revision_year",
            unique=True,
            sqlite_where=text("is_current = 1"),
            postgresql_where=text("is_current"),
        ),
        Index("idx_tenancy_revision_lease", "lease_id"),
    )

    lease_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tenancy_leases.id"),
        nullable=False,
    )
    revision_year: Mapped[int] = mapped_column(Integer, nullable=False)
    irl_quarter: Mapped[str] = mapped_column(String(20), nullable=False)
    reference_irl_value: Mapped[Decimal] = mapped_column(nullable=False)
    new_irl_value: Mapped[Decimal] = mapped_column(nullable=False)
    old_rent_amount: Mapped[Decimal] = mapped_column(nullable=False)
    new_rent_amount: Mapped[Decimal] = mapped_column(nullable=False)
    increase_amount: Mapped[Decimal] = mapped_column(nullable=False)
    increase_percentage: Mapped[Decimal] = mapped_column(nullable=False)
    supersedes_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("tenancy_revision_records.id"),
        nullable=True,
    )
    is_current: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def to_dto(self):
        from tenancy_engines.rent_revision import RevisionRecord

        return RevisionRecord(
            id=self.id,
            lease_id=self.lease_id,
            revision_year=self.revision_year,
            irl_quarter=self.irl_quarter,
            reference_irl_value=self.reference_irl_value,
            new_irl_value=self.new_irl_value,
            old_rent_amount=self.old_rent_amount,
            new_rent_amount=self.new_rent_amount,
            increase_amount=self.increase_amount,
            increase_percentage=self.increase_percentage,
            supersedes_id=self.supersedes_id,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "RevisionRecordModel":
        return cls(
            id=dto.id,
            lease_id=dto.lease_id,
            revision_year=dto.revision_year,
            irl_quarter=dto.irl_quarter,
            reference_irl_value=dto.reference_irl_value,
            new_irl_value=dto.new_irl_value,
            old_rent_amount=dto.old_rent_amount,
            new_rent_amount=dto.new_rent_amount,
            increase_amount=dto.increase_amount,
            increase_percentage=dto.increase_percentage,
            supersedes_id=dto.supersedes_id,
            is_current=True,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return (
            f"<RevisionRecordModel {self.revision_year} "
            f"{self.old_rent_amount}->{self.new_rent_amount}>"
        )


# =============================================================================
# Charge Regularization
# =============================================================================


class ChargeRegularizationModel(TrackedBase):
    """A year-end charge regularization with its per-category lines."""

    __tablename__ = "tenancy_charge_regularizations"

    __table_args__ = (
        Index("idx_tenancy_regularization_lease_year", "lease_id", "year"),
    )

    lease_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tenancy_leases.id"),
        nullable=False,
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    period_empty: Mapped[bool] = mapped_column(Boolean, default=False)
    total_provisions_collected: Mapped[Decimal] = mapped_column(nullable=False)
    total_real_charges: Mapped[Decimal] = mapped_column(nullable=False)
    recoverable_charges: Mapped[Decimal] = mapped_column(nullable=False)
    non_recoverable_charges: Mapped[Decimal] = mapped_column(nullable=False)
    tenant_balance: Mapped[Decimal] = mapped_column(nullable=False)
    balance_type: Mapped[str] = mapped_column(String(20), nullable=False)
    occupation_days: Mapped[int] = mapped_column(Integer, nullable=False)
    total_days: Mapped[int] = mapped_column(Integer, nullable=False)
    lines: Mapped[list] = mapped_column(JSON, default=list)

    def to_dto(self):
        from tenancy_engines.proration import OccupationPeriod
        from tenancy_engines.regularization import (
            BalanceType,
            ChargeRegularization,
            RegularizationLine,
        )

        return ChargeRegularization(
            id=self.id,
            lease_id=self.lease_id,
            year=self.year,
            period=OccupationPeriod(
                start=self.period_start, end=self.period_end, is_empty=self.period_empty,
            ),
            total_provisions_collected=self.total_provisions_collected,
            total_real_charges=self.total_real_charges,
            recoverable_charges=self.recoverable_charges,
            non_recoverable_charges=self.non_recoverable_charges,
            tenant_balance=self.tenant_balance,
            balance_type=BalanceType(self.balance_type),
            occupation_days=self.occupation_days,
            total_days=self.total_days,
            lines=tuple(
                RegularizationLine(
                    category=line["category"],
                    real_amount=Decimal(line["real_amount"]),
                    recoverable=line["recoverable"],
                    tenant_share=Decimal(line["tenant_share"]),
                )
                for line in self.lines or ()
            ),
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "ChargeRegularizationModel":
        return cls(
            id=dto.id,
            lease_id=dto.lease_id,
            year=dto.year,
            period_start=dto.period.start,
            period_end=dto.period.end,
            period_empty=dto.period.is_empty,
            total_provisions_collected=dto.total_provisions_collected,
            total_real_charges=dto.total_real_charges,
            recoverable_charges=dto.recoverable_charges,
            non_recoverable_charges=dto.non_recoverable_charges,
            tenant_balance=dto.tenant_balance,
            balance_type=_enum_value(dto.balance_type),
            occupation_days=dto.occupation_days,
            total_days=dto.total_days,
            lines=[
                {
                    "category": line.category,
                    "real_amount": str(line.real_amount),
                    "recoverable": line.recoverable,
                    "tenant_share": str(line.tenant_share),
                }
                for line in dto.lines
            ],
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<ChargeRegularizationModel {self.year} {self.balance_type} {self.tenant_balance}>"


# =============================================================================
# Deposit Settlement
# =============================================================================


class DepositSettlementModel(TrackedBase):
    """A deposit settlement. Insert-only; corrections supersede."""

    __tablename__ = "tenancy_deposit_settlements"

    __table_args__ = (
        Index("idx_tenancy_settlement_lease", "lease_id"),
    )

    lease_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tenancy_leases.id"),
        nullable=False,
    )
    deposit_amount: Mapped[Decimal] = mapped_column(nullable=False)
    retained_amount: Mapped[Decimal] = mapped_column(nullable=False)
    retained_reasons: Mapped[list] = mapped_column(JSON, default=list)
    refund_amount: Mapped[Decimal] = mapped_column(nullable=False)
    move_out_date: Mapped[date] = mapped_column(Date, nullable=False)
    restitution_deadline_days: Mapped[int] = mapped_column(Integer, nullable=False)
    deadline_date: Mapped[date] = mapped_column(Date, nullable=False)
    lines: Mapped[list] = mapped_column(JSON, default=list)
    supersedes_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("tenancy_deposit_settlements.id"),
        nullable=True,
    )

    def to_dto(self):
        from tenancy_engines.deposit import DepositSettlement, RetentionLine

        return DepositSettlement(
            id=self.id,
            lease_id=self.lease_id,
            deposit_amount=self.deposit_amount,
            retained_amount=self.retained_amount,
            retained_reasons=tuple(self.retained_reasons or ()),
            refund_amount=self.refund_amount,
            move_out_date=self.move_out_date,
            restitution_deadline_days=self.restitution_deadline_days,
            deadline_date=self.deadline_date,
            lines=tuple(
                RetentionLine(
                    category=line["category"],
                    description=line["description"],
                    amount=Decimal(line["amount"]),
                    attachment_ref=line.get("attachment_ref"),
                )
                for line in self.lines or ()
            ),
            supersedes_id=self.supersedes_id,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "DepositSettlementModel":
        return cls(
            id=dto.id,
            lease_id=dto.lease_id,
            deposit_amount=dto.deposit_amount,
            retained_amount=dto.retained_amount,
            retained_reasons=list(dto.retained_reasons),
            refund_amount=dto.refund_amount,
            move_out_date=dto.move_out_date,
            restitution_deadline_days=dto.restitution_deadline_days,
            deadline_date=dto.deadline_date,
            lines=[
                {
                    "category": line.category,
                    "description": line.description,
                    "amount": str(line.amount),
                    "attachment_ref": line.attachment_ref,
                }
                for line in dto.lines
            ],
            supersedes_id=dto.supersedes_id,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<DepositSettlementModel refund={self.refund_amount} by {self.deadline_date}>"


# =============================================================================
# Revision Reminder
# =============================================================================


class RevisionReminderModel(TrackedBase):
    """
    A revision reminder already emitted.

    Guarantees:
        - ``dedup_key`` is unique; a second insert raises IntegrityError.
    """

    __tablename__ = "tenancy_revision_reminders"

    __table_args__ = (
        UniqueConstraint("dedup_key", name="uq_tenancy_revision_reminder_key"),
        Index("idx_tenancy_revision_reminder_lease", "lease_id"),
    )

    lease_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tenancy_leases.id"),
        nullable=False,
    )
    anchor_date: Mapped[date] = mapped_column(Date, nullable=False)
    reminder_type: Mapped[str] = mapped_column(String(20), nullable=False)
    dedup_key: Mapped[str] = mapped_column(String(100), nullable=False)

    def to_dto(self):
        from tenancy_engines.revision_anchor import ReminderType, RevisionReminder

        return RevisionReminder(
            lease_id=self.lease_id,
            anchor_date=self.anchor_date,
            reminder_type=ReminderType(self.reminder_type),
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "RevisionReminderModel":
        return cls(
            lease_id=dto.lease_id,
            anchor_date=dto.anchor_date,
            reminder_type=_enum_value(dto.reminder_type),
            dedup_key=dto.dedup_key,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<RevisionReminderModel {self.dedup_key}>"
