"""
Property-based tests for the lease lifecycle and the temporal engines.

Properties:
- next_status is total and terminal states are fixed points
- A lease is active exactly when both parties signed, in any order
- Indexation with an unchanged index leaves the rent unchanged
- Occupation days stay within the year and the percentage within 0..100
- Calendar-month arithmetic never overshoots the target month
- Deposit refund plus retention equals the deposit
- Regularized charges split exactly into recoverable and non-recoverable
"""

from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from uuid import uuid4

from hypothesis import given, settings
from hypothesis import strategies as st

from tenancy_engines.deposit import compute_settlement
from tenancy_engines.notice import compute_move_out_date
from tenancy_engines.proration import exact_prorata, get_days_in_year
from tenancy_engines.regularization import ChargeLine, compute_regularization
from tenancy_engines.rent_revision import compute_revision
from tenancy_kernel.domain.parties import PartyRole
from tenancy_modules.lease.models import LeaseStatus, SignatureMethod
from tenancy_modules.lease.state_machine import LeaseStateMachine, next_status
from tests.conftest import make_lease

AT = datetime(2024, 3, 1, 9, 0, 0, tzinfo=UTC)

TERMINAL = {LeaseStatus.ACTIVE, LeaseStatus.EXPIRED, LeaseStatus.TERMINATED, LeaseStatus.RENEWED}

statuses = st.one_of(st.sampled_from(list(LeaseStatus)), st.text(max_size=20))
signers = st.one_of(st.sampled_from(list(PartyRole)), st.text(max_size=10))
amounts = st.decimals(
    min_value=Decimal("0.01"), max_value=Decimal("100000"), places=2,
    allow_nan=False, allow_infinity=False,
)
index_values = st.decimals(
    min_value=Decimal("50"), max_value=Decimal("300"), places=2,
    allow_nan=False, allow_infinity=False,
)
dates = st.dates(min_value=date(1990, 1, 1), max_value=date(2090, 12, 31))
years = st.integers(min_value=1990, max_value=2090)


class TestStateMachineProperties:

    @given(current=statuses, signer=signers)
    @settings(max_examples=300, deadline=None)
    def test_next_status_is_total(self, current, signer):
        result = next_status(current, signer)
        assert result == current or isinstance(result, LeaseStatus)
        assert next_status(current, signer) == result

    @given(status=st.sampled_from(sorted(TERMINAL)), signer=st.sampled_from(list(PartyRole)))
    def test_terminal_states_are_fixed_points(self, status, signer):
        assert next_status(status, signer) is status

    @given(sequence=st.lists(st.sampled_from(list(PartyRole)), max_size=6))
    @settings(max_examples=100, deadline=None)
    def test_active_exactly_when_both_signed(self, sequence):
        machine = LeaseStateMachine()
        lease = make_lease(signature_method=SignatureMethod.MANUAL_REMOTE)
        for party in sequence:
            lease = machine.apply_signature(
                lease, party, SignatureMethod.MANUAL_REMOTE, f"{party.value}.pdf", AT,
            ).lease

        assert (lease.status is LeaseStatus.ACTIVE) == (set(sequence) == set(PartyRole))
        if not sequence:
            assert lease.status is LeaseStatus.DRAFT


class TestRevisionProperties:

    @given(rent=amounts, index=index_values)
    @settings(deadline=None)
    def test_unchanged_index_is_identity(self, rent, index):
        revision = compute_revision(rent, index, index)
        assert revision.new_rent == rent
        assert revision.increase == 0
        assert revision.percentage == 0

    @given(rent=amounts, reference=index_values, new=index_values)
    @settings(deadline=None)
    def test_rent_follows_index_direction(self, rent, reference, new):
        revision = compute_revision(rent, reference, new)
        if new >= reference:
            assert revision.new_rent >= rent
        else:
            assert revision.new_rent <= rent


class TestProrationProperties:

    @given(start=dates, length=st.one_of(st.none(), st.integers(0, 3000)), year=years)
    @settings(max_examples=300, deadline=None)
    def test_occupation_within_year(self, start, length, year):
        end = None if length is None else start + timedelta(days=length)
        prorata = exact_prorata(start, end, year)

        assert prorata.total_days == get_days_in_year(year)
        assert 0 <= prorata.occupation_days <= prorata.total_days
        assert Decimal("0") <= prorata.percentage <= Decimal("100")
        if not prorata.period.is_empty:
            assert prorata.period.start.year == year
            assert prorata.period.end.year == year
            assert prorata.period.start >= start
            assert end is None or prorata.period.end <= end


class TestNoticeProperties:

    @given(notice_date=dates, months=st.integers(min_value=1, max_value=36))
    def test_move_out_lands_in_target_month(self, notice_date, months):
        move_out = compute_move_out_date(notice_date, months)
        year, month = divmod(notice_date.year * 12 + notice_date.month - 1 + months, 12)
        assert (move_out.year, move_out.month) == (year, month + 1)
        assert move_out.day <= notice_date.day
        assert move_out > notice_date


class TestMoneyProperties:

    @given(deposit=amounts, share=st.decimals(min_value=0, max_value=1, places=2))
    @settings(deadline=None)
    def test_refund_plus_retention_is_deposit(self, deposit, share):
        retained = (deposit * share).quantize(Decimal("0.01"))
        settlement = compute_settlement(uuid4(), deposit, retained, [], date(2024, 6, 15))
        assert settlement.refund_amount + settlement.retained_amount == deposit
        assert settlement.refund_amount >= 0

    @given(
        start=dates,
        year=years,
        charges=st.lists(st.tuples(amounts, st.booleans()), max_size=5),
    )
    @settings(deadline=None)
    def test_charges_split_exactly(self, start, year, charges):
        lines = [
            ChargeLine(f"line-{i}", amount, recoverable)
            for i, (amount, recoverable) in enumerate(charges)
        ]
        result = compute_regularization(uuid4(), year, start, None, Decimal("0"), lines)

        total = sum((amount for amount, _ in charges), Decimal("0"))
        assert result.total_real_charges == total
        assert abs(result.recoverable_charges + result.non_recoverable_charges - total) < Decimal("1e-15")
        assert result.recoverable_charges <= total
