"""
Pytest fixtures for the tenancy engine test suite.

Provides:
- Structured logging configuration and a ``captured_logs`` fixture
- An in-memory SQLite engine with the full schema, per test
- A deterministic clock, a recording dispatcher and a fake e-signature
  provider
- Lease builders
"""

import json
import logging
from datetime import UTC, date, datetime
from decimal import Decimal
from io import StringIO
from uuid import UUID, uuid4

import pytest

from tenancy_engines.revision_anchor import RevisionAnchor
from tenancy_kernel.db.engine import (
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from tenancy_kernel.domain.clock import DeterministicClock
from tenancy_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from tenancy_modules._orm_registry import create_all_tables
from tenancy_modules.lease.models import Lease, ProviderStatus, SignatureMethod

# Test actor ID for all test operations
TEST_ACTOR_ID = UUID("00000000-0000-4000-a000-000000000001")

SQLITE_URL = "sqlite://"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture tenancy_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            compute_revision(...)
            logs = captured_logs()
            assert any(r["message"] == "LEASE_ENGINE_TRACE" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("tenancy_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def db_engine():
    """Fresh in-memory SQLite database with every table created."""
    engine = init_engine_from_url(SQLITE_URL)
    create_all_tables()
    yield engine
    drop_tables()
    reset_engine()


@pytest.fixture
def session_factory(db_engine):
    return get_session_factory()


@pytest.fixture
def session(session_factory):
    s = session_factory()
    yield s
    s.rollback()
    s.close()


# =============================================================================
# Collaborators
# =============================================================================


@pytest.fixture
def clock():
    return DeterministicClock(datetime(2024, 3, 1, 9, 0, 0, tzinfo=UTC))


class RecordingDispatcher:
    """NotificationDispatcher that keeps every intent it receives."""

    def __init__(self, fail_on=None):
        self.intents = []
        self.fail_on = set(fail_on or ())

    def dispatch(self, intent):
        if intent.intent_type in self.fail_on:
            raise RuntimeError(f"delivery failed for {intent.intent_type.value}")
        self.intents.append(intent)

    def of_type(self, intent_type):
        return [i for i in self.intents if i.intent_type == intent_type]


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


class FakeSignatureProvider:
    """In-memory SignatureProvider with scripted envelope statuses."""

    def __init__(self):
        self.envelopes = {}
        self.statuses = {}
        self._counter = 0

    def create_envelope(self, document, signers):
        self._counter += 1
        envelope_id = f"env-{self._counter:03d}"
        self.envelopes[envelope_id] = (document, tuple(signers))
        self.statuses[envelope_id] = ProviderStatus.SENT
        return envelope_id

    def get_status(self, envelope_id):
        return self.statuses[envelope_id]

    def download_signed(self, envelope_id):
        return b"signed:" + self.envelopes[envelope_id][0]


@pytest.fixture
def signature_provider():
    return FakeSignatureProvider()


# =============================================================================
# Builders
# =============================================================================


def make_lease(**overrides) -> Lease:
    fields = dict(
        owner_id=uuid4(),
        tenant_id=uuid4(),
        property_id=uuid4(),
        start_date=date(2023, 3, 1),
        monthly_rent=Decimal("600.00"),
        charges_provision=Decimal("50.00"),
        deposit_amount=Decimal("1000.00"),
        signature_method=SignatureMethod.MANUAL_PHYSICAL,
        revision_anchor=RevisionAnchor(3, 1),
    )
    fields.update(overrides)
    return Lease(**fields)


@pytest.fixture
def lease_factory():
    return make_lease
