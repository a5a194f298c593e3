"""
Shared fixtures for module tests.

Provides the lifecycle service wired to the in-memory database, the
deterministic clock, the recording dispatcher and the fake signature
provider, plus a builder for leases created through the service.

DESIGN RULE: Every fixture is opt-in. No autouse.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

import pytest

from tenancy_engines.revision_anchor import RevisionAnchor
from tenancy_kernel.domain.parties import PartyRole
from tenancy_modules.lease.config import LeaseConfig
from tenancy_modules.lease.models import SignatureMethod
from tenancy_modules.lease.service import LeaseLifecycleService
from tests.conftest import TEST_ACTOR_ID

# ---------------------------------------------------------------------------
# Deterministic party IDs
# ---------------------------------------------------------------------------

TEST_OWNER_ID = UUID("00000000-0000-4000-a000-000000000010")
TEST_TENANT_ID = UUID("00000000-0000-4000-a000-000000000020")
TEST_PROPERTY_ID = UUID("00000000-0000-4000-a000-000000000030")


@pytest.fixture
def lease_config():
    return LeaseConfig.with_defaults()


@pytest.fixture
def lease_service(session_factory, clock, dispatcher, signature_provider, lease_config):
    """LeaseLifecycleService over the in-memory database."""
    return LeaseLifecycleService(
        session_factory,
        clock=clock,
        config=lease_config,
        dispatcher=dispatcher,
        signature_provider=signature_provider,
    )


@pytest.fixture
def create_lease(lease_service):
    """Create a draft lease through the service; keyword overrides apply."""

    def _create(**overrides):
        fields = dict(
            owner_id=TEST_OWNER_ID,
            tenant_id=TEST_TENANT_ID,
            property_id=TEST_PROPERTY_ID,
            start_date=date(2023, 3, 1),
            monthly_rent=Decimal("600.00"),
            signature_method=SignatureMethod.MANUAL_PHYSICAL,
            actor_id=TEST_ACTOR_ID,
            charges_provision=Decimal("50.00"),
            deposit_amount=Decimal("1000.00"),
            revision_anchor=RevisionAnchor(3, 1),
        )
        fields.update(overrides)
        return lease_service.create_lease(**fields)

    return _create


@pytest.fixture
def active_lease(lease_service, create_lease):
    """A lease signed on paper by both parties."""

    def _activate(**overrides):
        lease = create_lease(**overrides)
        method = lease.signature_method
        lease_service.sign(lease.id, PartyRole.OWNER, method, TEST_ACTOR_ID, "scan-owner.pdf")
        result = lease_service.sign(
            lease.id, PartyRole.TENANT, method, TEST_ACTOR_ID, "scan-tenant.pdf",
        )
        return result.lease

    return _activate
