"""
Pytest fixtures shared by every payments test package.

Fixtures provide organisations, camps and bookings in the shapes the
settlement and payout tests need, plus a mocked Redis for lock tests.

Usage:
    def test_settles_siblings(sibling_bookings, pending_payment_record):
        SettlementService.settle_checkout_session(pending_payment_record.stripe_checkout_session_id)
"""

from decimal import Decimal

import pytest

from camps.tests.factories import BookingFactory, CampFactory, OrganisationFactory
from payments.tests.factories import PaymentRecordFactory

# =============================================================================
# Organisation Fixtures
# =============================================================================


@pytest.fixture
def organisation(db):
    """Organisation with a connected account that can receive payouts."""
    return OrganisationFactory(payouts_ready=True)


@pytest.fixture
def unconnected_organisation(db):
    """Organisation that hasn't started Stripe onboarding."""
    return OrganisationFactory()


# =============================================================================
# Checkout Fixtures
# =============================================================================


@pytest.fixture
def camp(organisation):
    return CampFactory(organisation=organisation, commission_rate=Decimal("0.1500"))


@pytest.fixture
def checkout_session_id():
    return "cs_test_siblings"


@pytest.fixture
def sibling_bookings(camp, checkout_session_id):
    """Two bookings paid for by one checkout session."""
    return [
        BookingFactory(
            camp=camp,
            stripe_checkout_session_id=checkout_session_id,
            participant_name=name,
            customer_email="parent@example.com",
            amount_due=Decimal("100.00"),
        )
        for name in ("Alice", "Ben")
    ]


@pytest.fixture
def pending_payment_record(db, checkout_session_id):
    return PaymentRecordFactory(
        stripe_checkout_session_id=checkout_session_id,
        amount=Decimal("200.00"),
    )


# =============================================================================
# Infrastructure Mocks
# =============================================================================


@pytest.fixture
def mock_redis(mocker):
    """
    Mock Redis client for distributed lock tests.

    Returns a MagicMock configured for basic lock operations.
    """
    mock_client = mocker.MagicMock()
    mock_client.set.return_value = True
    mock_client.eval.return_value = 1

    mocker.patch(
        "payments.locks.get_redis_connection",
        return_value=mock_client,
    )

    return mock_client
