"""
Pytest fixtures for Stripe adapter tests.

Sections:
    - Mock Stripe Objects
    - Error Fixtures
    - Mock Stripe Client Fixtures
"""

from dataclasses import dataclass
from typing import Any
from unittest.mock import patch

import pytest
import stripe


# =============================================================================
# Mock Stripe Objects
# =============================================================================


@dataclass
class MockStripeObject:
    """Mock Stripe API object with to_dict support."""

    data: dict[str, Any]

    def __getattr__(self, name: str) -> Any:
        if name == "data":
            return self.__dict__["data"]
        return self.data.get(name)

    def to_dict(self) -> dict[str, Any]:
        return self.data


@pytest.fixture
def mock_account():
    """Create a mock connected Account response."""

    def _create(
        id: str = "acct_test123",
        charges_enabled: bool = True,
        payouts_enabled: bool = False,
        details_submitted: bool = True,
        currently_due: list | None = None,
        eventually_due: list | None = None,
        disabled_reason: str | None = None,
        business_name: str | None = "Sunny Camps Ltd",
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "account",
                "charges_enabled": charges_enabled,
                "payouts_enabled": payouts_enabled,
                "details_submitted": details_submitted,
                "business_profile": {"name": business_name},
                "requirements": {
                    "currently_due": currently_due or [],
                    "eventually_due": eventually_due or [],
                    "past_due": [],
                    "disabled_reason": disabled_reason,
                },
                "metadata": {},
            }
        )

    return _create


# =============================================================================
# Error Fixtures
# =============================================================================


@pytest.fixture
def invalid_request_error():
    """Create a Stripe InvalidRequestError."""

    def _create(
        message: str = "No such payout: 'po_missing'",
        param: str | None = "id",
        code: str = "resource_missing",
    ) -> stripe.InvalidRequestError:
        return stripe.InvalidRequestError(message=message, param=param, code=code)

    return _create


@pytest.fixture
def rate_limit_error():
    return stripe.RateLimitError(message="Too many requests hit the API too quickly.")


@pytest.fixture
def api_connection_error():
    return stripe.APIConnectionError(message="Could not connect to Stripe.")


@pytest.fixture
def timeout_error():
    return stripe.APIConnectionError(
        message="Request to Stripe timed out. (Read timed out.)"
    )


@pytest.fixture
def api_error():
    return stripe.APIError(message="Something went wrong on Stripe's end.")


@pytest.fixture
def permission_error():
    return stripe.PermissionError(
        message="The provided key does not have access to account 'acct_gone'."
    )


@pytest.fixture
def signature_verification_error():
    return stripe.SignatureVerificationError(
        message="Unable to verify webhook signature.",
        sig_header="bad_signature",
    )


# =============================================================================
# Mock Stripe Client Fixtures
# =============================================================================


@pytest.fixture
def mock_stripe_account(mock_account):
    """Mock stripe.Account API."""
    with patch("stripe.Account") as mock:
        mock.retrieve.return_value = mock_account()
        yield mock


@pytest.fixture
def mock_stripe_balance():
    """Mock stripe.Balance API."""
    with patch("stripe.Balance") as mock:
        mock.retrieve.return_value = MockStripeObject(
            {
                "object": "balance",
                "available": [{"amount": 12550, "currency": "gbp"}],
                "pending": [
                    {"amount": 1000, "currency": "gbp"},
                    {"amount": 250, "currency": "gbp"},
                ],
            }
        )
        yield mock


@pytest.fixture
def mock_stripe_account_link():
    """Mock stripe.AccountLink API."""
    with patch("stripe.AccountLink") as mock:
        mock.create.return_value = MockStripeObject(
            {"object": "account_link", "url": "https://connect.stripe.com/setup/e/abc"}
        )
        yield mock


@pytest.fixture
def mock_stripe_checkout_session():
    """Mock stripe.checkout.Session API."""
    with patch("stripe.checkout.Session") as mock:
        mock.create.return_value = MockStripeObject(
            {
                "id": "cs_test_new",
                "object": "checkout.session",
                "url": "https://checkout.stripe.com/c/pay/cs_test_new",
            }
        )
        yield mock


@pytest.fixture
def mock_stripe_webhook():

    """Mock stripe.Webhook API."""
    with patch("stripe.Webhook") as mock:
        mock.construct_event.return_value = MockStripeObject(
            {
                "id": "evt_test123",
                "type": "checkout.session.completed",
                "data": {
                    "object": {
                        "id": "cs_test123",
                        "object": "checkout.session",
                    }
                },
            }
        )
        yield mock


@pytest.fixture
def mock_stripe_http_client():
    """Mock stripe.RequestsClient."""
    with patch("stripe.RequestsClient") as mock:
        yield mock
