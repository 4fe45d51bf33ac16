"""
Tests for Stripe adapter.

Tests cover:
- Webhook verification (missing secret, missing/invalid signature, malformed events)
- Account and balance snapshots
- Account link, connected account and checkout session creation
- Error translation for each exception type
"""

from decimal import Decimal

import pytest
import stripe
from django.test import override_settings

from payments.adapters import (
    AccountSnapshot,
    CheckoutSessionSnapshot,
    StripeAdapter,
    VerifiedEvent,
    amount_to_cents,
)
from payments.exceptions import (
    StripeAPIUnavailableError,
    StripeInvalidAccountError,
    StripeInvalidRequestError,
    StripeRateLimitError,
    StripeTimeoutError,
    WebhookConfigurationError,
    WebhookSignatureError,
)

from .conftest import MockStripeObject


# =============================================================================
# Webhook Verification Tests
# =============================================================================


class TestStripeAdapterVerifyWebhookSignature:
    """Tests for StripeAdapter.verify_webhook_signature."""

    @pytest.fixture(autouse=True)
    def webhook_secret(self, settings):
        settings.STRIPE_WEBHOOK_SECRET = "whsec_test"

    def test_verify_webhook_signature_success(self, mock_stripe_webhook):
        """Should verify and return a typed event."""
        result = StripeAdapter.verify_webhook_signature(
            payload=b'{"id": "evt_test"}',
            signature="test_signature",
        )

        assert isinstance(result, VerifiedEvent)
        assert result.id == "evt_test123"
        assert result.type == "checkout.session.completed"
        assert result.data_object["id"] == "cs_test123"
        mock_stripe_webhook.construct_event.assert_called_once_with(
            b'{"id": "evt_test"}', "test_signature", "whsec_test"
        )

    def test_invalid_signature(self, mock_stripe_webhook, signature_verification_error):
        """Should raise WebhookSignatureError for invalid signature."""
        mock_stripe_webhook.construct_event.side_effect = signature_verification_error

        with pytest.raises(WebhookSignatureError) as exc_info:
            StripeAdapter.verify_webhook_signature(
                payload=b"tampered",
                signature="bad_signature",
            )

        assert "signature" in str(exc_info.value).lower()
        assert isinstance(exc_info.value, StripeInvalidRequestError)

    def test_malformed_json(self, mock_stripe_webhook):
        """Unparseable bodies are rejected like bad signatures."""
        mock_stripe_webhook.construct_event.side_effect = ValueError("Expecting value")

        with pytest.raises(WebhookSignatureError) as exc_info:
            StripeAdapter.verify_webhook_signature(b"not json", "t=1,v1=abc")

        assert exc_info.value.stripe_code == "invalid_payload"

    def test_missing_signature_header(self, mock_stripe_webhook):
        with pytest.raises(WebhookSignatureError):
            StripeAdapter.verify_webhook_signature(b"{}", None)

        mock_stripe_webhook.construct_event.assert_not_called()

    def test_event_without_type_rejected(self, mock_stripe_webhook):
        mock_stripe_webhook.construct_event.return_value = MockStripeObject(
            {"id": "evt_1", "data": {"object": {}}}
        )

        with pytest.raises(WebhookSignatureError):
            StripeAdapter.verify_webhook_signature(b"{}", "sig")

    @override_settings(STRIPE_WEBHOOK_SECRET="")
    def test_missing_secret_is_configuration_error(self, mock_stripe_webhook):
        """Unsigned payloads are never parsed when no secret is configured."""
        with pytest.raises(WebhookConfigurationError):
            StripeAdapter.verify_webhook_signature(b'{"id": "evt_1"}', "sig")

        mock_stripe_webhook.construct_event.assert_not_called()


# =============================================================================
# Connected Account Tests
# =============================================================================


class TestStripeAdapterRetrieveAccount:
    @pytest.fixture(autouse=True)
    def setup_mocks(self, mock_stripe_http_client):
        pass

    def test_retrieve_account_snapshot(self, mock_stripe_account, mock_account):
        mock_stripe_account.retrieve.return_value = mock_account(
            currently_due=["individual.verification.document"],
            eventually_due=["external_account"],
        )

        snapshot = StripeAdapter.retrieve_account("acct_test123")

        assert snapshot.id == "acct_test123"
        assert snapshot.charges_enabled is True
        assert snapshot.payouts_enabled is False
        assert snapshot.business_name == "Sunny Camps Ltd"
        assert snapshot.outstanding_requirements == [
            "individual.verification.document",
            "external_account",
        ]
        mock_stripe_account.retrieve.assert_called_once_with("acct_test123")

    def test_timeout_raises_domain_timeout(self, mock_stripe_account, timeout_error):
        mock_stripe_account.retrieve.side_effect = timeout_error

        with pytest.raises(StripeTimeoutError) as exc_info:
            StripeAdapter.retrieve_account("acct_test123")

        assert exc_info.value.is_retryable is True

    def test_permission_error_is_invalid_account(
        self, mock_stripe_account, permission_error
    ):
        mock_stripe_account.retrieve.side_effect = permission_error

        with pytest.raises(StripeInvalidAccountError):
            StripeAdapter.retrieve_account("acct_gone")

    @override_settings(STRIPE_SECRET_KEY="sk_test_custom", STRIPE_API_TIMEOUT_SECONDS=30)
    def test_uses_settings(self, mock_stripe_account, mock_stripe_http_client):
        StripeAdapter.retrieve_account("acct_test123")

        assert stripe.api_key == "sk_test_custom"
        mock_stripe_http_client.assert_called_with(timeout=30)


class TestStripeAdapterRetrieveBalance:
    @pytest.fixture(autouse=True)
    def setup_mocks(self, mock_stripe_http_client):
        pass

    def test_balance_converted_to_major_units(self, mock_stripe_balance):
        balance = StripeAdapter.retrieve_balance("acct_test123")

        assert balance.available == {"gbp": Decimal("125.50")}
        assert balance.pending == {"gbp": Decimal("12.50")}
        assert balance.to_dict() == {
            "available": {"gbp": "125.50"},
            "pending": {"gbp": "12.50"},
        }
        mock_stripe_balance.retrieve.assert_called_once_with(
            stripe_account="acct_test123"
        )


class TestStripeAdapterCreateAccountLink:
    @pytest.fixture(autouse=True)
    def setup_mocks(self, mock_stripe_http_client):
        pass

    @override_settings(FRONTEND_URL="https://camps.example.com")
    def test_create_account_link(self, mock_stripe_account_link):
        url = StripeAdapter.create_account_link("acct_test123", collect="currently_due")

        assert url == "https://connect.stripe.com/setup/e/abc"
        mock_stripe_account_link.create.assert_called_once_with(
            account="acct_test123",
            refresh_url="https://camps.example.com/organizer-dashboard",
            return_url="https://camps.example.com/organizer-dashboard",
            type="account_onboarding",
            collect="currently_due",
        )


    def test_custom_return_urls(self, mock_stripe_account_link):
        StripeAdapter.create_account_link(
            "acct_test123",
            collect="eventually_due",
            refresh_url="https://camps.example.com/retry",
            return_url="https://camps.example.com/done",
        )

        kwargs = mock_stripe_account_link.create.call_args.kwargs
        assert kwargs["refresh_url"] == "https://camps.example.com/retry"
        assert kwargs["return_url"] == "https://camps.example.com/done"


class TestStripeAdapterCreateConnectedAccount:
    @pytest.fixture(autouse=True)
    def setup_mocks(self, mock_stripe_http_client):
        pass

    @override_settings(STRIPE_CONNECT_COUNTRY="GB")
    def test_creates_express_account(self, mock_stripe_account, mock_account):
        mock_stripe_account.create.return_value = mock_account(id="acct_new")

        account_id = StripeAdapter.create_connected_account(
            "org-1", "hello@sunny.example.com", "Sunny Camps", mode="deferred"
        )

        assert account_id == "acct_new"
        mock_stripe_account.create.assert_called_once_with(
            type="express",
            email="hello@sunny.example.com",
            country="GB",
            business_profile={"name": "Sunny Camps"},
            capabilities={
                "card_payments": {"requested": True},
                "transfers": {"requested": True},
            },
            metadata={"organisation_id": "org-1", "onboarding_mode": "deferred"},
        )

    def test_timeout_raises_domain_timeout(self, mock_stripe_account, timeout_error):
        mock_stripe_account.create.side_effect = timeout_error

        with pytest.raises(StripeTimeoutError):
            StripeAdapter.create_connected_account("org-1", "", "Sunny Camps", mode="standard")


class TestStripeAdapterCreateCheckoutSession:
    @pytest.fixture(autouse=True)
    def setup_mocks(self, mock_stripe_http_client):
        pass

    def test_destination_charge_with_application_fee(self, mock_stripe_checkout_session):
        line_items = [
            {
                "price_data": {
                    "currency": "gbp",
                    "product_data": {"name": "Forest Camp"},
                    "unit_amount": 10000,
                },
                "quantity": 1,
            }
        ]

        session = StripeAdapter.create_checkout_session(
            line_items=line_items,
            destination_account_id="acct_dest",
            application_fee_amount=1500,
            success_url="https://camps.example.com/ok",
            cancel_url="https://camps.example.com/cancel",
            metadata={"campId": "camp-1"},
            customer_email="parent@example.com",
        )

        assert session == CheckoutSessionSnapshot(
            id="cs_test_new", url="https://checkout.stripe.com/c/pay/cs_test_new"
        )
        kwargs = mock_stripe_checkout_session.create.call_args.kwargs
        assert kwargs["mode"] == "payment"
        assert kwargs["line_items"] == line_items
        assert kwargs["customer_email"] == "parent@example.com"
        assert kwargs["payment_intent_data"] == {
            "application_fee_amount": 1500,
            "transfer_data": {"destination": "acct_dest"},
            "metadata": {"campId": "camp-1"},
        }

    def test_revoked_destination_is_invalid_account(
        self, mock_stripe_checkout_session, permission_error
    ):
        mock_stripe_checkout_session.create.side_effect = permission_error

        with pytest.raises(StripeInvalidAccountError):
            StripeAdapter.create_checkout_session(
                line_items=[],
                destination_account_id="acct_gone",
                application_fee_amount=0,
                success_url="https://camps.example.com/ok",
                cancel_url="https://camps.example.com/cancel",
                metadata={},
            )


class TestAmountToCents:
    @pytest.mark.parametrize(
        "amount,cents",
        [("100.00", 10000), ("0.01", 1), ("12.345", 1235), ("0", 0)],
    )
    def test_converts_to_smallest_unit(self, amount, cents):
        assert amount_to_cents(Decimal(amount)) == cents


# =============================================================================
# Error Translation Tests
# =============================================================================



class TestStripeAdapterErrorTranslation:
    """Tests for Stripe error translation to domain exceptions."""

    @pytest.fixture(autouse=True)
    def setup_mocks(self, mock_stripe_http_client):
        pass

    def test_invalid_request_error(self, mock_stripe_account, invalid_request_error):
        mock_stripe_account.retrieve.side_effect = invalid_request_error()

        with pytest.raises(StripeInvalidRequestError) as exc_info:
            StripeAdapter.retrieve_account("acct_test123")

        assert exc_info.value.stripe_code == "resource_missing"
        assert exc_info.value.is_retryable is False

    def test_account_invalid_request(self, mock_stripe_account, invalid_request_error):
        mock_stripe_account.retrieve.side_effect = invalid_request_error(
            message="No such account: 'acct_missing'", code="account_invalid"
        )

        with pytest.raises(StripeInvalidAccountError):
            StripeAdapter.retrieve_account("acct_missing")

    def test_rate_limit_error(self, mock_stripe_account, rate_limit_error):
        mock_stripe_account.retrieve.side_effect = rate_limit_error

        with pytest.raises(StripeRateLimitError) as exc_info:
            StripeAdapter.retrieve_account("acct_test123")

        assert exc_info.value.is_retryable is True

    def test_api_connection_error(self, mock_stripe_account, api_connection_error):
        mock_stripe_account.retrieve.side_effect = api_connection_error

        with pytest.raises(StripeAPIUnavailableError) as exc_info:
            StripeAdapter.retrieve_account("acct_test123")

        assert exc_info.value.stripe_code == "api_connection_error"

    def test_api_error(self, mock_stripe_account, api_error):
        mock_stripe_account.retrieve.side_effect = api_error

        with pytest.raises(StripeAPIUnavailableError):
            StripeAdapter.retrieve_account("acct_test123")

    def test_unknown_error(self, mock_stripe_account):
        mock_stripe_account.retrieve.side_effect = RuntimeError("boom")

        with pytest.raises(StripeAPIUnavailableError) as exc_info:
            StripeAdapter.retrieve_account("acct_test123")

        assert exc_info.value.stripe_code == "unknown_error"


class TestAccountSnapshot:
    def test_from_webhook_payload_uses_company_name_fallback(self):
        snapshot = AccountSnapshot.from_dict(
            {
                "id": "acct_1",
                "payouts_enabled": True,
                "company": {"name": "River Adventures"},
                "requirements": None,
            }
        )

        assert snapshot.business_name == "River Adventures"
        assert snapshot.payouts_enabled is True
        assert snapshot.outstanding_requirements == []
