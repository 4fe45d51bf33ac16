"""
Stripe API adapter for settlement and connected-account operations.

All Stripe calls go through StripeAdapter so timeouts, error translation
and logging are consistent.

Features:
- Configurable timeouts on all API calls
- Automatic error translation to domain exceptions
- Structured logging with timing metrics
- Webhook verification that refuses to run without a signing secret

Configuration (via settings):
- STRIPE_SECRET_KEY: Stripe API secret key
- STRIPE_WEBHOOK_SECRET: Webhook signing secret (required)
- STRIPE_API_TIMEOUT_SECONDS: API call timeout (default: 10)
- STRIPE_MAX_RETRIES: Network retries inside the Stripe client (default: 3)

Usage:
    from payments.adapters import StripeAdapter

    event = StripeAdapter.verify_webhook_signature(request.body, signature)
    account = StripeAdapter.retrieve_account("acct_123")
    url = StripeAdapter.create_account_link("acct_123", collect="currently_due")
    account_id = StripeAdapter.create_connected_account(
        str(org.id), org.contact_email, org.name, mode="deferred"
    )
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import stripe
from django.conf import settings

from payments.exceptions import (
    StripeAPIUnavailableError,
    StripeInvalidAccountError,
    StripeInvalidRequestError,
    StripeRateLimitError,
    StripeTimeoutError,
    WebhookConfigurationError,
    WebhookSignatureError,
)

# =============================================================================
# Data Types
# =============================================================================


@dataclass
class VerifiedEvent:
    """
    A webhook event whose signature has been checked.

    Attributes:
        id: Stripe Event ID (evt_xxx), stable across redeliveries
        type: Event kind (e.g. 'checkout.session.completed')
        data_object: The event's data.object
        payload: Full event dict, stored on WebhookEvent
    """

    id: str
    type: str
    data_object: dict[str, Any]
    payload: dict[str, Any]


@dataclass
class AccountSnapshot:
    """
    Point-in-time view of a connected account.

    Built from either a live Account.retrieve or an account.updated webhook
    payload, so both reconciliation paths see the same shape.
    """

    id: str
    charges_enabled: bool = False
    payouts_enabled: bool = False
    details_submitted: bool = False
    currently_due: list[str] = field(default_factory=list)
    eventually_due: list[str] = field(default_factory=list)
    past_due: list[str] = field(default_factory=list)
    disabled_reason: str | None = None
    business_name: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AccountSnapshot:
        requirements = data.get("requirements") or {}
        business_profile = data.get("business_profile") or {}
        company = data.get("company") or {}
        return cls(
            id=data.get("id", ""),
            charges_enabled=bool(data.get("charges_enabled")),
            payouts_enabled=bool(data.get("payouts_enabled")),
            details_submitted=bool(data.get("details_submitted")),
            currently_due=list(requirements.get("currently_due") or []),
            eventually_due=list(requirements.get("eventually_due") or []),
            past_due=list(requirements.get("past_due") or []),
            disabled_reason=requirements.get("disabled_reason"),
            business_name=business_profile.get("name") or company.get("name"),
            metadata=dict(data.get("metadata") or {}),
        )

    @property
    def outstanding_requirements(self) -> list[str]:
        """Every requirement Stripe still wants, without duplicates."""
        seen: dict[str, None] = {}
        for requirement in (*self.past_due, *self.currently_due, *self.eventually_due):
            seen.setdefault(requirement, None)
        return list(seen)


@dataclass
class BalanceSnapshot:
    """
    Connected account balance in major currency units, keyed by currency.
    """

    available: dict[str, Decimal] = field(default_factory=dict)
    pending: dict[str, Decimal] = field(default_factory=dict)

    def to_dict(self) -> dict[str, dict[str, str]]:
        return {
            "available": {k: str(v) for k, v in self.available.items()},
            "pending": {k: str(v) for k, v in self.pending.items()},
        }


@dataclass
class CheckoutSessionSnapshot:
    """A newly created Checkout session and the URL the customer is sent to."""

    id: str
    url: str


def cents_to_amount(cents: int | None) -> Decimal:
    """Convert Stripe's smallest-unit integer to a two-place Decimal."""
    return (Decimal(cents or 0) / 100).quantize(Decimal("0.01"))


def amount_to_cents(amount: Decimal) -> int:
    """Convert a major-unit Decimal to Stripe's smallest-unit integer."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _sum_by_currency(entries: list[dict[str, Any]]) -> dict[str, Decimal]:
    totals: dict[str, Decimal] = {}
    for entry in entries or []:
        currency = entry.get("currency", "")
        totals[currency] = totals.get(currency, Decimal("0.00")) + cents_to_amount(
            entry.get("amount")
        )
    return totals


# =============================================================================
# Stripe Adapter
# =============================================================================


class StripeAdapter:
    """
    Adapter for Stripe API operations.

    All methods are classmethods - no instance state is maintained.
    Thread-safe for use from Celery workers.
    """

    # =========================================================================
    # Configuration
    # =========================================================================

    @staticmethod
    def _configure_stripe() -> None:
        """Configure Stripe client with API key, timeout and retries."""
        stripe.api_key = settings.STRIPE_SECRET_KEY
        stripe.max_network_retries = settings.STRIPE_MAX_RETRIES
        stripe.default_http_client = stripe.RequestsClient(
            timeout=settings.STRIPE_API_TIMEOUT_SECONDS
        )

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    # =========================================================================
    # Connected Accounts
    # =========================================================================

    @classmethod
    def retrieve_account(cls, account_id: str) -> AccountSnapshot:
        """
        Fetch the current state of a connected account.

        Raises:
            StripeInvalidAccountError: Account doesn't exist or access was revoked
            StripeTimeoutError: Stripe didn't answer within the configured timeout
            StripeAPIUnavailableError: Connection or server error
        """
        cls._configure_stripe()
        log_context = {"operation": "retrieve_account", "account_id": account_id}
        start_time = time.time()

        try:
            account = stripe.Account.retrieve(account_id)
        except Exception as e:
            cls._handle_stripe_error(e, log_context, (time.time() - start_time) * 1000)
            raise

        cls.get_logger().debug(
            "Stripe operation completed",
            extra={**log_context, "duration_ms": (time.time() - start_time) * 1000},
        )
        return AccountSnapshot.from_dict(account.to_dict())

    @classmethod
    def retrieve_balance(cls, account_id: str) -> BalanceSnapshot:
        """
        Fetch the balance of a connected account.

        Raises:
            Same as retrieve_account.
        """
        cls._configure_stripe()
        log_context = {"operation": "retrieve_balance", "account_id": account_id}
        start_time = time.time()

        try:
            balance = stripe.Balance.retrieve(stripe_account=account_id)
        except Exception as e:
            cls._handle_stripe_error(e, log_context, (time.time() - start_time) * 1000)
            raise

        data = balance.to_dict()
        return BalanceSnapshot(
            available=_sum_by_currency(data.get("available")),
            pending=_sum_by_currency(data.get("pending")),
        )

    @classmethod
    def create_connected_account(
        cls,
        organisation_id: str,
        email: str,
        business_name: str,
        mode: str,
    ) -> str:
        """
        Create an Express connected account for an organisation.

        The organisation id and onboarding mode are stored in the account
        metadata, which lets account.updated events find the organisation
        before the account id has been saved.

        Returns:
            The new account id (acct_xxx)

        Raises:
            StripeInvalidRequestError: Stripe rejected the account parameters
            StripeTimeoutError: Stripe didn't answer within the configured timeout
            StripeAPIUnavailableError: Connection or server error
        """
        cls._configure_stripe()
        log_context = {
            "operation": "create_connected_account",
            "organisation_id": organisation_id,
            "onboarding_mode": mode,
        }
        start_time = time.time()

        try:
            account = stripe.Account.create(
                type="express",
                email=email or None,
                country=settings.STRIPE_CONNECT_COUNTRY,
                business_profile={"name": business_name},
                capabilities={
                    "card_payments": {"requested": True},
                    "transfers": {"requested": True},
                },
                metadata={"organisation_id": organisation_id, "onboarding_mode": mode},
            )
        except Exception as e:
            cls._handle_stripe_error(e, log_context, (time.time() - start_time) * 1000)
            raise

        cls.get_logger().info(
            "Created Stripe connected account",
            extra={
                **log_context,
                "account_id": account.id,
                "duration_ms": (time.time() - start_time) * 1000,
            },
        )
        return account.id

    @classmethod
    def create_account_link(
        cls,
        account_id: str,
        collect: str,
        refresh_url: str | None = None,
        return_url: str | None = None,
    ) -> str:
        """
        Create an onboarding-continuation link for a connected account.

        Args:
            account_id: Connected account (acct_xxx)
            collect: 'currently_due' or 'eventually_due'
            refresh_url: Where an expired link sends the user (default: dashboard)
            return_url: Where Stripe returns the user (default: dashboard)

        Returns:
            The hosted onboarding URL
        """
        cls._configure_stripe()
        log_context = {
            "operation": "create_account_link",
            "account_id": account_id,
            "collect": collect,
        }
        dashboard_url = f"{settings.FRONTEND_URL}/organizer-dashboard"
        start_time = time.time()

        try:
            link = stripe.AccountLink.create(
                account=account_id,
                refresh_url=refresh_url or dashboard_url,
                return_url=return_url or dashboard_url,
                type="account_onboarding",
                collect=collect,
            )
        except Exception as e:
            cls._handle_stripe_error(e, log_context, (time.time() - start_time) * 1000)
            raise

        cls.get_logger().info(
            "Created Stripe account link",
            extra={**log_context, "duration_ms": (time.time() - start_time) * 1000},
        )
        return link.url

    # =========================================================================
    # Checkout
    # =========================================================================

    @classmethod
    def create_checkout_session(
        cls,
        line_items: list[dict[str, Any]],
        destination_account_id: str,
        application_fee_amount: int,
        success_url: str,
        cancel_url: str,
        metadata: dict[str, str],
        customer_email: str | None = None,
    ) -> CheckoutSessionSnapshot:
        """
        Create a Checkout session as a destination charge.

        The connected account receives the charge less application_fee_amount
        (in the smallest currency unit), which stays with the platform.

        Raises:
            StripeInvalidAccountError: Destination account missing or revoked
            StripeInvalidRequestError: Stripe rejected the session parameters
            StripeTimeoutError: Stripe didn't answer within the configured timeout
            StripeAPIUnavailableError: Connection or server error
        """
        cls._configure_stripe()
        log_context = {
            "operation": "create_checkout_session",
            "destination": destination_account_id,
            "application_fee_amount": application_fee_amount,
        }
        start_time = time.time()

        try:
            session = stripe.checkout.Session.create(
                mode="payment",
                payment_method_types=["card"],
                line_items=line_items,
                customer_email=customer_email,
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=metadata,
                payment_intent_data={
                    "application_fee_amount": application_fee_amount,
                    "transfer_data": {"destination": destination_account_id},
                    "metadata": metadata,
                },
            )
        except Exception as e:
            cls._handle_stripe_error(e, log_context, (time.time() - start_time) * 1000)
            raise

        cls.get_logger().info(
            "Created Stripe checkout session",
            extra={
                **log_context,
                "session_id": session.id,
                "duration_ms": (time.time() - start_time) * 1000,
            },
        )
        return CheckoutSessionSnapshot(id=session.id, url=session.url)


    # =========================================================================
    # Webhook Verification
    # =========================================================================

    @classmethod
    def verify_webhook_signature(
        cls,
        payload: bytes,
        signature: str | None,
    ) -> VerifiedEvent:
        """
        Verify and parse a Stripe webhook event.

        Args:
            payload: Raw webhook payload bytes
            signature: Stripe-Signature header value

        Returns:
            VerifiedEvent with id, type and data.object

        Raises:
            WebhookConfigurationError: STRIPE_WEBHOOK_SECRET is not set
            WebhookSignatureError: Missing/invalid signature or malformed event
        """
        secret = settings.STRIPE_WEBHOOK_SECRET
        if not secret:
            raise WebhookConfigurationError(
                "STRIPE_WEBHOOK_SECRET is not configured; refusing unsigned webhooks"
            )
        if not signature:
            raise WebhookSignatureError(
                "Missing Stripe-Signature header",
                stripe_code="missing_signature",
            )

        try:
            event = stripe.Webhook.construct_event(payload, signature, secret)
        except stripe.SignatureVerificationError as e:
            raise WebhookSignatureError(
                "Invalid webhook signature",
                stripe_code="signature_verification_failed",
                details={"error": str(e)},
            ) from e
        except ValueError as e:
            raise WebhookSignatureError(
                "Malformed webhook payload",
                stripe_code="invalid_payload",
                details={"error": str(e)},
            ) from e

        data = event.to_dict()
        event_id = data.get("id")
        event_type = data.get("type")
        data_object = (data.get("data") or {}).get("object")
        if not event_id or not event_type or not isinstance(data_object, dict):
            raise WebhookSignatureError(
                "Webhook event is missing id, type or data.object",
                stripe_code="invalid_payload",
            )

        return VerifiedEvent(
            id=event_id,
            type=event_type,
            data_object=data_object,
            payload=data,
        )

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _handle_stripe_error(
        cls,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate Stripe SDK exceptions to domain exceptions.

        Raises:
            StripeInvalidAccountError: Connected account missing or revoked
            StripeInvalidRequestError: Invalid request parameters
            StripeRateLimitError: Rate limited
            StripeTimeoutError: Request timed out
            StripeAPIUnavailableError: API unavailable or unknown failure
        """
        logger = cls.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, stripe.PermissionError):
            logger.error("Stripe denied access to account", extra=log_context)
            raise StripeInvalidAccountError(
                str(error), stripe_code=getattr(error, "code", None)
            ) from error

        if isinstance(error, stripe.InvalidRequestError):
            logger.error(
                "Invalid request to Stripe",
                extra={**log_context, "stripe_code": error.code},
            )
            if error.code == "account_invalid" or "account" in str(error).lower():
                raise StripeInvalidAccountError(
                    str(error), stripe_code=error.code
                ) from error
            raise StripeInvalidRequestError(str(error), stripe_code=error.code) from error

        if isinstance(error, stripe.RateLimitError):
            logger.warning("Rate limited by Stripe", extra=log_context)
            raise StripeRateLimitError(
                "Stripe rate limit exceeded. Please retry.",
                stripe_code="rate_limit",
            ) from error

        if isinstance(error, stripe.APIConnectionError):
            if "timed out" in str(error).lower() or "timeout" in str(error).lower():
                logger.error("Stripe request timed out", extra=log_context)
                raise StripeTimeoutError(
                    "Stripe request timed out",
                    stripe_code="timeout",
                    details={"timeout_seconds": settings.STRIPE_API_TIMEOUT_SECONDS},
                ) from error
            logger.error("Connection error to Stripe", extra=log_context, exc_info=True)
            raise StripeAPIUnavailableError(
                "Could not connect to Stripe. Please retry.",
                stripe_code="api_connection_error",
            ) from error

        if isinstance(error, stripe.AuthenticationError):
            logger.critical(
                "Stripe authentication failed - check API key", extra=log_context
            )
            raise StripeInvalidRequestError(
                "Stripe authentication failed",
                stripe_code="authentication_error",
            ) from error

        if isinstance(error, stripe.APIError):
            logger.error("Stripe API error", extra=log_context, exc_info=True)
            raise StripeAPIUnavailableError(
                "Stripe service error. Please retry.",
                stripe_code="api_error",
            ) from error

        logger.error(
            f"Unexpected error from Stripe: {type(error).__name__}",
            extra=log_context,
            exc_info=True,
        )
        raise StripeAPIUnavailableError(
            f"Unexpected Stripe error: {error}",
            stripe_code="unknown_error",
        ) from error
