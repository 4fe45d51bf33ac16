"""
Payment-specific exceptions.

Exception Hierarchy:
    PaymentError (base for payment domain)
    └── PaymentProcessingError - Payment processing failures
        └── StripeError - Base for all Stripe errors
            ├── StripeInvalidAccountError - Connected account missing or revoked (permanent)
            ├── StripeInvalidRequestError - Invalid request params (permanent)
            │   └── WebhookSignatureError - Webhook signature or payload rejected
            ├── StripeRateLimitError - Rate limited (transient, retry)
            ├── StripeAPIUnavailableError - API unavailable (transient, retry)
            └── StripeTimeoutError - Request timeout (transient, retry)

    WebhookConfigurationError - No signing secret configured (inherits ConfigurationError)
    CommissionConflictError - Commissions claimed concurrently (inherits ConflictError)
    LockAcquisitionError - Distributed lock not acquired (inherits ConflictError)

Usage:
    from payments.exceptions import StripeTimeoutError

    try:
        account = StripeAdapter.retrieve_account(organisation.stripe_account_id)
    except StripeTimeoutError:
        # No local state has been written yet; the unit of work fails as a whole
        raise
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError, ConfigurationError, ConflictError

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """Base exception for payment domain errors."""

    default_error_code: str = "PAYMENT_ERROR"


class PaymentProcessingError(PaymentError):
    """Raised when payment processing fails."""

    default_error_code: str = "PAYMENT_PROCESSING_ERROR"


# =============================================================================
# Stripe-Specific Exceptions
# =============================================================================


class StripeError(PaymentProcessingError):
    """
    Base exception for all Stripe-related errors.

    Attributes:
        stripe_code: Stripe's internal error code
        is_retryable: True for transient errors that are safe to retry
            with backoff, False for permanent ones
    """

    default_error_code: str = "STRIPE_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        stripe_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if stripe_code:
            details["stripe_code"] = stripe_code
        super().__init__(message, error_code=error_code, details=details)
        self.stripe_code = stripe_code


# -----------------------------------------------------------------------------
# Permanent Errors (do not retry)
# -----------------------------------------------------------------------------


class StripeInvalidAccountError(StripeError):
    """
    Connected account is missing, deauthorized or otherwise unusable.

    The organisation must re-run onboarding; retrying won't help.
    """

    default_error_code: str = "INVALID_STRIPE_ACCOUNT"
    is_retryable: bool = False


class StripeInvalidRequestError(StripeError):
    """Invalid parameters were supplied to Stripe's API."""

    default_error_code: str = "INVALID_STRIPE_REQUEST"
    is_retryable: bool = False


class WebhookSignatureError(StripeInvalidRequestError):
    """
    Webhook signature mismatch or unparseable webhook body.

    The request is rejected at the boundary with HTTP 400 and no state is
    touched. Stripe may redeliver, which is harmless.
    """

    default_error_code: str = "INVALID_WEBHOOK_SIGNATURE"


# -----------------------------------------------------------------------------
# Transient Errors (safe to retry)
# -----------------------------------------------------------------------------


class StripeRateLimitError(StripeError):
    """Stripe rate limit exceeded; retry with exponential backoff."""

    default_error_code: str = "STRIPE_RATE_LIMITED"
    is_retryable: bool = True


class StripeAPIUnavailableError(StripeError):
    """Stripe API is temporarily unavailable (5xx or connection error)."""

    default_error_code: str = "STRIPE_UNAVAILABLE"
    is_retryable: bool = True


class StripeTimeoutError(StripeError):
    """
    Request to Stripe timed out.

    The callers fetch everything they need before writing, so a timeout
    never leaves a partially reconciled record behind.
    """

    default_error_code: str = "STRIPE_TIMEOUT"
    is_retryable: bool = True


# =============================================================================
# Configuration & Concurrency Exceptions
# =============================================================================


class WebhookConfigurationError(ConfigurationError):
    """
    Raised when STRIPE_WEBHOOK_SECRET is not configured.

    Unsigned payloads are never trusted, so every webhook is refused with
    HTTP 500 until the secret is set.
    """

    default_error_code: str = "WEBHOOK_SECRET_NOT_CONFIGURED"


class CommissionConflictError(ConflictError):
    """
    Raised when commissions selected for a payout were claimed in the meantime.

    The conditional "mark paid where still pending" update touched fewer rows
    than were summed, so the organisation's payout is rolled back.
    """

    default_error_code: str = "COMMISSION_CONFLICT"


class LockAcquisitionError(ConflictError):
    """
    Raised when a distributed lock cannot be acquired.

    Example:
        lock = DistributedLock("payouts:batch", ttl=600, blocking=False)
        if not lock.acquire():
            raise LockAcquisitionError(
                "Payout batch already running",
                details={"key": "payouts:batch"},
            )
    """

    default_error_code: str = "LOCK_ACQUISITION_FAILED"


__all__ = [
    "CommissionConflictError",
    "LockAcquisitionError",
    "PaymentError",
    "PaymentNotFoundError",
    "PaymentProcessingError",
    "StripeAPIUnavailableError",
    "StripeError",
    "StripeInvalidAccountError",
    "StripeInvalidRequestError",
    "StripeRateLimitError",
    "StripeTimeoutError",
    "WebhookConfigurationError",
    "WebhookSignatureError",
]
