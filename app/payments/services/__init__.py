"""
Payment services for the settlement pipeline.

This module provides:
- SettlementService: Settles completed checkout sessions (records, bookings, commissions)
- AccountStatusService: Reconciles Stripe Connect account status into Organisation
- PayoutBatchService: Batches pending commissions into payouts per organisation
- OnboardingService: Creates connected accounts and onboarding links
- CheckoutService: Creates checkout sessions with their pending bookings

Usage:
    from payments.services import SettlementService

    result = SettlementService.settle_checkout_session(session_id="cs_123")

    from payments.services import AccountStatusService

    result = AccountStatusService.refresh_account_status(organisation_id)

    from payments.services import PayoutBatchService

    result = PayoutBatchService.process_payouts(manual=False)
"""

from payments.services.account_status_service import (
    AccountStatusResult,
    AccountStatusService,
    compute_temp_charges_enabled,
    derive_onboarding_step,
)
from payments.services.checkout_service import CheckoutResult, CheckoutService
from payments.services.onboarding_service import OnboardingResult, OnboardingService
from payments.services.payout_service import (
    PayoutBatchResult,
    PayoutBatchService,
    PayoutSummary,
)
from payments.services.settlement_service import SettlementResult, SettlementService

__all__ = [
    "AccountStatusResult",
    "AccountStatusService",
    "CheckoutResult",
    "CheckoutService",
    "OnboardingResult",
    "OnboardingService",
    "PayoutBatchResult",
    "PayoutBatchService",
    "PayoutSummary",
    "SettlementResult",
    "SettlementService",
    "compute_temp_charges_enabled",
    "derive_onboarding_step",
]
