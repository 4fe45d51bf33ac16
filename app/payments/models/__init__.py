"""
Payment domain models.

- PaymentRecord: One row per Stripe Checkout attempt
- CommissionRecord: Platform commission derived once per settled booking
- Payout: Batch of an organisation's commissions settled together
- WebhookEvent: Durable record of every verified Stripe event (dead letters included)
"""

from payments.models.commission_record import CommissionRecord, calculate_commission
from payments.models.payment_record import PaymentRecord
from payments.models.payout import Payout
from payments.models.webhook_event import MAX_WEBHOOK_RETRIES, WebhookEvent

__all__ = [
    "MAX_WEBHOOK_RETRIES",
    "CommissionRecord",
    "PaymentRecord",
    "Payout",
    "WebhookEvent",
    "calculate_commission",
]
