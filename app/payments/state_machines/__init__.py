"""
State enums for payment models.
"""

from payments.state_machines.states import (
    CommissionStatus,
    PaymentRecordStatus,
    PayoutState,
    WebhookEventStatus,
)

__all__ = [
    "CommissionStatus",
    "PaymentRecordStatus",
    "PayoutState",
    "WebhookEventStatus",
]
