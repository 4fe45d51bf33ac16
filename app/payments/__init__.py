"""
Payments app for Stripe Connect settlement.

This app handles:
- Stripe webhook verification, idempotent recording and routing
- Settlement of completed checkouts (payment records, bookings, commissions)
- Connect account status reconciliation for organisations
- Batching pending commissions into payouts

Related apps:
    - camps: Organisation, Camp, Booking
    - toolkit: EmailService for booking confirmations

Usage:
    from payments.services import PayoutBatchService

    result = PayoutBatchService.process_payouts(manual=True)
"""
