"""
Camps app: organisations (merchants), their camps, and bookings.

Booking and Organisation rows are written by the payments pipeline:
- payments.services.settlement_service confirms bookings on payment
- payments.services.account_status_service syncs connected-account status
"""
