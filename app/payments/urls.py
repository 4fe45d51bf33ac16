"""
URL configuration for the payments app.

Routes:
    - POST /webhooks/stripe/ - Stripe webhook endpoint
    - POST /payouts/process/ - Run payout batch (staff)
    - GET /payouts/upcoming/ - Pending payout summaries (staff)
    - GET /payouts/<id>/ - Payout details (staff)
    - POST /connect/status/ - Refresh Connect account status
    - POST /connect/accounts/ - Start or resume Connect onboarding
    - POST /checkout/sessions/ - Create a checkout session

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.

Usage:
    # In config/urls.py
    api_v1_patterns = [
        path("payments/", include("payments.urls")),
    ]
"""

from django.urls import path

from payments.views import (
    AccountStatusView,
    CreateCheckoutSessionView,
    CreateConnectedAccountView,
    PayoutDetailView,
    ProcessPayoutsView,
    UpcomingPayoutsView,
)
from payments.webhooks.views import stripe_webhook

app_name = "payments"

urlpatterns = [
    # Webhook endpoints
    path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    # Payouts
    path("payouts/process/", ProcessPayoutsView.as_view(), name="process_payouts"),
    path("payouts/upcoming/", UpcomingPayoutsView.as_view(), name="upcoming_payouts"),
    path("payouts/<uuid:payout_id>/", PayoutDetailView.as_view(), name="payout_detail"),
    # Connect accounts
    path("connect/status/", AccountStatusView.as_view(), name="account_status"),
    path(
        "connect/accounts/",
        CreateConnectedAccountView.as_view(),
        name="create_connected_account",
    ),
    # Checkout
    path(
        "checkout/sessions/",
        CreateCheckoutSessionView.as_view(),
        name="create_checkout_session",
    ),
]
