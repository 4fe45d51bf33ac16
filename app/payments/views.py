"""
DRF views for payments app.

This module provides API views for:
- Triggering a payout batch
- Inspecting pending payouts and individual payouts
- Refreshing an organisation's Stripe Connect account status
- Starting Stripe Connect onboarding
- Creating checkout sessions for camp bookings

Related files:
    - services/: PayoutBatchService, AccountStatusService, OnboardingService,
      CheckoutService
    - serializers.py: Request/response serializers
    - webhooks/views.py: Stripe webhook endpoint (plain Django view)
    - urls.py: URL routing

Endpoints:
    POST /api/v1/payments/payouts/process/ - Run payout batch (staff)
    GET /api/v1/payments/payouts/upcoming/ - Pending payout summaries (staff)
    GET /api/v1/payments/payouts/<id>/ - Payout with its commissions (staff)
    POST /api/v1/payments/connect/status/ - Refresh account status
    POST /api/v1/payments/connect/accounts/ - Start or resume onboarding
    POST /api/v1/payments/checkout/sessions/ - Create checkout session
    POST /api/v1/payments/webhooks/stripe/ - Stripe webhook endpoint

Security:
    - Payout endpoints are restricted to staff users
    - Account status, onboarding and checkout require authentication
    - Webhook verifies Stripe signature
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from payments.exceptions import (
    StripeError,
    StripeInvalidAccountError,
    StripeInvalidRequestError,
)
from payments.services import (
    AccountStatusService,
    CheckoutService,
    OnboardingService,
    PayoutBatchService,
)

from .serializers import (
    AccountStatusRequestSerializer,
    AccountStatusResponseSerializer,
    CheckoutSessionResponseSerializer,
    ConnectedAccountResponseSerializer,
    CreateCheckoutSessionRequestSerializer,
    CreateConnectedAccountRequestSerializer,
    PayoutDetailSerializer,
    PayoutSummarySerializer,
    ProcessPayoutsRequestSerializer,
)

logger = logging.getLogger(__name__)


class ProcessPayoutsView(APIView):
    """
    Run the payout batch now.

    POST /api/v1/payments/payouts/process/

    Request body:
        {
            "organisationId": "uuid",  (optional)
            "manual": true             (optional, ignores minimum amount)
        }

    Returns:
        {"success": true, "processed": [...], "errors": [...], "skipped": [...],
         "summary": {"totalOrganisations": n, "successfulPayouts": n, "failedPayouts": n}}
    """

    permission_classes = [IsAdminUser]

    @extend_schema(request=ProcessPayoutsRequestSerializer, responses=dict)
    def post(self, request):
        serializer = ProcessPayoutsRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = PayoutBatchService.process_payouts(
            organisation_id=serializer.validated_data.get("organisationId"),
            manual=serializer.validated_data["manual"],
            created_by=request.user.get_username(),
        )
        logger.info(
            "Payout batch triggered",
            extra={
                "user_id": request.user.pk,
                "processed": len(result.processed),
                "failed": len(result.errors),
            },
        )
        return Response(result.to_dict())


class UpcomingPayoutsView(APIView):
    """
    List organisations with pending commissions.

    GET /api/v1/payments/payouts/upcoming/
    """

    permission_classes = [IsAdminUser]

    @extend_schema(responses=PayoutSummarySerializer(many=True))
    def get(self, request):
        summaries = PayoutBatchService.get_pending_payout_summaries()
        return Response(PayoutSummarySerializer(summaries, many=True).data)


class PayoutDetailView(APIView):
    """
    Payout details with included commission records.

    GET /api/v1/payments/payouts/<id>/
    """

    permission_classes = [IsAdminUser]

    @extend_schema(responses=PayoutDetailSerializer)
    def get(self, request, payout_id):
        result = PayoutBatchService.get_payout_details(payout_id)
        if not result.success:
            return Response(result.to_response(), status=status.HTTP_404_NOT_FOUND)
        return Response(PayoutDetailSerializer(result.data).data)


class AccountStatusView(APIView):
    """
    Refresh and return an organisation's Stripe Connect account status.

    POST /api/v1/payments/connect/status/

    Request body:
        {"organisationId": "uuid"}

    Returns:
        Capability flags, outstanding requirements, an onboarding link when
        action is required, the derived onboarding fields and the balance.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        request=AccountStatusRequestSerializer,
        responses=AccountStatusResponseSerializer,
    )
    def post(self, request):
        serializer = AccountStatusRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        organisation_id = serializer.validated_data["organisationId"]

        try:
            result = AccountStatusService.refresh_account_status(organisation_id)
        except StripeInvalidAccountError as e:
            return Response(e.to_dict(), status=status.HTTP_400_BAD_REQUEST)
        except StripeError as e:
            logger.warning(
                "Stripe unavailable during account status refresh",
                extra={"organisation_id": str(organisation_id), "error_code": e.error_code},
            )
            return Response(e.to_dict(), status=status.HTTP_502_BAD_GATEWAY)

        if not result.success:
            http_status = (
                status.HTTP_404_NOT_FOUND
                if result.error_code == "ORGANISATION_NOT_FOUND"
                else status.HTTP_400_BAD_REQUEST
            )
            return Response(result.to_response(), status=http_status)

        return Response(AccountStatusResponseSerializer(result.data).data)


class CreateConnectedAccountView(APIView):
    """
    Start or resume Stripe Connect onboarding for an organisation.

    POST /api/v1/payments/connect/accounts/

    Request body:
        {
            "organisationId": "uuid",
            "mode": "standard" | "deferred",   (optional, default standard)
            "refreshUrl": "https://...",       (optional)
            "returnUrl": "https://..."         (optional)
        }

    Returns:
        {"accountId": "acct_xxx", "accountLinkUrl": "https://...", "accountCreated": true}
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        request=CreateConnectedAccountRequestSerializer,
        responses=ConnectedAccountResponseSerializer,
    )
    def post(self, request):
        serializer = CreateConnectedAccountRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            result = OnboardingService.start_onboarding(
                data["organisationId"],
                mode=data["mode"],
                refresh_url=data.get("refreshUrl"),
                return_url=data.get("returnUrl"),
            )
        except (StripeInvalidAccountError, StripeInvalidRequestError) as e:
            return Response(e.to_dict(), status=status.HTTP_400_BAD_REQUEST)
        except StripeError as e:
            logger.warning(
                "Stripe unavailable during onboarding",
                extra={
                    "organisation_id": str(data["organisationId"]),
                    "error_code": e.error_code,
                },
            )
            return Response(e.to_dict(), status=status.HTTP_502_BAD_GATEWAY)

        if not result.success:
            return Response(result.to_response(), status=status.HTTP_404_NOT_FOUND)

        return Response(ConnectedAccountResponseSerializer(result.data).data)


class CreateCheckoutSessionView(APIView):
    """
    Create a Stripe Checkout session for one or more participants.

    POST /api/v1/payments/checkout/sessions/

    Request body:
        {
            "campId": "uuid",
            "participants": ["Alice", "Ben"],
            "customerEmail": "parent@example.com",
            "customerName": "Sam Parent"        (optional)
        }

    Returns (201):
        {"sessionId": "cs_xxx", "url": "https://checkout.stripe.com/...",
         "bookingIds": [...], "amount": "200.00", "commissionRate": "0.1500",
         "applicationFee": "30.00", "organisationReceives": "170.00"}
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        request=CreateCheckoutSessionRequestSerializer,
        responses={201: CheckoutSessionResponseSerializer},
    )
    def post(self, request):
        serializer = CreateCheckoutSessionRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            result = CheckoutService.create_checkout_session(
                camp_id=data["campId"],
                participants=data["participants"],
                customer_email=data["customerEmail"],
                customer_name=data["customerName"],
            )
        except (StripeInvalidAccountError, StripeInvalidRequestError) as e:
            return Response(e.to_dict(), status=status.HTTP_400_BAD_REQUEST)
        except StripeError as e:
            logger.warning(
                "Stripe unavailable during checkout creation",
                extra={"camp_id": str(data["campId"]), "error_code": e.error_code},
            )
            return Response(e.to_dict(), status=status.HTTP_502_BAD_GATEWAY)

        if not result.success:
            http_status = (
                status.HTTP_404_NOT_FOUND
                if result.error_code == "CAMP_NOT_FOUND"
                else status.HTTP_400_BAD_REQUEST
            )
            return Response(result.to_response(), status=http_status)

        return Response(
            CheckoutSessionResponseSerializer(result.data).data,
            status=status.HTTP_201_CREATED,
        )
