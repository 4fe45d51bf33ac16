"""
Stripe Connect onboarding for organisations.

start_onboarding() creates the organisation's Express account on first use
and always returns a fresh onboarding link. Calling it again for an
organisation that already has an account only creates a new link, so an
organiser who abandoned onboarding can pick it up where they left off.

Deferred-mode organisations take bookings straight away
(temp_charges_enabled) while Stripe holds their funds until verification
completes. The account status sync turns that grace period off.

Usage:
    from payments.services import OnboardingService

    result = OnboardingService.start_onboarding(organisation_id, mode="deferred")
    if result.success:
        redirect(result.data.account_link_url)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from camps.models import OnboardingMode, OnboardingStep, Organisation
from core.services import BaseService, ServiceResult
from payments.adapters import StripeAdapter
from payments.services.account_status_service import link_collect_for


@dataclass
class OnboardingResult:
    """Connected account and the link that continues its onboarding."""

    account_id: str
    account_link_url: str
    account_created: bool


class OnboardingService(BaseService):
    """Starts and resumes Stripe Connect onboarding."""

    @classmethod
    def start_onboarding(
        cls,
        organisation_id: uuid.UUID | str,
        mode: str = OnboardingMode.STANDARD,
        refresh_url: str | None = None,
        return_url: str | None = None,
    ) -> ServiceResult[OnboardingResult]:
        """
        Create the organisation's connected account if needed and link to it.

        The organisation row stays locked while the account is created, so
        two concurrent requests can't create two accounts. A Stripe failure
        rolls back and leaves the organisation untouched.

        Args:
            organisation_id: Organisation to onboard
            mode: OnboardingMode for a new account. Ignored when the
                organisation already has one; its stored mode is kept.
            refresh_url / return_url: Passed through to the account link

        Returns:
            ServiceResult with OnboardingResult, or ORGANISATION_NOT_FOUND

        Raises:
            StripeError subclasses from StripeAdapter
        """
        logger = cls.get_logger()
        created = False

        with cls.atomic():
            organisation = (
                Organisation.objects.select_for_update().filter(pk=organisation_id).first()
            )
            if organisation is None:
                return ServiceResult.failure(
                    f"Organisation {organisation_id} not found",
                    error_code="ORGANISATION_NOT_FOUND",
                )

            if not organisation.stripe_account_id:
                organisation.stripe_account_id = StripeAdapter.create_connected_account(
                    str(organisation.id),
                    organisation.contact_email,
                    organisation.name,
                    mode=mode,
                )
                organisation.onboarding_mode = mode
                organisation.onboarding_step = OnboardingStep.ACCOUNT_CREATED
                # Funds are held by Stripe until verification completes
                organisation.temp_charges_enabled = mode == OnboardingMode.DEFERRED
                organisation.save(
                    update_fields=[
                        "stripe_account_id",
                        "onboarding_mode",
                        "onboarding_step",
                        "temp_charges_enabled",
                        "updated_at",
                    ]
                )
                created = True
                logger.info(
                    "Connected account created",
                    extra={
                        "organisation_id": str(organisation.id),
                        "account_id": organisation.stripe_account_id,
                        "onboarding_mode": mode,
                    },
                )

        account_link_url = StripeAdapter.create_account_link(
            organisation.stripe_account_id,
            collect=link_collect_for(organisation.onboarding_mode),
            refresh_url=refresh_url,
            return_url=return_url,
        )

        return ServiceResult.success(
            OnboardingResult(
                account_id=organisation.stripe_account_id,
                account_link_url=account_link_url,
                account_created=created,
            )
        )
