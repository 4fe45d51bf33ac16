"""
Reconciliation of Stripe Connect account status into Organisation.

Stripe is the source of truth for an organisation's connected account.
Every sync overwrites the local snapshot with what Stripe reports right
now (last write wins) and re-derives the onboarding fields from it:

    onboarding_step       priority rule over outstanding requirements
    temp_charges_enabled  deferred-mode grace period, permanently off once
                          payouts have ever been enabled
    restrictions_*        charges disabled by Stripe

Two entry points feed the same apply step:
    - refresh_account_status(): active path, fetches account + balance
    - apply_account_webhook(): passive path, uses the account.updated payload

Usage:
    from payments.services import AccountStatusService

    result = AccountStatusService.refresh_account_status(organisation_id)
    if result.success and result.data.requires_action:
        redirect(result.data.action_url)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.utils import timezone

from camps.models import OnboardingMode, OnboardingStep, Organisation
from core.services import BaseService, ServiceResult
from payments.adapters import AccountSnapshot, BalanceSnapshot, StripeAdapter

if TYPE_CHECKING:
    from collections.abc import Iterable
    from typing import Any


# Requirement fragments that mean Stripe still needs to verify a person
IDENTITY_REQUIREMENT_MARKERS = (
    "verification.document",
    "verification.additional_document",
    "id_number",
    "ssn_last_4",
    ".dob.",
    ".first_name",
    ".last_name",
)

BANK_REQUIREMENT_MARKERS = ("external_account",)

# Organisation fields written by every sync
SNAPSHOT_FIELDS = [
    "stripe_account_id",
    "payout_enabled",
    "charges_enabled",
    "details_submitted",
    "requirements_currently_due",
    "requirements_eventually_due",
    "onboarding_step",
    "temp_charges_enabled",
    "payouts_enabled_at",
    "restrictions_active",
    "restriction_reason",
    "status_synced_at",
    "updated_at",
]


# =============================================================================
# Derivation Rules
# =============================================================================


def _mentions(requirements: Iterable[str], markers: tuple[str, ...]) -> bool:
    return any(marker in requirement for requirement in requirements for marker in markers)


def link_collect_for(mode: str) -> str:
    """Deferred onboarding only asks for what Stripe needs right now."""
    return "currently_due" if mode == OnboardingMode.DEFERRED else "eventually_due"


def derive_onboarding_step(
    details_submitted: bool,
    payouts_enabled: bool,
    requirements: list[str],
    business_name: str | None = None,
) -> str:
    """
    Resolve the onboarding step from Stripe's view of the account.

    First match wins:
        1. VERIFICATION_COMPLETE - details submitted and payouts enabled,
           whatever else is still listed
        2. IDENTITY_PENDING - an identity requirement is outstanding
        3. BANK_ACCOUNT_PENDING - a bank account is outstanding
        4. BUSINESS_INFO_PENDING - business named, other requirements remain
        5. ACCOUNT_CREATED
    """
    if details_submitted and payouts_enabled:
        return OnboardingStep.VERIFICATION_COMPLETE
    if _mentions(requirements, IDENTITY_REQUIREMENT_MARKERS):
        return OnboardingStep.IDENTITY_PENDING
    if _mentions(requirements, BANK_REQUIREMENT_MARKERS):
        return OnboardingStep.BANK_ACCOUNT_PENDING
    if business_name and requirements:
        return OnboardingStep.BUSINESS_INFO_PENDING
    return OnboardingStep.ACCOUNT_CREATED


def compute_temp_charges_enabled(
    onboarding_mode: str,
    payouts_enabled: bool,
    payouts_ever_enabled: bool,
) -> bool:
    """
    Deferred-mode grace period.

    True only for deferred organisations that have never had payouts
    enabled. Once payouts have been enabled the grace period is over for
    good, even if a later read reports payouts disabled again.
    """
    return (
        onboarding_mode == OnboardingMode.DEFERRED
        and not payouts_enabled
        and not payouts_ever_enabled
    )


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class AccountStatusResult:
    """
    Outcome of an active account status refresh.

    Attributes:
        organisation: The organisation after the snapshot was applied
        account: What Stripe reported
        balance: Connected account balance
        requires_action: Details missing or requirements outstanding
        action_url: Onboarding-continuation link when action is required
    """

    organisation: Organisation
    account: AccountSnapshot
    balance: BalanceSnapshot | None = None
    requires_action: bool = False
    action_url: str | None = None


# =============================================================================
# Account Status Service
# =============================================================================


class AccountStatusService(BaseService):
    """
    Overwrites Organisation connected-account fields with Stripe's state.
    """

    @classmethod
    def apply_account_snapshot(
        cls,
        organisation: Organisation,
        account: AccountSnapshot,
    ) -> Organisation:
        """
        Write an account snapshot onto the organisation.

        The row is re-read under a lock so payouts_enabled_at, the one
        field that is never overwritten, can't be lost to a racing sync.

        Returns:
            The updated Organisation
        """
        now = timezone.now()

        with cls.atomic():
            org = Organisation.objects.select_for_update().get(pk=organisation.pk)

            if not org.stripe_account_id:
                org.stripe_account_id = account.id

            if account.payouts_enabled and org.payouts_enabled_at is None:
                org.payouts_enabled_at = now

            org.payout_enabled = account.payouts_enabled
            org.charges_enabled = account.charges_enabled
            org.details_submitted = account.details_submitted
            org.requirements_currently_due = sorted(
                {*account.past_due, *account.currently_due}
            )
            org.requirements_eventually_due = list(account.eventually_due)
            org.onboarding_step = derive_onboarding_step(
                details_submitted=account.details_submitted,
                payouts_enabled=account.payouts_enabled,
                requirements=account.outstanding_requirements,
                business_name=account.business_name,
            )
            org.temp_charges_enabled = compute_temp_charges_enabled(
                org.onboarding_mode,
                payouts_enabled=account.payouts_enabled,
                payouts_ever_enabled=org.payouts_enabled_at is not None,
            )
            org.restrictions_active = not account.charges_enabled
            org.restriction_reason = (
                (account.disabled_reason or "charges_disabled")
                if org.restrictions_active
                else ""
            )
            org.status_synced_at = now
            org.save(update_fields=SNAPSHOT_FIELDS)

        cls.get_logger().info(
            "Account status applied",
            extra={
                "organisation_id": str(org.id),
                "account_id": account.id,
                "onboarding_step": org.onboarding_step,
                "payouts_enabled": org.payout_enabled,
                "charges_enabled": org.charges_enabled,
                "temp_charges_enabled": org.temp_charges_enabled,
            },
        )
        return org

    @classmethod
    def refresh_account_status(
        cls, organisation_id: uuid.UUID | str, create_link: bool = True
    ) -> ServiceResult[AccountStatusResult]:
        """
        Fetch the live account state from Stripe and apply it.

        All Stripe reads (account, balance, continuation link) happen before
        anything is written, so a timeout leaves the organisation untouched.

        Args:
            organisation_id: Organisation to refresh
            create_link: Create a continuation link when action is required.
                Background syncs pass False; nobody is waiting to follow it.

        Returns:
            ServiceResult with AccountStatusResult, or a failure when the
            organisation or its Stripe account doesn't exist

        Raises:
            StripeTimeoutError, StripeAPIUnavailableError, StripeRateLimitError:
                Transient Stripe failures, nothing written
            StripeInvalidAccountError: Account missing or access revoked
        """
        organisation = Organisation.objects.filter(pk=organisation_id).first()
        if organisation is None:
            return ServiceResult.failure(
                f"Organisation {organisation_id} not found",
                error_code="ORGANISATION_NOT_FOUND",
            )
        if not organisation.stripe_account_id:
            return ServiceResult.failure(
                "Stripe account not found for this organisation",
                error_code="STRIPE_ACCOUNT_NOT_FOUND",
            )

        account_id = organisation.stripe_account_id
        account = StripeAdapter.retrieve_account(account_id)
        balance = StripeAdapter.retrieve_balance(account_id)

        requires_action = not account.details_submitted or bool(
            account.outstanding_requirements
        )
        action_url = None
        if requires_action and create_link:
            action_url = StripeAdapter.create_account_link(
                account_id, collect=link_collect_for(organisation.onboarding_mode)
            )

        organisation = cls.apply_account_snapshot(organisation, account)

        return ServiceResult.success(
            AccountStatusResult(
                organisation=organisation,
                account=account,
                balance=balance,
                requires_action=requires_action,
                action_url=action_url,
            )
        )

    @classmethod
    def apply_account_webhook(
        cls, account_data: dict[str, Any]
    ) -> ServiceResult[Organisation | None]:
        """
        Apply an account.updated payload without calling Stripe.

        The organisation is found by stripe_account_id, falling back to
        metadata.organisation_id for accounts created before the id was
        stored. Unknown accounts are acknowledged with data=None.
        """
        account = AccountSnapshot.from_dict(account_data)
        organisation = cls._find_organisation(account)

        if organisation is None:
            cls.get_logger().info(
                "account.updated for unknown account, ignoring",
                extra={"account_id": account.id},
            )
            return ServiceResult.success(None)

        return ServiceResult.success(cls.apply_account_snapshot(organisation, account))

    @staticmethod
    def _find_organisation(account: AccountSnapshot) -> Organisation | None:
        if account.id:
            organisation = Organisation.objects.filter(
                stripe_account_id=account.id
            ).first()
            if organisation is not None:
                return organisation

        organisation_id = account.metadata.get("organisation_id")
        if not organisation_id:
            return None
        try:
            organisation_uuid = uuid.UUID(str(organisation_id))
        except ValueError:
            return None
        organisation = Organisation.objects.filter(pk=organisation_uuid).first()
        # Already linked to a different account
        if organisation is not None and organisation.stripe_account_id not in (
            None,
            "",
            account.id,
        ):
            return None
        return organisation
