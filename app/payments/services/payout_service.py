"""
Payout batching: settle accumulated commissions per organisation.

Funds reach organisations automatically through Stripe Connect, so a
payout here is a bookkeeping batch: it claims an organisation's pending
CommissionRecords, records their total, and marks them paid.

The claim is race-safe. Commissions are locked oldest-first with
select_for_update and then marked paid with a conditional update
("where payment_status = pending"). If fewer rows change than were summed,
someone else claimed them and the organisation's unit is rolled back.
A commission therefore appears in at most one payout.

Usage:
    from payments.services import PayoutBatchService

    result = PayoutBatchService.process_payouts()
    result.to_dict()
    # {"success": True, "processed": [...], "errors": [...], "skipped": [...],
    #  "summary": {"totalOrganisations": 3, "successfulPayouts": 2, "failedPayouts": 1}}
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from django.db.models import Count, Max, Min, Sum
from django.utils import timezone

from camps.models import Organisation
from core.services import BaseService, ServiceResult
from payments.exceptions import CommissionConflictError
from payments.models import CommissionRecord, Payout
from payments.models.commission_record import CENTS
from payments.state_machines import CommissionStatus

if TYPE_CHECKING:
    from typing import Any


NOT_SET_UP_FOR_PAYOUTS = "Organisation not set up for payouts"


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class PayoutSummary:
    """Pending commission totals for one organisation."""

    organisation_id: uuid.UUID
    organisation_name: str
    total_pending_amount: Decimal
    pending_count: int
    earliest_commission_date: datetime
    latest_commission_date: datetime


@dataclass
class PayoutBatchResult:
    """
    Outcome of a payout batch run.

    processed, errors and skipped hold one entry per organisation, in the
    camelCase shape returned by the payout API.
    """

    processed: list[dict[str, Any]] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)
    skipped: list[dict[str, Any]] = field(default_factory=list)
    total_organisations: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "processed": self.processed,
            "errors": self.errors,
            "skipped": self.skipped,
            "summary": {
                "totalOrganisations": self.total_organisations,
                "successfulPayouts": len(self.processed),
                "failedPayouts": len(self.errors),
            },
        }


# =============================================================================
# Payout Batch Service
# =============================================================================


class PayoutBatchService(BaseService):
    """
    Creates payouts from pending commissions, one organisation at a time.

    Organisations are processed sequentially, each in its own transaction.
    An exception for one organisation is recorded in the error list and the
    loop moves on.
    """

    @classmethod
    def get_pending_payout_summaries(
        cls, organisation_id: uuid.UUID | str | None = None
    ) -> list[PayoutSummary]:
        """
        Aggregate pending commissions per organisation.

        Only organisations with a positive pending total are returned,
        ordered by organisation name.
        """
        queryset = CommissionRecord.objects.pending()
        if organisation_id:
            queryset = queryset.filter(organisation_id=organisation_id)

        rows = (
            queryset.values("organisation_id", "organisation__name")
            .annotate(
                total=Sum("commission_amount"),
                count=Count("id"),
                earliest=Min("created_at"),
                latest=Max("created_at"),
            )
            .filter(total__gt=0)
            .order_by("organisation__name", "organisation_id")
        )

        return [
            PayoutSummary(
                organisation_id=row["organisation_id"],
                organisation_name=row["organisation__name"],
                total_pending_amount=Decimal(row["total"]).quantize(CENTS),
                pending_count=row["count"],
                earliest_commission_date=row["earliest"],
                latest_commission_date=row["latest"],
            )
            for row in rows
        ]

    @classmethod
    def process_payouts(
        cls,
        organisation_id: uuid.UUID | str | None = None,
        manual: bool = False,
        created_by: str | None = None,
    ) -> PayoutBatchResult:
        """
        Run a payout batch.

        Args:
            organisation_id: Only process this organisation
            manual: Ignore minimum_payout_amount
            created_by: Recorded on each Payout ("system" when omitted)

        Returns:
            PayoutBatchResult with per-organisation outcomes
        """
        logger = cls.get_logger()
        summaries = cls.get_pending_payout_summaries(organisation_id)
        result = PayoutBatchResult(total_organisations=len(summaries))

        logger.info(
            "Starting payout batch",
            extra={
                "organisation_count": len(summaries),
                "organisation_id": str(organisation_id) if organisation_id else None,
                "manual": manual,
            },
        )

        for summary in summaries:
            entry = {
                "organisationId": str(summary.organisation_id),
                "organisationName": summary.organisation_name,
            }
            try:
                cls._process_organisation(
                    summary, manual, created_by or "system", entry, result
                )
            except Exception as e:
                logger.error(
                    "Payout failed for organisation",
                    extra={"organisation_id": str(summary.organisation_id)},
                    exc_info=True,
                )
                result.errors.append({**entry, "error": str(e)})

        logger.info(
            "Payout batch finished",
            extra={
                "processed": len(result.processed),
                "failed": len(result.errors),
                "skipped": len(result.skipped),
            },
        )
        return result

    @classmethod
    def _process_organisation(
        cls,
        summary: PayoutSummary,
        manual: bool,
        created_by: str,
        entry: dict[str, Any],
        result: PayoutBatchResult,
    ) -> None:
        organisation = Organisation.objects.filter(pk=summary.organisation_id).first()
        if organisation is None or not organisation.can_receive_payouts:
            result.errors.append({**entry, "error": NOT_SET_UP_FOR_PAYOUTS})
            return

        minimum = organisation.minimum_payout_amount or Decimal("0.00")
        if summary.total_pending_amount < minimum and not manual:
            cls.get_logger().info(
                f"Skipping {organisation.name}: amount below minimum",
                extra={
                    "organisation_id": str(organisation.id),
                    "amount": str(summary.total_pending_amount),
                    "minimum": str(minimum),
                },
            )
            result.skipped.append(
                {
                    **entry,
                    "amount": str(summary.total_pending_amount),
                    "minimumAmount": str(minimum),
                    "reason": "below_minimum",
                }
            )
            return

        with cls.atomic():
            commissions = list(
                CommissionRecord.objects.select_for_update()
                .pending_for(organisation)
            )
            total = sum(
                (c.commission_amount for c in commissions), Decimal("0.00")
            ).quantize(CENTS)
            if not commissions or total <= 0:
                result.skipped.append(
                    {**entry, "amount": str(total), "reason": "nothing_pending"}
                )
                return

            payout = cls._create_payout(organisation, commissions, total, created_by)

        result.processed.append(
            {
                **entry,
                "amount": str(payout.amount),
                "commissionCount": payout.commission_count,
                "payoutId": str(payout.id),
            }
        )
        cls.get_logger().info(
            f"Payout processed for {organisation.name}",
            extra={
                "organisation_id": str(organisation.id),
                "payout_id": str(payout.id),
                "amount": str(payout.amount),
                "commission_count": payout.commission_count,
            },
        )

    @classmethod
    def _create_payout(
        cls,
        organisation: Organisation,
        commissions: list[CommissionRecord],
        total: Decimal,
        created_by: str,
    ) -> Payout:
        """
        Create the payout and claim its commissions. Must run in a transaction.

        Raises:
            CommissionConflictError: Some commissions were no longer pending
        """
        now = timezone.now()
        commission_ids = [c.id for c in commissions]

        payout = Payout.objects.create(
            organisation=organisation,
            amount=total,
            commission_count=len(commissions),
            commission_record_ids=[str(pk) for pk in commission_ids],
            period_start=commissions[0].created_at,
            period_end=now,
            created_by=created_by,
        )

        claimed = CommissionRecord.objects.filter(
            id__in=commission_ids,
            payment_status=CommissionStatus.PENDING,
        ).update(
            payment_status=CommissionStatus.PAID,
            paid_date=now,
            payout=payout,
            updated_at=now,
        )
        if claimed != len(commission_ids):
            raise CommissionConflictError(
                f"Expected to claim {len(commission_ids)} commissions, claimed {claimed}",
                details={
                    "organisation_id": str(organisation.id),
                    "expected": len(commission_ids),
                    "claimed": claimed,
                },
            )

        # Funds move through Stripe Connect, so the batch is complete here
        payout.complete()
        payout.save()
        return payout

    @classmethod
    def get_payout_details(cls, payout_id: uuid.UUID | str) -> ServiceResult[Payout]:
        """Fetch a payout with its organisation and commission records."""
        payout = (
            Payout.objects.select_related("organisation")
            .prefetch_related("commissions__booking", "commissions__camp")
            .filter(pk=payout_id)
            .first()
        )
        if payout is None:
            return ServiceResult.failure(
                f"Payout {payout_id} not found", error_code="PAYOUT_NOT_FOUND"
            )
        return ServiceResult.success(payout)
