"""
Payment admin configuration.

Registers the settlement models with the Django admin. Records written by
webhooks and the payout batch are read-only here; FSM-managed state can
only change through the pipeline.
"""

from django.contrib import admin

from payments.models import CommissionRecord, PaymentRecord, Payout, WebhookEvent
from payments.state_machines import WebhookEventStatus

__all__ = [
    "CommissionRecordAdmin",
    "PaymentRecordAdmin",
    "PayoutAdmin",
    "WebhookEventAdmin",
]


@admin.register(PaymentRecord)
class PaymentRecordAdmin(admin.ModelAdmin):
    """
    Admin configuration for PaymentRecord.

    Provides visibility into checkout settlement status.
    """

    list_display = [
        "stripe_checkout_session_id",
        "amount",
        "status",
        "payment_method",
        "refund_amount",
        "paid_at",
        "created_at",
    ]
    list_filter = ["status", "payment_method", "created_at"]
    search_fields = ["id", "stripe_checkout_session_id", "stripe_payment_intent_id"]
    readonly_fields = [
        "id",
        "status",
        "paid_at",
        "failed_at",
        "refunded_at",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": (
                    "id",
                    "stripe_checkout_session_id",
                    "stripe_payment_intent_id",
                    "status",
                ),
            },
        ),
        (
            "Amount",
            {
                "fields": ("amount", "refund_amount", "payment_method"),
            },
        ),
        (
            "Status Timestamps",
            {
                "fields": ("paid_at", "failed_at", "refunded_at"),
            },
        ),
        (
            "Metadata",
            {
                "fields": ("metadata",),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for payment records (audit trail)."""
        return False


@admin.register(CommissionRecord)
class CommissionRecordAdmin(admin.ModelAdmin):
    """Commissions are created by settlement and claimed by payouts."""

    list_display = [
        "booking",
        "organisation",
        "camp",
        "commission_rate",
        "booking_amount",
        "commission_amount",
        "payment_status",
        "paid_date",
        "created_at",
    ]
    list_filter = ["payment_status", "created_at"]
    search_fields = ["id", "booking__id", "organisation__name", "camp__name"]
    list_select_related = ["booking", "organisation", "camp"]
    raw_id_fields = ["booking", "camp", "organisation", "payout"]
    date_hierarchy = "created_at"

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


class CommissionRecordInline(admin.TabularInline):
    model = CommissionRecord
    fields = ["booking", "camp", "commission_amount", "payment_status", "created_at"]
    readonly_fields = fields
    extra = 0
    can_delete = False
    show_change_link = True

    def has_add_permission(self, request, obj=None) -> bool:
        return False


@admin.register(Payout)
class PayoutAdmin(admin.ModelAdmin):
    """
    Admin configuration for Payout.

    Provides visibility into payout batches and the commissions they settled.
    """

    list_display = [
        "id",
        "organisation",
        "amount",
        "commission_count",
        "state",
        "created_by",
        "paid_at",
        "created_at",
    ]
    list_filter = ["state", "created_at"]
    search_fields = ["id", "stripe_payout_id", "organisation__name"]
    readonly_fields = [
        "id",
        "organisation",
        "amount",
        "commission_count",
        "commission_record_ids",
        "period_start",
        "period_end",
        "state",
        "created_by",
        "paid_at",
        "failed_at",
        "created_at",
        "updated_at",
    ]
    inlines = [CommissionRecordInline]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "organisation", "state", "created_by"),
            },
        ),
        (
            "Amount",
            {
                "fields": ("amount", "commission_count", "period_start", "period_end"),
            },
        ),
        (
            "Stripe Details",
            {
                "fields": ("stripe_payout_id",),
            },
        ),
        (
            "Status Timestamps",
            {
                "fields": ("paid_at", "failed_at"),
            },
        ),
        (
            "Failure Info",
            {
                "fields": ("failure_reason",),
                "classes": ("collapse",),
            },
        ),
        (
            "Included Commissions",
            {
                "fields": ("commission_record_ids",),
                "classes": ("collapse",),
            },
        ),
    )

    def has_add_permission(self, request) -> bool:
        """Payouts are only created by the payout batch."""
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for payouts (audit trail)."""
        return False


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    Failed events are the dead-letter queue; the retry action re-runs them
    regardless of retry_count.
    """

    list_display = [
        "stripe_event_id",
        "event_type",
        "status",
        "retry_count",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "event_type", "created_at"]
    search_fields = ["stripe_event_id", "event_type", "error_message"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    actions = ["retry_events"]

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]

    def has_add_permission(self, request) -> bool:
        return False

    @admin.action(description="Retry selected failed events")
    def retry_events(self, request, queryset):
        from payments.tasks import process_webhook_event

        failed = queryset.filter(status=WebhookEventStatus.FAILED)
        count = 0
        for webhook_event in failed:
            process_webhook_event.delay(str(webhook_event.id))
            count += 1
        self.message_user(request, f"Queued {count} webhook events for retry.")
