"""
Camps admin configuration.

Connected-account fields on Organisation are read-only here: they are a
snapshot of Stripe and are overwritten on every account status sync.
"""

from django.contrib import admin

from camps.models import Booking, Camp, Organisation


@admin.register(Organisation)
class OrganisationAdmin(admin.ModelAdmin):
    list_display = [
        "name",
        "stripe_account_id",
        "onboarding_mode",
        "onboarding_step",
        "payout_enabled",
        "charges_enabled",
        "restrictions_active",
    ]
    list_filter = ["onboarding_mode", "onboarding_step", "payout_enabled"]
    search_fields = ["name", "stripe_account_id", "contact_email"]
    readonly_fields = [
        "id",
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
        "created_at",
        "updated_at",
    ]

    fieldsets = (
        (None, {"fields": ("id", "name", "contact_email")}),
        (
            "Payouts",
            {"fields": ("minimum_payout_amount", "payout_schedule")},
        ),
        (
            "Stripe Connect",
            {
                "fields": (
                    "stripe_account_id",
                    "onboarding_mode",
                    "onboarding_step",
                    "payout_enabled",
                    "charges_enabled",
                    "details_submitted",
                    "temp_charges_enabled",
                    "payouts_enabled_at",
                    "restrictions_active",
                    "restriction_reason",
                    "requirements_currently_due",
                    "requirements_eventually_due",
                    "status_synced_at",
                ),
            },
        ),
        (
            "Timestamps",
            {"fields": ("created_at", "updated_at"), "classes": ("collapse",)},
        ),
    )


@admin.register(Camp)
class CampAdmin(admin.ModelAdmin):
    list_display = [
        "name",
        "organisation",
        "price",
        "commission_rate",
        "start_date",
        "end_date",
    ]
    list_filter = ["organisation"]
    search_fields = ["name", "organisation__name"]
    readonly_fields = ["id", "created_at", "updated_at"]


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "camp",
        "customer_email",
        "amount_due",
        "amount_paid",
        "payment_status",
        "status",
        "confirmation_date",
    ]
    list_filter = ["payment_status", "status"]
    search_fields = ["id", "stripe_checkout_session_id", "customer_email"]
    readonly_fields = [
        "id",
        "amount_paid",
        "payment_status",
        "confirmation_date",
        "created_at",
        "updated_at",
    ]
    raw_id_fields = ["camp"]
