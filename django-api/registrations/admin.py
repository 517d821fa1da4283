from django.contrib import admin

from registrations.models import (
    Coupon,
    EmailLog,
    Event,
    EventPricing,
    EventSettings,
    Organization,
    Payment,
    PaymentBalance,
    Registration,
)


class EventPricingInline(admin.StackedInline):
    model = EventPricing
    extra = 0


class EventSettingsInline(admin.StackedInline):
    model = EventSettings
    extra = 0


class CouponInline(admin.TabularInline):
    model = Coupon
    extra = 0
    readonly_fields = ["usage_count"]


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    readonly_fields = ["gateway_intent_id", "processed_at"]


@admin.register(Organization)
class OrganizationAdmin(admin.ModelAdmin):
    list_display = ["name", "stripe_account_id", "stripe_charges_enabled", "platform_fee_percentage"]
    search_fields = ["name"]


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ["name", "organization", "status", "start_date", "capacity_remaining"]
    list_filter = ["status", "organization"]
    search_fields = ["name", "slug"]
    inlines = [EventPricingInline, EventSettingsInline, CouponInline]


@admin.register(Registration)
class RegistrationAdmin(admin.ModelAdmin):
    list_display = [
        "confirmation_code",
        "last_name",
        "event",
        "kind",
        "total_participants",
        "total_amount",
        "registration_status",
    ]
    list_filter = ["registration_status", "kind", "event"]
    search_fields = ["confirmation_code", "email", "last_name", "group_name"]
    readonly_fields = ["confirmation_code", "line_items"]
    inlines = [PaymentInline]


@admin.register(PaymentBalance)
class PaymentBalanceAdmin(admin.ModelAdmin):
    list_display = ["registration", "total_amount_due", "amount_paid", "amount_remaining", "payment_status"]
    list_filter = ["payment_status", "event"]


@admin.register(EmailLog)
class EmailLogAdmin(admin.ModelAdmin):
    list_display = ["email_type", "recipient_email", "sent_status", "created_at"]
    list_filter = ["sent_status", "email_type"]
