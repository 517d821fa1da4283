"""Django ORM models (persistence layer).

These models handle database concerns. Domain logic lives in domain/.
"""

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Q

from registrations.domain.models import (
    DiscountType,
    HousingType,
    PaymentMethod,
    PaymentRecordStatus,
    PaymentStatus,
    PaymentType,
    RegistrationKind,
    RegistrationStatus,
    RoomType,
    UsageLimitType,
)


def _choices(enum) -> list[tuple[str, str]]:
    return [(member.value, member.value.replace("_", " ").title()) for member in enum]


def _price_field() -> models.DecimalField:
    return models.DecimalField(
        max_digits=10, decimal_places=2, null=True, blank=True, validators=[MinValueValidator(0)]
    )


PERCENT_VALIDATORS = [MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("100"))]


class Organization(models.Model):
    """Persistence model for event organizers."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    stripe_account_id = models.CharField(max_length=255, blank=True, null=True)
    stripe_charges_enabled = models.BooleanField(default=False)
    platform_fee_percentage = models.DecimalField(
        max_digits=5, decimal_places=2, null=True, blank=True, validators=PERCENT_VALIDATORS
    )
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return self.name


class Event(models.Model):
    """Persistence model for events."""

    class Status(models.TextChoices):
        DRAFT = "draft"
        PUBLISHED = "published"
        REGISTRATION_CLOSED = "registration_closed"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization = models.ForeignKey(
        Organization, on_delete=models.CASCADE, related_name="events"
    )
    name = models.CharField(max_length=255)
    slug = models.SlugField(max_length=100)
    status = models.CharField(max_length=32, choices=Status.choices, default=Status.PUBLISHED)
    closed_message = models.CharField(max_length=255, blank=True, null=True)
    start_date = models.DateTimeField()
    end_date = models.DateTimeField()
    registration_open_date = models.DateTimeField(blank=True, null=True)
    registration_close_date = models.DateTimeField(blank=True, null=True)
    enable_waitlist = models.BooleanField(default=False)
    coupons_enabled = models.BooleanField(default=False)
    capacity_total = models.PositiveIntegerField(blank=True, null=True)
    capacity_remaining = models.IntegerField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(capacity_remaining__isnull=True) | Q(capacity_remaining__gte=0),
                name="event_capacity_remaining_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return self.name


class EventSettings(models.Model):
    """Check payment details and per-option capacity of an event."""

    event = models.OneToOneField(Event, on_delete=models.CASCADE, related_name="settings")
    check_payable_to = models.CharField(max_length=255, blank=True, null=True)
    check_mailing_address = models.TextField(blank=True, null=True)
    registration_instructions = models.TextField(blank=True, null=True)
    on_campus_capacity = models.PositiveIntegerField(blank=True, null=True)
    on_campus_remaining = models.IntegerField(blank=True, null=True)
    off_campus_capacity = models.PositiveIntegerField(blank=True, null=True)
    off_campus_remaining = models.IntegerField(blank=True, null=True)
    day_pass_capacity = models.PositiveIntegerField(blank=True, null=True)
    day_pass_remaining = models.IntegerField(blank=True, null=True)
    single_room_capacity = models.PositiveIntegerField(blank=True, null=True)
    single_room_remaining = models.IntegerField(blank=True, null=True)
    double_room_capacity = models.PositiveIntegerField(blank=True, null=True)
    double_room_remaining = models.IntegerField(blank=True, null=True)
    triple_room_capacity = models.PositiveIntegerField(blank=True, null=True)
    triple_room_remaining = models.IntegerField(blank=True, null=True)
    quad_room_capacity = models.PositiveIntegerField(blank=True, null=True)
    quad_room_remaining = models.IntegerField(blank=True, null=True)

    def __str__(self) -> str:
        return f"Settings - {self.event.name}"


class EventPricing(models.Model):
    """Pricing table of an event."""

    event = models.OneToOneField(Event, on_delete=models.CASCADE, related_name="pricing")
    youth_early_bird_price = _price_field()
    youth_regular_price = _price_field()
    youth_late_price = _price_field()
    chaperone_early_bird_price = _price_field()
    chaperone_regular_price = _price_field()
    chaperone_late_price = _price_field()
    individual_early_bird_price = _price_field()
    individual_regular_price = _price_field()
    individual_late_price = _price_field()
    clergy_price = _price_field()
    on_campus_youth_price = _price_field()
    off_campus_youth_price = _price_field()
    day_pass_youth_price = _price_field()
    on_campus_chaperone_price = _price_field()
    off_campus_chaperone_price = _price_field()
    day_pass_chaperone_price = _price_field()
    on_campus_individual_price = _price_field()
    off_campus_individual_price = _price_field()
    day_pass_individual_price = _price_field()
    single_room_price = _price_field()
    double_room_price = _price_field()
    triple_room_price = _price_field()
    quad_room_price = _price_field()
    meal_package_price = _price_field()
    early_bird_deadline = models.DateTimeField(blank=True, null=True)
    regular_deadline = models.DateTimeField(blank=True, null=True)
    full_payment_deadline = models.DateTimeField(blank=True, null=True)
    require_full_payment = models.BooleanField(default=False)
    deposit_percentage = models.DecimalField(
        max_digits=5, decimal_places=2, null=True, blank=True, validators=PERCENT_VALIDATORS
    )
    deposit_amount = _price_field()

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=Q(deposit_percentage__isnull=True)
                | Q(deposit_percentage__gte=0, deposit_percentage__lte=100),
                name="pricing_deposit_percentage_range",
            ),
        ]

    def __str__(self) -> str:
        return f"Pricing - {self.event.name}"


class Coupon(models.Model):
    """Persistence model for promotional codes."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="coupons")
    name = models.CharField(max_length=255, blank=True)
    code = models.CharField(max_length=64)
    discount_type = models.CharField(max_length=16, choices=_choices(DiscountType))
    discount_value = models.DecimalField(
        max_digits=10, decimal_places=2, validators=[MinValueValidator(0)]
    )
    usage_limit_type = models.CharField(
        max_length=16,
        choices=_choices(UsageLimitType),
        default=UsageLimitType.UNLIMITED.value,
    )
    max_uses = models.PositiveIntegerField(blank=True, null=True)
    usage_count = models.PositiveIntegerField(default=0)
    restrict_to_email = models.EmailField(blank=True, null=True)
    expiration_date = models.DateTimeField(blank=True, null=True)
    active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["event", "code"], name="coupon_code_unique_per_event"),
            models.CheckConstraint(
                condition=Q(discount_value__gte=0),
                name="coupon_discount_value_non_negative",
            ),
            models.CheckConstraint(
                condition=~Q(discount_type=DiscountType.PERCENTAGE.value) | Q(discount_value__lte=100),
                name="coupon_percentage_at_most_100",
            ),
        ]

    def clean(self):
        if self.discount_type == DiscountType.PERCENTAGE.value and self.discount_value is not None:
            if self.discount_value > 100:
                raise ValidationError({"discount_value": "A percentage discount cannot exceed 100."})

    def save(self, *args, **kwargs):
        self.code = self.code.strip().upper()
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return self.code


class Registration(models.Model):
    """Persistence model for individual and group registrations."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    event = models.ForeignKey(Event, on_delete=models.PROTECT, related_name="registrations")
    organization = models.ForeignKey(
        Organization, on_delete=models.PROTECT, related_name="registrations"
    )
    kind = models.CharField(max_length=16, choices=_choices(RegistrationKind))
    confirmation_code = models.CharField(max_length=32, unique=True)
    group_name = models.CharField(max_length=255, blank=True, null=True)
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    email = models.EmailField()
    phone = models.CharField(max_length=32, blank=True)
    housing_type = models.CharField(max_length=16, choices=_choices(HousingType))
    room_type = models.CharField(max_length=16, choices=_choices(RoomType), blank=True, null=True)
    meal_package = models.BooleanField(default=False)
    total_participants = models.PositiveIntegerField()
    line_items = models.JSONField(default=list)
    total_amount = models.DecimalField(max_digits=10, decimal_places=2)
    registration_status = models.CharField(max_length=20, choices=_choices(RegistrationStatus))
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["event", "registration_status"]),
        ]

    def __str__(self) -> str:
        return f"{self.confirmation_code} - {self.first_name} {self.last_name}"


class PaymentBalance(models.Model):
    """Ledger of amount due, paid and remaining for one registration."""

    registration = models.OneToOneField(
        Registration, on_delete=models.CASCADE, related_name="payment_balance"
    )
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="payment_balances")
    total_amount_due = models.DecimalField(max_digits=10, decimal_places=2)
    deposit_due = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    amount_paid = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    amount_remaining = models.DecimalField(max_digits=10, decimal_places=2)
    late_fees_applied = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    payment_status = models.CharField(max_length=24, choices=_choices(PaymentStatus))
    last_payment_date = models.DateTimeField(blank=True, null=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.registration_id} - {self.payment_status}"


class Payment(models.Model):
    """A single payment attempt against a registration."""

    registration = models.ForeignKey(
        Registration, on_delete=models.CASCADE, related_name="payments"
    )
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="payments")
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    payment_type = models.CharField(max_length=16, choices=_choices(PaymentType))
    payment_method = models.CharField(max_length=16, choices=_choices(PaymentMethod))
    payment_status = models.CharField(max_length=16, choices=_choices(PaymentRecordStatus))
    gateway_intent_id = models.CharField(max_length=255, blank=True, null=True, db_index=True)
    processed_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.payment_method} {self.amount} - {self.payment_status}"


class EmailLog(models.Model):
    """Durable record of every notification attempt."""

    class SentStatus(models.TextChoices):
        SENT = "sent"
        FAILED = "failed"

    organization = models.ForeignKey(
        Organization, on_delete=models.CASCADE, related_name="email_logs"
    )
    event = models.ForeignKey(
        Event, on_delete=models.SET_NULL, null=True, blank=True, related_name="email_logs"
    )
    registration = models.ForeignKey(
        Registration, on_delete=models.SET_NULL, null=True, blank=True, related_name="email_logs"
    )
    recipient_email = models.EmailField()
    email_type = models.CharField(max_length=64)
    subject = models.CharField(max_length=255)
    sent_status = models.CharField(max_length=8, choices=SentStatus.choices)
    error_message = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.email_type} -> {self.recipient_email} ({self.sent_status})"
