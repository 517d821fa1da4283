"""Django ORM implementations of the registration stores.

Counters are changed with single UPDATE statements built from F() and
Greatest(), filtered on the condition that must still hold, so concurrent
requests can never both take the last seat or the last coupon use.
"""

from contextlib import AbstractContextManager
from decimal import Decimal

from django.conf import settings
from django.core.cache import cache
from django.db import IntegrityError, transaction
from django.db.models import F, Q, Value
from django.db.models.functions import Greatest
from django.utils import timezone

from registrations import models
from registrations.domain import (
    Coupon,
    CouponId,
    EventId,
    EventPricingPolicy,
    EventProfile,
    Money,
    Percentage,
    PaymentBalance,
    Registration,
    RegistrationId,
)
from registrations.domain.coupons import normalize_code
from registrations.domain.errors import CodeCollisionError
from registrations.domain.models import (
    CapacityCounter,
    DepositPolicy,
    DiscountType,
    HousingType,
    NewRegistration,
    OptionCounters,
    ParticipantCategory,
    Payment,
    PaymentMethod,
    PaymentRecordStatus,
    PaymentStatus,
    PaymentType,
    PayoutAccount,
    Registrant,
    RegistrationKind,
    RegistrationStatus,
    RegistrationWindow,
    RoomType,
    TierPrices,
    UsageLimitType,
)
from registrations.stores.interfaces import (
    CapacityStore,
    CodeStore,
    CouponStore,
    EventStore,
    NotificationLogEntry,
    NotificationLogStore,
    PaymentLedgerStore,
    PricingPolicyStore,
    RegistrationStore,
    UnitOfWork,
)

PRICING_CACHE_TIMEOUT = 300


def pricing_cache_key(event_id) -> str:
    return f"registrations:pricing:{event_id}"


def _money(value: Decimal | None) -> Money | None:
    return Money(value) if value is not None else None


def _housing_field(housing_type: HousingType) -> str:
    return housing_type.value


def _room_field(room_type: RoomType) -> str:
    return f"{room_type.value}_room"


class DjangoUnitOfWork(UnitOfWork):
    def atomic(self) -> AbstractContextManager:
        return transaction.atomic()


class DjangoEventStore(EventStore):
    """PostgreSQL-backed event store using Django ORM."""

    def get_event(self, event_id: EventId) -> EventProfile | None:
        event = (
            models.Event.objects.select_related("organization")
            .filter(pk=event_id.value)
            .first()
        )
        if event is None:
            return None
        event_settings = models.EventSettings.objects.filter(event=event).first()
        organization = event.organization
        return EventProfile(
            id=event_id,
            name=event.name,
            slug=event.slug,
            organization_id=str(organization.id),
            organization_name=organization.name,
            window=RegistrationWindow(
                start_date=event.start_date,
                end_date=event.end_date,
                opens_at=event.registration_open_date,
                closes_at=event.registration_close_date,
                manually_closed=event.status == models.Event.Status.REGISTRATION_CLOSED,
                closed_message=event.closed_message,
                waitlist_enabled=event.enable_waitlist,
            ),
            payout=PayoutAccount(
                account_id=organization.stripe_account_id,
                charges_enabled=organization.stripe_charges_enabled,
                platform_fee_percent=organization.platform_fee_percentage,
            ),
            coupons_enabled=event.coupons_enabled,
            check_payable_to=event_settings.check_payable_to if event_settings else None,
            check_mailing_address=(
                event_settings.check_mailing_address if event_settings else None
            ),
            check_instructions_text=(
                event_settings.registration_instructions if event_settings else None
            ),
        )


class DjangoPricingPolicyStore(PricingPolicyStore):
    """Pricing snapshots, cached until the event pricing changes."""

    def get(self, event_id: EventId) -> EventPricingPolicy | None:
        key = pricing_cache_key(event_id)
        policy = cache.get(key)
        if policy is not None:
            return policy

        pricing = models.EventPricing.objects.filter(event_id=event_id.value).first()
        if pricing is None:
            return None
        policy = self._to_domain(event_id, pricing)
        cache.set(
            key,
            policy,
            getattr(settings, "REGISTRATION_PRICING_CACHE_TIMEOUT", PRICING_CACHE_TIMEOUT),
        )
        return policy

    def _to_domain(self, event_id: EventId, p: models.EventPricing) -> EventPricingPolicy:
        category_prices = {
            ParticipantCategory.YOUTH: TierPrices(
                early_bird=_money(p.youth_early_bird_price),
                regular=_money(p.youth_regular_price),
                late=_money(p.youth_late_price),
            ),
            ParticipantCategory.CHAPERONE: TierPrices(
                early_bird=_money(p.chaperone_early_bird_price),
                regular=_money(p.chaperone_regular_price),
                late=_money(p.chaperone_late_price),
            ),
            ParticipantCategory.INDIVIDUAL: TierPrices(
                early_bird=_money(p.individual_early_bird_price),
                regular=_money(p.individual_regular_price),
                late=_money(p.individual_late_price),
            ),
            ParticipantCategory.CLERGY: TierPrices(regular=_money(p.clergy_price)),
        }

        housing_prices = {}
        for category in (
            ParticipantCategory.YOUTH,
            ParticipantCategory.CHAPERONE,
            ParticipantCategory.INDIVIDUAL,
        ):
            for housing_type in HousingType:
                price = getattr(p, f"{housing_type.value}_{category.value}_price")
                if price is not None:
                    housing_prices[(category, housing_type)] = Money(price)

        room_prices = {}
        for room_type in RoomType:
            price = getattr(p, f"{room_type.value}_room_price")
            if price is not None:
                room_prices[room_type] = Money(price)

        return EventPricingPolicy(
            event_id=event_id,
            category_prices=category_prices,
            early_bird_deadline=p.early_bird_deadline,
            regular_deadline=p.regular_deadline,
            housing_prices=housing_prices,
            room_prices=room_prices,
            meal_package_price=_money(p.meal_package_price),
            deposit=DepositPolicy(
                require_full_payment=p.require_full_payment,
                deposit_percentage=(
                    Percentage(p.deposit_percentage)
                    if p.deposit_percentage is not None
                    else None
                ),
                deposit_fixed_amount=_money(p.deposit_amount),
            ),
        )


class DjangoCouponStore(CouponStore):
    def find(self, event_id: EventId, code: str) -> Coupon | None:
        row = models.Coupon.objects.filter(
            event_id=event_id.value, code=normalize_code(code)
        ).first()
        if row is None:
            return None
        return Coupon(
            id=CouponId(row.id),
            event_id=event_id,
            code=row.code,
            active=row.active,
            discount_type=DiscountType(row.discount_type),
            discount_value=row.discount_value,
            usage_limit_type=UsageLimitType(row.usage_limit_type),
            usage_count=row.usage_count,
            max_uses=row.max_uses,
            expiration_date=row.expiration_date,
            restrict_to_email=row.restrict_to_email,
        )

    def increment_usage(self, coupon_id: CouponId) -> bool:
        uses_left = (
            Q(usage_limit_type=UsageLimitType.UNLIMITED.value)
            | Q(usage_limit_type=UsageLimitType.SINGLE_USE.value, usage_count__lt=1)
            | Q(
                usage_limit_type=UsageLimitType.LIMITED.value,
                max_uses__isnull=False,
                usage_count__lt=F("max_uses"),
            )
        )
        updated = (
            models.Coupon.objects.filter(pk=coupon_id.value, active=True)
            .filter(uses_left)
            .update(usage_count=F("usage_count") + 1)
        )
        return updated == 1


class DjangoCapacityStore(CapacityStore):
    def get_counter(self, event_id: EventId) -> CapacityCounter:
        row = (
            models.Event.objects.filter(pk=event_id.value)
            .values("capacity_total", "capacity_remaining")
            .first()
        )
        if row is None:
            return CapacityCounter()
        return CapacityCounter(total=row["capacity_total"], remaining=row["capacity_remaining"])

    def get_option_counters(self, event_id: EventId) -> OptionCounters:
        row = models.EventSettings.objects.filter(event_id=event_id.value).first()
        if row is None:
            return OptionCounters()

        housing = {}
        for housing_type in HousingType:
            field = _housing_field(housing_type)
            total = getattr(row, f"{field}_capacity")
            if total is not None:
                housing[housing_type] = CapacityCounter(
                    total=total, remaining=getattr(row, f"{field}_remaining")
                )

        rooms = {}
        for room_type in RoomType:
            field = _room_field(room_type)
            total = getattr(row, f"{field}_capacity")
            if total is not None:
                rooms[room_type] = CapacityCounter(
                    total=total, remaining=getattr(row, f"{field}_remaining")
                )
        return OptionCounters(housing=housing, rooms=rooms)

    def reserve(self, event_id: EventId, seats: int) -> bool:
        updated = models.Event.objects.filter(
            pk=event_id.value,
            capacity_total__isnull=False,
            capacity_remaining__gte=seats,
        ).update(
            capacity_remaining=Greatest(F("capacity_remaining") - seats, Value(0)),
        )
        return updated == 1

    def reserve_option(
        self,
        event_id: EventId,
        seats: int,
        housing_type: HousingType | None = None,
        room_type: RoomType | None = None,
    ) -> bool:
        if housing_type is not None:
            field = _housing_field(housing_type)
        elif room_type is not None:
            field = _room_field(room_type)
        else:
            raise ValueError("housing_type or room_type is required")

        remaining = f"{field}_remaining"
        updated = models.EventSettings.objects.filter(
            event_id=event_id.value,
            **{f"{field}_capacity__isnull": False, f"{remaining}__gte": seats},
        ).update(**{remaining: Greatest(F(remaining) - seats, Value(0))})
        return updated == 1


class DjangoCodeStore(CodeStore):
    def exists(self, code: str) -> bool:
        return models.Registration.objects.filter(confirmation_code=code).exists()


def _registration_to_domain(row: models.Registration) -> Registration:
    return Registration(
        id=RegistrationId(row.id),
        event_id=EventId(row.event_id),
        organization_id=str(row.organization_id),
        kind=RegistrationKind(row.kind),
        confirmation_code=row.confirmation_code,
        registrant=Registrant(
            first_name=row.first_name,
            last_name=row.last_name,
            email=row.email,
            phone=row.phone,
        ),
        housing_type=HousingType(row.housing_type),
        total_participants=row.total_participants,
        total_amount=Money(row.total_amount),
        status=RegistrationStatus(row.registration_status),
        created_at=row.created_at,
        room_type=RoomType(row.room_type) if row.room_type else None,
        meal_package=row.meal_package,
        group_name=row.group_name,
    )


class DjangoRegistrationStore(RegistrationStore):
    def create(self, registration: NewRegistration) -> Registration:
        try:
            with transaction.atomic():
                row = models.Registration.objects.create(
                    event_id=registration.event_id.value,
                    organization_id=registration.organization_id,
                    kind=registration.kind.value,
                    confirmation_code=registration.confirmation_code,
                    group_name=registration.group_name,
                    first_name=registration.registrant.first_name,
                    last_name=registration.registrant.last_name,
                    email=registration.registrant.email,
                    phone=registration.registrant.phone,
                    housing_type=registration.housing_type.value,
                    room_type=registration.room_type.value if registration.room_type else None,
                    meal_package=registration.meal_package,
                    total_participants=registration.total_participants,
                    line_items=[
                        {
                            "category": line.category.value,
                            "label": line.label,
                            "count": line.count,
                            "unit_price": str(line.unit_price),
                            "subtotal": str(line.subtotal),
                        }
                        for line in registration.line_items
                    ],
                    total_amount=registration.total_amount.amount,
                    registration_status=registration.status.value,
                )
        except IntegrityError:
            if models.Registration.objects.filter(
                confirmation_code=registration.confirmation_code
            ).exists():
                raise CodeCollisionError(registration.confirmation_code)
            raise
        return _registration_to_domain(row)

    def get(self, registration_id: RegistrationId) -> Registration | None:
        row = models.Registration.objects.filter(pk=registration_id.value).first()
        return _registration_to_domain(row) if row else None

    def set_status(self, registration_id: RegistrationId, status: RegistrationStatus) -> None:
        models.Registration.objects.filter(pk=registration_id.value).update(
            registration_status=status.value, updated_at=timezone.now()
        )


def _payment_to_domain(row: models.Payment) -> Payment:
    return Payment(
        id=row.id,
        registration_id=RegistrationId(row.registration_id),
        event_id=EventId(row.event_id),
        amount=Money(row.amount),
        payment_type=PaymentType(row.payment_type),
        method=PaymentMethod(row.payment_method),
        status=PaymentRecordStatus(row.payment_status),
        gateway_intent_id=row.gateway_intent_id,
    )


class DjangoPaymentLedgerStore(PaymentLedgerStore):
    def create(self, balance: PaymentBalance) -> PaymentBalance:
        models.PaymentBalance.objects.create(
            registration_id=balance.registration_id.value,
            event_id=balance.event_id.value,
            total_amount_due=balance.total_amount_due.amount,
            deposit_due=balance.deposit_due.amount,
            amount_paid=balance.amount_paid.amount,
            amount_remaining=balance.amount_remaining.amount,
            late_fees_applied=balance.late_fees_applied.amount,
            payment_status=balance.payment_status.value,
        )
        return balance

    def get_balance(self, registration_id: RegistrationId) -> PaymentBalance | None:
        row = models.PaymentBalance.objects.filter(registration_id=registration_id.value).first()
        if row is None:
            return None
        return PaymentBalance(
            registration_id=registration_id,
            event_id=EventId(row.event_id),
            total_amount_due=Money(row.total_amount_due),
            amount_paid=Money(row.amount_paid),
            amount_remaining=Money(max(row.amount_remaining, Decimal("0"))),
            payment_status=PaymentStatus(row.payment_status),
            deposit_due=Money(row.deposit_due),
            late_fees_applied=Money(row.late_fees_applied),
        )

    def update_balance(
        self,
        registration_id: RegistrationId,
        amount_paid: Money,
        amount_remaining: Money,
        status: PaymentStatus,
    ) -> None:
        models.PaymentBalance.objects.filter(registration_id=registration_id.value).update(
            amount_paid=amount_paid.amount,
            amount_remaining=amount_remaining.amount,
            payment_status=status.value,
            last_payment_date=timezone.now(),
        )

    def create_payment(self, payment: Payment) -> Payment:
        row = models.Payment.objects.create(
            registration_id=payment.registration_id.value,
            event_id=payment.event_id.value,
            amount=payment.amount.amount,
            payment_type=payment.payment_type.value,
            payment_method=payment.method.value,
            payment_status=payment.status.value,
            gateway_intent_id=payment.gateway_intent_id,
        )
        return _payment_to_domain(row)

    def find_payment_by_intent(self, intent_id: str) -> Payment | None:
        row = models.Payment.objects.filter(gateway_intent_id=intent_id).first()
        return _payment_to_domain(row) if row else None

    def mark_payment_succeeded(self, intent_id: str) -> bool:
        updated = (
            models.Payment.objects.filter(gateway_intent_id=intent_id)
            .exclude(payment_status=PaymentRecordStatus.SUCCEEDED.value)
            .update(
                payment_status=PaymentRecordStatus.SUCCEEDED.value,
                processed_at=timezone.now(),
            )
        )
        return updated > 0

    def list_succeeded_payments(self, registration_id: RegistrationId) -> list[Payment]:
        rows = models.Payment.objects.filter(
            registration_id=registration_id.value,
            payment_status=PaymentRecordStatus.SUCCEEDED.value,
        ).order_by("created_at")
        return [_payment_to_domain(row) for row in rows]

    def list_pending_payments(self, registration_id: RegistrationId) -> list[Payment]:
        rows = models.Payment.objects.filter(
            registration_id=registration_id.value,
            payment_status=PaymentRecordStatus.PENDING.value,
        ).order_by("created_at")
        return [_payment_to_domain(row) for row in rows]


class DjangoNotificationLogStore(NotificationLogStore):
    def record(self, entry: NotificationLogEntry) -> None:
        models.EmailLog.objects.create(
            organization_id=entry.organization_id,
            event_id=entry.event_id.value,
            registration_id=entry.registration_id.value,
            recipient_email=entry.recipient,
            email_type=entry.template_id,
            subject=entry.subject,
            sent_status=(
                models.EmailLog.SentStatus.SENT if entry.sent else models.EmailLog.SentStatus.FAILED
            ),
            error_message=entry.error_message,
        )
