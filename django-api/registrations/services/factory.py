"""Wiring of services to the Django stores and real integrations."""

from django.utils import timezone

from registrations.conf import RegistrationSettings
from registrations.domain.models import PaymentMethod
from registrations.integrations.gateway import PaymentGateway, StripePaymentGateway
from registrations.integrations.notifier import DjangoEmailNotifier, Notifier
from registrations.services.capacity_ledger import CapacityLedger
from registrations.services.code_issuer import CodeIssuer
from registrations.services.coupon_engine import CouponEngine
from registrations.services.notifications import NotificationDispatcher
from registrations.services.payment_confirmation import PaymentConfirmationService
from registrations.services.payment_paths import CardPaymentPath, CheckPaymentPath
from registrations.services.registration_service import RegistrationService
from registrations.stores.django_store import (
    DjangoCapacityStore,
    DjangoCodeStore,
    DjangoCouponStore,
    DjangoEventStore,
    DjangoNotificationLogStore,
    DjangoPaymentLedgerStore,
    DjangoPricingPolicyStore,
    DjangoRegistrationStore,
    DjangoUnitOfWork,
)


def _dispatcher(config: RegistrationSettings, notifier: Notifier | None) -> NotificationDispatcher:
    return NotificationDispatcher(
        notifier or DjangoEmailNotifier(config.from_email),
        DjangoNotificationLogStore(),
    )


def build_registration_service(
    gateway: PaymentGateway | None = None,
    notifier: Notifier | None = None,
) -> RegistrationService:
    config = RegistrationSettings.from_django()
    ledger = DjangoPaymentLedgerStore()
    return RegistrationService(
        events=DjangoEventStore(),
        pricing=DjangoPricingPolicyStore(),
        coupons=CouponEngine(DjangoCouponStore()),
        capacity=CapacityLedger(DjangoCapacityStore()),
        codes=CodeIssuer(
            DjangoCodeStore().exists,
            length=config.code_length,
            max_attempts=config.code_max_attempts,
        ),
        registrations=DjangoRegistrationStore(),
        ledger=ledger,
        unit_of_work=DjangoUnitOfWork(),
        payment_paths={
            PaymentMethod.CARD: CardPaymentPath(gateway or StripePaymentGateway(), ledger, config),
            PaymentMethod.CHECK: CheckPaymentPath(ledger, _dispatcher(config, notifier)),
        },
        clock=timezone.now,
    )


def build_payment_confirmation_service(notifier: Notifier | None = None) -> PaymentConfirmationService:
    return PaymentConfirmationService(
        registrations=DjangoRegistrationStore(),
        ledger=DjangoPaymentLedgerStore(),
        unit_of_work=DjangoUnitOfWork(),
        events=DjangoEventStore(),
        dispatcher=_dispatcher(RegistrationSettings.from_django(), notifier),
    )
