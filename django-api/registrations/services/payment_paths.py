"""Card and check payment paths.

A path runs after the registration and its balance are persisted. Its
failures are handled here and reported on the outcome; they never undo
the registration.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from registrations.conf import RegistrationSettings
from registrations.domain import EventProfile, Money, Registration
from registrations.domain.errors import PaymentGatewayError
from registrations.domain.models import (
    CheckInstructions,
    Payment,
    PaymentMethod,
    PaymentRecordStatus,
    PaymentStatus,
    PaymentType,
    RegistrationKind,
    RegistrationStatus,
)
from registrations.domain.status import (
    RegistrationState,
    initial_payment_status,
    initial_registration_status,
)
from registrations.integrations.gateway import ChargeIntentRequest, PaymentGateway
from registrations.integrations.notifier import CHECK_PENDING
from registrations.services.notifications import NotificationDispatcher
from registrations.stores.interfaces import PaymentLedgerStore

logger = logging.getLogger(__name__)


def amount_to_collect(deposit_due: Money, total: Money) -> Money:
    """The deposit when one is due, otherwise the whole total."""
    return deposit_due if deposit_due else total


def platform_fee_cents(amount: Money, fee_percent: Decimal) -> int:
    raw = Decimal(amount.cents) * Decimal(fee_percent) / Decimal("100")
    return int(raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _payment_type(amount: Money, total: Money) -> PaymentType:
    return PaymentType.DEPOSIT if amount < total else PaymentType.BALANCE


@dataclass(frozen=True)
class PaymentOutcome:
    checkout_url: str | None = None
    check_instructions: CheckInstructions | None = None
    payment_setup_failed: bool = False
    notification_sent: bool | None = None


class PaymentPath(ABC):
    method: PaymentMethod
    pending_state: RegistrationState

    def opening_statuses(self, amount_due: Money) -> tuple[RegistrationStatus, PaymentStatus]:
        return initial_registration_status(self.method), initial_payment_status(self.method)

    @abstractmethod
    def start(
        self,
        registration: Registration,
        event: EventProfile,
        amount_due: Money,
        total: Money,
    ) -> PaymentOutcome:
        ...


class CardPaymentPath(PaymentPath):
    """Hosted card checkout, routed to the organizer's payout account."""

    method = PaymentMethod.CARD
    pending_state = RegistrationState.CARD_PENDING

    def __init__(
        self,
        gateway: PaymentGateway,
        ledger: PaymentLedgerStore,
        config: RegistrationSettings,
    ) -> None:
        self._gateway = gateway
        self._ledger = ledger
        self._config = config

    def opening_statuses(self, amount_due: Money) -> tuple[RegistrationStatus, PaymentStatus]:
        if not amount_due:
            # nothing to charge, e.g. a full-value coupon
            return RegistrationStatus.COMPLETED, PaymentStatus.PAID_FULL
        return super().opening_statuses(amount_due)

    def start(
        self,
        registration: Registration,
        event: EventProfile,
        amount_due: Money,
        total: Money,
    ) -> PaymentOutcome:
        if not amount_due:
            return PaymentOutcome()
        try:
            checkout_url = self.create_checkout(registration, event, amount_due, total)
        except Exception:
            logger.exception(
                "Payment setup failed for registration %s (%s) of event %s",
                registration.id,
                registration.confirmation_code,
                event.id,
            )
            return PaymentOutcome(payment_setup_failed=True)
        return PaymentOutcome(checkout_url=checkout_url)

    def create_checkout(
        self,
        registration: Registration,
        event: EventProfile,
        amount_due: Money,
        total: Money,
        payment_type: PaymentType | None = None,
    ) -> str:
        """Create the charge intent and its pending payment record.

        Raises:
            PaymentGatewayError: If the gateway could not create the intent.
        """
        intent = self._gateway.create_charge_intent(self._charge_request(registration, event, amount_due))
        if not intent.redirect_url:
            raise PaymentGatewayError(f"no redirect url for intent {intent.intent_id}")

        self._ledger.create_payment(
            Payment(
                registration_id=registration.id,
                event_id=event.id,
                amount=amount_due,
                payment_type=payment_type or _payment_type(amount_due, total),
                method=PaymentMethod.CARD,
                status=PaymentRecordStatus.PENDING,
                gateway_intent_id=intent.intent_id,
            )
        )
        logger.info(
            "Checkout %s created for registration %s, amount %s",
            intent.intent_id,
            registration.id,
            amount_due,
        )
        return intent.redirect_url

    def _charge_request(
        self, registration: Registration, event: EventProfile, amount_due: Money
    ) -> ChargeIntentRequest:
        base_url = self._config.app_base_url
        kind = "Group" if registration.kind is RegistrationKind.GROUP else "Individual"

        fee_cents = None
        destination = None
        if event.payout.is_connected:
            fee_percent = event.payout.platform_fee_percent
            if fee_percent is None:
                fee_percent = self._config.default_platform_fee_percent
            fee_cents = platform_fee_cents(amount_due, fee_percent)
            destination = event.payout.account_id

        return ChargeIntentRequest(
            amount_cents=amount_due.cents,
            currency=self._config.currency,
            description=f"{event.name} - {kind} Registration",
            success_url=(
                f"{base_url}/registration/confirmation/{registration.id}"
                "?session_id={CHECKOUT_SESSION_ID}"
            ),
            cancel_url=f"{base_url}/events/{event.id}/register?cancelled=true",
            platform_fee_cents=fee_cents,
            destination_account=destination,
            customer_email=registration.registrant.email,
            metadata={
                "registration_id": str(registration.id),
                "event_id": str(event.id),
                "confirmation_code": registration.confirmation_code,
                "registration_type": registration.kind.value,
            },
        )


class CheckPaymentPath(PaymentPath):
    """Mail-in check: a pending payment record plus instructions email."""

    method = PaymentMethod.CHECK
    pending_state = RegistrationState.CHECK_PENDING

    def __init__(self, ledger: PaymentLedgerStore, dispatcher: NotificationDispatcher) -> None:
        self._ledger = ledger
        self._dispatcher = dispatcher

    def start(
        self,
        registration: Registration,
        event: EventProfile,
        amount_due: Money,
        total: Money,
    ) -> PaymentOutcome:
        setup_failed = False
        try:
            self._ledger.create_payment(
                Payment(
                    registration_id=registration.id,
                    event_id=event.id,
                    amount=amount_due,
                    payment_type=_payment_type(amount_due, total),
                    method=PaymentMethod.CHECK,
                    status=PaymentRecordStatus.PENDING,
                )
            )
        except Exception:
            logger.exception(
                "Pending check payment of %s not recorded for registration %s (%s) of event %s",
                amount_due,
                registration.id,
                registration.confirmation_code,
                event.id,
            )
            setup_failed = True

        instructions = event.check_instructions
        sent = self._dispatcher.dispatch(
            CHECK_PENDING,
            registration.registrant.email,
            {
                "registrant_name": registration.registrant.full_name,
                "event_name": event.name,
                "confirmation_code": registration.confirmation_code,
                "total_amount": str(total),
                "amount_due": str(amount_due),
                "payable_to": instructions.payable_to,
                "mailing_address": instructions.mailing_address,
                "instructions": instructions.instructions,
            },
            organization_id=registration.organization_id,
            event_id=event.id,
            registration_id=registration.id,
        )
        return PaymentOutcome(
            check_instructions=instructions,
            payment_setup_failed=setup_failed,
            notification_sent=sent,
        )
