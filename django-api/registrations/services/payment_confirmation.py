"""Applies gateway payment completions to the payment-balance ledger.

The balance is recomputed from all succeeded payments rather than
incremented, so a duplicated webhook delivery leaves it unchanged.
"""

import logging

from registrations.domain import Money, PaymentBalance
from registrations.domain.errors import PaymentNotFoundError, RegistrationNotFoundError
from registrations.domain.models import (
    Payment,
    PaymentStatus,
    PaymentType,
    Registration,
    RegistrationStatus,
)
from registrations.domain.status import transition_payment, transition_registration
from registrations.integrations.notifier import PAYMENT_RECEIVED
from registrations.services.notifications import NotificationDispatcher
from registrations.stores.interfaces import (
    EventStore,
    PaymentLedgerStore,
    RegistrationStore,
    UnitOfWork,
)

logger = logging.getLogger(__name__)


def settled_status(total_due: Money, succeeded: list[Payment]) -> tuple[Money, Money, PaymentStatus]:
    """Return (paid, remaining, status) for a list of succeeded payments."""
    paid = Money.zero()
    for payment in succeeded:
        paid = paid + payment.amount
    remaining = total_due - paid if paid < total_due else Money.zero()

    if not remaining:
        status = PaymentStatus.PAID_FULL
    elif len(succeeded) == 1 and succeeded[0].payment_type is PaymentType.DEPOSIT:
        status = PaymentStatus.DEPOSIT_PAID
    else:
        status = PaymentStatus.PAID_PARTIAL
    return paid, remaining, status


class PaymentConfirmationService:
    def __init__(
        self,
        *,
        registrations: RegistrationStore,
        ledger: PaymentLedgerStore,
        unit_of_work: UnitOfWork,
        events: EventStore | None = None,
        dispatcher: NotificationDispatcher | None = None,
    ) -> None:
        self._registrations = registrations
        self._ledger = ledger
        self._uow = unit_of_work
        self._events = events
        self._dispatcher = dispatcher

    def confirm(self, intent_id: str) -> PaymentBalance:
        """Mark the payment of a gateway intent as succeeded.

        Raises:
            PaymentNotFoundError: If no payment references the intent.
            RegistrationNotFoundError: If the payment's registration is gone.
        """
        payment = self._ledger.find_payment_by_intent(intent_id)
        if payment is None:
            raise PaymentNotFoundError(intent_id)

        with self._uow.atomic():
            # only the delivery that flips the row sends the receipt
            first_delivery = self._ledger.mark_payment_succeeded(intent_id)
            balance = self._ledger.get_balance(payment.registration_id)
            registration = self._registrations.get(payment.registration_id)
            if balance is None or registration is None:
                raise RegistrationNotFoundError(str(payment.registration_id))

            paid, remaining, target = settled_status(
                balance.total_amount_due,
                self._ledger.list_succeeded_payments(payment.registration_id),
            )
            if balance.total_amount_due < paid:
                logger.warning(
                    "Registration %s overpaid: %s received against %s due",
                    registration.confirmation_code,
                    paid,
                    balance.total_amount_due,
                )
            status = transition_payment(balance.payment_status, target)
            self._ledger.update_balance(payment.registration_id, paid, remaining, status)
            self._advance_registration(registration, status)

        logger.info(
            "Payment %s confirmed for registration %s: paid %s, remaining %s",
            intent_id,
            registration.confirmation_code,
            paid,
            remaining,
        )
        if first_delivery:
            self._notify(registration, payment.amount, remaining)

        return PaymentBalance(
            registration_id=balance.registration_id,
            event_id=balance.event_id,
            total_amount_due=balance.total_amount_due,
            amount_paid=paid,
            amount_remaining=remaining,
            payment_status=status,
            deposit_due=balance.deposit_due,
            late_fees_applied=balance.late_fees_applied,
        )

    def _advance_registration(self, registration: Registration, status: PaymentStatus) -> None:
        if registration.status is RegistrationStatus.CANCELLED:
            logger.warning(
                "Payment received for cancelled registration %s", registration.confirmation_code
            )
            return
        if status is PaymentStatus.PAID_FULL:
            target = RegistrationStatus.COMPLETED
        elif registration.status is RegistrationStatus.INCOMPLETE:
            target = RegistrationStatus.PENDING_PAYMENT
        else:
            return
        new_status = transition_registration(registration.status, target)
        if new_status is not registration.status:
            self._registrations.set_status(registration.id, new_status)

    def _notify(self, registration: Registration, amount: Money, remaining: Money) -> None:
        if self._dispatcher is None or self._events is None:
            return
        event = self._events.get_event(registration.event_id)
        if event is None:
            return
        self._dispatcher.dispatch(
            PAYMENT_RECEIVED,
            registration.registrant.email,
            {
                "registrant_name": registration.registrant.full_name,
                "event_name": event.name,
                "confirmation_code": registration.confirmation_code,
                "amount": str(amount),
                "amount_remaining": str(remaining),
            },
            organization_id=registration.organization_id,
            event_id=registration.event_id,
            registration_id=registration.id,
        )
