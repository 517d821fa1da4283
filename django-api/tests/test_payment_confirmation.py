"""Tests for applying gateway completions to the payment ledger.

Run with: pytest tests/test_payment_confirmation.py -v
"""

import uuid
from dataclasses import replace
from decimal import Decimal
from unittest import mock

import pytest

from fakes import make_policy
from registrations.domain import Money, RegistrationId
from registrations.domain.errors import PaymentNotFoundError
from registrations.domain.models import (
    DepositPolicy,
    HousingType,
    ParticipantCategory,
    Payment,
    PaymentMethod,
    PaymentRecordStatus,
    PaymentStatus,
    PaymentType,
    Registrant,
    RegistrationStatus,
)
from registrations.domain.requests import LineItemRequest, RegistrationRequest
from registrations.integrations.notifier import PAYMENT_RECEIVED
from registrations.services import payment_confirmation
from registrations.services.payment_confirmation import settled_status


def register(world):
    return world.service().register(
        RegistrationRequest(
            event_id=str(world.event.id),
            registrant=Registrant("Joseph", "Nguyen", "joseph@example.com"),
            line_items=(LineItemRequest(ParticipantCategory.YOUTH, 1),),
            housing_type=HousingType.ON_CAMPUS,
            payment_method=PaymentMethod.CARD,
        )
    )


class TestSettledStatus:
    def test_nothing_remaining_is_paid_full(self, world):
        """Given payments covering the total, returns PAID_FULL."""
        payment = replace(
            _payment(world, Money.of(120)), payment_type=PaymentType.BALANCE
        )
        paid, remaining, status = settled_status(Money.of(120), [payment])
        assert (paid, remaining, status) == (Money.of(120), Money.zero(), PaymentStatus.PAID_FULL)

    def test_single_deposit_is_deposit_paid(self, world):
        """Given one deposit payment short of the total, returns DEPOSIT_PAID."""
        _, remaining, status = settled_status(Money.of(120), [_payment(world, Money.of(60))])
        assert remaining == Money.of(60)
        assert status is PaymentStatus.DEPOSIT_PAID

    def test_overpayment_leaves_nothing_remaining(self, world):
        """Given more paid than due, remaining floors at zero."""
        _, remaining, status = settled_status(Money.of(50), [_payment(world, Money.of(60))])
        assert remaining == Money.zero()
        assert status is PaymentStatus.PAID_FULL


class TestConfirm:
    def test_deposit_payment(self, world):
        """Given the deposit checkout completes, the balance is DEPOSIT_PAID and the registrant notified."""
        result = register(world)

        balance = world.confirmation_service().confirm("cs_test_1")

        assert balance.amount_paid == Money.of(60)
        assert balance.amount_remaining == Money.of(60)
        assert balance.payment_status is PaymentStatus.DEPOSIT_PAID
        assert world.ledger.get_balance(result.registration_id) == balance
        assert world.registrations.get(result.registration_id).status is RegistrationStatus.PENDING_PAYMENT
        assert world.ledger.payments[0].status is PaymentRecordStatus.SUCCEEDED

        [(template_id, recipient, data)] = world.notifier.sent
        assert template_id == PAYMENT_RECEIVED
        assert recipient == "joseph@example.com"
        assert data["amount"] == "60.00"
        assert data["amount_remaining"] == "60.00"

    def test_duplicate_delivery_is_idempotent(self, world):
        """Given the same completion twice, the balance is unchanged and only one email goes out."""
        result = register(world)
        service = world.confirmation_service()

        first = service.confirm("cs_test_1")
        second = service.confirm("cs_test_1")

        assert first == second
        assert world.ledger.get_balance(result.registration_id).amount_paid == Money.of(60)
        assert len(world.notifier.sent) == 1

    def test_overlapping_deliveries_send_one_receipt(self, world, monkeypatch):
        """Given two deliveries that both read the payment as pending, only one receipt goes out."""
        register(world)
        stale = world.ledger.find_payment_by_intent("cs_test_1")
        monkeypatch.setattr(world.ledger, "find_payment_by_intent", lambda intent_id: stale)
        service = world.confirmation_service()

        first = service.confirm("cs_test_1")
        second = service.confirm("cs_test_1")

        assert first == second
        assert first.amount_paid == Money.of(60)
        assert len(world.notifier.sent) == 1

    def test_overpayment_is_logged(self, world):
        """Given two paid checkout sessions for the same total, the balance is clamped and the overpayment logged."""
        world.pricing.policies[world.event.id] = make_policy(world.event.id, deposit=DepositPolicy())
        result = register(world)
        world.service().regenerate_checkout(str(result.registration_id))
        service = world.confirmation_service()
        service.confirm("cs_test_1")

        with mock.patch.object(payment_confirmation.logger, "warning") as warning:
            balance = service.confirm("cs_test_2")

        assert balance.amount_remaining == Money.zero()
        assert balance.payment_status is PaymentStatus.PAID_FULL
        [call] = warning.call_args_list
        assert result.confirmation_code in call.args
        assert Money.of(240) in call.args

    def test_full_payment_completes_registration(self, world):
        """Given a policy without deposit, one payment completes the registration."""
        world.pricing.policies[world.event.id] = make_policy(world.event.id, deposit=DepositPolicy())
        result = register(world)

        balance = world.confirmation_service().confirm("cs_test_1")

        assert balance.payment_status is PaymentStatus.PAID_FULL
        assert balance.amount_remaining == Money.zero()
        assert world.registrations.get(result.registration_id).status is RegistrationStatus.COMPLETED

    def test_balance_payment_after_deposit(self, world):
        """Given a deposit then a balance checkout, the second completion pays in full."""
        result = register(world)
        confirmations = world.confirmation_service()
        confirmations.confirm("cs_test_1")

        world.service().regenerate_checkout(str(result.registration_id))
        balance_payment = world.ledger.payments[-1]
        assert balance_payment.amount == Money.of(60)
        assert balance_payment.payment_type is PaymentType.BALANCE

        balance = confirmations.confirm(balance_payment.gateway_intent_id)

        assert balance.amount_paid == Money.of(120)
        assert balance.payment_status is PaymentStatus.PAID_FULL
        assert world.registrations.get(result.registration_id).status is RegistrationStatus.COMPLETED
        assert len(world.notifier.sent) == 2

    def test_payment_on_cancelled_registration(self, world):
        """Given a cancelled registration, the ledger updates and the status stays cancelled."""
        result = register(world)
        world.registrations.set_status(result.registration_id, RegistrationStatus.CANCELLED)

        balance = world.confirmation_service().confirm("cs_test_1")

        assert balance.amount_paid == Money.of(60)
        assert world.registrations.get(result.registration_id).status is RegistrationStatus.CANCELLED

    def test_unknown_intent(self, world):
        """Given an intent no payment references, raises PaymentNotFoundError."""
        with pytest.raises(PaymentNotFoundError):
            world.confirmation_service().confirm("cs_unknown")

    def test_fee_percent_does_not_affect_ledger(self, world):
        """Platform fees are taken by the gateway and never reduce the amount paid."""
        world.connect_payout(fee_percent=Decimal("5"))
        result = register(world)

        world.confirmation_service().confirm("cs_test_1")

        assert world.ledger.get_balance(result.registration_id).amount_paid == Money.of(60)


def _payment(world, amount):
    return Payment(
        registration_id=RegistrationId(uuid.uuid4()),
        event_id=world.event.id,
        amount=amount,
        payment_type=PaymentType.DEPOSIT,
        method=PaymentMethod.CARD,
        status=PaymentRecordStatus.SUCCEEDED,
    )
