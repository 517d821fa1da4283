"""Allowed status transitions for registrations and payment balances.

Registrations are created as INCOMPLETE (card) or PENDING_PAYMENT (check)
and only move forward through payment confirmation or cancellation.
"""

from enum import Enum

from registrations.domain.errors import InvalidStatusTransitionError
from registrations.domain.models import (
    PaymentMethod,
    PaymentStatus,
    RegistrationStatus,
)

REGISTRATION_TRANSITIONS: dict[RegistrationStatus, frozenset[RegistrationStatus]] = {
    RegistrationStatus.INCOMPLETE: frozenset(
        {
            RegistrationStatus.PENDING_PAYMENT,
            RegistrationStatus.COMPLETED,
            RegistrationStatus.CANCELLED,
        }
    ),
    RegistrationStatus.PENDING_PAYMENT: frozenset(
        {RegistrationStatus.COMPLETED, RegistrationStatus.CANCELLED}
    ),
    RegistrationStatus.COMPLETED: frozenset({RegistrationStatus.CANCELLED}),
    RegistrationStatus.CANCELLED: frozenset(),
}

PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.UNPAID: frozenset(
        {PaymentStatus.DEPOSIT_PAID, PaymentStatus.PAID_PARTIAL, PaymentStatus.PAID_FULL}
    ),
    PaymentStatus.PENDING_CHECK_PAYMENT: frozenset(
        {PaymentStatus.DEPOSIT_PAID, PaymentStatus.PAID_PARTIAL, PaymentStatus.PAID_FULL}
    ),
    PaymentStatus.DEPOSIT_PAID: frozenset(
        {PaymentStatus.PAID_PARTIAL, PaymentStatus.PAID_FULL}
    ),
    PaymentStatus.PAID_PARTIAL: frozenset(
        {PaymentStatus.PAID_PARTIAL, PaymentStatus.PAID_FULL}
    ),
    PaymentStatus.PAID_FULL: frozenset(),
}


def initial_registration_status(method: PaymentMethod) -> RegistrationStatus:
    if method is PaymentMethod.CHECK:
        return RegistrationStatus.PENDING_PAYMENT
    return RegistrationStatus.INCOMPLETE


def initial_payment_status(method: PaymentMethod) -> PaymentStatus:
    if method is PaymentMethod.CHECK:
        return PaymentStatus.PENDING_CHECK_PAYMENT
    return PaymentStatus.UNPAID


def transition_registration(
    current: RegistrationStatus, target: RegistrationStatus
) -> RegistrationStatus:
    if current is target:
        return current
    if target not in REGISTRATION_TRANSITIONS[current]:
        raise InvalidStatusTransitionError(current.value, target.value)
    return target


def transition_payment(current: PaymentStatus, target: PaymentStatus) -> PaymentStatus:
    if current is target:
        return current
    if target not in PAYMENT_TRANSITIONS[current]:
        raise InvalidStatusTransitionError(current.value, target.value)
    return target


class RegistrationState(str, Enum):
    """Steps of one registration attempt."""

    INITIATED = "initiated"
    PRICED = "priced"
    DISCOUNTED = "discounted"
    SPLIT = "split"
    CAPACITY_RESERVED = "capacity_reserved"
    PERSISTED = "persisted"
    CARD_PENDING = "card_pending"
    CHECK_PENDING = "check_pending"
    RESPONDED = "responded"


ATTEMPT_TRANSITIONS: dict[RegistrationState, frozenset[RegistrationState]] = {
    RegistrationState.INITIATED: frozenset({RegistrationState.PRICED}),
    RegistrationState.PRICED: frozenset({RegistrationState.DISCOUNTED}),
    RegistrationState.DISCOUNTED: frozenset({RegistrationState.SPLIT}),
    RegistrationState.SPLIT: frozenset({RegistrationState.CAPACITY_RESERVED}),
    RegistrationState.CAPACITY_RESERVED: frozenset({RegistrationState.PERSISTED}),
    RegistrationState.PERSISTED: frozenset(
        {RegistrationState.CARD_PENDING, RegistrationState.CHECK_PENDING}
    ),
    RegistrationState.CARD_PENDING: frozenset({RegistrationState.RESPONDED}),
    RegistrationState.CHECK_PENDING: frozenset({RegistrationState.RESPONDED}),
    RegistrationState.RESPONDED: frozenset(),
}


def advance_attempt(current: RegistrationState, target: RegistrationState) -> RegistrationState:
    if target not in ATTEMPT_TRANSITIONS[current]:
        raise InvalidStatusTransitionError(current.value, target.value)
    return target
