"""Unit tests for RegistrationService.

These run the whole registration attempt against in-memory stores.
Run with: pytest tests/test_services.py -v
"""

import uuid
from dataclasses import replace
from decimal import Decimal
from unittest import mock

import pytest

from fakes import World
from registrations.domain import Money
from registrations.domain.errors import (
    CapacityExceededError,
    CodeGenerationExhaustedError,
    EventNotFoundError,
    InvalidEventIdError,
    InvalidStatusTransitionError,
    MissingPriceConfigurationError,
    PaymentGatewayError,
    RegistrationClosedError,
    RegistrationNotFoundError,
    RegistrationValidationError,
)
from registrations.domain.models import (
    DiscountType,
    HousingType,
    ParticipantCategory,
    PaymentMethod,
    PaymentRecordStatus,
    PaymentStatus,
    PaymentType,
    Registrant,
    RegistrationKind,
    RegistrationStatus,
    RoomType,
    UsageLimitType,
)
from registrations.domain.requests import LineItemRequest, RegistrationRequest
from registrations.integrations.notifier import CHECK_PENDING
from registrations.services import registration_service


def youth_request(world: World, **overrides) -> RegistrationRequest:
    values = {
        "event_id": str(world.event.id),
        "registrant": Registrant("Maria", "Lopez", "maria@example.com", "555-0100"),
        "line_items": (LineItemRequest(ParticipantCategory.YOUTH, 1),),
        "housing_type": HousingType.ON_CAMPUS,
        "payment_method": PaymentMethod.CARD,
    }
    values.update(overrides)
    return RegistrationRequest(**values)


class TestScenarios:
    def test_on_campus_youth_with_half_deposit(self, world):
        """Given on-campus youth at 120 and a 50% deposit, returns 120/60/60 and a checkout link."""
        result = world.service().register(youth_request(world))

        assert result.total_amount == Money.of(120)
        assert result.deposit_due == Money.of(60)
        assert result.balance_remaining == Money.of(60)
        assert result.checkout_url == "https://checkout.test/pay/1"
        assert not result.coupon_applied

        registration = world.registrations.get(result.registration_id)
        assert registration.status is RegistrationStatus.INCOMPLETE
        assert registration.confirmation_code.startswith("SUMMER-")
        balance = world.ledger.get_balance(result.registration_id)
        assert balance.payment_status is PaymentStatus.UNPAID
        assert balance.amount_remaining == Money.of(120)

        [payment] = world.ledger.payments
        assert payment.status is PaymentRecordStatus.PENDING
        assert payment.gateway_intent_id == "cs_test_1"
        assert payment.payment_type is PaymentType.DEPOSIT
        assert world.gateway.requests[0].amount_cents == 6000

    def test_percentage_coupon(self, world):
        """Given SAVE20 at 20%, returns 96/48/48 and counts one use."""
        coupon = world.add_coupon()
        result = world.service().register(youth_request(world, coupon_code="save20"))

        assert result.total_amount == Money.of(96)
        assert result.deposit_due == Money.of(48)
        assert result.balance_remaining == Money.of(48)
        assert result.coupon_applied
        assert result.charge.discount.amount == Money.of(24)
        assert world.coupons.coupons[coupon.id].usage_count == 1

    def test_full_event_writes_nothing(self, world):
        """Given capacity 1 with 0 remaining, raises CapacityExceeded before any code or row."""
        issued = []

        def generator(prefix):
            issued.append(prefix)
            return f"{prefix}-{len(issued)}"

        world.code_generator = generator
        world.capacity.set_capacity(world.event.id, 1, remaining=0)

        with pytest.raises(CapacityExceededError):
            world.service().register(youth_request(world))

        assert world.registrations.rows == {}
        assert world.ledger.balances == {}
        assert issued == []

    def test_check_payment(self, world):
        """Given check payment, returns no checkout link, a pending check balance and one notification."""
        result = world.service().register(youth_request(world, payment_method=PaymentMethod.CHECK))

        assert result.checkout_url is None
        assert result.check_instructions.payable_to == "St. Mark Parish"
        assert result.notification_sent is True
        balance = world.ledger.get_balance(result.registration_id)
        assert balance.payment_status is PaymentStatus.PENDING_CHECK_PAYMENT
        assert world.registrations.get(result.registration_id).status is RegistrationStatus.PENDING_PAYMENT

        [payment] = world.ledger.payments
        assert payment.method is PaymentMethod.CHECK
        assert payment.amount == Money.of(60)
        assert world.gateway.requests == []

        [(template_id, recipient, data)] = world.notifier.sent
        assert template_id == CHECK_PENDING
        assert recipient == "maria@example.com"
        assert data["confirmation_code"] == result.confirmation_code
        assert world.email_log.entries[0].sent


class TestPostPersistenceFailures:
    def test_notification_failure_does_not_fail_registration(self, world):
        """Given a notifier that raises, the check registration still succeeds and the failure is logged."""
        world.notifier.explode = True
        result = world.service().register(youth_request(world, payment_method=PaymentMethod.CHECK))

        assert result.notification_sent is False
        assert world.registrations.get(result.registration_id) is not None
        [entry] = world.email_log.entries
        assert not entry.sent
        assert entry.error_message == "smtp down"

    def test_gateway_failure_leaves_pending_registration(self, world):
        """Given the gateway is down, the registration stands with payment setup failed."""
        world.gateway.fail = True
        result = world.service().register(youth_request(world))

        assert result.payment_setup_failed
        assert result.checkout_url is None
        assert world.registrations.get(result.registration_id).status is RegistrationStatus.INCOMPLETE
        assert world.ledger.get_balance(result.registration_id).payment_status is PaymentStatus.UNPAID
        assert world.ledger.payments == []

    def test_lost_capacity_race_keeps_registration(self, world, monkeypatch):
        """Given the decrement loses a race, the registration stands and reports it."""
        world.capacity.set_capacity(world.event.id, 10)
        monkeypatch.setattr(world.capacity, "reserve", lambda event_id, seats: False)

        result = world.service().register(youth_request(world))

        assert not result.capacity_reserved
        assert world.registrations.get(result.registration_id) is not None

    def test_capacity_taken_after_persistence(self, world):
        """A successful registration decrements the event counter by the party size."""
        world.capacity.set_capacity(world.event.id, 10)
        request = youth_request(
            world, line_items=(LineItemRequest(ParticipantCategory.YOUTH, 4),), group_name="St. Mark Youth"
        )
        result = world.service().register(request)

        assert result.capacity_reserved
        assert world.capacity.counters[world.event.id].remaining == 6

    def test_capacity_store_error_keeps_registration(self, world, monkeypatch):
        """Given the capacity decrement raises, the registration stands and the checkout is still created."""
        world.capacity.set_capacity(world.event.id, 10)

        def broken_reserve(event_id, seats):
            raise RuntimeError("db down")

        monkeypatch.setattr(world.capacity, "reserve", broken_reserve)

        result = world.service().register(youth_request(world))

        assert not result.capacity_reserved
        assert result.checkout_url is not None
        assert not result.payment_setup_failed
        assert world.registrations.get(result.registration_id) is not None
        [payment] = world.ledger.payments
        assert payment.registration_id == result.registration_id

    def test_check_payment_record_failure_keeps_registration(self, world, monkeypatch):
        """Given the pending check payment cannot be written, instructions and email still go out."""

        def broken_create_payment(payment):
            raise RuntimeError("ledger unavailable")

        monkeypatch.setattr(world.ledger, "create_payment", broken_create_payment)

        result = world.service().register(youth_request(world, payment_method=PaymentMethod.CHECK))

        assert result.payment_setup_failed
        assert result.check_instructions == world.event.check_instructions
        assert result.notification_sent is True
        assert world.registrations.get(result.registration_id) is not None
        assert world.ledger.get_balance(result.registration_id).payment_status is PaymentStatus.PENDING_CHECK_PAYMENT


class TestPersistence:
    def test_ledger_failure_rolls_back_registration(self, world):
        """Given the balance insert fails, no registration row survives and capacity is untouched."""
        world.capacity.set_capacity(world.event.id, 10)
        world.ledger.fail_on_create = True

        with pytest.raises(RuntimeError):
            world.service().register(youth_request(world))

        assert world.registrations.rows == {}
        assert world.capacity.counters[world.event.id].remaining == 10

    def test_insert_collision_retries_with_new_code(self, world):
        """Given the first code collides on insert, the next code is used."""
        world.service().register(youth_request(world))
        taken = next(iter(world.registrations.rows.values())).confirmation_code
        fresh = iter([taken, "SUMMER-FRESH001"])
        world.code_generator = lambda prefix: next(fresh)
        world.code_exists = lambda code: False

        result = world.service().register(youth_request(world))

        assert result.confirmation_code == "SUMMER-FRESH001"
        assert len(world.registrations.rows) == 2

    def test_collisions_exhaust_attempts(self, world):
        """Given every insert collides, raises CodeGenerationExhausted and writes nothing new."""
        world.service().register(youth_request(world))
        taken = next(iter(world.registrations.rows.values())).confirmation_code
        world.code_generator = lambda prefix: taken
        world.code_exists = lambda code: False

        with pytest.raises(CodeGenerationExhaustedError):
            world.service().register(youth_request(world))

        assert len(world.registrations.rows) == 1
        assert len(world.ledger.balances) == 1

    def test_group_registration(self, world):
        """Given several line items, creates one group registration with the summed headcount."""
        request = youth_request(
            world,
            housing_type=HousingType.OFF_CAMPUS,
            line_items=(
                LineItemRequest(ParticipantCategory.YOUTH, 3, label="male youth"),
                LineItemRequest(ParticipantCategory.YOUTH, 2, label="female youth"),
                LineItemRequest(ParticipantCategory.CHAPERONE, 1),
            ),
        )
        result = world.service().register(request)

        registration = world.registrations.get(result.registration_id)
        assert registration.kind is RegistrationKind.GROUP
        assert registration.total_participants == 6
        assert result.total_amount == Money.of(5 * 100 + 80)


class TestRejections:
    def test_invalid_event_id(self, world):
        """Given a malformed event id, raises InvalidEventIdError."""
        with pytest.raises(InvalidEventIdError):
            world.service().register(youth_request(world, event_id="not-a-uuid"))

    def test_unknown_event(self, world):
        """Given an unknown event, raises EventNotFoundError."""
        with pytest.raises(EventNotFoundError):
            world.service().register(youth_request(world, event_id=str(uuid.uuid4())))

    def test_closed_event(self, world):
        """Given a manually closed event, raises RegistrationClosedError with its message."""
        window = replace(world.event.window, manually_closed=True, closed_message="Closed for now")
        world.events.events[world.event.id] = replace(world.event, window=window)

        with pytest.raises(RegistrationClosedError) as exc_info:
            world.service().register(youth_request(world))
        assert exc_info.value.message == "Closed for now"

    def test_missing_price_writes_nothing(self, world):
        """Given a category without a price, raises MissingPriceConfiguration and writes nothing."""
        request = youth_request(
            world, line_items=(LineItemRequest(ParticipantCategory.CLERGY, 1),)
        )
        with pytest.raises(MissingPriceConfigurationError):
            world.service().register(request)
        assert world.registrations.rows == {}

    def test_room_requires_on_campus(self, world):
        """Given a room type with off-campus housing, raises a validation error."""
        request = youth_request(world, housing_type=HousingType.OFF_CAMPUS, room_type=RoomType.SINGLE)
        with pytest.raises(RegistrationValidationError) as exc_info:
            world.service().register(request)
        assert exc_info.value.field == "room_type"

    def test_empty_party(self, world):
        """Given only zero counts, raises a validation error."""
        request = youth_request(world, line_items=(LineItemRequest(ParticipantCategory.YOUTH, 0),))
        with pytest.raises(RegistrationValidationError):
            world.service().register(request)


class TestCardDetails:
    def test_platform_fee_for_connected_account(self, world):
        """Given a connected account at 3%, the fee is 3% of the charged cents."""
        world.connect_payout(fee_percent=Decimal("3"))
        world.service().register(youth_request(world))

        [request] = world.gateway.requests
        assert request.platform_fee_cents == 180
        assert request.destination_account == "acct_123"
        assert request.success_url.startswith("https://app.test/registration/confirmation/")

    def test_default_platform_fee(self, world):
        """Given a connected account without its own fee, the default 1% applies."""
        world.connect_payout()
        world.service().register(youth_request(world))
        assert world.gateway.requests[0].platform_fee_cents == 60

    def test_no_fee_without_connected_account(self, world):
        """Given no payout account, the charge carries no fee or destination."""
        world.service().register(youth_request(world))
        assert world.gateway.requests[0].platform_fee_cents is None
        assert world.gateway.requests[0].destination_account is None

    def test_free_registration_skips_gateway(self, world):
        """Given a 100% coupon, no gateway call is made and the registration is complete."""
        world.add_coupon(code="FREE", discount_type=DiscountType.PERCENTAGE, discount_value=Decimal("100"))
        result = world.service().register(youth_request(world, coupon_code="FREE"))

        assert result.total_amount == Money.zero()
        assert result.checkout_url is None
        assert not result.payment_setup_failed
        assert world.gateway.requests == []
        assert world.registrations.get(result.registration_id).status is RegistrationStatus.COMPLETED
        assert world.ledger.get_balance(result.registration_id).payment_status is PaymentStatus.PAID_FULL

    def test_coupons_disabled_ignores_code(self, world):
        """Given coupons disabled on the event, the code is ignored and not counted."""
        coupon = world.add_coupon()
        world.events.events[world.event.id] = replace(world.event, coupons_enabled=False)

        result = world.service().register(youth_request(world, coupon_code="SAVE20"))

        assert result.total_amount == Money.of(120)
        assert world.coupons.coupons[coupon.id].usage_count == 0

    def test_invalid_coupon_value_proceeds_at_full_price(self, world):
        """Given a coupon with a negative fixed value, the registration pays full price and no use is taken."""
        coupon = world.add_coupon(code="BROKEN", discount_type=DiscountType.FIXED, discount_value=Decimal("-10"))

        result = world.service().register(youth_request(world, coupon_code="BROKEN"))

        assert not result.coupon_applied
        assert result.total_amount == Money.of(120)
        assert world.coupons.coupons[coupon.id].usage_count == 0

    def test_single_use_coupon_second_registrant_pays_full(self, world):
        """Given a spent single-use coupon, the next registration proceeds at full price."""
        world.add_coupon(usage_limit_type=UsageLimitType.SINGLE_USE)
        first = world.service().register(youth_request(world, coupon_code="SAVE20"))
        second = world.service().register(youth_request(world, coupon_code="SAVE20"))

        assert first.total_amount == Money.of(96)
        assert second.total_amount == Money.of(120)
        assert not second.coupon_applied


class TestRegenerateCheckout:
    def test_regenerates_after_gateway_failure(self, world):
        """Given a failed payment setup, a new checkout charges the deposit."""
        world.gateway.fail = True
        result = world.service().register(youth_request(world))
        world.gateway.fail = False

        url = world.service().regenerate_checkout(str(result.registration_id))

        assert url.startswith("https://checkout.test/pay/")
        [payment] = world.ledger.payments
        assert payment.amount == Money.of(60)
        assert payment.payment_type is PaymentType.DEPOSIT

    def test_pending_session_is_logged(self, world):
        """Given an unpaid checkout session, a new one is created and the pending session is logged."""
        result = world.service().register(youth_request(world))

        with mock.patch.object(registration_service.logger, "warning") as warning:
            world.service().regenerate_checkout(str(result.registration_id))

        [call] = warning.call_args_list
        assert result.confirmation_code in call.args
        assert "cs_test_1" in call.args
        assert len(world.ledger.payments) == 2

    def test_gateway_error_propagates_on_retry(self, world):
        """Given the gateway still down, regenerating raises PaymentGatewayError."""
        world.gateway.fail = True
        result = world.service().register(youth_request(world))

        with pytest.raises(PaymentGatewayError):
            world.service().regenerate_checkout(str(result.registration_id))

    def test_paid_registration_refused(self, world):
        """Given a registration paid in full, raises InvalidStatusTransitionError."""
        world.add_coupon(code="FREE", discount_value=Decimal("100"))
        result = world.service().register(youth_request(world, coupon_code="FREE"))

        with pytest.raises(InvalidStatusTransitionError):
            world.service().regenerate_checkout(str(result.registration_id))

    def test_unknown_registration(self, world):
        """Given an unknown or malformed id, raises RegistrationNotFoundError."""
        for registration_id in (str(uuid.uuid4()), "nope"):
            with pytest.raises(RegistrationNotFoundError):
                world.service().regenerate_checkout(registration_id)


def test_codes_are_unique_across_many_registrations(world):
    """Fifty registrations get fifty distinct confirmation codes."""
    service = world.service()
    codes = {service.register(youth_request(world)).confirmation_code for _ in range(50)}
    assert len(codes) == 50
    assert len(world.registrations.rows) == 50
