"""Registration service - the payment orchestrator.

One call runs a registration attempt through its states:
pricing, coupon, deposit split, capacity check, persistence, and then
the card or check payment path.

- Everything before persistence either succeeds or raises with nothing
  written, except a consumed coupon use.
- The registration row and its payment balance are written in one unit
  of work; a confirmation code collision retries that unit with a new code.
- Capacity is taken after persistence. Payment path failures are reported
  on the result and never undo the registration.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from registrations.domain import EventId, EventProfile, Money, PaymentBalance, RegistrationId
from registrations.domain.availability import AvailabilityStatus, registration_availability
from registrations.domain.coupons import CouponResult
from registrations.domain.deposits import split
from registrations.domain.errors import (
    CapacityExceededError,
    CodeCollisionError,
    CodeGenerationExhaustedError,
    EventNotFoundError,
    InvalidEventIdError,
    InvalidStatusTransitionError,
    RegistrationClosedError,
    RegistrationNotFoundError,
    RegistrationValidationError,
)
from registrations.domain.models import (
    AppliedDiscount,
    HousingType,
    NewRegistration,
    PaymentMethod,
    PaymentStatus,
    PaymentType,
    Registration,
    RegistrationCharge,
    RegistrationStatus,
)
from registrations.domain.pricing import price_line_items
from registrations.domain.requests import RegistrationRequest, RegistrationResult
from registrations.domain.status import RegistrationState, advance_attempt
from registrations.services.capacity_ledger import CapacityLedger
from registrations.services.code_issuer import CodeIssuer
from registrations.services.coupon_engine import CouponEngine
from registrations.services.payment_paths import (
    CardPaymentPath,
    PaymentPath,
    amount_to_collect,
)
from registrations.stores.interfaces import (
    EventStore,
    PaymentLedgerStore,
    PricingPolicyStore,
    RegistrationStore,
    UnitOfWork,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _Attempt:
    """Tracks the state of one registration attempt."""

    def __init__(self) -> None:
        self.state = RegistrationState.INITIATED

    def advance(self, target: RegistrationState) -> None:
        self.state = advance_attempt(self.state, target)
        logger.debug("Registration attempt moved to %s", target.value)


class RegistrationService:
    """Service for creating registrations and retrying their card checkout."""

    def __init__(
        self,
        *,
        events: EventStore,
        pricing: PricingPolicyStore,
        coupons: CouponEngine,
        capacity: CapacityLedger,
        codes: CodeIssuer,
        registrations: RegistrationStore,
        ledger: PaymentLedgerStore,
        unit_of_work: UnitOfWork,
        payment_paths: dict[PaymentMethod, PaymentPath],
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._events = events
        self._pricing = pricing
        self._coupons = coupons
        self._capacity = capacity
        self._codes = codes
        self._registrations = registrations
        self._ledger = ledger
        self._uow = unit_of_work
        self._paths = payment_paths
        self._clock = clock

    def register(self, request: RegistrationRequest) -> RegistrationResult:
        """Create a registration and start its payment.

        Raises:
            RegistrationValidationError: If the request is malformed.
            InvalidEventIdError: If the event_id is not a valid UUID.
            EventNotFoundError: If the event or its pricing does not exist.
            RegistrationClosedError: If the event is not accepting registrations.
            MissingPriceConfigurationError: If a category has no base price.
            CapacityExceededError: If the event or an option is full.
            CodeGenerationExhaustedError: If no unique confirmation code was found.
        """
        self._validate(request)
        event_id = self._parse_event_id(request.event_id)
        event = self._events.get_event(event_id)
        if event is None:
            raise EventNotFoundError(str(event_id))
        policy = self._pricing.get(event_id)
        if policy is None:
            raise EventNotFoundError(str(event_id))

        now = self._clock()
        headcount = request.headcount
        self._check_open(event, headcount, now)
        attempt = _Attempt()

        priced = price_line_items(
            policy,
            request.line_items,
            request.housing_type,
            now,
            room_type=request.room_type,
            include_meal_package=request.meal_package,
            requested_tier=request.price_tier,
        )
        attempt.advance(RegistrationState.PRICED)

        coupon = self._apply_coupon(request, event, priced.subtotal, now)
        attempt.advance(RegistrationState.DISCOUNTED)

        deposit = split(coupon.total, policy.deposit)
        attempt.advance(RegistrationState.SPLIT)

        hold = self._capacity.ensure_available(
            event_id, headcount, request.housing_type, request.room_type
        )
        attempt.advance(RegistrationState.CAPACITY_RESERVED)

        charge = RegistrationCharge(
            line_items=priced.lines,
            subtotal=priced.subtotal,
            total=coupon.total,
            deposit_due=deposit.deposit_due,
            balance_remaining=deposit.balance_remaining,
            is_early_bird=priced.is_early_bird,
            tier=priced.tier,
            discount=(
                AppliedDiscount(coupon_id=coupon.coupon_id, code=coupon.code, amount=coupon.discount)
                if coupon.accepted
                else None
            ),
        )
        path = self._paths[request.payment_method]
        amount_due = amount_to_collect(charge.deposit_due, charge.total)
        registration = self._persist(request, event, charge, path, amount_due)
        attempt.advance(RegistrationState.PERSISTED)

        try:
            capacity_reserved = self._capacity.reserve(hold)
        except Exception:
            logger.exception(
                "Capacity decrement failed for registration %s (%s) of event %s",
                registration.id,
                registration.confirmation_code,
                event_id,
            )
            capacity_reserved = False
        if not capacity_reserved:
            logger.warning(
                "Registration %s (%s) of event %s stands without a capacity decrement",
                registration.id,
                registration.confirmation_code,
                event_id,
            )

        attempt.advance(path.pending_state)
        outcome = path.start(registration, event, amount_due, charge.total)
        attempt.advance(RegistrationState.RESPONDED)

        logger.info(
            "Registration %s created for event %s: total %s, due now %s, method %s",
            registration.confirmation_code,
            event_id,
            charge.total,
            amount_due,
            request.payment_method.value,
        )
        return RegistrationResult(
            registration_id=registration.id,
            confirmation_code=registration.confirmation_code,
            total_amount=charge.total,
            deposit_due=charge.deposit_due,
            balance_remaining=charge.balance_remaining,
            payment_method=request.payment_method,
            charge=charge,
            checkout_url=outcome.checkout_url,
            check_instructions=outcome.check_instructions,
            payment_setup_failed=outcome.payment_setup_failed,
            capacity_reserved=capacity_reserved,
            notification_sent=outcome.notification_sent,
        )

    def regenerate_checkout(self, registration_id: str) -> str:
        """Create a fresh card checkout for a registration that still owes money.

        Charges the deposit when nothing has been paid yet, otherwise the
        remaining balance.

        Raises:
            RegistrationNotFoundError: If the registration does not exist.
            InvalidStatusTransitionError: If it is cancelled or paid in full.
            PaymentGatewayError: If the gateway is unavailable.
        """
        try:
            reg_id = RegistrationId.from_string(registration_id)
        except ValueError:
            raise RegistrationNotFoundError(registration_id) from None

        registration = self._registrations.get(reg_id)
        balance = self._ledger.get_balance(reg_id)
        if registration is None or balance is None:
            raise RegistrationNotFoundError(registration_id)
        if registration.status is RegistrationStatus.CANCELLED:
            raise InvalidStatusTransitionError(
                registration.status.value, RegistrationStatus.PENDING_PAYMENT.value
            )
        if balance.payment_status is PaymentStatus.PAID_FULL or not balance.amount_remaining:
            raise InvalidStatusTransitionError(
                balance.payment_status.value, PaymentStatus.PAID_FULL.value
            )

        event = self._events.get_event(registration.event_id)
        if event is None:
            raise EventNotFoundError(str(registration.event_id))

        if not balance.amount_paid and balance.deposit_due:
            amount, payment_type = balance.deposit_due, PaymentType.DEPOSIT
        else:
            amount, payment_type = balance.amount_remaining, PaymentType.BALANCE

        card_path = self._paths[PaymentMethod.CARD]
        if not isinstance(card_path, CardPaymentPath):
            raise TypeError("card payment path does not support checkout regeneration")

        pending = [
            p.gateway_intent_id
            for p in self._ledger.list_pending_payments(reg_id)
            if p.method is PaymentMethod.CARD
        ]
        if pending:
            # paying both sessions overpays; confirmation logs it if it happens
            logger.warning(
                "New checkout for registration %s while card sessions %s are still pending",
                registration.confirmation_code,
                ", ".join(str(intent) for intent in pending),
            )
        return card_path.create_checkout(
            registration, event, amount, balance.total_amount_due, payment_type
        )

    def _validate(self, request: RegistrationRequest) -> None:
        registrant = request.registrant
        if not registrant.first_name.strip() or not registrant.last_name.strip():
            raise RegistrationValidationError("First and last name are required", field="registrant")
        if not registrant.email.strip():
            raise RegistrationValidationError("Email is required", field="email")
        if not request.line_items:
            raise RegistrationValidationError("At least one participant is required", field="line_items")
        if any(item.count < 0 for item in request.line_items):
            raise RegistrationValidationError("Participant counts cannot be negative", field="line_items")
        if request.headcount <= 0:
            raise RegistrationValidationError("At least one participant is required", field="line_items")
        if request.room_type is not None and request.housing_type is not HousingType.ON_CAMPUS:
            raise RegistrationValidationError(
                "Room type can only be selected with on-campus housing", field="room_type"
            )
        if request.payment_method not in self._paths:
            raise RegistrationValidationError("Payment method is not available", field="payment_method")

    def _parse_event_id(self, event_id: str) -> EventId:
        try:
            return EventId.from_string(event_id)
        except ValueError:
            raise InvalidEventIdError() from None

    def _check_open(self, event: EventProfile, headcount: int, now: datetime) -> None:
        availability = registration_availability(
            event.window, self._capacity.counter(event.id), now
        )
        if availability.allow_registration:
            return
        if availability.status is AvailabilityStatus.AT_CAPACITY:
            raise CapacityExceededError(str(event.id), headcount, 0)
        raise RegistrationClosedError(str(event.id), availability.status.value, availability.message)

    def _apply_coupon(
        self,
        request: RegistrationRequest,
        event: EventProfile,
        subtotal: Money,
        now: datetime,
    ) -> CouponResult:
        if not request.coupon_code or not event.coupons_enabled:
            return CouponResult(accepted=False, total=subtotal)
        return self._coupons.apply_coupon(
            request.coupon_code, event.id, subtotal, request.registrant.email, now
        )

    def _persist(
        self,
        request: RegistrationRequest,
        event: EventProfile,
        charge: RegistrationCharge,
        path: PaymentPath,
        amount_due: Money,
    ) -> Registration:
        registration_status, payment_status = path.opening_statuses(amount_due)
        attempts = self._codes.max_attempts
        for attempt in range(1, attempts + 1):
            code = self._codes.issue(event.slug)
            try:
                with self._uow.atomic():
                    registration = self._registrations.create(
                        NewRegistration(
                            event_id=event.id,
                            organization_id=event.organization_id,
                            kind=request.kind,
                            confirmation_code=code,
                            registrant=request.registrant,
                            line_items=charge.line_items,
                            housing_type=request.housing_type,
                            total_participants=charge.headcount,
                            total_amount=charge.total,
                            status=registration_status,
                            room_type=request.room_type,
                            meal_package=request.meal_package,
                            group_name=request.group_name,
                        )
                    )
                    self._ledger.create(
                        PaymentBalance.opening(
                            registration.id,
                            event.id,
                            charge.total,
                            charge.deposit_due,
                            payment_status,
                        )
                    )
                return registration
            except CodeCollisionError as exc:
                logger.warning(
                    "Confirmation code %s collided on insert (attempt %s of %s)",
                    exc.confirmation_code,
                    attempt,
                    attempts,
                )
        raise CodeGenerationExhaustedError(attempts)
