"""Domain models representing event configuration and persisted state.

These are pure domain objects with no API input rules.
Django ORM models are in registrations/models.py (persistence layer).
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum

from registrations.domain.value_objects import (
    CouponId,
    EventId,
    Money,
    Percentage,
    RegistrationId,
)


class ParticipantCategory(str, Enum):
    YOUTH = "youth"
    CHAPERONE = "chaperone"
    CLERGY = "clergy"
    INDIVIDUAL = "individual"


class HousingType(str, Enum):
    ON_CAMPUS = "on_campus"
    OFF_CAMPUS = "off_campus"
    DAY_PASS = "day_pass"


class RoomType(str, Enum):
    SINGLE = "single"
    DOUBLE = "double"
    TRIPLE = "triple"
    QUAD = "quad"


class PriceTier(str, Enum):
    EARLY_BIRD = "early_bird"
    REGULAR = "regular"
    LATE = "late"


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class UsageLimitType(str, Enum):
    SINGLE_USE = "single_use"
    LIMITED = "limited"
    UNLIMITED = "unlimited"


class RegistrationKind(str, Enum):
    INDIVIDUAL = "individual"
    GROUP = "group"


class RegistrationStatus(str, Enum):
    INCOMPLETE = "incomplete"
    PENDING_PAYMENT = "pending_payment"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Status of the payment-balance ledger row."""

    UNPAID = "unpaid"
    PENDING_CHECK_PAYMENT = "pending_check_payment"
    DEPOSIT_PAID = "deposit_paid"
    PAID_PARTIAL = "paid_partial"
    PAID_FULL = "paid_full"


class PaymentMethod(str, Enum):
    CARD = "card"
    CHECK = "check"


class PaymentType(str, Enum):
    DEPOSIT = "deposit"
    BALANCE = "balance"
    REFUND = "refund"


class PaymentRecordStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class TierPrices:
    """Per-category prices for each pricing tier."""

    early_bird: Money | None = None
    regular: Money | None = None
    late: Money | None = None


@dataclass(frozen=True)
class DepositPolicy:
    """How much of the total is due upfront.

    Percentage takes precedence over the fixed amount when both are set.
    """

    require_full_payment: bool = False
    deposit_percentage: Percentage | None = None
    deposit_fixed_amount: Money | None = None


@dataclass(frozen=True)
class EventPricingPolicy:
    """Read-only pricing snapshot of one event."""

    event_id: EventId
    category_prices: dict[ParticipantCategory, TierPrices] = field(default_factory=dict)
    early_bird_deadline: datetime | None = None
    regular_deadline: datetime | None = None
    housing_prices: dict[tuple[ParticipantCategory, HousingType], Money] = field(
        default_factory=dict
    )
    room_prices: dict[RoomType, Money] = field(default_factory=dict)
    meal_package_price: Money | None = None
    deposit: DepositPolicy = DepositPolicy()

    def tier_prices(self, category: ParticipantCategory) -> TierPrices:
        return self.category_prices.get(category, TierPrices())

    def housing_price(
        self, category: ParticipantCategory, housing_type: HousingType
    ) -> Money | None:
        return self.housing_prices.get((category, housing_type))


@dataclass(frozen=True)
class Coupon:
    """Domain representation of a promotional code."""

    id: CouponId
    event_id: EventId
    code: str
    active: bool
    discount_type: DiscountType
    discount_value: Decimal
    usage_limit_type: UsageLimitType
    usage_count: int = 0
    max_uses: int | None = None
    expiration_date: datetime | None = None
    restrict_to_email: str | None = None


@dataclass(frozen=True)
class CapacityCounter:
    """Seat counter; None on either side means unlimited and untracked."""

    total: int | None = None
    remaining: int | None = None

    @property
    def is_tracked(self) -> bool:
        return self.total is not None and self.remaining is not None


@dataclass(frozen=True)
class OptionCounters:
    """Per housing-type and per room-type sub-capacity of an event."""

    housing: dict[HousingType, CapacityCounter] = field(default_factory=dict)
    rooms: dict[RoomType, CapacityCounter] = field(default_factory=dict)


@dataclass(frozen=True)
class PayoutAccount:
    """The organizer's connected payout account on the gateway."""

    account_id: str | None = None
    charges_enabled: bool = False
    platform_fee_percent: Decimal | None = None

    @property
    def is_connected(self) -> bool:
        return bool(self.account_id) and self.charges_enabled


@dataclass(frozen=True)
class CheckInstructions:
    payable_to: str
    mailing_address: str | None = None
    instructions: str | None = None


@dataclass(frozen=True)
class RegistrationWindow:
    """Dates and switches that decide whether an event accepts registrations."""

    start_date: datetime
    end_date: datetime
    opens_at: datetime | None = None
    closes_at: datetime | None = None
    manually_closed: bool = False
    closed_message: str | None = None
    waitlist_enabled: bool = False


@dataclass(frozen=True)
class EventProfile:
    """Event facts the registration engine needs besides pricing."""

    id: EventId
    name: str
    slug: str
    organization_id: str
    organization_name: str
    window: RegistrationWindow
    payout: PayoutAccount = PayoutAccount()
    coupons_enabled: bool = False
    check_payable_to: str | None = None
    check_mailing_address: str | None = None
    check_instructions_text: str | None = None

    @property
    def check_instructions(self) -> CheckInstructions:
        return CheckInstructions(
            payable_to=self.check_payable_to or self.organization_name,
            mailing_address=self.check_mailing_address,
            instructions=self.check_instructions_text,
        )


@dataclass(frozen=True)
class Registrant:
    first_name: str
    last_name: str
    email: str
    phone: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class ChargeLine:
    """One priced line of a registration charge."""

    category: ParticipantCategory
    count: int
    unit_price: Money
    subtotal: Money
    label: str | None = None


@dataclass(frozen=True)
class AppliedDiscount:
    coupon_id: CouponId
    code: str
    amount: Money


@dataclass(frozen=True)
class RegistrationCharge:
    """Ephemeral result of pricing; only totals are persisted downstream."""

    line_items: tuple[ChargeLine, ...]
    subtotal: Money
    total: Money
    deposit_due: Money
    balance_remaining: Money
    is_early_bird: bool
    tier: PriceTier
    discount: AppliedDiscount | None = None

    @property
    def headcount(self) -> int:
        return sum(line.count for line in self.line_items)


@dataclass(frozen=True)
class NewRegistration:
    """Registration row about to be written."""

    event_id: EventId
    organization_id: str
    kind: RegistrationKind
    confirmation_code: str
    registrant: Registrant
    line_items: tuple[ChargeLine, ...]
    housing_type: HousingType
    total_participants: int
    total_amount: Money
    status: RegistrationStatus
    room_type: RoomType | None = None
    meal_package: bool = False
    group_name: str | None = None


@dataclass(frozen=True)
class Registration:
    """Domain representation of a persisted registration."""

    id: RegistrationId
    event_id: EventId
    organization_id: str
    kind: RegistrationKind
    confirmation_code: str
    registrant: Registrant
    housing_type: HousingType
    total_participants: int
    total_amount: Money
    status: RegistrationStatus
    created_at: datetime
    room_type: RoomType | None = None
    meal_package: bool = False
    group_name: str | None = None


@dataclass(frozen=True)
class PaymentBalance:
    """Ledger row of amount due, paid and remaining for one registration."""

    registration_id: RegistrationId
    event_id: EventId
    total_amount_due: Money
    amount_paid: Money
    amount_remaining: Money
    payment_status: PaymentStatus
    deposit_due: Money = Money.zero()
    late_fees_applied: Money = Money.zero()

    @classmethod
    def opening(
        cls,
        registration_id: RegistrationId,
        event_id: EventId,
        total: Money,
        deposit_due: Money,
        status: PaymentStatus,
    ) -> "PaymentBalance":
        return cls(
            registration_id=registration_id,
            event_id=event_id,
            total_amount_due=total,
            amount_paid=Money.zero(),
            amount_remaining=total,
            payment_status=status,
            deposit_due=deposit_due,
        )


@dataclass(frozen=True)
class Payment:
    """A single payment attempt against a registration."""

    registration_id: RegistrationId
    event_id: EventId
    amount: Money
    payment_type: PaymentType
    method: PaymentMethod
    status: PaymentRecordStatus
    gateway_intent_id: str | None = None
    id: int | None = None
