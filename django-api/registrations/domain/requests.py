"""Input and output contracts of the registration engine, independent of transport."""

from dataclasses import dataclass

from registrations.domain.models import (
    CheckInstructions,
    HousingType,
    ParticipantCategory,
    PaymentMethod,
    PriceTier,
    Registrant,
    RegistrationCharge,
    RegistrationKind,
    RoomType,
)
from registrations.domain.value_objects import Money, RegistrationId


@dataclass(frozen=True)
class LineItemRequest:
    """Headcount of one participant category, e.g. female youth under 18."""

    category: ParticipantCategory
    count: int
    label: str | None = None


@dataclass(frozen=True)
class RegistrationRequest:
    event_id: str
    registrant: Registrant
    line_items: tuple[LineItemRequest, ...]
    housing_type: HousingType
    payment_method: PaymentMethod
    room_type: RoomType | None = None
    meal_package: bool = False
    coupon_code: str | None = None
    price_tier: PriceTier | None = None
    group_name: str | None = None

    @property
    def headcount(self) -> int:
        return sum(item.count for item in self.line_items)

    @property
    def kind(self) -> RegistrationKind:
        if self.group_name or len(self.line_items) > 1:
            return RegistrationKind.GROUP
        return RegistrationKind.INDIVIDUAL


@dataclass(frozen=True)
class RegistrationResult:
    registration_id: RegistrationId
    confirmation_code: str
    total_amount: Money
    deposit_due: Money
    balance_remaining: Money
    payment_method: PaymentMethod
    charge: RegistrationCharge
    checkout_url: str | None = None
    check_instructions: CheckInstructions | None = None
    payment_setup_failed: bool = False
    capacity_reserved: bool = True
    notification_sent: bool | None = None

    @property
    def coupon_applied(self) -> bool:
        return self.charge.discount is not None
