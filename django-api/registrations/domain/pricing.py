"""Pricing rules: event pricing table + selections + time -> base price.

Pure functions, no I/O. Housing-specific prices replace the tier price,
they are not added to it, and they win over early-bird discounting.
"""

from dataclasses import dataclass
from datetime import datetime

from registrations.domain.errors import MissingPriceConfigurationError
from registrations.domain.models import (
    ChargeLine,
    EventPricingPolicy,
    HousingType,
    ParticipantCategory,
    PriceTier,
    RoomType,
)
from registrations.domain.requests import LineItemRequest
from registrations.domain.value_objects import Money


@dataclass(frozen=True)
class PricedLines:
    lines: tuple[ChargeLine, ...]
    subtotal: Money
    tier: PriceTier

    @property
    def is_early_bird(self) -> bool:
        return self.tier is PriceTier.EARLY_BIRD


def is_early_bird(policy: EventPricingPolicy, now: datetime) -> bool:
    return policy.early_bird_deadline is not None and now <= policy.early_bird_deadline


def select_tier(
    policy: EventPricingPolicy, now: datetime, requested: PriceTier | None = None
) -> PriceTier:
    """Pick the tier for this moment.

    Only early-bird is derived from the clock. The late tier is never
    selected by date, it has to be requested by the caller and only
    applies once early-bird has passed.
    """
    if is_early_bird(policy, now):
        return PriceTier.EARLY_BIRD
    if requested is PriceTier.LATE:
        return PriceTier.LATE
    return PriceTier.REGULAR


def _tier_price(
    policy: EventPricingPolicy, category: ParticipantCategory, tier: PriceTier
) -> Money:
    prices = policy.tier_prices(category)
    selected = {
        PriceTier.EARLY_BIRD: prices.early_bird,
        PriceTier.REGULAR: prices.regular,
        PriceTier.LATE: prices.late,
    }[tier]
    # unset early-bird or late prices fall back to regular
    price = selected if selected is not None else prices.regular
    if price is None:
        raise MissingPriceConfigurationError(category.value)
    return price


def compute_base_price(
    policy: EventPricingPolicy,
    category: ParticipantCategory,
    housing_type: HousingType,
    *,
    now: datetime,
    room_type: RoomType | None = None,
    include_meal_package: bool = False,
    requested_tier: PriceTier | None = None,
) -> Money:
    """Return the per-person price for one participant category.

    Raises:
        MissingPriceConfigurationError: If no base price is configured.
    """
    price = policy.housing_price(category, housing_type)
    if price is None:
        price = _tier_price(policy, category, select_tier(policy, now, requested_tier))

    if housing_type is HousingType.ON_CAMPUS and room_type is not None:
        room_price = policy.room_prices.get(room_type)
        if room_price is not None:
            price = price + room_price

    if include_meal_package and policy.meal_package_price is not None:
        price = price + policy.meal_package_price

    return price


def price_line_items(
    policy: EventPricingPolicy,
    line_items: tuple[LineItemRequest, ...],
    housing_type: HousingType,
    now: datetime,
    room_type: RoomType | None = None,
    include_meal_package: bool = False,
    requested_tier: PriceTier | None = None,
) -> PricedLines:
    """Price each line item separately and sum the subtotals."""
    lines = []
    for item in line_items:
        if item.count <= 0:
            continue
        unit_price = compute_base_price(
            policy,
            item.category,
            housing_type,
            room_type=room_type,
            include_meal_package=include_meal_package,
            now=now,
            requested_tier=requested_tier,
        )
        lines.append(
            ChargeLine(
                category=item.category,
                count=item.count,
                unit_price=unit_price,
                subtotal=unit_price * item.count,
                label=item.label,
            )
        )

    subtotal = Money.zero()
    for line in lines:
        subtotal = subtotal + line.subtotal
    return PricedLines(
        lines=tuple(lines),
        subtotal=subtotal,
        tier=select_tier(policy, now, requested_tier),
    )
