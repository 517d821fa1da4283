from registrations.domain.models import (
    Coupon,
    EventPricingPolicy,
    EventProfile,
    PaymentBalance,
    Registration,
    RegistrationCharge,
)
from registrations.domain.value_objects import (
    CouponId,
    EventId,
    Money,
    Percentage,
    RegistrationId,
)

__all__ = [
    "Coupon",
    "EventPricingPolicy",
    "EventProfile",
    "PaymentBalance",
    "Registration",
    "RegistrationCharge",
    "EventId",
    "RegistrationId",
    "CouponId",
    "Money",
    "Percentage",
]
