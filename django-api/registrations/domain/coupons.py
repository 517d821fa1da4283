"""Coupon validation and discount arithmetic.

Rejections are normal outcomes, never exceptions: a coupon that does not
apply leaves the subtotal untouched and the registration proceeds.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

from registrations.domain.models import Coupon, DiscountType, UsageLimitType
from registrations.domain.value_objects import CouponId, Money, round_money


class CouponRejection(str, Enum):
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    EXPIRED = "expired"
    USAGE_EXHAUSTED = "usage_exhausted"
    EMAIL_MISMATCH = "email_mismatch"
    INVALID_VALUE = "invalid_value"


@dataclass(frozen=True)
class CouponResult:
    accepted: bool
    total: Money
    discount: Money | None = None
    coupon_id: CouponId | None = None
    code: str | None = None
    rejection: CouponRejection | None = None

    @classmethod
    def rejected(cls, subtotal: Money, reason: CouponRejection) -> "CouponResult":
        return cls(accepted=False, total=subtotal, rejection=reason)


def normalize_code(code: str) -> str:
    return code.strip().upper()


def has_valid_value(coupon: Coupon) -> bool:
    value = Decimal(coupon.discount_value)
    if coupon.discount_type is DiscountType.PERCENTAGE:
        return Decimal("0") <= value <= Decimal("100")
    return value >= 0


def has_uses_left(coupon: Coupon) -> bool:
    if coupon.usage_limit_type is UsageLimitType.SINGLE_USE:
        return coupon.usage_count < 1
    if coupon.usage_limit_type is UsageLimitType.LIMITED:
        return coupon.max_uses is not None and coupon.usage_count < coupon.max_uses
    return True


def check_coupon(
    coupon: Coupon | None, registrant_email: str, now: datetime
) -> CouponRejection | None:
    """Run the validation chain in order; return the first failure or None."""
    if coupon is None:
        return CouponRejection.NOT_FOUND
    if not coupon.active:
        return CouponRejection.INACTIVE
    if not has_valid_value(coupon):
        return CouponRejection.INVALID_VALUE
    if coupon.expiration_date is not None and coupon.expiration_date < now:
        return CouponRejection.EXPIRED
    if not has_uses_left(coupon):
        return CouponRejection.USAGE_EXHAUSTED
    if coupon.restrict_to_email and (
        coupon.restrict_to_email.strip().lower() != registrant_email.strip().lower()
    ):
        return CouponRejection.EMAIL_MISMATCH
    return None


def compute_discount(coupon: Coupon, subtotal: Money) -> Money:
    """Discount amount, never larger than the subtotal."""
    if coupon.discount_type is DiscountType.PERCENTAGE:
        raw = subtotal.amount * Decimal(coupon.discount_value) / Decimal("100")
    else:
        raw = Decimal(coupon.discount_value)
    return Money(min(round_money(raw), subtotal.amount))


def discounted_total(subtotal: Money, discount: Money) -> Money:
    return Money(max(Decimal("0"), subtotal.amount - discount.amount))
