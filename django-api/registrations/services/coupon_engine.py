import logging
from datetime import datetime

from registrations.domain import EventId, Money
from registrations.domain.coupons import (
    CouponRejection,
    CouponResult,
    check_coupon,
    compute_discount,
    discounted_total,
    normalize_code,
)
from registrations.stores.interfaces import CouponStore

logger = logging.getLogger(__name__)


class CouponEngine:
    """Validates a coupon and records its use.

    The usage increment is a conditional update in the store. When it
    affects no row another request took the last use first, and the
    coupon is treated as exhausted. A recorded use is never given back.
    """

    def __init__(self, store: CouponStore) -> None:
        self._store = store

    def apply_coupon(
        self,
        code: str,
        event_id: EventId,
        subtotal: Money,
        registrant_email: str,
        now: datetime,
    ) -> CouponResult:
        normalized = normalize_code(code)
        if not normalized:
            return CouponResult.rejected(subtotal, CouponRejection.NOT_FOUND)

        coupon = self._store.find(event_id, normalized)
        rejection = check_coupon(coupon, registrant_email, now)
        if rejection is not None:
            logger.info("Coupon %s not applied to event %s: %s", normalized, event_id, rejection.value)
            return CouponResult.rejected(subtotal, rejection)

        discount = compute_discount(coupon, subtotal)
        if not self._store.increment_usage(coupon.id):
            logger.info("Coupon %s ran out of uses concurrently", normalized)
            return CouponResult.rejected(subtotal, CouponRejection.USAGE_EXHAUSTED)

        return CouponResult(
            accepted=True,
            total=discounted_total(subtotal, discount),
            discount=discount,
            coupon_id=coupon.id,
            code=coupon.code,
        )
