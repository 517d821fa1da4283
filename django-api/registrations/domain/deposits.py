"""Deposit splitting: total + deposit policy -> (deposit due, balance remaining)."""

from dataclasses import dataclass
from decimal import Decimal

from registrations.domain.models import DepositPolicy
from registrations.domain.value_objects import Money, round_money


@dataclass(frozen=True)
class DepositSplit:
    deposit_due: Money
    balance_remaining: Money


def split(total: Money, policy: DepositPolicy) -> DepositSplit:
    """Split total by the first matching rule.

    Full payment, then percentage, then fixed amount, else nothing upfront.
    The deposit is rounded once and the balance is derived from it, so the
    two always add up to the total.
    """
    if policy.require_full_payment:
        deposit = total.amount
    elif policy.deposit_percentage is not None:
        deposit = round_money(policy.deposit_percentage.of(total.amount))
    elif policy.deposit_fixed_amount is not None:
        deposit = min(policy.deposit_fixed_amount.amount, total.amount)
    else:
        deposit = Decimal("0")

    deposit_due = Money(deposit)
    return DepositSplit(deposit_due=deposit_due, balance_remaining=total - deposit_due)
