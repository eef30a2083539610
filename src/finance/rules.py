"""Status to financial rule table and net amount computation."""

from decimal import ROUND_HALF_UP, Decimal
from typing import assert_never

from trip import FinancialRule, FinancialStatus, TripStatus

CENTS = Decimal("0.01")
DEFAULT_FORCE_CLOSE_DISCOUNT = Decimal("100")

RULE_MULTIPLIERS: dict[FinancialRule, Decimal] = {
    FinancialRule.COMPLETED_FULL: Decimal("1"),
    FinancialRule.FAILED_DOUBLE: Decimal("-2"),
    FinancialRule.EMERGENCY_DEDUCTION: Decimal("-1"),
}


def rule_for_status(status: TripStatus) -> FinancialRule | None:
    """Settlement rule for a trip status, or None when the status is not settled.

    The match is exhaustive over TripStatus; a new status without a branch
    fails type checking at assert_never.
    """
    match status:
        case TripStatus.COMPLETED:
            return FinancialRule.COMPLETED_FULL
        case TripStatus.FAILED:
            return FinancialRule.FAILED_DOUBLE
        case TripStatus.EMERGENCY_ENDED | TripStatus.EMERGENCY_TERMINATED:
            return FinancialRule.EMERGENCY_DEDUCTION
        case TripStatus.FORCE_CLOSED:
            return FinancialRule.FORCE_CLOSED_DEDUCTION
        case TripStatus.SCHEDULED | TripStatus.ACTIVE | TripStatus.CANCELLED:
            return None
        case _:
            assert_never(status)


def compute_net_amount(
    rule: FinancialRule,
    price: Decimal,
    force_close_discount: Decimal = DEFAULT_FORCE_CLOSE_DISCOUNT,
) -> Decimal:
    """Signed amount credited to (positive) or debited from (negative) the captain.

    FORCE_CLOSED_DEDUCTION is a flat discount on the deduction,
    -(price - discount), not a multiplier.
    """
    price = Decimal(price)
    if rule is FinancialRule.FORCE_CLOSED_DEDUCTION:
        net = -(price - force_close_discount)
    elif rule is FinancialRule.NONE:
        net = Decimal("0")
    else:
        net = price * RULE_MULTIPLIERS[rule]
    return net.quantize(CENTS, rounding=ROUND_HALF_UP)


def financial_status_for(net: Decimal) -> FinancialStatus:
    if net > 0:
        return FinancialStatus.PAID
    if net < 0:
        return FinancialStatus.PENALIZED
    return FinancialStatus.NONE
