"""
Amount Calculator

Computes what a subscription is charged per renewal period:
the plan amount minus the better of the account discount and the plan's
own discount, never below zero.

Pure functions; absent inputs count as a zero discount.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from subscription_backend.src.billing.domain.plan import Affiliate, Discount, Plan, to_decimal
from subscription_backend.src.billing.shared.config import MONEY_QUANTUM

logger = logging.getLogger(__name__)

ZERO = Decimal('0')


def quantize_money(value: Decimal) -> Decimal:
    return to_decimal(value).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def select_discount(
    account_discount: Optional[Discount],
    plan_discount: Optional[Discount]
) -> Optional[Discount]:
    """
    Pick the discount that applies: the larger amount wins, the account
    discount wins ties, a single present discount applies as-is.
    """
    if account_discount is None:
        return plan_discount
    if plan_discount is None:
        return account_discount
    if plan_discount.amount > account_discount.amount:
        return plan_discount
    return account_discount


def compute_amount(
    plan: Optional[Plan],
    account_discount: Optional[Discount] = None,
    plan_discount: Optional[Discount] = None
) -> Decimal:
    """
    Calculate the effective charge amount.

    Args:
        plan: Plan being billed (None charges nothing)
        account_discount: Discount attached to the subscription/account
        plan_discount: Discount embedded in the plan

    Returns:
        max(0, plan.amount - best discount), at cent precision
    """
    if plan is None:
        return quantize_money(ZERO)

    discount = select_discount(account_discount, plan_discount)
    deduction = discount.amount if discount else ZERO
    amount = max(ZERO, plan.amount - deduction)

    logger.debug(
        f"[CALC] plan={plan.name} base={plan.amount} "
        f"discount={discount.code if discount else None} amount={amount}"
    )
    return quantize_money(amount)


def compute_trial_extension(
    account_discount: Optional[Discount],
    plan_discount: Optional[Discount]
) -> int:
    """Trial extension carried by the applicable discount (0 when none)."""
    discount = select_discount(account_discount, plan_discount)
    if discount is None:
        return 0
    return discount.trial_period_extension or 0


def compute_affiliate_commission(amount: Decimal, affiliate: Optional[Affiliate]) -> Optional[Decimal]:
    """Commission owed on a charge: amount * rate, or None without an affiliate."""
    if affiliate is None:
        return None
    return quantize_money(to_decimal(amount) * affiliate.rate)
