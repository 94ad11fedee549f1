"""
Billing Configuration

This module defines the plan table, discount codes and billing constants.

Usage:
    from subscription_backend.src.billing.shared.config import PLANS, get_plan_by_name

    plan = get_plan_by_name('basic')
    print(plan.amount)  # Decimal('10.00')
"""

from decimal import Decimal
from typing import Dict, Optional

from subscription_backend.core.conf import settings
from subscription_backend.src.billing.domain.plan import Discount, Plan


# =============================================================================
# BILLING CONSTANTS
# =============================================================================
# Smallest currency unit per major unit (cents per dollar)
MINOR_UNITS_PER_MAJOR: int = 100

# Monetary amounts are kept at cent precision
MONEY_QUANTUM: Decimal = Decimal('0.01')

DEFAULT_RENEWAL_PERIOD: int = settings.BILLING_DEFAULT_RENEWAL_PERIOD
DEFAULT_RENEWAL_INTERVAL: str = settings.BILLING_DEFAULT_RENEWAL_INTERVAL

# Trials ending this many days out get an expiry notice
TRIAL_EXPIRY_NOTICE_DAYS: int = settings.BILLING_TRIAL_EXPIRY_NOTICE_DAYS


# =============================================================================
# PLAN DEFINITIONS
# =============================================================================
PLANS: Dict[str, Plan] = {
    # -------------------------------------------------------------------------
    # Free - no card needed, active from day one
    # -------------------------------------------------------------------------
    'free': Plan(
        name='free',
        amount=Decimal('0.00'),
        user_limit=2,
        renewal_period=DEFAULT_RENEWAL_PERIOD,
        renewal_interval=DEFAULT_RENEWAL_INTERVAL,
    ),
    # -------------------------------------------------------------------------
    # Basic - one month trial
    # -------------------------------------------------------------------------
    'basic': Plan(
        name='basic',
        amount=Decimal('10.00'),
        user_limit=5,
        trial_period=1,
        trial_interval='months',
        renewal_period=DEFAULT_RENEWAL_PERIOD,
        renewal_interval=DEFAULT_RENEWAL_INTERVAL,
    ),
    # -------------------------------------------------------------------------
    # Premium - 15 day trial, setup fee on the first charge
    # -------------------------------------------------------------------------
    'premium': Plan(
        name='premium',
        amount=Decimal('50.00'),
        user_limit=None,
        setup_amount=Decimal('25.00'),
        trial_period=15,
        trial_interval='days',
        renewal_period=DEFAULT_RENEWAL_PERIOD,
        renewal_interval=DEFAULT_RENEWAL_INTERVAL,
    ),
}


DISCOUNTS: Dict[str, Discount] = {
    'WELCOME5': Discount(code='WELCOME5', amount=Decimal('5.00')),
    'LONGTRIAL': Discount(code='LONGTRIAL', amount=Decimal('0.00'), trial_period_extension=1),
}


def get_plan_by_name(name: str) -> Optional[Plan]:
    """Look up a plan by its internal name."""
    return PLANS.get(name)


def get_discount_by_code(code: str) -> Optional[Discount]:
    """Look up a discount by its code (case-insensitive)."""
    if not code:
        return None
    return DISCOUNTS.get(code.upper())
