"""Shared configuration, exceptions and time sources for the billing module."""

from .clock import Clock, FixedClock, SystemClock, beginning_of_day, end_of_day, ensure_utc
from .config import (
    DISCOUNTS,
    MINOR_UNITS_PER_MAJOR,
    MONEY_QUANTUM,
    PLANS,
    TRIAL_EXPIRY_NOTICE_DAYS,
    get_discount_by_code,
    get_plan_by_name,
)
from .exceptions import (
    BillingError,
    CircuitBreakerOpenError,
    PaymentError,
    ReconciliationFault,
    SubscriptionError,
    ValidationError,
)

__all__ = [
    # Time
    'Clock',
    'FixedClock',
    'SystemClock',
    'beginning_of_day',
    'end_of_day',
    'ensure_utc',
    # Configuration
    'DISCOUNTS',
    'MINOR_UNITS_PER_MAJOR',
    'MONEY_QUANTUM',
    'PLANS',
    'TRIAL_EXPIRY_NOTICE_DAYS',
    'get_discount_by_code',
    'get_plan_by_name',
    # Exceptions
    'BillingError',
    'CircuitBreakerOpenError',
    'PaymentError',
    'ReconciliationFault',
    'SubscriptionError',
    'ValidationError',
]
