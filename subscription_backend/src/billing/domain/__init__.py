"""Domain entities for billing module."""

from .card import CreditCard
from .payment import PaymentRecord
from .plan import INTERVALS, Affiliate, Discount, Plan
from .subscription import Subscriber, Subscription, SubscriptionState, from_minor_units, to_minor_units

__all__ = [
    'INTERVALS',
    'Affiliate',
    'CreditCard',
    'Discount',
    'PaymentRecord',
    'Plan',
    'Subscriber',
    'Subscription',
    'SubscriptionState',
    'from_minor_units',
    'to_minor_units',
]
