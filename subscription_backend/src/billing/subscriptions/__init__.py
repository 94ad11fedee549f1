"""
Subscriptions Module

Pure amount and renewal-date rules. The orchestration lives in the
submodules and is imported from them directly:

    from subscription_backend.src.billing.subscriptions.service import SubscriptionService
    from subscription_backend.src.billing.subscriptions.finders import SubscriptionFinder
    from subscription_backend.src.billing.subscriptions.renewal_job import RenewalJob
"""

from .calculator import (
    compute_affiliate_commission,
    compute_amount,
    compute_trial_extension,
    quantize_money,
    select_discount,
)
from .scheduler import advance, compute_next_renewal

__all__ = [
    # Calculator
    'compute_affiliate_commission',
    'compute_amount',
    'compute_trial_extension',
    'quantize_money',
    'select_discount',
    # Scheduler
    'advance',
    'compute_next_renewal',
]
