"""
Subscription finders

Read-only queries used by the periodic renewal trigger. Each selects a
single UTC day window.
"""

from datetime import datetime, timedelta
from typing import List, Optional

from subscription_backend.src.billing.domain.subscription import Subscription, SubscriptionState
from subscription_backend.src.billing.repositories.interfaces import SubscriptionRepository
from subscription_backend.src.billing.shared.clock import Clock, SystemClock, beginning_of_day, end_of_day
from subscription_backend.src.billing.shared.config import TRIAL_EXPIRY_NOTICE_DAYS


class SubscriptionFinder:
    """
    Usage:
        finder = SubscriptionFinder(repository, clock)
        due = await finder.find_due()
        converting = await finder.find_due_trials()
        expiring = await finder.find_expiring_trials()
    """

    def __init__(
        self,
        subscriptions: SubscriptionRepository,
        clock: Optional[Clock] = None,
        notice_days: int = TRIAL_EXPIRY_NOTICE_DAYS
    ):
        self.subscriptions = subscriptions
        self.clock = clock or SystemClock()
        self.notice_days = notice_days

    async def find_expiring_trials(self, now: Optional[datetime] = None) -> List[Subscription]:
        """Trials whose renewal date falls on the day `notice_days` from now."""
        target = (now or self.clock.now()) + timedelta(days=self.notice_days)
        return await self.subscriptions.find_by_state_and_renewal_window(
            SubscriptionState.TRIAL,
            beginning_of_day(target),
            end_of_day(target)
        )

    async def find_due(self, as_of: Optional[datetime] = None) -> List[Subscription]:
        """Active subscriptions renewing on the day of `as_of` (default today)."""
        day = as_of or self.clock.now()
        return await self.subscriptions.find_by_state_and_renewal_window(
            SubscriptionState.ACTIVE,
            beginning_of_day(day),
            end_of_day(day)
        )

    async def find_due_trials(self, as_of: Optional[datetime] = None) -> List[Subscription]:
        """Trials with a card on file whose trial ends on the day of `as_of`."""
        day = as_of or self.clock.now()
        trials = await self.subscriptions.find_by_state_and_renewal_window(
            SubscriptionState.TRIAL,
            beginning_of_day(day),
            end_of_day(day)
        )
        return [subscription for subscription in trials if subscription.billing_id]
