"""
In-memory repositories

Dictionary-backed implementations used by tests and local runs. Stored
objects are copies, so callers only see changes they explicitly save.
"""

import copy
from datetime import datetime
from typing import Dict, List, Optional

from subscription_backend.src.billing.domain.payment import PaymentRecord
from subscription_backend.src.billing.domain.subscription import Subscription, SubscriptionState
from .interfaces import PaymentRepository, SubscriptionRepository


class InMemorySubscriptionRepository(SubscriptionRepository):

    def __init__(self):
        self._rows: Dict[str, Subscription] = {}

    async def get(self, subscription_id: str) -> Optional[Subscription]:
        row = self._rows.get(subscription_id)
        return copy.deepcopy(row) if row else None

    async def save(self, subscription: Subscription) -> Subscription:
        stored = copy.deepcopy(subscription)
        stored.last_error = None
        self._rows[subscription.id] = stored
        return subscription

    async def delete(self, subscription_id: str) -> bool:
        return self._rows.pop(subscription_id, None) is not None

    async def find_by_state_and_renewal_window(
        self,
        state: SubscriptionState,
        start: datetime,
        end: datetime
    ) -> List[Subscription]:
        matches = [
            row for row in self._rows.values()
            if row.state == state
            and row.next_renewal_at is not None
            and start <= row.next_renewal_at <= end
        ]
        matches.sort(key=lambda row: row.next_renewal_at)
        return [copy.deepcopy(row) for row in matches]

    def __len__(self) -> int:
        return len(self._rows)


class InMemoryPaymentRepository(PaymentRepository):

    def __init__(self):
        self._records: List[PaymentRecord] = []

    async def append(self, record: PaymentRecord) -> PaymentRecord:
        self._records.append(record)
        return record

    async def list_for_subscription(self, subscription_id: str) -> List[PaymentRecord]:
        return [r for r in self._records if r.subscription_id == subscription_id]

    @property
    def records(self) -> List[PaymentRecord]:
        return list(self._records)
