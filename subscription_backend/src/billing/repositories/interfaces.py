"""
Repository Interfaces

Persistence seams for the billing engine. The engine only talks to these
abstractions; in-memory and SQL implementations live beside them.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from subscription_backend.src.billing.domain.payment import PaymentRecord
from subscription_backend.src.billing.domain.subscription import Subscription, SubscriptionState


class SubscriptionRepository(ABC):
    """Interface for subscription storage."""

    @abstractmethod
    async def get(self, subscription_id: str) -> Optional[Subscription]:
        """Load a subscription, or None if it does not exist."""
        pass

    @abstractmethod
    async def save(self, subscription: Subscription) -> Subscription:
        """Insert or update a subscription."""
        pass

    @abstractmethod
    async def delete(self, subscription_id: str) -> bool:
        """Delete a subscription. Returns False if it did not exist."""
        pass

    @abstractmethod
    async def find_by_state_and_renewal_window(
        self,
        state: SubscriptionState,
        start: datetime,
        end: datetime
    ) -> List[Subscription]:
        """Subscriptions in `state` whose next_renewal_at lies in [start, end]."""
        pass


class PaymentRepository(ABC):
    """Interface for the append-only payment ledger."""

    @abstractmethod
    async def append(self, record: PaymentRecord) -> PaymentRecord:
        """Append a ledger entry."""
        pass

    @abstractmethod
    async def list_for_subscription(self, subscription_id: str) -> List[PaymentRecord]:
        """All ledger entries of a subscription, oldest first."""
        pass
