"""
Payment Interfaces

Protocol definitions for charge processing and reconciliation services.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import List, Optional


class ChargeProcessorInterface(ABC):
    """Interface for charging a stored card."""

    @abstractmethod
    async def attempt_charge(
        self,
        amount: Decimal,
        token: str,
        idempotency_key: Optional[str] = None
    ):
        """Charge `amount` (major units) against the stored card `token`."""
        pass


class ReconciliationJournalInterface(ABC):
    """Interface for recording charges that need operator follow-up."""

    @abstractmethod
    async def record_fault(
        self,
        subscription_id: str,
        transaction_id: Optional[str],
        amount: Decimal,
        reason: str
    ):
        """Record money that moved without a matching local record."""
        pass

    @abstractmethod
    async def pending_faults(self) -> List:
        """Faults not yet resolved."""
        pass

    @abstractmethod
    async def resolve(self, fault_id: str, note: Optional[str] = None) -> bool:
        """Mark a fault as handled."""
        pass
