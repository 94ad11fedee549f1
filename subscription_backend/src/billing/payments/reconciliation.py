"""
Reconciliation Service

Journal of charges that went through at the gateway but could not be
recorded locally, or whose outcome is unknown. Every fault is logged at
CRITICAL so it reaches alerting even if the journal itself is lost; the
journal lets operators list and close faults once reconciled against the
gateway's records.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from subscription_backend.src.billing.shared.clock import Clock, SystemClock
from .interfaces import ReconciliationJournalInterface

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationEntry:
    subscription_id: str
    transaction_id: Optional[str]
    amount: Decimal
    reason: str
    recorded_at: datetime
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    resolved_at: Optional[datetime] = None
    resolution_note: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.resolved_at is None

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'subscription_id': self.subscription_id,
            'transaction_id': self.transaction_id,
            'amount': str(self.amount),
            'reason': self.reason,
            'recorded_at': self.recorded_at.isoformat(),
            'resolved_at': self.resolved_at.isoformat() if self.resolved_at else None,
            'resolution_note': self.resolution_note,
        }


class ReconciliationService(ReconciliationJournalInterface):
    """
    Records and tracks reconciliation faults.

    Usage:
        entry = await reconciliation_service.record_fault(
            subscription_id=subscription.id,
            transaction_id=result.authorization,
            amount=Decimal('48.00'),
            reason='ledger write failed'
        )
        pending = await reconciliation_service.pending_faults()
        await reconciliation_service.resolve(entry.id, note='ledger entry added manually')
    """

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or SystemClock()
        self._entries: Dict[str, ReconciliationEntry] = {}

    async def record_fault(
        self,
        subscription_id: str,
        transaction_id: Optional[str],
        amount: Decimal,
        reason: str
    ) -> ReconciliationEntry:
        entry = ReconciliationEntry(
            subscription_id=subscription_id,
            transaction_id=transaction_id,
            amount=amount,
            reason=reason,
            recorded_at=self.clock.now(),
        )
        self._entries[entry.id] = entry

        logger.critical(
            f"[RECONCILIATION] Fault {entry.id}: subscription={subscription_id} "
            f"transaction={transaction_id} amount={amount} reason={reason}"
        )
        return entry

    async def pending_faults(self) -> List[ReconciliationEntry]:
        pending = [entry for entry in self._entries.values() if entry.is_pending]
        pending.sort(key=lambda entry: entry.recorded_at)
        return pending

    async def resolve(self, fault_id: str, note: Optional[str] = None) -> bool:
        entry = self._entries.get(fault_id)
        if entry is None or not entry.is_pending:
            return False

        entry.resolved_at = self.clock.now()
        entry.resolution_note = note
        logger.info(f"[RECONCILIATION] Resolved fault {fault_id}: {note or 'no note'}")
        return True
