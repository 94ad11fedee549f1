"""
Payment Record Entity

One immutable ledger entry per successful charge.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from .plan import to_decimal


@dataclass(frozen=True)
class PaymentRecord:
    """
    A captured payment.

    Attributes:
        subscription_id: Subscription that was charged
        subscriber_id: Account that paid
        amount: Amount captured (major units)
        setup: True only for the first charge when it billed the plan's setup amount
        transaction_id: Gateway authorization for the capture
        affiliate: Affiliate token credited with the referral (if any)
        affiliate_amount: Commission owed to the affiliate (if any)
    """
    subscription_id: str
    subscriber_id: str
    amount: Decimal
    transaction_id: Optional[str]
    setup: bool = False
    affiliate: Optional[str] = None
    affiliate_amount: Optional[Decimal] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: dict) -> 'PaymentRecord':
        affiliate_amount = data.get('affiliate_amount')
        return cls(
            id=str(data.get('id') or uuid.uuid4()),
            subscription_id=str(data.get('subscription_id', '')),
            subscriber_id=str(data.get('subscriber_id', '')),
            amount=to_decimal(data.get('amount', 0)),
            transaction_id=data.get('transaction_id'),
            setup=bool(data.get('setup', False)),
            affiliate=data.get('affiliate'),
            affiliate_amount=to_decimal(affiliate_amount) if affiliate_amount is not None else None,
            created_at=data.get('created_at'),
        )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'subscription_id': self.subscription_id,
            'subscriber_id': self.subscriber_id,
            'amount': str(self.amount),
            'setup': self.setup,
            'transaction_id': self.transaction_id,
            'affiliate': self.affiliate,
            'affiliate_amount': str(self.affiliate_amount) if self.affiliate_amount is not None else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
