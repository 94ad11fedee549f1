"""
Ledger Writer

Appends one PaymentRecord per successful charge, with the affiliate
commission computed at charge time.
"""

import logging
from decimal import Decimal
from typing import Optional

from subscription_backend.src.billing.domain.payment import PaymentRecord
from subscription_backend.src.billing.domain.subscription import Subscription
from subscription_backend.src.billing.repositories.interfaces import PaymentRepository
from subscription_backend.src.billing.shared.clock import Clock, SystemClock
from subscription_backend.src.billing.subscriptions.calculator import (
    compute_affiliate_commission,
    quantize_money,
)

logger = logging.getLogger(__name__)


class LedgerWriter:

    def __init__(self, payments: PaymentRepository, clock: Optional[Clock] = None):
        self.payments = payments
        self.clock = clock or SystemClock()

    async def record_charge(
        self,
        subscription: Subscription,
        amount: Decimal,
        transaction_id: Optional[str],
        setup: bool = False
    ) -> PaymentRecord:
        """
        Record a captured charge.

        Args:
            subscription: Subscription that was charged (its affiliate earns the commission)
            amount: Amount captured
            transaction_id: Gateway authorization
            setup: True when this charge billed the plan's setup amount
        """
        affiliate = subscription.affiliate
        record = PaymentRecord(
            subscription_id=subscription.id,
            subscriber_id=subscription.subscriber.id,
            amount=quantize_money(amount),
            transaction_id=transaction_id,
            setup=setup,
            affiliate=affiliate.token if affiliate else None,
            affiliate_amount=compute_affiliate_commission(amount, affiliate),
            created_at=self.clock.now(),
        )
        await self.payments.append(record)

        logger.info(
            f"[LEDGER] Recorded {record.amount} for subscription {subscription.id} "
            f"(setup={setup}, affiliate={record.affiliate}, commission={record.affiliate_amount})"
        )
        return record
