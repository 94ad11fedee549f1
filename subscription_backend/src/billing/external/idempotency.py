"""
Idempotency Key Generation

Generates idempotency keys for gateway calls so that a repeated request
cannot create a second customer or a second charge.

Charge keys are fully deterministic: the same subscription, billing cycle
and amount always produce the same key, so a retry after an indeterminate
outcome is deduplicated by the gateway instead of charging twice.
"""

import hashlib
import logging
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)


class IdempotencyKeyManager:
    """
    Generates idempotency keys for card vault and charge operations.

    Usage:
        key = idempotency_manager.generate_charge_key(subscription.id, subscription.next_renewal_at, 1000)
        response = await gateway.purchase(1000, billing_id, {'idempotency_key': key})
    """

    def generate_key(
        self,
        operation: str,
        subject_id: str,
        *args,
        time_bucket_minutes: Optional[int] = None,
        **kwargs
    ) -> str:
        """
        Generate an idempotency key.

        Args:
            operation: Operation type (e.g., 'charge', 'card_store')
            subject_id: Subscription identifier
            *args: Additional positional values to include in the key
            time_bucket_minutes: If set, the key changes once per window so
                a deliberate retry after the window is not deduplicated
            **kwargs: Additional keyword values to include in the key

        Returns:
            40-character hex key
        """
        sorted_kwargs = sorted(kwargs.items())

        components = [
            operation,
            subject_id,
            *[str(arg) for arg in args],
            *[f"{k}={v}" for k, v in sorted_kwargs],
        ]

        if time_bucket_minutes:
            bucket = int(datetime.now(timezone.utc).timestamp() // (time_bucket_minutes * 60))
            components.append(str(bucket))

        return hashlib.sha256("_".join(components).encode()).hexdigest()[:40]

    def generate_charge_key(
        self,
        subscription_id: str,
        cycle: Optional[datetime],
        amount_minor_units: int,
        setup: bool = False
    ) -> str:
        """
        Key for one charge of one billing cycle.

        Args:
            subscription_id: Subscription being charged
            cycle: Renewal date the charge settles (None for an unscheduled first charge)
            amount_minor_units: Amount sent to the gateway
            setup: Whether this is the setup-fee charge
        """
        cycle_marker = cycle.astimezone(timezone.utc).isoformat() if cycle else 'initial'
        return self.generate_key(
            'charge',
            subscription_id,
            cycle_marker,
            amount_minor_units,
            setup=setup
        )

    def generate_card_store_key(self, subscription_id: str, card_token: str) -> str:
        """Key for storing a card; repeats within 5 minutes are deduplicated."""
        return self.generate_key('card_store', subscription_id, card_token, time_bucket_minutes=5)


# Global instance
idempotency_manager = IdempotencyKeyManager()
