"""
Charge Processor

Captures one payment against a stored card:
- Converts the amount to integer minor units
- Imposes the configured gateway timeout
- Turns a refused purchase into PaymentError carrying the gateway message

A timeout is indeterminate (the charge may have posted), so it raises
ReconciliationFault instead of PaymentError. Zero amounts are never sent to
the gateway; callers short-circuit them.
"""

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from subscription_backend.core.conf import settings
from subscription_backend.src.billing.domain.plan import to_decimal
from subscription_backend.src.billing.domain.subscription import to_minor_units
from subscription_backend.src.billing.external.interfaces import CardVaultGateway
from subscription_backend.src.billing.shared.config import MINOR_UNITS_PER_MAJOR
from subscription_backend.src.billing.shared.exceptions import PaymentError, ReconciliationFault
from .interfaces import ChargeProcessorInterface

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChargeResult:
    """A captured charge."""
    authorization: Optional[str]
    authorized_amount: Decimal
    test: bool = False


class ChargeProcessor(ChargeProcessorInterface):
    """
    Charges stored cards through the gateway.

    Usage:
        processor = ChargeProcessor(gateway)
        result = await processor.attempt_charge(Decimal('48.00'), subscription.billing_id, key)
        result.authorization  # gateway transaction reference
    """

    def __init__(self, gateway: CardVaultGateway, timeout: Optional[float] = None):
        self.gateway = gateway
        self.timeout = timeout if timeout is not None else settings.GATEWAY_TIMEOUT_SECONDS

    async def attempt_charge(
        self,
        amount: Decimal,
        token: str,
        idempotency_key: Optional[str] = None
    ) -> ChargeResult:
        """
        Charge `amount` against `token`.

        Args:
            amount: Amount in major units, must be positive
            token: Vault reference of the stored card
            idempotency_key: Forwarded to the gateway to deduplicate retries

        Returns:
            ChargeResult with the gateway authorization

        Raises:
            ValueError: amount is zero or negative
            PaymentError: the gateway refused the charge (code CHARGE_DECLINED)
            ReconciliationFault: the gateway did not answer in time (code CHARGE_OUTCOME_UNKNOWN)
        """
        amount = to_decimal(amount)
        if amount <= 0:
            raise ValueError(f"Refusing to charge non-positive amount {amount}")

        minor_units = to_minor_units(amount)
        options = {'idempotency_key': idempotency_key} if idempotency_key else {}

        logger.info(f"[CHARGE] Charging {minor_units} minor units to {token}")

        try:
            response = await asyncio.wait_for(
                self.gateway.purchase(minor_units, token, options),
                timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.error(f"[CHARGE] Gateway timed out after {self.timeout}s charging {token}, outcome unknown")
            raise ReconciliationFault(
                message=f"Charge outcome unknown: gateway did not respond within {self.timeout}s",
                code="CHARGE_OUTCOME_UNKNOWN",
                amount=str(amount)
            )

        if not response.success:
            logger.warning(f"[CHARGE] Charge declined for {token}: {response.message}")
            raise PaymentError(
                message=response.message,
                code="CHARGE_DECLINED",
                gateway_message=response.message
            )

        authorized = response.params.get('authorized_amount')
        authorized_amount = (
            to_decimal(authorized) / MINOR_UNITS_PER_MAJOR if authorized is not None else amount
        )

        logger.info(f"[CHARGE] Captured {authorized_amount} as {response.authorization}")
        return ChargeResult(
            authorization=response.authorization,
            authorized_amount=authorized_amount,
            test=response.test
        )
