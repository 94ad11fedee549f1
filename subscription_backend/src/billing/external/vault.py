"""
Card Vault Client

Stable interface over the gateway's store/update/unstore operations.
Turns failed gateway responses into PaymentError with the gateway's own
message. Holds no state of its own.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from subscription_backend.core.conf import settings
from subscription_backend.src.billing.domain.card import CreditCard
from subscription_backend.src.billing.shared.exceptions import PaymentError
from .interfaces import CardVaultGateway, GatewayResponse

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredCard:
    """Result of storing or updating a card."""
    billing_id: str
    token: str
    display_number: str
    expiry_date: str


class CardVaultClient:
    """
    Stores cards at the gateway.

    Usage:
        vault = CardVaultClient(gateway)
        stored = await vault.store(card)          # first card
        stored = await vault.update(billing_id, card)
        await vault.unstore(billing_id)
    """

    def __init__(self, gateway: CardVaultGateway, timeout: Optional[float] = None):
        self.gateway = gateway
        self.timeout = timeout if timeout is not None else settings.GATEWAY_TIMEOUT_SECONDS

    async def store(self, card: CreditCard, idempotency_key: Optional[str] = None) -> StoredCard:
        options = card.gateway_options()
        if idempotency_key:
            options['idempotency_key'] = idempotency_key
        response = await self._call('store', self.gateway.store(card, options))
        billing_id = response.billing_id
        if not billing_id:
            raise PaymentError(
                code="CARD_STORAGE_FAILED",
                message=response.message or "Card vault returned no billing id"
            )
        logger.info(f"[VAULT] Stored card {card.display_number} as {billing_id}")
        return StoredCard(
            billing_id=billing_id,
            token=response.token or billing_id,
            display_number=card.display_number,
            expiry_date=card.expiry_date,
        )

    async def update(self, billing_id: str, card: CreditCard) -> StoredCard:
        response = await self._call('update', self.gateway.update(billing_id, card, card.gateway_options()))
        logger.info(f"[VAULT] Updated card for {billing_id} to {card.display_number}")
        return StoredCard(
            billing_id=billing_id,
            token=billing_id,
            display_number=card.display_number,
            expiry_date=card.expiry_date,
        )

    async def unstore(self, billing_id: str) -> bool:
        await self._call('unstore', self.gateway.unstore(billing_id), code="CARD_REMOVAL_FAILED")
        logger.info(f"[VAULT] Removed stored card {billing_id}")
        return True

    async def _call(self, operation: str, call, code: str = "CARD_STORAGE_FAILED") -> GatewayResponse:
        try:
            response = await asyncio.wait_for(call, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"[VAULT] {operation} timed out after {self.timeout}s")
            raise PaymentError(
                code=code,
                message=f"Card vault did not respond to {operation} in time"
            )

        if not response.success:
            logger.warning(f"[VAULT] {operation} failed: {response.message}")
            raise PaymentError(
                code=code,
                message=response.message,
                gateway_message=response.message
            )
        return response
