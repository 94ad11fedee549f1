"""
Gateway Interfaces

The card vault / payment gateway capability consumed by the billing core.

Implementations return a GatewayResponse for every outcome the gateway
reports (including declines); they only raise for programming errors.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from subscription_backend.src.billing.domain.card import CreditCard


@dataclass(frozen=True)
class GatewayResponse:
    """
    Outcome of a gateway operation.

    Attributes:
        success: Whether the gateway accepted the operation
        message: Human-readable gateway message (surfaced verbatim on failure)
        params: Operation-specific values ('billing_id', 'authorized_amount', ...)
        authorization: Transaction reference for purchases
        test: True when produced by a test/sandbox gateway
    """
    success: bool
    message: str = ''
    params: Dict[str, Any] = field(default_factory=dict)
    authorization: Optional[str] = None
    test: bool = False

    @property
    def billing_id(self) -> Optional[str]:
        return self.params.get('billing_id')

    @property
    def token(self) -> Optional[str]:
        """Reference to charge against later (the vault's billing id)."""
        return self.params.get('billing_id')


class CardVaultGateway(ABC):
    """Card storage plus off-session purchases against a stored card."""

    @abstractmethod
    async def store(self, card: CreditCard, options: Optional[Dict] = None) -> GatewayResponse:
        """Store a new card; params['billing_id'] identifies it afterwards."""
        pass

    @abstractmethod
    async def update(self, billing_id: str, card: CreditCard, options: Optional[Dict] = None) -> GatewayResponse:
        """Replace the card stored under billing_id."""
        pass

    @abstractmethod
    async def unstore(self, billing_id: str) -> GatewayResponse:
        """Remove the stored card."""
        pass

    @abstractmethod
    async def purchase(self, amount: int, token: str, options: Optional[Dict] = None) -> GatewayResponse:
        """Charge `amount` minor currency units against the stored card `token`."""
        pass
