"""
External Integrations Module

The card vault / payment gateway capability and its implementations:
- Stripe (production gateway)
- ScriptedGateway (deterministic gateway for tests and local runs)

Usage:
    from subscription_backend.src.billing.external import (
        CardVaultClient,
        ScriptedGateway,
        StripeCardVaultGateway,
    )
"""

from .interfaces import CardVaultGateway, GatewayResponse
from .idempotency import IdempotencyKeyManager, idempotency_manager
from .scripted import GatewayCall, ScriptedGateway
from .vault import CardVaultClient, StoredCard
from .stripe import (
    CircuitState,
    StripeAPIWrapper,
    StripeCardVaultGateway,
    StripeCircuitBreaker,
    stripe_circuit_breaker,
)

__all__ = [
    # Capability
    'CardVaultGateway',
    'GatewayResponse',
    # Vault
    'CardVaultClient',
    'StoredCard',
    # Idempotency
    'IdempotencyKeyManager',
    'idempotency_manager',
    # Test double
    'GatewayCall',
    'ScriptedGateway',
    # Stripe
    'CircuitState',
    'StripeAPIWrapper',
    'StripeCardVaultGateway',
    'StripeCircuitBreaker',
    'stripe_circuit_breaker',
]
