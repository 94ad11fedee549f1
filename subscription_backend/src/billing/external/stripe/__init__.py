"""
Stripe Integration Module

Production card vault for billing:
- Circuit breaker for API resilience
- Async API wrapper for customers, payment methods and payment intents
- CardVaultGateway implementation on top of both

Usage:
    from subscription_backend.src.billing.external.stripe import StripeCardVaultGateway

    vault = CardVaultClient(StripeCardVaultGateway())
"""

from .circuit_breaker import (
    CircuitState,
    StripeCircuitBreaker,
    stripe_circuit_breaker,
)

from .client import StripeAPIWrapper

from .gateway import StripeCardVaultGateway

__all__ = [
    # Circuit Breaker
    'CircuitState',
    'StripeCircuitBreaker',
    'stripe_circuit_breaker',
    # API Client
    'StripeAPIWrapper',
    # Gateway
    'StripeCardVaultGateway',
]
