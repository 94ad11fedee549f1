"""
Repositories Module

Persistence for subscriptions and the payment ledger.

Usage:
    from subscription_backend.src.billing.repositories import (
        SqlSubscriptionRepository,
        SqlPaymentRepository,
    )
"""

from .interfaces import PaymentRepository, SubscriptionRepository
from .memory import InMemoryPaymentRepository, InMemorySubscriptionRepository
from .sql import SqlPaymentRepository, SqlSubscriptionRepository

__all__ = [
    # Interfaces
    'PaymentRepository',
    'SubscriptionRepository',
    # In-memory
    'InMemoryPaymentRepository',
    'InMemorySubscriptionRepository',
    # SQL
    'SqlPaymentRepository',
    'SqlSubscriptionRepository',
]
