"""
Billing Module

Recurring subscription billing for the subscription-backend project.
Stores cards at a card vault (Stripe) and charges them on a billing cycle.

Submodules:
- shared: Configuration, exceptions, time sources
- domain: Core entities (Plan, Discount, Affiliate, Subscription, PaymentRecord)
- external: Card vault gateway capability (Stripe, scripted test gateway)
- payments: Charge processor, ledger writer, reconciliation journal
- repositories: Subscription and ledger persistence
- notifications: Receipts and trial expiry notices
- subscriptions: Amount/renewal rules, state machine, finders, renewal job
- endpoints: API routes

Usage:
    from subscription_backend.src.billing import (
        PLANS,
        ScriptedGateway,
        build_subscription_service,
    )

    service = build_subscription_service(gateway, subscriptions, payments)
    subscription = await service.create(subscriber, PLANS['basic'])
"""

# Shared configuration and utilities
from .shared import (
    # Time
    Clock,
    FixedClock,
    SystemClock,
    # Configuration
    PLANS,
    DISCOUNTS,
    get_plan_by_name,
    get_discount_by_code,
    # Exceptions
    BillingError,
    ValidationError,
    SubscriptionError,
    PaymentError,
    ReconciliationFault,
    CircuitBreakerOpenError,
)

# Domain entities
from .domain import (
    Affiliate,
    CreditCard,
    Discount,
    PaymentRecord,
    Plan,
    Subscriber,
    Subscription,
    SubscriptionState,
)

# External integrations
from .external import (
    CardVaultGateway,
    GatewayResponse,
    CardVaultClient,
    ScriptedGateway,
    StripeAPIWrapper,
    StripeCardVaultGateway,
    stripe_circuit_breaker,
    idempotency_manager,
)

# Payments
from .payments import (
    ChargeProcessor,
    ChargeResult,
    LedgerWriter,
    ReconciliationService,
)

# Persistence
from .repositories import (
    InMemoryPaymentRepository,
    InMemorySubscriptionRepository,
    SqlPaymentRepository,
    SqlSubscriptionRepository,
)

# Notifications
from .notifications import (
    LoggingNotifier,
    Notifier,
    RecordingNotifier,
)

# Subscriptions
from .subscriptions import (
    compute_amount,
    compute_next_renewal,
)
from .subscriptions.service import SubscriptionService, build_subscription_service
from .subscriptions.finders import SubscriptionFinder
from .subscriptions.renewal_job import RenewalJob

__all__ = [
    # Time
    'Clock',
    'FixedClock',
    'SystemClock',
    # Configuration
    'PLANS',
    'DISCOUNTS',
    'get_plan_by_name',
    'get_discount_by_code',
    # Exceptions
    'BillingError',
    'ValidationError',
    'SubscriptionError',
    'PaymentError',
    'ReconciliationFault',
    'CircuitBreakerOpenError',
    # Domain
    'Affiliate',
    'CreditCard',
    'Discount',
    'PaymentRecord',
    'Plan',
    'Subscriber',
    'Subscription',
    'SubscriptionState',
    # External
    'CardVaultGateway',
    'GatewayResponse',
    'CardVaultClient',
    'ScriptedGateway',
    'StripeAPIWrapper',
    'StripeCardVaultGateway',
    'stripe_circuit_breaker',
    'idempotency_manager',
    # Payments
    'ChargeProcessor',
    'ChargeResult',
    'LedgerWriter',
    'ReconciliationService',
    # Persistence
    'InMemoryPaymentRepository',
    'InMemorySubscriptionRepository',
    'SqlPaymentRepository',
    'SqlSubscriptionRepository',
    # Notifications
    'LoggingNotifier',
    'Notifier',
    'RecordingNotifier',
    # Subscriptions
    'compute_amount',
    'compute_next_renewal',
    'SubscriptionService',
    'build_subscription_service',
    'SubscriptionFinder',
    'RenewalJob',
]
