"""
Endpoint Dependencies

Shared dependencies for billing API endpoints. Tests override
`get_subscription_service` through `app.dependency_overrides`.
"""

import logging
from functools import lru_cache

from fastapi import HTTPException

from subscription_backend.core.conf import settings
from subscription_backend.src.billing.external.interfaces import CardVaultGateway
from subscription_backend.src.billing.external.scripted import ScriptedGateway
from subscription_backend.src.billing.repositories.sql import SqlPaymentRepository, SqlSubscriptionRepository
from subscription_backend.src.billing.shared.exceptions import (
    BillingError,
    CircuitBreakerOpenError,
    PaymentError,
    ReconciliationFault,
    SubscriptionError,
    ValidationError,
)
from subscription_backend.src.billing.subscriptions.service import SubscriptionService, build_subscription_service

logger = logging.getLogger(__name__)


def get_gateway() -> CardVaultGateway:
    """The configured card vault gateway."""
    if settings.BILLING_GATEWAY == 'scripted':
        logger.warning("[BILLING] Using the scripted gateway, no real charges will be made")
        return ScriptedGateway()

    from subscription_backend.src.billing.external.stripe import StripeCardVaultGateway
    return StripeCardVaultGateway()


@lru_cache
def get_subscription_service() -> SubscriptionService:
    """Process-wide service wired to the SQL repositories."""
    return build_subscription_service(
        gateway=get_gateway(),
        subscriptions=SqlSubscriptionRepository(),
        payments=SqlPaymentRepository(),
    )


def http_error_for(error: BillingError) -> HTTPException:
    """Map a billing error to the HTTP status the API reports it with."""
    if isinstance(error, ValidationError):
        status_code = 422
    elif isinstance(error, PaymentError):
        status_code = 402
    elif isinstance(error, SubscriptionError) and error.code == "SUBSCRIPTION_NOT_FOUND":
        status_code = 404
    elif isinstance(error, CircuitBreakerOpenError):
        status_code = 503
    elif isinstance(error, ReconciliationFault):
        status_code = 500
    else:
        status_code = 400
    return HTTPException(status_code=status_code, detail=error.to_dict())
