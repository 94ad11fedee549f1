"""
Billing Endpoints Module

API routes for billing operations.

Routers:
- subscriptions: Subscription lifecycle, card storage and charges

Usage:
    from subscription_backend.src.billing.endpoints import billing_router

    app.include_router(billing_router, prefix="/billing")
"""

from fastapi import APIRouter

from .dependencies import get_gateway, get_subscription_service, http_error_for
from .subscriptions import router as subscriptions_router

# Create main billing router
billing_router = APIRouter()

billing_router.include_router(subscriptions_router)

__all__ = [
    'billing_router',
    'subscriptions_router',
    'get_gateway',
    'get_subscription_service',
    'http_error_for',
]
