"""
Stripe API Client Wrapper

Provides a safe, circuit-breaker-protected interface to the Stripe API.
All Stripe API calls should go through this wrapper for resilience.
"""

import logging
from typing import Any, Callable

import stripe

from subscription_backend.core.conf import settings
from .circuit_breaker import stripe_circuit_breaker

logger = logging.getLogger(__name__)

stripe.api_key = settings.STRIPE_SECRET_KEY


class StripeAPIWrapper:
    """
    Safe wrapper for Stripe API calls with circuit breaker protection.

    All methods are async class methods that can be called directly:
        customer = await StripeAPIWrapper.create_customer(payment_method="pm_...")

    The circuit breaker prevents cascading failures when Stripe is down.
    """

    _circuit_breaker = stripe_circuit_breaker

    @classmethod
    def _ensure_stripe_available(cls):
        """Raise error if Stripe is not configured."""
        if not settings.STRIPE_SECRET_KEY:
            raise ValueError("STRIPE_SECRET_KEY not configured")

    @classmethod
    async def safe_stripe_call(cls, func: Callable, *args, **kwargs) -> Any:
        """
        Execute a Stripe API call safely with circuit breaker protection.

        Args:
            func: Async Stripe API function
            *args: Positional arguments
            **kwargs: Keyword arguments

        Returns:
            Result from Stripe API
        """
        cls._ensure_stripe_available()
        return await cls._circuit_breaker.safe_call(func, *args, **kwargs)

    # -------------------------------------------------------------------------
    # Customer Operations (card vault)
    # -------------------------------------------------------------------------

    @classmethod
    async def create_customer(cls, **kwargs) -> 'stripe.Customer':
        """
        Create a new Stripe customer.

        Args:
            payment_method: Payment method to attach (pm_...)
            invoice_settings: {'default_payment_method': 'pm_...'}
            address: Billing address (optional)
            metadata: Additional metadata (optional)
            idempotency_key: Deduplication key (optional)

        Returns:
            Stripe Customer object
        """
        return await cls.safe_stripe_call(stripe.Customer.create_async, **kwargs)

    @classmethod
    async def retrieve_customer(cls, customer_id: str) -> 'stripe.Customer':
        """Retrieve a Stripe customer by ID."""
        return await cls.safe_stripe_call(stripe.Customer.retrieve_async, customer_id)

    @classmethod
    async def update_customer(cls, customer_id: str, **kwargs) -> 'stripe.Customer':
        """Update a Stripe customer."""
        return await cls.safe_stripe_call(stripe.Customer.modify_async, customer_id, **kwargs)

    @classmethod
    async def delete_customer(cls, customer_id: str) -> 'stripe.Customer':
        """Delete a Stripe customer and its stored payment methods."""
        return await cls.safe_stripe_call(stripe.Customer.delete_async, customer_id)

    # -------------------------------------------------------------------------
    # Payment Method Operations
    # -------------------------------------------------------------------------

    @classmethod
    async def attach_payment_method(cls, payment_method_id: str, **kwargs) -> 'stripe.PaymentMethod':
        """Attach a payment method to a customer (customer=...)."""
        return await cls.safe_stripe_call(stripe.PaymentMethod.attach_async, payment_method_id, **kwargs)

    # -------------------------------------------------------------------------
    # Payment Operations
    # -------------------------------------------------------------------------

    @classmethod
    async def create_payment_intent(cls, **kwargs) -> 'stripe.PaymentIntent':
        """
        Create (and optionally confirm) a payment intent.

        Args:
            amount: Amount in minor currency units
            currency: Three-letter currency code
            customer: Stripe customer ID
            payment_method: Payment method to charge
            off_session: True for merchant-initiated charges
            confirm: True to charge immediately
            idempotency_key: Deduplication key (optional)

        Returns:
            Stripe PaymentIntent object
        """
        return await cls.safe_stripe_call(stripe.PaymentIntent.create_async, **kwargs)
