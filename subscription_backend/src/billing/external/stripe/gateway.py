"""
Stripe Card Vault Gateway

Production CardVaultGateway backed by Stripe:
- A stored card is a Stripe customer whose default payment method is the
  card; the customer id is the billing id.
- A purchase is a confirmed off-session PaymentIntent against that default
  payment method.

Stripe errors reported by the API (declines, invalid requests) come back as
failed GatewayResponses carrying Stripe's message. A connection failure during
a purchase is indeterminate and raises ReconciliationFault.
"""

import logging
from typing import Dict, Optional

import stripe

from subscription_backend.core.conf import settings
from subscription_backend.src.billing.domain.card import CreditCard
from subscription_backend.src.billing.domain.subscription import from_minor_units
from subscription_backend.src.billing.shared.exceptions import ReconciliationFault
from ..interfaces import CardVaultGateway, GatewayResponse
from .client import StripeAPIWrapper

logger = logging.getLogger(__name__)


def _error_message(error: stripe.StripeError) -> str:
    return getattr(error, 'user_message', None) or str(error)


def _address_params(options: Optional[Dict]) -> Dict:
    address = (options or {}).get('billing_address')
    if not address:
        return {}
    return {
        'address': {
            'line1': address.get('address1') or address.get('line1'),
            'line2': address.get('address2') or address.get('line2'),
            'city': address.get('city'),
            'state': address.get('state'),
            'postal_code': address.get('zip') or address.get('postal_code'),
            'country': address.get('country'),
        }
    }


class StripeCardVaultGateway(CardVaultGateway):
    """
    Card vault and off-session charges through Stripe.

    Usage:
        gateway = StripeCardVaultGateway()
        response = await gateway.store(card, {'idempotency_key': key})
        response.billing_id   # 'cus_...'
    """

    def __init__(self, currency: Optional[str] = None):
        self.currency = currency or settings.BILLING_CURRENCY

    async def store(self, card: CreditCard, options: Optional[Dict] = None) -> GatewayResponse:
        options = options or {}
        params = {
            'payment_method': card.token,
            'invoice_settings': {'default_payment_method': card.token},
            'metadata': {'card_last4': card.last4},
            **_address_params(options),
        }
        if options.get('idempotency_key'):
            params['idempotency_key'] = options['idempotency_key']

        try:
            customer = await StripeAPIWrapper.create_customer(**params)
        except stripe.StripeError as e:
            logger.warning(f"[STRIPE GATEWAY] Customer creation failed: {e}")
            return GatewayResponse(False, _error_message(e))

        logger.info(f"[STRIPE GATEWAY] Created customer {customer.id} for card {card.display_number}")
        return GatewayResponse(True, 'Customer created', {'billing_id': customer.id})

    async def update(self, billing_id: str, card: CreditCard, options: Optional[Dict] = None) -> GatewayResponse:
        try:
            await StripeAPIWrapper.attach_payment_method(card.token, customer=billing_id)
            await StripeAPIWrapper.update_customer(
                billing_id,
                invoice_settings={'default_payment_method': card.token},
                **_address_params(options)
            )
        except stripe.StripeError as e:
            logger.warning(f"[STRIPE GATEWAY] Card update failed for {billing_id}: {e}")
            return GatewayResponse(False, _error_message(e))

        return GatewayResponse(True, 'Customer updated', {'billing_id': billing_id})

    async def unstore(self, billing_id: str) -> GatewayResponse:
        try:
            await StripeAPIWrapper.delete_customer(billing_id)
        except stripe.StripeError as e:
            logger.warning(f"[STRIPE GATEWAY] Customer deletion failed for {billing_id}: {e}")
            return GatewayResponse(False, _error_message(e))

        return GatewayResponse(True, 'Customer deleted')

    async def purchase(self, amount: int, token: str, options: Optional[Dict] = None) -> GatewayResponse:
        options = options or {}
        try:
            customer = await StripeAPIWrapper.retrieve_customer(token)
            payment_method = customer.invoice_settings.default_payment_method
            if not payment_method:
                return GatewayResponse(False, 'No default payment method on file')

            params = {
                'amount': amount,
                'currency': self.currency,
                'customer': token,
                'payment_method': payment_method,
                'off_session': True,
                'confirm': True,
            }
            if options.get('idempotency_key'):
                params['idempotency_key'] = options['idempotency_key']

            intent = await StripeAPIWrapper.create_payment_intent(**params)
        except stripe.APIConnectionError as e:
            logger.error(f"[STRIPE GATEWAY] Connection lost during purchase for {token}: {e}")
            raise ReconciliationFault(
                message="Charge outcome unknown: connection to Stripe failed",
                code="CHARGE_OUTCOME_UNKNOWN",
                amount=str(from_minor_units(amount))
            )
        except stripe.StripeError as e:
            logger.warning(f"[STRIPE GATEWAY] Purchase failed for {token}: {e}")
            return GatewayResponse(False, _error_message(e))

        if intent.status != 'succeeded':
            logger.warning(f"[STRIPE GATEWAY] PaymentIntent {intent.id} ended in status {intent.status}")
            return GatewayResponse(False, f"Payment not completed (status: {intent.status})")

        return GatewayResponse(
            True,
            'Payment succeeded',
            {'authorized_amount': str(intent.amount)},
            authorization=intent.id,
            test=not intent.livemode
        )
