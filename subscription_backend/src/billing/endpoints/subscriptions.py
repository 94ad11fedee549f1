"""
Subscription Endpoints

API endpoints for subscription management.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from subscription_backend.src.billing.domain.card import CreditCard
from subscription_backend.src.billing.domain.plan import Affiliate
from subscription_backend.src.billing.domain.subscription import Subscriber
from subscription_backend.src.billing.shared.config import get_discount_by_code, get_plan_by_name
from subscription_backend.src.billing.shared.exceptions import BillingError
from subscription_backend.src.billing.subscriptions.service import SubscriptionService
from .dependencies import get_subscription_service, http_error_for

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/subscriptions", tags=["billing-subscriptions"])


# ============================================================================
# Request Models
# ============================================================================

class AffiliateRequest(BaseModel):
    """Referral partner credited with a commission of `rate` on each charge."""
    token: str = Field(min_length=1)
    rate: Decimal = Field(ge=0, le=1)


class CreateSubscriptionRequest(BaseModel):
    """Request for subscription creation."""
    subscriber_id: str
    email: Optional[str] = None
    user_count: int = 0
    plan: str
    discount_code: Optional[str] = None
    affiliate: Optional[AffiliateRequest] = None
    next_renewal_at: Optional[datetime] = None


class StoreCardRequest(BaseModel):
    """Card submitted for storage. `token` is the gateway's payment method id."""
    token: str
    last4: str = Field(min_length=4, max_length=4)
    exp_month: int = Field(ge=1, le=12)
    exp_year: int
    billing_address: Optional[Dict[str, str]] = None


class SwitchPlanRequest(BaseModel):
    plan: str


class ChangeDiscountRequest(BaseModel):
    """Discount code to apply; null removes the discount."""
    code: Optional[str] = None


class OverrideAmountRequest(BaseModel):
    amount: Decimal = Field(ge=0)


# ============================================================================
# Helpers
# ============================================================================

def _plan_or_400(name: str):
    plan = get_plan_by_name(name)
    if not plan:
        raise HTTPException(status_code=400, detail="Invalid plan")
    return plan


def _discount_or_400(code: Optional[str]):
    if not code:
        return None
    discount = get_discount_by_code(code)
    if not discount:
        raise HTTPException(status_code=400, detail="Invalid discount code")
    return discount


# ============================================================================
# Endpoints
# ============================================================================

@router.post("", status_code=201)
async def create_subscription(
    request: CreateSubscriptionRequest,
    service: SubscriptionService = Depends(get_subscription_service)
) -> Dict:
    plan = _plan_or_400(request.plan)
    discount = _discount_or_400(request.discount_code)
    affiliate = None
    if request.affiliate:
        affiliate = Affiliate(token=request.affiliate.token, rate=request.affiliate.rate)
    try:
        subscription = await service.create(
            Subscriber(id=request.subscriber_id, email=request.email, user_count=request.user_count),
            plan,
            discount=discount,
            affiliate=affiliate,
            next_renewal_at=request.next_renewal_at
        )
    except BillingError as e:
        raise http_error_for(e)
    return subscription.to_dict()


@router.get("/{subscription_id}")
async def get_subscription(
    subscription_id: str,
    service: SubscriptionService = Depends(get_subscription_service)
) -> Dict:
    """Get a subscription with its computed fields."""
    try:
        subscription = await service.get(subscription_id)
    except BillingError as e:
        raise http_error_for(e)
    return subscription.to_dict()


@router.get("/{subscription_id}/payments")
async def list_payments(
    subscription_id: str,
    service: SubscriptionService = Depends(get_subscription_service)
) -> List[Dict]:
    try:
        await service.get(subscription_id)
        payments = await service.list_payments(subscription_id)
    except BillingError as e:
        raise http_error_for(e)
    return [payment.to_dict() for payment in payments]


@router.post("/{subscription_id}/card")
async def store_card(
    subscription_id: str,
    request: StoreCardRequest,
    service: SubscriptionService = Depends(get_subscription_service)
) -> Dict:
    """
    Store the subscriber's card.

    Bills the card immediately when the renewal date is due.
    """
    card = CreditCard(
        token=request.token,
        last4=request.last4,
        exp_month=request.exp_month,
        exp_year=request.exp_year,
        billing_address=request.billing_address,
    )
    try:
        subscription = await service.get(subscription_id)
        subscription = await service.store_card(subscription, card)
    except BillingError as e:
        logger.warning(f"[BILLING] Card storage failed for {subscription_id}: {e.message}")
        raise http_error_for(e)
    return subscription.to_dict()


@router.put("/{subscription_id}/plan")
async def switch_plan(
    subscription_id: str,
    request: SwitchPlanRequest,
    service: SubscriptionService = Depends(get_subscription_service)
) -> Dict:
    plan = _plan_or_400(request.plan)
    try:
        subscription = await service.get(subscription_id)
        subscription = await service.switch_plan(subscription, plan)
    except BillingError as e:
        raise http_error_for(e)
    return subscription.to_dict()


@router.put("/{subscription_id}/discount")
async def change_discount(
    subscription_id: str,
    request: ChangeDiscountRequest,
    service: SubscriptionService = Depends(get_subscription_service)
) -> Dict:
    discount = _discount_or_400(request.code)
    try:
        subscription = await service.get(subscription_id)
        subscription = await service.change_discount(subscription, discount)
    except BillingError as e:
        raise http_error_for(e)
    return subscription.to_dict()


@router.put("/{subscription_id}/amount")
async def override_amount(
    subscription_id: str,
    request: OverrideAmountRequest,
    service: SubscriptionService = Depends(get_subscription_service)
) -> Dict:
    """Set an explicit amount; kept until the plan or discount changes."""
    try:
        subscription = await service.get(subscription_id)
        subscription = await service.override_amount(subscription, request.amount)
    except BillingError as e:
        raise http_error_for(e)
    return subscription.to_dict()


@router.post("/{subscription_id}/charge")
async def charge_subscription(
    subscription_id: str,
    service: SubscriptionService = Depends(get_subscription_service)
) -> Dict:
    """Run the renewal charge for one subscription now."""
    try:
        subscription = await service.get(subscription_id)
        subscription = await service.charge(subscription)
    except BillingError as e:
        logger.warning(f"[BILLING] Charge failed for {subscription_id}: {e.message}")
        raise http_error_for(e)
    return subscription.to_dict()


@router.delete("/{subscription_id}")
async def cancel_subscription(
    subscription_id: str,
    service: SubscriptionService = Depends(get_subscription_service)
) -> Dict:
    """Cancel the subscription and remove the stored card."""
    try:
        subscription = await service.get(subscription_id)
        await service.destroy(subscription)
    except BillingError as e:
        raise http_error_for(e)
    return {'success': True, 'subscription_id': subscription_id}
