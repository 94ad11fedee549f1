"""
Subscription Domain Entity

Represents a subscriber's single subscription: plan, optional discount and
affiliate, trial/active state, amount and the card-on-file references.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Optional

from .plan import Affiliate, Discount, Plan, to_decimal


class SubscriptionState(Enum):
    """Possible subscription states. There is no way back from ACTIVE to TRIAL."""
    TRIAL = "trial"
    ACTIVE = "active"


@dataclass
class Subscriber:
    """The account that owns the subscription."""
    id: str
    email: Optional[str] = None
    user_count: int = 0

    @classmethod
    def from_dict(cls, data: dict) -> 'Subscriber':
        return cls(
            id=str(data.get('id', '')),
            email=data.get('email'),
            user_count=int(data.get('user_count') or 0),
        )

    def to_dict(self) -> dict:
        return {'id': self.id, 'email': self.email, 'user_count': self.user_count}


def _parse_datetime(value) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, int):  # Unix timestamp
        return datetime.fromtimestamp(value, tz=timezone.utc)
    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except (ValueError, AttributeError):
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


@dataclass
class Subscription:
    """
    A subscriber's subscription.

    Attributes:
        subscriber: Owning account
        plan: Current plan
        state: TRIAL until the first successful charge (ACTIVE from the start for free plans)
        amount: Amount charged per renewal period
        discount: Account-level discount (optional)
        affiliate: Referring affiliate (optional)
        user_limit: Copied from the plan
        next_renewal_at: When the next charge is due (None = not yet scheduled)
        card_number: Masked card number of the stored card
        card_expiration: Expiry of the stored card, 'MM-YYYY'
        billing_id: Card vault reference (customer id at the gateway)
        amount_overridden: True while `amount` is an explicit override
        last_error: Message from the last failed billing operation (not persisted)
    """
    subscriber: Subscriber
    plan: Plan
    state: SubscriptionState
    amount: Decimal
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    discount: Optional[Discount] = None
    affiliate: Optional[Affiliate] = None
    user_limit: Optional[int] = None
    next_renewal_at: Optional[datetime] = None
    card_number: Optional[str] = None
    card_expiration: Optional[str] = None
    billing_id: Optional[str] = None
    amount_overridden: bool = False
    last_error: Optional[str] = field(default=None, compare=False)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def is_trialing(self) -> bool:
        return self.state == SubscriptionState.TRIAL

    def is_active(self) -> bool:
        return self.state == SubscriptionState.ACTIVE

    @property
    def card_on_file(self) -> bool:
        return bool(self.card_number) or bool(self.billing_id)

    @property
    def amount_in_pennies(self) -> int:
        return to_minor_units(self.amount)

    def needs_payment_info(self) -> bool:
        """Paid subscriptions need a card; free ones never do."""
        return self.amount > 0 and not self.card_on_file

    @classmethod
    def from_dict(cls, data: dict) -> 'Subscription':
        """
        Create a Subscription from a dictionary (e.g. a database row).

        Args:
            data: Dictionary with subscription fields

        Returns:
            Subscription instance
        """
        def parse_state(value) -> SubscriptionState:
            if isinstance(value, SubscriptionState):
                return value
            try:
                return SubscriptionState(value)
            except ValueError:
                return SubscriptionState.TRIAL

        plan = data['plan'] if isinstance(data.get('plan'), Plan) else Plan.from_dict(data.get('plan') or {})
        discount = data.get('discount')
        affiliate = data.get('affiliate')
        subscriber = data.get('subscriber')

        return cls(
            id=str(data.get('id') or uuid.uuid4()),
            subscriber=subscriber if isinstance(subscriber, Subscriber) else Subscriber.from_dict(subscriber or {}),
            plan=plan,
            state=parse_state(data.get('state', 'trial')),
            amount=to_decimal(data.get('amount', 0)),
            discount=(discount if isinstance(discount, Discount) else Discount.from_dict(discount)) if discount else None,
            affiliate=(affiliate if isinstance(affiliate, Affiliate) else Affiliate.from_dict(affiliate)) if affiliate else None,
            user_limit=data.get('user_limit'),
            next_renewal_at=_parse_datetime(data.get('next_renewal_at')),
            card_number=data.get('card_number'),
            card_expiration=data.get('card_expiration'),
            billing_id=data.get('billing_id'),
            amount_overridden=bool(data.get('amount_overridden', False)),
            created_at=_parse_datetime(data.get('created_at')),
            updated_at=_parse_datetime(data.get('updated_at')),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'id': self.id,
            'subscriber': self.subscriber.to_dict(),
            'plan': self.plan.to_dict(),
            'state': self.state.value,
            'amount': str(self.amount),
            'discount': self.discount.to_dict() if self.discount else None,
            'affiliate': self.affiliate.to_dict() if self.affiliate else None,
            'user_limit': self.user_limit,
            'next_renewal_at': self.next_renewal_at.isoformat() if self.next_renewal_at else None,
            'card_number': self.card_number,
            'card_expiration': self.card_expiration,
            'billing_id': self.billing_id,
            'amount_overridden': self.amount_overridden,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
            # Computed fields
            'card_on_file': self.card_on_file,
            'needs_payment_info': self.needs_payment_info(),
        }


def to_minor_units(amount: Decimal) -> int:
    """Major currency units to integer minor units (cents), rounding half up."""
    return int((to_decimal(amount) * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def from_minor_units(amount: int) -> Decimal:
    return (Decimal(int(amount)) / 100).quantize(Decimal('0.01'))
