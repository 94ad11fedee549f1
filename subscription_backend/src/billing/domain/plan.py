"""
Plan, Discount and Affiliate value objects

These are read-only value sources for the billing engine. The engine never
mutates them; catalog management lives elsewhere.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


INTERVALS = ('days', 'weeks', 'months', 'years')


def to_decimal(value) -> Decimal:
    """Normalize numbers (int, float, str, Decimal) to Decimal via str()."""
    if value is None:
        return Decimal('0')
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


@dataclass(frozen=True)
class Discount:
    """
    A flat discount, attached to an account or embedded in a plan.

    Attributes:
        code: Discount/coupon code
        amount: Flat deduction from the plan amount
        trial_period_extension: Extra trial length, in the plan's trial interval unit
    """
    code: str
    amount: Decimal = Decimal('0')
    trial_period_extension: int = 0

    def __post_init__(self):
        object.__setattr__(self, 'amount', to_decimal(self.amount))
        object.__setattr__(self, 'trial_period_extension', int(self.trial_period_extension or 0))

    @classmethod
    def from_dict(cls, data: dict) -> 'Discount':
        return cls(
            code=data.get('code', ''),
            amount=to_decimal(data.get('amount', 0)),
            trial_period_extension=data.get('trial_period_extension') or 0,
        )

    def to_dict(self) -> dict:
        return {
            'code': self.code,
            'amount': str(self.amount),
            'trial_period_extension': self.trial_period_extension,
        }


@dataclass(frozen=True)
class Affiliate:
    """A referral partner paid a commission of `rate` on each charge."""
    token: str
    rate: Decimal = Decimal('0')

    def __post_init__(self):
        object.__setattr__(self, 'rate', to_decimal(self.rate))

    @classmethod
    def from_dict(cls, data: dict) -> 'Affiliate':
        return cls(token=data.get('token', ''), rate=to_decimal(data.get('rate', 0)))

    def to_dict(self) -> dict:
        return {'token': self.token, 'rate': str(self.rate)}


@dataclass(frozen=True)
class Plan:
    """
    Subscription plan configuration.

    Attributes:
        name: Internal plan identifier (e.g., 'basic')
        amount: Base price per renewal period
        user_limit: Maximum number of users (None = unlimited)
        setup_amount: One-off amount billed on the first charge (None = no setup fee)
        trial_period: Trial length (None = no trial)
        trial_interval: Unit for trial_period and for discount trial extensions
        renewal_period: Length of one billing cycle
        renewal_interval: Unit for renewal_period
        discount: Optional discount embedded in the plan
    """
    name: str
    amount: Decimal
    user_limit: Optional[int] = None
    setup_amount: Optional[Decimal] = None
    trial_period: Optional[int] = None
    trial_interval: str = 'months'
    renewal_period: int = 1
    renewal_interval: str = 'months'
    discount: Optional[Discount] = None

    def __post_init__(self):
        object.__setattr__(self, 'amount', to_decimal(self.amount))
        if self.setup_amount is not None:
            object.__setattr__(self, 'setup_amount', to_decimal(self.setup_amount))
        for attr in ('trial_interval', 'renewal_interval'):
            if getattr(self, attr) not in INTERVALS:
                raise ValueError(f"{attr} must be one of {INTERVALS}, got {getattr(self, attr)!r}")

    def is_free(self) -> bool:
        return self.amount == 0

    def has_setup_fee(self) -> bool:
        return self.setup_amount is not None and self.setup_amount > 0

    @classmethod
    def from_dict(cls, data: dict) -> 'Plan':
        discount = data.get('discount')
        setup_amount = data.get('setup_amount')
        return cls(
            name=data.get('name', ''),
            amount=to_decimal(data.get('amount', 0)),
            user_limit=data.get('user_limit'),
            setup_amount=to_decimal(setup_amount) if setup_amount is not None else None,
            trial_period=data.get('trial_period'),
            trial_interval=data.get('trial_interval') or 'months',
            renewal_period=data.get('renewal_period') or 1,
            renewal_interval=data.get('renewal_interval') or 'months',
            discount=Discount.from_dict(discount) if discount else None,
        )

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'amount': str(self.amount),
            'user_limit': self.user_limit,
            'setup_amount': str(self.setup_amount) if self.setup_amount is not None else None,
            'trial_period': self.trial_period,
            'trial_interval': self.trial_interval,
            'renewal_period': self.renewal_period,
            'renewal_interval': self.renewal_interval,
            'discount': self.discount.to_dict() if self.discount else None,
        }
