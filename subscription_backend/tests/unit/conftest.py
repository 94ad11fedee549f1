"""Shared fixtures for billing unit tests.

Everything runs against the scripted gateway, in-memory repositories and a
fixed clock, so no test touches the network or a database.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from subscription_backend.src.billing.domain import CreditCard, Discount, Plan, Subscriber
from subscription_backend.src.billing.external.scripted import ScriptedGateway
from subscription_backend.src.billing.notifications.notifier import RecordingNotifier
from subscription_backend.src.billing.payments.reconciliation import ReconciliationService
from subscription_backend.src.billing.repositories.memory import (
    InMemoryPaymentRepository,
    InMemorySubscriptionRepository,
)
from subscription_backend.src.billing.shared.clock import FixedClock
from subscription_backend.src.billing.subscriptions.service import build_subscription_service

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def gateway():
    return ScriptedGateway(billing_id='cus_123')


@pytest.fixture
def subscriptions():
    return InMemorySubscriptionRepository()


@pytest.fixture
def payments():
    return InMemoryPaymentRepository()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def reconciliation(clock):
    return ReconciliationService(clock)


@pytest.fixture
def service(gateway, subscriptions, payments, notifier, reconciliation, clock):
    return build_subscription_service(
        gateway,
        subscriptions,
        payments,
        notifier=notifier,
        reconciliation=reconciliation,
        clock=clock,
        timeout=0.05,
    )


@pytest.fixture
def subscriber():
    return Subscriber(id='acct-1', email='owner@example.com', user_count=3)


@pytest.fixture
def basic_plan():
    """Paid plan with a one month trial."""
    return Plan(name='basic', amount=Decimal('50.00'), user_limit=5, trial_period=1, trial_interval='months')


@pytest.fixture
def no_trial_plan():
    return Plan(name='monthly', amount=Decimal('50.00'), user_limit=5)


@pytest.fixture
def free_plan():
    return Plan(name='free', amount=Decimal('0.00'), user_limit=2)


@pytest.fixture
def discount():
    return Discount(code='SAVE2', amount=Decimal('2.00'), trial_period_extension=2)


@pytest.fixture
def card():
    return CreditCard(token='pm_card_visa', last4='1111', exp_month=5, exp_year=2030)
