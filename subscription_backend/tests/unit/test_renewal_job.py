"""Tests for the subscription finders and the renewal job."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from subscription_backend.src.billing.domain import Subscription, SubscriptionState
from subscription_backend.src.billing.subscriptions.finders import SubscriptionFinder
from subscription_backend.src.billing.subscriptions.renewal_job import RenewalJob

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)
START_OF_DAY = datetime(2026, 3, 15, 0, 0, tzinfo=timezone.utc)


def make_subscription(subscriber, plan, state=SubscriptionState.ACTIVE, next_renewal_at=START_OF_DAY, **kwargs):
    return Subscription(
        subscriber=subscriber,
        plan=plan,
        state=state,
        amount=plan.amount,
        user_limit=plan.user_limit,
        next_renewal_at=next_renewal_at,
        billing_id=kwargs.pop('billing_id', 'cus_123'),
        card_number='XXXX-XXXX-XXXX-1111',
        **kwargs
    )


@pytest.fixture
def finder(subscriptions, clock):
    return SubscriptionFinder(subscriptions, clock)


@pytest.fixture
def job(service, finder):
    return RenewalJob(service, finder, concurrency=2)


class TestSubscriptionFinder:
    """Tests for the day-window queries."""

    @pytest.mark.asyncio
    async def test_find_due_selects_active_renewing_today(self, finder, subscriptions, subscriber, no_trial_plan):
        due = make_subscription(subscriber, no_trial_plan)
        late_today = make_subscription(subscriber, no_trial_plan, next_renewal_at=NOW.replace(hour=23, minute=59))
        tomorrow = make_subscription(subscriber, no_trial_plan, next_renewal_at=NOW + timedelta(days=1))
        trial = make_subscription(subscriber, no_trial_plan, state=SubscriptionState.TRIAL)
        for subscription in (late_today, due, tomorrow, trial):
            await subscriptions.save(subscription)

        found = await finder.find_due()

        assert [s.id for s in found] == [due.id, late_today.id]

    @pytest.mark.asyncio
    async def test_find_due_trials_requires_a_card(self, finder, subscriptions, subscriber, basic_plan):
        carded = make_subscription(subscriber, basic_plan, state=SubscriptionState.TRIAL)
        cardless = make_subscription(subscriber, basic_plan, state=SubscriptionState.TRIAL, billing_id=None)
        active = make_subscription(subscriber, basic_plan)
        for subscription in (carded, cardless, active):
            await subscriptions.save(subscription)

        found = await finder.find_due_trials()

        assert [s.id for s in found] == [carded.id]

    @pytest.mark.asyncio
    async def test_find_expiring_trials_looks_a_week_ahead(self, finder, subscriptions, subscriber, basic_plan):
        expiring = make_subscription(
            subscriber, basic_plan, state=SubscriptionState.TRIAL, next_renewal_at=NOW + timedelta(days=7)
        )
        later = make_subscription(
            subscriber, basic_plan, state=SubscriptionState.TRIAL, next_renewal_at=NOW + timedelta(days=8)
        )
        active = make_subscription(subscriber, basic_plan, next_renewal_at=NOW + timedelta(days=7))
        for subscription in (expiring, later, active):
            await subscriptions.save(subscription)

        found = await finder.find_expiring_trials()

        assert [s.id for s in found] == [expiring.id]


class TestRunDueCharges:
    """Tests for RenewalJob.run_due_charges."""

    @pytest.mark.asyncio
    async def test_charges_every_due_subscription(self, job, subscriptions, payments, subscriber, no_trial_plan):
        first = make_subscription(subscriber, no_trial_plan)
        second = make_subscription(subscriber, no_trial_plan)
        await subscriptions.save(first)
        await subscriptions.save(second)

        results = await job.run_due_charges(NOW)

        assert results['checked'] == 2
        assert results['charged'] == 2
        assert results['failed'] == 0
        assert len(payments.records) == 2
        stored = await subscriptions.get(first.id)
        assert stored.next_renewal_at == datetime(2026, 4, 15, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_trial_with_card_converts_on_its_last_day(
        self, job, service, gateway, subscriptions, payments, subscriber, basic_plan, card
    ):
        subscription = await service.create(subscriber, basic_plan)
        await service.store_card(subscription, card)
        trial_end = subscription.next_renewal_at

        results = await job.run_due_charges(trial_end)

        assert results['checked'] == 1
        assert results['charged'] == 1
        assert gateway.calls_for('purchase')[0].args == (5000, 'cus_123')
        assert len(payments.records) == 1
        stored = await subscriptions.get(subscription.id)
        assert stored.state == SubscriptionState.ACTIVE
        assert stored.next_renewal_at == datetime(2026, 5, 15, 12, 0, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_nothing_due(self, job):
        results = await job.run_due_charges(NOW)
        assert results == {'checked': 0, 'charged': 0, 'failed': 0, 'faults': 0, 'errors': []}

    @pytest.mark.asyncio
    async def test_decline_is_reported_not_retried(self, job, gateway, subscriptions, subscriber, no_trial_plan):
        await subscriptions.save(make_subscription(subscriber, no_trial_plan))
        await subscriptions.save(make_subscription(subscriber, no_trial_plan))
        gateway.fail('purchase', 'Card declined')

        results = await job.run_due_charges(NOW)

        assert results['charged'] == 1
        assert results['failed'] == 1
        assert results['errors'][0]['error'] == 'Card declined'
        assert len(gateway.calls_for('purchase')) == 2

    @pytest.mark.asyncio
    async def test_timeout_counts_as_fault(self, job, gateway, subscriptions, reconciliation, subscriber, no_trial_plan):
        subscription = make_subscription(subscriber, no_trial_plan)
        await subscriptions.save(subscription)
        gateway.hang('purchase', 1.0)

        results = await job.run_due_charges(NOW)

        assert results['faults'] == 1
        assert results['errors'][0]['code'] == 'CHARGE_OUTCOME_UNKNOWN'
        assert len(await reconciliation.pending_faults()) == 1

    @pytest.mark.asyncio
    async def test_duplicates_are_charged_once(self, service, subscriber, no_trial_plan):
        subscription = make_subscription(subscriber, no_trial_plan)
        finder = MagicMock()
        finder.find_due = AsyncMock(return_value=[subscription, subscription])
        finder.find_due_trials = AsyncMock(return_value=[subscription])
        job = RenewalJob(service, finder)

        with patch.object(service, 'charge', AsyncMock(return_value=subscription)) as charge:
            results = await job.run_due_charges(NOW)

        assert results['checked'] == 1
        charge.assert_awaited_once_with(subscription)

    @pytest.mark.asyncio
    async def test_unexpected_error_is_collected(self, job, service, subscriptions, subscriber, no_trial_plan):
        subscription = make_subscription(subscriber, no_trial_plan)
        await subscriptions.save(subscription)

        with patch.object(service, 'charge', AsyncMock(side_effect=RuntimeError('boom'))):
            results = await job.run_due_charges(NOW)

        assert results['failed'] == 1
        assert results['errors'] == [{'subscription_id': subscription.id, 'code': 'UNEXPECTED', 'error': 'boom'}]


class TestNotifyExpiringTrials:

    @pytest.mark.asyncio
    async def test_sends_one_notice_per_expiring_trial(self, job, subscriptions, notifier, subscriber, basic_plan):
        ends_at = NOW + timedelta(days=7)
        await subscriptions.save(
            make_subscription(subscriber, basic_plan, state=SubscriptionState.TRIAL, next_renewal_at=ends_at)
        )

        results = await job.notify_expiring_trials()

        assert results == {'checked': 1, 'notified': 1, 'errors': []}
        [notice] = notifier.of_kind('trial_expiring')
        assert notice.fields['ends_at'] == ends_at
        assert 'Mar 22, 2026' in notice.body

    @pytest.mark.asyncio
    async def test_failed_notice_is_reported(self, job, subscriptions, notifier, subscriber, basic_plan):
        subscription = make_subscription(
            subscriber, basic_plan, state=SubscriptionState.TRIAL, next_renewal_at=NOW + timedelta(days=7)
        )
        await subscriptions.save(subscription)

        with patch.object(notifier, 'send_trial_expiring', AsyncMock(side_effect=RuntimeError('smtp down'))):
            results = await job.notify_expiring_trials(NOW)

        assert results['notified'] == 0
        assert results['errors'] == [{'subscription_id': subscription.id, 'error': 'smtp down'}]
