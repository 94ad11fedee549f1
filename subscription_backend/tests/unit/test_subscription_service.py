"""
Tests for SubscriptionService.

Tests cover:
- Creation and configuration changes (plan, discount, amount override)
- Card storage with and without an immediate charge
- Scheduled charges, declines and timeouts
- Cancellation
- Reconciliation faults when a captured charge cannot be recorded
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest

from subscription_backend.src.billing.domain import Affiliate, Plan, SubscriptionState
from subscription_backend.src.billing.external.idempotency import idempotency_manager
from subscription_backend.src.billing.shared.exceptions import (
    PaymentError,
    ReconciliationFault,
    SubscriptionError,
    ValidationError,
)

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


class TestCreate:
    """Tests for SubscriptionService.create."""

    @pytest.mark.asyncio
    async def test_paid_plan_starts_in_trial(self, service, subscriptions, subscriber, basic_plan, discount):
        subscription = await service.create(subscriber, basic_plan, discount=discount)

        assert subscription.state == SubscriptionState.TRIAL
        assert subscription.amount == Decimal('48.00')
        assert subscription.user_limit == 5
        assert subscription.next_renewal_at is None
        assert subscription.needs_payment_info() is True
        assert (await subscriptions.get(subscription.id)).amount == Decimal('48.00')

    @pytest.mark.asyncio
    async def test_free_plan_starts_active(self, service, subscriber, free_plan):
        subscription = await service.create(subscriber, free_plan)

        assert subscription.state == SubscriptionState.ACTIVE
        assert subscription.needs_payment_info() is False

    @pytest.mark.asyncio
    async def test_explicit_renewal_date_is_kept(self, service, subscriber, basic_plan):
        renewal = datetime(2026, 6, 1, tzinfo=timezone.utc)
        subscription = await service.create(subscriber, basic_plan, next_renewal_at=renewal)
        assert subscription.next_renewal_at == renewal

    @pytest.mark.asyncio
    async def test_get_unknown_subscription(self, service):
        with pytest.raises(SubscriptionError) as exc_info:
            await service.get('missing')
        assert exc_info.value.code == 'SUBSCRIPTION_NOT_FOUND'


class TestConfigurationChanges:
    """Tests for plan switch, discount change and amount override."""

    @pytest.mark.asyncio
    async def test_switch_plan_recomputes_amount(self, service, subscriber, basic_plan, discount):
        subscription = await service.create(subscriber, basic_plan, discount=discount)
        premium = Plan(name='premium', amount=Decimal('100.00'))

        await service.switch_plan(subscription, premium)

        assert subscription.plan == premium
        assert subscription.amount == Decimal('98.00')
        assert subscription.user_limit is None

    @pytest.mark.asyncio
    async def test_switch_plan_refused_over_user_limit(self, service, subscriptions, subscriber, basic_plan):
        subscription = await service.create(subscriber, basic_plan)
        small = Plan(name='small', amount=Decimal('5.00'), user_limit=2)

        with pytest.raises(ValidationError) as exc_info:
            await service.switch_plan(subscription, small)

        assert exc_info.value.message == 'User limit for new plan would be exceeded.'
        assert exc_info.value.code == 'USER_LIMIT_EXCEEDED'
        assert subscription.plan == basic_plan
        assert subscription.amount == Decimal('50.00')
        assert subscription.last_error == 'User limit for new plan would be exceeded.'
        assert (await subscriptions.get(subscription.id)).plan == basic_plan

    @pytest.mark.asyncio
    async def test_override_holds_until_discount_changes(self, service, subscriber, basic_plan, discount):
        subscription = await service.create(subscriber, basic_plan)

        await service.override_amount(subscription, Decimal('30'))
        assert subscription.amount == Decimal('30.00')
        assert subscription.amount_overridden is True

        await service.change_discount(subscription, discount)
        assert subscription.amount == Decimal('48.00')
        assert subscription.amount_overridden is False

    @pytest.mark.asyncio
    async def test_negative_override_rejected(self, service, subscriber, basic_plan):
        subscription = await service.create(subscriber, basic_plan)

        with pytest.raises(ValidationError):
            await service.override_amount(subscription, Decimal('-1'))

        assert subscription.amount == Decimal('50.00')

    @pytest.mark.asyncio
    async def test_failed_save_restores_fields(self, service, subscriptions, subscriber, basic_plan, discount):
        subscription = await service.create(subscriber, basic_plan)

        with patch.object(subscriptions, 'save', AsyncMock(side_effect=RuntimeError('db down'))):
            with pytest.raises(RuntimeError):
                await service.change_discount(subscription, discount)

        assert subscription.discount is None
        assert subscription.amount == Decimal('50.00')


class TestStoreCard:
    """Tests for SubscriptionService.store_card."""

    @pytest.mark.asyncio
    async def test_first_card_schedules_renewal_without_charging(
        self, service, gateway, payments, subscriber, basic_plan, card
    ):
        subscription = await service.create(subscriber, basic_plan)

        await service.store_card(subscription, card)

        assert subscription.billing_id == 'cus_123'
        assert subscription.card_number == 'XXXX-XXXX-XXXX-1111'
        assert subscription.card_expiration == '05-2030'
        assert subscription.next_renewal_at == datetime(2026, 4, 15, 12, 0, tzinfo=timezone.utc)
        assert subscription.state == SubscriptionState.TRIAL
        assert gateway.calls_for('purchase') == []
        assert payments.records == []

    @pytest.mark.asyncio
    async def test_discount_extends_first_renewal(self, service, subscriber, basic_plan, discount, card):
        subscription = await service.create(subscriber, basic_plan, discount=discount)

        await service.store_card(subscription, card)

        assert subscription.next_renewal_at == datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_replacing_card_updates_vault(self, service, gateway, subscriber, basic_plan, card):
        subscription = await service.create(subscriber, basic_plan)
        await service.store_card(subscription, card)

        await service.store_card(subscription, card)

        assert len(gateway.calls_for('store')) == 1
        assert gateway.calls_for('update')[0].args[0] == 'cus_123'

    @pytest.mark.asyncio
    async def test_due_subscription_is_charged_and_activated(
        self, service, gateway, payments, notifier, subscriber, basic_plan, card
    ):
        subscription = await service.create(subscriber, basic_plan, next_renewal_at=NOW - timedelta(days=1))

        await service.store_card(subscription, card)

        assert gateway.calls_for('purchase')[0].args == (5000, 'cus_123')
        assert subscription.state == SubscriptionState.ACTIVE
        assert subscription.next_renewal_at == datetime(2026, 4, 15, 12, 0, tzinfo=timezone.utc)

        [record] = payments.records
        assert record.amount == Decimal('50.00')
        assert record.setup is False
        assert record.transaction_id == 'auth-1'

        [receipt] = notifier.of_kind('receipt')
        assert 'From Mar 15, 2026 to Apr 15, 2026' in receipt.body

    @pytest.mark.asyncio
    async def test_first_charge_bills_setup_amount(self, service, gateway, payments, subscriber, card):
        plan = Plan(
            name='setup',
            amount=Decimal('50.00'),
            setup_amount=Decimal('500.00'),
            trial_period=1,
        )
        subscription = await service.create(subscriber, plan, next_renewal_at=NOW)

        await service.store_card(subscription, card)

        call = gateway.calls_for('purchase')[0]
        assert call.args == (50000, 'cus_123')
        assert call.options['idempotency_key'] == idempotency_manager.generate_charge_key(
            subscription.id, NOW, 50000, setup=True
        )
        [record] = payments.records
        assert record.setup is True
        assert record.amount == Decimal('500.00')

    @pytest.mark.asyncio
    async def test_plan_without_trial_bills_setup_amount_now(self, service, gateway, payments, subscriber, card):
        plan = Plan(name='setup', amount=Decimal('50.00'), setup_amount=Decimal('500.00'))
        subscription = await service.create(subscriber, plan)

        await service.store_card(subscription, card)

        assert gateway.calls_for('purchase')[0].args == (50000, 'cus_123')
        assert subscription.state == SubscriptionState.ACTIVE
        assert subscription.next_renewal_at == datetime(2026, 4, 15, 12, 0, tzinfo=timezone.utc)
        [record] = payments.records
        assert record.setup is True
        assert record.amount == Decimal('500.00')

    @pytest.mark.asyncio
    async def test_plan_without_trial_bills_plan_amount_now(
        self, service, gateway, payments, subscriber, no_trial_plan, card
    ):
        subscription = await service.create(subscriber, no_trial_plan)

        await service.store_card(subscription, card)

        assert gateway.calls_for('purchase')[0].args == (5000, 'cus_123')
        assert subscription.next_renewal_at == datetime(2026, 4, 15, 12, 0, tzinfo=timezone.utc)
        [record] = payments.records
        assert record.setup is False
        assert record.amount == Decimal('50.00')

    @pytest.mark.asyncio
    async def test_active_subscription_without_renewal_date_is_billed(
        self, service, gateway, payments, subscriber, free_plan, basic_plan, card
    ):
        subscription = await service.create(subscriber, free_plan)
        await service.switch_plan(subscription, basic_plan)

        await service.store_card(subscription, card)

        assert gateway.calls_for('purchase')[0].args == (5000, 'cus_123')
        assert subscription.next_renewal_at == datetime(2026, 4, 15, 12, 0, tzinfo=timezone.utc)
        assert payments.records[0].setup is False

    @pytest.mark.asyncio
    async def test_declined_first_charge_leaves_renewal_unset(self, service, gateway, subscriber, no_trial_plan, card):
        subscription = await service.create(subscriber, no_trial_plan)
        gateway.fail('purchase', 'Card declined')

        with pytest.raises(PaymentError):
            await service.store_card(subscription, card)

        assert subscription.next_renewal_at is None
        assert subscription.state == SubscriptionState.TRIAL
        assert subscription.billing_id is None

    @pytest.mark.asyncio
    async def test_affiliate_earns_commission(self, service, payments, subscriber, basic_plan, card):
        subscription = await service.create(
            subscriber,
            basic_plan,
            affiliate=Affiliate(token='partner', rate=Decimal('0.1')),
            next_renewal_at=NOW
        )

        await service.store_card(subscription, card)

        assert payments.records[0].affiliate_amount == Decimal('5.00')

    @pytest.mark.asyncio
    async def test_zero_total_activates_without_gateway_call(self, service, gateway, payments, subscriber, card):
        plan = Plan(name='promo', amount=Decimal('2.00'), trial_period=1)
        subscription = await service.create(subscriber, plan, next_renewal_at=NOW)
        await service.override_amount(subscription, Decimal('0'))

        await service.store_card(subscription, card)

        assert subscription.state == SubscriptionState.ACTIVE
        assert subscription.next_renewal_at == datetime(2026, 4, 15, 12, 0, tzinfo=timezone.utc)
        assert gateway.calls_for('purchase') == []
        assert payments.records == []

    @pytest.mark.asyncio
    async def test_decline_leaves_subscription_unchanged(
        self, service, gateway, subscriptions, payments, subscriber, basic_plan, card
    ):
        due = NOW - timedelta(days=1)
        subscription = await service.create(subscriber, basic_plan, next_renewal_at=due)
        gateway.fail('purchase', 'Card declined')

        with pytest.raises(PaymentError) as exc_info:
            await service.store_card(subscription, card)

        assert exc_info.value.message == 'Card declined'
        assert subscription.last_error == 'Card declined'
        assert subscription.billing_id is None
        assert subscription.card_number is None
        assert subscription.state == SubscriptionState.TRIAL
        assert subscription.next_renewal_at == due
        assert payments.records == []
        assert (await subscriptions.get(subscription.id)).billing_id is None

    @pytest.mark.asyncio
    async def test_vault_failure_surfaces_message(self, service, gateway, subscriber, basic_plan, card):
        subscription = await service.create(subscriber, basic_plan)
        gateway.fail('store', 'Forced failure')

        with pytest.raises(PaymentError) as exc_info:
            await service.store_card(subscription, card)

        assert exc_info.value.message == 'Forced failure'
        assert subscription.last_error == 'Forced failure'
        assert subscription.next_renewal_at is None
        assert gateway.calls_for('purchase') == []


class TestCharge:
    """Tests for SubscriptionService.charge."""

    @pytest.mark.asyncio
    async def test_charge_advances_one_period(self, service, gateway, payments, notifier, subscriber, basic_plan, card):
        subscription = await service.create(
            subscriber,
            basic_plan,
            next_renewal_at=datetime(2026, 4, 1, tzinfo=timezone.utc)
        )
        await service.store_card(subscription, card)

        await service.charge(subscription)

        assert gateway.calls_for('purchase')[0].args == (5000, 'cus_123')
        assert subscription.state == SubscriptionState.ACTIVE
        assert subscription.next_renewal_at == datetime(2026, 5, 1, tzinfo=timezone.utc)
        assert len(payments.records) == 1
        [receipt] = notifier.of_kind('receipt')
        assert 'From Apr 01, 2026 to May 01, 2026' in receipt.body
        assert receipt.fields['amount'] == Decimal('50.00')

    @pytest.mark.asyncio
    async def test_zero_amount_advances_without_gateway(self, service, gateway, payments, subscriber, free_plan):
        subscription = await service.create(subscriber, free_plan)

        await service.charge(subscription)

        assert subscription.next_renewal_at == datetime(2026, 4, 15, 12, 0, tzinfo=timezone.utc)
        assert subscription.state == SubscriptionState.ACTIVE
        assert gateway.calls == []
        assert payments.records == []

    @pytest.mark.asyncio
    async def test_decline_keeps_renewal_date(self, service, gateway, payments, subscriber, basic_plan, card):
        renewal = datetime(2026, 4, 1, tzinfo=timezone.utc)
        subscription = await service.create(subscriber, basic_plan, next_renewal_at=renewal)
        await service.store_card(subscription, card)
        gateway.fail('purchase', 'Insufficient funds')

        with pytest.raises(PaymentError):
            await service.charge(subscription)

        assert subscription.next_renewal_at == renewal
        assert subscription.state == SubscriptionState.TRIAL
        assert subscription.last_error == 'Insufficient funds'
        assert payments.records == []

    @pytest.mark.asyncio
    async def test_no_card_on_file(self, service, gateway, subscriber, basic_plan):
        subscription = await service.create(subscriber, basic_plan)

        with pytest.raises(PaymentError) as exc_info:
            await service.charge(subscription)

        assert exc_info.value.message == 'No card on file'
        assert gateway.calls_for('purchase') == []

    @pytest.mark.asyncio
    async def test_timeout_is_journaled(self, service, gateway, reconciliation, subscriber, basic_plan, card):
        subscription = await service.create(subscriber, basic_plan, next_renewal_at=NOW + timedelta(days=1))
        await service.store_card(subscription, card)
        gateway.hang('purchase', 1.0)

        with pytest.raises(ReconciliationFault) as exc_info:
            await service.charge(subscription)

        assert exc_info.value.code == 'CHARGE_OUTCOME_UNKNOWN'
        assert exc_info.value.subscription_id == subscription.id
        [fault] = await reconciliation.pending_faults()
        assert fault.subscription_id == subscription.id

    @pytest.mark.asyncio
    async def test_ledger_failure_requires_reconciliation(
        self, service, payments, reconciliation, subscriber, basic_plan, card
    ):
        subscription = await service.create(subscriber, basic_plan, next_renewal_at=NOW + timedelta(days=1))
        await service.store_card(subscription, card)

        with patch.object(payments, 'append', AsyncMock(side_effect=RuntimeError('ledger down'))):
            with pytest.raises(ReconciliationFault) as exc_info:
                await service.charge(subscription)

        assert exc_info.value.code == 'RECONCILIATION_REQUIRED'
        assert exc_info.value.transaction_id == 'auth-1'
        [fault] = await reconciliation.pending_faults()
        assert fault.transaction_id == 'auth-1'
        assert fault.amount == Decimal('50.00')

    @pytest.mark.asyncio
    async def test_receipt_failure_does_not_fail_charge(self, service, notifier, payments, subscriber, basic_plan, card):
        subscription = await service.create(subscriber, basic_plan, next_renewal_at=NOW + timedelta(days=1))
        await service.store_card(subscription, card)

        with patch.object(notifier, 'send_receipt', AsyncMock(side_effect=RuntimeError('smtp down'))):
            await service.charge(subscription)

        assert len(payments.records) == 1
        assert subscription.state == SubscriptionState.ACTIVE


class TestDestroy:
    """Tests for SubscriptionService.destroy."""

    @pytest.mark.asyncio
    async def test_removes_card_then_record(self, service, gateway, subscriptions, subscriber, basic_plan, card):
        subscription = await service.create(subscriber, basic_plan)
        await service.store_card(subscription, card)

        assert await service.destroy(subscription) is True

        assert gateway.calls_for('unstore')[0].args == ('cus_123',)
        assert len(subscriptions) == 0

    @pytest.mark.asyncio
    async def test_without_card_skips_vault(self, service, gateway, subscriptions, subscriber, basic_plan):
        subscription = await service.create(subscriber, basic_plan)

        await service.destroy(subscription)

        assert gateway.calls_for('unstore') == []
        assert len(subscriptions) == 0

    @pytest.mark.asyncio
    async def test_vault_refusal_keeps_record(self, service, gateway, subscriptions, subscriber, basic_plan, card):
        subscription = await service.create(subscriber, basic_plan)
        await service.store_card(subscription, card)
        gateway.fail('unstore', 'Customer locked')

        with pytest.raises(PaymentError):
            await service.destroy(subscription)

        assert subscription.last_error == 'Customer locked'
        assert len(subscriptions) == 1
