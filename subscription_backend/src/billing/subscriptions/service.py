"""
Subscription Service

The subscription state machine. Owns the mutable state of a subscription
(trial/active, card on file, renewal date, amount) and sequences the
calculator, scheduler, card vault, charge processor, ledger and notifier for
these events:
- creation
- plan switch / discount change / amount override
- card storage (may trigger the first charge)
- scheduled charge
- cancellation

States: TRIAL -> ACTIVE on the first successful charge (immediately for free
plans). There is no way back to TRIAL.

Every operation fails closed: when a step fails, the subscription keeps the
values it had before the call (only `last_error` changes) and the error is
raised. A failure after money moved raises ReconciliationFault.

Usage:
    service = build_subscription_service(gateway, subscriptions, payments)

    subscription = await service.create(subscriber, plan, discount=discount)
    await service.store_card(subscription, card)
    await service.charge(subscription)
"""

import logging
from dataclasses import fields
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from subscription_backend.src.billing.domain.card import CreditCard
from subscription_backend.src.billing.domain.payment import PaymentRecord
from subscription_backend.src.billing.domain.plan import Affiliate, Discount, Plan, to_decimal
from subscription_backend.src.billing.domain.subscription import (
    Subscriber,
    Subscription,
    SubscriptionState,
    to_minor_units,
)
from subscription_backend.src.billing.external.idempotency import idempotency_manager
from subscription_backend.src.billing.external.interfaces import CardVaultGateway
from subscription_backend.src.billing.external.vault import CardVaultClient
from subscription_backend.src.billing.notifications.notifier import LoggingNotifier, Notifier
from subscription_backend.src.billing.payments.ledger import LedgerWriter
from subscription_backend.src.billing.payments.processor import ChargeProcessor
from subscription_backend.src.billing.payments.reconciliation import ReconciliationService
from subscription_backend.src.billing.repositories.interfaces import PaymentRepository, SubscriptionRepository
from subscription_backend.src.billing.shared.clock import Clock, SystemClock, ensure_utc
from subscription_backend.src.billing.shared.exceptions import (
    BillingError,
    PaymentError,
    ReconciliationFault,
    SubscriptionError,
    ValidationError,
)
from .calculator import compute_amount, compute_trial_extension, quantize_money
from .scheduler import advance, compute_next_renewal

logger = logging.getLogger(__name__)

USER_LIMIT_EXCEEDED_MESSAGE = "User limit for new plan would be exceeded."


class SubscriptionService:
    """
    Orchestrates the subscription lifecycle.

    The service does not lock: callers run at most one billing operation per
    subscription at a time (RenewalJob serializes its own dispatch).
    """

    def __init__(
        self,
        subscriptions: SubscriptionRepository,
        vault: CardVaultClient,
        processor: ChargeProcessor,
        ledger: LedgerWriter,
        notifier: Optional[Notifier] = None,
        reconciliation: Optional[ReconciliationService] = None,
        clock: Optional[Clock] = None
    ):
        self.subscriptions = subscriptions
        self.vault = vault
        self.processor = processor
        self.ledger = ledger
        self.notifier = notifier or LoggingNotifier()
        self.clock = clock or SystemClock()
        self.reconciliation = reconciliation or ReconciliationService(self.clock)

    # =========================================================================
    # Queries
    # =========================================================================

    async def get(self, subscription_id: str) -> Subscription:
        """Load a subscription or raise SUBSCRIPTION_NOT_FOUND."""
        subscription = await self.subscriptions.get(subscription_id)
        if subscription is None:
            raise SubscriptionError(
                message=f"Subscription {subscription_id} not found",
                code="SUBSCRIPTION_NOT_FOUND",
                subscription_id=subscription_id
            )
        return subscription

    async def list_payments(self, subscription_id: str) -> List[PaymentRecord]:
        return await self.ledger.payments.list_for_subscription(subscription_id)

    def needs_payment_info(self, subscription: Subscription) -> bool:
        return subscription.needs_payment_info()

    # =========================================================================
    # Creation and configuration changes
    # =========================================================================

    async def create(
        self,
        subscriber: Subscriber,
        plan: Plan,
        discount: Optional[Discount] = None,
        affiliate: Optional[Affiliate] = None,
        next_renewal_at: Optional[datetime] = None
    ) -> Subscription:
        """
        Create a subscription for `subscriber` on `plan`.

        Free plans start ACTIVE, paid plans start in TRIAL. The renewal date
        is the explicit one when given, otherwise left unset until the first
        card is stored.
        """
        amount = compute_amount(plan, discount, plan.discount)
        now = self.clock.now()
        subscription = Subscription(
            subscriber=subscriber,
            plan=plan,
            discount=discount,
            affiliate=affiliate,
            amount=amount,
            user_limit=plan.user_limit,
            state=SubscriptionState.ACTIVE if plan.is_free() else SubscriptionState.TRIAL,
            next_renewal_at=ensure_utc(next_renewal_at) if next_renewal_at else None,
            created_at=now,
            updated_at=now,
        )
        await self.subscriptions.save(subscription)

        logger.info(
            f"[SUBSCRIPTION] Created {subscription.id} for {subscriber.id} on {plan.name} "
            f"(amount={amount}, state={subscription.state.value})"
        )
        return subscription

    async def switch_plan(self, subscription: Subscription, new_plan: Plan) -> Subscription:
        """
        Move the subscription to `new_plan`.

        Raises:
            ValidationError: new plan's user limit is below the subscriber's user count
        """
        if new_plan.user_limit is not None and new_plan.user_limit < subscription.subscriber.user_count:
            logger.info(
                f"[SUBSCRIPTION] Refused switch of {subscription.id} to {new_plan.name}: "
                f"{subscription.subscriber.user_count} users > limit {new_plan.user_limit}"
            )
            subscription.last_error = USER_LIMIT_EXCEEDED_MESSAGE
            raise ValidationError(
                message=USER_LIMIT_EXCEEDED_MESSAGE,
                code="USER_LIMIT_EXCEEDED",
                field='plan'
            )

        snapshot = self._snapshot(subscription)
        subscription.plan = new_plan
        subscription.user_limit = new_plan.user_limit
        subscription.amount_overridden = False
        subscription.amount = compute_amount(new_plan, subscription.discount, new_plan.discount)
        await self._save_or_restore(subscription, snapshot)

        logger.info(f"[SUBSCRIPTION] Switched {subscription.id} to {new_plan.name} (amount={subscription.amount})")
        return subscription

    async def change_discount(self, subscription: Subscription, discount: Optional[Discount]) -> Subscription:
        snapshot = self._snapshot(subscription)
        subscription.discount = discount
        subscription.amount_overridden = False
        subscription.amount = compute_amount(subscription.plan, discount, subscription.plan.discount)
        await self._save_or_restore(subscription, snapshot)

        logger.info(
            f"[SUBSCRIPTION] Discount of {subscription.id} set to "
            f"{discount.code if discount else None} (amount={subscription.amount})"
        )
        return subscription

    async def override_amount(self, subscription: Subscription, amount: Decimal) -> Subscription:
        """
        Charge an explicit amount instead of the plan amount.

        The override holds until the plan or the discount changes.
        """
        amount = to_decimal(amount)
        if amount < 0:
            raise ValidationError(message="Amount cannot be negative", field='amount')

        snapshot = self._snapshot(subscription)
        subscription.amount = quantize_money(amount)
        subscription.amount_overridden = True
        await self._save_or_restore(subscription, snapshot)

        logger.info(f"[SUBSCRIPTION] Amount of {subscription.id} overridden to {subscription.amount}")
        return subscription

    # =========================================================================
    # Card storage
    # =========================================================================

    async def store_card(self, subscription: Subscription, card: CreditCard) -> Subscription:
        """
        Store (or replace) the subscription's card and bill it when due.

        Steps:
        1. Schedule the first renewal if none is set: the end of the trial while
           a trial remains, otherwise now (the card is billed straight away)
        2. Store the card at the vault (update it when a billing id exists)
        3. Keep the card's display fragments and the vault's billing id
        4. If the renewal date is due, charge the setup amount (first charge of
           a plan with a setup fee) or the subscription amount, then activate
           and move the renewal date one period past now

        Raises:
            PaymentError: vault or gateway refused; nothing is changed
            ReconciliationFault: charge outcome unknown, or charged but not recorded
        """
        snapshot = self._snapshot(subscription)
        now = self.clock.now()

        try:
            if subscription.next_renewal_at is None:
                if subscription.is_trialing() and subscription.plan.trial_period is not None:
                    subscription.next_renewal_at = self._first_renewal(subscription, now)
                else:
                    subscription.next_renewal_at = now
                logger.debug(f"[STORE CARD] {subscription.id} first renewal set to {subscription.next_renewal_at}")

            if subscription.billing_id:
                stored = await self.vault.update(subscription.billing_id, card)
            else:
                stored = await self.vault.store(
                    card,
                    idempotency_key=idempotency_manager.generate_card_store_key(subscription.id, card.token)
                )
                subscription.billing_id = stored.billing_id

            subscription.card_number = stored.display_number
            subscription.card_expiration = stored.expiry_date

            if subscription.next_renewal_at > now:
                logger.info(f"[STORE CARD] Card stored for {subscription.id}, next charge {subscription.next_renewal_at}")
                await self._save_or_restore(subscription, snapshot)
                return subscription

            setup = self._bills_setup_fee(subscription)
            total = subscription.plan.setup_amount if setup else subscription.amount
            cycle = subscription.next_renewal_at
            period_end = self._advance_one_period(subscription, now)

            if total <= 0:
                logger.info(f"[STORE CARD] Nothing to charge for {subscription.id}")
                subscription.state = SubscriptionState.ACTIVE
                subscription.next_renewal_at = period_end
                await self._save_or_restore(subscription, snapshot)
                return subscription

            result = await self._attempt_charge(subscription, total, cycle, setup)
        except BillingError as e:
            self._restore(subscription, snapshot)
            subscription.last_error = e.message
            logger.warning(f"[STORE CARD] Failed for {subscription.id}: {e.message}")
            raise

        subscription.state = SubscriptionState.ACTIVE
        subscription.next_renewal_at = period_end
        await self._record_charge(subscription, total, result.authorization, setup)

        logger.info(f"[STORE CARD] Charged {total} to {subscription.id} (setup={setup}), next renewal {period_end}")
        await self._send_receipt(subscription, now, period_end, total)
        return subscription

    # =========================================================================
    # Scheduled charge
    # =========================================================================

    async def charge(self, subscription: Subscription) -> Subscription:
        """
        Bill the current renewal period and move the renewal date one period on.

        Zero-amount subscriptions are advanced and activated without a gateway
        call or ledger entry.

        Raises:
            PaymentError: gateway declined; the subscription is unchanged
            ReconciliationFault: charge outcome unknown, or charged but not recorded
        """
        snapshot = self._snapshot(subscription)
        now = self.clock.now()
        period_start = subscription.next_renewal_at or now
        period_end = self._advance_one_period(subscription, period_start)

        if subscription.amount <= 0:
            subscription.state = SubscriptionState.ACTIVE
            subscription.next_renewal_at = period_end
            await self._save_or_restore(subscription, snapshot)
            logger.info(f"[CHARGE] {subscription.id} is free, renewal moved to {period_end}")
            return subscription

        try:
            if not subscription.billing_id:
                raise PaymentError(
                    message="No card on file",
                    code="PAYMENT_ERROR",
                    subscription_id=subscription.id
                )
            result = await self._attempt_charge(subscription, subscription.amount, subscription.next_renewal_at, False)
        except BillingError as e:
            subscription.last_error = e.message
            logger.warning(f"[CHARGE] Charge failed for {subscription.id}: {e.message}")
            raise

        amount = subscription.amount
        subscription.state = SubscriptionState.ACTIVE
        subscription.next_renewal_at = period_end
        await self._record_charge(subscription, amount, result.authorization, False)

        logger.info(f"[CHARGE] Charged {amount} to {subscription.id}, next renewal {period_end}")
        await self._send_receipt(subscription, period_start, period_end, amount)
        return subscription

    # =========================================================================
    # Cancellation
    # =========================================================================

    async def destroy(self, subscription: Subscription) -> bool:
        """
        Delete the subscription, removing the stored card at the vault first.

        Raises:
            PaymentError: vault refused to remove the card; the record is kept
        """
        if subscription.billing_id:
            try:
                await self.vault.unstore(subscription.billing_id)
            except BillingError as e:
                subscription.last_error = e.message
                logger.warning(f"[SUBSCRIPTION] Could not remove card of {subscription.id}: {e.message}")
                raise

        deleted = await self.subscriptions.delete(subscription.id)
        logger.info(f"[SUBSCRIPTION] Destroyed {subscription.id}")
        return deleted

    # =========================================================================
    # Internals
    # =========================================================================

    def _first_renewal(self, subscription: Subscription, now: datetime) -> datetime:
        plan = subscription.plan
        return compute_next_renewal(
            now,
            trial_period=plan.trial_period,
            trial_interval=plan.trial_interval,
            trial_extension=compute_trial_extension(subscription.discount, plan.discount),
            renewal_period=plan.renewal_period,
            renewal_interval=plan.renewal_interval,
        )

    def _advance_one_period(self, subscription: Subscription, moment: datetime) -> datetime:
        return advance(moment, subscription.plan.renewal_period, subscription.plan.renewal_interval)

    @staticmethod
    def _bills_setup_fee(subscription: Subscription) -> bool:
        return subscription.is_trialing() and subscription.plan.has_setup_fee()

    async def _attempt_charge(self, subscription: Subscription, amount: Decimal, cycle: Optional[datetime], setup: bool):
        key = idempotency_manager.generate_charge_key(
            subscription.id,
            cycle,
            to_minor_units(amount),
            setup=setup
        )
        try:
            return await self.processor.attempt_charge(amount, subscription.billing_id, idempotency_key=key)
        except ReconciliationFault as e:
            await self.reconciliation.record_fault(
                subscription_id=subscription.id,
                transaction_id=e.transaction_id,
                amount=amount,
                reason=e.message
            )
            raise ReconciliationFault(
                message=e.message,
                code=e.code,
                subscription_id=subscription.id,
                transaction_id=e.transaction_id,
                amount=str(amount)
            ) from e

    async def _record_charge(
        self,
        subscription: Subscription,
        amount: Decimal,
        transaction_id: Optional[str],
        setup: bool
    ) -> None:
        """Durably record a captured charge; any failure here is a reconciliation fault."""
        try:
            subscription.updated_at = self.clock.now()
            await self.subscriptions.save(subscription)
            await self.ledger.record_charge(subscription, amount, transaction_id, setup=setup)
        except Exception as e:
            reason = f"Charge captured but not recorded: {e}"
            subscription.last_error = reason
            await self.reconciliation.record_fault(
                subscription_id=subscription.id,
                transaction_id=transaction_id,
                amount=amount,
                reason=reason
            )
            raise ReconciliationFault(
                message=reason,
                code="RECONCILIATION_REQUIRED",
                subscription_id=subscription.id,
                transaction_id=transaction_id,
                amount=str(amount)
            ) from e

    async def _send_receipt(self, subscription: Subscription, start: datetime, end: datetime, amount: Decimal) -> None:
        try:
            await self.notifier.send_receipt(subscription.subscriber, start, end, amount)
        except Exception as e:
            logger.error(f"[NOTIFY] Receipt for {subscription.id} not sent: {e}")

    async def _save_or_restore(self, subscription: Subscription, snapshot: Dict) -> None:
        subscription.updated_at = self.clock.now()
        try:
            await self.subscriptions.save(subscription)
        except Exception:
            self._restore(subscription, snapshot)
            raise

    @staticmethod
    def _snapshot(subscription: Subscription) -> Dict:
        return {f.name: getattr(subscription, f.name) for f in fields(subscription) if f.name != 'last_error'}

    @staticmethod
    def _restore(subscription: Subscription, snapshot: Dict) -> None:
        for name, value in snapshot.items():
            setattr(subscription, name, value)


def build_subscription_service(
    gateway: CardVaultGateway,
    subscriptions: SubscriptionRepository,
    payments: PaymentRepository,
    notifier: Optional[Notifier] = None,
    reconciliation: Optional[ReconciliationService] = None,
    clock: Optional[Clock] = None,
    timeout: Optional[float] = None
) -> SubscriptionService:
    """Wire a SubscriptionService around one gateway."""
    clock = clock or SystemClock()
    return SubscriptionService(
        subscriptions=subscriptions,
        vault=CardVaultClient(gateway, timeout=timeout),
        processor=ChargeProcessor(gateway, timeout=timeout),
        ledger=LedgerWriter(payments, clock=clock),
        notifier=notifier,
        reconciliation=reconciliation,
        clock=clock,
    )
