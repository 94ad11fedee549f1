"""
SQL repositories

PostgreSQL persistence through the async SQLAlchemy session factory, with
raw SQL. Plan, discount and affiliate are stored as JSONB snapshots of the
values in effect, so later catalog edits never rewrite a subscription.

Tables are created by the alembic migration `20260301_001_subscriptions`.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, List, Optional

from sqlalchemy import text

from subscription_backend.src.billing.domain.payment import PaymentRecord
from subscription_backend.src.billing.domain.subscription import Subscription, SubscriptionState
from .interfaces import PaymentRepository, SubscriptionRepository

logger = logging.getLogger(__name__)


def _default_session_factory() -> Callable:
    from subscription_backend.database.db import async_db_session
    return async_db_session


def _json(value: Optional[dict]) -> Optional[str]:
    return json.dumps(value) if value is not None else None


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


def _load_json(value):
    if value is None or isinstance(value, dict):
        return value
    return json.loads(value)


def _row_to_subscription(row) -> Subscription:
    return Subscription.from_dict({
        'id': str(row['id']),
        'subscriber': {
            'id': row['subscriber_id'],
            'email': row['subscriber_email'],
            'user_count': row['user_count'],
        },
        'plan': _load_json(row['plan']),
        'state': row['state'],
        'amount': row['amount'],
        'discount': _load_json(row['discount']),
        'affiliate': _load_json(row['affiliate']),
        'user_limit': row['user_limit'],
        'next_renewal_at': row['next_renewal_at'],
        'card_number': row['card_number'],
        'card_expiration': row['card_expiration'],
        'billing_id': row['billing_id'],
        'amount_overridden': row['amount_overridden'],
        'created_at': row['created_at'],
        'updated_at': row['updated_at'],
    })


_SELECT_SUBSCRIPTION = """
    SELECT id, subscriber_id, subscriber_email, user_count, plan, state, amount,
           discount, affiliate, user_limit, next_renewal_at, card_number,
           card_expiration, billing_id, amount_overridden, created_at, updated_at
    FROM subscriptions
"""


class SqlSubscriptionRepository(SubscriptionRepository):
    """
    Subscriptions in the `subscriptions` table.

    Usage:
        repository = SqlSubscriptionRepository()
        subscription = await repository.get(subscription_id)
    """

    def __init__(self, session_factory: Optional[Callable] = None):
        self._session_factory = session_factory

    @property
    def session_factory(self) -> Callable:
        if self._session_factory is None:
            self._session_factory = _default_session_factory()
        return self._session_factory

    async def get(self, subscription_id: str) -> Optional[Subscription]:
        if not _is_uuid(subscription_id):
            return None

        async with self.session_factory() as session:
            result = await session.execute(
                text(_SELECT_SUBSCRIPTION + " WHERE id = CAST(:id AS uuid)"),
                {"id": subscription_id}
            )
            row = result.mappings().fetchone()

        if not row:
            return None
        return _row_to_subscription(row)

    async def save(self, subscription: Subscription) -> Subscription:
        now = datetime.now(timezone.utc)
        subscription.updated_at = subscription.updated_at or now
        subscription.created_at = subscription.created_at or subscription.updated_at

        async with self.session_factory() as session:
            await session.execute(
                text("""
                    INSERT INTO subscriptions (
                        id, subscriber_id, subscriber_email, user_count, plan, state, amount,
                        discount, affiliate, user_limit, next_renewal_at, card_number,
                        card_expiration, billing_id, amount_overridden, created_at, updated_at
                    ) VALUES (
                        CAST(:id AS uuid), :subscriber_id, :subscriber_email, :user_count,
                        CAST(:plan AS jsonb), :state, :amount, CAST(:discount AS jsonb),
                        CAST(:affiliate AS jsonb), :user_limit, :next_renewal_at, :card_number,
                        :card_expiration, :billing_id, :amount_overridden, :created_at, :updated_at
                    )
                    ON CONFLICT (id) DO UPDATE SET
                        subscriber_email = EXCLUDED.subscriber_email,
                        user_count = EXCLUDED.user_count,
                        plan = EXCLUDED.plan,
                        state = EXCLUDED.state,
                        amount = EXCLUDED.amount,
                        discount = EXCLUDED.discount,
                        affiliate = EXCLUDED.affiliate,
                        user_limit = EXCLUDED.user_limit,
                        next_renewal_at = EXCLUDED.next_renewal_at,
                        card_number = EXCLUDED.card_number,
                        card_expiration = EXCLUDED.card_expiration,
                        billing_id = EXCLUDED.billing_id,
                        amount_overridden = EXCLUDED.amount_overridden,
                        updated_at = EXCLUDED.updated_at
                """),
                {
                    "id": subscription.id,
                    "subscriber_id": subscription.subscriber.id,
                    "subscriber_email": subscription.subscriber.email,
                    "user_count": subscription.subscriber.user_count,
                    "plan": _json(subscription.plan.to_dict()),
                    "state": subscription.state.value,
                    "amount": subscription.amount,
                    "discount": _json(subscription.discount.to_dict() if subscription.discount else None),
                    "affiliate": _json(subscription.affiliate.to_dict() if subscription.affiliate else None),
                    "user_limit": subscription.user_limit,
                    "next_renewal_at": subscription.next_renewal_at,
                    "card_number": subscription.card_number,
                    "card_expiration": subscription.card_expiration,
                    "billing_id": subscription.billing_id,
                    "amount_overridden": subscription.amount_overridden,
                    "created_at": subscription.created_at,
                    "updated_at": subscription.updated_at,
                }
            )
            await session.commit()

        logger.debug(f"[SUBSCRIPTIONS] Saved subscription {subscription.id} ({subscription.state.value})")
        return subscription

    async def delete(self, subscription_id: str) -> bool:
        if not _is_uuid(subscription_id):
            return False

        async with self.session_factory() as session:
            result = await session.execute(
                text("DELETE FROM subscriptions WHERE id = CAST(:id AS uuid)"),
                {"id": subscription_id}
            )
            await session.commit()
        return result.rowcount > 0

    async def find_by_state_and_renewal_window(
        self,
        state: SubscriptionState,
        start: datetime,
        end: datetime
    ) -> List[Subscription]:
        async with self.session_factory() as session:
            result = await session.execute(
                text(_SELECT_SUBSCRIPTION + """
                    WHERE state = :state
                    AND next_renewal_at BETWEEN :start AND :end
                    ORDER BY next_renewal_at
                """),
                {"state": state.value, "start": start, "end": end}
            )
            rows = result.mappings().fetchall()

        return [_row_to_subscription(row) for row in rows]


class SqlPaymentRepository(PaymentRepository):
    """Ledger entries in the `subscription_payments` table."""

    def __init__(self, session_factory: Optional[Callable] = None):
        self._session_factory = session_factory

    @property
    def session_factory(self) -> Callable:
        if self._session_factory is None:
            self._session_factory = _default_session_factory()
        return self._session_factory

    async def append(self, record: PaymentRecord) -> PaymentRecord:
        async with self.session_factory() as session:
            await session.execute(
                text("""
                    INSERT INTO subscription_payments (
                        id, subscription_id, subscriber_id, amount, setup, transaction_id,
                        affiliate, affiliate_amount, created_at
                    ) VALUES (
                        CAST(:id AS uuid), CAST(:subscription_id AS uuid), :subscriber_id, :amount,
                        :setup, :transaction_id, :affiliate, :affiliate_amount,
                        COALESCE(:created_at, NOW())
                    )
                """),
                {
                    "id": record.id,
                    "subscription_id": record.subscription_id,
                    "subscriber_id": record.subscriber_id,
                    "amount": record.amount,
                    "setup": record.setup,
                    "transaction_id": record.transaction_id,
                    "affiliate": record.affiliate,
                    "affiliate_amount": record.affiliate_amount,
                    "created_at": record.created_at,
                }
            )
            await session.commit()

        logger.debug(f"[LEDGER] Appended payment {record.id} for subscription {record.subscription_id}")
        return record

    async def list_for_subscription(self, subscription_id: str) -> List[PaymentRecord]:
        if not _is_uuid(subscription_id):
            return []

        async with self.session_factory() as session:
            result = await session.execute(
                text("""
                    SELECT id, subscription_id, subscriber_id, amount, setup, transaction_id,
                           affiliate, affiliate_amount, created_at
                    FROM subscription_payments
                    WHERE subscription_id = CAST(:subscription_id AS uuid)
                    ORDER BY created_at
                """),
                {"subscription_id": subscription_id}
            )
            rows = result.mappings().fetchall()

        return [
            PaymentRecord.from_dict({**row, 'id': str(row['id']), 'subscription_id': str(row['subscription_id'])})
            for row in rows
        ]
