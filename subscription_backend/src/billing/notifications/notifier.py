"""
Notifier

Side-effect sink for subscriber notifications: payment receipts and
trial-expiry notices. Delivery is outside the billing engine; the default
implementation only logs the rendered message.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, List

from subscription_backend.src.billing.domain.subscription import Subscriber

logger = logging.getLogger(__name__)

DATE_FORMAT = '%b %d, %Y'


def format_day(moment: datetime) -> str:
    return moment.strftime(DATE_FORMAT)


def render_receipt(period_start: datetime, period_end: datetime, amount: Decimal) -> str:
    """Receipt body. The period line reads 'From <start> to <end>'."""
    return (
        "Thank you for your payment.\n"
        f"Amount: {amount}\n"
        f"From {format_day(period_start)} to {format_day(period_end)}\n"
    )


def render_trial_expiring(ends_at: datetime) -> str:
    return (
        f"Your trial ends on {format_day(ends_at)}.\n"
        "Add a card before then to keep your subscription.\n"
    )


class Notifier(ABC):
    """Interface for subscriber notifications."""

    @abstractmethod
    async def send_receipt(
        self,
        subscriber: Subscriber,
        period_start: datetime,
        period_end: datetime,
        amount: Decimal
    ) -> None:
        pass

    @abstractmethod
    async def send_trial_expiring(self, subscriber: Subscriber, ends_at: datetime) -> None:
        pass


class LoggingNotifier(Notifier):
    """Logs notifications instead of delivering them."""

    async def send_receipt(self, subscriber, period_start, period_end, amount) -> None:
        logger.info(
            f"[NOTIFY] Receipt for {subscriber.email or subscriber.id}:\n"
            f"{render_receipt(period_start, period_end, amount)}"
        )

    async def send_trial_expiring(self, subscriber, ends_at) -> None:
        logger.info(
            f"[NOTIFY] Trial expiring for {subscriber.email or subscriber.id}:\n"
            f"{render_trial_expiring(ends_at)}"
        )


@dataclass
class Notification:
    kind: str
    subscriber: Subscriber
    body: str
    fields: Dict = field(default_factory=dict)


class RecordingNotifier(Notifier):
    """Keeps every notification in memory for assertions."""

    def __init__(self):
        self.sent: List[Notification] = []

    async def send_receipt(self, subscriber, period_start, period_end, amount) -> None:
        self.sent.append(Notification(
            kind='receipt',
            subscriber=subscriber,
            body=render_receipt(period_start, period_end, amount),
            fields={'period_start': period_start, 'period_end': period_end, 'amount': amount},
        ))

    async def send_trial_expiring(self, subscriber, ends_at) -> None:
        self.sent.append(Notification(
            kind='trial_expiring',
            subscriber=subscriber,
            body=render_trial_expiring(ends_at),
            fields={'ends_at': ends_at},
        ))

    def of_kind(self, kind: str) -> List[Notification]:
        return [n for n in self.sent if n.kind == kind]
