"""Subscriber notifications (receipts, trial expiry notices)."""

from .notifier import (
    LoggingNotifier,
    Notification,
    Notifier,
    RecordingNotifier,
    format_day,
    render_receipt,
    render_trial_expiring,
)

__all__ = [
    'LoggingNotifier',
    'Notification',
    'Notifier',
    'RecordingNotifier',
    'format_day',
    'render_receipt',
    'render_trial_expiring',
]
