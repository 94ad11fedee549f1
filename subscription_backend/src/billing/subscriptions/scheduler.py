"""
Renewal Scheduler

Date arithmetic for renewal dates. Months and years are calendar-based and
clamp to the last day of a shorter month (Jan 31 + 1 month = Feb 28/29).
"""

import calendar
from datetime import datetime, timedelta
from typing import Optional

from subscription_backend.src.billing.domain.plan import INTERVALS
from subscription_backend.src.billing.shared.config import DEFAULT_RENEWAL_INTERVAL, DEFAULT_RENEWAL_PERIOD


def _add_months(base: datetime, months: int) -> datetime:
    month_index = base.month - 1 + months
    year = base.year + month_index // 12
    month = month_index % 12 + 1
    day = min(base.day, calendar.monthrange(year, month)[1])
    return base.replace(year=year, month=month, day=day)


def advance(moment: datetime, period: int, interval: str = 'months') -> datetime:
    """
    Move `moment` forward by `period` units of `interval`.

    Args:
        moment: Starting point
        period: Number of units (0 returns moment unchanged)
        interval: One of 'days', 'weeks', 'months', 'years'
    """
    if interval not in INTERVALS:
        raise ValueError(f"Unknown interval {interval!r}")
    if not period:
        return moment
    if interval == 'days':
        return moment + timedelta(days=period)
    if interval == 'weeks':
        return moment + timedelta(weeks=period)
    if interval == 'years':
        return _add_months(moment, 12 * period)
    return _add_months(moment, period)


def compute_next_renewal(
    now: datetime,
    trial_period: Optional[int],
    trial_interval: Optional[str] = None,
    trial_extension: int = 0,
    renewal_period: Optional[int] = None,
    renewal_interval: Optional[str] = None
) -> datetime:
    """
    Compute the first renewal date for a subscription.

    Without a trial the base period is the renewal period; with one it is
    the trial length. The discount-driven extension is always expressed in
    the trial interval unit.

    Args:
        now: Reference time
        trial_period: Trial length (None = no trial)
        trial_interval: Unit for trial_period and trial_extension (default 'months')
        trial_extension: Extra trial length from the applicable discount
        renewal_period: Billing cycle length used when there is no trial (default 1)
        renewal_interval: Unit for renewal_period (default 'months')

    Returns:
        now + base period + extension
    """
    trial_interval = trial_interval or 'months'
    trial_extension = trial_extension or 0

    if trial_period is not None:
        return advance(now, trial_period + trial_extension, trial_interval)

    renewal_period = renewal_period or DEFAULT_RENEWAL_PERIOD
    renewal_interval = renewal_interval or DEFAULT_RENEWAL_INTERVAL

    # Same unit: add in one step so month-end clamping happens once
    if renewal_interval == trial_interval:
        return advance(now, renewal_period + trial_extension, renewal_interval)

    return advance(advance(now, renewal_period, renewal_interval), trial_extension, trial_interval)
