"""
Renewal Job

Driver for the periodic trigger (cron, CLI). Finds the subscriptions due
today (active renewals and trials with a card on file that end today),
charges each one once, and sends trial-expiry notices.

Features:
- At most one charge attempt per subscription at a time (per-id lock)
- Bounded concurrency across subscriptions
- A decline is reported, never retried within the same run
- Reconciliation faults are reported separately from declines

Usage:
    job = RenewalJob(service, finder)
    results = await job.run_due_charges()
    # {'checked': 12, 'charged': 11, 'failed': 1, 'faults': 0, 'errors': [...]}
"""

import asyncio
import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, Optional

from subscription_backend.core.conf import settings
from subscription_backend.src.billing.domain.subscription import Subscription
from subscription_backend.src.billing.shared.exceptions import PaymentError, ReconciliationFault
from .finders import SubscriptionFinder
from .service import SubscriptionService

logger = logging.getLogger(__name__)


class RenewalJob:

    def __init__(
        self,
        service: SubscriptionService,
        finder: SubscriptionFinder,
        concurrency: Optional[int] = None
    ):
        self.service = service
        self.finder = finder
        self.concurrency = concurrency or settings.RENEWAL_BATCH_CONCURRENCY
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def run_due_charges(self, as_of: Optional[datetime] = None) -> Dict:
        """
        Charge every subscription renewing on the day of `as_of`.

        Active renewals and card-backed trials ending that day are dispatched
        together; a trial becomes active on its first successful charge.

        Returns:
            Dict with checked, charged, failed, faults counts and an errors list
        """
        results = {
            'checked': 0,
            'charged': 0,
            'failed': 0,
            'faults': 0,
            'errors': []
        }

        renewals = await self.finder.find_due(as_of)
        trials = await self.finder.find_due_trials(as_of)
        due = renewals + trials
        unique = list({subscription.id: subscription for subscription in due}.values())
        results['checked'] = len(unique)

        if not unique:
            logger.info("[RENEWAL] No subscriptions due")
            return results

        logger.info(f"[RENEWAL] Charging {len(unique)} due subscriptions")
        semaphore = asyncio.Semaphore(self.concurrency)

        async def run_one(subscription: Subscription):
            async with semaphore:
                await self._charge_one(subscription, results)

        await asyncio.gather(*(run_one(subscription) for subscription in unique))

        logger.info(
            f"[RENEWAL] Done: {results['charged']} charged, {results['failed']} failed, "
            f"{results['faults']} need reconciliation"
        )
        return results

    async def notify_expiring_trials(self, now: Optional[datetime] = None) -> Dict:
        """Send a trial-expiry notice for every trial ending `notice_days` out."""
        results = {'checked': 0, 'notified': 0, 'errors': []}

        expiring = await self.finder.find_expiring_trials(now)
        results['checked'] = len(expiring)

        for subscription in expiring:
            try:
                await self.service.notifier.send_trial_expiring(subscription.subscriber, subscription.next_renewal_at)
                results['notified'] += 1
            except Exception as e:
                logger.error(f"[RENEWAL] Trial notice for {subscription.id} failed: {e}")
                results['errors'].append({'subscription_id': subscription.id, 'error': str(e)})

        logger.info(f"[RENEWAL] Sent {results['notified']} of {results['checked']} trial expiry notices")
        return results

    async def _charge_one(self, subscription: Subscription, results: Dict) -> None:
        lock = self._locks[subscription.id]
        if lock.locked():
            logger.warning(f"[RENEWAL] Charge already in flight for {subscription.id}, skipping")
            return

        async with lock:
            try:
                await self.service.charge(subscription)
                results['charged'] += 1
            except PaymentError as e:
                results['failed'] += 1
                results['errors'].append({'subscription_id': subscription.id, 'code': e.code, 'error': e.message})
                logger.warning(f"[RENEWAL] Charge declined for {subscription.id}: {e.message}")
            except ReconciliationFault as e:
                results['faults'] += 1
                results['errors'].append({'subscription_id': subscription.id, 'code': e.code, 'error': e.message})
                logger.error(f"[RENEWAL] Reconciliation needed for {subscription.id}: {e.message}")
            except Exception as e:
                results['failed'] += 1
                results['errors'].append({'subscription_id': subscription.id, 'code': 'UNEXPECTED', 'error': str(e)})
                logger.error(f"[RENEWAL] Error charging {subscription.id}: {e}", exc_info=True)
