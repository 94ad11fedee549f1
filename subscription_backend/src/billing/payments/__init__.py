"""
Payments Module

Charge capture, ledger entries and reconciliation.

Usage:
    from subscription_backend.src.billing.payments import (
        ChargeProcessor,
        LedgerWriter,
        ReconciliationService,
    )
"""

from .interfaces import ChargeProcessorInterface, ReconciliationJournalInterface
from .ledger import LedgerWriter
from .processor import ChargeProcessor, ChargeResult
from .reconciliation import ReconciliationEntry, ReconciliationService

__all__ = [
    # Interfaces
    'ChargeProcessorInterface',
    'ReconciliationJournalInterface',
    # Charge
    'ChargeProcessor',
    'ChargeResult',
    # Ledger
    'LedgerWriter',
    # Reconciliation
    'ReconciliationEntry',
    'ReconciliationService',
]
