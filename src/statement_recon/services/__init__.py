"""Reconciliation lifecycle and its storage and ledger collaborators."""

from .reconciliation import ReconciliationService, calculate_totals, MAX_TOTAL_AMOUNT
from .storage import FileStorage, LocalFileStorage
from .ledger import ExpenseLedger, SqlExpenseLedger

__all__ = [
    "ReconciliationService",
    "calculate_totals",
    "MAX_TOTAL_AMOUNT",
    "FileStorage",
    "LocalFileStorage",
    "ExpenseLedger",
    "SqlExpenseLedger",
]
