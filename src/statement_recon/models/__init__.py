"""Data models for reconciliation."""

from .transaction import (
    ParsedTransaction,
    TransactionType,
    ReconciliationStatus,
    SystemTransactionSource,
    MatchableTransaction,
    MatchResult,
    StoredFile,
    ExpenseEntry,
    ManualEntry,
    RecordSummary,
)

__all__ = [
    "ParsedTransaction",
    "TransactionType",
    "ReconciliationStatus",
    "SystemTransactionSource",
    "MatchableTransaction",
    "MatchResult",
    "StoredFile",
    "ExpenseEntry",
    "ManualEntry",
    "RecordSummary",
]
