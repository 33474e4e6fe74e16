"""Persistence for reconciliation records and transactions."""

from .connection import Base, create_db_engine, create_session_factory, init_db
from .models import (
    ReconciliationRecordDB,
    BankTransactionDB,
    SystemTransactionDB,
    ExpenseDB,
)

__all__ = [
    "Base",
    "create_db_engine",
    "create_session_factory",
    "init_db",
    "ReconciliationRecordDB",
    "BankTransactionDB",
    "SystemTransactionDB",
    "ExpenseDB",
]
