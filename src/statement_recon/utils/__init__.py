"""Utility modules."""

from .exceptions import (
    ReconciliationError,
    StatementParseError,
    UnsupportedFormatError,
    EmptyStatementError,
    RowParseError,
    AmountOverflowError,
    RecordNotFoundError,
    TransactionNotFoundError,
    ConfigurationError,
    StorageError,
)
from .logging_config import setup_logging

__all__ = [
    "ReconciliationError",
    "StatementParseError",
    "UnsupportedFormatError",
    "EmptyStatementError",
    "RowParseError",
    "AmountOverflowError",
    "RecordNotFoundError",
    "TransactionNotFoundError",
    "ConfigurationError",
    "StorageError",
    "setup_logging",
]
