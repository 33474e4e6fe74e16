"""Custom exceptions for the statement reconciliation application."""


class ReconciliationError(Exception):
    """Base exception for reconciliation errors."""

    pass


class StatementParseError(ReconciliationError):
    """Error reading a bank statement file."""

    pass


class UnsupportedFormatError(StatementParseError):
    """Statement file extension is not one of the supported formats."""

    def __init__(self, extension: str, supported: list[str]):
        self.extension = extension
        self.supported = supported
        super().__init__(
            f"Unsupported file format: {extension or '(none)'}. "
            f"Supported formats: {', '.join(s.upper() for s in supported)}"
        )


class EmptyStatementError(StatementParseError):
    """Statement format was recognized but no row produced a transaction."""

    pass


class RowParseError(StatementParseError):
    """A single statement row could not be mapped. Never leaves the parser."""

    pass


class AmountOverflowError(ReconciliationError):
    """Statement totals exceed the storage precision of the record."""

    pass


class RecordNotFoundError(ReconciliationError):
    """Reconciliation record missing or owned by another organization."""

    pass


class TransactionNotFoundError(ReconciliationError):
    """Bank or system transaction missing or owned by another organization."""

    pass


class ConfigurationError(ReconciliationError):
    """Error in configuration."""

    pass


class StorageError(ReconciliationError):
    """Error storing an uploaded statement file."""

    pass
