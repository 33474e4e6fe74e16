"""Data models for statement transactions, match results and record views."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Protocol


class TransactionType(Enum):
    """Transaction type (debit or credit from the bank's perspective)."""

    CREDIT = "credit"  # Money in
    DEBIT = "debit"  # Money out


class ReconciliationStatus(Enum):
    """Match state of a bank or system transaction."""

    UNMATCHED = "unmatched"
    MATCHED = "matched"
    # Reserved for manual review flows; the matcher never sets it
    PENDING = "pending"


class SystemTransactionSource:
    """Values of the ``source`` tag on system transactions."""

    EXPENSE = "expense"
    RECONCILIATION = "reconciliation"


@dataclass
class ParsedTransaction:
    """
    Canonical statement line produced by every parsing strategy.

    Amounts are always positive magnitudes quantized to two decimal places;
    the direction of money lives in ``type``.
    """

    transaction_date: date
    description: str
    amount: Decimal
    type: TransactionType
    balance: Optional[Decimal] = None
    reference: Optional[str] = None

    # Original row for diagnostics
    raw_data: dict[str, Any] = field(default_factory=dict)


class MatchableTransaction(Protocol):
    """Shape the matching engine needs from either side of a pair."""

    id: str
    transaction_date: date
    description: str
    amount: Decimal
    type: TransactionType


@dataclass
class MatchResult:
    """An accepted bank/system pairing."""

    bank_transaction: Any
    system_transaction: Any
    score: float  # 0.0 to 1.0
    reason: str

    amount_variance: Optional[Decimal] = None
    date_variance_days: Optional[int] = None

    matched_at: datetime = field(default_factory=datetime.now)

    @property
    def is_exact_match(self) -> bool:
        """Check if amounts and dates agree exactly."""
        return not self.amount_variance and not self.date_variance_days


@dataclass
class StoredFile:
    """Reference to an uploaded statement held by file storage."""

    file_url: str
    file_key: str
    file_size: int
    file_type: str


@dataclass
class ExpenseEntry:
    """Expense as exposed by the expense ledger read interface."""

    id: str
    expense_date: date
    total_amount: Decimal
    description: Optional[str] = None
    vendor_name: Optional[str] = None


@dataclass
class ManualEntry:
    """Operator-entered reconciliation line (e.g. bank fee missing from the books)."""

    transaction_date: date
    description: str
    amount: Decimal
    type: TransactionType
    category_id: Optional[str] = None
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        self.amount = Decimal(str(self.amount))
        if not self.amount.is_finite() or self.amount < 0:
            raise ValueError(f"Manual entry amount must be a non-negative number: {self.amount}")
        self.amount = self.amount.quantize(Decimal("0.01"))


@dataclass
class RecordSummary:
    """Read-only view of a reconciliation record for display."""

    id: str
    organization_id: str
    reconciliation_date: date
    statement_period_start: date
    statement_period_end: date

    total_bank_transactions: int
    total_system_transactions: int
    total_matched: int
    total_unmatched: int
    adjustments_count: int

    total_bank_credits: Decimal
    total_bank_debits: Decimal

    closing_balance: Optional[Decimal] = None
    system_closing_balance: Optional[Decimal] = None
    notes: Optional[str] = None

    @classmethod
    def from_record(cls, record: Any) -> "RecordSummary":
        """Build a summary from a loaded ``ReconciliationRecordDB``."""
        return cls(
            id=record.id,
            organization_id=record.organization_id,
            reconciliation_date=record.reconciliation_date,
            statement_period_start=record.statement_period_start,
            statement_period_end=record.statement_period_end,
            total_bank_transactions=len(record.bank_transactions),
            total_system_transactions=len(record.system_transactions),
            total_matched=record.total_matched,
            total_unmatched=record.total_unmatched,
            adjustments_count=record.adjustments_count,
            total_bank_credits=record.total_bank_credits,
            total_bank_debits=record.total_bank_debits,
            closing_balance=record.closing_balance,
            system_closing_balance=record.system_closing_balance,
            notes=record.notes,
        )

    @property
    def match_rate(self) -> float:
        """Percentage of bank transactions matched."""
        total = self.total_matched + self.total_unmatched
        if total == 0:
            return 0.0
        return (self.total_matched / total) * 100

    @property
    def net_change(self) -> Decimal:
        """Net change from bank transactions (credits - debits)."""
        return self.total_bank_credits - self.total_bank_debits
