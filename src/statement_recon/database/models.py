"""
Reconciliation store tables.

Tables:
- reconciliation_records: one row per uploaded statement (aggregate root)
- bank_transactions: statement lines, owned by a record
- system_transactions: book-side lines attached to a record
- expenses: local expense ledger behind the expense read/create interface
"""

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import (
    Column, String, Text, Integer, Date, DateTime,
    ForeignKey, Index, Enum as SQLEnum, Numeric
)
from sqlalchemy.orm import relationship

from ..models.transaction import ReconciliationStatus, TransactionType
from .connection import Base


def generate_uuid() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def today() -> date:
    return datetime.now(timezone.utc).date()


class ReconciliationRecordDB(Base):
    """
    One statement upload with its running totals.

    ``total_matched`` and ``total_unmatched`` are always recounted from the
    bank transactions, never incremented.
    """
    __tablename__ = "reconciliation_records"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    organization_id = Column(String(36), nullable=False)

    reconciliation_date = Column(Date, nullable=False, default=today)
    statement_period_start = Column(Date, nullable=False)
    statement_period_end = Column(Date, nullable=False)

    total_bank_credits = Column(Numeric(18, 2), nullable=False, default=0)
    total_bank_debits = Column(Numeric(18, 2), nullable=False, default=0)
    total_matched = Column(Integer, nullable=False, default=0)
    total_unmatched = Column(Integer, nullable=False, default=0)
    adjustments_count = Column(Integer, nullable=False, default=0)

    closing_balance = Column(Numeric(18, 2), nullable=True)
    system_closing_balance = Column(Numeric(18, 2), nullable=True)
    notes = Column(Text, nullable=True)

    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now)

    bank_transactions = relationship(
        "BankTransactionDB",
        back_populates="reconciliation_record",
        order_by="BankTransactionDB.position",
    )
    system_transactions = relationship(
        "SystemTransactionDB",
        back_populates="reconciliation_record",
        order_by="SystemTransactionDB.created_at",
    )

    __table_args__ = (
        Index("idx_reconciliation_records_org_date", "organization_id", "reconciliation_date"),
    )


class BankTransactionDB(Base):
    """Statement line as uploaded; only status and record link ever change."""
    __tablename__ = "bank_transactions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    organization_id = Column(String(36), nullable=False)

    transaction_date = Column(Date, nullable=False)
    description = Column(Text, nullable=False, default="")
    amount = Column(Numeric(12, 2), nullable=False)
    type = Column(SQLEnum(TransactionType, name="transaction_type_enum"), nullable=False)
    balance = Column(Numeric(12, 2), nullable=True)
    reference = Column(Text, nullable=True)

    source_file = Column(Text, nullable=False)
    # Line number within the statement, keeps statement order on reload
    position = Column(Integer, nullable=False, default=0)
    status = Column(
        SQLEnum(ReconciliationStatus, name="reconciliation_status_enum"),
        nullable=False,
        default=ReconciliationStatus.UNMATCHED,
    )

    reconciliation_record_id = Column(
        String(36), ForeignKey("reconciliation_records.id"), nullable=True
    )
    uploaded_by = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now)

    reconciliation_record = relationship(
        "ReconciliationRecordDB", back_populates="bank_transactions"
    )

    __table_args__ = (
        Index("idx_bank_transactions_org_date", "organization_id", "transaction_date"),
        Index("idx_bank_transactions_status", "status"),
    )


class SystemTransactionDB(Base):
    """Book-side transaction considered for reconciliation."""
    __tablename__ = "system_transactions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    organization_id = Column(String(36), nullable=False)

    transaction_date = Column(Date, nullable=False)
    description = Column(Text, nullable=False, default="")
    amount = Column(Numeric(12, 2), nullable=False)
    type = Column(SQLEnum(TransactionType, name="transaction_type_enum"), nullable=False)

    # Opaque id returned by the expense ledger
    expense_id = Column(String(36), nullable=True)
    # 'expense', 'reconciliation'
    source = Column(String(50), nullable=False, default="expense")
    status = Column(
        SQLEnum(ReconciliationStatus, name="reconciliation_status_enum"),
        nullable=False,
        default=ReconciliationStatus.UNMATCHED,
    )

    reconciliation_record_id = Column(
        String(36), ForeignKey("reconciliation_records.id"), nullable=True
    )
    created_at = Column(DateTime(timezone=True), default=utc_now)

    reconciliation_record = relationship(
        "ReconciliationRecordDB", back_populates="system_transactions"
    )

    __table_args__ = (
        Index("idx_system_transactions_org_date", "organization_id", "transaction_date"),
        Index("idx_system_transactions_status", "status"),
    )


class ExpenseDB(Base):
    """Expense ledger row read by the ledger loader."""
    __tablename__ = "expenses"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    organization_id = Column(String(36), nullable=False, index=True)

    expense_date = Column(Date, nullable=False)
    description = Column(Text, nullable=True)
    vendor_name = Column(Text, nullable=True)
    total_amount = Column(Numeric(12, 2), nullable=False)
    category_id = Column(String(36), nullable=True)
    # 'manual', 'import'
    source = Column(String(50), nullable=False, default="manual")

    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now)
