"""
Expense ledger interface used to build system transactions.

The reconciliation service only reads expenses and, for manual DEBIT
entries, asks the ledger to create one. ``SqlExpenseLedger`` implements both
over the local ``expenses`` table.
"""

from decimal import Decimal
from pathlib import Path
from typing import Optional, Protocol
import logging

import pandas as pd
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from ..models.transaction import ExpenseEntry, ManualEntry
from ..database.models import ExpenseDB, generate_uuid
from ..parsers.normalize import parse_amount, to_date, to_money
from ..parsers.tabular_parser import find_column
from ..utils.exceptions import EmptyStatementError, StatementParseError

logger = logging.getLogger(__name__)

EXPENSE_COLUMNS = {
    "date": ["expense_date", "date"],
    "description": ["description", "details", "memo"],
    "vendor": ["vendor", "supplier", "payee"],
    "amount": ["total_amount", "total", "amount"],
    "category": ["category"],
}


class ExpenseLedger(Protocol):
    """Read and create operations on the organization's expenses."""

    def find_expenses_in_organization(self, organization_id: str) -> list[ExpenseEntry]:
        ...

    def create_expense(
        self, organization_id: str, user_id: Optional[str], entry: ManualEntry
    ) -> str:
        ...


class SqlExpenseLedger:
    """Expense ledger backed by the ``expenses`` table."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self.session_factory = session_factory

    def find_expenses_in_organization(self, organization_id: str) -> list[ExpenseEntry]:
        """All expenses of an organization, oldest first."""
        with self.session_factory() as session:
            rows = session.scalars(
                select(ExpenseDB)
                .where(ExpenseDB.organization_id == organization_id)
                .order_by(ExpenseDB.expense_date, ExpenseDB.created_at)
            ).all()

        return [
            ExpenseEntry(
                id=row.id,
                expense_date=row.expense_date,
                total_amount=Decimal(row.total_amount),
                description=row.description,
                vendor_name=row.vendor_name,
            )
            for row in rows
        ]

    def create_expense(
        self, organization_id: str, user_id: Optional[str], entry: ManualEntry
    ) -> str:
        """Record an expense for a manual reconciliation entry and return its id."""
        expense_id = generate_uuid()
        with self.session_factory.begin() as session:
            session.add(
                ExpenseDB(
                    id=expense_id,
                    organization_id=organization_id,
                    expense_date=entry.transaction_date,
                    description=entry.description,
                    total_amount=entry.amount,
                    category_id=entry.category_id,
                    source="manual",
                    created_by=user_id,
                )
            )

        logger.info(f"Created expense {expense_id} for manual entry '{entry.description}'")
        return expense_id

    def import_csv(
        self, organization_id: str, file_path: Path, user_id: Optional[str] = None
    ) -> int:
        """
        Load expenses from a CSV export into the ledger.

        Rows without a valid date or amount are skipped.

        Args:
            organization_id: Owning organization
            file_path: CSV with date, description/vendor and amount columns
            user_id: Importing user

        Returns:
            Number of expenses created

        Raises:
            StatementParseError: If the CSV cannot be read
            EmptyStatementError: If no row could be imported
        """
        try:
            df = pd.read_csv(file_path, dtype=str, keep_default_na=False)
        except Exception as e:
            raise StatementParseError(f"Failed to read expense CSV: {e}") from e

        headers = [str(c) for c in df.columns]
        columns = {name: find_column(headers, synonyms) for name, synonyms in EXPENSE_COLUMNS.items()}

        expenses: list[ExpenseDB] = []
        for idx, row in df.iterrows():
            expense_date = to_date(row.get(columns["date"])) if columns["date"] else None
            amount = parse_amount(row.get(columns["amount"])) if columns["amount"] else None
            if not expense_date or amount is None:
                logger.warning(f"Skipping expense row {idx}: missing date or amount")
                continue

            expenses.append(
                ExpenseDB(
                    id=generate_uuid(),
                    organization_id=organization_id,
                    expense_date=expense_date,
                    description=_optional_text(row, columns["description"]),
                    vendor_name=_optional_text(row, columns["vendor"]),
                    total_amount=to_money(abs(amount)),
                    category_id=_optional_text(row, columns["category"]),
                    source="import",
                    created_by=user_id,
                )
            )

        if not expenses:
            raise EmptyStatementError(f"No valid expenses found in {file_path.name}")

        with self.session_factory.begin() as session:
            session.add_all(expenses)

        logger.info(f"Imported {len(expenses)} expenses for organization {organization_id}")
        return len(expenses)


def _optional_text(row: pd.Series, column: Optional[str]) -> Optional[str]:
    if not column:
        return None
    value = str(row.get(column, "")).strip()
    return value or None
