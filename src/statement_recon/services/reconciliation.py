"""
Reconciliation record lifecycle.

Runs the upload pipeline (parse, persist, load ledger, auto-match,
recompute) and the follow-up operations on an existing record: manual
matches, manual entries and statistic recomputation. Each state change runs
in a single database transaction.
"""

from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Iterator, Optional, Sequence
import logging
import threading
import weakref

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload, sessionmaker

from ..config import ReconConfig
from ..database import (
    ReconciliationRecordDB,
    BankTransactionDB,
    SystemTransactionDB,
    create_db_engine,
    create_session_factory,
    init_db,
)
from ..database.models import generate_uuid, today
from ..matching.engine import MatchingEngine
from ..models.transaction import (
    ExpenseEntry,
    ManualEntry,
    MatchResult,
    ParsedTransaction,
    ReconciliationStatus,
    StoredFile,
    SystemTransactionSource,
    TransactionType,
)
from ..parsers.normalize import to_money
from ..parsers.statement_parser import StatementParser
from ..utils.exceptions import (
    AmountOverflowError,
    RecordNotFoundError,
    StatementParseError,
    TransactionNotFoundError,
)
from .ledger import ExpenseLedger, SqlExpenseLedger
from .storage import FileStorage, LocalFileStorage

logger = logging.getLogger(__name__)

# Largest value a Numeric(18, 2) total column can hold
MAX_TOTAL_AMOUNT = Decimal("9999999999999999.99")


def calculate_totals(transactions: Sequence[ParsedTransaction]) -> tuple[Decimal, Decimal]:
    """
    Sum statement amounts into (credits, debits).

    Non-finite or negative amounts are skipped with a warning.

    Raises:
        AmountOverflowError: If either total exceeds the storage precision
    """
    credits = Decimal("0")
    debits = Decimal("0")

    for txn in transactions:
        amount = txn.amount
        if not amount.is_finite() or amount < 0:
            logger.warning(f"Invalid {txn.type.value} amount: {amount}, skipping")
            continue
        if txn.type == TransactionType.CREDIT:
            credits += amount
        else:
            debits += amount

    if credits > MAX_TOTAL_AMOUNT or debits > MAX_TOTAL_AMOUNT:
        raise AmountOverflowError(
            f"Total amount exceeds maximum value of {MAX_TOTAL_AMOUNT:,}. "
            f"Credits: {credits:.2f}, Debits: {debits:.2f}. "
            f"Please process statements in smaller batches."
        )

    return to_money(credits), to_money(debits)


class ReconciliationService:
    """Owns reconciliation records and keeps their statistics consistent."""

    def __init__(
        self,
        config: ReconConfig,
        session_factory: sessionmaker[Session],
        storage: FileStorage,
        ledger: ExpenseLedger,
        parser: Optional[StatementParser] = None,
        engine: Optional[MatchingEngine] = None,
    ):
        """
        Initialize the service with its collaborators.

        Args:
            config: Application configuration
            session_factory: Factory for database sessions
            storage: Where uploaded statements are kept
            ledger: Expense ledger read/create interface
            parser: Statement parser (built from config if omitted)
            engine: Matching engine (built from config if omitted)
        """
        self.config = config
        self.session_factory = session_factory
        self.storage = storage
        self.ledger = ledger
        self.parser = parser or StatementParser(config)
        self.engine = engine or MatchingEngine(config)

        # Entries disappear once no caller holds the lock
        self._record_locks: "weakref.WeakValueDictionary[str, threading.Lock]" = (
            weakref.WeakValueDictionary()
        )
        self._locks_guard = threading.Lock()

    @classmethod
    def from_config(cls, config: ReconConfig) -> "ReconciliationService":
        """Wire the service to the configured database and local storage."""
        db_engine = create_db_engine(config.database)
        init_db(db_engine)
        session_factory = create_session_factory(db_engine)
        return cls(
            config=config,
            session_factory=session_factory,
            storage=LocalFileStorage(Path(config.storage.directory)),
            ledger=SqlExpenseLedger(session_factory),
        )

    # ------------------------------------------------------------------
    # Upload pipeline
    # ------------------------------------------------------------------

    def upload_statement(
        self,
        organization_id: str,
        user_id: Optional[str],
        file_path: Path,
        statement_period_start: Optional[date] = None,
        statement_period_end: Optional[date] = None,
        notes: Optional[str] = None,
    ) -> ReconciliationRecordDB:
        """Read a statement from disk and run the upload pipeline on it."""
        try:
            content = file_path.read_bytes()
        except OSError as e:
            raise StatementParseError(f"Failed to read statement file {file_path}: {e}") from e

        return self.upload_statement_content(
            organization_id,
            user_id,
            file_path.name,
            content,
            statement_period_start=statement_period_start,
            statement_period_end=statement_period_end,
            notes=notes,
        )

    def upload_statement_content(
        self,
        organization_id: str,
        user_id: Optional[str],
        filename: str,
        content: bytes,
        statement_period_start: Optional[date] = None,
        statement_period_end: Optional[date] = None,
        notes: Optional[str] = None,
    ) -> ReconciliationRecordDB:
        """
        Parse, persist, load the ledger and auto-match one statement.

        Parsing and total validation happen before anything is stored, so an
        empty or oversized statement leaves no trace.

        Args:
            organization_id: Owning organization
            user_id: Uploading user
            filename: Original file name (selects the parser)
            content: Raw file bytes
            statement_period_start: Period start (min transaction date if omitted)
            statement_period_end: Period end (max transaction date if omitted)
            notes: Free-text notes for the record

        Returns:
            The new record with its transactions loaded

        Raises:
            UnsupportedFormatError: Unknown file extension
            EmptyStatementError: No transactions in the file
            AmountOverflowError: Totals too large to store
        """
        parsed = self.parser.parse(filename, content)
        total_credits, total_debits = calculate_totals(parsed)

        dates = [t.transaction_date for t in parsed]
        period_start = statement_period_start or min(dates)
        period_end = statement_period_end or max(dates)

        stored = self.storage.upload_file(
            filename, content, organization_id, self.config.storage.folder
        )
        expenses = self.ledger.find_expenses_in_organization(organization_id)

        with self.session_factory.begin() as session:
            record = self._create_batch(
                session,
                organization_id=organization_id,
                user_id=user_id,
                parsed=parsed,
                stored=stored,
                period_start=period_start,
                period_end=period_end,
                total_credits=total_credits,
                total_debits=total_debits,
                notes=notes,
            )
            self._attach_system_transactions(session, record, expenses)
            self._auto_match(session, record)
            self._recompute_stats(session, record)
            record_id = record.id

        logger.info(
            f"Reconciliation {record_id} created from {filename}: "
            f"{record.total_matched} matched, {record.total_unmatched} unmatched"
        )
        return self.get_reconciliation_detail(organization_id, record_id)

    def _create_batch(
        self,
        session: Session,
        organization_id: str,
        user_id: Optional[str],
        parsed: Sequence[ParsedTransaction],
        stored: StoredFile,
        period_start: date,
        period_end: date,
        total_credits: Decimal,
        total_debits: Decimal,
        notes: Optional[str],
    ) -> ReconciliationRecordDB:
        """Persist the record and its bank transactions."""
        closing_balance = next(
            (t.balance for t in reversed(parsed) if t.balance is not None), None
        )

        record = ReconciliationRecordDB(
            id=generate_uuid(),
            organization_id=organization_id,
            reconciliation_date=today(),
            statement_period_start=period_start,
            statement_period_end=period_end,
            total_bank_credits=total_credits,
            total_bank_debits=total_debits,
            total_matched=0,
            total_unmatched=len(parsed),
            adjustments_count=0,
            closing_balance=closing_balance,
            notes=notes,
            created_by=user_id,
        )
        session.add(record)

        session.add_all(
            BankTransactionDB(
                id=generate_uuid(),
                organization_id=organization_id,
                transaction_date=txn.transaction_date,
                description=txn.description,
                amount=txn.amount,
                type=txn.type,
                balance=txn.balance,
                reference=txn.reference,
                source_file=stored.file_url,
                position=position,
                status=ReconciliationStatus.UNMATCHED,
                reconciliation_record=record,
                uploaded_by=user_id,
            )
            for position, txn in enumerate(parsed)
        )
        session.flush()

        logger.debug(
            f"Created record {record.id} with {len(parsed)} bank transactions "
            f"(credits {total_credits}, debits {total_debits})"
        )
        return record

    # ------------------------------------------------------------------
    # Ledger loading
    # ------------------------------------------------------------------

    def load_system_transactions(self, organization_id: str, record_id: str) -> int:
        """
        Attach the organization's expenses in the record's period.

        Expenses already attached to the record are skipped, so reloading
        only picks up new ledger entries.

        Returns:
            Number of system transactions created
        """
        expenses = self.ledger.find_expenses_in_organization(organization_id)

        with self._record_lock(record_id), self.session_factory.begin() as session:
            record = self._get_record(session, organization_id, record_id)
            return self._attach_system_transactions(session, record, expenses)

    def _attach_system_transactions(
        self,
        session: Session,
        record: ReconciliationRecordDB,
        expenses: Sequence[ExpenseEntry],
    ) -> int:
        start, end = record.statement_period_start, record.statement_period_end
        session.flush()
        attached = set(
            session.scalars(
                select(SystemTransactionDB.expense_id).where(
                    SystemTransactionDB.reconciliation_record_id == record.id,
                    SystemTransactionDB.expense_id.is_not(None),
                )
            ).all()
        )
        created = 0

        for expense in expenses:
            if not start <= expense.expense_date <= end or expense.id in attached:
                continue

            session.add(
                SystemTransactionDB(
                    id=generate_uuid(),
                    organization_id=record.organization_id,
                    transaction_date=expense.expense_date,
                    description=expense.description or expense.vendor_name or "Expense",
                    amount=to_money(Decimal(expense.total_amount)),
                    type=TransactionType.DEBIT,
                    expense_id=expense.id,
                    source=SystemTransactionSource.EXPENSE,
                    status=ReconciliationStatus.UNMATCHED,
                    reconciliation_record=record,
                )
            )
            created += 1

        session.flush()
        logger.info(
            f"Loaded {created} system transactions for {start} to {end} "
            f"({len(expenses)} expenses checked)"
        )
        return created

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    def auto_match_transactions(self, organization_id: str, record_id: str) -> list[MatchResult]:
        """Run the matching engine over the record's unmatched transactions."""
        with self._record_lock(record_id), self.session_factory.begin() as session:
            record = self._get_record(session, organization_id, record_id)
            results = self._auto_match(session, record)
            self._recompute_stats(session, record)
        return results

    def _auto_match(self, session: Session, record: ReconciliationRecordDB) -> list[MatchResult]:
        session.flush()
        bank_txns = session.scalars(
            select(BankTransactionDB)
            .where(
                BankTransactionDB.reconciliation_record_id == record.id,
                BankTransactionDB.status == ReconciliationStatus.UNMATCHED,
            )
            .order_by(BankTransactionDB.position)
        ).all()
        system_txns = session.scalars(
            select(SystemTransactionDB).where(
                SystemTransactionDB.reconciliation_record_id == record.id,
                SystemTransactionDB.status == ReconciliationStatus.UNMATCHED,
            )
        ).all()

        results = self.engine.auto_match(bank_txns, system_txns)

        for result in results:
            for txn in (result.bank_transaction, result.system_transaction):
                txn.status = ReconciliationStatus.MATCHED
                txn.reconciliation_record_id = record.id

        session.flush()
        return results

    def manual_match(
        self, organization_id: str, bank_transaction_id: str, system_transaction_id: str
    ) -> Optional[ReconciliationRecordDB]:
        """
        Match two transactions chosen by an operator, without scoring.

        Returns:
            The bank transaction's record with refreshed statistics, or None
            if the bank transaction belongs to no record

        Raises:
            TransactionNotFoundError: If either id is unknown to the organization
        """
        with self.session_factory() as session:
            record_id = self._get_bank_transaction(
                session, organization_id, bank_transaction_id
            ).reconciliation_record_id

        with self._record_lock(record_id), self.session_factory.begin() as session:
            bank_txn = self._get_bank_transaction(session, organization_id, bank_transaction_id)
            system_txn = self._get_system_transaction(
                session, organization_id, system_transaction_id
            )

            bank_txn.status = ReconciliationStatus.MATCHED
            system_txn.status = ReconciliationStatus.MATCHED
            if system_txn.reconciliation_record_id is None:
                system_txn.reconciliation_record_id = bank_txn.reconciliation_record_id

            if record_id:
                self._recompute_stats(session, session.get(ReconciliationRecordDB, record_id))

        logger.info(f"Manually matched {bank_transaction_id} <-> {system_transaction_id}")
        if not record_id:
            return None
        return self.get_reconciliation_detail(organization_id, record_id)

    # ------------------------------------------------------------------
    # Manual entries and statistics
    # ------------------------------------------------------------------

    def create_manual_entry(
        self,
        organization_id: str,
        user_id: Optional[str],
        record_id: str,
        entry: ManualEntry,
    ) -> SystemTransactionDB:
        """
        Add an operator-entered system transaction to a record.

        DEBIT entries are also booked as expenses through the ledger.

        Raises:
            RecordNotFoundError: If the record is unknown to the organization
        """
        with self.session_factory() as session:
            self._get_record(session, organization_id, record_id)

        expense_id = None
        if entry.type == TransactionType.DEBIT:
            expense_id = self.ledger.create_expense(organization_id, user_id, entry)

        with self._record_lock(record_id), self.session_factory.begin() as session:
            record = self._get_record(session, organization_id, record_id)
            system_txn = SystemTransactionDB(
                id=generate_uuid(),
                organization_id=organization_id,
                transaction_date=entry.transaction_date,
                description=entry.description,
                amount=entry.amount,
                type=entry.type,
                expense_id=expense_id,
                source=SystemTransactionSource.RECONCILIATION,
                status=ReconciliationStatus.UNMATCHED,
                reconciliation_record=record,
            )
            session.add(system_txn)
            self._recompute_stats(session, record)

        logger.info(f"Manual entry {system_txn.id} added to reconciliation {record_id}")
        return system_txn

    def recompute_stats(self, organization_id: str, record_id: str) -> ReconciliationRecordDB:
        """Recount the record's statistics from transaction statuses."""
        with self._record_lock(record_id), self.session_factory.begin() as session:
            record = self._get_record(session, organization_id, record_id)
            self._recompute_stats(session, record)
        return self.get_reconciliation_detail(organization_id, record_id)

    def _recompute_stats(self, session: Session, record: ReconciliationRecordDB) -> None:
        """
        Derive match counts by counting, never by patching counters.

        Anything not MATCHED counts as unmatched so the two totals always add
        up to the number of bank transactions on the record.
        """
        session.flush()

        status_counts = dict(
            session.execute(
                select(BankTransactionDB.status, func.count())
                .where(BankTransactionDB.reconciliation_record_id == record.id)
                .group_by(BankTransactionDB.status)
            ).all()
        )
        total_bank = sum(status_counts.values())
        matched = status_counts.get(ReconciliationStatus.MATCHED, 0)

        adjustments = session.scalar(
            select(func.count())
            .select_from(SystemTransactionDB)
            .where(
                SystemTransactionDB.reconciliation_record_id == record.id,
                SystemTransactionDB.source == SystemTransactionSource.RECONCILIATION,
            )
        )

        record.total_matched = matched
        record.total_unmatched = total_bank - matched
        record.adjustments_count = adjustments or 0
        session.flush()

        logger.debug(
            f"Record {record.id} stats: {matched} matched, {total_bank - matched} unmatched, "
            f"{record.adjustments_count} adjustments"
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_reconciliation_records(
        self,
        organization_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[ReconciliationRecordDB]:
        """Records of an organization, newest reconciliation date first."""
        query = (
            select(ReconciliationRecordDB)
            .where(ReconciliationRecordDB.organization_id == organization_id)
            .options(
                selectinload(ReconciliationRecordDB.bank_transactions),
                selectinload(ReconciliationRecordDB.system_transactions),
            )
        )
        if start_date:
            query = query.where(ReconciliationRecordDB.reconciliation_date >= start_date)
        if end_date:
            query = query.where(ReconciliationRecordDB.reconciliation_date <= end_date)

        query = query.order_by(
            ReconciliationRecordDB.reconciliation_date.desc(),
            ReconciliationRecordDB.created_at.desc(),
        )

        with self.session_factory() as session:
            return list(session.scalars(query).all())

    def get_reconciliation_detail(
        self, organization_id: str, record_id: str
    ) -> ReconciliationRecordDB:
        """
        Load a record with its bank and system transactions.

        Raises:
            RecordNotFoundError: If the record is unknown to the organization
        """
        with self.session_factory() as session:
            record = session.scalar(
                select(ReconciliationRecordDB)
                .where(
                    ReconciliationRecordDB.id == record_id,
                    ReconciliationRecordDB.organization_id == organization_id,
                )
                .options(
                    selectinload(ReconciliationRecordDB.bank_transactions),
                    selectinload(ReconciliationRecordDB.system_transactions),
                )
            )

        if record is None:
            raise RecordNotFoundError(f"Reconciliation record not found: {record_id}")
        return record

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_record(
        self, session: Session, organization_id: str, record_id: str
    ) -> ReconciliationRecordDB:
        record = session.scalar(
            select(ReconciliationRecordDB).where(
                ReconciliationRecordDB.id == record_id,
                ReconciliationRecordDB.organization_id == organization_id,
            )
        )
        if record is None:
            raise RecordNotFoundError(f"Reconciliation record not found: {record_id}")
        return record

    def _get_bank_transaction(
        self, session: Session, organization_id: str, transaction_id: str
    ) -> BankTransactionDB:
        txn = session.scalar(
            select(BankTransactionDB).where(
                BankTransactionDB.id == transaction_id,
                BankTransactionDB.organization_id == organization_id,
            )
        )
        if txn is None:
            raise TransactionNotFoundError(f"Bank transaction not found: {transaction_id}")
        return txn

    def _get_system_transaction(
        self, session: Session, organization_id: str, transaction_id: str
    ) -> SystemTransactionDB:
        txn = session.scalar(
            select(SystemTransactionDB).where(
                SystemTransactionDB.id == transaction_id,
                SystemTransactionDB.organization_id == organization_id,
            )
        )
        if txn is None:
            raise TransactionNotFoundError(f"System transaction not found: {transaction_id}")
        return txn

    @contextmanager
    def _record_lock(self, record_id: Optional[str]) -> Iterator[None]:
        """Serialize state changes on one record within this process."""
        if record_id is None:
            yield
            return

        with self._locks_guard:
            lock = self._record_locks.get(record_id)
            if lock is None:
                lock = threading.Lock()
                self._record_locks[record_id] = lock
        with lock:
            yield
