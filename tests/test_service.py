"""Tests for the reconciliation record lifecycle."""

from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from statement_recon.models.transaction import (
    ManualEntry,
    ParsedTransaction,
    ReconciliationStatus,
    RecordSummary,
    TransactionType,
)
from statement_recon.services.reconciliation import MAX_TOTAL_AMOUNT, calculate_totals
from statement_recon.utils.exceptions import (
    AmountOverflowError,
    EmptyStatementError,
    RecordNotFoundError,
    TransactionNotFoundError,
    UnsupportedFormatError,
)

from conftest import ORG_ID, OTHER_ORG_ID, USER_ID

STATEMENT = """Date,Description,Amount,Balance
01/02/2024, ACME SUPPLIES, -150.00, 850.00
05/02/2024, Customer payment, 500.00, 1350.00
"""


def statuses(transactions):
    return [t.status for t in transactions]


class TestCalculateTotals:
    def _txn(self, amount, txn_type):
        return ParsedTransaction(date(2024, 1, 1), "x", Decimal(amount), txn_type)

    def test_partitions_by_type(self):
        credits, debits = calculate_totals(
            [
                self._txn("10.00", TransactionType.CREDIT),
                self._txn("2.50", TransactionType.DEBIT),
                self._txn("5.00", TransactionType.CREDIT),
            ]
        )
        assert credits == Decimal("15.00")
        assert debits == Decimal("2.50")

    def test_skips_negative_and_non_finite_amounts(self, caplog):
        credits, debits = calculate_totals(
            [
                self._txn("-10.00", TransactionType.CREDIT),
                self._txn("NaN", TransactionType.DEBIT),
                self._txn("1.00", TransactionType.DEBIT),
            ]
        )
        assert credits == Decimal("0.00")
        assert debits == Decimal("1.00")
        assert "skipping" in caplog.text

    def test_overflow(self):
        with pytest.raises(AmountOverflowError):
            calculate_totals(
                [
                    self._txn(str(MAX_TOTAL_AMOUNT), TransactionType.CREDIT),
                    self._txn("0.01", TransactionType.CREDIT),
                ]
            )

    def test_maximum_total_is_allowed(self):
        credits, _ = calculate_totals([self._txn(str(MAX_TOTAL_AMOUNT), TransactionType.CREDIT)])
        assert credits == MAX_TOTAL_AMOUNT


class TestUploadStatement:
    """Upload pipeline: parse, persist, load ledger, auto-match, recompute."""

    def test_full_reconciliation(self, service, add_expense, write_csv):
        add_expense(date(2024, 2, 2), "150.00", description="Acme Supplies invoice")
        add_expense(date(2024, 3, 10), "150.00", description="Outside the period")
        add_expense(date(2024, 2, 3), "150.00", description="Other org", organization_id=OTHER_ORG_ID)

        record = service.upload_statement(ORG_ID, USER_ID, write_csv(STATEMENT), notes="February")

        assert record.organization_id == ORG_ID
        assert record.statement_period_start == date(2024, 2, 1)
        assert record.statement_period_end == date(2024, 2, 5)
        assert record.total_bank_credits == Decimal("500.00")
        assert record.total_bank_debits == Decimal("150.00")
        assert record.closing_balance == Decimal("1350.00")
        assert record.notes == "February"
        assert record.created_by == USER_ID

        assert [t.description for t in record.bank_transactions] == [
            "ACME SUPPLIES",
            "Customer payment",
        ]
        assert statuses(record.bank_transactions) == [
            ReconciliationStatus.MATCHED,
            ReconciliationStatus.UNMATCHED,
        ]
        assert len(record.system_transactions) == 1
        assert record.system_transactions[0].status == ReconciliationStatus.MATCHED
        assert record.system_transactions[0].type == TransactionType.DEBIT

        assert record.total_matched == 1
        assert record.total_unmatched == 1
        assert record.adjustments_count == 0

    def test_statement_file_is_stored(self, service, write_csv, config):
        record = service.upload_statement(ORG_ID, USER_ID, write_csv(STATEMENT))

        source_file = record.bank_transactions[0].source_file
        assert source_file.startswith("file://")
        stored = list(Path(config.storage.directory).rglob("*statement.csv"))
        assert len(stored) == 1
        assert stored[0].read_text() == STATEMENT

    def test_explicit_period_limits_ledger(self, service, add_expense, write_csv):
        add_expense(date(2024, 2, 2), "150.00", description="Acme Supplies invoice")

        record = service.upload_statement(
            ORG_ID,
            USER_ID,
            write_csv(STATEMENT),
            statement_period_start=date(2024, 2, 3),
            statement_period_end=date(2024, 2, 28),
        )

        assert record.system_transactions == []
        assert record.total_matched == 0
        assert record.total_unmatched == 2

    def test_description_falls_back_to_vendor(self, service, add_expense, write_csv):
        add_expense(date(2024, 2, 2), "9.99", vendor_name="Stationery Co")
        add_expense(date(2024, 2, 3), "5.00")

        record = service.upload_statement(ORG_ID, USER_ID, write_csv(STATEMENT))

        assert sorted(t.description for t in record.system_transactions) == [
            "Expense",
            "Stationery Co",
        ]

    def test_empty_statement_creates_no_record(self, service, write_csv, config):
        path = write_csv("Date,Description,Amount\nfoo,bar,baz\n")

        with pytest.raises(EmptyStatementError):
            service.upload_statement(ORG_ID, USER_ID, path)

        assert service.get_reconciliation_records(ORG_ID) == []
        assert not Path(config.storage.directory).exists()

    def test_overflow_creates_no_record(self, service, write_csv):
        path = write_csv(
            "Date,Description,Amount\n"
            "01/01/2024,Huge,9999999999999999.99\n"
            "02/01/2024,Extra,1.00\n"
        )

        with pytest.raises(AmountOverflowError):
            service.upload_statement(ORG_ID, USER_ID, path)

        assert service.get_reconciliation_records(ORG_ID) == []

    def test_unsupported_format(self, service, tmp_path):
        path = tmp_path / "statement.txt"
        path.write_text("01/01/2024 Coffee 4.50")

        with pytest.raises(UnsupportedFormatError):
            service.upload_statement(ORG_ID, USER_ID, path)

    def test_upload_from_bytes(self, service):
        record = service.upload_statement_content(
            ORG_ID, USER_ID, "upload.csv", STATEMENT.encode()
        )
        assert len(record.bank_transactions) == 2


class TestRecordStatistics:
    """Recomputation and lifecycle operations on an existing record."""

    @pytest.fixture
    def record(self, service, write_csv):
        return service.upload_statement(ORG_ID, USER_ID, write_csv(STATEMENT))

    def test_recompute_is_idempotent(self, service, record):
        first = service.recompute_stats(ORG_ID, record.id)
        second = service.recompute_stats(ORG_ID, record.id)

        assert (first.total_matched, first.total_unmatched, first.adjustments_count) == (
            second.total_matched,
            second.total_unmatched,
            second.adjustments_count,
        )
        assert second.total_matched + second.total_unmatched == len(second.bank_transactions)

    def test_ledger_loaded_after_upload(self, service, record, add_expense):
        add_expense(date(2024, 2, 5), "500.00", description="Customer payment")

        assert service.load_system_transactions(ORG_ID, record.id) == 1

        # Ledger entries are debits, so the credit can only score on amount, date, description
        results = service.auto_match_transactions(ORG_ID, record.id)
        assert len(results) == 1
        assert service.auto_match_transactions(ORG_ID, record.id) == []

        detail = service.get_reconciliation_detail(ORG_ID, record.id)
        assert detail.total_matched == 1
        assert detail.total_unmatched == 1

    def test_ledger_reload_skips_attached_expenses(self, service, record, add_expense):
        add_expense(date(2024, 2, 3), "42.00", description="Courier")
        assert service.load_system_transactions(ORG_ID, record.id) == 1

        add_expense(date(2024, 2, 4), "8.00", description="Parking")

        assert service.load_system_transactions(ORG_ID, record.id) == 1
        assert service.load_system_transactions(ORG_ID, record.id) == 0
        detail = service.get_reconciliation_detail(ORG_ID, record.id)
        assert sorted(t.description for t in detail.system_transactions) == ["Courier", "Parking"]

    def test_record_locks_are_released(self, service, record):
        service.recompute_stats(ORG_ID, record.id)
        service.load_system_transactions(ORG_ID, record.id)

        assert record.id not in service._record_locks

    def test_manual_entry_and_manual_match(self, service, record):
        entry = ManualEntry(
            transaction_date=date(2024, 2, 5),
            description="Deposit from client",
            amount=Decimal("500"),
            type=TransactionType.CREDIT,
        )

        system_txn = service.create_manual_entry(ORG_ID, USER_ID, record.id, entry)

        assert system_txn.source == "reconciliation"
        assert system_txn.expense_id is None
        detail = service.get_reconciliation_detail(ORG_ID, record.id)
        assert detail.adjustments_count == 1
        assert detail.total_matched == 0

        bank_txn = detail.bank_transactions[1]
        updated = service.manual_match(ORG_ID, bank_txn.id, system_txn.id)

        assert updated.total_matched == 1
        assert updated.total_unmatched == 1
        assert updated.bank_transactions[1].status == ReconciliationStatus.MATCHED
        assert updated.system_transactions[0].status == ReconciliationStatus.MATCHED

    def test_debit_manual_entry_creates_expense(self, service, record, ledger):
        entry = ManualEntry(
            transaction_date=date(2024, 2, 4),
            description="Monthly bank fee",
            amount=Decimal("12.00"),
            type=TransactionType.DEBIT,
            category_id="bank-fees",
        )

        system_txn = service.create_manual_entry(ORG_ID, USER_ID, record.id, entry)

        expenses = ledger.find_expenses_in_organization(ORG_ID)
        assert [e.id for e in expenses] == [system_txn.expense_id]
        assert expenses[0].total_amount == Decimal("12.00")

    def test_manual_entry_rejects_negative_amount(self):
        with pytest.raises(ValueError):
            ManualEntry(date(2024, 2, 4), "Fee", Decimal("-1"), TransactionType.DEBIT)

    def test_manual_entry_unknown_record(self, service, ledger):
        entry = ManualEntry(date(2024, 2, 4), "Fee", Decimal("1"), TransactionType.DEBIT)

        with pytest.raises(RecordNotFoundError):
            service.create_manual_entry(ORG_ID, USER_ID, "missing", entry)

        assert ledger.find_expenses_in_organization(ORG_ID) == []

    def test_ownership_checks(self, service, record):
        with pytest.raises(RecordNotFoundError):
            service.get_reconciliation_detail(OTHER_ORG_ID, record.id)
        with pytest.raises(RecordNotFoundError):
            service.recompute_stats(OTHER_ORG_ID, record.id)
        with pytest.raises(TransactionNotFoundError):
            service.manual_match(OTHER_ORG_ID, record.bank_transactions[0].id, "anything")
        with pytest.raises(TransactionNotFoundError):
            service.manual_match(ORG_ID, record.bank_transactions[0].id, "missing")

    def test_concurrent_recomputes_agree(self, service, record):
        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(lambda _: service.recompute_stats(ORG_ID, record.id), range(8)))

        assert {(r.total_matched, r.total_unmatched) for r in results} == {(0, 2)}

    def test_summary_view(self, record):
        summary = RecordSummary.from_record(record)

        assert summary.total_bank_transactions == 2
        assert summary.net_change == Decimal("350.00")
        assert summary.match_rate == 0.0


class TestQueries:
    def test_records_listed_per_organization(self, service, write_csv):
        first = service.upload_statement(ORG_ID, USER_ID, write_csv(STATEMENT, "a.csv"))
        second = service.upload_statement(ORG_ID, USER_ID, write_csv(STATEMENT, "b.csv"))
        service.upload_statement(OTHER_ORG_ID, USER_ID, write_csv(STATEMENT, "c.csv"))

        records = service.get_reconciliation_records(ORG_ID)

        assert {r.id for r in records} == {first.id, second.id}

    def test_date_filters(self, service, write_csv):
        record = service.upload_statement(ORG_ID, USER_ID, write_csv(STATEMENT))
        today = record.reconciliation_date

        assert len(service.get_reconciliation_records(ORG_ID, start_date=today)) == 1
        assert service.get_reconciliation_records(ORG_ID, end_date=date(2000, 1, 1)) == []

    def test_unknown_record(self, service):
        with pytest.raises(RecordNotFoundError):
            service.get_reconciliation_detail(ORG_ID, "missing")
