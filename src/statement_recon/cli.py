"""
Command-line interface for the bank statement reconciliation tool.
"""

from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Optional
import logging
import sys

import click
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .config import load_config, generate_default_config, ReconConfig
from .database import create_db_engine, create_session_factory, init_db
from .models.transaction import ManualEntry, RecordSummary, TransactionType
from .parsers.statement_parser import StatementParser
from .services.ledger import SqlExpenseLedger
from .services.reconciliation import ReconciliationService
from .utils.logging_config import setup_logging, level_from_name

console = Console()

DATE_FORMATS = ["%Y-%m-%d"]


def config_option(func):
    return click.option(
        "-c",
        "--config",
        type=click.Path(exists=True, path_type=Path),
        help="Path to configuration file (YAML)",
    )(func)


def db_option(func):
    return click.option("--db", help="Override the database URL")(func)


def verbose_option(func):
    return click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")(func)


def org_option(func):
    return click.option("--org", required=True, help="Organization id")(func)


@click.group()
@click.version_option(version="0.1.0")
def main():
    """Bank Statement Reconciliation Tool."""
    pass


@main.command()
@click.argument("statement", type=click.Path(exists=True, path_type=Path))
@org_option
@click.option("--user", help="Id of the uploading user")
@click.option("--period-start", type=click.DateTime(DATE_FORMATS), help="Statement period start")
@click.option("--period-end", type=click.DateTime(DATE_FORMATS), help="Statement period end")
@click.option("--notes", help="Notes stored on the reconciliation record")
@config_option
@db_option
@click.option(
    "--date-tolerance", type=int, default=None, help="Override date tolerance in days"
)
@click.option(
    "--amount-tolerance",
    type=float,
    default=None,
    help="Override amount tolerance",
)
@verbose_option
def reconcile(
    statement: Path,
    org: str,
    user: Optional[str],
    period_start: Optional[datetime],
    period_end: Optional[datetime],
    notes: Optional[str],
    config: Optional[Path],
    db: Optional[str],
    date_tolerance: Optional[int],
    amount_tolerance: Optional[float],
    verbose: bool,
):
    """
    Upload a bank statement and reconcile it against the expense ledger.

    STATEMENT: Path to the CSV, XLSX/XLS or PDF bank statement
    """
    try:
        recon_config = _load_config(config, db, verbose)

        if date_tolerance is not None:
            recon_config.matching.date_tolerance_days = date_tolerance
        if amount_tolerance is not None:
            recon_config.matching.amount_tolerance = amount_tolerance

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Reconciling statement...", total=None)
            service = ReconciliationService.from_config(recon_config)
            record = service.upload_statement(
                org,
                user,
                statement,
                statement_period_start=period_start.date() if period_start else None,
                statement_period_end=period_end.date() if period_end else None,
                notes=notes,
            )
            progress.update(task, completed=True)

        _display_summary(RecordSummary.from_record(record))
        _display_transactions(record)

    except Exception as e:
        _fail(e, verbose)


@main.command()
@click.argument("statement", type=click.Path(exists=True, path_type=Path))
@config_option
@click.option("--limit", type=int, default=20, show_default=True, help="Rows to display")
@verbose_option
def parse(statement: Path, config: Optional[Path], limit: int, verbose: bool):
    """
    Parse a statement and display its transactions without storing anything.

    STATEMENT: Path to the CSV, XLSX/XLS or PDF bank statement
    """
    try:
        recon_config = _load_config(config, None, verbose)
        transactions = StatementParser(recon_config).parse_file(statement)

        table = Table(title=f"Statement Transactions: {statement.name}")
        table.add_column("Date")
        table.add_column("Description")
        table.add_column("Amount", justify="right")
        table.add_column("Type")
        table.add_column("Balance", justify="right")
        table.add_column("Reference")

        for txn in transactions[:limit]:
            table.add_row(
                txn.transaction_date.isoformat(),
                _truncate(txn.description),
                f"{txn.amount:,.2f}",
                txn.type.value,
                f"{txn.balance:,.2f}" if txn.balance is not None else "-",
                txn.reference or "-",
            )

        console.print(table)

        if len(transactions) > limit:
            console.print(f"\n... and {len(transactions) - limit} more transactions")

        console.print(f"\nTotal transactions: {len(transactions)}")

    except Exception as e:
        _fail(e, verbose)


@main.command()
@click.argument("bank_transaction_id")
@click.argument("system_transaction_id")
@org_option
@config_option
@db_option
@verbose_option
def match(
    bank_transaction_id: str,
    system_transaction_id: str,
    org: str,
    config: Optional[Path],
    db: Optional[str],
    verbose: bool,
):
    """
    Manually match a bank transaction to a system transaction.

    BANK_TRANSACTION_ID: Id of the statement line
    SYSTEM_TRANSACTION_ID: Id of the book-side transaction
    """
    try:
        service = ReconciliationService.from_config(_load_config(config, db, verbose))
        record = service.manual_match(org, bank_transaction_id, system_transaction_id)

        console.print(
            f"[green]Matched {bank_transaction_id} with {system_transaction_id}[/green]"
        )
        if record is not None:
            _display_summary(RecordSummary.from_record(record))

    except Exception as e:
        _fail(e, verbose)


@main.command("manual-entry")
@click.argument("record_id")
@org_option
@click.option("--user", help="Id of the user making the entry")
@click.option(
    "--date", "entry_date", type=click.DateTime(DATE_FORMATS), required=True,
    help="Transaction date",
)
@click.option("--description", required=True, help="Transaction description")
@click.option("--amount", type=str, required=True, help="Non-negative amount")
@click.option(
    "--type",
    "txn_type",
    type=click.Choice([t.value for t in TransactionType]),
    default=TransactionType.DEBIT.value,
    show_default=True,
)
@click.option("--category", help="Expense category id for debit entries")
@click.option("--notes", help="Free-text notes")
@config_option
@db_option
@verbose_option
def manual_entry(
    record_id: str,
    org: str,
    user: Optional[str],
    entry_date: datetime,
    description: str,
    amount: str,
    txn_type: str,
    category: Optional[str],
    notes: Optional[str],
    config: Optional[Path],
    db: Optional[str],
    verbose: bool,
):
    """
    Add a manual system transaction (e.g. a bank fee) to a reconciliation.

    RECORD_ID: Id of the reconciliation record
    """
    try:
        entry = ManualEntry(
            transaction_date=entry_date.date(),
            description=description,
            amount=Decimal(amount),
            type=TransactionType(txn_type),
            category_id=category,
            notes=notes,
        )
        service = ReconciliationService.from_config(_load_config(config, db, verbose))
        system_txn = service.create_manual_entry(org, user, record_id, entry)

        console.print(f"[green]Manual entry created: {system_txn.id}[/green]")
        if system_txn.expense_id:
            console.print(f"Expense recorded: {system_txn.expense_id}")

    except Exception as e:
        _fail(e, verbose)


@main.command()
@click.argument("record_id")
@org_option
@config_option
@db_option
@verbose_option
def show(record_id: str, org: str, config: Optional[Path], db: Optional[str], verbose: bool):
    """
    Display a reconciliation record with its transactions.

    RECORD_ID: Id of the reconciliation record
    """
    try:
        service = ReconciliationService.from_config(_load_config(config, db, verbose))
        record = service.get_reconciliation_detail(org, record_id)

        _display_summary(RecordSummary.from_record(record))
        _display_transactions(record)

    except Exception as e:
        _fail(e, verbose)


@main.command("list")
@org_option
@click.option("--from", "start_date", type=click.DateTime(DATE_FORMATS), help="Earliest date")
@click.option("--to", "end_date", type=click.DateTime(DATE_FORMATS), help="Latest date")
@config_option
@db_option
@verbose_option
def list_records(
    org: str,
    start_date: Optional[datetime],
    end_date: Optional[datetime],
    config: Optional[Path],
    db: Optional[str],
    verbose: bool,
):
    """List the reconciliation records of an organization."""
    try:
        service = ReconciliationService.from_config(_load_config(config, db, verbose))
        records = service.get_reconciliation_records(
            org,
            start_date=start_date.date() if start_date else None,
            end_date=end_date.date() if end_date else None,
        )

        table = Table(title=f"Reconciliations: {org}")
        table.add_column("Id")
        table.add_column("Date")
        table.add_column("Period")
        table.add_column("Matched", justify="right")
        table.add_column("Unmatched", justify="right")
        table.add_column("Match Rate", justify="right")

        for record in records:
            summary = RecordSummary.from_record(record)
            table.add_row(
                summary.id,
                summary.reconciliation_date.isoformat(),
                f"{summary.statement_period_start} to {summary.statement_period_end}",
                str(summary.total_matched),
                str(summary.total_unmatched),
                f"{summary.match_rate:.1f}%",
            )

        console.print(table)
        console.print(f"\nTotal reconciliations: {len(records)}")

    except Exception as e:
        _fail(e, verbose)


@main.command("import-expenses")
@click.argument("expenses_file", type=click.Path(exists=True, path_type=Path))
@org_option
@click.option("--user", help="Id of the importing user")
@config_option
@db_option
@verbose_option
def import_expenses(
    expenses_file: Path,
    org: str,
    user: Optional[str],
    config: Optional[Path],
    db: Optional[str],
    verbose: bool,
):
    """
    Load expenses from a CSV export into the local expense ledger.

    EXPENSES_FILE: CSV with date, description/vendor and amount columns
    """
    try:
        recon_config = _load_config(config, db, verbose)
        engine = create_db_engine(recon_config.database)
        init_db(engine)
        ledger = SqlExpenseLedger(create_session_factory(engine))

        count = ledger.import_csv(org, expenses_file, user_id=user)
        console.print(f"[green]Imported {count} expenses[/green]")

    except Exception as e:
        _fail(e, verbose)


@main.command("init-config")
@click.option(
    "-o", "--output", type=click.Path(path_type=Path), default=Path("config.yaml")
)
def init_config(output: Path):
    """Generate a sample configuration file."""
    generate_default_config(output)
    console.print(f"[green]Configuration file generated: {output}[/green]")


def _load_config(
    config_path: Optional[Path], db_url: Optional[str], verbose: bool
) -> ReconConfig:
    """Load configuration, apply the database override and set up logging."""
    recon_config = load_config(config_path)
    if db_url:
        recon_config.database.url = db_url

    log_settings = recon_config.logging
    level = logging.DEBUG if verbose else level_from_name(log_settings.level)
    setup_logging(
        level,
        log_file=Path(log_settings.file) if log_settings.file else None,
        log_format=log_settings.format,
    )
    return recon_config


def _fail(error: Exception, verbose: bool) -> None:
    console.print(f"[red]Error: {error}[/red]")
    if verbose:
        console.print_exception()
    sys.exit(1)


def _truncate(text: str, width: int = 40) -> str:
    return text[:width] + "..." if len(text) > width else text


def _display_summary(summary: RecordSummary) -> None:
    """Display reconciliation summary in console."""
    table = Table(title="Reconciliation Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Reconciliation Id", summary.id)
    table.add_row(
        "Statement Period",
        f"{summary.statement_period_start} to {summary.statement_period_end}",
    )
    table.add_row("Total Bank Transactions", str(summary.total_bank_transactions))
    table.add_row("Total System Transactions", str(summary.total_system_transactions))
    table.add_row("Matched", str(summary.total_matched))
    table.add_row("Unmatched", str(summary.total_unmatched))
    table.add_row("Adjustments", str(summary.adjustments_count))
    table.add_row("Total Credits", f"{summary.total_bank_credits:,.2f}")
    table.add_row("Total Debits", f"{summary.total_bank_debits:,.2f}")
    table.add_row("Net Change", f"{summary.net_change:,.2f}")
    if summary.closing_balance is not None:
        table.add_row("Closing Balance", f"{summary.closing_balance:,.2f}")
    table.add_row("Match Rate", f"{summary.match_rate:.1f}%")

    console.print(table)


def _display_transactions(record) -> None:
    """Display the bank and system transactions of a record."""
    bank_table = Table(title="Bank Transactions")
    bank_table.add_column("Id")
    bank_table.add_column("Date")
    bank_table.add_column("Description")
    bank_table.add_column("Amount", justify="right")
    bank_table.add_column("Type")
    bank_table.add_column("Status")

    for txn in record.bank_transactions:
        bank_table.add_row(
            txn.id,
            txn.transaction_date.isoformat(),
            _truncate(txn.description),
            f"{txn.amount:,.2f}",
            txn.type.value,
            txn.status.value,
        )

    system_table = Table(title="System Transactions")
    system_table.add_column("Id")
    system_table.add_column("Date")
    system_table.add_column("Description")
    system_table.add_column("Amount", justify="right")
    system_table.add_column("Source")
    system_table.add_column("Status")

    for txn in record.system_transactions:
        system_table.add_row(
            txn.id,
            txn.transaction_date.isoformat(),
            _truncate(txn.description),
            f"{txn.amount:,.2f}",
            txn.source,
            txn.status.value,
        )

    console.print(bank_table)
    console.print(system_table)


if __name__ == "__main__":
    main()
