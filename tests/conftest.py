"""Pytest configuration and fixtures."""

from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from statement_recon.config import ReconConfig
from statement_recon.database import create_db_engine, create_session_factory, init_db
from statement_recon.database.models import ExpenseDB
from statement_recon.services.ledger import SqlExpenseLedger
from statement_recon.services.reconciliation import ReconciliationService
from statement_recon.services.storage import LocalFileStorage

ORG_ID = "org-1"
OTHER_ORG_ID = "org-2"
USER_ID = "user-1"


@pytest.fixture
def config(tmp_path):
    """Default configuration pointed at a temporary database and storage root."""
    recon_config = ReconConfig()
    recon_config.database.url = f"sqlite:///{tmp_path / 'recon.db'}"
    recon_config.storage.directory = str(tmp_path / "statements")
    return recon_config


@pytest.fixture
def session_factory(config):
    """Session factory over a freshly created SQLite database file."""
    engine = create_db_engine(config.database)
    init_db(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def ledger(session_factory):
    return SqlExpenseLedger(session_factory)


@pytest.fixture
def storage(config):
    return LocalFileStorage(Path(config.storage.directory))


@pytest.fixture
def service(config, session_factory, storage, ledger):
    return ReconciliationService(
        config=config,
        session_factory=session_factory,
        storage=storage,
        ledger=ledger,
    )


@pytest.fixture
def add_expense(session_factory):
    """Insert an expense row into the ledger table."""

    def _add(
        expense_date: date,
        amount: str,
        description=None,
        vendor_name=None,
        organization_id: str = ORG_ID,
    ) -> str:
        expense = ExpenseDB(
            organization_id=organization_id,
            expense_date=expense_date,
            description=description,
            vendor_name=vendor_name,
            total_amount=Decimal(amount),
        )
        with session_factory.begin() as session:
            session.add(expense)
            session.flush()
            return expense.id

    return _add


@pytest.fixture
def write_csv(tmp_path):
    """Write CSV text to a file under tmp_path and return its path."""

    def _write(text: str, name: str = "statement.csv") -> Path:
        path = tmp_path / name
        path.write_text(text)
        return path

    return _write
