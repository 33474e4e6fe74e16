"""
Tabular statement parser for CSV and spreadsheet exports.
Detects columns by header synonyms and maps rows to canonical transactions.
"""

from decimal import InvalidOperation
from io import BytesIO
from typing import Any, Optional
import logging

import pandas as pd

from ..models.transaction import ParsedTransaction, TransactionType
from ..config import ReconConfig
from ..utils.exceptions import RowParseError, StatementParseError
from .normalize import parse_amount, to_date, to_money

logger = logging.getLogger(__name__)

CREDIT_MARKERS = ("credit", "cr", "+")
DEBIT_MARKERS = ("debit", "dr", "-")


class TabularParser:
    """
    Parser for delimited-text and spreadsheet bank statements.

    Both formats are loaded into a DataFrame of text cells and share a single
    row-mapping algorithm.
    """

    def __init__(self, config: ReconConfig):
        """
        Initialize the parser with configuration.

        Args:
            config: Application configuration object
        """
        self.config = config
        self.synonyms = config.columns

    def read_csv(self, content: bytes) -> pd.DataFrame:
        """
        Load CSV bytes with every cell kept as text.

        Lines with more fields than the header are dropped with a warning
        instead of failing the whole file.
        """
        csv_config = self.config.input.csv
        try:
            return pd.read_csv(
                BytesIO(content),
                encoding=csv_config.get("encoding", "utf-8"),
                delimiter=csv_config.get("delimiter", ","),
                dtype=str,
                keep_default_na=False,
                skipinitialspace=True,
                engine="python",
                on_bad_lines=_skip_bad_line,
            )
        except pd.errors.EmptyDataError:
            return pd.DataFrame()
        except Exception as e:
            logger.error(f"Failed to read CSV file: {e}")
            raise StatementParseError(f"Error parsing CSV: {e}") from e

    def read_excel(self, content: bytes) -> pd.DataFrame:
        """Load the configured sheet of an XLSX/XLS workbook as text cells."""
        sheet = self.config.input.excel.get("sheet", 0)
        try:
            return pd.read_excel(BytesIO(content), sheet_name=sheet, dtype=str)
        except Exception as e:
            logger.error(f"Failed to read Excel file: {e}")
            raise StatementParseError(f"Error parsing Excel: {e}") from e

    def parse_dataframe(self, df: pd.DataFrame) -> list[ParsedTransaction]:
        """
        Map DataFrame rows to canonical transactions, dropping bad rows.

        Args:
            df: Statement rows with original headers

        Returns:
            Transactions in statement order (possibly empty)
        """
        columns = self.resolve_columns([str(c) for c in df.columns])
        missing = [f for f in ("date", "description", "amount") if columns[f] is None]
        if missing:
            logger.warning(
                f"No column found for {', '.join(missing)} in headers {list(df.columns)}; "
                f"all rows will be dropped"
            )
            return []

        logger.debug(f"Resolved statement columns: {columns}")

        transactions: list[ParsedTransaction] = []
        for idx, row in df.iterrows():
            try:
                transactions.append(self._normalize_row(row.to_dict(), columns))
            except RowParseError as e:
                logger.warning(f"Skipping row {idx}: {e}")

        return transactions

    def resolve_columns(self, headers: list[str]) -> dict[str, Optional[str]]:
        """
        Find the header used for each logical field.

        For each synonym in order, the first header containing it
        (case-insensitively) wins.

        Args:
            headers: Column names as they appear in the file

        Returns:
            Mapping of field name to header, or None where nothing matched
        """
        return {
            field_name: find_column(headers, getattr(self.synonyms, field_name))
            for field_name in ("date", "description", "amount", "type", "balance", "reference")
        }

    def _normalize_row(
        self, row: dict[str, Any], columns: dict[str, Optional[str]]
    ) -> ParsedTransaction:
        """
        Convert one row to a ParsedTransaction.

        Raises:
            RowParseError: If the date or amount cannot be extracted
        """
        date_text = _cell_text(row.get(columns["date"]))
        txn_date = to_date(date_text)
        if not txn_date:
            raise RowParseError(f"invalid date {date_text!r}")

        amount_text = _cell_text(row.get(columns["amount"]))
        amount = parse_amount(amount_text)
        if amount is None:
            raise RowParseError(f"invalid amount {amount_text!r}")

        txn_type = None
        if columns["type"]:
            txn_type = _type_from_marker(_cell_text(row.get(columns["type"])))
        if txn_type is None:
            txn_type = TransactionType.DEBIT if amount < 0 else TransactionType.CREDIT

        try:
            magnitude = to_money(abs(amount))
        except InvalidOperation as e:
            raise RowParseError(f"amount out of range {amount_text!r}") from e

        balance = None
        if columns["balance"]:
            raw_balance = parse_amount(_cell_text(row.get(columns["balance"])))
            if raw_balance is not None:
                try:
                    balance = to_money(raw_balance)
                except InvalidOperation:
                    logger.warning(f"Ignoring out-of-range balance {raw_balance}")

        reference = None
        if columns["reference"]:
            reference = _cell_text(row.get(columns["reference"])) or None

        return ParsedTransaction(
            transaction_date=txn_date,
            description=_cell_text(row.get(columns["description"])),
            amount=magnitude,
            type=txn_type,
            balance=balance,
            reference=reference,
            raw_data={str(k): _cell_text(v) for k, v in row.items()},
        )


def _skip_bad_line(fields: list[str]) -> None:
    """Drop a CSV line whose field count does not fit the header."""
    logger.warning(f"Skipping malformed CSV line with {len(fields)} fields: {fields}")
    return None


def _cell_text(value: Any) -> str:
    """Stringify a cell, treating missing values as empty."""
    if value is None:
        return ""
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    return str(value).strip()


def _type_from_marker(value: str) -> Optional[TransactionType]:
    """Read a credit/debit indicator cell; None when it says neither."""
    lowered = value.lower()
    if any(marker in lowered for marker in CREDIT_MARKERS):
        return TransactionType.CREDIT
    if any(marker in lowered for marker in DEBIT_MARKERS):
        return TransactionType.DEBIT
    return None


def find_column(headers: list[str], names: list[str]) -> Optional[str]:
    """First header containing a synonym, trying synonyms in order."""
    lowered = [(h, h.strip().lower()) for h in headers]
    for name in names:
        needle = name.lower()
        for header, key in lowered:
            if needle in key:
                return header
    return None
