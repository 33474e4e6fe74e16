"""
Line-oriented parser for statement text extracted from PDF files.
"""

from decimal import InvalidOperation
from io import BytesIO
import logging
import re
from typing import Optional

import pdfplumber

from ..models.transaction import ParsedTransaction, TransactionType
from ..utils.exceptions import RowParseError, StatementParseError
from .normalize import parse_amount, to_date, to_money

logger = logging.getLogger(__name__)

DATE_TOKEN = re.compile(r"(?<!\d)\d{1,2}[/-]\d{1,2}[/-]\d{2,4}(?!\d)")
NUMBER_TOKEN = re.compile(r"(?<!\w)-?\d[\d,]*(?:\.\d+)?")
DEBIT_KEYWORD = re.compile(r"\b(debit|dr)\b")
CREDIT_KEYWORD = re.compile(r"\b(credit|cr)\b")

DEFAULT_DESCRIPTION = "Transaction"


def extract_pdf_text(content: bytes) -> str:
    """
    Extract the text layer of every page of a PDF.

    Args:
        content: Raw PDF bytes

    Returns:
        Page texts joined by newlines

    Raises:
        StatementParseError: If the PDF cannot be opened
    """
    try:
        with pdfplumber.open(BytesIO(content)) as pdf:
            pages = [page.extract_text() or "" for page in pdf.pages]
    except Exception as e:
        logger.error(f"Failed to read PDF file: {e}")
        raise StatementParseError(f"Error parsing PDF: {e}") from e

    logger.debug(f"Extracted text from {len(pages)} PDF page(s)")
    return "\n".join(pages)


class TextParser:
    """
    Heuristic parser for unstructured statement text.

    A line is a transaction when it holds a date token followed by at least
    one number. The last number is the amount and the words between the date
    and that number form the description.
    """

    def parse_text(self, text: str) -> list[ParsedTransaction]:
        """
        Parse every qualifying line of the text.

        Args:
            text: Extracted statement text

        Returns:
            Transactions in line order (possibly empty)
        """
        transactions: list[ParsedTransaction] = []

        for line_no, raw_line in enumerate(text.splitlines(), start=1):
            line = raw_line.strip()
            if not line:
                continue
            try:
                txn = self._parse_line(line)
            except RowParseError as e:
                logger.warning(f"Skipping line {line_no}: {e}")
                continue
            if txn:
                transactions.append(txn)

        return transactions

    def _parse_line(self, line: str) -> Optional[ParsedTransaction]:
        """
        Map one line; None when it is not a transaction candidate.

        Raises:
            RowParseError: If a candidate line has an invalid date or amount
        """
        date_match = DATE_TOKEN.search(line)
        if not date_match:
            return None

        after_date = line[date_match.end():]
        numbers = list(NUMBER_TOKEN.finditer(after_date))
        if not numbers:
            return None

        txn_date = to_date(date_match.group(0))
        if not txn_date:
            raise RowParseError(f"invalid date {date_match.group(0)!r}")

        amount_match = numbers[-1]
        amount = parse_amount(amount_match.group(0))
        if amount is None:
            raise RowParseError(f"invalid amount {amount_match.group(0)!r}")

        description = re.sub(r"\d", "", after_date[: amount_match.start()])
        description = " ".join(description.split()).strip(" ,.-/")

        lowered = line.lower()
        if amount < 0 or DEBIT_KEYWORD.search(lowered):
            txn_type = TransactionType.DEBIT
        elif CREDIT_KEYWORD.search(lowered):
            txn_type = TransactionType.CREDIT
        else:
            txn_type = TransactionType.CREDIT

        try:
            magnitude = to_money(abs(amount))
        except InvalidOperation as e:
            raise RowParseError(f"amount out of range {amount_match.group(0)!r}") from e

        return ParsedTransaction(
            transaction_date=txn_date,
            description=description or DEFAULT_DESCRIPTION,
            amount=magnitude,
            type=txn_type,
            raw_data={"line": line},
        )
