"""
Bank statement parser entry point.
Dispatches an uploaded file to the strategy for its extension.
"""

from pathlib import Path
import logging

from ..models.transaction import ParsedTransaction
from ..config import ReconConfig
from ..utils.exceptions import (
    EmptyStatementError,
    StatementParseError,
    UnsupportedFormatError,
)
from .tabular_parser import TabularParser
from .text_parser import TextParser, extract_pdf_text

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ["csv", "xlsx", "xls", "pdf"]


class StatementParser:
    """
    Parser for uploaded bank statements (CSV, XLSX/XLS, PDF).

    Every strategy yields canonical transactions; a file that yields none is
    rejected so no empty reconciliation batch is ever created.
    """

    def __init__(self, config: ReconConfig):
        """
        Initialize the parser with configuration.

        Args:
            config: Application configuration object
        """
        self.config = config
        self.tabular = TabularParser(config)
        self.text = TextParser()

    def parse_file(self, file_path: Path) -> list[ParsedTransaction]:
        """
        Parse a statement file from disk.

        Args:
            file_path: Path to the statement

        Returns:
            List of parsed transactions in statement order
        """
        try:
            content = file_path.read_bytes()
        except OSError as e:
            raise StatementParseError(f"Failed to read statement file {file_path}: {e}") from e
        return self.parse(file_path.name, content)

    def parse(self, filename: str, content: bytes) -> list[ParsedTransaction]:
        """
        Parse statement bytes, choosing the strategy from the filename.

        Args:
            filename: Original file name (only the extension is used)
            content: Raw file bytes

        Returns:
            List of parsed transactions in statement order

        Raises:
            UnsupportedFormatError: If the extension is not supported
            EmptyStatementError: If no row produced a transaction
            StatementParseError: If the file cannot be read at all
        """
        extension = detect_format(filename)
        logger.info(f"Parsing {extension.upper()} statement: {filename}")

        if extension == "csv":
            transactions = self.tabular.parse_dataframe(self.tabular.read_csv(content))
            empty_message = "No valid transactions found in CSV file"
        elif extension in ("xlsx", "xls"):
            transactions = self.tabular.parse_dataframe(self.tabular.read_excel(content))
            empty_message = "No valid transactions found in Excel file"
        else:
            transactions = self.text.parse_text(extract_pdf_text(content))
            empty_message = (
                "No valid transactions found in PDF file. Please ensure the PDF "
                "contains structured transaction data."
            )

        if not transactions:
            raise EmptyStatementError(empty_message)

        logger.info(f"Extracted {len(transactions)} transactions from {filename}")
        return transactions


def detect_format(filename: str) -> str:
    """
    Return the lower-cased extension of a supported statement file.

    Raises:
        UnsupportedFormatError: For any other extension
    """
    extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    if extension not in SUPPORTED_FORMATS:
        raise UnsupportedFormatError(extension, SUPPORTED_FORMATS)
    return extension
