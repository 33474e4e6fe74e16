"""Parsers for CSV, spreadsheet and PDF bank statements."""

from .statement_parser import StatementParser, SUPPORTED_FORMATS, detect_format
from .tabular_parser import TabularParser
from .text_parser import TextParser, extract_pdf_text
from .normalize import parse_date, parse_amount, to_date

__all__ = [
    "StatementParser",
    "SUPPORTED_FORMATS",
    "detect_format",
    "TabularParser",
    "TextParser",
    "extract_pdf_text",
    "parse_date",
    "parse_amount",
    "to_date",
]
