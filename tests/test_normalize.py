"""Tests for statement date and amount normalization."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from statement_recon.parsers.normalize import parse_amount, parse_date, to_date, to_money


class TestParseDate:
    """Date cells in the formats banks export."""

    def test_equivalent_formats_agree(self):
        """Day-first slash, ISO and two-digit-year hyphen forms name the same day."""
        assert parse_date("07/03/2024") == "2024-03-07"
        assert parse_date("2024-03-07") == "2024-03-07"
        assert parse_date("07-03-24") == "2024-03-07"

    def test_year_first_with_slashes(self):
        assert parse_date("2024/12/31") == "2024-12-31"

    def test_month_first_when_day_cannot_be_a_month(self):
        """03/25/2024 can only be read as March 25th."""
        assert parse_date("03/25/2024") == "2024-03-25"

    def test_date_inside_longer_text(self):
        assert parse_date("Posted 15/01/2024 10:42") == "2024-01-15"

    @pytest.mark.parametrize("value", ["", "   ", "yesterday", "31/31/2024", "2024-02-30", None])
    def test_unparseable_values(self, value):
        assert parse_date(value) is None

    def test_spreadsheet_date_objects(self):
        assert to_date(datetime(2024, 5, 6, 12, 30)) == date(2024, 5, 6)
        assert to_date(date(2024, 5, 6)) == date(2024, 5, 6)

    def test_round_trip_is_stable(self):
        """A normalized date parses back to itself."""
        normalized = parse_date("09/11/2023")
        assert parse_date(normalized) == normalized


class TestParseAmount:
    """Amount cells with separators, symbols and sign conventions."""

    def test_plain_and_signed(self):
        assert parse_amount("150.00") == Decimal("150.00")
        assert parse_amount("-150.00") == Decimal("-150.00")
        assert parse_amount("+42") == Decimal("42")

    def test_thousands_separators_and_currency(self):
        assert parse_amount("$1,234.56") == Decimal("1234.56")
        assert parse_amount("€ 2 500,00".replace(",", ".")) == Decimal("2500.00")

    def test_accounting_negative(self):
        assert parse_amount("(75.25)") == Decimal("-75.25")

    def test_leading_number_is_used(self):
        assert parse_amount("150.00 CR") == Decimal("150.00")

    @pytest.mark.parametrize("value", ["", "abc", "CR", None, float("nan"), float("inf")])
    def test_rejects_non_numbers(self, value):
        assert parse_amount(value) is None

    def test_numeric_cells(self):
        assert parse_amount(12.5) == Decimal("12.5")
        assert parse_amount(7) == Decimal("7")


class TestToMoney:
    def test_rounds_half_up_to_cents(self):
        assert to_money(Decimal("2.345")) == Decimal("2.35")
        assert to_money(Decimal("2.344")) == Decimal("2.34")
        assert str(to_money(Decimal("5"))) == "5.00"
