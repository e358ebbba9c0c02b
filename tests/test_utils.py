"""Tests for formatting, date, prompt and browser helpers."""

import io
import webbrowser
from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest
from rich.console import Console

from checkclaw.utils.browser import no_browser, open_url
from checkclaw.utils.date_utils import days_ago, parse_date, resolve_range, today
from checkclaw.utils.decimal_utils import (
    bar_chart,
    format_currency,
    format_currency_plain,
    safe_decimal,
    truncate,
)
from checkclaw.utils.logging_config import _sanitize_context
from checkclaw.utils.prompt import confirm, select
from checkclaw.utils.sanitize import guard_text_cell


class TestCurrency:
    """Tests for currency formatting."""

    def test_signed(self) -> None:
        assert format_currency(Decimal("1234.5")) == "+$1,234.50"
        assert format_currency(Decimal("-12")) == "-$12.00"
        assert format_currency(Decimal("0")) == "$0.00"

    def test_plain_is_absolute(self) -> None:
        assert format_currency_plain(Decimal("-1234.5")) == "$1,234.50"

    def test_rounds_half_up(self) -> None:
        assert format_currency_plain(Decimal("0.125")) == "$0.13"

    def test_rounding_to_zero_has_no_sign(self) -> None:
        assert format_currency(Decimal("-0.001")) == "$0.00"

    def test_safe_decimal(self) -> None:
        assert safe_decimal(0.1) == Decimal("0.1")
        assert safe_decimal("abc") == Decimal("0")
        assert safe_decimal(None, default=None) is None
        assert safe_decimal(True) == Decimal("0")


class TestBarAndTruncate:
    """Tests for summary rendering helpers."""

    def test_bar_chart(self) -> None:
        assert bar_chart(Decimal("0.5")) == "█" * 10
        assert bar_chart(1) == "█" * 20
        assert bar_chart(0) == ""
        assert bar_chart(0.025) == "█"

    def test_truncate(self) -> None:
        assert truncate("Groceries", 20) == "Groceries"
        assert truncate("Food and Drink and More", 10) == "Food and …"


class TestDates:
    """Tests for date helpers."""

    def test_parse_date(self) -> None:
        assert parse_date("2025-02-28") == date(2025, 2, 28)

    @pytest.mark.parametrize("raw", ["2025-02-30", "02/28/2025", ""])
    def test_parse_date_rejects(self, raw: str) -> None:
        with pytest.raises(ValueError, match="Use YYYY-MM-DD format"):
            parse_date(raw)

    def test_days_ago(self) -> None:
        assert days_ago(0) == today()

    def test_resolve_range_explicit(self) -> None:
        assert resolve_range(30, date(2025, 1, 1), date(2025, 1, 31)) == ("2025-01-01", "2025-01-31")

    def test_resolve_range_default(self) -> None:
        assert resolve_range(7) == (days_ago(7), today())


class TestPrompts:
    """Tests for interactive prompts."""

    def test_confirm(self) -> None:
        console = Console(file=io.StringIO())
        with patch.object(console, "input", return_value=" YES "):
            assert confirm(console, "Proceed?")
        with patch.object(console, "input", return_value=""):
            assert not confirm(console, "Proceed?")

    def test_select(self) -> None:
        console = Console(file=io.StringIO())
        with patch.object(console, "input", return_value="2"):
            assert select(console, "Pick", [("A", "a"), ("B", "b")]) == "b"

    @pytest.mark.parametrize("answer", ["0", "3", "x"])
    def test_select_invalid(self, answer: str) -> None:
        console = Console(file=io.StringIO())
        with patch.object(console, "input", return_value=answer):
            with pytest.raises(ValueError, match="Invalid selection"):
                select(console, "Pick", [("A", "a"), ("B", "b")])


class TestBrowser:
    """Tests for the browser launcher."""

    def test_open_url(self) -> None:
        with patch("checkclaw.utils.browser.webbrowser.open", return_value=True) as mock_open:
            assert open_url("https://example.test") is True
        mock_open.assert_called_once_with("https://example.test", new=1)

    def test_open_url_failure(self) -> None:
        with patch("checkclaw.utils.browser.webbrowser.open", side_effect=webbrowser.Error("none")):
            assert open_url("https://example.test") is False

    def test_no_browser(self) -> None:
        assert no_browser("https://example.test") is False


class TestSanitizing:
    """Tests for masking and CSV safety."""

    def test_sensitive_context_masked(self) -> None:
        masked = _sanitize_context({"link_token": "link-1", "public_token": "p", "mode": "callback"})
        assert masked == {"link_token": "***", "public_token": "***", "mode": "callback"}

    @pytest.mark.parametrize("text", ["=HYPERLINK(1)", "+1", "-2+3", "@SUM(A1)", "|calc", "\tx"])
    def test_formula_text_guarded(self, text: str) -> None:
        assert guard_text_cell(text) == "'" + text

    @pytest.mark.parametrize("text", ["Coffee", "", "Food and Drink > Coffee Shop", "acc-1"])
    def test_plain_text_unchanged(self, text: str) -> None:
        assert guard_text_cell(text) == text
