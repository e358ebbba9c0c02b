"""Rich terminal rendering for API resources."""

from decimal import Decimal
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from checkclaw.config import OutputConfig
from checkclaw.models.account import Account
from checkclaw.models.billing import BillingPlan, Invoice
from checkclaw.models.link import LinkItem
from checkclaw.models.report import SpendingSummary
from checkclaw.models.transaction import RecurringTransaction, Transaction
from checkclaw.processing.summary import split_totals
from checkclaw.utils.decimal_utils import (
    bar_chart,
    format_currency,
    format_currency_plain,
    truncate,
)

MISSING = "-"
SUMMARY_NAME_WIDTH = 20
SUMMARY_AMOUNT_WIDTH = 10
SUMMARY_BAR_WIDTH = 20


class TableRenderer:
    """Builds rich tables and text blocks for each command's output.

    Table builders return the Table so callers decide where it is printed;
    the print_* helpers write straight to the console.
    """

    def __init__(self, console: Console, output_config: Optional[OutputConfig] = None):
        self.console = console
        self.output_config = output_config or OutputConfig()

    def _plain(self, amount: Decimal) -> str:
        return format_currency_plain(
            amount, self.output_config.currency_symbol, self.output_config.decimal_places
        )

    def _signed(self, amount: Decimal) -> str:
        text = format_currency(
            amount, self.output_config.currency_symbol, self.output_config.decimal_places
        )
        color = "red" if amount < 0 else "green"
        return f"[{color}]{text}[/{color}]"

    # Accounts

    def accounts_table(self, accounts: list[Account]) -> Table:
        table = Table(show_header=True, header_style="bold")
        table.add_column("Account")
        table.add_column("Type")
        table.add_column("Available", justify="right")
        table.add_column("Current", justify="right")

        for account in accounts:
            table.add_row(
                escape(account.name),
                escape(account.display_type),
                self._plain(account.available) if account.available is not None else MISSING,
                self._plain(account.current) if account.current is not None else MISSING,
            )
        return table

    # Transactions

    def transactions_table(self, transactions: list[Transaction]) -> Table:
        table = Table(show_header=True, header_style="bold")
        table.add_column("Date")
        table.add_column("Merchant")
        table.add_column("Amount", justify="right")
        table.add_column("Category")

        for t in transactions:
            table.add_row(
                t.date,
                escape(t.merchant or MISSING),
                self._signed(t.amount),
                escape(t.top_category or MISSING),
            )
        return table

    def print_transactions(self, transactions: list[Transaction], has_more: bool = False) -> None:
        """Print the transactions table with its totals footer."""
        self.console.print(self.transactions_table(transactions))

        spent, income = split_totals(transactions)
        self.console.print(
            f" {len(transactions)} transactions"
            f" | Total spent: {self._signed(spent)}"
            f" | Total income: {self._signed(income)}"
        )
        if has_more:
            self.console.print("\n[dim]More results available. Use --limit to see more.[/dim]")

    def recurring_table(self, recurring: list[RecurringTransaction]) -> Table:
        table = Table(show_header=True, header_style="bold")
        table.add_column("Merchant")
        table.add_column("Amount", justify="right")
        table.add_column("Frequency")
        table.add_column("Category")
        table.add_column("Last Date")

        for r in recurring:
            table.add_row(
                escape(r.merchant or MISSING),
                self._signed(r.amount),
                escape(r.frequency or MISSING),
                escape(r.top_category or MISSING),
                r.last_date or MISSING,
            )
        return table

    # Links

    def link_items_table(self, items: list[LinkItem]) -> Table:
        table = Table(show_header=True, header_style="bold")
        table.add_column("Institution")
        table.add_column("Accounts", justify="right")
        table.add_column("Status")
        table.add_column("Connected")

        for item in items:
            status_style = "green" if item.status == "active" else "yellow"
            table.add_row(
                escape(item.institution),
                str(item.accounts),
                f"[{status_style}]{escape(item.status)}[/{status_style}]",
                item.created_at[:10] or MISSING,
            )
        return table

    # Billing

    def print_billing_plan(self, plan: BillingPlan) -> None:
        price = self._plain(plan.price)
        self.console.print(
            f"\n[bold]Plan:[/bold] {escape(plan.display_name)} ({price}/{escape(plan.cycle_suffix)})"
        )
        self.console.print(f"[bold]Period:[/bold] ... -> {plan.current_period_end or MISSING}")

        self.console.print("\n[bold]Usage:[/bold]")
        self.console.print(
            f"  Bank connections   {plan.connections_used} / "
            f"{plan.limit_display(plan.connection_limit)}"
        )
        self.console.print(
            f"  API queries        {plan.queries_used} / {plan.limit_display(plan.query_limit)}"
        )
        if plan.current_period_end:
            self.console.print(
                f"\n[dim]Next invoice: {price} on {plan.current_period_end}[/dim]"
            )

    def invoices_table(self, invoices: list[Invoice]) -> Table:
        table = Table(show_header=True, header_style="bold")
        table.add_column("Date")
        table.add_column("Description")
        table.add_column("Amount", justify="right")
        table.add_column("Status")

        for invoice in invoices:
            status_style = "green" if invoice.is_paid else "yellow"
            table.add_row(
                invoice.date,
                escape(invoice.description or MISSING),
                self._plain(invoice.amount),
                f"[{status_style}]{escape(invoice.status)}[/{status_style}]",
            )
        return table

    # Spending summary

    def print_summary(self, summary: SpendingSummary) -> None:
        """Print per-category spending bars and the period totals."""
        self.console.print(f"\n[bold]Spending Summary ({summary.period_display})[/bold]\n")

        for category in summary.categories:
            share = summary.share(category)
            name = truncate(category.name, SUMMARY_NAME_WIDTH).ljust(SUMMARY_NAME_WIDTH)
            amount = self._plain(category.amount).rjust(SUMMARY_AMOUNT_WIDTH)
            bar = bar_chart(share, SUMMARY_BAR_WIDTH).ljust(SUMMARY_BAR_WIDTH)
            percent = f"{share * 100:.0f}%"
            self.console.print(
                f"  {escape(name)} {amount}  [cyan]{bar}[/cyan] {percent}",
                highlight=False,
            )

        self.console.print()
        self.console.print(f"  [bold]Total Spending:[/bold] {self._plain(summary.total_spent)}")
        self.console.print(f"  [bold]Total Income:[/bold]   {self._plain(summary.total_income)}")
        self.console.print(f"  [bold]Net:[/bold]            {self._signed(summary.net)}")
