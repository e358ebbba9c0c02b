"""Spending summary generation for the export --summary view."""

from decimal import Decimal

from checkclaw.models.report import CategoryTotal, SpendingSummary
from checkclaw.models.transaction import DEFAULT_CATEGORY, Transaction
from checkclaw.utils.decimal_utils import sum_amounts


def generate_spending_summary(
    transactions: list[Transaction],
    period_start: str,
    period_end: str,
) -> SpendingSummary:
    """Group spending by top-level category.

    Negative amounts count as spending under their first category (or
    "Other"), summed as positive values. Positive amounts count as income.
    Categories are ordered by amount, largest first, ties by name.

    Args:
        transactions: Transactions in the queried range.
        period_start: Range start shown in the heading.
        period_end: Range end shown in the heading.

    Returns:
        SpendingSummary for the range.
    """
    spending: dict[str, Decimal] = {}
    total_income = Decimal("0")

    for t in transactions:
        if t.amount < 0:
            name = t.top_category or DEFAULT_CATEGORY
            spending[name] = spending.get(name, Decimal("0")) + abs(t.amount)
        else:
            total_income += t.amount

    categories = [
        CategoryTotal(name=name, amount=amount)
        for name, amount in sorted(spending.items(), key=lambda item: (-item[1], item[0]))
    ]

    return SpendingSummary(
        period_start=period_start,
        period_end=period_end,
        categories=categories,
        total_income=total_income,
        transaction_count=len(transactions),
    )


def split_totals(transactions: list[Transaction]) -> tuple[Decimal, Decimal]:
    """Return (total spent, total income) with spending kept negative."""
    spent = sum_amounts([t.amount for t in transactions if t.amount < 0])
    income = sum_amounts([t.amount for t in transactions if t.amount >= 0])
    return spent, income
