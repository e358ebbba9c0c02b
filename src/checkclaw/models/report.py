"""Report data models for spending summaries."""

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass
class CategoryTotal:
    """Spending in one top-level category (always positive)."""

    name: str
    amount: Decimal


@dataclass
class SpendingSummary:
    """Pre-computed spending summary for a date range.

    Attributes:
        period_start: Start of the queried range (YYYY-MM-DD).
        period_end: End of the queried range (YYYY-MM-DD).
        categories: Spending per top-level category, largest first.
        total_income: Sum of all positive amounts.
        transaction_count: Number of transactions summarized.
    """

    period_start: str
    period_end: str
    categories: list[CategoryTotal] = field(default_factory=list)
    total_income: Decimal = field(default_factory=lambda: Decimal("0"))
    transaction_count: int = 0

    @property
    def total_spent(self) -> Decimal:
        """Sum of all spending categories."""
        return sum((c.amount for c in self.categories), Decimal("0"))

    @property
    def net(self) -> Decimal:
        """Total income minus total spending."""
        return self.total_income - self.total_spent

    def share(self, category: CategoryTotal) -> Decimal:
        """Fraction of total spending that went to category (0 when nothing was spent)."""
        total = self.total_spent
        if total <= 0:
            return Decimal("0")
        return category.amount / total

    @property
    def period_display(self) -> str:
        return f"{self.period_start} -> {self.period_end}"
