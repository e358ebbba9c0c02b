"""Transaction aggregation."""

from checkclaw.processing.summary import generate_spending_summary, split_totals

__all__ = ["generate_spending_summary", "split_totals"]
