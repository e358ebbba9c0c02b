"""Transaction data models for records returned by the API."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from checkclaw.utils.decimal_utils import safe_decimal

# Fallback category for spending with no category path
DEFAULT_CATEGORY = "Other"


def _category_path(value: object) -> list[str]:
    if isinstance(value, list):
        return [str(c) for c in value if c]
    if isinstance(value, str) and value:
        return [value]
    return []


@dataclass
class Transaction:
    """A posted or pending bank transaction.

    Amounts are signed from the account holder's point of view:
    negative is money out (spending), positive is money in (income).

    Attributes:
        id: Identifier assigned by the API.
        date: Posting date as YYYY-MM-DD.
        merchant: Merchant name, or the raw bank description when no merchant was matched.
        amount: Signed amount.
        category: Category path, most general first (e.g. ["Food and Drink", "Restaurants"]).
        account_id: Account the transaction belongs to.
        raw: The API object as received, kept for JSON export.
    """

    id: str
    date: str
    merchant: str
    amount: Decimal
    category: list[str] = field(default_factory=list)
    account_id: str = ""
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def is_spending(self) -> bool:
        return self.amount < 0

    @property
    def top_category(self) -> str | None:
        """First element of the category path, None when uncategorized."""
        return self.category[0] if self.category else None

    @property
    def category_display(self) -> str:
        """Full category path joined for export."""
        return " > ".join(self.category)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Transaction":
        """Create a Transaction from an API response object."""
        return cls(
            id=str(data.get("id", "")),
            date=str(data.get("date", "")),
            merchant=str(data.get("merchant") or data.get("name") or ""),
            amount=safe_decimal(data.get("amount")),  # type: ignore[arg-type]
            category=_category_path(data.get("category")),
            account_id=str(data.get("account_id") or ""),
            raw=dict(data),
        )


@dataclass
class RecurringTransaction:
    """A charge or deposit the API detected as repeating.

    Attributes:
        id: Identifier assigned by the API.
        merchant: Merchant or description.
        amount: Signed amount of a typical occurrence.
        frequency: Detected cadence (weekly, monthly, ...), empty if unknown.
        category: Category path.
        last_date: Date of the latest occurrence, empty if unknown.
    """

    id: str
    merchant: str
    amount: Decimal
    frequency: str = ""
    category: list[str] = field(default_factory=list)
    last_date: str = ""

    @property
    def top_category(self) -> str | None:
        return self.category[0] if self.category else None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RecurringTransaction":
        """Create a RecurringTransaction from an API response object."""
        return cls(
            id=str(data.get("id", "")),
            merchant=str(data.get("merchant") or data.get("name") or ""),
            amount=safe_decimal(data.get("amount")),  # type: ignore[arg-type]
            frequency=str(data.get("frequency") or ""),
            category=_category_path(data.get("category")),
            last_date=str(data.get("last_date") or data.get("lastDate") or ""),
        )


@dataclass
class TransactionPage:
    """One response of the transactions endpoint."""

    transactions: list[Transaction]
    total: int | None = None
    has_more: bool = False
