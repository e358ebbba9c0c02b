"""Subscription plan and invoice models."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from checkclaw.utils.decimal_utils import safe_decimal

# Limit value the API uses for "no limit"
UNLIMITED = -1


def _int(value: object, default: int = 0) -> int:
    try:
        return int(value)  # type: ignore[call-overload]
    except (TypeError, ValueError):
        return default


@dataclass
class BillingPlan:
    """The caller's current subscription.

    Attributes:
        plan: Plan name (free, pro, ...).
        price: Price per billing cycle.
        currency: ISO currency code.
        billing_cycle: "monthly", "yearly", ...
        current_period_end: End of the current billing period (YYYY-MM-DD).
        connection_limit: Maximum bank connections, -1 for unlimited.
        query_limit: Maximum API queries per month, -1 for unlimited.
        connections_used: Bank connections in use.
        queries_used: API queries used this month.
    """

    plan: str
    price: Decimal
    currency: str
    billing_cycle: str
    current_period_end: str
    connection_limit: int
    query_limit: int
    connections_used: int
    queries_used: int

    @property
    def display_name(self) -> str:
        return self.plan[:1].upper() + self.plan[1:]

    @property
    def cycle_suffix(self) -> str:
        """Short per-cycle suffix used after the price ("mo" for monthly)."""
        return "mo" if self.billing_cycle == "monthly" else self.billing_cycle

    @staticmethod
    def limit_display(limit: int) -> str:
        return "unlimited" if limit == UNLIMITED else str(limit)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BillingPlan":
        """Create a BillingPlan from the /billing/plan response."""
        limits = data.get("limits") or {}
        usage = data.get("usage") or {}
        return cls(
            plan=str(data.get("plan") or ""),
            price=safe_decimal(data.get("price")),  # type: ignore[arg-type]
            currency=str(data.get("currency") or "USD"),
            billing_cycle=str(data.get("billing_cycle") or ""),
            current_period_end=str(data.get("current_period_end") or ""),
            connection_limit=_int(limits.get("bank_connections")),
            query_limit=_int(limits.get("monthly_queries")),
            connections_used=_int(usage.get("bank_connections")),
            queries_used=_int(usage.get("monthly_queries")),
        )


@dataclass
class Invoice:
    """A past or upcoming invoice."""

    id: str
    date: str
    amount: Decimal
    status: str
    description: str = ""

    @property
    def is_paid(self) -> bool:
        return self.status == "paid"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Invoice":
        """Create an Invoice from an API response object."""
        return cls(
            id=str(data.get("id", "")),
            date=str(data.get("date") or ""),
            amount=safe_decimal(data.get("amount")),  # type: ignore[arg-type]
            status=str(data.get("status") or ""),
            description=str(data.get("description") or ""),
        )
