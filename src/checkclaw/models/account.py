"""Account data model for connected bank accounts."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from checkclaw.utils.decimal_utils import safe_decimal


@dataclass
class Account:
    """A bank account reachable through a linked connection.

    Attributes:
        id: Identifier assigned by the API.
        name: Human-readable account name (e.g., "Plaid Checking").
        type: Broad account type (depository, credit, loan, ...).
        subtype: Narrow account type (checking, savings, credit card, ...).
        available: Available balance, None when the institution does not report it.
        current: Current (ledger) balance, None when unreported.
        currency: ISO currency code of the balances.
    """

    id: str
    name: str
    type: str
    subtype: str = ""
    available: Optional[Decimal] = None
    current: Optional[Decimal] = None
    currency: str = "USD"

    @property
    def display_type(self) -> str:
        """Subtype when known, falling back to the broad type."""
        return self.subtype or self.type

    def matches_type(self, wanted: str) -> bool:
        """Case-insensitive match against either type or subtype."""
        wanted = wanted.lower()
        return self.type.lower() == wanted or self.subtype.lower() == wanted

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "Account":
        """Create an Account from an API response object.

        Args:
            data: Dictionary containing account data.

        Returns:
            A new Account instance.
        """
        balance = data.get("balance") or {}
        if not isinstance(balance, dict):
            balance = {}

        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name") or data.get("id", "")),
            type=str(data.get("type") or ""),
            subtype=str(data.get("subtype") or ""),
            available=safe_decimal(balance.get("available"), default=None),
            current=safe_decimal(balance.get("current"), default=None),
            currency=str(balance.get("currency") or "USD"),
        )

    def __repr__(self) -> str:
        return f"Account(id={self.id!r}, name={self.name!r}, type={self.display_type})"
