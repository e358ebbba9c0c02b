"""Data models for API resources: accounts, transactions, links and billing."""

from checkclaw.models.account import Account
from checkclaw.models.billing import BillingPlan, Invoice
from checkclaw.models.link import (
    CallbackResult,
    LinkCancelled,
    LinkExchanged,
    LinkItem,
    LinkOutcome,
    LinkSuccess,
    LinkToken,
)
from checkclaw.models.report import CategoryTotal, SpendingSummary
from checkclaw.models.transaction import RecurringTransaction, Transaction, TransactionPage
from checkclaw.models.user import AuthResult, User

__all__ = [
    "Account",
    "AuthResult",
    "BillingPlan",
    "CallbackResult",
    "CategoryTotal",
    "Invoice",
    "LinkCancelled",
    "LinkExchanged",
    "LinkItem",
    "LinkOutcome",
    "LinkSuccess",
    "LinkToken",
    "RecurringTransaction",
    "SpendingSummary",
    "Transaction",
    "TransactionPage",
    "User",
]
