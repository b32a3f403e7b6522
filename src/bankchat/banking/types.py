"""Data types for the in-memory banking ledger.

This module defines accounts, payees and transactions as plain dataclasses.
Monetary values are always ``Decimal``.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum


class AccountType(str, Enum):
    """Kind of bank account."""

    CHECKING = "checking"
    SAVINGS = "savings"


class TransactionType(str, Enum):
    """Kind of ledger transaction."""

    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    TRANSFER = "transfer"
    PAYMENT = "payment"


@dataclass
class Account:
    """A customer bank account."""

    id: str
    name: str
    type: AccountType
    balance: Decimal
    account_number: str
    created_date: datetime
    is_active: bool = True


@dataclass
class Payee:
    """A registered payment recipient."""

    id: str
    name: str
    account_number: str
    routing_number: str
    created_date: datetime
    email: str | None = None
    phone: str | None = None
    is_active: bool = True


@dataclass
class Transaction:
    """A single ledger entry.

    Outgoing amounts are negative. ``to_account_id`` links the two halves of
    a transfer: each half points at the other account.

    Attributes:
        id: Assigned by the store when the transaction is added
        date: Assigned by the store when the transaction is added
        balance_after: Account balance right after this entry
    """

    account_id: str
    type: TransactionType
    amount: Decimal
    description: str = ""
    balance_after: Decimal = Decimal("0")
    payee_id: str | None = None
    to_account_id: str | None = None
    id: str = ""
    date: datetime | None = None
