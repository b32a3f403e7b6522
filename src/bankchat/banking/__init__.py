"""In-memory banking ledger used by the banking functions.

This package provides the thread-safe BankingStore and its account, payee
and transaction types.
"""

from bankchat.banking.store import BankingStore
from bankchat.banking.types import (
    Account,
    AccountType,
    Payee,
    Transaction,
    TransactionType,
)

__all__ = [
    "BankingStore",
    "Account",
    "AccountType",
    "Payee",
    "Transaction",
    "TransactionType",
]
