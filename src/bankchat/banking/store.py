"""Thread-safe in-memory banking ledger.

This module provides the BankingStore which holds accounts, payees and
transactions for the banking functions. All reads and writes go through a
single re-entrant lock; callers that need a read-then-write sequence (check a
balance, then deduct) hold the lock across it with ``store.transaction()``.
"""

import logging
import threading
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timedelta
from decimal import Decimal

from bankchat.banking.types import (
    Account,
    AccountType,
    Payee,
    Transaction,
    TransactionType,
)

logger = logging.getLogger(__name__)


class BankingStore:
    """In-memory ledger of accounts, payees and transactions.

    Returned objects are copies; mutate the ledger only through
    ``add_transaction`` and ``update_balance``.
    """

    def __init__(self, seed: bool = True) -> None:
        """Initialize the store.

        Args:
            seed: Populate the ledger with the demo data set
        """
        self._lock = threading.RLock()
        self._accounts: list[Account] = []
        self._payees: list[Payee] = []
        self._transactions: list[Transaction] = []
        if seed:
            self.reset()

    @contextmanager
    def transaction(self) -> Iterator["BankingStore"]:
        """Hold the ledger lock for a multi-step read/modify/write sequence."""
        with self._lock:
            yield self

    def reset(self) -> None:
        """Replace the ledger contents with the demo data set."""
        now = datetime.now()
        with self._lock:
            self._accounts = [
                Account(
                    id="acc-001",
                    name="Primary Checking",
                    type=AccountType.CHECKING,
                    balance=Decimal("2500.75"),
                    account_number="****1234",
                    created_date=now - timedelta(days=730),
                ),
                Account(
                    id="acc-002",
                    name="Emergency Savings",
                    type=AccountType.SAVINGS,
                    balance=Decimal("15000.00"),
                    account_number="****5678",
                    created_date=now - timedelta(days=730),
                ),
                Account(
                    id="acc-003",
                    name="Vacation Fund",
                    type=AccountType.SAVINGS,
                    balance=Decimal("3250.50"),
                    account_number="****9012",
                    created_date=now - timedelta(days=240),
                ),
            ]

            self._payees = [
                Payee(
                    id="payee-001",
                    name="Electric Company",
                    account_number="123456789",
                    routing_number="987654321",
                    email="billing@electricco.com",
                    phone="(555) 123-4567",
                    created_date=now - timedelta(days=540),
                ),
                Payee(
                    id="payee-002",
                    name="Internet Service Provider",
                    account_number="987654321",
                    routing_number="123456789",
                    email="bills@isp.com",
                    phone="(555) 987-6543",
                    created_date=now - timedelta(days=600),
                ),
                Payee(
                    id="payee-003",
                    name="Rent Management Company",
                    account_number="456789123",
                    routing_number="789123456",
                    email="payments@rentco.com",
                    phone="(555) 456-7890",
                    created_date=now - timedelta(days=720),
                ),
                Payee(
                    id="payee-004",
                    name="John Doe",
                    account_number="111222333",
                    routing_number="444555666",
                    email="john.doe@email.com",
                    phone="(555) 111-2222",
                    created_date=now - timedelta(days=180),
                ),
            ]

            self._transactions = []
            opening = Decimal("3000.00")
            history = [
                ("acc-001", TransactionType.DEPOSIT, "1500.00", "Salary Deposit", 30, None),
                ("acc-001", TransactionType.PAYMENT, "-850.00", "Rent Payment", 28, "payee-003"),
                ("acc-001", TransactionType.PAYMENT, "-125.50", "Electric Bill", 25, "payee-001"),
                ("acc-001", TransactionType.PAYMENT, "-75.25", "Internet Bill", 22, "payee-002"),
            ]
            balance = opening
            for index, entry in enumerate(history):
                account_id, tx_type, amount, description, days_ago, payee_id = entry
                balance += Decimal(amount)
                if index == len(history) - 1:
                    # newest checking entry carries the seeded account balance
                    balance = self._accounts[0].balance
                self._append_historical(
                    account_id, tx_type, Decimal(amount), description, balance,
                    now - timedelta(days=days_ago), payee_id,
                )
            self._append_historical(
                "acc-002", TransactionType.DEPOSIT, Decimal("500.00"),
                "Monthly Savings", Decimal("15000.00"), now - timedelta(days=30),
            )
            self._append_historical(
                "acc-003", TransactionType.DEPOSIT, Decimal("250.50"),
                "Vacation Savings", Decimal("3250.50"), now - timedelta(days=15),
            )

        logger.debug("Banking store seeded with demo data")

    def _append_historical(
        self,
        account_id: str,
        tx_type: TransactionType,
        amount: Decimal,
        description: str,
        balance_after: Decimal,
        date: datetime,
        payee_id: str | None = None,
    ) -> None:
        self._transactions.append(
            Transaction(
                id=str(uuid.uuid4()),
                account_id=account_id,
                type=tx_type,
                amount=amount,
                description=description,
                payee_id=payee_id,
                date=date,
                balance_after=balance_after,
            )
        )

    def list_accounts(self) -> list[Account]:
        """Return all active accounts."""
        with self._lock:
            return [replace(a) for a in self._accounts if a.is_active]

    def get_account(self, account_id: str) -> Account | None:
        """Return an active account by ID, or None."""
        with self._lock:
            for account in self._accounts:
                if account.id == account_id and account.is_active:
                    return replace(account)
        return None

    def list_payees(self) -> list[Payee]:
        """Return all active payees."""
        with self._lock:
            return [replace(p) for p in self._payees if p.is_active]

    def get_payee(self, payee_id: str) -> Payee | None:
        """Return an active payee by ID, or None."""
        with self._lock:
            for payee in self._payees:
                if payee.id == payee_id and payee.is_active:
                    return replace(payee)
        return None

    def list_transactions(self, account_id: str | None = None) -> list[Transaction]:
        """Return transactions, newest first.

        Args:
            account_id: Restrict to one account when given
        """
        with self._lock:
            transactions = [
                replace(t)
                for t in self._transactions
                if not account_id or t.account_id == account_id
            ]
        transactions.sort(key=lambda t: t.date or datetime.min, reverse=True)
        return transactions

    def add_transaction(self, transaction: Transaction) -> Transaction:
        """Record a transaction, assigning its ID and date.

        Returns:
            A copy of the stored transaction
        """
        with self._lock:
            stored = replace(
                transaction, id=str(uuid.uuid4()), date=datetime.now()
            )
            self._transactions.append(stored)
            logger.debug(
                f"Added {stored.type.value} transaction {stored.id} "
                f"on {stored.account_id}: {stored.amount}"
            )
            return replace(stored)

    def update_balance(self, account_id: str, new_balance: Decimal) -> None:
        """Set an account's balance. Unknown accounts are ignored."""
        with self._lock:
            for account in self._accounts:
                if account.id == account_id:
                    account.balance = new_balance
                    return
        logger.warning(f"Balance update for unknown account {account_id} ignored")
