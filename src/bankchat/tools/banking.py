"""Banking functions exposed to the model.

Each function reads or mutates the shared BankingStore carried by its
FunctionContext. Mutating functions validate everything first and hold the
store lock across the balance check and the writes, so a rejected request
never changes the ledger.
"""

import logging
from datetime import date
from decimal import Decimal

from pydantic import Field, field_validator

from bankchat.banking import AccountType, Transaction, TransactionType
from bankchat.tools.base import BankingFunction, FunctionArgs
from bankchat.tools.registry import FunctionRegistration
from bankchat.tools.types import ErrorKind, ToolFailure, ToolResult, ToolSuccess

logger = logging.getLogger(__name__)


def _money(value: Decimal) -> str:
    return f"${value:,.2f}"


def _parse_choice(value: str | None, enum_type, label: str):
    """Case-insensitively match a filter value against an enum.

    Returns:
        Tuple of (member or None, error message or None)
    """
    if not value:
        return None, None
    for member in enum_type:
        if member.value == value.strip().lower():
            return member, None
    allowed = ", ".join(m.value for m in enum_type)
    return None, f"Unknown {label} '{value}'. Expected one of: {allowed}"


class ListAccountsFunction(BankingFunction):
    """List accounts, optionally filtered by type."""

    name = "list_accounts"
    description = "List all bank accounts or filter by account type"
    error_label = "listing accounts"

    class Args(FunctionArgs):
        account_type: str | None = Field(
            default=None,
            description="Filter by account type (checking, savings)",
            json_schema_extra={"enum": ["checking", "savings"]},
        )

    def run(self, args: Args) -> ToolResult:
        account_type, error = _parse_choice(args.account_type, AccountType, "account type")
        if error:
            return ToolFailure(error, ErrorKind.ARGUMENT)

        accounts = self.store.list_accounts()
        if account_type is not None:
            accounts = [a for a in accounts if a.type == account_type]

        return ToolSuccess(
            {
                "accounts": [
                    {
                        "id": a.id,
                        "name": a.name,
                        "type": a.type,
                        "balance": a.balance,
                        "account_number": a.account_number,
                        "created_date": a.created_date.date(),
                    }
                    for a in accounts
                ],
                "total_accounts": len(accounts),
                "total_balance": sum((a.balance for a in accounts), Decimal("0")),
            }
        )


class GetAccountBalanceFunction(BankingFunction):
    """Balance of one account with recent activity, or a summary of all."""

    name = "get_account_balance"
    description = (
        "Get balance and summary information for a specific account or all accounts"
    )
    error_label = "getting account balance"

    RECENT_TRANSACTIONS = 5

    class Args(FunctionArgs):
        account_id: str | None = Field(
            default=None,
            description=(
                "Account ID to get balance for (optional - if not provided, "
                "returns all account balances)"
            ),
        )

    def run(self, args: Args) -> ToolResult:
        if args.account_id:
            account = self.store.get_account(args.account_id)
            if account is None:
                return ToolFailure("Account not found", ErrorKind.NOT_FOUND)

            recent = self.store.list_transactions(account.id)[: self.RECENT_TRANSACTIONS]
            return ToolSuccess(
                {
                    "account": {
                        "id": account.id,
                        "name": account.name,
                        "type": account.type,
                        "balance": account.balance,
                        "account_number": account.account_number,
                        "created_date": account.created_date.date(),
                    },
                    "recent_transactions": [
                        {
                            "id": t.id,
                            "type": t.type,
                            "amount": t.amount,
                            "description": t.description,
                            "date": t.date,
                            "balance_after": t.balance_after,
                        }
                        for t in recent
                    ],
                }
            )

        accounts = self.store.list_accounts()

        def total(kind: AccountType | None = None) -> Decimal:
            return sum(
                (a.balance for a in accounts if kind is None or a.type == kind),
                Decimal("0"),
            )

        return ToolSuccess(
            {
                "summary": {
                    "total_balance": total(),
                    "checking_balance": total(AccountType.CHECKING),
                    "savings_balance": total(AccountType.SAVINGS),
                    "total_accounts": len(accounts),
                },
                "accounts": [
                    {
                        "id": a.id,
                        "name": a.name,
                        "type": a.type,
                        "balance": a.balance,
                        "account_number": a.account_number,
                    }
                    for a in accounts
                ],
            }
        )


class ListTransactionsFunction(BankingFunction):
    """List transactions with optional account, type, date and count filters."""

    name = "list_transactions"
    description = (
        "List transactions for all accounts or a specific account with optional filtering"
    )
    error_label = "listing transactions"

    class Args(FunctionArgs):
        account_id: str | None = Field(
            default=None, description="Filter by specific account ID (optional)"
        )
        transaction_type: str | None = Field(
            default=None,
            description="Filter by transaction type",
            json_schema_extra={
                "enum": ["deposit", "withdrawal", "transfer", "payment"]
            },
        )
        start_date: str | None = Field(
            default=None, description="Start date for filtering (YYYY-MM-DD format)"
        )
        end_date: str | None = Field(
            default=None, description="End date for filtering (YYYY-MM-DD format)"
        )
        limit: int | None = Field(
            default=None, description="Maximum number of transactions to return"
        )

        @field_validator("start_date", "end_date")
        @classmethod
        def _check_date(cls, value: str | None) -> str | None:
            if value:
                date.fromisoformat(value[:10])
            return value

    def run(self, args: Args) -> ToolResult:
        tx_type, error = _parse_choice(
            args.transaction_type, TransactionType, "transaction type"
        )
        if error:
            return ToolFailure(error, ErrorKind.ARGUMENT)

        transactions = self.store.list_transactions(args.account_id)

        if tx_type is not None:
            transactions = [t for t in transactions if t.type == tx_type]
        if args.start_date:
            start = date.fromisoformat(args.start_date[:10])
            transactions = [t for t in transactions if t.date and t.date.date() >= start]
        if args.end_date:
            end = date.fromisoformat(args.end_date[:10])
            transactions = [t for t in transactions if t.date and t.date.date() <= end]
        if args.limit and args.limit > 0:
            transactions = transactions[: args.limit]

        accounts = {a.id: a.name for a in self.store.list_accounts()}
        payees = {p.id: p.name for p in self.store.list_payees()}

        return ToolSuccess(
            {
                "transactions": [
                    {
                        "id": t.id,
                        "account_id": t.account_id,
                        "account_name": accounts.get(t.account_id, "Unknown"),
                        "type": t.type,
                        "amount": t.amount,
                        "description": t.description,
                        "payee_name": payees.get(t.payee_id) if t.payee_id else None,
                        "to_account_name": (
                            accounts.get(t.to_account_id) if t.to_account_id else None
                        ),
                        "date": t.date,
                        "balance_after": t.balance_after,
                    }
                    for t in transactions
                ],
                "total_transactions": len(transactions),
                "filter_applied": {
                    "account_id": args.account_id,
                    "transaction_type": args.transaction_type,
                    "start_date": args.start_date,
                    "end_date": args.end_date,
                    "limit": args.limit,
                },
            }
        )


class ListPayeesFunction(BankingFunction):
    """List payees, optionally filtered by a partial name match."""

    name = "list_payees"
    description = "List all payees or filter by name"
    error_label = "listing payees"

    class Args(FunctionArgs):
        name_filter: str | None = Field(
            default=None, description="Filter payees by name (partial match)"
        )

    def run(self, args: Args) -> ToolResult:
        payees = self.store.list_payees()
        if args.name_filter:
            needle = args.name_filter.lower()
            payees = [p for p in payees if needle in p.name.lower()]

        return ToolSuccess(
            {
                "payees": [
                    {
                        "id": p.id,
                        "name": p.name,
                        "account_number": p.account_number,
                        "routing_number": p.routing_number,
                        "email": p.email,
                        "phone": p.phone,
                        "created_date": p.created_date.date(),
                    }
                    for p in payees
                ],
                "total_payees": len(payees),
                "filter_applied": args.name_filter,
            }
        )


class MakePaymentFunction(BankingFunction):
    """Pay a registered payee from one of the customer's accounts."""

    name = "make_payment"
    description = "Make a payment from a specified account to a payee"
    error_label = "making payment"

    class Args(FunctionArgs):
        from_account_id: str = Field(description="ID of the account to pay from")
        payee_id: str = Field(description="ID of the payee to pay")
        amount: Decimal = Field(description="Payment amount")
        description: str | None = Field(
            default=None, description="Payment description (optional)"
        )

    def run(self, args: Args) -> ToolResult:
        with self.store.transaction() as store:
            account = store.get_account(args.from_account_id)
            if account is None:
                return ToolFailure("Account not found", ErrorKind.NOT_FOUND)

            payee = store.get_payee(args.payee_id)
            if payee is None:
                return ToolFailure("Payee not found", ErrorKind.NOT_FOUND)

            if args.amount <= 0:
                return ToolFailure("Payment amount must be greater than zero")

            if account.balance < args.amount:
                return ToolFailure(
                    f"Insufficient funds. Available balance: {_money(account.balance)}"
                )

            previous_balance = account.balance
            new_balance = previous_balance - args.amount
            description = args.description or f"Payment to {payee.name}"

            added = store.add_transaction(
                Transaction(
                    account_id=account.id,
                    type=TransactionType.PAYMENT,
                    amount=-args.amount,
                    description=description,
                    payee_id=payee.id,
                    balance_after=new_balance,
                )
            )
            store.update_balance(account.id, new_balance)

        logger.info(
            f"Payment {added.id}: {args.amount} from {account.id} to {payee.id}"
        )
        return ToolSuccess(
            {
                "success": True,
                "transaction_id": added.id,
                "payment_details": {
                    "from_account": {
                        "id": account.id,
                        "name": account.name,
                        "account_number": account.account_number,
                    },
                    "to_payee": {
                        "id": payee.id,
                        "name": payee.name,
                        "account_number": payee.account_number,
                    },
                    "amount": args.amount,
                    "description": description,
                    "date": added.date,
                    "previous_balance": previous_balance,
                    "new_balance": new_balance,
                },
            }
        )


class TransferFundsFunction(BankingFunction):
    """Move money between two of the customer's accounts."""

    name = "transfer_funds"
    description = "Transfer money between your accounts"
    error_label = "transferring funds"

    class Args(FunctionArgs):
        from_account_id: str = Field(description="ID of the account to transfer from")
        to_account_id: str = Field(description="ID of the account to transfer to")
        amount: Decimal = Field(description="Transfer amount")
        description: str | None = Field(
            default=None, description="Transfer description (optional)"
        )

    def run(self, args: Args) -> ToolResult:
        with self.store.transaction() as store:
            source = store.get_account(args.from_account_id)
            if source is None:
                return ToolFailure("Source account not found", ErrorKind.NOT_FOUND)

            target = store.get_account(args.to_account_id)
            if target is None:
                return ToolFailure("Destination account not found", ErrorKind.NOT_FOUND)

            if source.id == target.id:
                return ToolFailure("Cannot transfer to the same account")

            if args.amount <= 0:
                return ToolFailure("Transfer amount must be greater than zero")

            if source.balance < args.amount:
                return ToolFailure(
                    "Insufficient funds in source account. "
                    f"Available balance: {_money(source.balance)}"
                )

            new_source_balance = source.balance - args.amount
            new_target_balance = target.balance + args.amount

            outgoing = store.add_transaction(
                Transaction(
                    account_id=source.id,
                    type=TransactionType.TRANSFER,
                    amount=-args.amount,
                    description=args.description or f"Transfer to {target.name}",
                    to_account_id=target.id,
                    balance_after=new_source_balance,
                )
            )
            incoming = store.add_transaction(
                Transaction(
                    account_id=target.id,
                    type=TransactionType.TRANSFER,
                    amount=args.amount,
                    description=args.description or f"Transfer from {source.name}",
                    to_account_id=source.id,
                    balance_after=new_target_balance,
                )
            )
            store.update_balance(source.id, new_source_balance)
            store.update_balance(target.id, new_target_balance)

        logger.info(f"Transfer {args.amount} from {source.id} to {target.id}")
        return ToolSuccess(
            {
                "success": True,
                "transfer_details": {
                    "from_account": {
                        "id": source.id,
                        "name": source.name,
                        "account_number": source.account_number,
                        "previous_balance": source.balance,
                        "new_balance": new_source_balance,
                        "transaction_id": outgoing.id,
                    },
                    "to_account": {
                        "id": target.id,
                        "name": target.name,
                        "account_number": target.account_number,
                        "previous_balance": target.balance,
                        "new_balance": new_target_balance,
                        "transaction_id": incoming.id,
                    },
                    "amount": args.amount,
                    "description": outgoing.description,
                    "date": outgoing.date,
                },
            }
        )


BUILTIN_FUNCTIONS: list[type[BankingFunction]] = [
    ListAccountsFunction,
    GetAccountBalanceFunction,
    ListTransactionsFunction,
    ListPayeesFunction,
    MakePaymentFunction,
    TransferFundsFunction,
]


def builtin_registrations() -> list[FunctionRegistration]:
    """Registration table of the built-in banking functions."""
    return [FunctionRegistration.for_class(cls) for cls in BUILTIN_FUNCTIONS]
