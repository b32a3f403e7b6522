"""Unit tests for the banking functions exposed to the model."""

import json
from decimal import Decimal

import pytest

from bankchat.banking import TransactionType


def call(executor, name, **arguments):
    return executor.execute(name, json.dumps(arguments))


class TestListAccounts:
    def test_all_accounts(self, executor):
        result = json.loads(call(executor, "list_accounts"))

        assert result["total_accounts"] == 3
        assert result["total_balance"] == pytest.approx(20751.25)

    def test_filter_by_type(self, executor):
        result = json.loads(call(executor, "list_accounts", account_type="savings"))

        assert [a["id"] for a in result["accounts"]] == ["acc-002", "acc-003"]
        assert all(a["type"] == "savings" for a in result["accounts"])

    def test_unknown_type(self, executor):
        result = call(executor, "list_accounts", account_type="brokerage")

        assert result.startswith("Unknown account type 'brokerage'")


class TestGetAccountBalance:
    def test_single_account_with_recent_transactions(self, executor):
        result = json.loads(call(executor, "get_account_balance", account_id="acc-001"))

        assert result["account"]["balance"] == 2500.75
        assert len(result["recent_transactions"]) == 4
        assert result["recent_transactions"][0]["description"] == "Internet Bill"

    def test_summary_of_all_accounts(self, executor):
        result = json.loads(call(executor, "get_account_balance"))

        assert result["summary"]["checking_balance"] == 2500.75
        assert result["summary"]["savings_balance"] == 18250.50
        assert result["summary"]["total_accounts"] == 3

    def test_unknown_account(self, executor):
        assert call(executor, "get_account_balance", account_id="acc-999") == (
            "Account not found"
        )


class TestListTransactions:
    def test_filter_by_account_and_type(self, executor):
        result = json.loads(
            call(
                executor,
                "list_transactions",
                account_id="acc-001",
                transaction_type="payment",
            )
        )

        assert result["total_transactions"] == 3
        assert {t["payee_name"] for t in result["transactions"]} == {
            "Rent Management Company",
            "Electric Company",
            "Internet Service Provider",
        }

    def test_limit(self, executor):
        result = json.loads(call(executor, "list_transactions", limit=2))

        assert result["total_transactions"] == 2

    def test_invalid_date(self, executor):
        result = call(executor, "list_transactions", start_date="yesterday")

        assert result.startswith("Invalid arguments for list transactions function:")
        assert "start_date" in result


class TestListPayees:
    def test_name_filter_is_case_insensitive(self, executor):
        result = json.loads(call(executor, "list_payees", name_filter="company"))

        assert [p["id"] for p in result["payees"]] == ["payee-001", "payee-003"]
        assert result["filter_applied"] == "company"


class TestMakePayment:
    def test_successful_payment(self, executor, store):
        """Test that a payment debits the account and records one transaction."""
        before = len(store.list_transactions("acc-001"))

        result = json.loads(
            call(
                executor,
                "make_payment",
                from_account_id="acc-001",
                payee_id="payee-001",
                amount=100.25,
            )
        )

        assert result["success"] is True
        assert result["payment_details"]["new_balance"] == 2400.50
        assert result["payment_details"]["description"] == "Payment to Electric Company"
        assert store.get_account("acc-001").balance == Decimal("2400.50")

        transactions = store.list_transactions("acc-001")
        assert len(transactions) == before + 1
        newest = transactions[0]
        assert newest.id == result["transaction_id"]
        assert newest.type == TransactionType.PAYMENT
        assert newest.amount == Decimal("-100.25")
        assert newest.payee_id == "payee-001"
        assert newest.balance_after == Decimal("2400.50")

    @pytest.mark.parametrize("amount", [0, -5])
    def test_non_positive_amount(self, executor, store, amount):
        result = call(
            executor,
            "make_payment",
            from_account_id="acc-001",
            payee_id="payee-001",
            amount=amount,
        )

        assert result == "Payment amount must be greater than zero"
        assert store.get_account("acc-001").balance == Decimal("2500.75")

    def test_insufficient_funds(self, executor, store):
        before = len(store.list_transactions())

        result = call(
            executor,
            "make_payment",
            from_account_id="acc-001",
            payee_id="payee-003",
            amount=10000,
        )

        assert result == "Insufficient funds. Available balance: $2,500.75"
        assert len(store.list_transactions()) == before

    def test_unknown_payee(self, executor):
        result = call(
            executor,
            "make_payment",
            from_account_id="acc-001",
            payee_id="payee-999",
            amount=10,
        )

        assert result == "Payee not found"


class TestTransferFunds:
    def test_successful_transfer(self, executor, store):
        """Test that a transfer moves money and records two linked transactions."""
        result = json.loads(
            call(
                executor,
                "transfer_funds",
                from_account_id="acc-002",
                to_account_id="acc-001",
                amount=500,
            )
        )

        details = result["transfer_details"]
        assert details["from_account"]["new_balance"] == 14500.00
        assert details["to_account"]["new_balance"] == 3000.75
        assert store.get_account("acc-002").balance == Decimal("14500.00")
        assert store.get_account("acc-001").balance == Decimal("3000.75")

        outgoing = store.list_transactions("acc-002")[0]
        incoming = store.list_transactions("acc-001")[0]
        assert outgoing.id == details["from_account"]["transaction_id"]
        assert incoming.id == details["to_account"]["transaction_id"]
        assert outgoing.amount == Decimal("-500")
        assert incoming.amount == Decimal("500")
        assert outgoing.to_account_id == "acc-001"
        assert incoming.to_account_id == "acc-002"
        assert outgoing.type == incoming.type == TransactionType.TRANSFER

    def test_same_account(self, executor, store):
        result = call(
            executor,
            "transfer_funds",
            from_account_id="acc-001",
            to_account_id="acc-001",
            amount=10,
        )

        assert result == "Cannot transfer to the same account"
        assert store.get_account("acc-001").balance == Decimal("2500.75")

    def test_non_positive_amount(self, executor):
        result = call(
            executor,
            "transfer_funds",
            from_account_id="acc-001",
            to_account_id="acc-002",
            amount=0,
        )

        assert result == "Transfer amount must be greater than zero"

    def test_insufficient_funds(self, executor, store):
        result = call(
            executor,
            "transfer_funds",
            from_account_id="acc-003",
            to_account_id="acc-001",
            amount=5000,
        )

        assert result == (
            "Insufficient funds in source account. Available balance: $3,250.50"
        )
        assert store.get_account("acc-003").balance == Decimal("3250.50")

    def test_unknown_destination(self, executor):
        result = call(
            executor,
            "transfer_funds",
            from_account_id="acc-001",
            to_account_id="acc-404",
            amount=1,
        )

        assert result == "Destination account not found"
