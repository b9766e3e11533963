"""
Manual Transactions

Transactions the user enters by hand: cash purchases, accounts that
aren't linked, corrections. They carry no provider identifiers, so the
sync engine never sees, overwrites or deletes them.

Validation NEVER silently fixes input. Anything suspicious is rejected
with a message the user can act on.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional
from uuid import UUID

from finledger.audit import AuditLogger
from finledger.config import get_settings
from finledger.config.settings import AppSettings
from finledger.models.finance import Transaction, TransactionCategory
from finledger.services.storage import (
    AccountStorageInterface,
    NotFoundError,
    TransactionStorageInterface,
)


class ValidationError(Exception):
    """Manual input was rejected."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(message)


class ManualTransactionService:
    """Add, list and delete user-entered transactions."""

    def __init__(
        self,
        transaction_storage: TransactionStorageInterface,
        account_storage: Optional[AccountStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        """
        Args:
            transaction_storage: Where transactions live
            account_storage: Used to check a manual transaction's account
                belongs to the user. If None, that check is skipped.
            audit_logger: Defaults to local-only logging
            settings: Defaults to the application settings
        """
        self._transactions = transaction_storage
        self._accounts = account_storage
        self._audit_logger = audit_logger or AuditLogger()
        self._settings = settings or get_settings().app

    def _validate(self, tx_date: date, amount: Decimal, today: date) -> None:
        if amount == 0:
            raise ValidationError("amount", "Amount cannot be zero")

        if abs(amount) > self._settings.max_transaction_amount:
            raise ValidationError(
                "amount",
                f"Amount {amount} exceeds the maximum of {self._settings.max_transaction_amount}",
            )

        latest = today + timedelta(days=self._settings.future_date_tolerance_days)
        if tx_date > latest:
            raise ValidationError(
                "date",
                f"Date {tx_date.isoformat()} is too far in the future",
            )

    async def add_transaction(
        self,
        user_id: str,
        tx_date: date,
        amount: Decimal,
        category: TransactionCategory,
        description: Optional[str] = None,
        account_id: Optional[str] = None,
        today: Optional[date] = None,
    ) -> Transaction:
        """
        Record a manual transaction.

        Raises:
            ValidationError: If the input is rejected
            StorageError: If save fails
        """
        amount = Decimal(str(amount))
        self._validate(tx_date, amount, today or date.today())

        if account_id and self._accounts is not None:
            accounts = await self._accounts.list_accounts(user_id)
            if account_id not in {a.account_id for a in accounts}:
                raise ValidationError("account_id", f"Unknown account: {account_id}")

        transaction = Transaction(
            user_id=user_id,
            account_id=account_id,
            date=tx_date,
            amount=amount,
            category=TransactionCategory(category),
            description=description,
        )
        saved = await self._transactions.add_transaction(transaction)

        await self._audit_logger.log_transaction_added(
            transaction_id=saved.id,
            amount=str(saved.amount),
            category=saved.category.value,
        )
        return saved

    async def list_transactions(
        self,
        user_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        category: Optional[TransactionCategory] = None,
    ) -> list[Transaction]:
        """All of the user's transactions, manual and synced, newest first."""
        return await self._transactions.list_transactions(
            user_id,
            date_from=date_from,
            date_to=date_to,
            category=category,
        )

    async def delete_transaction(self, user_id: str, transaction_id: UUID) -> bool:
        """
        Delete a manual transaction.

        Raises:
            NotFoundError: If the user has no such transaction
            ValidationError: If the transaction came from a linked institution
        """
        transaction = await self._transactions.get_transaction(transaction_id)
        if transaction is None or transaction.user_id != user_id:
            raise NotFoundError(f"Transaction not found: {transaction_id}")

        if not transaction.is_manual:
            raise ValidationError(
                "transaction_id",
                "Synced transactions are managed by the linked institution and cannot be deleted",
            )

        deleted = await self._transactions.delete_transaction(transaction_id)
        if deleted:
            await self._audit_logger.log_transaction_deleted(transaction_id)
        return deleted
