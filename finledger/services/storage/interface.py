"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a relational database later
2. Use in-memory storage for testing
3. Keep the sync engine decoupled from storage implementation

Narrow interfaces rather than one: the sync engine only needs to
read accounts, read/write cursors and apply transaction changes, and
tests can fake each of them independently.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional
from uuid import UUID

from finledger.models.audit import AuditEvent
from finledger.models.finance import (
    Account,
    BitcoinHolding,
    LinkedCredential,
    SyncCursor,
    Transaction,
    TransactionCategory,
)
from finledger.models.sync import AppliedChanges


class AccountStorageInterface(ABC):
    """
    Storage for linked credentials and their accounts.

    Credentials and accounts are written together when an institution
    is linked and deleted together when it is disconnected.
    """

    @abstractmethod
    async def list_accounts(self, user_id: str) -> list[Account]:
        """
        List every account the user has linked, across all credentials.

        Raises:
            StorageError: If the accounts cannot be read
        """
        pass

    @abstractmethod
    async def get_credential(self, credential_id: str) -> Optional[LinkedCredential]:
        """
        Retrieve a credential by its local ID.

        Returns:
            The credential if found, None otherwise
        """
        pass

    @abstractmethod
    async def save_credential(
        self,
        credential: LinkedCredential,
        accounts: list[Account],
    ) -> None:
        """
        Save a newly linked credential along with its accounts.

        Raises:
            DuplicateError: If the credential or a provider account is already linked
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def delete_credential(self, credential_id: str) -> bool:
        """
        Delete a credential and all of its accounts.

        Returns:
            True if something was deleted
        """
        pass


class CursorStorageInterface(ABC):
    """Storage for the one sync cursor each credential may have."""

    @abstractmethod
    async def get_cursor(self, user_id: str, credential_id: str) -> Optional[SyncCursor]:
        """
        Get the saved cursor, or None if the credential was never synced.
        """
        pass

    @abstractmethod
    async def save_cursor(self, cursor: SyncCursor) -> None:
        """
        Insert or replace the cursor for (cursor.user_id, cursor.credential_id).

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def delete_cursor(self, user_id: str, credential_id: str) -> bool:
        pass


class TransactionStorageInterface(ABC):
    """
    Storage for manual and provider-sourced transactions.

    Provider rows are keyed by (credential_id, provider_transaction_id).
    Two credentials may report the same provider_transaction_id; the
    rows must stay independent.
    """

    @abstractmethod
    async def apply_changes(
        self,
        credential_id: str,
        upserts: list[Transaction],
        removed_ids: list[str],
    ) -> AppliedChanges:
        """
        Apply one page of provider changes for a credential, all or nothing.

        Each upsert is inserted if its provider key is absent and
        otherwise overwrites every synced field of the existing row,
        keeping the existing row's id and created_at. Each removed id
        deletes the matching row of this credential if there is one.

        Args:
            credential_id: Scope of this page
            upserts: Provider transactions, all with this credential_id
            removed_ids: provider_transaction_ids to delete

        Returns:
            Counts of inserted, updated, unchanged and deleted rows

        Raises:
            StorageError: If any change fails; no change is applied
        """
        pass

    @abstractmethod
    async def get_by_provider_id(
        self,
        credential_id: str,
        provider_transaction_id: str,
    ) -> Optional[Transaction]:
        pass

    @abstractmethod
    async def add_transaction(self, transaction: Transaction) -> Transaction:
        """
        Insert a single transaction.

        Raises:
            DuplicateError: If a transaction with the same id exists
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: UUID) -> bool:
        pass

    @abstractmethod
    async def delete_by_credential(self, credential_id: str) -> int:
        """
        Delete every provider row of a credential.

        Returns:
            Number of rows deleted
        """
        pass

    @abstractmethod
    async def list_transactions(
        self,
        user_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        category: Optional[TransactionCategory] = None,
        credential_id: Optional[str] = None,
    ) -> list[Transaction]:
        """
        List transactions with optional filters, newest first.
        """
        pass


class HoldingStorageInterface(ABC):
    """Storage for bitcoin holdings. Holdings are only ever added."""

    @abstractmethod
    async def add_holding(self, holding: BitcoinHolding) -> BitcoinHolding:
        """
        Insert a single holding.

        Raises:
            DuplicateError: If a holding with the same id exists
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def list_holdings(self, user_id: str) -> list[BitcoinHolding]:
        """
        List the user's holdings, newest purchase first.
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one sync run).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events, newest first.
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
