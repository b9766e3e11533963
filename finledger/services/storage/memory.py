"""
In-Memory Storage Implementation

Implements every storage interface on plain dicts and lists. Used by
the test suite and for trying the sync engine without a spreadsheet.

Each page is merged into a copy of the transaction list and swapped in
only once the merge succeeded, so a failing page leaves nothing behind.
"""

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
from finledger.services.storage.changes import merge_page
from finledger.services.storage.interface import (
    AccountStorageInterface,
    AuditStorageInterface,
    CursorStorageInterface,
    DuplicateError,
    HoldingStorageInterface,
    TransactionStorageInterface,
)


class InMemoryAccountStorage(AccountStorageInterface):

    def __init__(self):
        self.credentials: dict[str, LinkedCredential] = {}
        self.accounts: dict[str, Account] = {}

    async def list_accounts(self, user_id: str) -> list[Account]:
        return [a for a in self.accounts.values() if a.user_id == user_id]

    async def get_credential(self, credential_id: str) -> Optional[LinkedCredential]:
        return self.credentials.get(credential_id)

    async def save_credential(
        self,
        credential: LinkedCredential,
        accounts: list[Account],
    ) -> None:
        if credential.credential_id in self.credentials:
            raise DuplicateError(f"Credential already linked: {credential.credential_id}")
        linked = {
            (a.credential_id, a.provider_account_id) for a in self.accounts.values()
        }
        for account in accounts:
            if (account.credential_id, account.provider_account_id) in linked:
                raise DuplicateError(
                    f"Account already linked: {account.provider_account_id}"
                )
        self.credentials[credential.credential_id] = credential
        for account in accounts:
            self.accounts[account.account_id] = account

    async def delete_credential(self, credential_id: str) -> bool:
        removed = self.credentials.pop(credential_id, None) is not None
        for account_id in [
            a.account_id for a in self.accounts.values() if a.credential_id == credential_id
        ]:
            del self.accounts[account_id]
            removed = True
        return removed


class InMemoryCursorStorage(CursorStorageInterface):

    def __init__(self):
        self.cursors: dict[tuple[str, str], SyncCursor] = {}

    async def get_cursor(self, user_id: str, credential_id: str) -> Optional[SyncCursor]:
        return self.cursors.get((user_id, credential_id))

    async def save_cursor(self, cursor: SyncCursor) -> None:
        self.cursors[(cursor.user_id, cursor.credential_id)] = cursor

    async def delete_cursor(self, user_id: str, credential_id: str) -> bool:
        return self.cursors.pop((user_id, credential_id), None) is not None


class InMemoryTransactionStorage(TransactionStorageInterface):

    def __init__(self):
        self.rows: list[Transaction] = []

    async def apply_changes(
        self,
        credential_id: str,
        upserts: list[Transaction],
        removed_ids: list[str],
    ) -> AppliedChanges:
        merged, changes = merge_page(self.rows, credential_id, upserts, removed_ids)
        self.rows = merged
        return changes

    async def get_by_provider_id(
        self,
        credential_id: str,
        provider_transaction_id: str,
    ) -> Optional[Transaction]:
        for row in self.rows:
            if row.provider_key == (credential_id, provider_transaction_id):
                return row
        return None

    async def add_transaction(self, transaction: Transaction) -> Transaction:
        if any(row.id == transaction.id for row in self.rows):
            raise DuplicateError(f"Transaction already exists: {transaction.id}")
        self.rows.append(transaction)
        return transaction

    async def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        for row in self.rows:
            if row.id == transaction_id:
                return row
        return None

    async def delete_transaction(self, transaction_id: UUID) -> bool:
        before = len(self.rows)
        self.rows = [row for row in self.rows if row.id != transaction_id]
        return len(self.rows) < before

    async def delete_by_credential(self, credential_id: str) -> int:
        before = len(self.rows)
        self.rows = [row for row in self.rows if row.credential_id != credential_id]
        return before - len(self.rows)

    async def list_transactions(
        self,
        user_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        category: Optional[TransactionCategory] = None,
        credential_id: Optional[str] = None,
    ) -> list[Transaction]:
        found = [
            row for row in self.rows
            if row.user_id == user_id
            and (date_from is None or row.date >= date_from)
            and (date_to is None or row.date <= date_to)
            and (category is None or row.category == category)
            and (credential_id is None or row.credential_id == credential_id)
        ]
        found.sort(key=lambda t: t.date, reverse=True)
        return found


class InMemoryHoldingStorage(HoldingStorageInterface):

    def __init__(self):
        self.rows: list[BitcoinHolding] = []

    async def add_holding(self, holding: BitcoinHolding) -> BitcoinHolding:
        if any(row.id == holding.id for row in self.rows):
            raise DuplicateError(f"Holding already exists: {holding.id}")
        self.rows.append(holding)
        return holding

    async def list_holdings(self, user_id: str) -> list[BitcoinHolding]:
        found = [row for row in self.rows if row.user_id == user_id]
        found.sort(key=lambda h: h.date, reverse=True)
        return found


class InMemoryAuditStorage(AuditStorageInterface):

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        events = sorted(self.events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
