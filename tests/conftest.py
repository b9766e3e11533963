"""
Shared fixtures.

No real API calls in tests: the provider is scripted page by page and
storage is in memory, or a fake worksheet standing in for gspread.
"""

import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional, Union

import pytest

from finledger.audit import AuditLogger
from finledger.models.finance import Account, AccountType, LinkedCredential
from finledger.models.sync import (
    AppliedChanges,
    ProviderAccount,
    ProviderTransaction,
    RemovedTransaction,
    TransactionSyncPage,
)
from finledger.services.provider import ProviderError, TransactionProvider
from finledger.services.storage import (
    InMemoryAccountStorage,
    InMemoryAuditStorage,
    InMemoryCursorStorage,
    InMemoryTransactionStorage,
    StorageError,
    TransactionStorageInterface,
)
from finledger.services.storage.google_sheets import (
    ACCOUNT_COLUMNS,
    AUDIT_COLUMNS,
    CREDENTIAL_COLUMNS,
    CURSOR_COLUMNS,
    HOLDING_COLUMNS,
    TRANSACTION_COLUMNS,
)
from finledger.sync import SyncEngine


USER_ID = "user-1"


class ScriptedProvider(TransactionProvider):
    """
    Provider fake that answers from a script keyed by (access_token, cursor).

    Asking for an unscripted cursor returns an empty final page that
    keeps the cursor where it is, which is what Plaid does once a
    client has caught up. Replaying a cursor returns the same page.
    """

    def __init__(self):
        self.pages: dict[tuple[str, Optional[str]], Union[TransactionSyncPage, Exception]] = {}
        self.calls: list[tuple[str, Optional[str]]] = []
        self.accounts: dict[str, list[ProviderAccount]] = {}
        self.exchanges: dict[str, tuple[str, Optional[str]]] = {}
        self.removed_items: list[str] = []
        self.remove_error: Optional[Exception] = None

    def script(
        self,
        access_token: str,
        cursor: Optional[str],
        outcome: Union[TransactionSyncPage, Exception],
    ) -> None:
        self.pages[(access_token, cursor)] = outcome

    async def sync_transactions(self, access_token, cursor):
        self.calls.append((access_token, cursor))
        outcome = self.pages.get((access_token, cursor))
        if outcome is None:
            return TransactionSyncPage(next_cursor=cursor or "cursor-0", has_more=False)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def create_link_token(self, user_id):
        return f"link-sandbox-{user_id}"

    async def exchange_public_token(self, public_token):
        if public_token not in self.exchanges:
            raise ProviderError("INVALID_PUBLIC_TOKEN", error_code="INVALID_PUBLIC_TOKEN", status=400)
        return self.exchanges[public_token]

    async def get_accounts(self, access_token):
        return self.accounts.get(access_token, [])

    async def remove_item(self, access_token):
        if self.remove_error:
            raise self.remove_error
        self.removed_items.append(access_token)


class FlakyTransactionStorage(InMemoryTransactionStorage):
    """In-memory storage whose apply_changes fails on chosen calls."""

    def __init__(self, fail_on_calls: tuple[int, ...] = ()):
        super().__init__()
        self.fail_on_calls = set(fail_on_calls)
        self.apply_calls = 0

    async def apply_changes(self, credential_id, upserts, removed_ids) -> AppliedChanges:
        self.apply_calls += 1
        if self.apply_calls in self.fail_on_calls:
            raise StorageError("write failed")
        return await super().apply_changes(credential_id, upserts, removed_ids)


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the storage backends."""

    def __init__(self, columns, row_count=1000):
        self.data = [list(columns)]
        self.row_count = row_count
        self.update_calls = 0
        self.fail_updates = False

    def get_all_values(self):
        return [list(row) for row in self.data]

    def append_row(self, row, value_input_option=None):
        self.data.append([str(v) for v in row])

    def append_rows(self, rows, value_input_option=None):
        for row in rows:
            self.append_row(row)

    def update(self, values, range_name, value_input_option=None):
        if self.fail_updates:
            raise RuntimeError("quota exceeded")
        self.update_calls += 1
        start = int(re.match(r"A(\d+)", range_name).group(1))
        for offset, row in enumerate(values):
            idx = start - 1 + offset
            while len(self.data) <= idx:
                self.data.append([])
            self.data[idx] = [str(v) for v in row]

    def add_rows(self, count):
        self.row_count += count

    def delete_rows(self, index):
        del self.data[index - 1]


class FakeSheetsClient:

    def __init__(self):
        self.credentials = FakeWorksheet(CREDENTIAL_COLUMNS)
        self.accounts = FakeWorksheet(ACCOUNT_COLUMNS)
        self.transactions = FakeWorksheet(TRANSACTION_COLUMNS)
        self.cursors = FakeWorksheet(CURSOR_COLUMNS)
        self.holdings = FakeWorksheet(HOLDING_COLUMNS)
        self.audit = FakeWorksheet(AUDIT_COLUMNS)

    def get_credentials_sheet(self):
        return self.credentials

    def get_accounts_sheet(self):
        return self.accounts

    def get_transactions_sheet(self):
        return self.transactions

    def get_cursors_sheet(self):
        return self.cursors

    def get_holdings_sheet(self):
        return self.holdings

    def get_audit_sheet(self):
        return self.audit


def provider_tx(
    transaction_id: str,
    account_id: str,
    amount,
    tx_date: date = date(2024, 3, 15),
    labels: Optional[list[str]] = None,
    description: Optional[str] = "Coffee Shop",
) -> ProviderTransaction:
    return ProviderTransaction(
        provider_transaction_id=transaction_id,
        provider_account_id=account_id,
        date=tx_date,
        amount=Decimal(str(amount)),
        category_labels=labels or [],
        description=description,
    )


def sync_page(
    next_cursor: str,
    added=(),
    modified=(),
    removed=(),
    has_more: bool = False,
) -> TransactionSyncPage:
    return TransactionSyncPage(
        added=list(added),
        modified=list(modified),
        removed=[RemovedTransaction(provider_transaction_id=r) for r in removed],
        next_cursor=next_cursor,
        has_more=has_more,
    )


@dataclass
class Harness:
    provider: ScriptedProvider
    accounts: InMemoryAccountStorage
    cursors: InMemoryCursorStorage
    transactions: TransactionStorageInterface
    audit: InMemoryAuditStorage
    engine: SyncEngine

    async def link(
        self,
        credential_id: str,
        access_token: str,
        accounts: list[tuple[str, str, AccountType]],
        user_id: str = USER_ID,
    ) -> tuple[LinkedCredential, list[Account]]:
        """Save a credential with (account_id, provider_account_id, type) accounts."""
        credential = LinkedCredential(
            credential_id=credential_id,
            user_id=user_id,
            access_token=access_token,
            institution_name="First Platypus Bank",
        )
        saved = [
            Account(
                account_id=account_id,
                user_id=user_id,
                credential_id=credential_id,
                provider_account_id=provider_account_id,
                name=account_id,
                account_type=account_type,
            )
            for account_id, provider_account_id, account_type in accounts
        ]
        await self.accounts.save_credential(credential, saved)
        return credential, saved


def build_harness(transactions: Optional[TransactionStorageInterface] = None, **engine_kwargs) -> Harness:
    provider = ScriptedProvider()
    accounts = InMemoryAccountStorage()
    cursors = InMemoryCursorStorage()
    transactions = transactions or InMemoryTransactionStorage()
    audit = InMemoryAuditStorage()
    engine = SyncEngine(
        provider=provider,
        account_storage=accounts,
        cursor_storage=cursors,
        transaction_storage=transactions,
        audit_logger=AuditLogger(audit),
        **engine_kwargs,
    )
    return Harness(provider, accounts, cursors, transactions, audit, engine)


@pytest.fixture
def harness() -> Harness:
    return build_harness()
