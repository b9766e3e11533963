"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the storage backend because:
1. The user can view their ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for one person's accounts)
- No transactions. A sync page is applied by reading the whole
  Transactions sheet, merging in memory and writing it back with a
  single values update, so a page lands completely or not at all.
- Limited query capabilities (we filter in Python)
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from finledger.config.settings import GoogleSheetsSettings
from finledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from finledger.models.finance import (
    Account,
    AccountType,
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
    ConnectionError,
    CursorStorageInterface,
    DuplicateError,
    HoldingStorageInterface,
    StorageError,
    TransactionStorageInterface,
)


CREDENTIAL_COLUMNS = [
    "credential_id",
    "user_id",
    "access_token",
    "item_id",
    "institution_name",
    "created_at",
]

ACCOUNT_COLUMNS = [
    "account_id",
    "user_id",
    "credential_id",
    "provider_account_id",
    "name",
    "account_type",
    "institution_name",
]

TRANSACTION_COLUMNS = [
    "id",
    "user_id",
    "account_id",
    "credential_id",
    "provider_transaction_id",
    "date",
    "amount",
    "category",
    "description",
    "created_at",
    "updated_at",
]

CURSOR_COLUMNS = [
    "user_id",
    "credential_id",
    "cursor",
    "last_synced_at",
]

HOLDING_COLUMNS = [
    "id",
    "user_id",
    "date",
    "amount_btc",
    "value_usd",
    "created_at",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_code",
    "error_message",
    "is_user_action",
]


def _cell(row: list, index: int, default: str = "") -> str:
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


def _is_blank(row: list) -> bool:
    return not row or not any(str(value).strip() for value in row)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for connecting.
    Worksheets are created with a header row on first use.
    """

    def __init__(self, settings: GoogleSheetsSettings):
        self._settings = settings
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._worksheets: dict[str, gspread.Worksheet] = {}

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get or create a worksheet with the given header row."""
        if title in self._worksheets:
            return self._worksheets[title]

        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)

        self._worksheets[title] = sheet
        return sheet

    def get_credentials_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.credentials_sheet_name, CREDENTIAL_COLUMNS)

    def get_accounts_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.accounts_sheet_name, ACCOUNT_COLUMNS)

    def get_transactions_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.transactions_sheet_name,
            TRANSACTION_COLUMNS,
            rows=5000,
        )

    def get_cursors_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.cursors_sheet_name, CURSOR_COLUMNS)

    def get_holdings_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.holdings_sheet_name, HOLDING_COLUMNS)

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000)


class GoogleSheetsAccountStorage(AccountStorageInterface):
    """Credentials and accounts, one worksheet each."""

    def __init__(self, client: GoogleSheetsClient):
        self._client = client

    def _credential_to_row(self, credential: LinkedCredential) -> list:
        return [
            credential.credential_id,
            credential.user_id,
            credential.access_token,
            credential.item_id or "",
            credential.institution_name or "",
            credential.created_at.isoformat(),
        ]

    def _row_to_credential(self, row: list) -> LinkedCredential:
        return LinkedCredential(
            credential_id=_cell(row, 0),
            user_id=_cell(row, 1),
            access_token=_cell(row, 2),
            item_id=_cell(row, 3) or None,
            institution_name=_cell(row, 4) or None,
            created_at=datetime.fromisoformat(_cell(row, 5)),
        )

    def _account_to_row(self, account: Account) -> list:
        return [
            account.account_id,
            account.user_id,
            account.credential_id,
            account.provider_account_id,
            account.name,
            account.account_type.value,
            account.institution_name or "",
        ]

    def _row_to_account(self, row: list) -> Account:
        return Account(
            account_id=_cell(row, 0),
            user_id=_cell(row, 1),
            credential_id=_cell(row, 2),
            provider_account_id=_cell(row, 3),
            name=_cell(row, 4, "Account"),
            account_type=AccountType.from_provider(_cell(row, 5)),
            institution_name=_cell(row, 6) or None,
        )

    async def list_accounts(self, user_id: str) -> list[Account]:
        try:
            sheet = self._client.get_accounts_sheet()
            all_rows = sheet.get_all_values()[1:]  # Skip header
            return [
                self._row_to_account(row)
                for row in all_rows
                if not _is_blank(row) and _cell(row, 1) == user_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to list accounts: {e}")

    async def get_credential(self, credential_id: str) -> Optional[LinkedCredential]:
        try:
            sheet = self._client.get_credentials_sheet()
            for row in sheet.get_all_values()[1:]:
                if not _is_blank(row) and _cell(row, 0) == credential_id:
                    return self._row_to_credential(row)
            return None
        except Exception as e:
            raise StorageError(f"Failed to get credential: {e}")

    async def save_credential(
        self,
        credential: LinkedCredential,
        accounts: list[Account],
    ) -> None:
        try:
            credentials_sheet = self._client.get_credentials_sheet()
            existing = {_cell(row, 0) for row in credentials_sheet.get_all_values()[1:]}
            if credential.credential_id in existing:
                raise DuplicateError(f"Credential already linked: {credential.credential_id}")

            # Credential first: a credential without accounts is never
            # synced, but an account pointing at a missing credential
            # stops every sync for the user.
            credentials_sheet.append_row(
                self._credential_to_row(credential),
                value_input_option="RAW",
            )
            if accounts:
                self._client.get_accounts_sheet().append_rows(
                    [self._account_to_row(a) for a in accounts],
                    value_input_option="RAW",
                )
        except DuplicateError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save credential: {e}")

    async def delete_credential(self, credential_id: str) -> bool:
        try:
            removed = False
            # Accounts before the credential, for the same reason as in save
            for sheet, column in (
                (self._client.get_accounts_sheet(), 2),
                (self._client.get_credentials_sheet(), 0),
            ):
                all_rows = sheet.get_all_values()
                matches = [
                    idx for idx, row in enumerate(all_rows[1:], start=2)
                    if _cell(row, column) == credential_id
                ]
                # Bottom-up so earlier indices stay valid
                for idx in reversed(matches):
                    sheet.delete_rows(idx)
                    removed = True
            return removed
        except Exception as e:
            raise StorageError(f"Failed to delete credential: {e}")


class GoogleSheetsCursorStorage(CursorStorageInterface):
    """One row per (user_id, credential_id)."""

    def __init__(self, client: GoogleSheetsClient):
        self._client = client

    def _find_row(self, all_rows: list, user_id: str, credential_id: str) -> Optional[int]:
        for idx, row in enumerate(all_rows[1:], start=2):
            if _cell(row, 0) == user_id and _cell(row, 1) == credential_id:
                return idx
        return None

    async def get_cursor(self, user_id: str, credential_id: str) -> Optional[SyncCursor]:
        try:
            all_rows = self._client.get_cursors_sheet().get_all_values()
            idx = self._find_row(all_rows, user_id, credential_id)
            if idx is None or not _cell(all_rows[idx - 1], 2):
                return None
            row = all_rows[idx - 1]
            return SyncCursor(
                user_id=user_id,
                credential_id=credential_id,
                cursor=_cell(row, 2),
                last_synced_at=datetime.fromisoformat(_cell(row, 3)),
            )
        except Exception as e:
            raise StorageError(f"Failed to read sync cursor: {e}")

    async def save_cursor(self, cursor: SyncCursor) -> None:
        row = [
            cursor.user_id,
            cursor.credential_id,
            cursor.cursor,
            cursor.last_synced_at.isoformat(),
        ]
        try:
            sheet = self._client.get_cursors_sheet()
            idx = self._find_row(sheet.get_all_values(), cursor.user_id, cursor.credential_id)
            if idx is None:
                sheet.append_row(row, value_input_option="RAW")
            else:
                sheet.update(values=[row], range_name=f"A{idx}", value_input_option="RAW")
        except Exception as e:
            raise StorageError(f"Failed to save sync cursor: {e}")

    async def delete_cursor(self, user_id: str, credential_id: str) -> bool:
        try:
            sheet = self._client.get_cursors_sheet()
            idx = self._find_row(sheet.get_all_values(), user_id, credential_id)
            if idx is None:
                return False
            sheet.delete_rows(idx)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete sync cursor: {e}")


class GoogleSheetsTransactionStorage(TransactionStorageInterface):
    """
    Google Sheets implementation of transaction storage.

    Manual and provider rows share one worksheet. Bulk changes rewrite
    the data range in one call; rows that become unused are blanked.
    """

    def __init__(self, client: GoogleSheetsClient):
        self._client = client

    def _transaction_to_row(self, tx: Transaction) -> list:
        return [
            str(tx.id),
            tx.user_id,
            tx.account_id or "",
            tx.credential_id or "",
            tx.provider_transaction_id or "",
            tx.date.isoformat(),
            str(tx.amount),
            tx.category.value,
            tx.description or "",
            tx.created_at.isoformat(),
            tx.updated_at.isoformat(),
        ]

    def _row_to_transaction(self, row: list) -> Transaction:
        return Transaction(
            id=UUID(_cell(row, 0)),
            user_id=_cell(row, 1),
            account_id=_cell(row, 2) or None,
            credential_id=_cell(row, 3) or None,
            provider_transaction_id=_cell(row, 4) or None,
            date=date.fromisoformat(_cell(row, 5)),
            amount=Decimal(_cell(row, 6)),
            category=TransactionCategory(_cell(row, 7)),
            description=_cell(row, 8) or None,
            created_at=datetime.fromisoformat(_cell(row, 9)),
            updated_at=datetime.fromisoformat(_cell(row, 10)),
        )

    def _load_all(self, sheet: gspread.Worksheet) -> tuple[list[Transaction], int]:
        """
        Parse every data row. Returns the rows and how many sheet rows they span.

        Unlike listing, a rewrite must not silently drop rows it cannot
        parse, so a malformed row is an error here.
        """
        data = sheet.get_all_values()[1:]
        rows = []
        for offset, raw in enumerate(data, start=2):
            if _is_blank(raw):
                continue
            try:
                rows.append(self._row_to_transaction(raw))
            except Exception as e:
                raise StorageError(f"Malformed transaction in row {offset}: {e}")
        return rows, len(data)

    def _rewrite(self, sheet: gspread.Worksheet, rows: list[Transaction], previous_span: int) -> None:
        values = [self._transaction_to_row(tx) for tx in rows]
        blank = [""] * len(TRANSACTION_COLUMNS)
        values.extend([blank] * max(0, previous_span - len(values)))
        if not values:
            return
        needed = len(values) + 1
        if needed > sheet.row_count:
            sheet.add_rows(needed - sheet.row_count)
        sheet.update(values=values, range_name="A2", value_input_option="RAW")

    async def apply_changes(
        self,
        credential_id: str,
        upserts: list[Transaction],
        removed_ids: list[str],
    ) -> AppliedChanges:
        try:
            sheet = self._client.get_transactions_sheet()
            rows, span = self._load_all(sheet)
            merged, changes = merge_page(rows, credential_id, upserts, removed_ids)
            if changes.inserted or changes.updated or changes.deleted:
                self._rewrite(sheet, merged, span)
            return changes
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to apply changes for credential {credential_id}: {e}")

    async def get_by_provider_id(
        self,
        credential_id: str,
        provider_transaction_id: str,
    ) -> Optional[Transaction]:
        try:
            for raw in self._client.get_transactions_sheet().get_all_values()[1:]:
                if _cell(raw, 3) == credential_id and _cell(raw, 4) == provider_transaction_id:
                    return self._row_to_transaction(raw)
            return None
        except Exception as e:
            raise StorageError(f"Failed to get transaction: {e}")

    async def add_transaction(self, transaction: Transaction) -> Transaction:
        try:
            sheet = self._client.get_transactions_sheet()
            ids = {_cell(raw, 0) for raw in sheet.get_all_values()[1:]}
            if str(transaction.id) in ids:
                raise DuplicateError(f"Transaction already exists: {transaction.id}")
            sheet.append_row(self._transaction_to_row(transaction), value_input_option="RAW")
            return transaction
        except DuplicateError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save transaction: {e}")

    async def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        try:
            for raw in self._client.get_transactions_sheet().get_all_values()[1:]:
                if _cell(raw, 0) == str(transaction_id):
                    return self._row_to_transaction(raw)
            return None
        except Exception as e:
            raise StorageError(f"Failed to get transaction: {e}")

    async def delete_transaction(self, transaction_id: UUID) -> bool:
        try:
            sheet = self._client.get_transactions_sheet()
            for idx, raw in enumerate(sheet.get_all_values()[1:], start=2):
                if _cell(raw, 0) == str(transaction_id):
                    sheet.delete_rows(idx)
                    return True
            return False
        except Exception as e:
            raise StorageError(f"Failed to delete transaction: {e}")

    async def delete_by_credential(self, credential_id: str) -> int:
        try:
            sheet = self._client.get_transactions_sheet()
            rows, span = self._load_all(sheet)
            kept = [tx for tx in rows if tx.credential_id != credential_id]
            deleted = len(rows) - len(kept)
            if deleted:
                self._rewrite(sheet, kept, span)
            return deleted
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete transactions of credential {credential_id}: {e}")

    async def list_transactions(
        self,
        user_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        category: Optional[TransactionCategory] = None,
        credential_id: Optional[str] = None,
    ) -> list[Transaction]:
        try:
            all_rows = self._client.get_transactions_sheet().get_all_values()[1:]
            found = []
            for raw in all_rows:
                if _is_blank(raw) or _cell(raw, 1) != user_id:
                    continue
                try:
                    tx = self._row_to_transaction(raw)
                except Exception:
                    continue  # Skip malformed rows

                if date_from and tx.date < date_from:
                    continue
                if date_to and tx.date > date_to:
                    continue
                if category and tx.category != category:
                    continue
                if credential_id and tx.credential_id != credential_id:
                    continue
                found.append(tx)

            found.sort(key=lambda t: t.date, reverse=True)
            return found
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}")


class GoogleSheetsHoldingStorage(HoldingStorageInterface):
    """Google Sheets implementation of bitcoin holding storage."""

    def __init__(self, client: GoogleSheetsClient):
        self._client = client

    def _holding_to_row(self, holding: BitcoinHolding) -> list:
        return [
            str(holding.id),
            holding.user_id,
            holding.date.isoformat(),
            str(holding.amount),
            str(holding.value),
            holding.created_at.isoformat(),
        ]

    def _row_to_holding(self, row: list) -> BitcoinHolding:
        return BitcoinHolding(
            id=UUID(_cell(row, 0)),
            user_id=_cell(row, 1),
            date=date.fromisoformat(_cell(row, 2)),
            amount=Decimal(_cell(row, 3)),
            value=Decimal(_cell(row, 4)),
            created_at=datetime.fromisoformat(_cell(row, 5)),
        )

    async def add_holding(self, holding: BitcoinHolding) -> BitcoinHolding:
        try:
            sheet = self._client.get_holdings_sheet()
            ids = {_cell(raw, 0) for raw in sheet.get_all_values()[1:]}
            if str(holding.id) in ids:
                raise DuplicateError(f"Holding already exists: {holding.id}")
            sheet.append_row(self._holding_to_row(holding), value_input_option="RAW")
            return holding
        except DuplicateError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save holding: {e}")

    async def list_holdings(self, user_id: str) -> list[BitcoinHolding]:
        try:
            found = []
            for raw in self._client.get_holdings_sheet().get_all_values()[1:]:
                if _is_blank(raw) or _cell(raw, 1) != user_id:
                    continue
                try:
                    found.append(self._row_to_holding(raw))
                except Exception:
                    continue  # Skip malformed rows
            found.sort(key=lambda h: h.date, reverse=True)
            return found
        except Exception as e:
            raise StorageError(f"Failed to list holdings: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: GoogleSheetsClient):
        self._client = client

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        return AuditEvent(
            event_id=UUID(_cell(row, 0)),
            timestamp=datetime.fromisoformat(_cell(row, 1)),
            event_type=AuditEventType(_cell(row, 2)),
            severity=AuditSeverity(_cell(row, 3)),
            entity_type=_cell(row, 4) or None,
            entity_id=_cell(row, 5) or None,
            correlation_id=UUID(_cell(row, 6)) if _cell(row, 6) else None,
            description=_cell(row, 7),
            details=json.loads(_cell(row, 8)) if _cell(row, 8) else {},
            error_code=_cell(row, 9) or None,
            error_message=_cell(row, 10) or None,
            is_user_action=_cell(row, 11).lower() == "true",
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    def _all_events(self) -> list[AuditEvent]:
        events = []
        for row in self._client.get_audit_sheet().get_all_values()[1:]:
            if _is_blank(row):
                continue
            try:
                events.append(self._row_to_event(row))
            except Exception:
                continue
        return events

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            events = [e for e in self._all_events() if e.correlation_id == correlation_id]
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            events = self._all_events()
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
