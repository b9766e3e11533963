"""Services package."""

from finledger.services.provider import (
    PlaidTransactionProvider,
    ProviderError,
    TransactionProvider,
)
from finledger.services.storage import (
    AccountStorageInterface,
    AuditStorageInterface,
    ConnectionError,
    CursorStorageInterface,
    DuplicateError,
    GoogleSheetsAccountStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsCursorStorage,
    GoogleSheetsHoldingStorage,
    GoogleSheetsTransactionStorage,
    HoldingStorageInterface,
    InMemoryAccountStorage,
    InMemoryAuditStorage,
    InMemoryCursorStorage,
    InMemoryHoldingStorage,
    InMemoryTransactionStorage,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)

__all__ = [
    # Provider
    "PlaidTransactionProvider",
    "ProviderError",
    "TransactionProvider",
    # Storage interfaces
    "AccountStorageInterface",
    "AuditStorageInterface",
    "CursorStorageInterface",
    "HoldingStorageInterface",
    "TransactionStorageInterface",
    # Storage exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Storage implementations
    "GoogleSheetsAccountStorage",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsCursorStorage",
    "GoogleSheetsHoldingStorage",
    "GoogleSheetsTransactionStorage",
    "InMemoryAccountStorage",
    "InMemoryAuditStorage",
    "InMemoryCursorStorage",
    "InMemoryHoldingStorage",
    "InMemoryTransactionStorage",
]
