"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the production backend; the in-memory backend serves
tests and local experiments.
"""

from finledger.services.storage.interface import (
    AccountStorageInterface,
    AuditStorageInterface,
    ConnectionError,
    CursorStorageInterface,
    DuplicateError,
    HoldingStorageInterface,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)
from finledger.services.storage.memory import (
    InMemoryAccountStorage,
    InMemoryAuditStorage,
    InMemoryCursorStorage,
    InMemoryHoldingStorage,
    InMemoryTransactionStorage,
)
from finledger.services.storage.google_sheets import (
    GoogleSheetsAccountStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsCursorStorage,
    GoogleSheetsHoldingStorage,
    GoogleSheetsTransactionStorage,
)

__all__ = [
    # Interfaces
    "AccountStorageInterface",
    "AuditStorageInterface",
    "CursorStorageInterface",
    "HoldingStorageInterface",
    "TransactionStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAccountStorage",
    "InMemoryAuditStorage",
    "InMemoryCursorStorage",
    "InMemoryHoldingStorage",
    "InMemoryTransactionStorage",
    # Google Sheets implementation
    "GoogleSheetsAccountStorage",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsCursorStorage",
    "GoogleSheetsHoldingStorage",
    "GoogleSheetsTransactionStorage",
]
