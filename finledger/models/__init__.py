"""
Data Models Package

This package contains all Pydantic models used in finledger.
All data flowing through the system must conform to these schemas.
"""

from finledger.models.finance import (
    Account,
    AccountType,
    BitcoinHolding,
    LinkedCredential,
    SyncCursor,
    Transaction,
    TransactionCategory,
)
from finledger.models.sync import (
    AppliedChanges,
    CredentialSyncResult,
    ProviderAccount,
    ProviderTransaction,
    RemovedTransaction,
    SyncReport,
    SyncStatus,
    TransactionSyncPage,
)
from finledger.models.ledger import (
    CashFlowGranularity,
    CashFlowPeriod,
    CashFlowReport,
)
from finledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "Account",
    "AccountType",
    "BitcoinHolding",
    "LinkedCredential",
    "SyncCursor",
    "Transaction",
    "TransactionCategory",
    # Sync models
    "AppliedChanges",
    "CredentialSyncResult",
    "ProviderAccount",
    "ProviderTransaction",
    "RemovedTransaction",
    "SyncReport",
    "SyncStatus",
    "TransactionSyncPage",
    # Cash flow
    "CashFlowGranularity",
    "CashFlowPeriod",
    "CashFlowReport",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
