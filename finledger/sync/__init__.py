"""Transaction sync package."""

from finledger.sync.engine import (
    AccountLookupError,
    SyncEngine,
    categorize_transaction,
)
from finledger.sync.linking import AccountLinker

__all__ = [
    "AccountLinker",
    "AccountLookupError",
    "SyncEngine",
    "categorize_transaction",
]
