"""
Sync Models for finledger

Two groups of models live here:
1. What the provider sends us (pages of added/modified/removed records)
2. What a sync run reports back (per-credential results, per-user report)
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from finledger.models.finance import utc_now


# =============================================================================
# PROVIDER RECORDS
# =============================================================================

class ProviderTransaction(BaseModel):
    """An added or modified transaction as reported by the provider."""
    model_config = ConfigDict(str_strip_whitespace=True)

    provider_transaction_id: str = Field(..., min_length=1)
    provider_account_id: str = Field(..., min_length=1)
    date: date
    amount: Decimal = Field(
        ...,
        description="Positive means money out of a depository account, or a charge on a credit account"
    )
    category_labels: list[str] = Field(default_factory=list)
    description: Optional[str] = None


class RemovedTransaction(BaseModel):
    """A transaction the provider no longer reports."""

    provider_transaction_id: str = Field(..., min_length=1)


class TransactionSyncPage(BaseModel):
    """One page of the provider's incremental changes."""

    added: list[ProviderTransaction] = Field(default_factory=list)
    modified: list[ProviderTransaction] = Field(default_factory=list)
    removed: list[RemovedTransaction] = Field(default_factory=list)
    next_cursor: str = Field(..., min_length=1)
    has_more: bool = False

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.modified or self.removed)


class ProviderAccount(BaseModel):
    """An account returned by the provider while linking an institution."""

    provider_account_id: str = Field(..., min_length=1)
    name: str = "Account"
    account_type: Optional[str] = None


# =============================================================================
# SYNC RESULTS
# =============================================================================

class AppliedChanges(BaseModel):
    """Row counts for one page applied to transaction storage."""

    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    deleted: int = 0


class SyncStatus(str, Enum):
    """
    Outcome of one credential's sync.

    PARTIAL means some pages were applied but the cursor was not
    advanced; the next run replays them safely.
    """
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class CredentialSyncResult(BaseModel):
    """What happened to one linked credential during a sync."""

    credential_id: str
    status: SyncStatus
    pages_applied: int = 0
    added: int = 0
    modified: int = 0
    removed: int = 0
    skipped: int = 0
    previous_cursor: Optional[str] = None
    cursor: Optional[str] = Field(
        default=None,
        description="Cursor persisted by this run, None unless the run succeeded"
    )
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    started_at: datetime = Field(default_factory=utc_now)
    finished_at: Optional[datetime] = None

    @property
    def succeeded(self) -> bool:
        return self.status == SyncStatus.SUCCESS


class SyncReport(BaseModel):
    """Per-credential outcomes of a sync for one user."""

    user_id: str
    correlation_id: UUID = Field(default_factory=uuid4)
    results: list[CredentialSyncResult] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=utc_now)
    finished_at: Optional[datetime] = None

    @property
    def succeeded(self) -> list[CredentialSyncResult]:
        return [r for r in self.results if r.status == SyncStatus.SUCCESS]

    @property
    def partial(self) -> list[CredentialSyncResult]:
        return [r for r in self.results if r.status == SyncStatus.PARTIAL]

    @property
    def failed(self) -> list[CredentialSyncResult]:
        return [r for r in self.results if r.status == SyncStatus.FAILED]

    @property
    def all_succeeded(self) -> bool:
        return all(r.succeeded for r in self.results)

    def result_for(self, credential_id: str) -> Optional[CredentialSyncResult]:
        for result in self.results:
            if result.credential_id == credential_id:
                return result
        return None
