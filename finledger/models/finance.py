"""
Core Ledger Models for finledger

These models define the schemas for everything the ledger stores:
linked credentials, their accounts, transactions and sync cursors.

DESIGN DECISION: Amounts are Decimal end to end. Provider amounts
arrive as floats and are converted once, at the provider boundary.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class AccountType(str, Enum):
    """
    Coarse account type reported by the provider.

    Only DEPOSITORY, INVESTMENT and CREDIT influence categorization.
    Anything the provider reports that we don't recognise becomes OTHER.
    """
    DEPOSITORY = "depository"
    CREDIT = "credit"
    INVESTMENT = "investment"
    LOAN = "loan"
    OTHER = "other"

    @classmethod
    def from_provider(cls, value: Optional[str]) -> "AccountType":
        if not value:
            return cls.OTHER
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.OTHER


class TransactionCategory(str, Enum):
    """Local meaning of a transaction, independent of the provider's sign convention."""
    INCOME = "income"
    SPENDING = "spending"
    TRANSFER = "transfer"


# =============================================================================
# LINKED INSTITUTIONS
# =============================================================================

class LinkedCredential(BaseModel):
    """
    An access token scoping one institution's accounts.

    Created once when the user completes the link flow and never
    mutated afterwards. Disconnecting the institution deletes it.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    credential_id: str = Field(
        default_factory=lambda: str(uuid4()),
        min_length=1,
        description="Local identifier of the credential"
    )
    user_id: str = Field(..., min_length=1)
    access_token: str = Field(
        ...,
        min_length=1,
        description="Provider access token, opaque to us"
    )
    item_id: Optional[str] = Field(
        default=None,
        description="Provider item identifier"
    )
    institution_name: Optional[str] = Field(default=None, max_length=200)
    created_at: datetime = Field(default_factory=utc_now)


class Account(BaseModel):
    """A single account at a linked institution."""
    model_config = ConfigDict(str_strip_whitespace=True)

    account_id: str = Field(
        default_factory=lambda: str(uuid4()),
        min_length=1,
        description="Local account identifier"
    )
    user_id: str = Field(..., min_length=1)
    credential_id: str = Field(..., min_length=1)
    provider_account_id: str = Field(
        ...,
        min_length=1,
        description="Stable account identifier at the provider"
    )
    name: str = Field(default="Account", max_length=200)
    account_type: AccountType = AccountType.OTHER
    institution_name: Optional[str] = Field(default=None, max_length=200)

    @field_validator('account_type', mode='before')
    @classmethod
    def coerce_account_type(cls, v):
        if isinstance(v, AccountType):
            return v
        return AccountType.from_provider(v)


# =============================================================================
# TRANSACTIONS
# =============================================================================

class Transaction(BaseModel):
    """
    A locally stored transaction.

    Two kinds live side by side:
    - manual rows: entered by the user, no provider identifiers
    - provider rows: written only by the sync engine, keyed by
      (credential_id, provider_transaction_id)
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    account_id: Optional[str] = None
    credential_id: Optional[str] = None
    provider_transaction_id: Optional[str] = None

    date: date
    amount: Decimal = Field(
        ...,
        description="Signed amount, stored exactly as the provider reports it"
    )
    category: TransactionCategory
    description: Optional[str] = Field(default=None, max_length=500)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode='after')
    def validate_provider_key(self) -> 'Transaction':
        """A provider row needs both halves of its key; a manual row needs neither."""
        if (self.provider_transaction_id is None) != (self.credential_id is None):
            raise ValueError(
                "provider_transaction_id and credential_id must be set together"
            )
        return self

    @property
    def is_manual(self) -> bool:
        return self.provider_transaction_id is None

    @property
    def provider_key(self) -> Optional[tuple[str, str]]:
        if self.is_manual:
            return None
        return (self.credential_id, self.provider_transaction_id)

    def same_content(self, other: "Transaction") -> bool:
        """Compare the fields a sync can overwrite."""
        return (
            self.account_id == other.account_id
            and self.date == other.date
            and self.amount == other.amount
            and self.category == other.category
            and self.description == other.description
        )


class SyncCursor(BaseModel):
    """Position of the last fully applied sync for one credential."""

    user_id: str = Field(..., min_length=1)
    credential_id: str = Field(..., min_length=1)
    cursor: str = Field(..., min_length=1)
    last_synced_at: datetime = Field(default_factory=utc_now)


class BitcoinHolding(BaseModel):
    """
    One bitcoin purchase the user recorded by hand.

    `value` is what the purchase was worth in USD on `date`, not today.
    """
    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    date: date
    amount: Decimal = Field(..., gt=0, description="Quantity in BTC")
    value: Decimal = Field(..., ge=0, description="USD value at the time of purchase")
    created_at: datetime = Field(default_factory=utc_now)
