"""Account aggregation provider package."""

from finledger.services.provider.interface import ProviderError, TransactionProvider
from finledger.services.provider.plaid_client import PlaidTransactionProvider

__all__ = [
    "PlaidTransactionProvider",
    "ProviderError",
    "TransactionProvider",
]
