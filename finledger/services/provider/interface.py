"""
Abstract Transaction Provider Interface

The sync engine only ever talks to the provider through this interface.
Tests script pages with an in-memory fake; production uses Plaid.
"""

from abc import ABC, abstractmethod
from typing import Optional

from finledger.models.sync import ProviderAccount, TransactionSyncPage


class ProviderError(Exception):
    """
    The provider could not be reached or refused the request.

    Covers network failures, timeouts and 4xx/5xx responses alike;
    the sync engine treats them all the same way.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        status: Optional[int] = None,
    ):
        self.error_code = error_code
        self.status = status
        super().__init__(message)


class TransactionProvider(ABC):
    """Capabilities we need from an account aggregation provider."""

    @abstractmethod
    async def sync_transactions(
        self,
        access_token: str,
        cursor: Optional[str],
    ) -> TransactionSyncPage:
        """
        Fetch one page of changes since `cursor`.

        Args:
            access_token: Credential scoping the institution
            cursor: Position from the previous page, None for full history

        Raises:
            ProviderError: On any failure talking to the provider
        """
        pass

    @abstractmethod
    async def create_link_token(self, user_id: str) -> str:
        """Create a token to initialise the provider's account-link widget."""
        pass

    @abstractmethod
    async def exchange_public_token(self, public_token: str) -> tuple[str, Optional[str]]:
        """
        Exchange the link widget's public token for a long-lived access token.

        Returns:
            (access_token, item_id)
        """
        pass

    @abstractmethod
    async def get_accounts(self, access_token: str) -> list[ProviderAccount]:
        pass

    @abstractmethod
    async def remove_item(self, access_token: str) -> None:
        """Revoke the access token at the provider."""
        pass
