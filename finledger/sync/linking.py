"""
Institution Linking

Creates and revokes the credentials the sync engine works from.

Linking flow:
1. create_link_token -> handed to the provider's link widget
2. The widget returns a public token once the user signs in
3. link_institution exchanges it, fetches the accounts and saves
   credential + accounts together

Disconnecting revokes the token at the provider first, then removes
everything synced through it. Manual transactions are never touched.
"""

from typing import Optional

import structlog

from finledger.audit import AuditLogger
from finledger.models.finance import Account, LinkedCredential
from finledger.services.provider import TransactionProvider
from finledger.services.storage import (
    AccountStorageInterface,
    CursorStorageInterface,
    NotFoundError,
    TransactionStorageInterface,
)


logger = structlog.get_logger(__name__)


class AccountLinker:
    """Links and disconnects institutions for a user."""

    def __init__(
        self,
        provider: TransactionProvider,
        account_storage: AccountStorageInterface,
        cursor_storage: CursorStorageInterface,
        transaction_storage: TransactionStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._provider = provider
        self._accounts = account_storage
        self._cursors = cursor_storage
        self._transactions = transaction_storage
        self._audit_logger = audit_logger or AuditLogger()

    async def create_link_token(self, user_id: str) -> str:
        """
        Raises:
            ProviderError: If the provider refuses to issue a token
        """
        return await self._provider.create_link_token(user_id)

    async def link_institution(
        self,
        user_id: str,
        public_token: str,
        institution_name: Optional[str] = None,
    ) -> tuple[LinkedCredential, list[Account]]:
        """
        Exchange a public token and save the resulting credential and accounts.

        Raises:
            ProviderError: If the exchange or account lookup fails
            StorageError: If the credential cannot be saved
        """
        access_token, item_id = await self._provider.exchange_public_token(public_token)
        provider_accounts = await self._provider.get_accounts(access_token)

        credential = LinkedCredential(
            user_id=user_id,
            access_token=access_token,
            item_id=item_id,
            institution_name=institution_name,
        )
        accounts = [
            Account(
                user_id=user_id,
                credential_id=credential.credential_id,
                provider_account_id=pa.provider_account_id,
                name=pa.name,
                account_type=pa.account_type,
                institution_name=institution_name,
            )
            for pa in provider_accounts
        ]

        await self._accounts.save_credential(credential, accounts)

        logger.info(
            "institution_linked",
            user_id=user_id,
            credential_id=credential.credential_id,
            accounts=len(accounts),
        )
        await self._audit_logger.log_institution_linked(
            credential_id=credential.credential_id,
            institution_name=institution_name,
            account_count=len(accounts),
        )
        return credential, accounts

    async def disconnect(self, user_id: str, credential_id: str) -> int:
        """
        Revoke a credential and delete what was synced through it.

        Returns:
            Number of provider-sourced transactions deleted

        Raises:
            NotFoundError: If the user has no such credential
            ProviderError: If the provider refuses to revoke the token;
                nothing local is deleted in that case
            StorageError: If local cleanup fails
        """
        credential = await self._accounts.get_credential(credential_id)
        if credential is None or credential.user_id != user_id:
            raise NotFoundError(f"Credential not found: {credential_id}")

        await self._provider.remove_item(credential.access_token)

        # Transactions and cursor before the credential, so a failure
        # part way leaves a credential that can be disconnected again.
        deleted = await self._transactions.delete_by_credential(credential_id)
        await self._cursors.delete_cursor(user_id, credential_id)
        await self._accounts.delete_credential(credential_id)

        logger.info(
            "institution_disconnected",
            user_id=user_id,
            credential_id=credential_id,
            transactions_deleted=deleted,
        )
        await self._audit_logger.log_institution_disconnected(
            credential_id=credential_id,
            transactions_deleted=deleted,
        )
        return deleted
