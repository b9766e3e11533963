"""
Transaction Sync Engine

Brings the local ledger in line with the provider, one linked
credential at a time.

For each credential:
1. Load the saved cursor (none means full history)
2. Fetch a page of added / modified / removed records
3. Apply the whole page to transaction storage in one call
4. Move the in-memory cursor forward, repeat while the provider has more
5. Save the final cursor

GUARANTEES:
- The saved cursor only moves after every page up to it was applied.
  A run that dies halfway is replayed from the old cursor next time.
- Replaying is harmless: upserts are keyed by
  (credential_id, provider_transaction_id) and deleting a missing row
  is a no-op.
- One credential failing never stops the others.
"""

import asyncio
from typing import Optional
from uuid import UUID

import structlog

from finledger.audit import AuditLogger, create_correlation_id
from finledger.models.finance import (
    Account,
    AccountType,
    LinkedCredential,
    SyncCursor,
    Transaction,
    TransactionCategory,
    utc_now,
)
from finledger.models.sync import (
    CredentialSyncResult,
    SyncReport,
    SyncStatus,
    TransactionSyncPage,
)
from finledger.services.provider import TransactionProvider
from finledger.services.storage import (
    AccountStorageInterface,
    CursorStorageInterface,
    TransactionStorageInterface,
)


logger = structlog.get_logger(__name__)

TRANSFER_MARKER = "transfer"
DESCRIPTION_MAX_LENGTH = 500


class AccountLookupError(Exception):
    """The user's linked accounts or credentials could not be read."""
    pass


def categorize_transaction(
    category_labels: list[str],
    amount,
    account_type: AccountType,
) -> TransactionCategory:
    """
    Turn a provider record into income, spending or transfer.

    Rules, first match wins:
    1. Any category label containing "transfer" -> TRANSFER
    2. Depository / investment: positive -> INCOME, otherwise SPENDING
    3. Credit: positive -> SPENDING, otherwise INCOME
    4. Anything else -> SPENDING
    """
    if any(TRANSFER_MARKER in label.lower() for label in category_labels):
        return TransactionCategory.TRANSFER

    if account_type in (AccountType.DEPOSITORY, AccountType.INVESTMENT):
        return TransactionCategory.INCOME if amount > 0 else TransactionCategory.SPENDING

    if account_type == AccountType.CREDIT:
        return TransactionCategory.SPENDING if amount > 0 else TransactionCategory.INCOME

    return TransactionCategory.SPENDING


class SyncEngine:
    """
    Reconciles provider transactions into local storage.

    All collaborators are injected. The engine holds no state between
    runs; everything it needs to resume lives in cursor storage.
    """

    def __init__(
        self,
        provider: TransactionProvider,
        account_storage: AccountStorageInterface,
        cursor_storage: CursorStorageInterface,
        transaction_storage: TransactionStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        max_concurrency: int = 1,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._provider = provider
        self._accounts = account_storage
        self._cursors = cursor_storage
        self._transactions = transaction_storage
        self._audit_logger = audit_logger or AuditLogger()
        self._max_concurrency = max_concurrency

    async def _load_credentials(
        self,
        user_id: str,
    ) -> list[tuple[LinkedCredential, list[Account]]]:
        """Group the user's accounts by credential, in first-seen order."""
        try:
            accounts = await self._accounts.list_accounts(user_id)

            grouped: dict[str, list[Account]] = {}
            for account in accounts:
                grouped.setdefault(account.credential_id, []).append(account)

            credentials = []
            for credential_id, credential_accounts in grouped.items():
                credential = await self._accounts.get_credential(credential_id)
                if credential is None:
                    raise AccountLookupError(
                        f"Accounts reference unknown credential {credential_id}"
                    )
                if credential.user_id != user_id:
                    raise AccountLookupError(
                        f"Credential {credential_id} does not belong to user {user_id}"
                    )
                credentials.append((credential, credential_accounts))
            return credentials
        except AccountLookupError:
            raise
        except Exception as e:
            raise AccountLookupError(
                f"Failed to read linked accounts for user {user_id}: {e}"
            ) from e

    async def sync_user(
        self,
        user_id: str,
        correlation_id: Optional[UUID] = None,
        is_user_action: bool = False,
    ) -> SyncReport:
        """
        Sync every credential the user has linked.

        Raises:
            AccountLookupError: If the user's accounts cannot be enumerated.
                Failures of individual credentials are reported, not raised.
        """
        correlation_id = correlation_id or create_correlation_id()
        log = logger.bind(user_id=user_id, correlation_id=str(correlation_id))

        try:
            credentials = await self._load_credentials(user_id)
        except AccountLookupError as e:
            log.error("account_lookup_failed", error=str(e))
            await self._audit_logger.log_error(
                error_type="AccountLookupError",
                error_message=str(e),
                details={"user_id": user_id},
                correlation_id=correlation_id,
            )
            raise

        report = SyncReport(user_id=user_id, correlation_id=correlation_id)
        await self._audit_logger.log_sync_started(
            user_id=user_id,
            credential_count=len(credentials),
            correlation_id=correlation_id,
            is_user_action=is_user_action,
        )

        if self._max_concurrency == 1 or len(credentials) <= 1:
            results = []
            for credential, accounts in credentials:
                results.append(
                    await self.sync_credential(credential, accounts, correlation_id)
                )
        else:
            semaphore = asyncio.Semaphore(self._max_concurrency)

            async def bounded(credential: LinkedCredential, accounts: list[Account]):
                async with semaphore:
                    return await self.sync_credential(credential, accounts, correlation_id)

            results = list(await asyncio.gather(
                *(bounded(credential, accounts) for credential, accounts in credentials)
            ))

        report.results = results
        report.finished_at = utc_now()

        log.info(
            "sync_completed",
            succeeded=len(report.succeeded),
            partial=len(report.partial),
            failed=len(report.failed),
        )
        await self._audit_logger.log_sync_completed(
            user_id=user_id,
            succeeded=len(report.succeeded),
            partial=len(report.partial),
            failed=len(report.failed),
            correlation_id=correlation_id,
        )
        return report

    def _build_upserts(
        self,
        credential: LinkedCredential,
        page: TransactionSyncPage,
        accounts_by_provider_id: dict[str, Account],
    ) -> tuple[list[Transaction], int]:
        """
        Map a page's added and modified records onto local accounts.

        Returns the transactions to upsert and how many records were
        skipped because their account isn't linked locally.
        """
        upserts = []
        skipped = 0
        for record in [*page.added, *page.modified]:
            account = accounts_by_provider_id.get(record.provider_account_id)
            if account is None:
                skipped += 1
                continue

            # Sheets reads an empty cell back as None
            description = record.description or None
            if description and len(description) > DESCRIPTION_MAX_LENGTH:
                description = description[:DESCRIPTION_MAX_LENGTH]

            upserts.append(Transaction(
                user_id=credential.user_id,
                account_id=account.account_id,
                credential_id=credential.credential_id,
                provider_transaction_id=record.provider_transaction_id,
                date=record.date,
                amount=record.amount,
                category=categorize_transaction(
                    record.category_labels,
                    record.amount,
                    account.account_type,
                ),
                description=description,
            ))
        return upserts, skipped

    async def sync_credential(
        self,
        credential: LinkedCredential,
        accounts: Optional[list[Account]] = None,
        correlation_id: Optional[UUID] = None,
    ) -> CredentialSyncResult:
        """
        Sync one credential until the provider has no more changes.

        Never raises for provider or storage failures; they are
        returned as a FAILED or PARTIAL result.

        Args:
            credential: The credential to sync
            accounts: The credential's accounts; loaded from storage if omitted
            correlation_id: Ties audit events to the enclosing sync run
        """
        credential_id = credential.credential_id
        result = CredentialSyncResult(credential_id=credential_id, status=SyncStatus.FAILED)
        log = logger.bind(
            credential_id=credential_id,
            correlation_id=str(correlation_id) if correlation_id else None,
        )

        try:
            if accounts is None:
                accounts = await self._accounts.list_accounts(credential.user_id)
            accounts_by_provider_id = {
                account.provider_account_id: account
                for account in accounts
                if account.credential_id == credential_id
            }

            saved = await self._cursors.get_cursor(credential.user_id, credential_id)
            cursor = saved.cursor if saved else None
            result.previous_cursor = cursor
            await self._audit_logger.log_credential_sync_started(
                credential_id=credential_id,
                cursor=cursor,
                correlation_id=correlation_id,
            )

            has_more = True
            while has_more:
                page = await self._provider.sync_transactions(credential.access_token, cursor)
                upserts, skipped = self._build_upserts(credential, page, accounts_by_provider_id)
                changes = await self._transactions.apply_changes(
                    credential_id,
                    upserts,
                    [removed.provider_transaction_id for removed in page.removed],
                )

                # The page is in storage; only now may the cursor move
                cursor = page.next_cursor
                has_more = page.has_more

                result.pages_applied += 1
                result.added += changes.inserted
                result.modified += changes.updated
                result.removed += changes.deleted
                result.skipped += skipped

                log.debug(
                    "page_applied",
                    page=result.pages_applied,
                    inserted=changes.inserted,
                    updated=changes.updated,
                    unchanged=changes.unchanged,
                    deleted=changes.deleted,
                    skipped=skipped,
                    has_more=has_more,
                )
                await self._audit_logger.log_page_applied(
                    credential_id=credential_id,
                    page_number=result.pages_applied,
                    inserted=changes.inserted,
                    updated=changes.updated,
                    deleted=changes.deleted,
                    skipped=skipped,
                    correlation_id=correlation_id,
                )

            await self._cursors.save_cursor(SyncCursor(
                user_id=credential.user_id,
                credential_id=credential_id,
                cursor=cursor,
            ))
            result.cursor = cursor
            result.status = SyncStatus.SUCCESS
            await self._audit_logger.log_cursor_persisted(
                credential_id=credential_id,
                pages=result.pages_applied,
                correlation_id=correlation_id,
            )
        except Exception as e:
            result.status = SyncStatus.PARTIAL if result.pages_applied else SyncStatus.FAILED
            result.error_type = type(e).__name__
            result.error_message = str(e)
            log.error(
                "credential_sync_failed",
                status=result.status.value,
                error_type=result.error_type,
                error=result.error_message,
                pages_applied=result.pages_applied,
            )
            await self._audit_logger.log_credential_sync_failed(
                credential_id=credential_id,
                status=result.status.value,
                error_type=result.error_type,
                error_message=result.error_message,
                pages_applied=result.pages_applied,
                correlation_id=correlation_id,
                error_code=getattr(e, "error_code", None),
            )

        result.finished_at = utc_now()
        return result
