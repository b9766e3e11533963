"""
Main Orchestrator for finledger

This module ties together all the components and defines how a sync
gets started:
1. Manual: an authenticated user asks for a sync of their own accounts
2. Scheduled: a scheduler presents the shared sync key and the
   configured single user is synced

DESIGN DECISION: This is the only place that reads global settings to
build clients. Everything below it receives its collaborators
explicitly, which keeps the engine testable with in-memory fakes.
"""

import hmac
from dataclasses import dataclass
from typing import Optional

from finledger.audit import AuditLogger
from finledger.config import Settings, get_settings
from finledger.config.settings import AppSettings
from finledger.ledger import (
    BitcoinHoldingService,
    CashFlowCalculator,
    ManualTransactionService,
)
from finledger.models.sync import SyncReport
from finledger.services.provider import PlaidTransactionProvider
from finledger.services.storage import (
    GoogleSheetsAccountStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsCursorStorage,
    GoogleSheetsHoldingStorage,
    GoogleSheetsTransactionStorage,
)
from finledger.sync import AccountLinker, SyncEngine


class TriggerAuthError(Exception):
    """A scheduled sync was requested without a valid key."""
    pass


class SyncTrigger:
    """
    Entry points that start a sync.

    Both paths end in SyncEngine.sync_user; they differ only in how the
    user is identified.
    """

    def __init__(
        self,
        engine: SyncEngine,
        settings: AppSettings,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._engine = engine
        self._settings = settings
        self._audit_logger = audit_logger or AuditLogger()

    async def run_manual(self, user_id: str) -> SyncReport:
        """
        Sync on behalf of an already authenticated user.

        Raises:
            AccountLookupError: If the user's accounts cannot be read
        """
        return await self._engine.sync_user(user_id, is_user_action=True)

    async def run_scheduled(self, key: Optional[str]) -> SyncReport:
        """
        Sync the configured single user if the key matches.

        Raises:
            TriggerAuthError: If the key is wrong or the trigger isn't configured
            AccountLookupError: If the user's accounts cannot be read
        """
        expected = self._settings.sync_key
        if not expected:
            await self._audit_logger.log_trigger_rejected("sync key not configured")
            raise TriggerAuthError("Scheduled sync is not configured")

        if not key or not hmac.compare_digest(key.encode(), expected.encode()):
            await self._audit_logger.log_trigger_rejected("invalid sync key")
            raise TriggerAuthError("Invalid sync key")

        user_id = self._settings.single_user_id
        if not user_id:
            await self._audit_logger.log_trigger_rejected("single user not configured")
            raise TriggerAuthError("No user configured for scheduled sync")

        return await self._engine.sync_user(user_id)


@dataclass
class AppComponents:
    """Everything the outer surfaces need, wired to one set of backends."""
    sync_engine: SyncEngine
    sync_trigger: SyncTrigger
    account_linker: AccountLinker
    manual_transactions: ManualTransactionService
    bitcoin_holdings: BitcoinHoldingService
    cash_flow: CashFlowCalculator
    audit_logger: AuditLogger
    sheets_client: GoogleSheetsClient


def create_app_components(settings: Optional[Settings] = None) -> AppComponents:
    """
    Factory function to create all application components.

    Uses Plaid as the provider and Google Sheets as storage.

    Raises:
        pydantic.ValidationError: If Plaid or Google Sheets settings are missing
    """
    settings = settings or get_settings()
    app_settings = settings.app

    sheets_client = GoogleSheetsClient(settings.google_sheets)
    account_storage = GoogleSheetsAccountStorage(sheets_client)
    cursor_storage = GoogleSheetsCursorStorage(sheets_client)
    transaction_storage = GoogleSheetsTransactionStorage(sheets_client)
    audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))

    provider = PlaidTransactionProvider(settings.plaid)

    engine = SyncEngine(
        provider=provider,
        account_storage=account_storage,
        cursor_storage=cursor_storage,
        transaction_storage=transaction_storage,
        audit_logger=audit_logger,
        max_concurrency=app_settings.sync_max_concurrency,
    )

    return AppComponents(
        sync_engine=engine,
        sync_trigger=SyncTrigger(engine, app_settings, audit_logger),
        account_linker=AccountLinker(
            provider=provider,
            account_storage=account_storage,
            cursor_storage=cursor_storage,
            transaction_storage=transaction_storage,
            audit_logger=audit_logger,
        ),
        manual_transactions=ManualTransactionService(
            transaction_storage,
            account_storage=account_storage,
            audit_logger=audit_logger,
            settings=app_settings,
        ),
        bitcoin_holdings=BitcoinHoldingService(
            GoogleSheetsHoldingStorage(sheets_client),
            audit_logger=audit_logger,
            settings=app_settings,
        ),
        cash_flow=CashFlowCalculator(transaction_storage),
        audit_logger=audit_logger,
        sheets_client=sheets_client,
    )
