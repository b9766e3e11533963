"""
Audit Logger

DESIGN DECISION: Every sync run, page and failure is logged.
This provides:
1. Traceability of which provider changes reached the ledger
2. Debugging capability when a credential keeps failing
3. A user-visible history of syncs and linked institutions

The audit logger:
- Always logs locally through structlog
- Gracefully handles storage failures (a sync never fails because auditing did)
- Supports correlation IDs so every event of one sync run can be found together
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from finledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from finledger.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_sync_started(
        self,
        user_id: str,
        credential_count: int,
        correlation_id: UUID,
        is_user_action: bool = False,
    ) -> None:
        await self.log(AuditEventBuilder.sync_started(
            user_id=user_id,
            credential_count=credential_count,
            correlation_id=correlation_id,
            is_user_action=is_user_action,
        ))

    async def log_sync_completed(
        self,
        user_id: str,
        succeeded: int,
        partial: int,
        failed: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.sync_completed(
            user_id=user_id,
            succeeded=succeeded,
            partial=partial,
            failed=failed,
            correlation_id=correlation_id,
        ))

    async def log_credential_sync_started(
        self,
        credential_id: str,
        cursor: Optional[str],
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.credential_sync_started(
            credential_id=credential_id,
            cursor=cursor,
            correlation_id=correlation_id,
        ))

    async def log_page_applied(
        self,
        credential_id: str,
        page_number: int,
        inserted: int,
        updated: int,
        deleted: int,
        skipped: int,
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.page_applied(
            credential_id=credential_id,
            page_number=page_number,
            inserted=inserted,
            updated=updated,
            deleted=deleted,
            skipped=skipped,
            correlation_id=correlation_id,
        ))

    async def log_cursor_persisted(
        self,
        credential_id: str,
        pages: int,
        correlation_id: Optional[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.cursor_persisted(
            credential_id=credential_id,
            pages=pages,
            correlation_id=correlation_id,
        ))

    async def log_credential_sync_failed(
        self,
        credential_id: str,
        status: str,
        error_type: str,
        error_message: str,
        pages_applied: int,
        correlation_id: Optional[UUID],
        error_code: Optional[str] = None,
    ) -> None:
        await self.log(AuditEventBuilder.credential_sync_failed(
            credential_id=credential_id,
            status=status,
            error_type=error_type,
            error_message=error_message,
            pages_applied=pages_applied,
            correlation_id=correlation_id,
            error_code=error_code,
        ))

    async def log_institution_linked(
        self,
        credential_id: str,
        institution_name: Optional[str],
        account_count: int,
    ) -> None:
        await self.log(AuditEventBuilder.institution_linked(
            credential_id=credential_id,
            institution_name=institution_name,
            account_count=account_count,
        ))

    async def log_institution_disconnected(
        self,
        credential_id: str,
        transactions_deleted: int,
    ) -> None:
        await self.log(AuditEventBuilder.institution_disconnected(
            credential_id=credential_id,
            transactions_deleted=transactions_deleted,
        ))

    async def log_transaction_added(
        self,
        transaction_id: UUID,
        amount: str,
        category: str,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_added(
            transaction_id=transaction_id,
            amount=amount,
            category=category,
        ))

    async def log_transaction_deleted(self, transaction_id: UUID) -> None:
        await self.log(AuditEventBuilder.transaction_deleted(transaction_id))

    async def log_holding_added(self, holding_id: UUID, amount: str, value: str) -> None:
        await self.log(AuditEventBuilder.holding_added(
            holding_id=holding_id,
            amount=amount,
            value=value,
        ))

    async def log_trigger_rejected(self, reason: str) -> None:
        await self.log(AuditEventBuilder.trigger_rejected(reason))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a sync run and pass it through
    every credential of that run.
    """
    return uuid4()
