"""
Audit Models for finledger

Every sync run, every page applied and every failure is logged for audit.
This provides:
1. A record of which provider changes reached the ledger and when
2. Debugging information when a credential keeps failing
3. The ability to reconstruct why a cursor did or did not move

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from finledger.models.finance import utc_now


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Sync
    SYNC_STARTED = "sync_started"
    SYNC_COMPLETED = "sync_completed"
    CREDENTIAL_SYNC_STARTED = "credential_sync_started"
    PAGE_APPLIED = "page_applied"
    CURSOR_PERSISTED = "cursor_persisted"
    CREDENTIAL_SYNC_FAILED = "credential_sync_failed"

    # Linking
    INSTITUTION_LINKED = "institution_linked"
    INSTITUTION_DISCONNECTED = "institution_disconnected"

    # Manual entry
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_DELETED = "transaction_deleted"
    HOLDING_ADDED = "holding_added"

    # Trigger
    TRIGGER_REJECTED = "trigger_rejected"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'credential', 'transaction', 'user')"
    )
    entity_id: Optional[str] = None

    # Correlation - all events of one sync run share this
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_code, error_message,
         is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_code or "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.sync_started(user_id, credential_count, correlation_id)
        event = AuditEventBuilder.page_applied(credential_id, page_number, ...)
    """

    @staticmethod
    def sync_started(
        user_id: str,
        credential_count: int,
        correlation_id: UUID,
        is_user_action: bool = False,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_STARTED,
            entity_type="user",
            entity_id=user_id,
            correlation_id=correlation_id,
            description=f"Sync started for {credential_count} linked credential(s)",
            details={"credential_count": credential_count},
            is_user_action=is_user_action,
        )

    @staticmethod
    def sync_completed(
        user_id: str,
        succeeded: int,
        partial: int,
        failed: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        severity = AuditSeverity.INFO if not (partial or failed) else AuditSeverity.WARNING
        return AuditEvent(
            event_type=AuditEventType.SYNC_COMPLETED,
            severity=severity,
            entity_type="user",
            entity_id=user_id,
            correlation_id=correlation_id,
            description=(
                f"Sync finished: {succeeded} succeeded, {partial} partial, {failed} failed"
            ),
            details={"succeeded": succeeded, "partial": partial, "failed": failed},
        )

    @staticmethod
    def credential_sync_started(
        credential_id: str,
        cursor: Optional[str],
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CREDENTIAL_SYNC_STARTED,
            entity_type="credential",
            entity_id=credential_id,
            correlation_id=correlation_id,
            description=(
                "Credential sync started from saved cursor"
                if cursor else "Credential sync started from full history"
            ),
            details={"has_cursor": cursor is not None},
        )

    @staticmethod
    def page_applied(
        credential_id: str,
        page_number: int,
        inserted: int,
        updated: int,
        deleted: int,
        skipped: int,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAGE_APPLIED,
            severity=AuditSeverity.DEBUG,
            entity_type="credential",
            entity_id=credential_id,
            correlation_id=correlation_id,
            description=(
                f"Page {page_number} applied: +{inserted} ~{updated} -{deleted}"
            ),
            details={
                "page_number": page_number,
                "inserted": inserted,
                "updated": updated,
                "deleted": deleted,
                "skipped": skipped,
            },
        )

    @staticmethod
    def cursor_persisted(
        credential_id: str,
        pages: int,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CURSOR_PERSISTED,
            entity_type="credential",
            entity_id=credential_id,
            correlation_id=correlation_id,
            description=f"Cursor advanced after {pages} page(s)",
            details={"pages": pages},
        )

    @staticmethod
    def credential_sync_failed(
        credential_id: str,
        status: str,
        error_type: str,
        error_message: str,
        pages_applied: int,
        correlation_id: Optional[UUID],
        error_code: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CREDENTIAL_SYNC_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="credential",
            entity_id=credential_id,
            correlation_id=correlation_id,
            description=f"Credential sync {status}: {error_type}",
            details={
                "status": status,
                "error_type": error_type,
                "pages_applied": pages_applied,
            },
            error_code=error_code,
            error_message=error_message,
        )

    @staticmethod
    def institution_linked(
        credential_id: str,
        institution_name: Optional[str],
        account_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INSTITUTION_LINKED,
            entity_type="credential",
            entity_id=credential_id,
            description=f"Linked {institution_name or 'institution'} with {account_count} account(s)",
            details={
                "institution_name": institution_name,
                "account_count": account_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def institution_disconnected(
        credential_id: str,
        transactions_deleted: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INSTITUTION_DISCONNECTED,
            severity=AuditSeverity.WARNING,
            entity_type="credential",
            entity_id=credential_id,
            description=(
                f"Institution disconnected, {transactions_deleted} synced transaction(s) removed"
            ),
            details={"transactions_deleted": transactions_deleted},
            is_user_action=True,
        )

    @staticmethod
    def transaction_added(
        transaction_id: UUID,
        amount: str,
        category: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            entity_type="transaction",
            entity_id=str(transaction_id),
            description=f"Manual transaction added: {category} {amount}",
            details={"amount": amount, "category": category},
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(transaction_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=str(transaction_id),
            description="Manual transaction deleted",
            is_user_action=True,
        )

    @staticmethod
    def holding_added(holding_id: UUID, amount: str, value: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.HOLDING_ADDED,
            entity_type="bitcoin_holding",
            entity_id=str(holding_id),
            description=f"Bitcoin holding added: {amount} BTC",
            details={"amount": amount, "value": value},
            is_user_action=True,
        )

    @staticmethod
    def trigger_rejected(reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRIGGER_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="trigger",
            description=f"Scheduled sync trigger rejected: {reason}",
            details={"reason": reason},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
