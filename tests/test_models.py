"""
Tests for finledger models

Test strategy:
1. Unit tests for individual models and their validators
2. Report properties derived from per-credential results
3. Audit event serialization for logs and sheets
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from finledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from finledger.models.finance import (
    Account,
    AccountType,
    BitcoinHolding,
    LinkedCredential,
    Transaction,
    TransactionCategory,
)
from finledger.models.ledger import CashFlowPeriod, CashFlowReport, CashFlowGranularity
from finledger.models.sync import (
    CredentialSyncResult,
    SyncReport,
    SyncStatus,
    TransactionSyncPage,
)


class TestAccountModels:
    """Tests for credentials and accounts."""

    def test_credential_gets_generated_id(self):
        """Test that a credential id is generated when not given."""
        credential = LinkedCredential(user_id="u1", access_token="access-sandbox-1")
        assert credential.credential_id
        assert credential.item_id is None

    def test_credential_is_immutable(self):
        """Test that a saved credential cannot be edited in place."""
        credential = LinkedCredential(user_id="u1", access_token="access-sandbox-1")
        with pytest.raises(ValidationError):
            credential.access_token = "other"

    @pytest.mark.parametrize("raw, expected", [
        ("depository", AccountType.DEPOSITORY),
        ("Credit", AccountType.CREDIT),
        (" investment ", AccountType.INVESTMENT),
        ("brokerage", AccountType.OTHER),
        (None, AccountType.OTHER),
    ])
    def test_account_type_from_provider(self, raw, expected):
        """Test that provider account types are normalised."""
        assert AccountType.from_provider(raw) == expected

    def test_account_coerces_unknown_type(self):
        """Test that an unknown type string becomes OTHER instead of failing."""
        account = Account(
            user_id="u1",
            credential_id="c1",
            provider_account_id="pa-1",
            account_type="mortgage-ish",
        )
        assert account.account_type == AccountType.OTHER


class TestTransactionModel:
    """Tests for the stored transaction model."""

    def test_manual_transaction(self):
        """Test a manual row has no provider key."""
        tx = Transaction(
            user_id="u1",
            date=date(2024, 3, 1),
            amount=Decimal("25.50"),
            category=TransactionCategory.SPENDING,
            description="  Farmers market  ",
        )
        assert tx.is_manual
        assert tx.provider_key is None
        assert tx.description == "Farmers market"

    def test_provider_transaction_key(self):
        """Test provider rows are keyed by credential and provider id."""
        tx = Transaction(
            user_id="u1",
            credential_id="c1",
            provider_transaction_id="tx1",
            date=date(2024, 3, 1),
            amount=Decimal("-10"),
            category=TransactionCategory.INCOME,
        )
        assert not tx.is_manual
        assert tx.provider_key == ("c1", "tx1")

    @pytest.mark.parametrize("fields", [
        {"credential_id": "c1"},
        {"provider_transaction_id": "tx1"},
    ])
    def test_provider_key_halves_must_come_together(self, fields):
        """Test that half a provider key is rejected."""
        with pytest.raises(ValidationError, match="must be set together"):
            Transaction(
                user_id="u1",
                date=date(2024, 3, 1),
                amount=Decimal("1"),
                category=TransactionCategory.SPENDING,
                **fields,
            )

    def test_description_length_limit(self):
        """Test descriptions longer than 500 characters are rejected."""
        with pytest.raises(ValidationError):
            Transaction(
                user_id="u1",
                date=date(2024, 3, 1),
                amount=Decimal("1"),
                category=TransactionCategory.SPENDING,
                description="x" * 501,
            )

    def test_same_content_ignores_identity(self):
        """Test that same_content compares only sync-writable fields."""
        first = Transaction(
            user_id="u1",
            credential_id="c1",
            provider_transaction_id="tx1",
            date=date(2024, 3, 1),
            amount=Decimal("10.00"),
            category=TransactionCategory.SPENDING,
        )
        second = first.model_copy(update={"id": uuid4(), "amount": Decimal("10")})
        assert first.same_content(second)
        assert not first.same_content(second.model_copy(update={"amount": Decimal("11")}))


class TestBitcoinHoldingModel:
    """Tests for the BitcoinHolding model."""

    def test_holding(self):
        holding = BitcoinHolding(
            user_id="u1",
            date=date(2024, 2, 1),
            amount=Decimal("0.0025"),
            value=Decimal("107.50"),
        )
        assert holding.id is not None
        assert holding.amount == Decimal("0.0025")

    @pytest.mark.parametrize("amount, value", [
        (Decimal("0"), Decimal("1")),
        (Decimal("-1"), Decimal("1")),
        (Decimal("1"), Decimal("-0.01")),
    ])
    def test_amount_positive_value_not_negative(self, amount, value):
        with pytest.raises(ValidationError):
            BitcoinHolding(user_id="u1", date=date(2024, 2, 1), amount=amount, value=value)


class TestSyncModels:
    """Tests for sync pages, results and reports."""

    def test_page_requires_cursor(self):
        """Test that a page without a next cursor is rejected."""
        with pytest.raises(ValidationError):
            TransactionSyncPage(next_cursor="")

    def test_empty_page(self):
        """Test is_empty on a page with no records."""
        assert TransactionSyncPage(next_cursor="c1").is_empty

    def test_report_groups_results_by_status(self):
        """Test succeeded / partial / failed properties."""
        report = SyncReport(
            user_id="u1",
            results=[
                CredentialSyncResult(credential_id="a", status=SyncStatus.SUCCESS),
                CredentialSyncResult(credential_id="b", status=SyncStatus.PARTIAL, pages_applied=1),
                CredentialSyncResult(credential_id="c", status=SyncStatus.FAILED),
            ],
        )
        assert [r.credential_id for r in report.succeeded] == ["a"]
        assert [r.credential_id for r in report.partial] == ["b"]
        assert [r.credential_id for r in report.failed] == ["c"]
        assert report.all_succeeded is False
        assert report.result_for("b").pages_applied == 1
        assert report.result_for("missing") is None

    def test_report_serializes_to_json(self):
        """Test that a report can be printed by the scheduled entry point."""
        report = SyncReport(
            user_id="u1",
            results=[CredentialSyncResult(credential_id="a", status=SyncStatus.SUCCESS, cursor="c9")],
        )
        payload = report.model_dump_json()
        assert '"status":"success"' in payload
        assert '"cursor":"c9"' in payload


class TestCashFlowModels:
    """Tests for cash flow report models."""

    def test_period_net(self):
        """Test net is income minus spending, transfers excluded."""
        period = CashFlowPeriod(
            start=date(2024, 1, 1),
            end=date(2024, 1, 31),
            income=Decimal("100"),
            spending=Decimal("30"),
            transfers=Decimal("500"),
        )
        assert period.net == Decimal("70")
        assert period.model_dump()["net"] == Decimal("70")

    def test_report_totals(self):
        """Test totals across periods."""
        report = CashFlowReport(
            user_id="u1",
            date_from=date(2024, 1, 1),
            date_to=date(2024, 2, 29),
            granularity=CashFlowGranularity.MONTH,
            periods=[
                CashFlowPeriod(start=date(2024, 1, 1), end=date(2024, 1, 31), income=Decimal("10")),
                CashFlowPeriod(start=date(2024, 2, 1), end=date(2024, 2, 29), spending=Decimal("4")),
            ],
        )
        assert report.total_income == Decimal("10")
        assert report.total_spending == Decimal("4")
        assert report.net == Decimal("6")


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.SYNC_STARTED,
            description="Sync started",
        )
        assert event.event_type == AuditEventType.SYNC_STARTED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.PAGE_APPLIED,
            description="Page applied",
            details={"inserted": 3},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "page_applied"
        assert log_dict["details"]["inserted"] == 3
        assert log_dict["correlation_id"] is None

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.INSTITUTION_LINKED,
            description="Linked",
            error_code="NONE",
            is_user_action=True,
        )
        row = event.to_sheets_row()
        assert len(row) == 12
        assert row[2] == "institution_linked"
        assert row[9] == "NONE"
        assert row[11] == "True"

    def test_builder_credential_sync_failed(self):
        """Test AuditEventBuilder.credential_sync_failed."""
        correlation_id = uuid4()

        event = AuditEventBuilder.credential_sync_failed(
            credential_id="c1",
            status="partial",
            error_type="ProviderError",
            error_message="ITEM_LOGIN_REQUIRED",
            pages_applied=2,
            correlation_id=correlation_id,
            error_code="ITEM_LOGIN_REQUIRED",
        )

        assert event.event_type == AuditEventType.CREDENTIAL_SYNC_FAILED
        assert event.severity == AuditSeverity.ERROR
        assert event.entity_id == "c1"
        assert event.correlation_id == correlation_id
        assert event.details["pages_applied"] == 2
        assert event.error_code == "ITEM_LOGIN_REQUIRED"

    def test_builder_sync_completed_severity(self):
        """Test that a run with failures is logged as a warning."""
        correlation_id = uuid4()
        clean = AuditEventBuilder.sync_completed("u1", 2, 0, 0, correlation_id)
        dirty = AuditEventBuilder.sync_completed("u1", 1, 0, 1, correlation_id)
        assert clean.severity == AuditSeverity.INFO
        assert dirty.severity == AuditSeverity.WARNING

    def test_builder_institution_linked_is_user_action(self):
        """Test AuditEventBuilder.institution_linked."""
        event = AuditEventBuilder.institution_linked("c1", "First Platypus Bank", 2)
        assert event.is_user_action is True
        assert event.details["account_count"] == 2

    def test_builder_holding_added(self):
        """Test AuditEventBuilder.holding_added."""
        holding_id = uuid4()
        event = AuditEventBuilder.holding_added(holding_id, "0.5", "15000")
        assert event.event_type == AuditEventType.HOLDING_ADDED
        assert event.entity_id == str(holding_id)
        assert event.is_user_action is True

    def test_every_event_type_has_a_builder(self):
        """Each event type is one the application actually records."""
        assert {t.value for t in AuditEventType} == {
            "sync_started",
            "sync_completed",
            "credential_sync_started",
            "page_applied",
            "cursor_persisted",
            "credential_sync_failed",
            "institution_linked",
            "institution_disconnected",
            "transaction_added",
            "transaction_deleted",
            "holding_added",
            "trigger_rejected",
            "system_error",
        }
        for event_type in AuditEventType:
            assert callable(getattr(AuditEventBuilder, event_type.value))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
