"""
Tests for settings loaded from the environment.
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from finledger.config import get_settings, validate_all_settings
from finledger.config.settings import AppSettings, GoogleSheetsSettings, PlaidSettings


class TestPlaidSettings:
    """Tests for Plaid configuration."""

    def test_loads_from_environment(self, monkeypatch):
        monkeypatch.setenv("PLAID_CLIENT_ID", "client")
        monkeypatch.setenv("PLAID_SECRET", "secret")
        monkeypatch.setenv("PLAID_ENVIRONMENT", " Production ")
        monkeypatch.setenv("PLAID_COUNTRY_CODES", "us, ca,")

        settings = PlaidSettings()

        assert settings.environment == "production"
        assert settings.country_codes_list == ["US", "CA"]
        assert settings.sync_page_size == 100

    def test_loads_from_env_file(self, monkeypatch, tmp_path):
        monkeypatch.delenv("PLAID_CLIENT_ID", raising=False)
        monkeypatch.delenv("PLAID_SECRET", raising=False)
        (tmp_path / ".env").write_text(
            "PLAID_CLIENT_ID=from-file\n"
            "PLAID_SECRET=file-secret\n"
            "GOOGLE_SHEETS_SPREADSHEET_ID=sheet-from-file\n"
            f"GOOGLE_SHEETS_CREDENTIALS_PATH={tmp_path / '.env'}\n"
        )
        monkeypatch.chdir(tmp_path)

        plaid = PlaidSettings()
        sheets = GoogleSheetsSettings()

        assert plaid.client_id == "from-file"
        assert plaid.secret == "file-secret"
        assert sheets.spreadsheet_id == "sheet-from-file"

    def test_unknown_environment_rejected(self):
        with pytest.raises(ValidationError, match="Unknown Plaid environment"):
            PlaidSettings(client_id="c", secret="s", environment="staging")

    def test_page_size_bounds(self):
        with pytest.raises(ValidationError):
            PlaidSettings(client_id="c", secret="s", sync_page_size=501)


class TestGoogleSheetsSettings:
    """Tests for Google Sheets configuration."""

    def test_missing_credentials_file_warns(self, tmp_path):
        with pytest.warns(UserWarning, match="credentials file not found"):
            settings = GoogleSheetsSettings(
                credentials_path=str(tmp_path / "missing.json"),
                spreadsheet_id="sheet",
            )
        assert settings.transactions_sheet_name == "Transactions"


class TestAppSettings:
    """Tests for application settings."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("FINLEDGER_SYNC_KEY", raising=False)
        settings = AppSettings(_env_file=None)

        assert settings.sync_key is None
        assert settings.sync_max_concurrency == 1
        assert settings.future_date_tolerance_days == 7
        assert settings.max_transaction_amount == Decimal("1000000")

    def test_concurrency_bounds(self):
        with pytest.raises(ValidationError):
            AppSettings(sync_max_concurrency=0)


class TestValidateAllSettings:
    """Tests for the startup check."""

    def test_reports_missing_plaid_credentials(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("PLAID_CLIENT_ID", raising=False)
        monkeypatch.delenv("PLAID_SECRET", raising=False)
        get_settings.cache_clear()

        results = validate_all_settings()

        assert results["plaid"] is False
        assert "plaid_error" in results
        assert results["app"] is True
