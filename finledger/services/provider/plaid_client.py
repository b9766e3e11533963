"""
Plaid Transaction Provider

DESIGN DECISION: The Plaid SDK is wrapped behind TransactionProvider so
the sync engine never sees Plaid models. This adapter:
1. Builds its own PlaidApi handle from explicit settings (no global client)
2. Runs the blocking SDK calls in a worker thread
3. Converts Plaid records into our pydantic models, amounts into Decimal
4. Turns every SDK, HTTP or network failure into ProviderError

There is deliberately no retry here. A failed page aborts the credential's
sync and the next run replays from the last saved cursor.
"""

import asyncio
import json
from decimal import Decimal
from typing import Any, Optional

import plaid
from plaid.api import plaid_api
from plaid.model.accounts_get_request import AccountsGetRequest
from plaid.model.country_code import CountryCode
from plaid.model.item_public_token_exchange_request import ItemPublicTokenExchangeRequest
from plaid.model.item_remove_request import ItemRemoveRequest
from plaid.model.link_token_create_request import LinkTokenCreateRequest
from plaid.model.link_token_create_request_user import LinkTokenCreateRequestUser
from plaid.model.products import Products
from plaid.model.transactions_sync_request import TransactionsSyncRequest

from finledger.config.settings import PlaidSettings
from finledger.models.sync import (
    ProviderAccount,
    ProviderTransaction,
    RemovedTransaction,
    TransactionSyncPage,
)
from finledger.services.provider.interface import ProviderError, TransactionProvider


PLAID_HOSTS = {
    "sandbox": "https://sandbox.plaid.com",
    "development": "https://development.plaid.com",
    "production": "https://production.plaid.com",
}


def _field(obj: Any, name: str) -> Any:
    """Read an optional attribute from a Plaid model or a plain dict."""
    if isinstance(obj, dict):
        return obj.get(name)
    # Unset optional attributes on Plaid models raise ApiAttributeError,
    # which is an AttributeError.
    return getattr(obj, name, None)


def _enum_value(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(getattr(value, "value", value))


class PlaidTransactionProvider(TransactionProvider):
    """
    TransactionProvider backed by Plaid's /transactions/sync.

    Args:
        settings: Plaid credentials and environment
        api: Prebuilt PlaidApi handle; built from settings when omitted
    """

    def __init__(
        self,
        settings: PlaidSettings,
        api: Optional[plaid_api.PlaidApi] = None,
    ):
        self._settings = settings
        self._api = api

    def _get_api(self) -> plaid_api.PlaidApi:
        """Get or create the Plaid API handle."""
        if self._api is None:
            configuration = plaid.Configuration(
                host=PLAID_HOSTS[self._settings.environment],
                api_key={
                    "clientId": self._settings.client_id,
                    "secret": self._settings.secret,
                },
            )
            self._api = plaid_api.PlaidApi(plaid.ApiClient(configuration))
        return self._api

    def _to_provider_error(self, operation: str, error: Exception) -> ProviderError:
        if isinstance(error, plaid.ApiException):
            error_code = None
            message = error.reason or "API error"
            try:
                body = json.loads(error.body or "{}")
                error_code = body.get("error_code")
                message = body.get("error_message") or message
            except (TypeError, ValueError):
                pass
            return ProviderError(
                f"Plaid {operation} failed ({error.status}): {message}",
                error_code=error_code,
                status=error.status,
            )
        return ProviderError(f"Plaid {operation} failed: {error}")

    async def _call(self, operation: str, method_name: str, request: Any) -> Any:
        try:
            method = getattr(self._get_api(), method_name)
            return await asyncio.to_thread(
                method,
                request,
                _request_timeout=self._settings.request_timeout_seconds,
            )
        except Exception as e:
            raise self._to_provider_error(operation, e) from e

    def _to_provider_transaction(self, tx: Any) -> ProviderTransaction:
        labels = [str(label) for label in (_field(tx, "category") or [])]
        personal_category = _field(tx, "personal_finance_category")
        if personal_category is not None:
            for name in ("primary", "detailed"):
                value = _field(personal_category, name)
                if value:
                    labels.append(str(value))

        return ProviderTransaction(
            provider_transaction_id=str(_field(tx, "transaction_id")),
            provider_account_id=str(_field(tx, "account_id")),
            date=_field(tx, "date"),
            amount=Decimal(str(_field(tx, "amount"))),
            category_labels=labels,
            description=_field(tx, "name") or _field(tx, "merchant_name"),
        )

    async def sync_transactions(
        self,
        access_token: str,
        cursor: Optional[str],
    ) -> TransactionSyncPage:
        params: dict[str, Any] = {
            "access_token": access_token,
            "count": self._settings.sync_page_size,
        }
        # Plaid rejects an explicit null cursor; omit it for full history
        if cursor:
            params["cursor"] = cursor

        response = await self._call(
            "transactions/sync",
            "transactions_sync",
            TransactionsSyncRequest(**params),
        )

        try:
            return TransactionSyncPage(
                added=[self._to_provider_transaction(tx) for tx in _field(response, "added") or []],
                modified=[self._to_provider_transaction(tx) for tx in _field(response, "modified") or []],
                removed=[
                    RemovedTransaction(provider_transaction_id=str(_field(tx, "transaction_id")))
                    for tx in _field(response, "removed") or []
                ],
                next_cursor=_field(response, "next_cursor"),
                has_more=bool(_field(response, "has_more")),
            )
        except Exception as e:
            raise ProviderError(f"Unexpected transactions/sync response: {e}") from e

    async def create_link_token(self, user_id: str) -> str:
        request = LinkTokenCreateRequest(
            user=LinkTokenCreateRequestUser(client_user_id=user_id),
            client_name=self._settings.client_name,
            products=[Products("transactions")],
            country_codes=[CountryCode(code) for code in self._settings.country_codes_list],
            language=self._settings.language,
        )
        response = await self._call("link/token/create", "link_token_create", request)
        return _field(response, "link_token")

    async def exchange_public_token(self, public_token: str) -> tuple[str, Optional[str]]:
        response = await self._call(
            "item/public_token/exchange",
            "item_public_token_exchange",
            ItemPublicTokenExchangeRequest(public_token=public_token),
        )
        return _field(response, "access_token"), _field(response, "item_id")

    async def get_accounts(self, access_token: str) -> list[ProviderAccount]:
        response = await self._call(
            "accounts/get",
            "accounts_get",
            AccountsGetRequest(access_token=access_token),
        )
        return [
            ProviderAccount(
                provider_account_id=str(_field(account, "account_id")),
                name=_field(account, "name") or _field(account, "official_name") or "Account",
                account_type=_enum_value(_field(account, "type")),
            )
            for account in _field(response, "accounts") or []
        ]

    async def remove_item(self, access_token: str) -> None:
        await self._call(
            "item/remove",
            "item_remove",
            ItemRemoveRequest(access_token=access_token),
        )
