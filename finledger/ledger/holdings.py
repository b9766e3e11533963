"""
Bitcoin Holdings

Bitcoin purchases the user records by hand. Each one keeps its BTC
amount and what it was worth in USD on the purchase date; nothing here
looks up a current price.
"""

from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Optional

from finledger.audit import AuditLogger
from finledger.config import get_settings
from finledger.config.settings import AppSettings
from finledger.ledger.manual import ValidationError
from finledger.models.finance import BitcoinHolding
from finledger.services.storage import HoldingStorageInterface


def _to_decimal(field: str, raw) -> Decimal:
    if raw is None or raw == "":
        raise ValidationError(field, f"{field.capitalize()} is required")
    try:
        return Decimal(str(raw))
    except InvalidOperation:
        raise ValidationError(field, f"{field.capitalize()} must be a number, got {raw!r}")


class BitcoinHoldingService:
    """Add and list a user's bitcoin holdings."""

    def __init__(
        self,
        holding_storage: HoldingStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._holdings = holding_storage
        self._audit_logger = audit_logger or AuditLogger()
        self._settings = settings or get_settings().app

    async def add_holding(
        self,
        user_id: str,
        tx_date: Optional[date],
        amount,
        value,
        today: Optional[date] = None,
    ) -> BitcoinHolding:
        """
        Record a bitcoin purchase.

        Args:
            user_id: Owner of the holding
            tx_date: Purchase date
            amount: Quantity in BTC, must be positive
            value: USD value at the time of purchase, must not be negative

        Raises:
            ValidationError: If the input is rejected
            StorageError: If save fails
        """
        if tx_date is None:
            raise ValidationError("date", "Date is required")
        amount = _to_decimal("amount", amount)
        value = _to_decimal("value", value)

        if not amount.is_finite() or amount <= 0:
            raise ValidationError("amount", "Amount must be greater than zero")
        if not value.is_finite() or value < 0:
            raise ValidationError("value", "Value cannot be negative")

        latest = (today or date.today()) + timedelta(days=self._settings.future_date_tolerance_days)
        if tx_date > latest:
            raise ValidationError(
                "date",
                f"Date {tx_date.isoformat()} is too far in the future",
            )

        saved = await self._holdings.add_holding(BitcoinHolding(
            user_id=user_id,
            date=tx_date,
            amount=amount,
            value=value,
        ))

        await self._audit_logger.log_holding_added(
            holding_id=saved.id,
            amount=str(saved.amount),
            value=str(saved.value),
        )
        return saved

    async def list_holdings(self, user_id: str) -> list[BitcoinHolding]:
        """The user's holdings, newest purchase first."""
        return await self._holdings.list_holdings(user_id)
