"""
Cash Flow Models

Results of aggregating the ledger over time. These are derived data,
never stored.
"""

from datetime import date
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field, computed_field


class CashFlowGranularity(str, Enum):
    """How transactions are bucketed into periods."""
    MONTH = "month"
    WEEK = "week"


class CashFlowPeriod(BaseModel):
    """Totals for one period. All totals are absolute values."""

    start: date
    end: date
    income: Decimal = Decimal("0")
    spending: Decimal = Decimal("0")
    transfers: Decimal = Decimal("0")
    transaction_count: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def net(self) -> Decimal:
        """Income minus spending. Transfers move money, they don't create it."""
        return self.income - self.spending


class CashFlowReport(BaseModel):
    user_id: str
    date_from: date
    date_to: date
    granularity: CashFlowGranularity
    periods: list[CashFlowPeriod] = Field(default_factory=list)

    @property
    def total_income(self) -> Decimal:
        return sum((p.income for p in self.periods), Decimal("0"))

    @property
    def total_spending(self) -> Decimal:
        return sum((p.spending for p in self.periods), Decimal("0"))

    @property
    def net(self) -> Decimal:
        return self.total_income - self.total_spending
