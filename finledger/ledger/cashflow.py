"""
Cash Flow Aggregation

DESIGN DECISION: Aggregation is DETERMINISTIC and reads only stored data.
Categories were fixed when the transaction was written, so the sign
convention of the provider plays no part here: every total is the
absolute value of the amounts in that category.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Union

from finledger.models.finance import TransactionCategory
from finledger.models.ledger import (
    CashFlowGranularity,
    CashFlowPeriod,
    CashFlowReport,
)
from finledger.services.storage import TransactionStorageInterface


def _month_end(day: date) -> date:
    next_month = (day.replace(day=28) + timedelta(days=4)).replace(day=1)
    return next_month - timedelta(days=1)


def period_bounds(
    date_from: date,
    date_to: date,
    granularity: CashFlowGranularity,
) -> list[tuple[date, date]]:
    """
    Calendar periods covering [date_from, date_to].

    Months run from the 1st, weeks from Monday. The first and last
    period are clipped to the requested range.
    """
    bounds = []
    if granularity == CashFlowGranularity.MONTH:
        start = date_from.replace(day=1)
    else:
        start = date_from - timedelta(days=date_from.weekday())

    while start <= date_to:
        if granularity == CashFlowGranularity.MONTH:
            end = _month_end(start)
        else:
            end = start + timedelta(days=6)
        bounds.append((max(start, date_from), min(end, date_to)))
        start = end + timedelta(days=1)
    return bounds


class CashFlowCalculator:
    """Summarises income, spending and transfers per period."""

    def __init__(self, storage: TransactionStorageInterface):
        self._storage = storage

    async def summarize(
        self,
        user_id: str,
        date_from: date,
        date_to: date,
        period: Union[CashFlowGranularity, str] = CashFlowGranularity.MONTH,
    ) -> CashFlowReport:
        """
        Raises:
            ValueError: If date_from is after date_to or period is unknown
        """
        if date_from > date_to:
            raise ValueError("date_from must not be after date_to")
        granularity = CashFlowGranularity(period)

        periods = [
            CashFlowPeriod(start=start, end=end)
            for start, end in period_bounds(date_from, date_to, granularity)
        ]

        transactions = await self._storage.list_transactions(
            user_id,
            date_from=date_from,
            date_to=date_to,
        )

        for tx in transactions:
            bucket = next(p for p in periods if p.start <= tx.date <= p.end)
            value = abs(Decimal(tx.amount))
            if tx.category == TransactionCategory.INCOME:
                bucket.income += value
            elif tx.category == TransactionCategory.SPENDING:
                bucket.spending += value
            else:
                bucket.transfers += value
            bucket.transaction_count += 1

        return CashFlowReport(
            user_id=user_id,
            date_from=date_from,
            date_to=date_to,
            granularity=granularity,
            periods=periods,
        )
