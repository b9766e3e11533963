"""Ledger package: manual entry, bitcoin holdings and cash flow."""

from finledger.ledger.cashflow import CashFlowCalculator, period_bounds
from finledger.ledger.holdings import BitcoinHoldingService
from finledger.ledger.manual import ManualTransactionService, ValidationError

__all__ = [
    "BitcoinHoldingService",
    "CashFlowCalculator",
    "ManualTransactionService",
    "ValidationError",
    "period_bounds",
]
