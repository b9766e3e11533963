"""
finledger - Source Package

A single-user personal finance backend that keeps a local ledger
in step with linked bank accounts.

DESIGN PRINCIPLES:
1. The provider is the source of truth for synced transactions
2. A cursor never moves past changes that were not persisted
3. Every sync step is safe to repeat
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "finledger Team"
